# automator/utils/logger.py
from __future__ import annotations

"""Logging for sequencer runs
----------------------------
The engine traces each transition through a LoggerAdapter scoped to the
run (`run`, `iteration`). Those two fields lead every JSON line, and the
console shows them as a ``[run 3 #0]`` tag so interleaved runs stay apart.

Console output goes through rich. A rotating JSON file is added when
LOG_TO_FILE is set, or per invocation via ``attach_file_logger``
(``automator run --log-file``).
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from automator.utils.config import get_settings, LogLevel


__all__ = [
    "get_logger",
    "set_log_level",
    "bind",
    "unbind",
    "log_with_context",
    "attach_file_logger",
    "detach_file_logger",
    "JsonFormatter",
]

# Fields that identify where in a run a record came from
RUN_FIELDS = ("run", "iteration")

_lock = threading.Lock()
_ready = False
_bound: Dict[str, Any] = {}


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    ctx = getattr(record, "extra", None)
    return ctx if isinstance(ctx, dict) else {}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, run position first, then the message, then any bound context."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = _context_of(record)
        payload: Dict[str, Any] = {k: ctx[k] for k in RUN_FIELDS if k in ctx}
        payload["ts"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds")
        payload["level"] = record.levelname
        payload["logger"] = record.name
        payload["msg"] = record.getMessage()
        payload.update((k, v) for k, v in ctx.items() if k not in RUN_FIELDS)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RunTagFilter(logging.Filter):
    """Adds `run_tag` (e.g. "[run 3 #0] ") to records; empty outside a run."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _context_of(record)
        if "run" in ctx:
            record.run_tag = f"[run {ctx['run']} #{ctx.get('iteration', 0)}] "
        else:
            record.run_tag = ""
        return True


def _level_of(value: LogLevel | str) -> int:
    name = value.value if isinstance(value, LogLevel) else str(value).upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _json_file_handler(path: os.PathLike | str, level: int, backups: int) -> RotatingFileHandler:
    p = os.path.abspath(os.fspath(path))
    os.makedirs(os.path.dirname(p), exist_ok=True)
    handler = RotatingFileHandler(p, maxBytes=5 * 1024 * 1024, backupCount=backups, encoding="utf-8", delay=True)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def _ensure_configured() -> None:
    """Install the console (and optional file) handler on the root logger, once."""
    global _ready
    if _ready:
        return
    with _lock:
        if _ready:
            return

        settings = get_settings()
        level = _level_of(settings.LOG_LEVEL)
        root = logging.getLogger()
        root.setLevel(level)
        for h in list(root.handlers):
            root.removeHandler(h)

        console = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=settings.COLORIZED_OUTPUT,
            omit_repeated_times=False,
        )
        console.addFilter(RunTagFilter())
        console.setFormatter(logging.Formatter("%(run_tag)s%(message)s"))
        console.setLevel(level)
        root.addHandler(console)

        if settings.LOG_TO_FILE:
            root.addHandler(_json_file_handler(settings.LOG_FILE, level, backups=5))

        # timer and browser driver internals only surface as warnings
        for noisy in ("asyncio", "playwright"):
            logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

        _ready = True


def get_logger(name: Optional[str] = None) -> logging.LoggerAdapter:
    """Logger adapter whose records carry the context set with `bind()`."""
    _ensure_configured()
    return logging.LoggerAdapter(logging.getLogger(name or "automator"), extra={"extra": _bound})


def set_log_level(level: LogLevel | str) -> None:
    _ensure_configured()
    lvl = _level_of(level)
    root = logging.getLogger()
    root.setLevel(lvl)
    for h in root.handlers:
        h.setLevel(lvl)


def bind(**kwargs: Any) -> None:
    """Attach context (e.g. ``invocation="20261018T120000Z"``) to every later record."""
    _bound.update(kwargs)


def unbind(*keys: str) -> None:
    for k in keys:
        _bound.pop(k, None)


def log_with_context(logger: logging.LoggerAdapter, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Scope extra fields on top of the bound context:

        log_with_context(log, run=3, iteration=0).info("sleeping for 100ms")
    """
    return logging.LoggerAdapter(logger.logger, extra={"extra": {**_bound, **kwargs}})


def attach_file_logger(path: os.PathLike | str, level: Optional[int] = None) -> logging.Handler:
    """Add a JSON file handler to the root logger; pass the result to `detach_file_logger`."""
    _ensure_configured()
    root = logging.getLogger()
    handler = _json_file_handler(path, level if level is not None else root.level, backups=3)
    root.addHandler(handler)
    return handler


def detach_file_logger(handler: logging.Handler) -> None:
    logging.getLogger().removeHandler(handler)
    handler.close()
