# automator/core/dispatch.py
from __future__ import annotations

"""Action dispatch
------------------
Classifies actions by runtime shape and maps each shape to a handler.
The engine never looks inside an action beyond this classification.
"""

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from automator.utils.timing import async_sleep_ms

__all__ = [
    "ActionKind",
    "DispatchTable",
    "Handler",
    "UnsupportedActionError",
    "classify",
    "is_delay",
    "sleep_handler",
    "call_handler",
]

Handler = Callable[[Any, Any], Any]


class UnsupportedActionError(TypeError):
    """An action whose shape has no entry in the dispatch table."""

    def __init__(self, action: Any):
        self.action = action
        super().__init__(f"Unsupported action type {type(action).__name__}: {action!r}")


class ActionKind(str, Enum):
    number = "number"
    function = "function"
    string = "string"


def is_delay(action: Any) -> bool:
    """True for numeric delay actions. Booleans are not delays."""
    return isinstance(action, (int, float)) and not isinstance(action, bool)


def classify(action: Any) -> ActionKind:
    if is_delay(action):
        return ActionKind.number
    if isinstance(action, str):
        return ActionKind.string
    if callable(action):
        return ActionKind.function
    raise UnsupportedActionError(action)


# ------------- Default handlers -------------

async def sleep_handler(ms: int | float, pass_through: Any = None) -> Any:
    """Sleep for `ms` milliseconds, then hand the pass-through value on."""
    await async_sleep_ms(ms)
    return pass_through


def _takes_argument(fn: Callable[..., Any]) -> bool:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return True
    try:
        sig.bind(None)
    except TypeError:
        return False
    return True


def call_handler(fn: Callable[..., Any], pass_through: Any = None) -> Any:
    """Call the action with the pass-through value (or with nothing if it takes no argument)."""
    if _takes_argument(fn):
        return fn(pass_through)
    return fn()


# ------------- Table -------------

@dataclass(frozen=True)
class DispatchTable:
    """Read-only mapping from action shape to handler; shared safely across runs."""
    number: Handler
    function: Handler
    string: Handler

    def handler_for(self, kind: ActionKind) -> Handler:
        return getattr(self, kind.value)

    def resolve(self, action: Any) -> tuple[ActionKind, Handler]:
        kind = classify(action)
        return kind, self.handler_for(kind)
