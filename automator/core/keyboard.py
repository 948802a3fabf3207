# automator/core/keyboard.py
from __future__ import annotations

"""Symbolic key tokens
----------------------
The default string handler: maps short token names ("a", "enter", "left")
to classic DOM key codes and hands a keydown event to a key sink.

Sinks:
  - LoggingKeyboard records and logs events (default, no browser needed)
  - PlaywrightKeyboard presses the key on a live Playwright page
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from playwright.async_api import Page

from automator.utils.logger import get_logger

__all__ = [
    "KEY_CODES",
    "PLAYWRIGHT_KEYS",
    "KeyEvent",
    "KeySink",
    "LoggingKeyboard",
    "PlaywrightKeyboard",
    "KeyboardHandler",
]


KEY_CODES: dict[str, int] = {
    **{str(d): 48 + d for d in range(10)},
    **{chr(c): c - 32 for c in range(ord("a"), ord("z") + 1)},
    "left": 37,
    "up": 38,
    "right": 39,
    "down": 40,
    "enter": 13,
    "tab": 9,
    "ctrl": 17,
    "esc": 27,
    "space": 32,
}

# Token -> Playwright key name (digits and letters press as themselves)
PLAYWRIGHT_KEYS: dict[str, str] = {
    **{tok: tok for tok in KEY_CODES if len(tok) == 1},
    "left": "ArrowLeft",
    "up": "ArrowUp",
    "right": "ArrowRight",
    "down": "ArrowDown",
    "enter": "Enter",
    "tab": "Tab",
    "ctrl": "Control",
    "esc": "Escape",
    "space": "Space",
}


@dataclass(frozen=True)
class KeyEvent:
    type: str
    key_code: int
    token: str


class KeySink(Protocol):
    def dispatch(self, event: KeyEvent) -> Any: ...


class LoggingKeyboard:
    """Keeps every dispatched event in `events` and logs it."""

    def __init__(self) -> None:
        self.events: list[KeyEvent] = []
        self.log = get_logger(__name__)

    def dispatch(self, event: KeyEvent) -> None:
        self.events.append(event)
        self.log.info(f"{event.type} {event.token!r} (keyCode={event.key_code})")


class PlaywrightKeyboard:
    """Presses keys on a Playwright page (async API); returns the pending press."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def dispatch(self, event: KeyEvent):
        return self.page.keyboard.press(PLAYWRIGHT_KEYS[event.token])


class KeyboardHandler:
    """String handler for the dispatch table. Unknown tokens are a no-op."""

    def __init__(self, sink: Optional[KeySink] = None) -> None:
        self.sink: KeySink = sink if sink is not None else LoggingKeyboard()
        self.log = get_logger(__name__)

    def __call__(self, token: str, pass_through: Any = None) -> Any:
        key_code = KEY_CODES.get(token)
        if key_code is None:
            self.log.debug(f"No key code for token {token!r}; ignoring")
            return None
        return self.sink.dispatch(KeyEvent(type="keydown", key_code=key_code, token=token))
