# automator/core/options.py
from __future__ import annotations

"""Engine options
-----------------
Immutable per-engine configuration: delays, trace switch, the three
dispatch handlers and the hooks that make the engine independent of a
concrete future or timer implementation.
"""

import asyncio
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from automator.core.dispatch import DispatchTable, call_handler, sleep_handler
from automator.core.keyboard import KeyboardHandler
from automator.utils.config import Delays, Settings, get_settings

__all__ = ["AutomatorOptions", "asyncio_future", "call_later"]


def asyncio_future() -> asyncio.Future:
    """Default completion handle: a future on the running event loop."""
    return asyncio.get_running_loop().create_future()


def call_later(delay_ms: int, callback: Callable[..., Any], *args: Any) -> None:
    """Default scheduler: run `callback(*args)` after `delay_ms` on the running loop."""
    asyncio.get_running_loop().call_later(delay_ms / 1000.0, callback, *args)


class AutomatorOptions(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    debug: bool = Field(default=False, description="Promote transition traces to INFO")
    step_delay: int = Field(default=0, ge=0, description="ms between non-numeric steps")
    iteration_delay: int = Field(default=0, ge=0, description="ms between iterations")

    do_number: Callable[..., Any] = Field(default=sleep_handler)
    do_function: Callable[..., Any] = Field(default=call_handler)
    do_string: Callable[..., Any] = Field(default_factory=KeyboardHandler)

    future_factory: Callable[[], Any] = Field(default=asyncio_future)
    scheduler: Callable[..., Any] = Field(default=call_later)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "AutomatorOptions":
        s = settings or get_settings()
        delays = Delays.from_settings(s)
        values: dict[str, Any] = {
            "debug": s.DEBUG_MODE,
            "step_delay": delays.step_delay,
            "iteration_delay": delays.iteration_delay,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def dispatch_table(self) -> DispatchTable:
        return DispatchTable(number=self.do_number, function=self.do_function, string=self.do_string)
