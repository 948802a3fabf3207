# automator/utils/timing.py
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional


# ---------------- Monotonic time helpers ----------------

def now_ms() -> int:
    """Monotonic time in milliseconds."""
    return time.monotonic_ns() // 1_000_000


async def async_sleep_ms(ms: int | float) -> None:
    """Async sleep for `ms` milliseconds."""
    if ms <= 0:
        return
    await asyncio.sleep(ms / 1000.0)


# ---------------- Stopwatch ----------------

@dataclass
class Stopwatch:
    """Simple stopwatch usable as a context manager."""
    start_ms: Optional[int] = None
    stop_ms: Optional[int] = None

    def start(self) -> "Stopwatch":
        self.start_ms = now_ms()
        self.stop_ms = None
        return self

    def elapsed_ms(self) -> int:
        if self.start_ms is None:
            return 0
        end = self.stop_ms if self.stop_ms is not None else now_ms()
        return max(0, end - self.start_ms)

    def human(self) -> str:
        ms = self.elapsed_ms()
        return f"{ms} ms" if ms < 1000 else f"{ms/1000:.3f} s"

    def __enter__(self) -> "Stopwatch":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        # freeze the reading so elapsed_ms() and human() agree afterwards
        self.stop_ms = now_ms()
        return None
