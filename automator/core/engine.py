# automator/core/engine.py
from __future__ import annotations

"""Sequencing engine
--------------------
Runs a flat list of actions one at a time through the dispatch table,
honoring step/iteration delays, iteration counts, sub-sequences injected
by handlers at runtime, and awaitable handler results.

One step is active at a time. Immediate continuations are driven by a
single loop; the engine only leaves that loop at a suspension point (a
scheduled delay or an awaitable result) and re-enters it from the timer
or done-callback.

Starting a new run on an engine that is still running discards the old run:
its kill latch is set, its pending continuations become no-ops and its
completion handle is never resolved.
"""

import asyncio
import functools
import inspect
import itertools
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from automator.core.dispatch import ActionKind, is_delay
from automator.core.expander import expand_actions
from automator.core.options import AutomatorOptions
from automator.utils.logger import get_logger, log_with_context

__all__ = ["Automator", "InterimStack", "RunState"]

IterationCallback = Callable[[int], Any]

# Marks "the step driver must stop here"
_SUSPENDED = object()

_run_ids = itertools.count(1)


class InterimStack:
    """LIFO stack of action segments injected by handlers.

    The top segment drains first. A segment is dropped the moment its
    last action is taken, so an empty segment never sits on the stack.
    """

    def __init__(self) -> None:
        self._segments: list[deque] = []

    def push(self, actions: Sequence[Any]) -> None:
        if len(actions) > 0:
            self._segments.append(deque(actions))

    def pop(self) -> Any:
        top = self._segments[-1]
        action = top.popleft()
        if not top:
            self._segments.pop()
        return action

    def peek(self) -> Any:
        return self._segments[-1][0]

    def clear(self) -> None:
        self._segments.clear()

    def __len__(self) -> int:
        return len(self._segments)

    def __bool__(self) -> bool:
        return bool(self._segments)


@dataclass
class RunState:
    """Bookkeeping for one `automate` call. Only the engine writes to it."""
    actions: list[Any]
    num_iterations: int
    handle: Any
    iteration_callback: Optional[IterationCallback] = None
    action_index: int = 0
    iteration_index: int = 0
    killed: bool = False
    interim: InterimStack = field(default_factory=InterimStack)
    run_id: int = field(default_factory=lambda: next(_run_ids))

    def next_action(self) -> Any:
        """The action after the current one, or None when nothing is pending."""
        if self.interim:
            return self.interim.peek()
        if self.action_index < len(self.actions):
            return self.actions[self.action_index]
        return None


def _is_async_result(value: Any) -> bool:
    return inspect.isawaitable(value)


class Automator:
    """Single-threaded action sequencer with a cancellable completion handle."""

    def __init__(self, options: Optional[AutomatorOptions] = None, **overrides: Any):
        opts = options if options is not None else AutomatorOptions()
        if overrides:
            opts = AutomatorOptions(**{**dict(opts), **overrides})
        self.options = opts
        self.dispatch = opts.dispatch_table()
        self.log = get_logger(__name__)
        self._run: Optional[RunState] = None

    @property
    def run_state(self) -> Optional[RunState]:
        return self._run

    # ------------- Public API -------------

    def automate(
        self,
        actions: Iterable[Any],
        iterations: int = 1,
        iteration_callback: Optional[IterationCallback] = None,
    ):
        """Start a run and return its completion handle.

        The handle resolves with the last iteration callback's return value
        once all iterations finish. Steps up to the first suspension point run
        before this method returns, so a handler fault there raises here.
        """
        if not isinstance(iterations, int) or isinstance(iterations, bool) or iterations < 1:
            raise ValueError(f"iterations must be a positive integer, got {iterations!r}")

        previous = self._run
        if previous is not None and not previous.killed and not previous.handle.done():
            self._trace(previous, "superseded by a new run; discarding")
            previous.killed = True
            previous.interim.clear()

        run = RunState(
            actions=expand_actions(actions),
            num_iterations=iterations,
            handle=self.options.future_factory(),
            iteration_callback=iteration_callback,
        )
        self._run = run
        self._trace(run, f"starting: {len(run.actions)} action(s) x {iterations} iteration(s)")
        self._drive(run)
        return run.handle

    def kill(self) -> None:
        """Stop the current run at the next step boundary. Its handle never resolves."""
        if self._run is not None:
            self._run.killed = True

    # ------------- Step driver -------------

    def _trace(self, run: RunState, msg: str) -> None:
        log = log_with_context(self.log, run=run.run_id, iteration=run.iteration_index)
        if self.options.debug:
            log.info(msg)
        else:
            log.debug(msg)

    def _drive(self, run: RunState, pass_through: Any = None) -> None:
        while True:
            if run.killed:
                self._trace(run, "was killed, exiting")
                return
            pass_through = self._step(run, pass_through)
            if pass_through is _SUSPENDED:
                return

    def _step(self, run: RunState, pass_through: Any) -> Any:
        """Execute one step; return the next pass-through value or _SUSPENDED."""
        if run.interim:
            action = run.interim.pop()
        elif run.action_index < len(run.actions):
            action = run.actions[run.action_index]
            run.action_index += 1
        else:
            return self._finish_iteration(run)

        if action is None:
            self._trace(run, "skipping null action")
            return None

        kind, handler = self.dispatch.resolve(action)

        # No padding around explicit delays, and none after the last action
        following = run.next_action()
        if kind is ActionKind.number or following is None or is_delay(following):
            delay = 0
        else:
            delay = self.options.step_delay

        self._trace(run, f"handling {kind.value} action: {action!r}")
        result = handler(action, pass_through)

        if _is_async_result(result):
            self._when_settled(run, result, functools.partial(self._continue, run, delay))
            return _SUSPENDED
        if isinstance(result, (list, tuple)):
            if result:
                self._trace(run, f"pushing {len(result)} interim action(s)")
                run.interim.push(result)
            return None
        if delay > 0:
            self._continue(run, delay, result)
            return _SUSPENDED
        return result

    def _finish_iteration(self, run: RunState) -> Any:
        self._trace(run, f"iteration {run.iteration_index} completed")
        value = None
        if run.iteration_callback is not None:
            value = run.iteration_callback(run.iteration_index)

        run.iteration_index += 1
        if run.iteration_index >= run.num_iterations:
            self._trace(run, "done with iterations")
            if _is_async_result(value):
                self._when_settled(run, value, functools.partial(self._resolve, run))
            else:
                self._resolve(run, value)
            return _SUSPENDED

        run.action_index = 0
        delay = self.options.iteration_delay
        if _is_async_result(value):
            self._when_settled(run, value, functools.partial(self._continue, run, delay))
            return _SUSPENDED
        if delay > 0:
            self._continue(run, delay, value)
            return _SUSPENDED
        return value

    # ------------- Continuations -------------

    def _continue(self, run: RunState, delay: int, value: Any) -> None:
        """Re-enter the step driver with `value`, after `delay` ms if positive."""
        if delay > 0 and not run.killed:
            self._trace(run, f"sleeping for {delay}ms")
            self.options.scheduler(delay, self._drive, run, value)
        else:
            self._drive(run, value)

    def _when_settled(self, run: RunState, result: Any, then: Callable[[Any], None]) -> None:
        future = asyncio.ensure_future(result)
        future.add_done_callback(functools.partial(self._on_settled, run, then))

    def _on_settled(self, run: RunState, then: Callable[[Any], None], future: asyncio.Future) -> None:
        if run.killed:
            self._trace(run, "async result settled after kill; dropping it")
            return
        # Resume whichever way it settled; a failure becomes the pass-through value
        if future.cancelled():
            self._trace(run, "async result was cancelled; continuing")
            value = None
        elif future.exception() is not None:
            value = future.exception()
            self._trace(run, f"async result failed with {value!r}; continuing")
        else:
            value = future.result()
        then(value)

    def _resolve(self, run: RunState, value: Any) -> None:
        if run.killed or run.handle.done():
            return
        run.handle.set_result(value)
