"""Adaptive polling schedule.

`ScheduleController` owns the single polling interval shared by every
product.  Successful fetches pull the interval down towards the fast
bound; every run of `failure_threshold` consecutive failures pushes it up
towards the slow bound.  Whenever the interval changes, the attached
`PeriodicTask` is cancelled and restarted at the new period.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set

from .models import ScheduleState

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Cancellable repeating timer on the running asyncio loop.

    Each tick calls ``callback``; if it returns an awaitable, that is run as
    its own task so a slow tick never delays the next one.
    """

    def __init__(self, callback: Callable[[], Optional[Awaitable[Any]]], interval_ms: int, *, name: str = "poll"):
        self._callback = callback
        self._interval_ms = interval_ms
        self._name = name
        self._handle: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._handle.done()

    def start(self, *, immediate: bool = True) -> None:
        if self.running:
            return
        if immediate:
            self._fire()
        self._handle = asyncio.get_running_loop().create_task(self._loop(), name=f"{self._name}-timer")

    def reschedule(self, interval_ms: int) -> None:
        """Cancel the pending trigger and restart the timer at ``interval_ms``."""
        self._interval_ms = interval_ms
        if not self.running:
            return
        self._handle.cancel()
        self._handle = asyncio.get_running_loop().create_task(self._loop(), name=f"{self._name}-timer")
        logger.debug("Rescheduled %s timer every %d ms", self._name, interval_ms)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000)
            self._fire()

    def _fire(self) -> None:
        try:
            result = self._callback()
        except Exception:
            logger.exception("Periodic callback %s failed", self._name)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._ticks.add(task)
            task.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task) -> None:
        self._ticks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Periodic tick %s raised", self._name, exc_info=exc)


class ScheduleController:
    """Interval state machine driven by fetch outcomes."""

    FAILURE_THRESHOLD = 3

    def __init__(
        self,
        base_fast: int,
        base_slow: int,
        step_up: int,
        step_down: int,
        *,
        failure_threshold: int = FAILURE_THRESHOLD,
        initial_interval: Optional[int] = None,
        timer: Optional[PeriodicTask] = None,
    ):
        if base_fast <= 0 or base_fast > base_slow:
            raise ValueError(f"Invalid interval bounds: fast={base_fast} slow={base_slow}")
        if step_up < 0 or step_down < 0:
            raise ValueError("Interval steps must not be negative")
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")

        start = base_fast if initial_interval is None else initial_interval
        self.state = ScheduleState(
            current_interval_ms=self._clamp(start, base_fast, base_slow),
            consecutive_failures=0,
            base_fast=base_fast,
            base_slow=base_slow,
            step_up=step_up,
            step_down=step_down,
        )
        self.failure_threshold = failure_threshold
        self._timer = timer

    @staticmethod
    def _clamp(value: int, low: int, high: int) -> int:
        return max(low, min(high, value))

    @property
    def current_interval_ms(self) -> int:
        return self.state.current_interval_ms

    @property
    def consecutive_failures(self) -> int:
        return self.state.consecutive_failures

    def attach(self, timer: PeriodicTask) -> None:
        self._timer = timer

    def record(self, ok: bool) -> None:
        if ok:
            self.record_success()
        else:
            self.record_failure()

    def record_success(self) -> None:
        s = self.state
        s.consecutive_failures = 0
        if s.current_interval_ms > s.base_fast:
            self._set_interval(max(s.base_fast, s.current_interval_ms - s.step_down))

    def record_failure(self) -> None:
        s = self.state
        s.consecutive_failures += 1
        if s.consecutive_failures >= self.failure_threshold:
            s.consecutive_failures = 0
            self._set_interval(min(s.base_slow, s.current_interval_ms + s.step_up))

    def _set_interval(self, interval_ms: int) -> None:
        s = self.state
        interval_ms = self._clamp(interval_ms, s.base_fast, s.base_slow)
        if interval_ms == s.current_interval_ms:
            return
        logger.info("Polling interval %d ms -> %d ms", s.current_interval_ms, interval_ms)
        s.current_interval_ms = interval_ms
        if self._timer is not None:
            self._timer.reschedule(interval_ms)


__all__ = ["PeriodicTask", "ScheduleController"]
