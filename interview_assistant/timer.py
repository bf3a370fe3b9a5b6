"""
Per-question countdown timer.

A cooperative asyncio task decrements the remaining seconds once per tick
while running. When the value reaches zero the timeout callback is awaited
exactly once, and the timer stays expired until ``bind`` attaches the next
question. Pause/resume keep the remaining value.

With ``tick_interval=None`` no background task is created and the owner
drives the countdown by awaiting ``tick()`` directly.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional


__all__ = ["CountdownTimer", "TimerState"]


logger = logging.getLogger(__name__)


class TimerState(str, Enum):
    """Countdown lifecycle."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    EXPIRED = "expired"
    STOPPED = "stopped"


class CountdownTimer:
    """
    Countdown bound to one question at a time.

    Example:
        >>> async def on_timeout() -> None:
        ...     print("time is up")
        >>> timer = CountdownTimer(on_timeout)
        >>> timer.bind(50)
        >>> timer.pause()
        >>> timer.resume()
    """

    def __init__(
        self,
        on_timeout: Callable[[], Awaitable[None]],
        tick_interval: Optional[float] = 1.0,
    ) -> None:
        self._on_timeout = on_timeout
        self._interval = tick_interval
        self._state = TimerState.IDLE
        self._time_limit = 0
        self._remaining = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining(self) -> int:
        """Seconds left on the bound question (never negative)."""
        return self._remaining

    @property
    def time_limit(self) -> int:
        return self._time_limit

    @property
    def is_paused(self) -> bool:
        return self._state == TimerState.PAUSED

    @property
    def is_running(self) -> bool:
        return self._state == TimerState.RUNNING

    @property
    def has_expired(self) -> bool:
        return self._state == TimerState.EXPIRED

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    def bind(self, time_limit: int) -> None:
        """Reset to a new question's time limit and start ticking."""
        if time_limit <= 0:
            raise ValueError(f"time_limit must be positive, got {time_limit}")
        self._time_limit = time_limit
        self._remaining = time_limit
        self._state = TimerState.RUNNING
        if self._interval is None:
            return
        if self._task is not None and not self._task.done() and not self._stop_event.is_set():
            return
        # Each ticking task owns its stop event, so a stopped loop never resumes
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run_loop(self._stop_event))

    def pause(self) -> None:
        if self._state == TimerState.RUNNING:
            self._state = TimerState.PAUSED
            logger.debug("Timer paused at %ds", self._remaining)

    def resume(self) -> None:
        if self._state == TimerState.PAUSED:
            self._state = TimerState.RUNNING
            logger.debug("Timer resumed at %ds", self._remaining)

    def stop(self) -> None:
        """
        Stop ticking.

        Safe to call from inside the timeout callback: the loop exits once the
        callback returns rather than being cancelled mid-call.
        """
        if self._state != TimerState.IDLE:
            self._state = TimerState.STOPPED
        self._stop_event.set()

    async def aclose(self) -> None:
        """Stop and wait for the ticking task to finish."""
        self.stop()
        task = self._task
        self._task = None
        if task is None or task is asyncio.current_task():
            return
        try:
            await asyncio.wait_for(task, timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("Timer task did not stop cleanly, cancelling")
            task.cancel()

    async def tick(self) -> bool:
        """
        Advance the countdown by one second.

        Returns:
            True if this tick reached zero and fired the timeout callback.
        """
        if self._state != TimerState.RUNNING:
            return False

        self._remaining = max(0, self._remaining - 1)
        if self._remaining > 0:
            return False

        self._state = TimerState.EXPIRED
        logger.info("Timer expired after %ds", self._time_limit)
        await self._on_timeout()
        return True

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        assert self._interval is not None
        while not stop_event.is_set():
            # Interruptible sleep
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                break
            except asyncio.TimeoutError:
                pass

            if self._state == TimerState.EXPIRED:
                break
            try:
                await self.tick()
            except Exception as e:
                logger.error("Timeout callback failed: %s", e, exc_info=True)

            if stop_event.is_set() or self._state in (TimerState.EXPIRED, TimerState.STOPPED):
                break
