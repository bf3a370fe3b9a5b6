"""
Tests for CountdownTimer.

Most tests drive ticks by hand (``tick_interval=None``); one group runs the
background task with a very short interval.

Last Grunted: 10/17/2026
"""

import asyncio

import pytest

from interview_assistant.timer import CountdownTimer, TimerState


class TimeoutRecorder:
    """Counts timeout callback invocations."""

    def __init__(self) -> None:
        self.fired = 0

    async def __call__(self) -> None:
        self.fired += 1


# =============================================================================
# Manual Tick Tests
# =============================================================================


class TestManualTicks:
    """Tests with the owner driving tick()."""

    @pytest.mark.asyncio
    async def test_fires_exactly_once_at_zero(self):
        """Fifty ticks on a 50s question fire the callback once."""
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(50)

        results = [await timer.tick() for _ in range(50)]

        assert recorder.fired == 1
        assert results.count(True) == 1
        assert results[-1] is True
        assert timer.remaining == 0
        assert timer.has_expired

    @pytest.mark.asyncio
    async def test_extra_ticks_do_nothing(self):
        """Ticks after expiry neither fire again nor go negative."""
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(3)

        for _ in range(10):
            await timer.tick()

        assert recorder.fired == 1
        assert timer.remaining == 0

    @pytest.mark.asyncio
    async def test_pause_stops_countdown(self):
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(90)
        await timer.tick()

        timer.pause()
        for _ in range(200):
            await timer.tick()

        assert timer.remaining == 89
        assert timer.is_paused
        assert recorder.fired == 0

    @pytest.mark.asyncio
    async def test_resume_continues_from_remaining(self):
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(5)
        await timer.tick()
        timer.pause()

        timer.resume()
        for _ in range(4):
            await timer.tick()

        assert recorder.fired == 1
        assert timer.state == TimerState.EXPIRED

    @pytest.mark.asyncio
    async def test_bind_resets_after_expiry(self):
        """Binding the next question restarts the countdown."""
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(2)
        await timer.tick()
        await timer.tick()

        timer.bind(150)

        assert timer.remaining == 150
        assert timer.time_limit == 150
        assert timer.is_running

    @pytest.mark.asyncio
    async def test_stopped_timer_does_not_tick(self):
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=None)
        timer.bind(2)

        timer.stop()
        await timer.tick()
        await timer.tick()

        assert timer.state == TimerState.STOPPED
        assert timer.remaining == 2
        assert recorder.fired == 0

    def test_bind_rejects_non_positive_limit(self):
        timer = CountdownTimer(TimeoutRecorder(), tick_interval=None)

        with pytest.raises(ValueError):
            timer.bind(0)

    def test_pause_when_idle_is_noop(self):
        timer = CountdownTimer(TimeoutRecorder(), tick_interval=None)

        timer.pause()

        assert timer.state == TimerState.IDLE


# =============================================================================
# Background Task Tests
# =============================================================================


class TestBackgroundTicking:
    """Tests with the timer's own asyncio task."""

    @pytest.mark.asyncio
    async def test_background_task_expires(self):
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=0.001)
        timer.bind(3)

        for _ in range(500):
            if recorder.fired:
                break
            await asyncio.sleep(0.005)

        assert recorder.fired == 1
        assert timer.remaining == 0
        await timer.aclose()

    @pytest.mark.asyncio
    async def test_rebind_from_callback_keeps_ticking(self):
        """A callback that binds the next question starts a fresh countdown."""
        fired: list[int] = []
        timer: CountdownTimer

        async def on_timeout() -> None:
            fired.append(timer.time_limit)
            if len(fired) == 1:
                timer.bind(2)

        timer = CountdownTimer(on_timeout, tick_interval=0.001)
        timer.bind(2)

        for _ in range(500):
            if len(fired) == 2:
                break
            await asyncio.sleep(0.005)

        assert fired == [2, 2]
        await timer.aclose()

    @pytest.mark.asyncio
    async def test_aclose_stops_task(self):
        recorder = TimeoutRecorder()
        timer = CountdownTimer(recorder, tick_interval=0.01)
        timer.bind(1000)

        await timer.aclose()
        remaining = timer.remaining
        await asyncio.sleep(0.05)

        assert timer.remaining == remaining
        assert timer.state == TimerState.STOPPED
        assert recorder.fired == 0
