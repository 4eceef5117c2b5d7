"""Tests for clocks, the elapsed timer, rest countdowns and tick delivery."""

from datetime import datetime, timezone

import pytest

from workout_engine.core.engine.clock import (
    Countdown,
    ElapsedTimer,
    ManualClock,
    SystemClock,
    TickSubscription,
)


class TestManualClock:
    def test_advances_monotonic_and_wall_time_together(self):
        start = datetime(2026, 3, 1, 7, 0, tzinfo=timezone.utc)
        clock = ManualClock(start=100.0, wall_start=start)
        clock.advance(90)

        assert clock.now() == 190.0
        assert clock.wall_time() == datetime(2026, 3, 1, 7, 1, 30, tzinfo=timezone.utc)

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            ManualClock().advance(-1)

    def test_system_clock_is_timezone_aware(self):
        assert SystemClock().wall_time().tzinfo is not None


class TestElapsedTimer:
    def test_accumulates_running_stretches(self):
        clock = ManualClock()
        timer = ElapsedTimer(clock)
        timer.start()
        clock.advance(12.7)
        timer.pause()
        clock.advance(60)
        assert timer.elapsed_seconds() == 12

        timer.resume()
        clock.advance(8)
        assert timer.elapsed() == pytest.approx(20.7)

    def test_stop_freezes(self):
        clock = ManualClock()
        timer = ElapsedTimer(clock)
        timer.start()
        clock.advance(5)
        timer.stop()
        clock.advance(100)
        assert timer.elapsed_seconds() == 5
        assert not timer.running


class TestCountdown:
    def test_rounds_up_to_whole_seconds(self):
        clock = ManualClock()
        countdown = Countdown(clock, 60)
        assert countdown.remaining() == 60
        clock.advance(0.25)
        assert countdown.remaining() == 60
        clock.advance(0.75)
        assert countdown.remaining() == 59

    def test_never_negative(self):
        clock = ManualClock()
        countdown = Countdown(clock, 10)
        clock.advance(25)
        assert countdown.remaining() == 0

    def test_late_ticks_do_not_drift(self):
        clock = ManualClock()
        countdown = Countdown(clock, 90)
        # One reading after a long stall equals the reading from many small ones
        clock.advance(44.0)
        assert countdown.remaining() == 46

    def test_pause_freezes_and_resume_continues(self):
        clock = ManualClock()
        countdown = Countdown(clock, 60)
        clock.advance(15.5)
        countdown.pause()
        assert countdown.paused

        clock.advance(500)
        assert countdown.remaining() == 45

        countdown.resume()
        clock.advance(44.5)
        assert countdown.remaining() == 0

    def test_pause_resume_without_time_is_identical(self):
        clock = ManualClock()
        countdown = Countdown(clock, 30)
        clock.advance(3.25)
        before = countdown.remaining()
        countdown.pause()
        countdown.resume()
        assert countdown.remaining() == before
        clock.advance(26.75)
        assert countdown.remaining() == 0


class TestTickSubscription:
    def test_delivers_only_while_subscribed(self):
        ticks = TickSubscription()
        assert not ticks.deliver()

        ticks.subscribe()
        assert ticks.deliver()
        assert ticks.deliver()

        ticks.unsubscribe()
        assert not ticks.deliver()
        assert ticks.delivered == 2
