"""
Time sources, elapsed-time tracking and rest countdowns.

Remaining rest is always recomputed from a captured end reference and the
current clock reading, never decremented per tick, so late or dropped ticks
cannot accumulate drift.  Pausing stops both the elapsed timer and the
countdown; resuming captures fresh references.
"""

import math
import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell monotonic time and wall-clock time."""

    def now(self) -> float:
        """Monotonic seconds."""
        ...

    def wall_time(self) -> datetime:
        """Timezone-aware current datetime (for set timestamps)."""
        ...


class SystemClock:
    """The real clock."""

    def now(self) -> float:
        return time.monotonic()

    def wall_time(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    A clock that only moves when told to.

    Used for deterministic replays and tests; wall time advances in step
    with the monotonic reading.
    """

    def __init__(self, start: float = 0.0, wall_start: datetime | None = None):
        self._now = float(start)
        self._wall_start = wall_start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        self._origin = float(start)

    def now(self) -> float:
        return self._now

    def wall_time(self) -> datetime:
        return self._wall_start + timedelta(seconds=self._now - self._origin)

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds


class ElapsedTimer:
    """
    Session elapsed time, frozen while paused.

    Time is accumulated per running stretch: ``start()``/``resume()`` capture
    a reference, ``pause()``/``stop()`` fold the stretch into the total.
    """

    def __init__(self, clock: Clock):
        self._clock = clock
        self._accumulated = 0.0
        self._running_since: float | None = None

    @property
    def running(self) -> bool:
        return self._running_since is not None

    def start(self) -> None:
        self._accumulated = 0.0
        self._running_since = self._clock.now()

    def pause(self) -> None:
        if self._running_since is not None:
            self._accumulated += self._clock.now() - self._running_since
            self._running_since = None

    def resume(self) -> None:
        if self._running_since is None:
            self._running_since = self._clock.now()

    stop = pause

    def elapsed(self) -> float:
        if self._running_since is None:
            return self._accumulated
        return self._accumulated + (self._clock.now() - self._running_since)

    def elapsed_seconds(self) -> int:
        return int(math.floor(self.elapsed()))


class Countdown:
    """
    Countdown for the current rest phase.

    ``remaining()`` rounds up so a rest shows its full length until the
    first whole second has gone by.
    """

    def __init__(self, clock: Clock, seconds: float):
        self._clock = clock
        self._end: float | None = clock.now() + seconds
        self._left: float | None = None

    @property
    def paused(self) -> bool:
        return self._end is None

    def remaining(self) -> int:
        left = self._left if self._end is None else self._end - self._clock.now()
        return max(0, math.ceil(left or 0.0))

    def pause(self) -> None:
        if self._end is not None:
            self._left = max(0.0, self._end - self._clock.now())
            self._end = None

    def resume(self) -> None:
        if self._end is None:
            self._end = self._clock.now() + (self._left or 0.0)
            self._left = None


class TickSubscription:
    """
    The single tick feed of a live session.

    Drivers call ``deliver()`` on every tick; it only reaches the session
    while subscribed, so pausing halts delivery rather than hiding ticks.
    """

    def __init__(self) -> None:
        self._active = False
        self.delivered = 0

    @property
    def active(self) -> bool:
        return self._active

    def subscribe(self) -> None:
        self._active = True

    def unsubscribe(self) -> None:
        self._active = False

    def deliver(self) -> bool:
        if not self._active:
            return False
        self.delivered += 1
        return True
