"""
Side effects fired on phase transitions.

Haptics and the platform no-sleep lock are best effort: every method is a
no-op by default and the session calls them through ``fire()``, which logs
and ignores failures so an unsupported platform never interrupts a workout.
"""

import logging
from typing import Sequence

from ..config import (
    REST_COMPLETE_PATTERN,
    SET_COMPLETE_PATTERN,
    WORKOUT_COMPLETE_PATTERN,
)

logger = logging.getLogger(__name__)


class Effects:
    """No-op effects; subclass and override what the platform supports."""

    def vibrate(self, pattern: Sequence[int]) -> None:
        pass

    def acquire_wake_lock(self) -> None:
        pass

    def release_wake_lock(self) -> None:
        pass

    def set_complete(self) -> None:
        self.vibrate(SET_COMPLETE_PATTERN)

    def rest_complete(self) -> None:
        self.vibrate(REST_COMPLETE_PATTERN)

    def workout_complete(self) -> None:
        self.vibrate(WORKOUT_COMPLETE_PATTERN)


class RecordingEffects(Effects):
    """Effects that remember what was requested, in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[int, ...]]] = []
        self.wake_lock_held = False

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.calls.append(("vibrate", tuple(pattern)))

    def acquire_wake_lock(self) -> None:
        self.wake_lock_held = True
        self.calls.append(("acquire_wake_lock", ()))

    def release_wake_lock(self) -> None:
        self.wake_lock_held = False
        self.calls.append(("release_wake_lock", ()))

    @property
    def patterns(self) -> list[tuple[int, ...]]:
        return [p for name, p in self.calls if name == "vibrate"]


def fire(effects: Effects, name: str) -> None:
    """Invoke ``effects.<name>()``, ignoring any platform failure."""
    try:
        getattr(effects, name)()
    except Exception as exc:
        logger.warning("Effect %s failed: %s", name, exc)
