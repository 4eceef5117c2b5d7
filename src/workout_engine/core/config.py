"""
Configuration constants for the live workout engine.

All adjustable parameters are centralized here for easy tuning.  The
advisor constants can be overridden per user through the YAML file read
by core/engine/config_loader.py.
"""

from typing import Final

# =============================================================================
# PROGRESSIVE OVERLOAD ADVISOR
# =============================================================================

COMPOUND_INCREMENT_KG: Final[float] = 2.5  # Step for big multi-joint lifts
ISOLATION_INCREMENT_KG: Final[float] = 1.25  # Step for everything else

# Case-insensitive substrings that mark an exercise name as a compound movement
COMPOUND_MOVEMENTS: Final[tuple[str, ...]] = (
    "squat",
    "deadlift",
    "bench press",
    "overhead press",
    "row",
    "pull up",
    "chin up",
    "dip",
    "hip thrust",
    "leg press",
)

HISTORY_FETCH_LIMIT: Final[int] = 10  # Completed sessions pulled per exercise
SUMMARY_LIMIT: Final[int] = 5  # Digests kept on a suggestion
FAILURE_HISTORY_REQUIRED: Final[int] = 2  # Branch A: sessions with failure sets
TARGET_HIT_HISTORY_REQUIRED: Final[int] = 2  # Branch B: all-target sessions before a test
HISTORY_FETCH_ATTEMPTS: Final[int] = 2  # Tries per history lookup before giving up
HISTORY_VIEW_LOOKBACK: Final[int] = 50  # Sessions scanned for exercise history / records
ADVISOR_MAX_WORKERS: Final[int] = 4  # Concurrent history lookups per template

# =============================================================================
# DURATION HEURISTICS
# =============================================================================

SET_EXECUTION_SECONDS: Final[int] = 30  # Assumed time under load per strength set

# =============================================================================
# SESSION DEFAULTS
# =============================================================================

DEFAULT_STRENGTH_REPS: Final[int] = 8  # Working reps when a template omits reps_per_set
DEFAULT_FAILURE_REPS: Final[int] = 10  # Pre-filled answer for the failure-set prompt
DEFAULT_DISTANCE_UNIT: Final[str] = "km"

# =============================================================================
# CLOCK
# =============================================================================

TICK_INTERVAL_SECONDS: Final[float] = 0.25  # Countdown refresh period

# =============================================================================
# HAPTIC PATTERNS (milliseconds, vibrate/pause alternating)
# =============================================================================

SET_COMPLETE_PATTERN: Final[tuple[int, ...]] = (50, 50, 50)
REST_COMPLETE_PATTERN: Final[tuple[int, ...]] = (100, 50, 100, 50, 100)
WORKOUT_COMPLETE_PATTERN: Final[tuple[int, ...]] = (200, 100, 200, 100, 400)
