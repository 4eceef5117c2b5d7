"""
Progressive overload advisor.

Reads past sessions (never writes) and recommends a weight change per
exercise before a workout starts.  Two protocols are supported:

- Templates that always append a failure set: once the failure set has
  reached the target reps in the last two sessions, add one increment.
- Templates without one (test-set protocol): after two sessions with every
  main set on target, prompt an ad-hoc max-effort test set; the result of
  that test decides whether the weight goes up or the test is repeated.

A history lookup that fails degrades to a neutral suggestion; it never
raises into the caller.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Protocol, Sequence

from tenacity import Retrying, before_sleep_log, stop_after_attempt, wait_exponential

from .config import (
    ADVISOR_MAX_WORKERS,
    DEFAULT_STRENGTH_REPS,
    FAILURE_HISTORY_REQUIRED,
    HISTORY_VIEW_LOOKBACK,
    ISOLATION_INCREMENT_KG,
    TARGET_HIT_HISTORY_REQUIRED,
)
from .engine.config_loader import AdvisorSettings, get_advisor_settings
from .models import (
    ExerciseHistory,
    HistoricalSession,
    PersonalRecord,
    ProgressiveSuggestion,
    SessionSummary,
    WorkoutTemplate,
)

logger = logging.getLogger(__name__)


class HistorySource(Protocol):
    """Where past sessions come from (a store, a remote API, ...)."""

    def fetch_recent_sessions(
        self, user_id: str, exercise_name: str, limit: int
    ) -> list[HistoricalSession]:
        """Return up to ``limit`` completed sessions containing the exercise, newest first."""
        ...


# =============================================================================
# Increments
# =============================================================================


def get_weight_increment(exercise_name: str, settings: AdvisorSettings | None = None) -> float:
    """
    Weight step for an exercise.

    Compound movements (name contains squat, deadlift, bench press, ...,
    case-insensitive) move in 2.5 kg steps, everything else in 1.25 kg.

    Args:
        exercise_name: Exercise name as written in the template
        settings: Advisor settings; defaults to the built-in constants

    Returns:
        Increment in kg
    """
    return (settings or AdvisorSettings()).increment_for(exercise_name)


def round_to_increment(weight: float, increment: float = ISOLATION_INCREMENT_KG) -> float:
    """
    Round a weight to the nearest multiple of ``increment`` (halves round up).

    Args:
        weight: Raw weight
        increment: Plate step

    Returns:
        Rounded weight
    """
    if increment <= 0:
        return weight
    return round(math.floor(weight / increment + 0.5) * increment, 6)


# =============================================================================
# History digests
# =============================================================================


def summarize_session(session: HistoricalSession, exercise_name: str) -> SessionSummary | None:
    """
    Reduce one historical session to a digest for one exercise.

    Returns None when the session does not contain the exercise or has no
    main sets recorded for it.
    """
    exercise = session.find_exercise(exercise_name)
    if exercise is None or not exercise.main_sets:
        return None

    reps = [s.reps or 0 for s in exercise.main_sets]
    target = exercise.target_reps or 0

    weight = exercise.weight
    if weight is None:
        weight = max((s.weight or 0.0) for s in exercise.main_sets)

    failure = exercise.failure_set
    return SessionSummary(
        date=session.started_at,
        weight=float(weight),
        sets=len(reps),
        avg_reps=round(sum(reps) / len(reps), 1),
        all_target_hit=all(r >= target for r in reps),
        has_failure_set=failure is not None,
        failure_reps=(failure.reps or 0) if failure is not None else None,
    )


def summarize_sessions(
    sessions: Sequence[HistoricalSession],
    exercise_name: str,
    limit: int | None = None,
) -> list[SessionSummary]:
    """Digests for every session containing the exercise, newest first."""
    ordered = sorted(sessions, key=lambda s: s.started_at, reverse=True)
    summaries = [
        summary for summary in (summarize_session(s, exercise_name) for s in ordered)
        if summary is not None
    ]
    return summaries[:limit] if limit is not None else summaries


def _fetch_history(
    history: HistorySource,
    user_id: str,
    exercise_name: str,
    limit: int,
    attempts: int,
) -> list[HistoricalSession]:
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.05, max=0.5),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )
    return retrying(history.fetch_recent_sessions, user_id, exercise_name, limit)


# =============================================================================
# Decision policy
# =============================================================================


def _neutral(current_weight: float, reason: str, summaries: list[SessionSummary] | None = None) -> ProgressiveSuggestion:
    return ProgressiveSuggestion(
        suggested_weight=current_weight,
        reason=reason,
        previous_sessions=summaries or [],
    )


def _failure_set_protocol(
    summaries: list[SessionSummary],
    current_weight: float,
    target_reps: int,
    increment: float,
) -> ProgressiveSuggestion:
    """Template always ends with a failure set: judge the last two of them."""
    if len(summaries) < FAILURE_HISTORY_REQUIRED:
        return _neutral(current_weight, "Not enough history (need 2+ sessions)", summaries)

    recent = summaries[:FAILURE_HISTORY_REQUIRED]
    if all(s.has_failure_set and (s.failure_reps or 0) >= target_reps for s in recent):
        return ProgressiveSuggestion(
            suggested_weight=round_to_increment(current_weight + increment, increment),
            reason=f"Failure set reached {target_reps}+ reps in the last 2 sessions",
            previous_sessions=summaries,
            should_increase=True,
        )

    return _neutral(
        current_weight,
        f"Keep pushing: failure set below {target_reps} reps recently",
        summaries,
    )


def _test_set_protocol(
    summaries: list[SessionSummary],
    current_weight: float,
    target_reps: int,
    increment: float,
) -> ProgressiveSuggestion:
    """No default failure set: use an ad-hoc test set as the signal."""
    if not summaries:
        return _neutral(current_weight, "Not enough history (need 1+ session)", summaries)

    latest = summaries[0]
    if latest.has_failure_set:
        test_reps = latest.failure_reps or 0
        if test_reps > target_reps:
            return ProgressiveSuggestion(
                suggested_weight=round_to_increment(current_weight + increment, increment),
                reason=f"Test set hit {test_reps} reps (> {target_reps}); increase weight",
                previous_sessions=summaries,
                should_increase=True,
            )
        return ProgressiveSuggestion(
            suggested_weight=current_weight,
            reason=f"Test set hit {test_reps} reps; retest at the same weight",
            previous_sessions=summaries,
            should_add_test_set=True,
        )

    recent = summaries[:TARGET_HIT_HISTORY_REQUIRED]
    if len(recent) == TARGET_HIT_HISTORY_REQUIRED and all(s.all_target_hit for s in recent):
        return ProgressiveSuggestion(
            suggested_weight=current_weight,
            reason=f"Hit {target_reps}+ reps on all sets in last 2 sessions; add a max-effort test set",
            previous_sessions=summaries,
            should_add_test_set=True,
        )

    return _neutral(current_weight, "Keep current weight and focus on hitting target reps", summaries)


def calculate_progressive_overload(
    history: HistorySource,
    user_id: str,
    exercise_name: str,
    current_weight: float,
    target_reps: int,
    is_template_failure: bool = False,
    settings: AdvisorSettings | None = None,
) -> ProgressiveSuggestion:
    """
    Recommend the working weight for one exercise.

    Args:
        history: Source of past sessions
        user_id: Whose history to read
        exercise_name: Exercise to look up (case-insensitive)
        current_weight: Weight the template prescribes
        target_reps: Reps per set the template prescribes
        is_template_failure: Whether the template always appends a failure set
        settings: Advisor settings (increments, limits); loaded from config if None

    Returns:
        ProgressiveSuggestion; neutral when history is missing or unreadable
    """
    settings = settings or get_advisor_settings()

    try:
        sessions = _fetch_history(
            history,
            user_id,
            exercise_name,
            settings.history_fetch_limit,
            settings.history_fetch_attempts,
        )
    except Exception as exc:
        logger.warning("History fetch failed for %r: %s", exercise_name, exc)
        return _neutral(current_weight, "Unable to fetch history")

    summaries = summarize_sessions(sessions, exercise_name, settings.summary_limit)
    increment = settings.increment_for(exercise_name)

    if is_template_failure:
        return _failure_set_protocol(summaries, current_weight, target_reps, increment)
    return _test_set_protocol(summaries, current_weight, target_reps, increment)


def calculate_template_overloads(
    history: HistorySource,
    user_id: str,
    template: WorkoutTemplate,
    settings: AdvisorSettings | None = None,
    max_workers: int = ADVISOR_MAX_WORKERS,
) -> dict[str, ProgressiveSuggestion]:
    """
    Run the advisor for every exercise of a template concurrently.

    Lookups are independent and idempotent; results are keyed by exercise
    name, so completion order does not matter.  Only strength exercises
    are looked up; the rest get a neutral suggestion.
    """
    settings = settings or get_advisor_settings()
    suggestions: dict[str, ProgressiveSuggestion] = {}

    strength = []
    for exercise in template.exercises:
        if exercise.type == "strength":
            strength.append(exercise)
        else:
            suggestions[exercise.name] = _neutral(
                float(exercise.weight or 0), "Progression tracking applies to strength exercises"
            )

    if not strength:
        return suggestions

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(strength)))) as executor:
        futures = {
            executor.submit(
                calculate_progressive_overload,
                history,
                user_id,
                exercise.name,
                float(exercise.weight or 0),
                exercise.reps_per_set or DEFAULT_STRENGTH_REPS,
                exercise.to_failure,
                settings,
            ): exercise.name
            for exercise in strength
        }
        for future in as_completed(futures):
            suggestions[futures[future]] = future.result()

    return suggestions


def apply_suggestions(
    template: WorkoutTemplate,
    suggestions: dict[str, ProgressiveSuggestion],
) -> WorkoutTemplate:
    """
    Return a copy of the template with suggested weights applied.

    The source template is left untouched.
    """
    exercises = []
    for exercise in template.exercises:
        suggestion = suggestions.get(exercise.name)
        if suggestion is not None and suggestion.suggested_weight != (exercise.weight or 0):
            exercise = replace(exercise, weight=suggestion.suggested_weight)
        exercises.append(exercise)
    return template.with_exercises(exercises)


def get_exercise_history(
    history: HistorySource,
    user_id: str,
    exercise_name: str,
    limit: int = 10,
) -> ExerciseHistory:
    """
    Recent digests plus the personal record for one exercise.

    The record is the heaviest main set; equal weights are ranked by reps.
    """
    try:
        sessions = history.fetch_recent_sessions(user_id, exercise_name, HISTORY_VIEW_LOOKBACK)
    except Exception as exc:
        logger.warning("History fetch failed for %r: %s", exercise_name, exc)
        return ExerciseHistory(exercise_name=exercise_name)

    record: PersonalRecord | None = None
    for session in sessions:
        exercise = session.find_exercise(exercise_name)
        if exercise is None:
            continue
        for s in exercise.main_sets:
            weight, reps = s.weight or 0.0, s.reps or 0
            if (
                record is None
                or weight > record.weight
                or (weight == record.weight and reps > record.reps)
            ):
                record = PersonalRecord(weight=weight, reps=reps, date=session.started_at)

    return ExerciseHistory(
        exercise_name=exercise_name,
        sessions=summarize_sessions(sessions, exercise_name, limit),
        personal_record=record,
    )
