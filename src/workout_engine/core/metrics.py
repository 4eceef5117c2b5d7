"""
Pure metric computation functions.

Reductions over a session's per-exercise accumulator (volume, distance,
time, counts, the headline label) plus the duration heuristics used to
show how long a template takes.  Nothing here touches the clock or storage.
"""

from typing import Sequence

from .config import DEFAULT_DISTANCE_UNIT, SET_EXECUTION_SECONDS
from .models import (
    CompletedExercise,
    CompletedSet,
    ExerciseDefinition,
    HistoricalSession,
    WorkoutTemplate,
    WorkoutVolume,
)


def _all_sets(exercise: CompletedExercise) -> list[CompletedSet]:
    sets = list(exercise.main_sets)
    if exercise.failure_set is not None:
        sets.append(exercise.failure_set)
    return sets


def _set_volume(s: CompletedSet) -> float:
    return (s.reps or 0) * (s.weight or 0.0)


def calculate_total_volume(exercises: Sequence[CompletedExercise]) -> float:
    """
    Weight volume: sum of reps x weight over strength main sets and failure sets.

    Missing reps or weight count as zero, so the result is additive over
    concatenated exercise lists.

    Args:
        exercises: Completed exercises of one or more sessions

    Returns:
        Total kg moved
    """
    return sum(
        _set_volume(s)
        for exercise in exercises
        if exercise.type == "strength"
        for s in _all_sets(exercise)
    )


def calculate_total_sets(exercises: Sequence[CompletedExercise]) -> int:
    """Main sets plus failure sets."""
    return sum(len(_all_sets(exercise)) for exercise in exercises)


def calculate_total_reps(exercises: Sequence[CompletedExercise]) -> int:
    return sum((s.reps or 0) for exercise in exercises for s in _all_sets(exercise))


def calculate_workout_volume(exercises: Sequence[CompletedExercise]) -> WorkoutVolume:
    """
    Summary statistics for a session's exercises, across all exercise types.

    The distance unit is taken from the first cardio exercise that specifies
    one; distances are summed as recorded, without unit conversion.

    Args:
        exercises: Completed exercises of a session

    Returns:
        WorkoutVolume
    """
    volume = WorkoutVolume(
        weight_volume=calculate_total_volume(exercises),
        total_sets=calculate_total_sets(exercises),
        total_reps=calculate_total_reps(exercises),
    )

    unit = None
    for exercise in exercises:
        volume.exercise_count[exercise.type] = volume.exercise_count.get(exercise.type, 0) + 1

        if exercise.type == "cardio":
            if unit is None and exercise.distance_unit:
                unit = exercise.distance_unit
            for s in _all_sets(exercise):
                volume.total_distance += s.distance or 0.0
                volume.total_time += s.time or 0
        elif exercise.type == "timed":
            for s in _all_sets(exercise):
                volume.total_time += s.time or 0

    volume.distance_unit = unit or DEFAULT_DISTANCE_UNIT
    return volume


def _format_mm_ss(seconds: int) -> str:
    mins, secs = divmod(int(seconds), 60)
    return f"{mins:02d}:{secs:02d}"


def get_volume_label(exercises: Sequence[CompletedExercise]) -> str:
    """
    Headline for a session card.

    The exercise type whose count is strictly greater than both others picks
    the label; any tie falls back to strength.

    Examples:
        "12.4k kg"      (strength)
        "5.2 km"        (cardio)
        "04:30 total"   (timed)
    """
    volume = calculate_workout_volume(exercises)
    counts = volume.exercise_count
    strength, cardio, timed = counts["strength"], counts["cardio"], counts["timed"]

    if cardio > strength and cardio > timed:
        return f"{volume.total_distance:.1f} {volume.distance_unit}"
    if timed > strength and timed > cardio:
        return f"{_format_mm_ss(volume.total_time)} total"
    return f"{volume.weight_volume / 1000:.1f}k kg"


# =============================================================================
# Duration
# =============================================================================


def estimate_exercise_duration(exercise: ExerciseDefinition) -> int:
    """
    Heuristic seconds for one exercise.

    strength: sets x 30 + (sets - 1) x rest, plus 30 + rest for a failure set
    cardio:   target_time
    timed:    sets x target_time + (sets - 1) x rest
    """
    gaps = max(exercise.sets - 1, 0) * exercise.rest_time

    if exercise.type == "cardio":
        return exercise.target_time or 0
    if exercise.type == "timed":
        return exercise.sets * (exercise.target_time or 0) + gaps

    seconds = exercise.sets * SET_EXECUTION_SECONDS + gaps
    if exercise.to_failure:
        seconds += SET_EXECUTION_SECONDS + exercise.rest_time
    return seconds


def calculate_estimated_duration(exercises: Sequence[ExerciseDefinition]) -> int:
    """Heuristic total seconds for a list of template exercises."""
    return sum(estimate_exercise_duration(e) for e in exercises)


def is_session_fully_completed(session: HistoricalSession, template: WorkoutTemplate) -> bool:
    """
    Whether a stored session ran the template to the end.

    Requires completed_at and a non-zero duration, the same exercise count,
    every exercise at its target main-set count, and a failure set wherever
    the template asks for one.
    """
    if not session.completed_at or not session.duration:
        return False

    completed = session.data.exercises
    if len(completed) != len(template.exercises):
        return False

    for planned, done in zip(template.exercises, completed):
        if len(done.main_sets) < planned.sets:
            return False
        if planned.to_failure and done.failure_set is None:
            return False
    return True


def _same_template(session: HistoricalSession, template: WorkoutTemplate) -> bool:
    if template.id is not None:
        return session.template_id == template.id
    return session.template_name == template.name


def calculate_average_duration(
    sessions: Sequence[HistoricalSession],
    template: WorkoutTemplate,
) -> int | None:
    """
    Rounded mean duration of fully completed sessions of a template.

    Sessions are matched by template id, or by name when the template has
    no id.  Returns None when nothing qualifies.
    """
    durations = [
        session.duration or 0
        for session in sessions
        if _same_template(session, template) and is_session_fully_completed(session, template)
    ]
    if not durations:
        return None
    return int(round(sum(durations) / len(durations)))


def estimate_template_duration(
    template: WorkoutTemplate,
    sessions: Sequence[HistoricalSession] = (),
) -> tuple[int, bool]:
    """
    Duration to show for a template.

    Returns:
        (seconds, is_historical): the historical average when one exists,
        otherwise the heuristic estimate
    """
    average = calculate_average_duration(sessions, template)
    if average is not None:
        return average, True
    return calculate_estimated_duration(template.exercises), False


# =============================================================================
# Formatting
# =============================================================================


def format_time(seconds: int) -> str:
    """m:ss, or h:mm:ss from one hour up."""
    seconds = max(int(seconds), 0)
    hrs, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hrs > 0:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


def format_rest_time(seconds: int) -> str:
    mins, secs = divmod(max(int(seconds), 0), 60)
    return f"{mins}:{secs:02d}"


# =============================================================================
# Progress
# =============================================================================


def get_exercise_progress(
    exercise_idx: int,
    set_idx: int,
    exercises: Sequence[ExerciseDefinition],
) -> dict[str, int]:
    """1-based position of the current set within the workout."""
    total_sets = exercises[exercise_idx].sets if 0 <= exercise_idx < len(exercises) else 0
    return {
        "current_exercise": exercise_idx + 1,
        "total_exercises": len(exercises),
        "current_set": set_idx + 1,
        "total_sets": total_sets,
    }


def is_last_set(exercise_idx: int, set_idx: int, exercises: Sequence[ExerciseDefinition]) -> bool:
    if not 0 <= exercise_idx < len(exercises):
        return True
    return set_idx >= exercises[exercise_idx].sets - 1


def is_last_exercise(exercise_idx: int, exercises: Sequence[ExerciseDefinition]) -> bool:
    return exercise_idx >= len(exercises) - 1
