"""
JSON serialization for workout data models.

Handles conversion between dataclasses and JSON-compatible dicts.  Field
names follow the stored columns (reps_per_set, rest_time, main_sets, ...),
so history written by other clients of the same store loads unchanged.
"""

import json
import uuid
from datetime import datetime
from typing import Any

from ..core.models import (
    DISTANCE_UNITS,
    EXERCISE_TYPES,
    CompletedExercise,
    CompletedSet,
    ExerciseDefinition,
    HistoricalSession,
    SessionData,
    SessionOutput,
    WorkoutTemplate,
)


class ValidationError(Exception):
    """Raised when data validation fails."""

    pass


def validate_timestamp(value: str) -> str:
    """
    Validate an ISO-8601 timestamp.

    Args:
        value: Timestamp string

    Returns:
        The timestamp unchanged

    Raises:
        ValidationError: If it does not parse
    """
    if not isinstance(value, str):
        raise ValidationError(f"Invalid timestamp: {value!r}")
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {value}") from e
    return value


def validate_exercise_type(value: str) -> str:
    if value not in EXERCISE_TYPES:
        raise ValidationError(f"Invalid exercise type: {value}. Must be one of {EXERCISE_TYPES}")
    return value


def validate_distance_unit(value: str | None) -> str | None:
    if value is not None and value not in DISTANCE_UNITS:
        raise ValidationError(f"Invalid distance_unit: {value}. Must be one of {DISTANCE_UNITS}")
    return value


def _opt_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    return int(value) if value is not None else None


def _opt_float(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    return float(value) if value is not None else None


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# Templates
# =============================================================================


def exercise_definition_to_dict(exercise: ExerciseDefinition) -> dict[str, Any]:
    """Convert ExerciseDefinition to a dict, omitting unset optional fields."""
    return _drop_none({
        "name": exercise.name,
        "type": exercise.type,
        "sets": exercise.sets,
        "reps_per_set": exercise.reps_per_set,
        "weight": exercise.weight,
        "distance": exercise.distance,
        "distance_unit": exercise.distance_unit,
        "target_time": exercise.target_time,
        "rest_time": exercise.rest_time,
        "to_failure": exercise.to_failure,
        "notes": exercise.notes,
    })


def dict_to_exercise_definition(data: dict[str, Any]) -> ExerciseDefinition:
    """
    Convert a dict to ExerciseDefinition.

    Raises:
        ValidationError: If a field is missing or invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Exercise must be a mapping, got {type(data).__name__}")
    try:
        return ExerciseDefinition(
            name=str(data["name"]),
            type=validate_exercise_type(data.get("type", "strength")),  # type: ignore[arg-type]
            sets=int(data.get("sets", 1)),
            reps_per_set=_opt_int(data, "reps_per_set"),
            weight=_opt_float(data, "weight"),
            distance=_opt_float(data, "distance"),
            distance_unit=validate_distance_unit(data.get("distance_unit")),  # type: ignore[arg-type]
            target_time=_opt_int(data, "target_time"),
            rest_time=int(data.get("rest_time") or 0),
            to_failure=bool(data.get("to_failure", False)),
            notes=data.get("notes"),
        )
    except KeyError as e:
        raise ValidationError(f"Missing exercise field: {e}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid exercise {data.get('name')!r}: {e}") from e


def template_to_dict(template: WorkoutTemplate) -> dict[str, Any]:
    return _drop_none({
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "linked_habit_id": template.linked_habit_id,
        "exercises": [exercise_definition_to_dict(e) for e in template.exercises],
    })


def dict_to_template(data: dict[str, Any]) -> WorkoutTemplate:
    """
    Convert a dict to WorkoutTemplate.

    Raises:
        ValidationError: If the template or any exercise is malformed
    """
    if not isinstance(data, dict):
        raise ValidationError("Template must be a mapping")
    if not data.get("name"):
        raise ValidationError("Template is missing a name")
    exercises = data.get("exercises") or []
    if not isinstance(exercises, list):
        raise ValidationError("Template exercises must be a list")

    return WorkoutTemplate(
        name=str(data["name"]),
        exercises=tuple(dict_to_exercise_definition(e) for e in exercises),
        id=data.get("id"),
        description=data.get("description"),
        linked_habit_id=data.get("linked_habit_id"),
    )


# =============================================================================
# Session data
# =============================================================================


def completed_set_to_dict(s: CompletedSet) -> dict[str, Any]:
    return _drop_none({
        "reps": s.reps,
        "weight": s.weight,
        "distance": s.distance,
        "time": s.time,
        "completed_at": s.completed_at,
    })


def dict_to_completed_set(data: dict[str, Any]) -> CompletedSet:
    try:
        return CompletedSet(
            completed_at=str(data.get("completed_at", "")),
            reps=_opt_int(data, "reps"),
            weight=_opt_float(data, "weight"),
            distance=_opt_float(data, "distance"),
            time=_opt_int(data, "time"),
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid set: {e}") from e


def completed_exercise_to_dict(exercise: CompletedExercise) -> dict[str, Any]:
    data = _drop_none({
        "name": exercise.name,
        "type": exercise.type,
        "target_sets": exercise.target_sets,
        "target_reps": exercise.target_reps,
        "weight": exercise.weight,
        "target_distance": exercise.target_distance,
        "distance_unit": exercise.distance_unit,
        "target_time": exercise.target_time,
        "completion_notes": exercise.completion_notes,
    })
    data["main_sets"] = [completed_set_to_dict(s) for s in exercise.main_sets]
    if exercise.failure_set is not None:
        data["failure_set"] = completed_set_to_dict(exercise.failure_set)
    return data


def dict_to_completed_exercise(data: dict[str, Any]) -> CompletedExercise:
    """
    Convert a dict to CompletedExercise.

    Records written before typed exercises existed carry no ``type``; they
    are strength exercises.
    """
    try:
        failure = data.get("failure_set")
        return CompletedExercise(
            name=str(data["name"]),
            target_sets=int(data.get("target_sets", 0)),
            type=validate_exercise_type(data.get("type", "strength")),  # type: ignore[arg-type]
            target_reps=_opt_int(data, "target_reps"),
            weight=_opt_float(data, "weight"),
            target_distance=_opt_float(data, "target_distance"),
            distance_unit=validate_distance_unit(data.get("distance_unit")),  # type: ignore[arg-type]
            target_time=_opt_int(data, "target_time"),
            main_sets=[dict_to_completed_set(s) for s in data.get("main_sets") or []],
            failure_set=dict_to_completed_set(failure) if failure else None,
            completion_notes=data.get("completion_notes"),
        )
    except KeyError as e:
        raise ValidationError(f"Missing exercise field: {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise ValidationError(f"Invalid exercise record: {e}") from e


def session_data_to_dict(data: SessionData) -> dict[str, Any]:
    return {"exercises": [completed_exercise_to_dict(e) for e in data.exercises]}


def dict_to_session_data(data: dict[str, Any]) -> SessionData:
    exercises = (data or {}).get("exercises") or []
    return SessionData(exercises=[dict_to_completed_exercise(e) for e in exercises])


# =============================================================================
# Historical sessions
# =============================================================================


def historical_session_to_dict(session: HistoricalSession) -> dict[str, Any]:
    return {
        "id": session.id,
        "user_id": session.user_id,
        "template_id": session.template_id,
        "template_name": session.template_name,
        "started_at": session.started_at,
        "completed_at": session.completed_at,
        "duration": session.duration,
        "notes": session.notes,
        "data": session_data_to_dict(session.data),
    }


def dict_to_historical_session(data: dict[str, Any]) -> HistoricalSession:
    """
    Convert a stored record to HistoricalSession.

    Raises:
        ValidationError: If required fields are missing or invalid
    """
    try:
        completed_at = data.get("completed_at")
        return HistoricalSession(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            template_name=str(data.get("template_name", "")),
            started_at=validate_timestamp(data["started_at"]),
            data=dict_to_session_data(data.get("data") or {}),
            template_id=data.get("template_id"),
            completed_at=validate_timestamp(completed_at) if completed_at else None,
            duration=_opt_int(data, "duration"),
            notes=data.get("notes"),
        )
    except KeyError as e:
        raise ValidationError(f"Missing required field: {e}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid session record: {e}") from e


def output_to_historical_session(
    output: SessionOutput,
    user_id: str,
    session_id: str | None = None,
) -> HistoricalSession:
    """
    Build the record to persist from a finished session's output.

    Per-exercise notes are already on each exercise's completion_notes; they
    are also joined into the session-level notes for list views.
    """
    notes = "\n".join(
        f"{output.template.exercises[idx].name}: {text}"
        for idx, text in sorted(output.notes.items())
        if 0 <= idx < len(output.template.exercises)
    )
    return HistoricalSession(
        id=session_id or uuid.uuid4().hex,
        user_id=user_id,
        template_name=output.template.name,
        started_at=output.started_at,
        data=output.data,
        template_id=output.template.id,
        completed_at=output.ended_at,
        duration=output.duration,
        notes=notes or None,
    )


def session_to_json_line(session: HistoricalSession) -> str:
    """Serialize a session to a single JSONL line (no trailing newline)."""
    return json.dumps(historical_session_to_dict(session), separators=(",", ":"))


def json_line_to_session(line: str) -> HistoricalSession:
    """
    Parse one JSONL line.

    Raises:
        ValidationError: If the line is not valid JSON or not a valid session
    """
    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValidationError("Session record must be a JSON object")
    return dict_to_historical_session(data)
