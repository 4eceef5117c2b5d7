"""
Data models for workout-engine.

All core dataclasses representing templates, live session data, historical
session records, and advisor output.  Field names follow the JSON columns
the surrounding application stores (reps_per_set, rest_time, main_sets ...).
"""

from dataclasses import dataclass, field, replace
from typing import Literal

ExerciseType = Literal["strength", "cardio", "timed"]
DistanceUnit = Literal["km", "m", "mi"]

EXERCISE_TYPES: tuple[str, ...] = ("strength", "cardio", "timed")
DISTANCE_UNITS: tuple[str, ...] = ("km", "m", "mi")


@dataclass(frozen=True)
class ExerciseDefinition:
    """
    One exercise in a workout template (read-only input).

    Strength exercises use reps_per_set/weight, cardio uses
    distance/distance_unit/target_time, timed uses target_time and an
    optional weight.  ``sets`` may be 0 here; a zero-set exercise is a
    template validation error caught before a session starts.
    """

    name: str
    type: ExerciseType = "strength"
    sets: int = 1
    reps_per_set: int | None = None
    weight: float | None = None
    distance: float | None = None
    distance_unit: DistanceUnit | None = None
    target_time: int | None = None  # seconds
    rest_time: int = 0  # seconds between sets
    to_failure: bool = False
    notes: str | None = None

    def __post_init__(self) -> None:
        """Validate exercise data."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("name must be a non-empty string")
        if self.type not in EXERCISE_TYPES:
            raise ValueError(f"Invalid exercise type: {self.type}")
        if self.sets < 0:
            raise ValueError("sets must be non-negative")
        if self.rest_time < 0:
            raise ValueError("rest_time must be non-negative")
        if self.reps_per_set is not None and self.reps_per_set < 0:
            raise ValueError("reps_per_set must be non-negative")
        if self.weight is not None and self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.distance is not None and self.distance < 0:
            raise ValueError("distance must be non-negative")
        if self.target_time is not None and self.target_time < 0:
            raise ValueError("target_time must be non-negative")
        if self.distance_unit is not None and self.distance_unit not in DISTANCE_UNITS:
            raise ValueError(f"Invalid distance_unit: {self.distance_unit}")


@dataclass(frozen=True)
class WorkoutTemplate:
    """
    A reusable routine: an ordered, read-only list of exercises.
    """

    name: str
    exercises: tuple[ExerciseDefinition, ...] = ()
    id: str | None = None
    description: str | None = None
    linked_habit_id: str | None = None

    def __post_init__(self) -> None:
        # Accept any sequence but always store an immutable tuple
        object.__setattr__(self, "exercises", tuple(self.exercises))

    def with_exercises(self, exercises: list[ExerciseDefinition]) -> "WorkoutTemplate":
        """Return a copy of this template with a different exercise list."""
        return replace(self, exercises=tuple(exercises))


@dataclass
class CompletedSet:
    """
    A single performed set.  Fields are optional to cover every exercise type.
    """

    completed_at: str  # ISO timestamp
    reps: int | None = None
    weight: float | None = None
    distance: float | None = None
    time: int | None = None  # seconds

    def __post_init__(self) -> None:
        """Validate set data."""
        if self.reps is not None and self.reps < 0:
            raise ValueError("reps must be non-negative")
        if self.weight is not None and self.weight < 0:
            raise ValueError("weight must be non-negative")
        if self.distance is not None and self.distance < 0:
            raise ValueError("distance must be non-negative")
        if self.time is not None and self.time < 0:
            raise ValueError("time must be non-negative")


@dataclass
class CompletedExercise:
    """
    Accumulated results for one template exercise.

    ``main_sets`` counts toward the planned ``target_sets``; ``failure_set``
    is the optional extra set taken to momentary failure.
    """

    name: str
    target_sets: int
    type: ExerciseType = "strength"
    target_reps: int | None = None
    weight: float | None = None
    target_distance: float | None = None
    distance_unit: DistanceUnit | None = None
    target_time: int | None = None
    main_sets: list[CompletedSet] = field(default_factory=list)
    failure_set: CompletedSet | None = None
    completion_notes: str | None = None

    @classmethod
    def from_definition(cls, exercise: ExerciseDefinition) -> "CompletedExercise":
        """Build the empty shell for a template exercise."""
        return cls(
            name=exercise.name,
            type=exercise.type,
            target_sets=exercise.sets,
            target_reps=exercise.reps_per_set,
            weight=exercise.weight,
            target_distance=exercise.distance,
            distance_unit=exercise.distance_unit,
            target_time=exercise.target_time,
        )


@dataclass
class SessionData:
    """Per-exercise accumulator, index-aligned with the template."""

    exercises: list[CompletedExercise] = field(default_factory=list)

    @classmethod
    def for_template(cls, template: WorkoutTemplate) -> "SessionData":
        return cls(exercises=[CompletedExercise.from_definition(e) for e in template.exercises])


@dataclass
class HistoricalSession:
    """
    A persisted workout session record.

    Returned newest-first by history queries; ``data`` is structurally
    identical to what the live engine accumulates.
    """

    id: str
    user_id: str
    template_name: str
    started_at: str  # ISO timestamp
    data: SessionData = field(default_factory=SessionData)
    template_id: str | None = None
    completed_at: str | None = None
    duration: int | None = None  # seconds
    notes: str | None = None

    def find_exercise(self, exercise_name: str) -> CompletedExercise | None:
        """Return the first exercise whose name matches case-insensitively."""
        wanted = exercise_name.lower()
        for exercise in self.data.exercises:
            if exercise.name.lower() == wanted:
                return exercise
        return None


@dataclass
class SessionSummary:
    """Digest of one historical session for one exercise."""

    date: str
    weight: float
    sets: int
    avg_reps: float
    all_target_hit: bool
    has_failure_set: bool = False
    failure_reps: int | None = None


@dataclass
class ProgressiveSuggestion:
    """
    Advisor output for one exercise.

    previous_sessions holds at most five digests, most recent first.
    """

    suggested_weight: float
    reason: str
    previous_sessions: list[SessionSummary] = field(default_factory=list)
    should_increase: bool = False
    should_add_test_set: bool = False


@dataclass
class PersonalRecord:
    """Heaviest main set ever logged for an exercise."""

    weight: float
    reps: int
    date: str


@dataclass
class ExerciseHistory:
    """Per-exercise history digest used by history views."""

    exercise_name: str
    sessions: list[SessionSummary] = field(default_factory=list)
    personal_record: PersonalRecord | None = None


@dataclass
class WorkoutVolume:
    """
    Productivity metrics for one session, per exercise type.
    """

    weight_volume: float = 0.0  # sum(reps * weight), strength only
    total_distance: float = 0.0
    distance_unit: str = "km"
    total_time: int = 0  # seconds, cardio + timed
    total_sets: int = 0
    total_reps: int = 0
    exercise_count: dict[str, int] = field(
        default_factory=lambda: {"strength": 0, "cardio": 0, "timed": 0}
    )


@dataclass
class SessionOutput:
    """
    What a finished (or early-ended) session hands to its caller.

    ``data`` is final; the caller persists it and may retry a failed save
    without recomputing anything.
    """

    template: WorkoutTemplate
    data: SessionData
    started_at: str
    ended_at: str
    duration: int  # elapsed seconds, pauses excluded
    notes: dict[int, str] = field(default_factory=dict)
    completed: bool = False
