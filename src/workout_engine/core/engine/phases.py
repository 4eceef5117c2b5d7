"""
Workout phase sum type and the pure transition function.

Every phase variant is a small frozen dataclass carrying a literal ``type``
discriminant plus its payload.  ``transition()`` holds the complete
``(phase, event) -> phase`` table; it never mutates anything, so the live
session (session.py) only has to record sets and apply the phase it gets
back.  Events that do not apply to the current phase return it unchanged.
"""

from dataclasses import dataclass, field, replace
from typing import Literal, Union

from ..models import WorkoutTemplate

# =============================================================================
# Phase variants
# =============================================================================


@dataclass(frozen=True)
class Idle:
    type: Literal["idle"] = field(default="idle", init=False)


@dataclass(frozen=True)
class Ready:
    """Session started but waiting for the user to begin the first set."""

    exercise_idx: int
    set_idx: int
    type: Literal["ready"] = field(default="ready", init=False)


@dataclass(frozen=True)
class Active:
    exercise_idx: int
    set_idx: int
    type: Literal["active"] = field(default="active", init=False)


@dataclass(frozen=True)
class Resting:
    """Rest between main sets; set_idx is the set that follows the rest."""

    exercise_idx: int
    set_idx: int
    remaining_seconds: int
    type: Literal["resting"] = field(default="resting", init=False)


@dataclass(frozen=True)
class RestingForFailure:
    exercise_idx: int
    remaining_seconds: int
    type: Literal["resting_for_failure"] = field(default="resting_for_failure", init=False)


@dataclass(frozen=True)
class RestingBetweenExercises:
    """Rest after an exercise; the user may attach notes to the finished one."""

    completed_exercise_idx: int
    next_exercise_idx: int
    remaining_seconds: int
    type: Literal["resting_between_exercises"] = field(
        default="resting_between_exercises", init=False
    )


@dataclass(frozen=True)
class FailureSet:
    exercise_idx: int
    type: Literal["failure_set"] = field(default="failure_set", init=False)


@dataclass(frozen=True)
class FailureInput:
    """Failure set performed; waiting for the user to enter the reps."""

    exercise_idx: int
    type: Literal["failure_input"] = field(default="failure_input", init=False)


@dataclass(frozen=True)
class SkippedExercisesPrompt:
    type: Literal["skipped_exercises_prompt"] = field(
        default="skipped_exercises_prompt", init=False
    )


@dataclass(frozen=True)
class Complete:
    type: Literal["complete"] = field(default="complete", init=False)


UnpausedPhase = Union[
    Idle,
    Ready,
    Active,
    Resting,
    RestingForFailure,
    RestingBetweenExercises,
    FailureSet,
    FailureInput,
    SkippedExercisesPrompt,
    Complete,
]


@dataclass(frozen=True)
class Paused:
    """Wraps the exact phase that was current when the user paused."""

    previous: UnpausedPhase
    type: Literal["paused"] = field(default="paused", init=False)

    def __post_init__(self) -> None:
        if self.previous.type in ("paused", "idle", "complete"):
            raise ValueError(f"Cannot pause from phase {self.previous.type!r}")


WorkoutPhase = Union[UnpausedPhase, Paused]

RestingPhase = Union[Resting, RestingForFailure, RestingBetweenExercises]
RESTING_TYPES: frozenset[str] = frozenset(
    {"resting", "resting_for_failure", "resting_between_exercises"}
)

# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True)
class StartWorkout:
    auto_start: bool = True


@dataclass(frozen=True)
class Begin:
    pass


@dataclass(frozen=True)
class SetCompleted:
    pass


@dataclass(frozen=True)
class FailureSetOpened:
    pass


@dataclass(frozen=True)
class FailureSetCompleted:
    pass


@dataclass(frozen=True)
class RestSkipped:
    pass


@dataclass(frozen=True)
class RestTicked:
    remaining_seconds: int


@dataclass(frozen=True)
class PauseToggled:
    pass


@dataclass(frozen=True)
class ExerciseSkipped:
    exercise_idx: int


@dataclass(frozen=True)
class ReturnedToSkipped:
    exercise_idx: int


@dataclass(frozen=True)
class WorkoutEnded:
    """The user ended the session early (or it is being replaced)."""

    pass


WorkoutEvent = Union[
    StartWorkout,
    Begin,
    SetCompleted,
    FailureSetOpened,
    FailureSetCompleted,
    RestSkipped,
    RestTicked,
    PauseToggled,
    ExerciseSkipped,
    ReturnedToSkipped,
    WorkoutEnded,
]

# =============================================================================
# Plan view
# =============================================================================


@dataclass(frozen=True)
class PlanView:
    """
    Read-only session facts the transition table needs.

    ``progress[i]`` is the number of main sets already recorded for
    exercise i; ``finished`` holds exercises whose main sets (and failure
    set, when required) are all done.
    """

    template: WorkoutTemplate
    skipped: frozenset[int] = frozenset()
    finished: frozenset[int] = frozenset()
    progress: tuple[int, ...] = ()
    rest_between_exercises: bool = True

    def start_set(self, exercise_idx: int) -> int:
        """Set index to resume an exercise at (first set not yet recorded)."""
        done = self.progress[exercise_idx] if exercise_idx < len(self.progress) else 0
        sets = self.template.exercises[exercise_idx].sets
        return max(0, min(done, sets - 1))

    def is_pending(self, exercise_idx: int) -> bool:
        return (
            0 <= exercise_idx < len(self.template.exercises)
            and exercise_idx not in self.skipped
            and exercise_idx not in self.finished
        )


def next_pending_exercise(plan: PlanView, current: int) -> int | None:
    """
    Find the exercise to run after ``current``.

    Searches forward from ``current`` first, then wraps to the start so an
    exercise returned to out of order does not strand earlier ones.
    """
    candidates = [
        i for i in range(len(plan.template.exercises))
        if i != current and plan.is_pending(i)
    ]
    for i in candidates:
        if i > current:
            return i
    return candidates[0] if candidates else None


# =============================================================================
# Transition helpers
# =============================================================================


def unwrap(phase: WorkoutPhase) -> UnpausedPhase:
    """Return the phase a paused phase wraps (or the phase itself)."""
    return phase.previous if phase.type == "paused" else phase  # type: ignore[union-attr]


def is_live(phase: WorkoutPhase) -> bool:
    """True while a session is running (anything but idle or complete)."""
    return phase.type not in ("idle", "complete")


def is_resting(phase: WorkoutPhase) -> bool:
    return phase.type in RESTING_TYPES


def current_exercise_idx(phase: WorkoutPhase) -> int | None:
    """Exercise the phase is about, resolving through pauses."""
    inner = unwrap(phase)
    if inner.type == "resting_between_exercises":
        return inner.next_exercise_idx  # type: ignore[union-attr]
    return getattr(inner, "exercise_idx", None)


def _rest_target(phase: RestingPhase, plan: PlanView) -> UnpausedPhase:
    """Phase a rest leads to once it is over or skipped."""
    if phase.type == "resting":
        return Active(phase.exercise_idx, phase.set_idx)  # type: ignore[union-attr]
    if phase.type == "resting_for_failure":
        return FailureSet(phase.exercise_idx)
    nxt = phase.next_exercise_idx  # type: ignore[union-attr]
    return Active(nxt, plan.start_set(nxt))


def _settle(phase: UnpausedPhase, plan: PlanView) -> UnpausedPhase:
    """A rest of zero seconds passes straight through to its target."""
    if phase.type in RESTING_TYPES and phase.remaining_seconds <= 0:  # type: ignore[union-attr]
        return _rest_target(phase, plan)  # type: ignore[arg-type]
    return phase


def _after_exercise(exercise_idx: int, plan: PlanView) -> UnpausedPhase:
    """Move on once an exercise's main and failure sets are done."""
    nxt = next_pending_exercise(plan, exercise_idx)
    if nxt is not None:
        if plan.rest_between_exercises:
            rest = plan.template.exercises[exercise_idx].rest_time
            return _settle(RestingBetweenExercises(exercise_idx, nxt, rest), plan)
        return Active(nxt, plan.start_set(nxt))
    if plan.skipped - plan.finished - {exercise_idx}:
        return SkippedExercisesPrompt()
    return Complete()


def _after_set(phase: Active, plan: PlanView) -> UnpausedPhase:
    """Next phase after a just-recorded main set."""
    exercise = plan.template.exercises[phase.exercise_idx]
    if phase.set_idx < exercise.sets - 1:
        return _settle(
            Resting(phase.exercise_idx, phase.set_idx + 1, exercise.rest_time), plan
        )
    if exercise.to_failure:
        return _settle(RestingForFailure(phase.exercise_idx, exercise.rest_time), plan)
    return _after_exercise(phase.exercise_idx, plan)


def _skip(phase: UnpausedPhase, event: ExerciseSkipped, plan: PlanView) -> UnpausedPhase:
    idx = event.exercise_idx
    plan = replace(plan, skipped=plan.skipped | {idx})

    # Skipping during its own rest leaves the exercise like skipping it mid-set
    if phase.type in ("active", "ready", "resting", "resting_for_failure") and phase.exercise_idx == idx:  # type: ignore[union-attr]
        nxt = next_pending_exercise(plan, idx)
        if nxt is not None:
            return Active(nxt, plan.start_set(nxt))
        return SkippedExercisesPrompt()

    if phase.type == "resting_between_exercises" and phase.next_exercise_idx == idx:  # type: ignore[union-attr]
        nxt = next_pending_exercise(plan, idx)
        if nxt is not None:
            return replace(phase, next_exercise_idx=nxt)  # type: ignore[type-var]
        return SkippedExercisesPrompt()

    return phase


# =============================================================================
# Transition table
# =============================================================================


def transition(phase: WorkoutPhase, event: WorkoutEvent, plan: PlanView) -> WorkoutPhase:
    """
    Compute the phase that follows ``event``.

    Args:
        phase: Current phase
        event: User action or clock tick
        plan: Read-only view of the template and session progress

    Returns:
        The next phase (the same object when the event does not apply)
    """
    if isinstance(event, PauseToggled):
        if phase.type == "paused":
            return phase.previous  # type: ignore[union-attr]
        if is_live(phase):
            return Paused(phase)  # type: ignore[arg-type]
        return phase

    if isinstance(event, WorkoutEnded):
        return Complete() if phase.type != "idle" else phase

    # Nothing but resume reaches a paused session.
    if phase.type == "paused":
        return phase

    if isinstance(event, StartWorkout):
        if phase.type != "idle":
            return phase
        first = next_pending_exercise(plan, -1)
        if first is None:
            return Complete()
        if event.auto_start:
            return Active(first, plan.start_set(first))
        return Ready(first, plan.start_set(first))

    if isinstance(event, Begin):
        if phase.type == "ready":
            return Active(phase.exercise_idx, phase.set_idx)  # type: ignore[union-attr]
        return phase

    if isinstance(event, SetCompleted):
        if phase.type == "active":
            return _after_set(phase, plan)  # type: ignore[arg-type]
        return phase

    if isinstance(event, FailureSetOpened):
        if phase.type == "failure_set":
            return FailureInput(phase.exercise_idx)  # type: ignore[union-attr]
        return phase

    if isinstance(event, FailureSetCompleted):
        if phase.type in ("failure_set", "failure_input"):
            return _after_exercise(phase.exercise_idx, plan)  # type: ignore[union-attr]
        return phase

    if isinstance(event, RestSkipped):
        if phase.type in RESTING_TYPES:
            return _rest_target(phase, plan)  # type: ignore[arg-type]
        return phase

    if isinstance(event, RestTicked):
        if phase.type not in RESTING_TYPES:
            return phase
        if event.remaining_seconds <= 0:
            return _rest_target(phase, plan)  # type: ignore[arg-type]
        if event.remaining_seconds == phase.remaining_seconds:  # type: ignore[union-attr]
            return phase
        return replace(phase, remaining_seconds=event.remaining_seconds)  # type: ignore[type-var]

    if isinstance(event, ExerciseSkipped):
        if not is_live(phase) or not 0 <= event.exercise_idx < len(plan.template.exercises):
            return phase
        return _skip(phase, event, plan)  # type: ignore[arg-type]

    if isinstance(event, ReturnedToSkipped):
        idx = event.exercise_idx
        if phase.type not in ("skipped_exercises_prompt", "active", "ready"):
            return phase
        if not 0 <= idx < len(plan.template.exercises) or idx in plan.finished:
            return phase
        return Active(idx, plan.start_set(idx))

    raise TypeError(f"Unknown workout event: {event!r}")
