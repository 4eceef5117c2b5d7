"""
Live workout session: the explicitly owned context for one workout.

A WorkoutSession is created per workout and discarded once its output has
been handed over.  It records sets into the accumulator, asks the pure
transition table (phases.py) for the next phase, and manages the timers and
side effects that go with entering that phase.  Actions that do not apply
to the current phase are ignored rather than raised, so a stray tap never
aborts a workout in progress.
"""

import copy
import logging
from dataclasses import dataclass

from ..config import DEFAULT_STRENGTH_REPS
from ..errors import SessionConflictError
from ..metrics import get_exercise_progress
from ..models import (
    CompletedSet,
    ExerciseDefinition,
    SessionData,
    SessionOutput,
    WorkoutTemplate,
)
from .clock import Clock, Countdown, ElapsedTimer, SystemClock, TickSubscription
from .effects import Effects, fire
from .phases import (
    Begin,
    ExerciseSkipped,
    FailureSetCompleted,
    FailureSetOpened,
    Idle,
    PauseToggled,
    PlanView,
    RestSkipped,
    RestTicked,
    ReturnedToSkipped,
    SetCompleted,
    StartWorkout,
    WorkoutEnded,
    WorkoutEvent,
    WorkoutPhase,
    current_exercise_idx,
    is_live,
    is_resting,
    transition,
    unwrap,
)
from .validation import validate_template

logger = logging.getLogger(__name__)


def _or(value, fallback):
    return fallback if value is None else value


@dataclass
class SessionOptions:
    """Per-session behaviour switches."""

    rest_between_exercises: bool = True  # False: go straight to the next exercise
    auto_start: bool = True  # False: start in ``ready`` and wait for begin()


@dataclass
class SetMeasurement:
    """What the user reports for a set; unset fields fall back to working values."""

    reps: int | None = None
    weight: float | None = None
    distance: float | None = None
    time: int | None = None


@dataclass
class CurrentExerciseState:
    """Snapshot of the exercise the session is on, for display."""

    exercise: ExerciseDefinition
    exercise_idx: int
    set_idx: int
    current_weight: float
    current_reps: int
    is_failure_set: bool = False


def _rest_key(phase: WorkoutPhase) -> tuple:
    """Identity of a rest period; ticks keep it, new rests change it."""
    return (
        phase.type,
        getattr(phase, "exercise_idx", None),
        getattr(phase, "set_idx", None),
        getattr(phase, "completed_exercise_idx", None),
    )


class WorkoutSession:
    """
    One guided workout from ``start_workout()`` to ``end_workout()``.

    Args:
        template: Validated read-only template to run
        clock: Time source (SystemClock by default)
        effects: Haptics / no-sleep lock (no-op by default)
        options: Behaviour switches
    """

    def __init__(
        self,
        template: WorkoutTemplate,
        clock: Clock | None = None,
        effects: Effects | None = None,
        options: SessionOptions | None = None,
    ):
        self.template = template
        self.clock = clock or SystemClock()
        self.effects = effects or Effects()
        self.options = options or SessionOptions()

        self.phase: WorkoutPhase = Idle()
        self.data = SessionData()
        self.current_weight = 0.0
        self.current_reps = 0
        self.skipped: set[int] = set()
        self.finished: set[int] = set()
        self.notes: dict[int, str] = {}
        self.started_at: str | None = None

        self.ticks = TickSubscription()
        self._timer = ElapsedTimer(self.clock)
        self._countdown: Countdown | None = None
        self._output: SessionOutput | None = None

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def is_live(self) -> bool:
        return is_live(self.phase)

    @property
    def elapsed_seconds(self) -> int:
        return self._timer.elapsed_seconds()

    @property
    def output(self) -> SessionOutput | None:
        return self._output

    def _plan(self) -> PlanView:
        return PlanView(
            template=self.template,
            skipped=frozenset(self.skipped),
            finished=frozenset(self.finished),
            progress=tuple(len(e.main_sets) for e in self.data.exercises),
            rest_between_exercises=self.options.rest_between_exercises,
        )

    def _apply(self, event: WorkoutEvent) -> WorkoutPhase:
        previous = self.phase
        new = transition(previous, event, self._plan())
        if new is previous:
            logger.debug("Ignored %s in phase %s", type(event).__name__, previous.type)
            return previous
        self.phase = new
        self._enter(previous, new)
        return new

    def _enter(self, previous: WorkoutPhase, new: WorkoutPhase) -> None:
        """Start/stop timers and fire effects for a phase change."""
        logger.debug("Phase %s -> %s", previous.type, new.type)

        if new.type == "paused":
            self._timer.pause()
            if self._countdown is not None:
                self._countdown.pause()
            self.ticks.unsubscribe()
            return

        if previous.type == "paused" and new.type != "complete":
            self._timer.resume()
            if self._countdown is not None:
                self._countdown.resume()
            self.ticks.subscribe()
            return

        if is_resting(new):
            if not is_resting(previous) or _rest_key(previous) != _rest_key(new):
                self._countdown = Countdown(self.clock, new.remaining_seconds)  # type: ignore[union-attr]
        else:
            self._countdown = None

        new_idx = current_exercise_idx(new)
        if new_idx is not None and new_idx != current_exercise_idx(previous):
            self._init_working_values(new_idx)

        if new.type == "complete":
            self._finalize(completed=self._all_done())

    def _all_done(self) -> bool:
        return len(self.finished) == len(self.template.exercises)

    def _init_working_values(self, exercise_idx: int) -> None:
        exercise = self.template.exercises[exercise_idx]
        self.current_weight = float(exercise.weight or 0)
        if exercise.type == "strength":
            self.current_reps = exercise.reps_per_set or DEFAULT_STRENGTH_REPS
        else:
            self.current_reps = 0

    def _finalize(self, completed: bool) -> None:
        self._countdown = None
        self._timer.stop()
        self.ticks.unsubscribe()
        fire(self.effects, "release_wake_lock")
        if completed:
            fire(self.effects, "workout_complete")

        self._output = SessionOutput(
            template=self.template,
            data=copy.deepcopy(self.data),
            started_at=self.started_at or self.clock.wall_time().isoformat(),
            ended_at=self.clock.wall_time().isoformat(),
            duration=self.elapsed_seconds,
            notes=dict(self.notes),
            completed=completed,
        )
        logger.info(
            "Session %r ended after %ss (%s)",
            self.template.name,
            self._output.duration,
            "complete" if completed else "ended early",
        )

    def _build_set(
        self, exercise: ExerciseDefinition, measurement: "SetMeasurement | int | None"
    ) -> CompletedSet:
        stamp = self.clock.wall_time().isoformat()

        if isinstance(measurement, int):
            return CompletedSet(completed_at=stamp, reps=max(0, measurement), weight=self.current_weight)

        if measurement is not None:
            weight = _or(measurement.weight, self.current_weight)
            if exercise.type == "cardio":
                return CompletedSet(
                    completed_at=stamp,
                    weight=measurement.weight,
                    distance=_or(measurement.distance, exercise.distance),
                    time=_or(measurement.time, exercise.target_time),
                )
            if exercise.type == "timed":
                return CompletedSet(
                    completed_at=stamp,
                    weight=weight or None,
                    time=_or(measurement.time, exercise.target_time),
                )
            return CompletedSet(
                completed_at=stamp,
                reps=_or(measurement.reps, self.current_reps),
                weight=weight,
                distance=measurement.distance,
                time=measurement.time,
            )

        if exercise.type == "cardio":
            return CompletedSet(
                completed_at=stamp, distance=exercise.distance, time=exercise.target_time
            )
        if exercise.type == "timed":
            return CompletedSet(
                completed_at=stamp,
                time=exercise.target_time,
                weight=self.current_weight or None,
            )
        return CompletedSet(completed_at=stamp, reps=self.current_reps, weight=self.current_weight)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def start_workout(self) -> WorkoutPhase:
        """
        Leave ``idle``: build the accumulator and start the clock.

        Raises:
            SessionConflictError: If this session was already started
            TemplateValidationError: If the template cannot be run
        """
        if self.phase.type != "idle":
            raise SessionConflictError(f"Session {self.template.name!r} was already started")
        validate_template(self.template)

        self.data = SessionData.for_template(self.template)
        self.skipped.clear()
        self.finished.clear()
        self.notes.clear()
        self.started_at = self.clock.wall_time().isoformat()
        self._timer.start()
        self.ticks.subscribe()
        fire(self.effects, "acquire_wake_lock")

        logger.info("Starting session %r (%d exercises)", self.template.name, len(self.template.exercises))
        return self._apply(StartWorkout(auto_start=self.options.auto_start))

    def begin(self) -> WorkoutPhase:
        """Move from ``ready`` to the first active set."""
        return self._apply(Begin())

    def complete_set(self, measurement: "SetMeasurement | int | None" = None) -> WorkoutPhase:
        """
        Record the current main set and move on.

        Args:
            measurement: Reps as an int, a SetMeasurement, or None to use
                the working weight/reps (strength) or template targets
        """
        phase = self.phase
        if phase.type != "active":
            logger.debug("complete_set ignored in phase %s", phase.type)
            return phase

        idx, set_idx = phase.exercise_idx, phase.set_idx  # type: ignore[union-attr]
        exercise = self.template.exercises[idx]
        self.data.exercises[idx].main_sets.append(self._build_set(exercise, measurement))
        fire(self.effects, "set_complete")

        if set_idx >= exercise.sets - 1 and not exercise.to_failure:
            self.finished.add(idx)
            self.skipped.discard(idx)
        return self._apply(SetCompleted())

    def open_failure_input(self) -> WorkoutPhase:
        """The failure set is done; switch to entering its reps."""
        return self._apply(FailureSetOpened())

    def complete_failure_set(self, reps: int) -> WorkoutPhase:
        """Record the failure set and continue with the next exercise."""
        phase = self.phase
        if phase.type not in ("failure_set", "failure_input"):
            logger.debug("complete_failure_set ignored in phase %s", phase.type)
            return phase

        idx = phase.exercise_idx  # type: ignore[union-attr]
        self.data.exercises[idx].failure_set = CompletedSet(
            completed_at=self.clock.wall_time().isoformat(),
            reps=max(0, int(reps)),
            weight=self.current_weight,
        )
        fire(self.effects, "set_complete")
        self.finished.add(idx)
        self.skipped.discard(idx)
        return self._apply(FailureSetCompleted())

    def skip_rest(self) -> WorkoutPhase:
        """End the current rest immediately."""
        return self._apply(RestSkipped())

    def toggle_pause(self) -> WorkoutPhase:
        """Pause (wrapping the current phase) or resume it unchanged."""
        return self._apply(PauseToggled())

    def skip_exercise(self, exercise_idx: int | None = None) -> WorkoutPhase:
        """
        Defer an exercise (the current one by default).

        Skipped exercises are offered again through the skipped-exercises
        prompt once every other exercise is finished.
        """
        if not self.is_live or self.phase.type == "paused":
            return self.phase
        if exercise_idx is None:
            exercise_idx = current_exercise_idx(self.phase)
        if exercise_idx is None or not 0 <= exercise_idx < len(self.template.exercises):
            return self.phase
        if exercise_idx in self.finished:
            logger.debug("Exercise %d already finished; not skipping", exercise_idx)
            return self.phase

        self.skipped.add(exercise_idx)
        return self._apply(ExerciseSkipped(exercise_idx))

    def return_to_skipped(self, exercise_idx: int) -> WorkoutPhase:
        """Resume a skipped exercise at its first unrecorded set."""
        if exercise_idx not in self.skipped:
            logger.debug("Exercise %d is not skipped", exercise_idx)
            return self.phase

        self.skipped.discard(exercise_idx)
        previous = self.phase
        new = self._apply(ReturnedToSkipped(exercise_idx))
        if new is previous:
            self.skipped.add(exercise_idx)
        return new

    def tick(self) -> WorkoutPhase:
        """
        Handle one clock tick.

        Recomputes the rest countdown from its end reference; at zero the
        rest ends exactly as with skip_rest() and the rest-complete haptic
        fires.  Ticks are not delivered while paused.
        """
        if not self.ticks.deliver():
            return self.phase
        if self._countdown is None or not is_resting(self.phase):
            return self.phase

        remaining = self._countdown.remaining()
        new = self._apply(RestTicked(remaining))
        if remaining <= 0:
            fire(self.effects, "rest_complete")
        return new

    def end_workout(self) -> SessionOutput | None:
        """
        Finish the session now and hand over its output.

        Sets already recorded are kept; the output is cached so a caller
        whose save failed can retry with the same data.

        Returns:
            SessionOutput, or None if the session was never started
        """
        if self._output is not None:
            return self._output
        if self.phase.type == "idle":
            return None
        self._apply(WorkoutEnded())
        return self._output

    # ------------------------------------------------------------------
    # Working values and notes
    # ------------------------------------------------------------------

    def _can_adjust(self) -> bool:
        return self.phase.type in ("active", "ready")

    def adjust_weight(self, delta: float) -> float:
        if self._can_adjust():
            self.current_weight = max(0.0, self.current_weight + delta)
        return self.current_weight

    def adjust_reps(self, delta: int) -> int:
        if self._can_adjust():
            self.current_reps = max(0, self.current_reps + delta)
        return self.current_reps

    def set_weight(self, weight: float) -> float:
        if self._can_adjust():
            self.current_weight = max(0.0, float(weight))
        return self.current_weight

    def set_reps(self, reps: int) -> int:
        if self._can_adjust():
            self.current_reps = max(0, int(reps))
        return self.current_reps

    def set_exercise_notes(self, exercise_idx: int, notes: str) -> None:
        """Attach free-text notes to an exercise (usually while resting after it)."""
        if self.phase.type == "idle" or self._output is not None:
            return
        if not 0 <= exercise_idx < len(self.data.exercises):
            return
        text = notes.strip()
        if text:
            self.notes[exercise_idx] = text
            self.data.exercises[exercise_idx].completion_notes = text
        else:
            self.notes.pop(exercise_idx, None)
            self.data.exercises[exercise_idx].completion_notes = None

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    def current_exercise(self) -> CurrentExerciseState | None:
        """The exercise the session is on, resolving through pauses."""
        idx = current_exercise_idx(self.phase)
        if idx is None:
            return None
        inner = unwrap(self.phase)
        set_idx = getattr(inner, "set_idx", None)
        if set_idx is None:
            set_idx = self._plan().start_set(idx)
        return CurrentExerciseState(
            exercise=self.template.exercises[idx],
            exercise_idx=idx,
            set_idx=set_idx,
            current_weight=self.current_weight,
            current_reps=self.current_reps,
            is_failure_set=inner.type in ("resting_for_failure", "failure_set", "failure_input"),
        )

    def progress(self) -> dict[str, int] | None:
        """1-based exercise/set position for display, or None outside a workout."""
        state = self.current_exercise()
        if state is None:
            return None
        return get_exercise_progress(state.exercise_idx, state.set_idx, self.template.exercises)

    def rest_remaining(self) -> int | None:
        """Seconds left on the current rest, or None when not resting."""
        inner = unwrap(self.phase)
        if not is_resting(inner):
            return None
        if self._countdown is not None:
            return self._countdown.remaining()
        return inner.remaining_seconds  # type: ignore[union-attr]

    def rest_display_total(self) -> int | None:
        """
        Full length of the current rest, for progress display.

        Between exercises this is the rest_time of the exercise just
        completed, not the one coming up; if that lookup fails the raw
        remaining seconds are used instead.
        """
        inner = unwrap(self.phase)
        if inner.type in ("resting", "resting_for_failure"):
            return self.template.exercises[inner.exercise_idx].rest_time  # type: ignore[union-attr]
        if inner.type == "resting_between_exercises":
            try:
                return self.template.exercises[inner.completed_exercise_idx].rest_time  # type: ignore[union-attr]
            except IndexError:
                return inner.remaining_seconds  # type: ignore[union-attr]
        return None


class SessionOwner:
    """
    Holds at most one live session.

    Starting a second session while one is live is rejected unless the
    caller explicitly asks to replace it; the replaced session is ended
    (its recorded sets kept in ``last_output``), never silently dropped.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        effects: Effects | None = None,
        options: SessionOptions | None = None,
    ):
        self.clock = clock
        self.effects = effects
        self.options = options
        self.current: WorkoutSession | None = None
        self.last_output: SessionOutput | None = None

    def start(self, template: WorkoutTemplate, *, replace: bool = False) -> WorkoutSession:
        """
        Start a new session for ``template``.

        Raises:
            SessionConflictError: If a session is live and replace is False
            TemplateValidationError: If the template cannot be run
        """
        if self.current is not None and self.current.is_live:
            if not replace:
                raise SessionConflictError(
                    f"Session {self.current.template.name!r} is still in progress"
                )
            validate_template(template)
            self.last_output = self.current.end_workout()

        session = WorkoutSession(
            template, clock=self.clock, effects=self.effects, options=self.options
        )
        session.start_workout()
        self.current = session
        return session

    def finish(self) -> SessionOutput | None:
        """End the current session (if any) and release it."""
        if self.current is None:
            return None
        output = self.current.end_workout()
        self.last_output = output
        self.current = None
        return output
