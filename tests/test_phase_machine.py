"""
Tests for the workout phase machine.

The first half drives the pure transition function directly; the second
half runs whole sessions through WorkoutSession on a ManualClock.
"""

import pytest

from workout_engine.core.config import (
    REST_COMPLETE_PATTERN,
    SET_COMPLETE_PATTERN,
    WORKOUT_COMPLETE_PATTERN,
)
from workout_engine.core.engine.clock import ManualClock
from workout_engine.core.engine.effects import Effects, RecordingEffects
from workout_engine.core.engine.phases import (
    Active,
    Begin,
    Complete,
    ExerciseSkipped,
    FailureInput,
    FailureSet,
    FailureSetCompleted,
    FailureSetOpened,
    Idle,
    Paused,
    PauseToggled,
    PlanView,
    Ready,
    RestingBetweenExercises,
    RestingForFailure,
    Resting,
    RestSkipped,
    RestTicked,
    ReturnedToSkipped,
    SetCompleted,
    SkippedExercisesPrompt,
    StartWorkout,
    WorkoutEnded,
    next_pending_exercise,
    transition,
)
from workout_engine.core.engine.session import (
    SessionOptions,
    SessionOwner,
    SetMeasurement,
    WorkoutSession,
)
from workout_engine.core.engine.validation import template_problems
from workout_engine.core.errors import SessionConflictError, TemplateValidationError
from workout_engine.core.models import ExerciseDefinition, WorkoutTemplate

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _strength(
    name: str = "Bench Press",
    sets: int = 2,
    reps: int = 8,
    weight: float = 60.0,
    rest: int = 60,
    to_failure: bool = False,
) -> ExerciseDefinition:
    return ExerciseDefinition(
        name=name,
        sets=sets,
        reps_per_set=reps,
        weight=weight,
        rest_time=rest,
        to_failure=to_failure,
    )


def _template(*exercises: ExerciseDefinition) -> WorkoutTemplate:
    return WorkoutTemplate(name="Test Day", exercises=exercises)


def _plan(template: WorkoutTemplate, **kwargs) -> PlanView:
    return PlanView(template=template, **kwargs)


def _session(
    template: WorkoutTemplate, **options
) -> tuple[WorkoutSession, ManualClock, RecordingEffects]:
    clock = ManualClock()
    effects = RecordingEffects()
    session = WorkoutSession(
        template, clock=clock, effects=effects, options=SessionOptions(**options)
    )
    return session, clock, effects


# ===========================================================================
# Pure transition function
# ===========================================================================


class TestStartTransitions:
    def test_start_goes_active_on_first_set(self):
        plan = _plan(_template(_strength()))
        assert transition(Idle(), StartWorkout(), plan) == Active(0, 0)

    def test_start_without_auto_start_waits_in_ready(self):
        plan = _plan(_template(_strength()))
        phase = transition(Idle(), StartWorkout(auto_start=False), plan)
        assert phase == Ready(0, 0)
        assert transition(phase, Begin(), plan) == Active(0, 0)

    def test_start_ignored_once_running(self):
        plan = _plan(_template(_strength()))
        phase = Active(0, 0)
        assert transition(phase, StartWorkout(), plan) is phase


class TestSetCompletedTransitions:
    def test_more_sets_rest_before_next_set(self):
        plan = _plan(_template(_strength(sets=3, rest=90)))
        assert transition(Active(0, 0), SetCompleted(), plan) == Resting(0, 1, 90)

    def test_zero_rest_goes_straight_to_next_set(self):
        plan = _plan(_template(_strength(sets=3, rest=0)))
        assert transition(Active(0, 0), SetCompleted(), plan) == Active(0, 1)

    def test_last_set_with_failure_rests_before_failure_set(self):
        plan = _plan(_template(_strength(sets=2, rest=45, to_failure=True)))
        assert transition(Active(0, 1), SetCompleted(), plan) == RestingForFailure(0, 45)

    def test_last_set_rests_between_exercises_with_completed_rest_time(self):
        plan = _plan(_template(_strength(rest=30), _strength("Squat", rest=120)))
        phase = transition(Active(0, 1), SetCompleted(), plan)
        assert phase == RestingBetweenExercises(0, 1, 30)

    def test_between_exercise_rest_can_be_disabled(self):
        plan = _plan(
            _template(_strength(rest=30), _strength("Squat")), rest_between_exercises=False
        )
        assert transition(Active(0, 1), SetCompleted(), plan) == Active(1, 0)

    def test_last_set_of_last_exercise_completes(self):
        plan = _plan(_template(_strength()))
        assert transition(Active(0, 1), SetCompleted(), plan) == Complete()

    def test_skipped_exercises_are_offered_before_completing(self):
        plan = _plan(_template(_strength(), _strength("Squat")), skipped=frozenset({0}))
        assert transition(Active(1, 1), SetCompleted(), plan) == SkippedExercisesPrompt()

    def test_ignored_outside_active(self):
        plan = _plan(_template(_strength()))
        phase = Resting(0, 1, 60)
        assert transition(phase, SetCompleted(), plan) is phase


class TestRestTransitions:
    def test_skip_rest_targets(self):
        plan = _plan(_template(_strength(), _strength("Squat")), progress=(2, 0))
        assert transition(Resting(0, 1, 30), RestSkipped(), plan) == Active(0, 1)
        assert transition(RestingForFailure(0, 30), RestSkipped(), plan) == FailureSet(0)
        assert transition(RestingBetweenExercises(0, 1, 30), RestSkipped(), plan) == Active(1, 0)

    def test_tick_updates_remaining(self):
        plan = _plan(_template(_strength()))
        assert transition(Resting(0, 1, 30), RestTicked(12), plan) == Resting(0, 1, 12)

    def test_tick_with_same_value_returns_same_phase(self):
        plan = _plan(_template(_strength()))
        phase = Resting(0, 1, 30)
        assert transition(phase, RestTicked(30), plan) is phase

    def test_tick_reaching_zero_ends_rest(self):
        plan = _plan(_template(_strength()))
        assert transition(Resting(0, 1, 30), RestTicked(0), plan) == Active(0, 1)
        assert transition(RestingForFailure(0, 5), RestTicked(-1), plan) == FailureSet(0)

    def test_tick_outside_rest_ignored(self):
        plan = _plan(_template(_strength()))
        phase = Active(0, 0)
        assert transition(phase, RestTicked(5), plan) is phase


class TestFailureTransitions:
    def test_failure_set_then_input_then_next_exercise(self):
        plan = _plan(
            _template(_strength(to_failure=True, rest=0), _strength("Squat")),
            finished=frozenset({0}),
        )
        phase = transition(FailureSet(0), FailureSetOpened(), plan)
        assert phase == FailureInput(0)
        assert transition(phase, FailureSetCompleted(), plan) == Active(1, 0)

    def test_failure_set_on_last_exercise_completes(self):
        plan = _plan(_template(_strength(to_failure=True)), finished=frozenset({0}))
        assert transition(FailureSet(0), FailureSetCompleted(), plan) == Complete()


class TestPauseTransitions:
    def test_pause_wraps_and_resume_restores_exact_phase(self):
        plan = _plan(_template(_strength()))
        before = Resting(0, 1, 42)
        paused = transition(before, PauseToggled(), plan)
        assert paused == Paused(before)
        assert transition(paused, PauseToggled(), plan) is before

    def test_paused_phase_ignores_other_events(self):
        plan = _plan(_template(_strength()))
        paused = Paused(Active(0, 0))
        for event in (SetCompleted(), RestSkipped(), RestTicked(0), ExerciseSkipped(0)):
            assert transition(paused, event, plan) is paused

    def test_cannot_pause_idle_or_complete(self):
        plan = _plan(_template(_strength()))
        assert transition(Idle(), PauseToggled(), plan) == Idle()
        assert transition(Complete(), PauseToggled(), plan) == Complete()

    def test_paused_never_wraps_paused(self):
        with pytest.raises(ValueError):
            Paused(Paused(Active(0, 0)))  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            Paused(Idle())

    def test_end_while_paused_completes(self):
        plan = _plan(_template(_strength()))
        assert transition(Paused(Active(0, 0)), WorkoutEnded(), plan) == Complete()
        assert transition(Idle(), WorkoutEnded(), plan) == Idle()


class TestSkipTransitions:
    def test_skip_current_moves_to_next_pending(self):
        plan = _plan(_template(_strength(), _strength("Squat")))
        assert transition(Active(0, 0), ExerciseSkipped(0), plan) == Active(1, 0)

    def test_skip_only_exercise_opens_prompt(self):
        plan = _plan(_template(_strength()))
        assert transition(Active(0, 0), ExerciseSkipped(0), plan) == SkippedExercisesPrompt()

    def test_skip_during_own_rest_moves_on(self):
        plan = _plan(_template(_strength(), _strength("Squat")), progress=(1, 0))
        assert transition(Resting(0, 1, 60), ExerciseSkipped(0), plan) == Active(1, 0)
        assert transition(RestingForFailure(0, 60), ExerciseSkipped(0), plan) == Active(1, 0)

    def test_finished_exercise_left_in_skipped_does_not_reopen_prompt(self):
        plan = _plan(
            _template(_strength(sets=1), _strength("Squat", sets=1)),
            skipped=frozenset({0}),
            finished=frozenset({0, 1}),
        )
        assert transition(Active(1, 0), SetCompleted(), plan) == Complete()

    def test_return_resumes_at_first_unrecorded_set(self):
        plan = _plan(
            _template(_strength(sets=3), _strength("Squat")),
            skipped=frozenset({0}),
            finished=frozenset({1}),
            progress=(1, 2),
        )
        phase = transition(SkippedExercisesPrompt(), ReturnedToSkipped(0), plan)
        assert phase == Active(0, 1)

    def test_return_to_finished_exercise_ignored(self):
        plan = _plan(_template(_strength(), _strength("Squat")), finished=frozenset({1}))
        phase = SkippedExercisesPrompt()
        assert transition(phase, ReturnedToSkipped(1), plan) is phase

    def test_next_pending_wraps_to_start(self):
        template = _template(_strength("A"), _strength("B"), _strength("C"))
        plan = _plan(template, finished=frozenset({1}))
        assert next_pending_exercise(plan, 2) == 0
        assert next_pending_exercise(plan, 0) == 2

    def test_unknown_event_raises(self):
        plan = _plan(_template(_strength()))
        with pytest.raises(TypeError):
            transition(Active(0, 0), object(), plan)  # type: ignore[arg-type]


# ===========================================================================
# Validation
# ===========================================================================


class TestTemplateValidation:
    def test_valid_template_has_no_problems(self):
        assert template_problems(_template(_strength())) == []

    def test_problems_are_collected(self):
        template = _template(
            _strength(sets=0),
            _strength("Curl", reps=0),
            ExerciseDefinition(name="Plank", type="timed", sets=2),
        )
        problems = template_problems(template)
        assert len(problems) == 3

    def test_empty_template_rejected_before_start(self):
        session, _, _ = _session(_template())
        with pytest.raises(TemplateValidationError) as exc:
            session.start_workout()
        assert exc.value.problems == ["template has no exercises"]
        assert session.phase == Idle()


# ===========================================================================
# WorkoutSession
# ===========================================================================


class TestSessionFlow:
    def test_two_sets_without_failure_complete(self):
        session, _, _ = _session(_template(_strength(sets=2, rest=0)))
        session.start_workout()
        session.complete_set()
        session.complete_set()

        assert session.phase == Complete()
        assert len(session.data.exercises[0].main_sets) == 2

    def test_two_exercises_with_failure_set(self):
        template = _template(
            _strength("Bench Press", sets=2, rest=0),
            _strength("Dip", sets=1, rest=0, to_failure=True),
        )
        session, _, _ = _session(template)
        session.start_workout()
        session.complete_set()
        session.complete_set()
        session.complete_set()
        assert session.phase == FailureSet(1)

        session.complete_failure_set(9)

        assert session.phase == Complete()
        assert session.data.exercises[1].failure_set is not None
        assert session.data.exercises[1].failure_set.reps == 9
        assert session.output is not None and session.output.completed

    def test_completion_effects(self):
        session, _, effects = _session(_template(_strength(sets=1)))
        session.start_workout()
        assert effects.wake_lock_held
        session.complete_set()

        assert effects.patterns == [SET_COMPLETE_PATTERN, WORKOUT_COMPLETE_PATTERN]
        assert not effects.wake_lock_held

    def test_set_uses_working_values(self):
        session, _, _ = _session(_template(_strength(sets=2, reps=8, weight=60.0)))
        session.start_workout()
        session.adjust_weight(2.5)
        session.adjust_reps(-2)
        session.complete_set()

        recorded = session.data.exercises[0].main_sets[0]
        assert recorded.weight == 62.5
        assert recorded.reps == 6

    def test_explicit_measurements(self):
        session, _, _ = _session(_template(_strength(sets=3, rest=0)))
        session.start_workout()
        session.complete_set(5)
        session.complete_set(SetMeasurement(reps=7, weight=55.0))

        first, second = session.data.exercises[0].main_sets
        assert (first.reps, first.weight) == (5, 60.0)
        assert (second.reps, second.weight) == (7, 55.0)

    def test_partial_measurement_falls_back_to_working_values(self):
        session, _, _ = _session(_template(_strength("Squat", sets=2, reps=5, weight=100.0, rest=0)))
        session.start_workout()
        session.complete_set(SetMeasurement(weight=102.5))
        session.complete_set(SetMeasurement(reps=4))

        first, second = session.data.exercises[0].main_sets
        assert (first.reps, first.weight) == (5, 102.5)
        assert (second.reps, second.weight) == (4, 100.0)

    def test_partial_cardio_measurement_keeps_targets(self):
        run = ExerciseDefinition(
            name="Run", type="cardio", distance=5.0, distance_unit="km", target_time=1500
        )
        session, _, _ = _session(_template(run))
        session.start_workout()
        session.complete_set(SetMeasurement(time=1420))

        recorded = session.data.exercises[0].main_sets[0]
        assert (recorded.distance, recorded.time) == (5.0, 1420)

    def test_cardio_set_defaults_to_targets(self):
        run = ExerciseDefinition(
            name="Run", type="cardio", distance=5.0, distance_unit="km", target_time=1500
        )
        session, _, _ = _session(_template(run))
        session.start_workout()
        session.complete_set()

        recorded = session.data.exercises[0].main_sets[0]
        assert recorded.distance == 5.0
        assert recorded.time == 1500

    def test_adjustments_clamp_and_only_apply_when_active(self):
        session, _, _ = _session(_template(_strength(weight=2.5)))
        session.start_workout()
        assert session.adjust_weight(-10) == 0.0
        assert session.adjust_reps(-100) == 0

        session.complete_set()
        assert session.phase.type == "resting"
        assert session.set_weight(100) == 0.0

    def test_ready_waits_for_begin(self):
        session, _, _ = _session(_template(_strength()), auto_start=False)
        session.start_workout()
        assert session.phase == Ready(0, 0)
        session.complete_set()
        assert session.data.exercises[0].main_sets == []

        session.begin()
        assert session.phase == Active(0, 0)

    def test_second_start_rejected(self):
        session, _, _ = _session(_template(_strength()))
        session.start_workout()
        with pytest.raises(SessionConflictError):
            session.start_workout()

    def test_progress(self):
        session, _, _ = _session(_template(_strength(sets=3, rest=0), _strength("Squat")))
        session.start_workout()
        session.complete_set()
        assert session.progress() == {
            "current_exercise": 1,
            "total_exercises": 2,
            "current_set": 2,
            "total_sets": 3,
        }


class TestSessionTimers:
    def test_rest_countdown_expires_on_tick(self):
        session, clock, effects = _session(_template(_strength(sets=2, rest=60)))
        session.start_workout()
        session.complete_set()

        clock.advance(20.5)
        session.tick()
        assert session.phase == Resting(0, 1, 40)

        clock.advance(40)
        session.tick()
        assert session.phase == Active(0, 1)
        assert effects.patterns[-1] == REST_COMPLETE_PATTERN

    def test_skipped_rest_does_not_buzz(self):
        session, _, effects = _session(_template(_strength(sets=2, rest=60)))
        session.start_workout()
        session.complete_set()
        session.skip_rest()

        assert session.phase == Active(0, 1)
        assert REST_COMPLETE_PATTERN not in effects.patterns

    def test_pause_then_resume_is_identical(self):
        session, clock, _ = _session(_template(_strength(sets=2, rest=60)))
        session.start_workout()
        session.complete_set()
        clock.advance(10.3)
        session.tick()
        before_phase = session.phase
        before_rest = session.rest_remaining()

        session.toggle_pause()
        session.toggle_pause()

        assert session.phase is before_phase
        assert session.rest_remaining() == before_rest

    def test_pause_halts_ticks_and_freezes_rest(self):
        session, clock, _ = _session(_template(_strength(sets=2, rest=60)))
        session.start_workout()
        session.complete_set()
        clock.advance(10)
        session.toggle_pause()
        delivered = session.ticks.delivered

        clock.advance(300)
        session.tick()
        assert session.phase.type == "paused"
        assert session.ticks.delivered == delivered

        session.toggle_pause()
        session.tick()
        assert session.rest_remaining() == 50

    def test_elapsed_excludes_pauses(self):
        session, clock, _ = _session(_template(_strength()))
        session.start_workout()
        clock.advance(30)
        session.toggle_pause()
        clock.advance(100)
        session.toggle_pause()
        clock.advance(10)

        assert session.elapsed_seconds == 40

    def test_rest_between_exercises_displays_completed_rest(self):
        template = _template(_strength(sets=1, rest=30), _strength("Squat", rest=90))
        session, _, _ = _session(template)
        session.start_workout()
        session.complete_set()

        assert session.phase == RestingBetweenExercises(0, 1, 30)
        assert session.rest_display_total() == 30


class TestSkipAndReturn:
    def test_skip_then_return_resumes_at_recorded_set(self):
        template = _template(_strength("A", sets=2, rest=0), _strength("B", sets=1, rest=0))
        session, _, _ = _session(template)
        session.start_workout()
        session.complete_set()
        assert session.phase == Active(0, 1)

        session.skip_exercise()
        assert session.phase == Active(1, 0)

        session.complete_set()
        assert session.phase == SkippedExercisesPrompt()

        session.return_to_skipped(0)
        assert session.phase == Active(0, 1)

        session.complete_set()
        assert session.phase == Complete()
        assert len(session.data.exercises[0].main_sets) == 2
        assert session.output is not None and session.output.completed

    def test_skip_during_rest_then_finish_completes(self):
        template = _template(_strength("Squat", sets=2, rest=60), _strength("Curl", sets=1))
        session, _, _ = _session(template)
        session.start_workout()
        session.complete_set()
        assert session.phase == Resting(0, 1, 60)

        session.skip_exercise()
        assert session.phase == Active(1, 0)

        session.complete_set()
        assert session.phase == SkippedExercisesPrompt()

        session.return_to_skipped(0)
        assert session.phase == Active(0, 1)

        session.complete_set()
        assert session.phase == Complete()
        assert session.skipped == set()
        assert session.output is not None and session.output.completed

    def test_return_to_unskipped_exercise_ignored(self):
        session, _, _ = _session(_template(_strength("A"), _strength("B")))
        session.start_workout()
        phase = session.phase
        assert session.return_to_skipped(1) is phase

    def test_ending_with_skipped_exercise_is_partial(self):
        template = _template(_strength("A", sets=1), _strength("B", sets=1))
        session, _, effects = _session(template)
        session.start_workout()
        session.skip_exercise()
        session.complete_set()
        assert session.phase == SkippedExercisesPrompt()

        output = session.end_workout()
        assert output is not None
        assert not output.completed
        assert WORKOUT_COMPLETE_PATTERN not in effects.patterns


class TestEndAndNotes:
    def test_early_end_keeps_recorded_sets(self):
        session, clock, effects = _session(_template(_strength(sets=3)))
        session.start_workout()
        session.complete_set()
        clock.advance(75)

        output = session.end_workout()

        assert output is not None
        assert not output.completed
        assert output.duration == 75
        assert len(output.data.exercises[0].main_sets) == 1
        assert not effects.wake_lock_held
        assert session.phase == Complete()

    def test_end_is_cached_and_final(self):
        session, _, _ = _session(_template(_strength(sets=3)))
        session.start_workout()
        session.complete_set()
        output = session.end_workout()

        session.complete_set()
        assert session.end_workout() is output
        assert len(output.data.exercises[0].main_sets) == 1

    def test_end_before_start_returns_none(self):
        session, _, _ = _session(_template(_strength()))
        assert session.end_workout() is None

    def test_notes_attached_between_exercises(self):
        template = _template(_strength("A", sets=1, rest=30), _strength("B", sets=1))
        session, _, _ = _session(template)
        session.start_workout()
        session.complete_set()
        session.set_exercise_notes(0, "  felt heavy ")
        session.skip_rest()
        session.complete_set()

        output = session.end_workout()
        assert output.notes == {0: "felt heavy"}
        assert output.data.exercises[0].completion_notes == "felt heavy"

    def test_failing_effects_do_not_interrupt(self):
        class BrokenEffects(Effects):
            def vibrate(self, pattern):
                raise RuntimeError("no vibration motor")

        session = WorkoutSession(
            _template(_strength(sets=1)), clock=ManualClock(), effects=BrokenEffects()
        )
        session.start_workout()
        session.complete_set()
        assert session.phase == Complete()


class TestSessionOwner:
    def test_second_start_rejected_without_replace(self):
        owner = SessionOwner(clock=ManualClock())
        owner.start(_template(_strength()))
        with pytest.raises(SessionConflictError):
            owner.start(_template(_strength("Squat")))

    def test_replace_ends_previous_with_partial_output(self):
        owner = SessionOwner(clock=ManualClock())
        first = owner.start(_template(_strength(sets=3)))
        first.complete_set()

        second = owner.start(_template(_strength("Squat")), replace=True)

        assert owner.current is second
        assert owner.last_output is not None
        assert len(owner.last_output.data.exercises[0].main_sets) == 1
        assert not first.is_live

    def test_finish_releases_session(self):
        owner = SessionOwner(clock=ManualClock())
        owner.start(_template(_strength()))
        output = owner.finish()

        assert output is not None
        assert owner.current is None
        owner.start(_template(_strength("Squat")))
