"""Live session commands: start, replay, and helpers."""

import time
from typing import Annotated, Callable

import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, TextColumn

from ...core.advisor import apply_suggestions, calculate_template_overloads, get_weight_increment
from ...core.config import DEFAULT_FAILURE_REPS, TICK_INTERVAL_SECONDS
from ...core.engine.clock import ManualClock
from ...core.engine.config_loader import get_advisor_settings
from ...core.engine.effects import Effects, RecordingEffects
from ...core.engine.phases import is_resting, unwrap
from ...core.engine.session import SessionOptions, SessionOwner, SetMeasurement, WorkoutSession
from ...core.errors import SessionConflictError, TemplateValidationError
from ...core.metrics import format_rest_time
from ...core.models import ExerciseDefinition, SessionOutput, WorkoutTemplate
from ...io.history_store import HistoryStore
from ...io.serializers import ValidationError
from .. import views
from ..app import (
    DEFAULT_USER,
    HistoryPathOption,
    TemplatesDirOption,
    UserOption,
    app,
    get_store,
    get_template_store,
    load_template_or_exit,
)

ACTIVE_HELP = "[dim]" + escape(
    "[Enter] done  [N] reps/result  [+/-] weight  [w N] weight  [r N] reps"
    "  [s] skip  [p] pause  [e] end"
) + "[/dim]"

NoRestBetweenOption = Annotated[
    bool,
    typer.Option("--no-rest-between", help="Go straight to the next exercise after the last set"),
]

WaitToBeginOption = Annotated[
    bool,
    typer.Option("--wait-to-begin", help="Start in 'ready' and wait before the first set"),
]


class TerminalEffects(Effects):
    """Rings the terminal bell where a phone would vibrate."""

    def vibrate(self, pattern) -> None:
        views.console.bell()


def _measurement(exercise: ExerciseDefinition, raw: str) -> SetMeasurement | int:
    """
    Interpret a typed result for the current exercise type.

    Raises:
        ValueError: If raw is not a number
    """
    value = float(raw)
    if exercise.type == "cardio":
        return SetMeasurement(distance=value)
    if exercise.type == "timed":
        return SetMeasurement(time=int(value))
    return int(value)


def _start_session(
    template: WorkoutTemplate,
    owner: SessionOwner,
) -> WorkoutSession:
    try:
        return owner.start(template)
    except TemplateValidationError as e:
        for problem in e.problems:
            views.print_error(problem)
        raise typer.Exit(1)
    except SessionConflictError as e:
        views.print_error(str(e))
        raise typer.Exit(1)


# =============================================================================
# Interactive loop
# =============================================================================


def _run_rest(session: WorkoutSession, sleep: Callable[[float], None] = time.sleep) -> None:
    """
    Show the rest countdown until it runs out.

    Ctrl-C skips the rest instead of aborting the workout.
    """
    inner = unwrap(session.phase)
    total = session.rest_display_total() or 0

    if inner.type == "resting_between_exercises":
        nxt = session.template.exercises[inner.next_exercise_idx]  # type: ignore[union-attr]
        label = f"Rest - next: {nxt.name}"
    elif inner.type == "resting_for_failure":
        label = "Rest - failure set next"
    else:
        label = "Rest"

    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.fields[left]}"),
        console=views.console,
        transient=True,
    ) as progress:
        task = progress.add_task(label, total=max(total, 1), left="")
        try:
            while is_resting(session.phase):
                session.tick()
                remaining = session.rest_remaining()
                if remaining is None:
                    break
                progress.update(
                    task, completed=max(total - remaining, 0), left=format_rest_time(remaining)
                )
                sleep(TICK_INTERVAL_SECONDS)
        except KeyboardInterrupt:
            session.skip_rest()


def _handle_active(session: WorkoutSession, raw: str) -> None:
    state = session.current_exercise()
    if state is None:
        return
    cmd, _, arg = raw.partition(" ")
    cmd = cmd.lower()

    if raw == "":
        session.complete_set()
    elif cmd in ("+", "-"):
        increment = get_weight_increment(state.exercise.name, get_advisor_settings())
        session.adjust_weight(increment if cmd == "+" else -increment)
    elif cmd == "w":
        session.set_weight(float(arg))
    elif cmd == "r":
        session.set_reps(int(arg))
    elif cmd == "s":
        session.skip_exercise()
    elif cmd == "p":
        session.toggle_pause()
    elif cmd == "e":
        session.end_workout()
    else:
        session.complete_set(_measurement(state.exercise, raw))


def _handle_skipped_prompt(session: WorkoutSession) -> None:
    skipped = sorted(session.skipped)
    views.console.print()
    views.console.print("[bold]Skipped exercises:[/bold]")
    for n, idx in enumerate(skipped, 1):
        views.console.print(f"  \\[{n}] {session.template.exercises[idx].name}")

    raw = views.console.input("Return to # (Enter to finish): ").strip()
    if not raw:
        session.end_workout()
        return
    choice = int(raw)
    if not 1 <= choice <= len(skipped):
        raise ValueError(f"choose 1-{len(skipped)}")
    session.return_to_skipped(skipped[choice - 1])


def _run_interactive(session: WorkoutSession, notes_history: dict[str, list[str]]) -> None:
    """Drive a live session from console input until it is complete."""
    console = views.console
    shown_idx: int | None = None

    while session.is_live:
        phase = session.phase

        state = session.current_exercise()
        if state is not None and state.exercise_idx != shown_idx and phase.type in ("ready", "active"):
            shown_idx = state.exercise_idx
            views.print_previous_notes(notes_history.get(state.exercise.name.lower(), []))

        try:
            if phase.type == "paused":
                raw = console.input("[yellow]Paused.[/yellow] [Enter] resume  \\[e] end: ").strip()
                if raw.lower() == "e":
                    session.end_workout()
                else:
                    session.toggle_pause()

            elif is_resting(phase):
                if phase.type == "resting_between_exercises":
                    done = phase.completed_exercise_idx  # type: ignore[union-attr]
                    text = console.input(
                        f"Notes for {session.template.exercises[done].name} (Enter to skip): "
                    )
                    session.set_exercise_notes(done, text)
                _run_rest(session)

            elif phase.type == "ready":
                views.print_active_set(session)
                raw = console.input("Press Enter to begin (\\[e] end): ").strip()
                if raw.lower() == "e":
                    session.end_workout()
                else:
                    session.begin()

            elif phase.type == "active":
                views.print_active_set(session)
                console.print(ACTIVE_HELP)
                _handle_active(session, console.input("> ").strip())

            elif phase.type == "failure_set":
                raw = console.input(
                    "[bold]Failure set:[/bold] go to failure, then press Enter (\\[e] end): "
                ).strip()
                if raw.lower() == "e":
                    session.end_workout()
                else:
                    session.open_failure_input()

            elif phase.type == "failure_input":
                raw = console.input(f"Reps on failure set [{DEFAULT_FAILURE_REPS}]: ").strip()
                session.complete_failure_set(int(raw) if raw else DEFAULT_FAILURE_REPS)

            elif phase.type == "skipped_exercises_prompt":
                _handle_skipped_prompt(session)

        except ValueError as e:
            views.print_error(f"Invalid input: {e}")


def _save_with_retry(store: HistoryStore, output: SessionOutput, user: str) -> None:
    """Persist the output, offering a retry instead of losing the workout."""
    if not any(e.main_sets or e.failure_set for e in output.data.exercises):
        views.print_info("Nothing recorded; session not saved.")
        return

    while True:
        try:
            record = store.save_output(output, user)
        except OSError as e:
            views.print_error(f"Could not save session: {e}")
            if views.confirm_action("Retry?"):
                continue
            views.print_warning("Session was not saved.")
            raise typer.Exit(1)
        views.print_success(f"Saved session {record.id[:8]} to {store.history_path}")
        return


@app.command()
def start(
    template_name: Annotated[str, typer.Argument(help="Template name, id or file slug")],
    templates_dir: TemplatesDirOption = None,
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
    use_suggestions: Annotated[
        bool,
        typer.Option("--suggest", "-s", help="Apply progressive-overload suggestions first"),
    ] = False,
    no_rest_between: NoRestBetweenOption = False,
    wait_to_begin: WaitToBeginOption = False,
) -> None:
    """
    Run a live, guided workout in the terminal.

    Enter completes a set with the shown target; a number records that
    result instead.  Ctrl-C during a rest skips the rest.  The finished (or
    ended) session is saved to history.
    """
    template = load_template_or_exit(get_template_store(templates_dir), template_name)
    store = get_store(history_path)

    if use_suggestions:
        suggestions = calculate_template_overloads(
            store, user, template, settings=get_advisor_settings()
        )
        views.print_suggestions(template, suggestions)
        template = apply_suggestions(template, suggestions)

    try:
        notes_history = store.load_exercise_notes_history(template, user)
    except (OSError, ValidationError) as e:
        views.print_warning(f"Could not read past notes: {e}")
        notes_history = {}

    owner = SessionOwner(
        effects=TerminalEffects(),
        options=SessionOptions(
            rest_between_exercises=not no_rest_between,
            auto_start=not wait_to_begin,
        ),
    )
    session = _start_session(template, owner)

    try:
        _run_interactive(session, notes_history)
    except (KeyboardInterrupt, EOFError):
        views.console.print()
        views.print_warning("Input closed; ending workout with the sets recorded so far.")

    output = owner.finish()
    if output is None:
        return
    views.print_output(output)
    _save_with_retry(store, output, user)


# =============================================================================
# Scripted replay
# =============================================================================


def _replay_step(session: WorkoutSession, clock: ManualClock, token: str) -> None:
    """
    Apply one scripted action.

    Raises:
        ValueError: If the action or its argument is invalid
    """
    cmd, _, arg = token.partition(" ")
    arg = arg.strip()

    if cmd == "set":
        state = session.current_exercise()
        session.complete_set(_measurement(state.exercise, arg) if arg and state else None)
    elif cmd == "wait":
        for _ in range(int(round(float(arg) / TICK_INTERVAL_SECONDS))):
            clock.advance(TICK_INTERVAL_SECONDS)
            session.tick()
    elif cmd == "skip-rest":
        session.skip_rest()
    elif cmd == "failure":
        if session.phase.type == "failure_set":
            session.open_failure_input()
        session.complete_failure_set(int(arg) if arg else DEFAULT_FAILURE_REPS)
    elif cmd in ("pause", "resume"):
        session.toggle_pause()
    elif cmd == "skip":
        session.skip_exercise(int(arg) - 1 if arg else None)
    elif cmd == "return":
        session.return_to_skipped(int(arg) - 1)
    elif cmd == "begin":
        session.begin()
    elif cmd == "weight":
        session.set_weight(float(arg))
    elif cmd == "reps":
        session.set_reps(int(arg))
    elif cmd == "note":
        number, _, text = arg.partition(" ")
        session.set_exercise_notes(int(number) - 1, text)
    elif cmd == "end":
        session.end_workout()
    else:
        raise ValueError(f"unknown action {cmd!r}")


@app.command()
def replay(
    template_name: Annotated[str, typer.Argument(help="Template name, id or file slug")],
    actions: Annotated[
        str,
        typer.Option(
            "--actions",
            "-a",
            help=(
                "Comma-separated actions: set [N], wait SECONDS, skip-rest, failure [N], "
                "pause, resume, skip [#], return #, begin, weight W, reps N, note # TEXT, end"
            ),
        ),
    ],
    templates_dir: TemplatesDirOption = None,
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
    save: Annotated[
        bool,
        typer.Option("--save", help="Append the resulting session to history"),
    ] = False,
    no_rest_between: NoRestBetweenOption = False,
    wait_to_begin: WaitToBeginOption = False,
) -> None:
    """
    Run a session from a script on a simulated clock and print the result.

    Useful for checking templates and for reproducing a workout exactly.
    """
    template = load_template_or_exit(get_template_store(templates_dir), template_name)

    clock = ManualClock()
    effects = RecordingEffects()
    owner = SessionOwner(
        clock=clock,
        effects=effects,
        options=SessionOptions(
            rest_between_exercises=not no_rest_between,
            auto_start=not wait_to_begin,
        ),
    )
    session = _start_session(template, owner)
    views.console.print(f"{'start':<16} {views.phase_line(session)}")

    for token in (t.strip() for t in actions.split(",")):
        if not token:
            continue
        try:
            _replay_step(session, clock, token)
        except (ValueError, IndexError) as e:
            views.print_error(f"Bad action {token!r}: {e}")
            raise typer.Exit(1)
        views.console.print(f"{token:<16} {views.phase_line(session)}", markup=False)

    output = owner.finish()
    if output is None:
        return
    views.print_output(output)
    views.console.print(f"Haptic cues: {len(effects.patterns)}")

    if save:
        _save_with_retry(get_store(history_path), output, user)
