"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of templates, suggestions, history
and the live session screens.
"""

from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.engine.phases import unwrap
from ..core.engine.session import WorkoutSession
from ..core.metrics import (
    calculate_workout_volume,
    format_rest_time,
    format_time,
    get_volume_label,
    is_last_exercise,
    is_last_set,
)
from ..core.models import (
    CompletedExercise,
    ExerciseDefinition,
    ExerciseHistory,
    HistoricalSession,
    ProgressiveSuggestion,
    SessionOutput,
    WorkoutTemplate,
)

console = Console()


def _fmt_weight(weight: float | None) -> str:
    if weight is None:
        return "-"
    return f"{weight:g} kg"


def describe_target(exercise: ExerciseDefinition) -> str:
    """One-line prescription, e.g. "3 x 8 @ 60 kg + failure" or "2 x 0:45"."""
    if exercise.type == "cardio":
        parts = []
        if exercise.distance is not None:
            parts.append(f"{exercise.distance:g} {exercise.distance_unit or 'km'}")
        if exercise.target_time:
            parts.append(format_time(exercise.target_time))
        return " in ".join(parts) or "cardio"

    if exercise.type == "timed":
        text = f"{exercise.sets} x {format_time(exercise.target_time or 0)}"
        if exercise.weight:
            text += f" @ {_fmt_weight(exercise.weight)}"
        return text

    text = f"{exercise.sets} x {exercise.reps_per_set or '?'}"
    if exercise.weight:
        text += f" @ {_fmt_weight(exercise.weight)}"
    if exercise.to_failure:
        text += " + failure"
    return text


# =============================================================================
# Templates and suggestions
# =============================================================================


def format_templates_table(
    templates: Sequence[WorkoutTemplate],
    durations: dict[str, tuple[int, bool]],
) -> Table:
    """
    Create a Rich table listing templates.

    Args:
        templates: Templates to list
        durations: Template name -> (seconds, is_historical_average)
    """
    table = Table(title="Workout Templates")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Name", style="cyan")
    table.add_column("Exercises", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Description", style="dim")

    for i, template in enumerate(templates, 1):
        seconds, historical = durations.get(template.name, (0, False))
        count = len(template.exercises)
        table.add_row(
            str(i),
            template.name,
            f"{count} {'exercise' if count == 1 else 'exercises'}",
            ("" if historical else "~") + format_time(seconds),
            template.description or "",
        )

    return table


def print_templates(
    templates: Sequence[WorkoutTemplate],
    durations: dict[str, tuple[int, bool]],
) -> None:
    if not templates:
        console.print("[yellow]No templates found.[/yellow]")
        return
    console.print(format_templates_table(templates, durations))
    console.print("[dim]~ estimated; no prefix: average of completed sessions[/dim]")


def format_suggestions_table(
    template: WorkoutTemplate,
    suggestions: dict[str, ProgressiveSuggestion],
) -> Table:
    table = Table(title=f"Suggestions: {template.name}")

    table.add_column("Exercise", style="cyan")
    table.add_column("Current", justify="right")
    table.add_column("Suggested", justify="right", style="bold")
    table.add_column("Action", style="magenta")
    table.add_column("Reason")

    for exercise in template.exercises:
        suggestion = suggestions.get(exercise.name)
        if suggestion is None:
            continue

        if suggestion.should_increase:
            action = "[green]increase[/green]"
        elif suggestion.should_add_test_set:
            action = "[yellow]test set[/yellow]"
        else:
            action = "keep"

        table.add_row(
            exercise.name,
            _fmt_weight(exercise.weight or 0),
            _fmt_weight(suggestion.suggested_weight),
            action,
            suggestion.reason,
        )

    return table


def print_suggestions(
    template: WorkoutTemplate,
    suggestions: dict[str, ProgressiveSuggestion],
) -> None:
    console.print(format_suggestions_table(template, suggestions))


# =============================================================================
# History
# =============================================================================


def print_exercise_history(history: ExerciseHistory) -> None:
    """
    Print the recent digests and personal record for one exercise.

    Args:
        history: ExerciseHistory from the advisor
    """
    if not history.sessions:
        console.print(f"[yellow]No sessions recorded for {history.exercise_name}.[/yellow]")
        return

    table = Table(title=f"History: {history.exercise_name}")

    table.add_column("Date", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Sets", justify="right")
    table.add_column("Avg reps", justify="right")
    table.add_column("On target", justify="center")
    table.add_column("Failure", justify="right", style="bold")

    for summary in history.sessions:
        table.add_row(
            summary.date[:10],
            _fmt_weight(summary.weight),
            str(summary.sets),
            f"{summary.avg_reps:.1f}",
            "[green]yes[/green]" if summary.all_target_hit else "no",
            str(summary.failure_reps) if summary.has_failure_set else "-",
        )

    console.print(table)

    record = history.personal_record
    if record is not None:
        console.print(
            f"Personal record: [bold]{_fmt_weight(record.weight)} x {record.reps}[/bold]"
            f" ({record.date[:10]})"
        )


def format_exercises_table(exercises: Sequence[CompletedExercise], title: str) -> Table:
    table = Table(title=title)

    table.add_column("Exercise", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Sets", justify="right")
    table.add_column("Result")
    table.add_column("Notes", style="dim")

    for exercise in exercises:
        sets = len(exercise.main_sets) + (1 if exercise.failure_set is not None else 0)
        if exercise.type == "strength":
            result = ", ".join(
                f"{s.reps or 0}@{s.weight or 0:g}" for s in exercise.main_sets
            )
            if exercise.failure_set is not None:
                result += f" | F {exercise.failure_set.reps or 0}"
        elif exercise.type == "cardio":
            result = ", ".join(
                f"{s.distance or 0:g} {exercise.distance_unit or 'km'} / {format_time(s.time or 0)}"
                for s in exercise.main_sets
            )
        else:
            result = ", ".join(format_time(s.time or 0) for s in exercise.main_sets)

        table.add_row(
            exercise.name,
            exercise.type,
            f"{sets}/{exercise.target_sets}",
            result or "-",
            exercise.completion_notes or "",
        )

    return table


def print_workout_summary(
    title: str,
    exercises: Sequence[CompletedExercise],
    duration: int | None,
    completed: bool,
) -> None:
    """
    Print aggregate metrics and a per-exercise table for one session.

    Args:
        title: Heading (template name)
        exercises: Completed exercises
        duration: Elapsed seconds, or None if unknown
        completed: Whether every exercise was finished
    """
    volume = calculate_workout_volume(exercises)

    console.print()
    status = "[green]Workout complete[/green]" if completed else "[yellow]Ended early[/yellow]"
    console.print(f"[bold]{title}[/bold]  {status}")
    console.print(f"  Headline: [bold]{get_volume_label(exercises)}[/bold]")
    console.print(f"  Duration: {format_time(duration) if duration else '--'}")
    console.print(f"  Sets: {volume.total_sets}   Reps: {volume.total_reps}")
    if volume.weight_volume:
        console.print(f"  Volume: {volume.weight_volume:,.0f} kg")
    if volume.total_distance:
        console.print(f"  Distance: {volume.total_distance:.1f} {volume.distance_unit}")
    if volume.total_time:
        console.print(f"  Timed work: {format_time(volume.total_time)}")
    console.print(format_exercises_table(exercises, "Exercises"))


def print_output(output: SessionOutput) -> None:
    print_workout_summary(
        output.template.name, output.data.exercises, output.duration, output.completed
    )


def print_session(session: HistoricalSession) -> None:
    print_workout_summary(
        f"{session.template_name} ({session.started_at[:10]})",
        session.data.exercises,
        session.duration,
        completed=session.completed_at is not None,
    )


# =============================================================================
# Live session
# =============================================================================


def phase_line(session: WorkoutSession) -> str:
    """Short status line for the current phase, e.g. "active  Squat 2/3"."""
    phase = session.phase
    inner = unwrap(phase)
    label = f"paused ({inner.type})" if phase.type == "paused" else phase.type

    state = session.current_exercise()
    if state is None:
        return label

    text = f"{label}  {state.exercise.name}"
    if inner.type in ("ready", "active", "resting"):
        text += f" {state.set_idx + 1}/{state.exercise.sets}"
    remaining = session.rest_remaining()
    if remaining is not None:
        text += f"  rest {format_rest_time(remaining)}"
    return text


def print_active_set(session: WorkoutSession) -> None:
    state = session.current_exercise()
    if state is None:
        return
    exercise = state.exercise
    progress = session.progress() or {}

    console.print()
    console.print(
        f"[bold cyan]{exercise.name}[/bold cyan]  "
        f"exercise {progress.get('current_exercise')}/{progress.get('total_exercises')}  "
        f"set {progress.get('current_set')}/{progress.get('total_sets')}  "
        f"[dim]{format_time(session.elapsed_seconds)} elapsed[/dim]"
    )
    if exercise.type == "strength":
        console.print(
            f"  Target: [bold]{state.current_reps} reps @ {_fmt_weight(state.current_weight)}[/bold]"
        )
    else:
        console.print(f"  Target: [bold]{describe_target(exercise)}[/bold]")
    if exercise.notes:
        console.print(f"  [dim]{escape(exercise.notes)}[/dim]")
    exercises = session.template.exercises
    if is_last_set(state.exercise_idx, state.set_idx, exercises):
        if is_last_exercise(state.exercise_idx, exercises):
            console.print("  [yellow]Final set of the workout[/yellow]")
        else:
            console.print("  [yellow]Last set[/yellow]")


def print_previous_notes(notes: list[str]) -> None:
    if notes:
        console.print(f"  [dim]Last time: {escape(notes[0])}[/dim]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} \\[y/N]: ")
    return response.lower() in ("y", "yes")
