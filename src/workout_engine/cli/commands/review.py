"""Review commands: history, summary."""

import json
from dataclasses import asdict
from typing import Annotated

import typer

from ...core.advisor import get_exercise_history
from ...core.metrics import calculate_workout_volume, get_volume_label
from ...io.serializers import ValidationError
from .. import views
from ..app import DEFAULT_USER, HistoryPathOption, UserOption, app, get_store


@app.command()
def history(
    exercise: Annotated[
        str,
        typer.Option("--exercise", "-e", help="Exercise name (case-insensitive)"),
    ],
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Number of sessions to show"),
    ] = 10,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Show recent sessions and the personal record for one exercise.
    """
    store = get_store(history_path)
    result = get_exercise_history(store, user, exercise, limit=limit)

    if json_out:
        print(json.dumps(asdict(result), indent=2))
        return

    views.print_exercise_history(result)


@app.command()
def summary(
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
    index: Annotated[
        int,
        typer.Option("--index", "-i", help="Session to show, 1 = most recent"),
    ] = 1,
    json_out: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON for machine processing"),
    ] = False,
) -> None:
    """
    Show volume, distance, time and per-exercise results of a stored session.
    """
    store = get_store(history_path)

    try:
        session = store.get_session(index - 1, user_id=user)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    except IndexError:
        views.print_error(f"No session #{index} for user {user!r}.")
        raise typer.Exit(1)

    if json_out:
        volume = calculate_workout_volume(session.data.exercises)
        output = {
            "id": session.id,
            "template_name": session.template_name,
            "started_at": session.started_at,
            "duration": session.duration,
            "label": get_volume_label(session.data.exercises),
            "volume": asdict(volume),
        }
        print(json.dumps(output, indent=2))
        return

    views.print_session(session)
