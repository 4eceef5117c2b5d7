"""Shared Typer app object, shared option types, and store utilities."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.models import WorkoutTemplate
from ..io.history_store import HistoryStore, get_default_history_path
from ..io.serializers import ValidationError
from ..io.template_store import TemplateStore, get_default_templates_dir
from . import views

DEFAULT_USER = "local"

HistoryPathOption = Annotated[
    Optional[Path],
    typer.Option("--history-path", "-p", help="Path to history JSONL file"),
]

TemplatesDirOption = Annotated[
    Optional[Path],
    typer.Option("--templates-dir", "-t", help="Directory of YAML workout templates"),
]

UserOption = Annotated[
    str,
    typer.Option("--user", "-u", help="User whose history is read and written"),
]

app = typer.Typer(
    name="workout-engine",
    help="Guided live workouts with progressive-overload suggestions.",
    no_args_is_help=True,
)


def get_store(history_path: Path | None) -> HistoryStore:
    """Get history store from path or default location."""
    if history_path is None:
        history_path = get_default_history_path()
    return HistoryStore(history_path)


def get_template_store(templates_dir: Path | None) -> TemplateStore:
    if templates_dir is None:
        templates_dir = get_default_templates_dir()
    return TemplateStore(templates_dir)


def load_template_or_exit(store: TemplateStore, name: str) -> WorkoutTemplate:
    """Load a template, printing the problem and exiting 1 if that fails."""
    try:
        return store.load_template(name)
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)
