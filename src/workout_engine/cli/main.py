"""
CLI entry point using Typer.

Provides commands for running and reviewing workouts:
- templates: List workout templates with expected duration
- suggest: Progressive-overload suggestions for a template
- start: Run a live, guided workout in the terminal
- replay: Drive a session from a scripted list of actions
- history: Per-exercise history and personal record
- summary: Metrics for a stored session
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from . import views
from .app import app
from .commands import catalog, live, review  # noqa: F401  (registers commands)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log engine transitions and history lookups"),
    ] = False,
) -> None:
    """
    Guided live workouts with progressive-overload suggestions.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(console=views.console, rich_tracebacks=True)],
            force=True,
        )


if __name__ == "__main__":
    app()
