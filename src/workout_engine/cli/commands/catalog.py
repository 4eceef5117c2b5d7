"""Template commands: templates, suggest."""

from dataclasses import replace
from typing import Annotated, Optional

import typer

from ...core.advisor import apply_suggestions, calculate_template_overloads
from ...core.engine.config_loader import get_advisor_settings
from ...core.metrics import estimate_template_duration
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


@app.command()
def templates(
    templates_dir: TemplatesDirOption = None,
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
) -> None:
    """
    List workout templates with their expected duration.

    Duration is the average of fully completed past sessions when there are
    any, otherwise an estimate from sets and rest times (shown with ~).
    """
    template_store = get_template_store(templates_dir)
    store = get_store(history_path)

    try:
        sessions = store.sessions_for_user(user)
    except ValidationError as e:
        views.print_warning(f"Ignoring history: {e}")
        sessions = []

    items = template_store.list_templates()
    durations = {t.name: estimate_template_duration(t, sessions) for t in items}
    views.print_templates(items, durations)


@app.command()
def suggest(
    template_name: Annotated[str, typer.Argument(help="Template name, id or file slug")],
    templates_dir: TemplatesDirOption = None,
    history_path: HistoryPathOption = None,
    user: UserOption = DEFAULT_USER,
    apply: Annotated[
        bool,
        typer.Option("--apply", "-a", help="Write the suggested weights to the template"),
    ] = False,
    save_as: Annotated[
        Optional[str],
        typer.Option("--save-as", help="With --apply, save as a new template with this name"),
    ] = None,
) -> None:
    """
    Suggest working weights for every exercise of a template.
    """
    template_store = get_template_store(templates_dir)
    template = load_template_or_exit(template_store, template_name)

    suggestions = calculate_template_overloads(
        get_store(history_path), user, template, settings=get_advisor_settings()
    )
    views.print_suggestions(template, suggestions)

    if any(s.should_add_test_set for s in suggestions.values()):
        views.print_info(
            "Test set: after your main sets, do one extra set to failure at the same weight."
        )

    if not apply:
        return

    adjusted = apply_suggestions(template, suggestions)
    if save_as:
        adjusted = replace(adjusted, name=save_as, id=None)

    if adjusted == template:
        views.print_info("No weight changes to apply.")
        return

    path = template_store.save_template(adjusted)
    views.print_success(f"Saved {adjusted.name!r} to {path}")
