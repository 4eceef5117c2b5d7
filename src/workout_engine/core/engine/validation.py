"""
Template validation performed before a session leaves ``idle``.
"""

from ..errors import TemplateValidationError
from ..models import WorkoutTemplate


def template_problems(template: WorkoutTemplate) -> list[str]:
    """
    Collect every reason the template cannot drive a live session.

    Args:
        template: Template to check

    Returns:
        Human-readable problems; empty when the template is usable
    """
    problems: list[str] = []

    if not template.exercises:
        problems.append("template has no exercises")

    for i, exercise in enumerate(template.exercises, 1):
        label = f"exercise {i} ({exercise.name})"
        if exercise.sets < 1:
            problems.append(f"{label} must have at least one set")
        if exercise.type == "strength" and exercise.reps_per_set == 0:
            problems.append(f"{label} has zero reps per set")
        if exercise.type == "timed" and not exercise.target_time:
            problems.append(f"{label} is timed but has no target_time")

    return problems


def validate_template(template: WorkoutTemplate) -> WorkoutTemplate:
    """
    Validate a template, raising on the first unusable one.

    Raises:
        TemplateValidationError: If any problem is found
    """
    problems = template_problems(template)
    if problems:
        raise TemplateValidationError(problems)
    return template
