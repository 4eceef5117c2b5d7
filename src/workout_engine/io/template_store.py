"""
YAML workout templates.

A template directory holds one ``<slug>.yaml`` file per template:

    name: Push Day
    id: push-day
    exercises:
      - name: Bench Press
        sets: 3
        reps_per_set: 8
        weight: 60
        rest_time: 120
        to_failure: true
      - name: Plank
        type: timed
        sets: 2
        target_time: 45
        rest_time: 30
"""

import logging
import re
from pathlib import Path

import yaml

from ..core.models import WorkoutTemplate
from .history_store import get_data_dir
from .serializers import ValidationError, dict_to_template, template_to_dict

logger = logging.getLogger(__name__)


def slugify(name: str) -> str:
    """File-name-safe form of a template name ("Push Day" -> "push-day")."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "template"


class TemplateStore:
    """Reads and writes workout templates in a directory of YAML files."""

    def __init__(self, templates_dir: str | Path):
        self.templates_dir = Path(templates_dir)

    def _paths(self) -> list[Path]:
        if not self.templates_dir.is_dir():
            return []
        return sorted(
            p for p in self.templates_dir.iterdir()
            if p.suffix in (".yaml", ".yml") and p.is_file()
        )

    def _read(self, path: Path) -> WorkoutTemplate:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}") from e
        try:
            return dict_to_template(data)
        except ValidationError as e:
            raise ValidationError(f"{path.name}: {e}") from e

    def list_templates(self) -> list[WorkoutTemplate]:
        """
        All readable templates, sorted by file name.

        Unreadable files are skipped with a warning so one broken file does
        not hide the rest.
        """
        templates = []
        for path in self._paths():
            try:
                templates.append(self._read(path))
            except ValidationError as e:
                logger.warning("Skipping template %s: %s", path, e)
        return templates

    def load_template(self, name_or_id: str) -> WorkoutTemplate:
        """
        Find a template by id, name (case-insensitive) or file slug.

        Raises:
            FileNotFoundError: If no template matches
            ValidationError: If the matching file is malformed
        """
        direct = self.templates_dir / f"{slugify(name_or_id)}.yaml"
        if direct.exists():
            return self._read(direct)

        wanted = name_or_id.lower()
        for template in self.list_templates():
            if template.id == name_or_id or template.name.lower() == wanted:
                return template

        raise FileNotFoundError(
            f"Template {name_or_id!r} not found in {self.templates_dir}"
        )

    def save_template(self, template: WorkoutTemplate, overwrite: bool = True) -> Path:
        """
        Write a template to ``<slug>.yaml``.

        Args:
            template: Template to save
            overwrite: Replace an existing file of the same slug

        Returns:
            Path written

        Raises:
            FileExistsError: If the file exists and overwrite is False
        """
        self.templates_dir.mkdir(parents=True, exist_ok=True)
        path = self.templates_dir / f"{slugify(template.name)}.yaml"
        if path.exists() and not overwrite:
            raise FileExistsError(f"Template file already exists: {path}")

        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(template_to_dict(template), f, sort_keys=False, allow_unicode=True)
        logger.debug("Saved template %r to %s", template.name, path)
        return path


def get_default_templates_dir() -> Path:
    return get_data_dir() / "templates"
