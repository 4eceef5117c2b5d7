"""
YAML → typed config loader.

Merges an optional user override file over the Python defaults from
config.py.  The override lives at ~/.workout-engine/engine.yaml, or at the
path named by the WORKOUT_ENGINE_CONFIG environment variable.

Usage:
    from workout_engine.core.engine.config_loader import get_advisor_settings
    settings = get_advisor_settings()
    settings.increment_for("Barbell Squat")   # 2.5

Example override file:

    advisor:
      compound_increment_kg: 5.0
      compound_movements: [squat, deadlift, clean]

If the override file has parse errors, a warning is issued and the file is
ignored (defaults apply).
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..config import (
    COMPOUND_INCREMENT_KG,
    COMPOUND_MOVEMENTS,
    HISTORY_FETCH_ATTEMPTS,
    HISTORY_FETCH_LIMIT,
    ISOLATION_INCREMENT_KG,
    SUMMARY_LIMIT,
)

CONFIG_ENV_VAR = "WORKOUT_ENGINE_CONFIG"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _defaults() -> dict[str, Any]:
    return {
        "advisor": {
            "compound_increment_kg": COMPOUND_INCREMENT_KG,
            "isolation_increment_kg": ISOLATION_INCREMENT_KG,
            "compound_movements": list(COMPOUND_MOVEMENTS),
            "history_fetch_limit": HISTORY_FETCH_LIMIT,
            "summary_limit": SUMMARY_LIMIT,
            "history_fetch_attempts": HISTORY_FETCH_ATTEMPTS,
        },
    }


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; warn and return {} if it is unusable."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"workout-engine: ignoring config {path} ({exc})", stacklevel=3)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        warnings.warn(
            f"workout-engine: ignoring config {path} (top level must be a mapping)",
            stacklevel=3,
        )
        return {}
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_user_config_path() -> Path | None:
    """Return the override file path if it exists, else None."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path).expanduser()
        return p if p.exists() else None
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".workout-engine" / "engine.yaml"
    return p if p.exists() else None


def load_engine_config(path: Path | None = None) -> dict[str, Any]:
    """
    Load the effective engine configuration.

    Args:
        path: Explicit override file; defaults to get_user_config_path()

    Returns:
        Defaults deep-merged with the override file (if any)
    """
    config = _defaults()
    source = path if path is not None else get_user_config_path()
    if source is not None:
        config = _deep_merge(config, _load_yaml_file(source))
    return config


@dataclass(frozen=True)
class AdvisorSettings:
    """Effective advisor tuning after overrides."""

    compound_increment_kg: float = COMPOUND_INCREMENT_KG
    isolation_increment_kg: float = ISOLATION_INCREMENT_KG
    compound_movements: tuple[str, ...] = COMPOUND_MOVEMENTS
    history_fetch_limit: int = HISTORY_FETCH_LIMIT
    summary_limit: int = SUMMARY_LIMIT
    history_fetch_attempts: int = HISTORY_FETCH_ATTEMPTS

    def increment_for(self, exercise_name: str) -> float:
        """Weight step for an exercise: compound substrings get the bigger one."""
        lowered = exercise_name.lower()
        if any(c in lowered for c in self.compound_movements):
            return self.compound_increment_kg
        return self.isolation_increment_kg


def get_advisor_settings(path: Path | None = None) -> AdvisorSettings:
    """Build AdvisorSettings from the merged configuration."""
    section = load_engine_config(path).get("advisor", {})
    if not isinstance(section, dict):
        warnings.warn("workout-engine: 'advisor' config must be a mapping; using defaults", stacklevel=2)
        return AdvisorSettings()
    try:
        return AdvisorSettings(
            compound_increment_kg=float(section["compound_increment_kg"]),
            isolation_increment_kg=float(section["isolation_increment_kg"]),
            compound_movements=tuple(str(m).lower() for m in section["compound_movements"]),
            history_fetch_limit=int(section["history_fetch_limit"]),
            summary_limit=int(section["summary_limit"]),
            history_fetch_attempts=max(1, int(section["history_fetch_attempts"])),
        )
    except (KeyError, TypeError, ValueError) as exc:
        warnings.warn(f"workout-engine: invalid advisor config ({exc}); using defaults", stacklevel=2)
        return AdvisorSettings()
