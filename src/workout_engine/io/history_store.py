"""
JSONL-based history storage for workout sessions.

Handles reading, writing, and querying the session history file.  The store
is also the advisor's history source (``fetch_recent_sessions``).
"""

import logging
from pathlib import Path

from ..core.config import HISTORY_VIEW_LOOKBACK
from ..core.errors import HistoryFetchError
from ..core.models import HistoricalSession, SessionOutput, WorkoutTemplate
from .serializers import (
    ValidationError,
    json_line_to_session,
    output_to_historical_session,
    session_to_json_line,
)

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Manages workout history stored in JSONL format.

    The history file contains one JSON object per line, one line per
    session.  Sessions of every user share the file; queries filter by
    ``user_id``.
    """

    def __init__(self, history_path: str | Path):
        """
        Initialize the history store.

        Args:
            history_path: Path to the JSONL history file
        """
        self.history_path = Path(history_path)

    def exists(self) -> bool:
        """Check if the history file exists."""
        return self.history_path.exists()

    def init(self) -> None:
        """
        Initialize empty history file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.history_path.parent.mkdir(parents=True, exist_ok=True)

        if not self.history_path.exists():
            self.history_path.touch()

    def load_sessions(self) -> list[HistoricalSession]:
        """
        Load all sessions from the history file.

        Returns:
            List of HistoricalSession, oldest first; empty if the file is missing

        Raises:
            ValidationError: If a line cannot be parsed
        """
        if not self.history_path.exists():
            return []

        sessions: list[HistoricalSession] = []

        with open(self.history_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    sessions.append(json_line_to_session(line))
                except ValidationError as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.history_path}: {e}"
                    ) from e

        sessions.sort(key=lambda s: s.started_at)

        return sessions

    def sessions_for_user(self, user_id: str) -> list[HistoricalSession]:
        """All sessions of one user, oldest first."""
        return [s for s in self.load_sessions() if s.user_id == user_id]

    def append_session(self, session: HistoricalSession) -> None:
        """
        Append a session to the history file.

        Args:
            session: Session to append
        """
        self.init()
        with open(self.history_path, "a", encoding="utf-8") as f:
            f.write(session_to_json_line(session) + "\n")
        logger.debug("Appended session %s to %s", session.id, self.history_path)

    def save_output(self, output: SessionOutput, user_id: str) -> HistoricalSession:
        """
        Persist a finished session's output.

        Args:
            output: What WorkoutSession.end_workout() returned
            user_id: Owner of the session

        Returns:
            The stored record
        """
        session = output_to_historical_session(output, user_id)
        self.append_session(session)
        return session

    def fetch_recent_sessions(
        self, user_id: str, exercise_name: str, limit: int
    ) -> list[HistoricalSession]:
        """
        Completed sessions of a user that contain an exercise, newest first.

        Args:
            user_id: Owner of the sessions
            exercise_name: Exercise to look for (case-insensitive)
            limit: Maximum number of sessions returned

        Raises:
            HistoryFetchError: If the history file cannot be read
        """
        try:
            sessions = self.load_sessions()
        except (OSError, ValidationError) as e:
            raise HistoryFetchError(str(e)) from e

        matching = [
            s for s in sessions
            if s.user_id == user_id
            and s.completed_at is not None
            and s.find_exercise(exercise_name) is not None
        ]
        matching.reverse()
        return matching[:limit]

    def load_exercise_notes_history(
        self,
        template: WorkoutTemplate,
        user_id: str,
        limit: int = HISTORY_VIEW_LOOKBACK,
    ) -> dict[str, list[str]]:
        """
        Notes left on each exercise in past runs of a template.

        Sessions are matched by template id, or by name when the template
        has no id.  Keys are lower-cased exercise names; notes are newest
        first.
        """
        notes: dict[str, list[str]] = {}

        runs = [
            s for s in reversed(self.sessions_for_user(user_id))
            if s.completed_at is not None
            and (
                s.template_id == template.id
                if template.id is not None
                else s.template_name == template.name
            )
        ]
        for session in runs[:limit]:
            for exercise in session.data.exercises:
                if exercise.completion_notes:
                    notes.setdefault(exercise.name.lower(), []).append(exercise.completion_notes)

        return notes

    def get_session(self, index: int, user_id: str | None = None) -> HistoricalSession:
        """
        Session by 0-based index, newest first (0 = most recent).

        Raises:
            IndexError: If index is out of range
        """
        sessions = self.load_sessions() if user_id is None else self.sessions_for_user(user_id)
        sessions.reverse()
        if index < 0 or index >= len(sessions):
            raise IndexError(f"Session index {index} out of range ({len(sessions)} sessions)")
        return sessions[index]


def get_data_dir() -> Path:
    """Directory holding history and templates (~/.workout-engine)."""
    return Path.home() / ".workout-engine"


def get_default_history_path() -> Path:
    """
    Get the default history file path.

    Returns:
        Default history path
    """
    return get_data_dir() / "history.jsonl"
