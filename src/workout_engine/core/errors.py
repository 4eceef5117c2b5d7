"""Exception types raised by the workout engine."""


class WorkoutEngineError(Exception):
    """Base exception for workout-engine errors."""
    pass


class TemplateValidationError(WorkoutEngineError, ValueError):
    """Raised when a template cannot be used to start a session."""

    def __init__(self, problems: list[str]):
        super().__init__("Invalid workout template: " + "; ".join(problems))
        self.problems = problems


class SessionConflictError(WorkoutEngineError):
    """Raised when a session is started while another one is still live."""
    pass


class HistoryFetchError(WorkoutEngineError):
    """Raised by history sources when past sessions cannot be read."""
    pass
