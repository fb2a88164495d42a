"""
Exception taxonomy for the survey definition engine.

Structural problems in a question graph are NOT exceptions: they are
returned as Violation records (see surveydef.graph). The classes here cover
the conditions that stop an operation outright.
"""

from typing import List, Optional


class SurveyDefError(Exception):
    """Base class for all engine errors."""
    pass


class ValidationError(SurveyDefError):
    """Raised when publish is blocked by structural violations."""

    def __init__(self, violations: List, message: Optional[str] = None):
        self.violations = list(violations)
        if message is None:
            message = f"Version has {len(self.violations)} structural violation(s)"
        super().__init__(message)


class VersionNotFoundError(SurveyDefError):
    """Raised when a version number does not exist in the survey."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Version {version} not found")


class SurveyNotFoundError(SurveyDefError):
    """Raised when the persistence collaborator has no survey for an id."""

    def __init__(self, survey_id: str):
        self.survey_id = survey_id
        super().__init__(f"Survey {survey_id} not found")


class VersionStateError(SurveyDefError):
    """Raised for an illegal lifecycle transition."""

    def __init__(self, version: int, status: str, action: str):
        self.version = version
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} version {version} in status '{status}'")


class ConflictError(SurveyDefError):
    """Raised by the persistence collaborator when a compare-and-set loses a race."""

    def __init__(self, survey_id: str, expected_revision: int, actual_revision: Optional[int] = None):
        self.survey_id = survey_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
        super().__init__(
            f"Survey {survey_id} changed concurrently "
            f"(expected revision {expected_revision}, found {actual_revision})"
        )


class ConfigError(SurveyDefError):
    """Raised when engine configuration is invalid."""
    pass


class SerializationError(SurveyDefError):
    """Raised when a snapshot cannot be decoded."""
    pass
