"""Exceptions raised at the claims workflow action boundaries."""


class ClaimWorkflowError(Exception):
    """Base error; ``reason`` is the user-facing explanation."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class CollaboratorError(ClaimWorkflowError):
    """A backend call failed or timed out. Never retried."""

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(reason)
        self.status_code = status_code


class ClaimValidationError(ClaimWorkflowError):
    """An action was blocked by missing or invalid input."""


class StatusTransitionError(ClaimWorkflowError):
    """A claim status change violated the lifecycle rules."""


class DraftStorageError(ClaimWorkflowError):
    """The local draft store could not be written."""
