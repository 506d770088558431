"""
Exception hierarchy for the Lifecycle Engine.

Every exception carries a machine-readable ``code`` so the request
surface can map failures to responses without string matching.
"""

from typing import Optional


class LifecycleEngineError(Exception):
    """Base exception for all lifecycle engine errors."""

    code: str = "LIFECYCLE_ENGINE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LifecycleValidationError(LifecycleEngineError):
    """Request is missing required fields or carries invalid values."""

    code: str = "VALIDATION_ERROR"


class LifecycleConflictError(LifecycleEngineError):
    """An active lifecycle of the same type already exists for the employee."""

    code: str = "CONFLICT"

    def __init__(self, message: str, existing_id: Optional[str] = None):
        self.existing_id = existing_id
        super().__init__(message)


class LifecycleNotFoundError(LifecycleEngineError):
    """Lifecycle, task or checklist item does not exist."""

    code: str = "NOT_FOUND"


class InvalidTaskTransitionError(LifecycleEngineError):
    """Requested task transition is not allowed from the current state."""

    code: str = "INVALID_TRANSITION"


class ConcurrentModificationError(LifecycleEngineError):
    """Lifecycle was saved by someone else since it was loaded."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, lifecycle_id: str, expected_version: int, actual_version: int):
        self.lifecycle_id = lifecycle_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Lifecycle {lifecycle_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class ExternalDependencyError(LifecycleEngineError):
    """A collaborator (payroll, user directory) failed or timed out."""

    code: str = "EXTERNAL_DEPENDENCY_ERROR"

    def __init__(self, system: str, message: str):
        self.system = system
        super().__init__(f"{system}: {message}")
