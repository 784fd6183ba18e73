"""Domain exceptions raised by the progression engine.

Each exception carries the HTTP status the error handler maps it to and a
``retryable`` flag telling callers whether re-submitting the same action
(with the same idempotency key) is safe and may succeed.
"""

from __future__ import annotations


class PathwiseError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.__class__.__name__
        super().__init__(self.detail)


# --- Not found ---


class NotFoundError(PathwiseError):
    """Referenced entity does not exist."""

    status_code = 404


class LearnerNotFoundError(NotFoundError):
    """Learner not found."""


class AchievementNotFoundError(NotFoundError):
    """Achievement not found."""


class PathwayNotFoundError(NotFoundError):
    """Pathway not found."""


class PathwayModuleNotFoundError(NotFoundError):
    """Module not found."""


class ResourceNotFoundError(NotFoundError):
    """Resource not found."""


# --- Invalid input ---


class InvalidActionError(PathwiseError):
    """Unknown or malformed reward action."""

    status_code = 422


class InvalidAchievementError(PathwiseError):
    """Achievement definition is invalid."""

    status_code = 422


class InvalidCriteriaError(PathwiseError):
    """Achievement definition has criteria the evaluator cannot score."""

    status_code = 500


# --- Retryable ---


class ConcurrentModificationError(PathwiseError):
    """Learner state was modified concurrently; retry the action."""

    status_code = 409
    retryable = True


class StorageUnavailableError(PathwiseError):
    """Progress store is unavailable; no changes were applied."""

    status_code = 503
    retryable = True
