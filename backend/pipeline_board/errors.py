from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class StoreError(Exception):
    """Base error raised by Opportunity/View/Preference store implementations.

    The HTTP layer renders these into RFC7807 problem-details responses; the
    mutation coordinator treats any of them as a write failure.
    """

    message: str
    operation: str | None = None
    store: str | None = None
    key: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class StoreNotFound(StoreError):
    pass


@dataclass(slots=True)
class StoreConflict(StoreError):
    pass


@dataclass(slots=True)
class StoreValidation(StoreError):
    pass


@dataclass(slots=True)
class StoreUnavailable(StoreError):
    retryable: bool = True


@dataclass(slots=True)
class BoardError(Exception):
    """Base error for engine-level failures that callers may want to surface."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class WriteFailure(BoardError):
    """The Opportunity Store rejected an optimistic mutation; local state was rolled back."""

    opportunity_id: str | None = None
    mutation: Any = None
    retryable: bool = True
    cause: Exception | None = None


@dataclass(slots=True)
class ViewNotFound(BoardError):
    view_id: str | None = None


@dataclass(slots=True)
class ActivationFailed(BoardError):
    view_id: str | None = None
    cause: Exception | None = None


@dataclass(slots=True)
class ViewLimitExceeded(BoardError):
    limit: int = 0
