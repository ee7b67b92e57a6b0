"""Error taxonomy shared by use cases, infrastructure adapters and the API."""

from __future__ import annotations

from enum import Enum


class DownloadarrError(Exception):
    """Base error for the acquisition/organization domain."""


class ValidationErrorKind(str, Enum):
    NEGATIVE_MIN_SEEDERS = "negative_min_seeders"
    MAX_SIZE_TOO_SMALL = "max_size_too_small"
    NOT_A_LIST = "not_a_list"
    INVALID_VALUE = "invalid_value"
    UNKNOWN_FIELD = "unknown_field"


class ValidationError(DownloadarrError):
    """Rejected input. Message and kind are safe to surface verbatim."""

    def __init__(
        self,
        kind: ValidationErrorKind,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.field = field


class ExternalServiceError(DownloadarrError):
    """Failure talking to an external collaborator (indexer, engine, ...)."""

    def __init__(self, message: str, *, service: str | None = None) -> None:
        super().__init__(message)
        self.service = service


class TransientNetworkError(ExternalServiceError):
    """Timeouts, refused connections, DNS failures. Retried on the next cycle."""


class AuthenticationError(ExternalServiceError):
    """Credentials rejected by an external service (service unavailable)."""


class UnknownExternalError(ExternalServiceError):
    """Unexpected upstream failure; detail is logged, not surfaced."""


class RateLimitExceeded(DownloadarrError):
    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(DownloadarrError):
    pass


class InvalidTransitionError(DownloadarrError):
    """A state-machine transition that is not allowed from the current status."""


class DuplicateRequestError(DownloadarrError):
    """An active request already covers the same title."""

    def __init__(self, message: str, *, existing_request_id: str) -> None:
        super().__init__(message)
        self.existing_request_id = existing_request_id
