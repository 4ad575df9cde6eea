"""Custom exception hierarchy for the coordination core.

Every failure a workflow can surface is an `ApplicationError` subclass so the
API layer can translate it with a single handler. The `code` attribute lets
callers tell retryable conflicts apart from terminal business-rule failures.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from fastapi import status


class ApplicationError(Exception):
    """Base application error with HTTP semantics."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "application_error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            return f"{base} :: {self.details}"
        return base


class ValidationError(ApplicationError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NotFoundError(ApplicationError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class LockContentionError(ApplicationError):
    """Another operation currently holds the lock for this resource."""

    status_code = status.HTTP_409_CONFLICT
    code = "lock_contention"
    retryable = True

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Unable to acquire lock for key: {key}. Another operation is in progress.",
            details={"lock_key": key},
        )
        self.key = key


class InvalidStateError(ApplicationError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_state"


class NoPartnerAvailableError(ApplicationError):
    status_code = status.HTTP_409_CONFLICT
    code = "no_partner_available"
    retryable = True


class DocumentsNotApprovedError(ApplicationError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "documents_not_approved"

    def __init__(self, document_types: Iterable[str]) -> None:
        self.document_types = list(document_types)
        super().__init__(
            "Cannot confirm booking. Following documents are not approved: "
            + ", ".join(self.document_types),
            details={"document_types": self.document_types},
        )


class RateLimitedError(ApplicationError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    retryable = True

    def __init__(self, *, limit: int, remaining: int, reset_in_seconds: int, window_seconds: int) -> None:
        super().__init__(
            f"Rate limit exceeded. Maximum {limit} GPS updates per {window_seconds} seconds allowed.",
            details={
                "limit": limit,
                "remaining": remaining,
                "reset_in_seconds": reset_in_seconds,
            },
        )
        self.limit = limit
        self.remaining = remaining
        self.reset_in_seconds = reset_in_seconds

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
            "Retry-After": str(self.reset_in_seconds),
        }


class DependencyUnavailableError(ApplicationError):
    """A backing store could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_unavailable"
    retryable = True

    def __init__(self, dependency: str, message: str | None = None) -> None:
        super().__init__(message or f"{dependency} is unavailable", details={"dependency": dependency})
        self.dependency = dependency
