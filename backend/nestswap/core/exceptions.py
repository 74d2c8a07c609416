# backend/nestswap/core/exceptions.py
"""
Domain-specific exceptions for the NestSwap swap engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Each one carries an ErrorKind and a stable message category so clients
can tell "this swap is no longer available" apart from "you can't do that".
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import OperationalError

from .enums import ERROR_CATEGORIES, ErrorKind


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    @property
    def category(self) -> str:
        return ERROR_CATEGORIES[self.kind]

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    def to_http_exception(self) -> HTTPException:
        """Convert to HTTPException using the subclass status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "kind": self.kind.value,
                "category": self.category,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when swap input fails business validation."""

    kind = ErrorKind.INVALID_INPUT
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code="INVALID_INPUT",
            details={"reason": reason, **(details or {})},
        )
        self.reason = reason


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when the acting user may not perform an action."""

    kind = ErrorKind.NOT_AUTHORIZED
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="NOT_AUTHORIZED", details=details)


class UnauthorizedException(DomainException):
    """Raised when no acting user could be identified."""

    kind = ErrorKind.NOT_AUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    kind = ErrorKind.CONFLICT
    status_code = status.HTTP_409_CONFLICT


class InvalidStateException(ConflictException):
    """Raised when a transition is attempted from a status that does not allow it."""

    kind = ErrorKind.INVALID_STATE

    def __init__(
        self,
        current_status: str,
        target_status: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        details: Dict[str, Any] = {"current_status": current_status}
        if target_status:
            details["target_status"] = target_status
        super().__init__(
            message=message or f"Swap is {current_status} and can no longer be changed",
            code="SWAP_INVALID_STATE",
            details=details,
        )


class SwapConflictException(ConflictException):
    """Raised when accepting a swap would double-book a listing."""

    def __init__(
        self,
        conflicting_swap_ids: list[str],
        message: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message
            or "One of these listings is already booked for an overlapping swap",
            code="SWAP_CONFLICT",
            details={"conflicting_swap_ids": conflicting_swap_ids},
        )


class PaymentRequiredException(DomainException):
    """Raised when a subscription entitlement is missing."""

    kind = ErrorKind.PAYMENT_REQUIRED
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(
        self,
        message: str = "This feature requires an active NestSwap membership",
    ) -> None:
        super().__init__(message=message, code="SUB_REQUIRED")


class TransientException(DomainException):
    """Raised when locks or the database are temporarily unavailable. Safe to retry."""

    kind = ErrorKind.TRANSIENT
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retry_after_seconds = 2

    def __init__(
        self,
        message: str = "The swap could not be processed right now. Please retry.",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code="TRANSIENT", details=details)

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": str(self.retry_after_seconds)}
        return exc


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "kind": self.kind.value,
                "category": self.category,
                "details": self.details if self.details else {},
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


# PostgreSQL SQLSTATEs: deadlock_detected, lock_not_available, serialization_failure
_TRANSIENT_PGCODES = {"40P01", "55P03", "40001"}
_TRANSIENT_SNIPPETS = (
    "deadlock detected",
    "lock timeout",
    "could not obtain lock",
    "canceling statement due to lock timeout",
    "could not serialize access",
    "database is locked",
)


def is_transient_db_error(exc: BaseException) -> bool:
    """
    Check if a storage error is a lock/timeout failure that is safe to retry.
    """
    if isinstance(exc, OperationalError):
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode in _TRANSIENT_PGCODES:
            return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _TRANSIENT_SNIPPETS)
