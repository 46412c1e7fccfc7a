# tutorcal/core/exceptions.py
"""
Domain-specific exceptions for the TutorCal scheduling backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a machine-readable ``code`` next to the
human-readable ``message`` so clients can branch on the reason.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

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

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when caller-supplied data is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"WWW-Authenticate": "Bearer"}
        return exc


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details,
            },
        )


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when a proposed lesson overlaps an existing non-cancelled lesson."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time overlaps another lesson. Please choose a different time.",
            code="LESSON_CONFLICT",
            details=details or {},
        )


class SlotUnavailableException(ConflictException):
    """Raised when a student picks a slot that is no longer bookable."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Selected time is no longer available. Please pick another slot.",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class LessonStateException(ConflictException):
    """Raised when a mutation is illegal for the lesson's current status."""

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if current_status is not None:
            merged["current_status"] = current_status
        super().__init__(message=message, code="LESSON_STATE", details=merged)


class AvailabilityUnverifiedException(ServiceException):
    """
    Raised when the overlap query itself failed.

    Callers must treat this as a hard stop: a failed check is never an
    implicit "the time is free".
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Failed to verify availability", *, details=None):
        super().__init__(message=message, code="AVAILABILITY_UNVERIFIED", details=details)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
