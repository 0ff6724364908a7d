# backend/gymbook/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

Services raise these; the API layer renders them as
``{"success": false, "error": message, "code": code}`` with the message verbatim.
"""

from typing import Any, Dict, Optional

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationException(DomainException):
    """Raised when request arguments are missing or malformed."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "invalid-argument"


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "unauthenticated"


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "permission-denied"


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not-found"


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE
    default_code = "failed-precondition"


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    default_code = "internal"


# Specific business exceptions


class BookingConflictException(ConflictException):
    """Raised when the member already holds a live record for the session."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Member is already booked in this class.",
            code="already-booked",
            details=details or {},
        )


class EligibilityDeniedException(BusinessRuleException):
    """Raised when the eligibility resolver denies a booking."""

    def __init__(self, reason: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=reason, code="booking-denied", details=details or {})


class InsufficientCreditsException(BusinessRuleException):
    """Raised when a debit would take a balance below zero."""

    def __init__(self, required: int, available: int):
        super().__init__(
            message=f"Insufficient Credits. (Requires {required}, you have {available})",
            code="insufficient-credits",
            details={"required": required, "available": available},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as query failures
    or constraint violations that the repository cannot interpret.
    """
