# backend/petstay/core/exceptions.py
"""
Domain-specific exceptions for the PetStay settlement core.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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
    """Raised when input is malformed (negative price, reversed dates, bad amount)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when the acting user is not a party allowed to perform the action."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised when a concurrent writer got there first."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a transition is attempted from an incompatible state."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidTransitionException(BusinessRuleException):
    """Raised when a booking cannot move to the requested status."""

    def __init__(self, action: str, current_status: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Cannot {action} booking - current status: {current_status}",
            code="INVALID_TRANSITION",
            details={"action": action, "current_status": current_status, **(details or {})},
        )


class InsufficientFundsException(BusinessRuleException):
    """Raised when a wallet debit or freeze exceeds the available balance."""

    def __init__(self, required_cents: int, available_cents: int):
        super().__init__(
            message="Insufficient balance",
            code="INSUFFICIENT_FUNDS",
            details={
                "required_cents": required_cents,
                "available_cents": available_cents,
            },
        )


class EntityLockTimeoutException(ConflictException):
    """Raised when a booking or wallet mutex could not be acquired in time."""

    def __init__(self, key: str, timeout_s: float):
        super().__init__(
            message="Resource is being modified by another request, please retry",
            code="ENTITY_LOCKED",
            details={"key": key, "timeout_seconds": timeout_s},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class StaleRecordException(RepositoryException):
    """Raised when an optimistic version check fails on save."""
