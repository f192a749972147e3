"""Domain exception hierarchy for structured error responses."""

from __future__ import annotations

from decimal import Decimal


class AppException(Exception):
    """Base exception for all domain errors.

    Subclasses set ``code`` and ``status_code`` at the class level; callers
    provide ``message`` and an optional ``details`` list.
    """

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ConflictException(AppException):
    code = "CONFLICT"
    status_code = 409


class ForbiddenException(AppException):
    code = "FORBIDDEN"
    status_code = 403


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


class ValidationException(AppException):
    code = "VALIDATION_ERROR"
    status_code = 422


class InvalidStateException(AppException):
    """Mutation attempted on a document whose status does not allow it."""

    code = "INVALID_STATE"
    status_code = 409


class OverFulfillmentException(AppException):
    """Requested quantity exceeds what is left to fulfil on a line."""

    code = "OVER_FULFILLMENT"
    status_code = 422

    def __init__(self, line_key: str, requested: Decimal, remaining: Decimal) -> None:
        super().__init__(
            f"Cannot fulfil {requested} on line '{line_key}'. "
            f"Only {remaining} remaining.",
            details=[
                {
                    "field": line_key,
                    "message": f"requested {requested}, remaining {remaining}",
                    "requested": str(requested),
                    "remaining": str(remaining),
                }
            ],
        )
        self.line_key = line_key
        self.requested = requested
        self.remaining = remaining


class RateLimitException(AppException):
    code = "RATE_LIMITED"
    status_code = 429
