from __future__ import annotations


class AppError(Exception):
    """Base error for domain/application exceptions."""


class NotAuthenticated(AppError):
    """Raised when no valid session or actor can be resolved."""


class NotAuthorized(AppError):
    """Raised when actor lacks the role or ownership for an operation."""


class NotFound(AppError):
    """Raised when entity is missing or soft-deleted."""


class ValidationError(AppError):
    """Raised for domain-level validation beyond schema validation."""


class Conflict(AppError):
    """Raised when a concurrent writer changed the row first."""


class ExternalServiceError(AppError):
    """Raised when an external AI service call fails."""
