"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error responses across the application
- Machine-readable error codes for client handling
- A single place that maps each error family to an HTTP status

Exception Hierarchy:
    BaseApplicationError (base, HTTP 400)
    ├── ValidationError - Input validation failures (400)
    ├── AuthenticationError - Caller could not be authenticated (400)
    ├── ConfigurationError - Required server configuration missing (500)
    └── ExternalServiceError - Third-party service failures (400)

Usage:
    from core.exceptions import ValidationError

    # Raise with message only
    raise ValidationError("Invalid email format")

    # Raise with error code and details
    raise ValidationError(
        "Missing required field: customerEmail",
        error_code="MISSING_FIELD",
        details={"field": "customerEmail"},
    )

    # Convert to dict for API response
    try:
        ...
    except BaseApplicationError as e:
        return Response(e.to_dict(), status=e.http_status)

Note:
    These exceptions are for domain/business logic errors.
    DRF handles API-layer exceptions (parsing, method not allowed, etc.).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Provides a consistent interface for error handling across the application.
    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field names, metadata, etc.)
        http_status: Status code views should answer with

    Example:
        try:
            orchestrator.enroll(payload)
        except BaseApplicationError as e:
            logger.warning(f"Enrollment rejected: {e.error_code}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Missing required field: lessonType",
                "error_code": "MISSING_FIELD",
                "details": {"field": "lessonType"}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Missing required fields
    - Unknown enumerated values (plan labels, event types)
    - Payloads that can never be processed as sent

    Note:
        For DRF serializer validation, use DRF's built-in validation.
        Use this for service-layer validation logic.
    """

    default_error_code: str = "VALIDATION_ERROR"


class AuthenticationError(BaseApplicationError):
    """
    Raised when the caller of a public endpoint cannot be authenticated.

    Use for signed callbacks (webhooks) whose signature does not match
    the shared secret. These are always rejected, never logged-and-allowed.
    """

    default_error_code: str = "AUTHENTICATION_FAILED"


class ConfigurationError(BaseApplicationError):
    """
    Raised when required server configuration is missing.

    Detected per request rather than at import time so a half-configured
    deployment still serves its health check.
    """

    default_error_code: str = "CONFIGURATION_ERROR"
    http_status: int = 500


class ExternalServiceError(BaseApplicationError):
    """
    Raised when an external service call fails.

    Use for:
    - Third-party API failures (Stripe)
    - Network timeouts
    - External service unavailability

    Example:
        try:
            stripe.Customer.create(email=email)
        except stripe.APIError as e:
            raise ExternalServiceError(
                "Payment service unavailable",
                error_code="STRIPE_ERROR",
                details={"service": "stripe", "original_error": str(e)},
            )
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
