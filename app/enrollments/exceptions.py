"""
Enrollment-specific exceptions.

This module provides the exception hierarchy for the enrollment workflow,
covering request validation, webhook authentication, configuration and
payment gateway (Stripe) failures.

Exception Hierarchy:
    EnrollmentValidationError (ValidationError, 400)
    ├── MissingFieldError - Required request field absent or blank
    ├── InvalidPlanError - Lesson plan label not in the active catalog
    └── MalformedEventError - Webhook event lacks correlation data

    InvalidSignatureError (AuthenticationError, 400)
    MisconfigurationError (ConfigurationError, 500)

    GatewayError (ExternalServiceError) - Base for all Stripe errors
    ├── GatewayCardDeclinedError - Card declined (permanent)
    ├── GatewayInvalidRequestError - Invalid request params (permanent)
    ├── GatewayAuthenticationError - Bad API key (permanent)
    ├── GatewayRateLimitError - Rate limited (transient, retry)
    └── GatewayUnavailableError - API unreachable or 5xx (transient, retry)

Usage:
    from enrollments.exceptions import MissingFieldError, GatewayError

    raise MissingFieldError("customerEmail")

    try:
        StripeAdapter.create_customer(params)
    except GatewayError as e:
        if e.is_retryable:
            raise self.retry(exc=e)
        raise
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ExternalServiceError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Validation Exceptions
# =============================================================================


class EnrollmentValidationError(ValidationError):
    """Base for enrollment input errors detected before any gateway call."""

    default_error_code: str = "ENROLLMENT_VALIDATION_ERROR"


class MissingFieldError(EnrollmentValidationError):
    """
    Raised for the first required enrollment field that is absent.

    Fields are checked in a fixed order, so the reported field is
    deterministic for a given payload.

    Example:
        raise MissingFieldError("lessonType")
        # "Missing required field: lessonType"
    """

    default_error_code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        super().__init__(
            f"Missing required field: {field}",
            details={"field": field},
        )
        self.field = field


class InvalidPlanError(EnrollmentValidationError):
    """Raised when a lesson plan label is not in the active catalog."""

    default_error_code: str = "INVALID_PLAN"

    def __init__(self, label: str | None, live_mode: bool = False):
        super().__init__(
            "Invalid lesson type selected.",
            details={"lesson_type": label, "live_mode": live_mode},
        )
        self.label = label


class MalformedEventError(EnrollmentValidationError):
    """
    Raised when a webhook event cannot be correlated to an enrollment.

    These events are acknowledged (HTTP 200) and dropped: redelivery can
    never fix them.
    """

    default_error_code: str = "MALFORMED_EVENT"


# =============================================================================
# Authentication / Configuration
# =============================================================================


class InvalidSignatureError(AuthenticationError):
    """Webhook signature did not verify against the signing secret."""

    default_error_code: str = "INVALID_SIGNATURE"


class MisconfigurationError(ConfigurationError):
    """
    Required environment configuration is missing.

    Example:
        raise MisconfigurationError(["STRIPE_SECRET_KEY", "CLIENT_URL"])
    """

    default_error_code: str = "MISCONFIGURED"

    def __init__(self, missing: list[str]):
        super().__init__(
            f"Server misconfiguration: missing {', '.join(missing)}",
            details={"missing_settings": list(missing)},
        )
        self.missing = list(missing)


# =============================================================================
# Gateway (Stripe) Exceptions
# =============================================================================


class GatewayError(ExternalServiceError):
    """
    Base exception for all Stripe-related errors.

    Carries the gateway's own error descriptors so callers see them
    verbatim:
    - stripe_type: Stripe error type (card_error, invalid_request_error, ...)
    - stripe_code: Stripe's error code
    - param: Request parameter the error refers to
    - decline_code: Card decline code (if applicable)
    - is_retryable: Whether the operation can be retried

    Never retried by the enrollment workflow itself.
    """

    default_error_code: str = "GATEWAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        stripe_type: str | None = None,
        stripe_code: str | None = None,
        param: str | None = None,
        decline_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if stripe_code:
            details["stripe_code"] = stripe_code
        if decline_code:
            details["decline_code"] = decline_code
        super().__init__(message, error_code=error_code, details=details)
        self.stripe_type = stripe_type
        self.stripe_code = stripe_code
        self.param = param
        self.decline_code = decline_code

    def to_dict(self) -> dict[str, Any]:
        """Add Stripe's type/code/param, "N/A" when Stripe gave none."""
        result = super().to_dict()
        result["type"] = self.stripe_type or "N/A"
        result["code"] = self.stripe_code or "N/A"
        result["param"] = self.param or "N/A"
        return result


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class GatewayCardDeclinedError(GatewayError):
    """Card was declined by the issuing bank."""

    default_error_code: str = "CARD_DECLINED"


class GatewayInvalidRequestError(GatewayError):
    """
    Invalid request parameters sent to Stripe.

    Possible causes:
    - Unknown price, customer or payment method ID
    - Payment method already attached to another customer
    - Amount or currency rejected

    Note:
        This usually indicates a bug or a catalog/account mismatch,
        not a user error.
    """

    default_error_code: str = "INVALID_GATEWAY_REQUEST"


class GatewayAuthenticationError(GatewayError):
    """Stripe rejected the API key."""

    default_error_code: str = "GATEWAY_AUTHENTICATION_FAILED"
    http_status: int = 500


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class GatewayRateLimitError(GatewayError):
    """Rate limited by Stripe API."""

    default_error_code: str = "GATEWAY_RATE_LIMITED"
    is_retryable: bool = True
    http_status: int = 503


class GatewayUnavailableError(GatewayError):
    """
    Stripe API is temporarily unavailable.

    This covers network connectivity issues, Stripe server errors (5xx)
    and timeouts. The operation may have succeeded on Stripe's side, so
    retries must reuse the same idempotency key.
    """

    default_error_code: str = "GATEWAY_UNAVAILABLE"
    is_retryable: bool = True
    http_status: int = 503


__all__ = [
    # Validation
    "EnrollmentValidationError",
    "MissingFieldError",
    "InvalidPlanError",
    "MalformedEventError",
    # Authentication / configuration
    "InvalidSignatureError",
    "MisconfigurationError",
    # Gateway
    "GatewayError",
    "GatewayCardDeclinedError",
    "GatewayInvalidRequestError",
    "GatewayAuthenticationError",
    "GatewayRateLimitError",
    "GatewayUnavailableError",
]
