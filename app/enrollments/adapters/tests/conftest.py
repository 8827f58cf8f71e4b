"""
Pytest fixtures for Stripe adapter tests.

This module provides fixtures for testing the Stripe adapter, including
mock Stripe API responses and error conditions.

Sections:
    - Settings Fixtures
    - Mock Stripe Response Fixtures
    - Mock Stripe Error Fixtures
    - Mock Stripe Client Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import stripe


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def stripe_settings(settings):
    """Configure Stripe keys for every adapter test."""
    settings.STRIPE_SECRET_KEY = "sk_test_adapter"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_adapter"
    settings.STRIPE_API_TIMEOUT_SECONDS = 10
    settings.STRIPE_MAX_RETRIES = 2
    return settings


# =============================================================================
# Mock Stripe Response Fixtures
# =============================================================================


# Captured before any test patches the names on the stripe module.
SDK_CLASSES = {
    "customer": stripe.Customer,
    "checkout.session": stripe.checkout.Session,
    "subscription": stripe.Subscription,
    "payment_intent": stripe.PaymentIntent,
    "setup_intent": stripe.SetupIntent,
    "payment_method": stripe.PaymentMethod,
}


def stripe_object(values: dict[str, Any]) -> stripe.StripeObject:
    """
    Build a real SDK object, as the API client would return it.

    Nested dicts (metadata, expanded fields) become StripeObjects too, so
    the adapter is exercised against the SDK's own types.
    """
    sdk_class = SDK_CLASSES.get(values.get("object"), stripe.StripeObject)
    return sdk_class.construct_from(values, "sk_test_adapter")


@dataclass
class MockStripeList:
    """Mock Stripe list response with data attribute."""

    items: list[Any]
    has_more: bool = False

    @property
    def data(self) -> list[Any]:
        return self.items

    def auto_paging_iter(self):
        return iter(self.items)


@pytest.fixture
def mock_customer():
    """Create a mock Customer response."""

    def _create(
        id: str = "cus_test123",
        email: str = "grace@example.com",
        name: str = "Grace Lovelace",
        metadata: dict | None = None,
    ) -> stripe.StripeObject:
        return stripe_object(
            {
                "id": id,
                "object": "customer",
                "email": email,
                "name": name,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_checkout_session():
    """Create a mock Checkout Session response."""

    def _create(
        id: str = "cs_test123",
        mode: str = "payment",
        status: str = "open",
        url: str = "https://checkout.stripe.com/c/pay/cs_test123",
        amount_total: int = 15000,
        metadata: dict | None = None,
    ) -> stripe.StripeObject:
        return stripe_object(
            {
                "id": id,
                "object": "checkout.session",
                "mode": mode,
                "status": status,
                "url": url,
                "amount_total": amount_total,
                "metadata": metadata or {},
            }
        )

    return _create


@pytest.fixture
def mock_subscription():
    """Create a mock Subscription response."""

    def _create(
        id: str = "sub_test123",
        status: str = "active",
        billing_cycle_anchor: int = 1767250800,
        metadata: dict | None = None,
    ) -> stripe.StripeObject:
        return stripe_object(
            {
                "id": id,
                "object": "subscription",
                "status": status,
                "billing_cycle_anchor": billing_cycle_anchor,
                "metadata": metadata or {},
            }
        )

    return _create


# =============================================================================
# Mock Stripe Error Fixtures
# =============================================================================


@pytest.fixture
def card_error():
    """Create a Stripe CardError with the error object Stripe sends."""

    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str = "generic_decline",
    ) -> stripe.CardError:
        return stripe.CardError(
            message,
            None,
            code,
            json_body={
                "error": {
                    "type": "card_error",
                    "code": code,
                    "decline_code": decline_code,
                    "message": message,
                }
            },
        )

    return _create


@pytest.fixture
def invalid_request_error():
    """Create a Stripe InvalidRequestError."""

    def _create(
        message: str = "No such price: 'price_missing'",
        param: str | None = "line_items[0][price]",
        code: str = "resource_missing",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(
            message,
            param,
            code=code,
            json_body={
                "error": {
                    "type": "invalid_request_error",
                    "code": code,
                    "param": param,
                    "message": message,
                }
            },
        )

    return _create


@pytest.fixture
def rate_limit_error():
    return stripe.RateLimitError("Too many requests hit the API too quickly.")


@pytest.fixture
def api_connection_error():
    return stripe.APIConnectionError("Could not connect to Stripe.")


@pytest.fixture
def api_error():
    return stripe.APIError("Something went wrong on Stripe's end.")


@pytest.fixture
def authentication_error():
    return stripe.AuthenticationError("Invalid API Key provided.")


@pytest.fixture
def signature_verification_error():
    return stripe.SignatureVerificationError(
        "No signatures found matching the expected signature for payload",
        "t=1,v1=bad",
    )


# =============================================================================
# Mock Stripe Client Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def mock_stripe_http_client():
    """Mock the HTTP client so no test opens a connection."""
    with patch("stripe.RequestsClient") as mock:
        mock.return_value = MagicMock()
        yield mock


@pytest.fixture
def mock_stripe_customer(mock_customer):
    """Mock stripe.Customer API."""
    with patch("stripe.Customer") as mock:
        mock.create.return_value = mock_customer()
        mock.modify.return_value = mock_customer()
        mock.list.return_value = MockStripeList(items=[])
        yield mock


@pytest.fixture
def mock_stripe_checkout_session(mock_checkout_session):
    """Mock stripe.checkout.Session API."""
    with patch("stripe.checkout.Session") as mock:
        mock.create.return_value = mock_checkout_session()
        mock.list.return_value = MockStripeList(items=[])
        yield mock


@pytest.fixture
def mock_stripe_subscription(mock_subscription):
    """Mock stripe.Subscription API."""
    with patch("stripe.Subscription") as mock:
        mock.create.return_value = mock_subscription(status="incomplete")
        mock.list.return_value = MockStripeList(items=[])
        yield mock


@pytest.fixture
def mock_stripe_payment_method():
    """Mock stripe.PaymentMethod API."""
    with patch("stripe.PaymentMethod") as mock:
        mock.retrieve.return_value = stripe_object(
            {"id": "pm_test123", "object": "payment_method", "customer": None}
        )
        yield mock


@pytest.fixture
def mock_stripe_webhook():
    """Mock stripe.Webhook API."""
    with patch("stripe.Webhook") as mock:
        mock.construct_event.return_value = stripe_object({"id": "evt_test123", "object": "event"})
        yield mock
