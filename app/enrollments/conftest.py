"""
Pytest fixtures shared by the enrollment test packages.

Provides an in-memory payment gateway that records every call, request
payload fixtures and the settings the enrollment workflow requires.

Sections:
    - Settings Fixtures
    - Fake Gateway
    - Payload Fixtures
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any

import pytest

from enrollments.adapters import (
    CheckoutSessionResult,
    CustomerResult,
    IntentResult,
    SubscriptionResult,
)

# Mid-June 2026, 10:00 in Phoenix (UTC-7 all year)
ENROLLMENT_NOW = datetime(2026, 6, 10, 17, 0, tzinfo=timezone.utc)

MONTHLY_PLAN_LABEL = "45 Minute Lessons - $225 / Month"
PLAN_PRICE_ID = "price_1QxDDOIaMu5TUCAv38VEqyFU"


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def enrollment_settings(settings):
    """Configure the settings every enrollment path reads."""
    settings.STRIPE_SECRET_KEY = "sk_test_enrollment"
    settings.STRIPE_WEBHOOK_SECRET = "whsec_enrollment"
    settings.STRIPE_LIVE_MODE = False
    settings.CLIENT_URL = "https://lessons.example.com"
    settings.ENROLLMENT_TIME_ZONE = "America/Phoenix"
    settings.ENROLLMENT_CURRENCY = "usd"
    settings.ENROLLMENT_REUSE_EXISTING_CUSTOMER = False
    settings.ENROLLMENT_WEBHOOK_DEFERRED = True
    return settings


# =============================================================================
# Fake Gateway
# =============================================================================


class FakeGateway:
    """
    In-memory PaymentGateway that records calls.

    Honors idempotency keys on create calls the way Stripe does: a repeated
    key returns the first result instead of creating a second record.
    """

    def __init__(self):
        self.calls: list[tuple[str, Any]] = []
        self.customers: dict[str, CustomerResult] = {}
        self.sessions: dict[str, CheckoutSessionResult] = {}
        self.subscriptions: list[SubscriptionResult] = []
        self.intents: dict[str, IntentResult] = {}
        self.attached: dict[str, str] = {}
        self.default_payment_methods: dict[str, str] = {}
        self.completed_sessions: list[CheckoutSessionResult] = []
        self.fail_on: dict[str, Exception] = {}
        self._by_key: dict[str, Any] = {}
        self._ids = itertools.count(1)

    def _record(self, operation: str, argument: Any = None) -> None:
        self.calls.append((operation, argument))
        if operation in self.fail_on:
            raise self.fail_on[operation]

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def _idempotent(self, key: str, factory):
        if key not in self._by_key:
            self._by_key[key] = factory()
        return self._by_key[key]

    # Customers

    def find_customer_by_email(self, email: str) -> CustomerResult | None:
        self._record("find_customer_by_email", email)
        matches = [c for c in self.customers.values() if c.email == email]
        return matches[-1] if matches else None

    def create_customer(self, params) -> CustomerResult:
        self._record("create_customer", params)

        def factory():
            customer = CustomerResult(
                id=f"cus_fake{next(self._ids)}",
                email=params.email,
                name=params.name,
                metadata=dict(params.metadata),
            )
            self.customers[customer.id] = customer
            return customer

        return self._idempotent(params.idempotency_key, factory)

    def update_customer_metadata(self, customer_id: str, metadata: dict) -> CustomerResult:
        self._record("update_customer_metadata", (customer_id, metadata))
        existing = self.customers[customer_id]
        existing.metadata = {**existing.metadata, **metadata}
        return CustomerResult(
            id=existing.id,
            email=existing.email,
            name=existing.name,
            metadata=dict(existing.metadata),
        )

    # Checkout

    def create_checkout_session(self, params) -> CheckoutSessionResult:
        self._record("create_checkout_session", params)

        def factory():
            session_id = f"cs_fake{next(self._ids)}"
            session = CheckoutSessionResult(
                id=session_id,
                mode=params.mode,
                status="open",
                url=f"https://checkout.stripe.com/c/pay/{session_id}",
                customer_id=params.customer_id,
                amount_total=params.amount_cents,
                metadata=dict(params.metadata),
            )
            self.sessions[session.id] = session
            return session

        return self._idempotent(params.idempotency_key, factory)

    def list_completed_checkout_sessions(self, created_after, limit: int = 100):
        self._record("list_completed_checkout_sessions", created_after)
        return list(self.completed_sessions[:limit])

    # Payment methods

    def retrieve_payment_intent(self, payment_intent_id: str) -> IntentResult:
        self._record("retrieve_payment_intent", payment_intent_id)
        return self.intents[payment_intent_id]

    def retrieve_setup_intent(self, setup_intent_id: str) -> IntentResult:
        self._record("retrieve_setup_intent", setup_intent_id)
        return self.intents[setup_intent_id]

    def attach_payment_method(
        self, payment_method_id: str, customer_id: str, make_default: bool = True
    ) -> None:
        self._record("attach_payment_method", (payment_method_id, customer_id))
        self.attached[payment_method_id] = customer_id
        if make_default:
            self.default_payment_methods[customer_id] = payment_method_id

    # Subscriptions

    def list_subscriptions(self, customer_id: str, price_id: str):
        self._record("list_subscriptions", (customer_id, price_id))
        return [
            s
            for s in self.subscriptions
            if s.customer_id == customer_id and s.price_id == price_id
        ]

    def create_subscription(self, params) -> SubscriptionResult:
        self._record("create_subscription", params)

        def factory():
            subscription = SubscriptionResult(
                id=f"sub_fake{next(self._ids)}",
                status="active",
                customer_id=params.customer_id,
                price_id=params.price_id,
                billing_cycle_anchor=params.billing_cycle_anchor,
                metadata=dict(params.metadata),
            )
            self.subscriptions.append(subscription)
            return subscription

        return self._idempotent(params.idempotency_key, factory)

    # Webhooks

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict:
        self._record("verify_webhook_signature", signature)
        raise NotImplementedError("FakeGateway does not verify signatures")


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def enrollment_payload() -> dict[str, str]:
    """A complete, valid enrollment request body."""
    return {
        "studentName": "Ada",
        "customerName": "Grace Lovelace",
        "customerEmail": "grace@example.com",
        "customerPhone": "+15555550123",
        "lessonType": MONTHLY_PLAN_LABEL,
    }


@pytest.fixture
def completed_session_payload():
    """Build a checkout.session.completed data.object for an enrollment."""

    def _create(
        session_id: str = "cs_test_completed",
        mode: str = "payment",
        customer: str | None = "cus_fake_existing",
        lesson_type: str | None = MONTHLY_PLAN_LABEL,
        payment_intent: str | None = "pi_test123",
        setup_intent: str | None = None,
        extra_metadata: dict | None = None,
    ) -> dict[str, Any]:
        metadata: dict[str, str] = {"student_name": "Ada", "price_id": PLAN_PRICE_ID}
        if lesson_type is not None:
            metadata["lesson_type"] = lesson_type
        metadata.update(extra_metadata or {})
        return {
            "id": session_id,
            "object": "checkout.session",
            "mode": mode,
            "status": "complete",
            "customer": customer,
            "payment_intent": payment_intent,
            "setup_intent": setup_intent,
            "metadata": metadata,
        }

    return _create


@pytest.fixture
def completed_event(completed_session_payload):
    """Build a verified checkout.session.completed event dict."""

    def _create(event_id: str = "evt_test123", **session_kwargs) -> dict[str, Any]:
        return {
            "id": event_id,
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": completed_session_payload(**session_kwargs)},
        }

    return _create


@pytest.fixture
def gateway_with_intents(fake_gateway) -> FakeGateway:
    """A fake gateway whose intents carry a collected payment method."""
    fake_gateway.intents["pi_test123"] = IntentResult("pi_test123", "succeeded", "pm_card")
    fake_gateway.intents["seti_test123"] = IntentResult(
        "seti_test123", "succeeded", "pm_setup"
    )
    return fake_gateway
