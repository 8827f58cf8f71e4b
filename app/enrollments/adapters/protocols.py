"""
Protocol for the payment gateway used by the enrollment workflow.

The gateway owns every customer, checkout session, payment method and
subscription record. The orchestrator and the webhook activator depend on
this interface rather than on Stripe directly so they can run against an
in-memory double in tests.

StripeAdapter (enrollments.adapters.stripe_adapter) satisfies this protocol
with classmethods, so the class itself is passed around:

    orchestrator = EnrollmentOrchestrator(gateway=StripeAdapter)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any

    from enrollments.adapters.stripe_adapter import (
        CheckoutSessionResult,
        CreateCheckoutSessionParams,
        CreateCustomerParams,
        CreateSubscriptionParams,
        CustomerResult,
        IntentResult,
        SubscriptionResult,
    )


@runtime_checkable
class PaymentGateway(Protocol):
    """Operations the enrollment workflow needs from the payment gateway."""

    def find_customer_by_email(self, email: str) -> CustomerResult | None: ...

    def create_customer(self, params: CreateCustomerParams) -> CustomerResult: ...

    def update_customer_metadata(
        self, customer_id: str, metadata: dict[str, str]
    ) -> CustomerResult: ...

    def create_checkout_session(
        self, params: CreateCheckoutSessionParams
    ) -> CheckoutSessionResult: ...

    def list_completed_checkout_sessions(
        self, created_after: datetime, limit: int = 100
    ) -> list[CheckoutSessionResult]: ...

    def retrieve_payment_intent(self, payment_intent_id: str) -> IntentResult: ...

    def retrieve_setup_intent(self, setup_intent_id: str) -> IntentResult: ...

    def attach_payment_method(
        self, payment_method_id: str, customer_id: str, make_default: bool = True
    ) -> None: ...

    def list_subscriptions(
        self, customer_id: str, price_id: str
    ) -> list[SubscriptionResult]: ...

    def create_subscription(self, params: CreateSubscriptionParams) -> SubscriptionResult: ...

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict[str, Any]: ...
