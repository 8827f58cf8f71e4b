"""
Payment gateway adapters for the enrollment workflow.

All Stripe API calls made while enrolling a student or activating a
subscription go through these adapters to ensure consistent error handling,
timeouts, idempotency and observability.

Usage:
    from enrollments.adapters import StripeAdapter, CreateSubscriptionParams

    result = StripeAdapter.create_subscription(
        CreateSubscriptionParams(
            customer_id="cus_xxx",
            price_id="price_xxx",
            billing_cycle_anchor=1767250800,
            default_payment_method="pm_xxx",
            idempotency_key="create_subscription:cs_xxx:1:ab12cd34",
        )
    )
"""

from enrollments.adapters.protocols import PaymentGateway
from enrollments.adapters.stripe_adapter import (
    LIVE_SUBSCRIPTION_STATUSES,
    CheckoutSessionResult,
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    CreateSubscriptionParams,
    CustomerResult,
    IdempotencyKeyGenerator,
    IntentResult,
    StripeAdapter,
    SubscriptionResult,
)

__all__ = [
    "LIVE_SUBSCRIPTION_STATUSES",
    "CheckoutSessionResult",
    "CreateCheckoutSessionParams",
    "CreateCustomerParams",
    "CreateSubscriptionParams",
    "CustomerResult",
    "IdempotencyKeyGenerator",
    "IntentResult",
    "PaymentGateway",
    "StripeAdapter",
    "SubscriptionResult",
]
