"""
Stripe API adapter for enrollment operations.

This module provides the StripeAdapter class which encapsulates every
Stripe API interaction the enrollment workflow makes. All Stripe calls
should go through this adapter to ensure consistent error handling,
timeouts, idempotency and observability.

Features:
- Configurable timeouts and SDK-level network retries on all API calls
- Automatic error translation to enrollment domain exceptions
- Structured logging with timing metrics
- Idempotency keys on every create call
- Thread-safe for use from Celery workers

Configuration (via settings):
- STRIPE_SECRET_KEY: Stripe API secret key
- STRIPE_WEBHOOK_SECRET: Webhook signing secret
- STRIPE_API_TIMEOUT_SECONDS: API call timeout (default: 10)
- STRIPE_MAX_RETRIES: SDK network retries (default: 2)

Usage:
    from enrollments.adapters import StripeAdapter, CreateCustomerParams

    customer = StripeAdapter.create_customer(
        CreateCustomerParams(
            email="ada@example.com",
            name="Ada Lovelace",
            phone="+15555550123",
            metadata={"student_name": "Ada", "lesson_type": "..."},
            idempotency_key="create_customer:...",
        )
    )
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import stripe
from django.conf import settings

from core.helpers import mask_email
from enrollments.exceptions import (
    GatewayAuthenticationError,
    GatewayCardDeclinedError,
    GatewayError,
    GatewayInvalidRequestError,
    GatewayRateLimitError,
    GatewayUnavailableError,
    InvalidSignatureError,
    MisconfigurationError,
)

# Subscription statuses that count as "the student already has this plan".
LIVE_SUBSCRIPTION_STATUSES = frozenset(
    {"active", "trialing", "incomplete", "past_due", "unpaid"}
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateCustomerParams:
    """
    Parameters for creating a Stripe Customer.

    Attributes:
        email: Customer email address
        name: Customer (parent/guardian) full name
        phone: Customer phone number
        idempotency_key: Unique key for idempotent creation
        metadata: Key-value pairs (student_name, lesson_type)
    """

    email: str
    name: str
    phone: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("email is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class CustomerResult:
    """
    Result from Stripe Customer operations.

    Attributes:
        id: Customer ID (cus_xxx)
        email: Customer email
        name: Customer name
        metadata: Attached metadata
        created: False when an existing customer was reused
    """

    id: str
    email: str | None = None
    name: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    created: bool = True


@dataclass
class CreateCheckoutSessionParams:
    """
    Parameters for creating a hosted Checkout Session.

    A positive amount opens a payment-mode session that charges the amount
    and saves the card for off-session use. A zero amount opens a
    setup-mode session that only collects the card.

    Attributes:
        customer_id: Stripe Customer the session belongs to
        amount_cents: Prorated first-month charge (>= 0)
        currency: ISO 4217 currency code
        product_name: Line item name shown on the hosted page
        success_url: Redirect after completion
        cancel_url: Redirect after abandonment
        idempotency_key: Unique key for idempotent creation
        metadata: Session metadata (price_id, lesson_type, student_name, ...)
    """

    customer_id: str
    amount_cents: int
    currency: str
    product_name: str
    success_url: str
    cancel_url: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount_cents < 0:
            raise ValueError("amount_cents must not be negative")
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")

    @property
    def mode(self) -> str:
        return "payment" if self.amount_cents > 0 else "setup"


@dataclass
class CheckoutSessionResult:
    """
    Result from Stripe Checkout Session operations.

    Also built from the ``data.object`` of checkout.session.* webhook
    events, see from_payload().

    Attributes:
        id: Checkout Session ID (cs_xxx)
        mode: payment, setup or subscription
        status: open, complete or expired
        url: Hosted page URL (only while open)
        customer_id: Customer ID
        payment_intent_id: PaymentIntent ID (payment mode)
        setup_intent_id: SetupIntent ID (setup mode)
        amount_total: Amount charged in minor units
        metadata: Attached metadata
    """

    id: str
    mode: str
    status: str | None = None
    url: str | None = None
    customer_id: str | None = None
    payment_intent_id: str | None = None
    setup_intent_id: str | None = None
    amount_total: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> CheckoutSessionResult:
        """Build from a Checkout Session object (dict or StripeObject)."""
        data = _to_dict(data)
        return cls(
            id=data.get("id") or "",
            mode=data.get("mode") or "",
            status=data.get("status"),
            url=data.get("url"),
            customer_id=_expandable_id(data.get("customer")),
            payment_intent_id=_expandable_id(data.get("payment_intent")),
            setup_intent_id=_expandable_id(data.get("setup_intent")),
            amount_total=data.get("amount_total"),
            metadata=_to_dict(data.get("metadata")),
        )


@dataclass
class IntentResult:
    """
    Result from PaymentIntent / SetupIntent retrieval.

    Attributes:
        id: Intent ID (pi_xxx or seti_xxx)
        status: Intent status
        payment_method_id: Payment method collected by the intent
    """

    id: str
    status: str
    payment_method_id: str | None = None


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating the recurring lesson subscription.

    Attributes:
        customer_id: Stripe Customer ID
        price_id: Recurring Price ID
        billing_cycle_anchor: Unix seconds of the first full-price charge
        default_payment_method: Payment method to bill
        idempotency_key: Unique key for idempotent creation
        metadata: Subscription metadata
    """

    customer_id: str
    price_id: str
    billing_cycle_anchor: int
    default_payment_method: str
    idempotency_key: str
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.customer_id:
            raise ValueError("customer_id is required")
        if not self.price_id:
            raise ValueError("price_id is required")
        if not self.default_payment_method:
            raise ValueError("default_payment_method is required")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class SubscriptionResult:
    """
    Result from Stripe Subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: Subscription status
        customer_id: Customer ID
        price_id: Recurring Price ID
        billing_cycle_anchor: Unix seconds
        metadata: Attached metadata
    """

    id: str
    status: str
    customer_id: str
    price_id: str
    billing_cycle_anchor: int | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_SUBSCRIPTION_STATUSES


def _to_dict(value: Any) -> dict[str, Any]:
    """
    Copy a Stripe object (or a plain dict) into a plain dict.

    StripeObject stopped subclassing dict in newer SDK releases, so dict()
    and .get() no longer work on it; to_dict() works on every release.
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    return value.to_dict()


def _expandable_id(value: Any) -> str | None:
    """Return the ID of an expandable field, expanded or not."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("id")
    return getattr(value, "id", None)


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for Stripe API calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The hash component keys the value to this deployment's SECRET_KEY while
    the structured prefix aids debugging and correlation in the dashboard.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="create_subscription",
            entity_id="cs_test_a1b2c3",
        )
        # Result: "create_subscription:cs_test_a1b2c3:1:9f86d081"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str,
        attempt: int = 1,
    ) -> str:
        """
        Generate a deterministic idempotency key.

        Args:
            operation: The Stripe operation (create_customer, create_subscription, ...)
            entity_id: The correlation ID (request ID, checkout session ID, ...)
            attempt: Attempt number (default: 1)

        Returns:
            Formatted idempotency key string
        """
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"


# =============================================================================
# Stripe Adapter
# =============================================================================


class StripeAdapter:
    """
    Adapter for Stripe API operations.

    All methods are classmethods - no instance state is maintained, and the
    class itself satisfies the PaymentGateway protocol.

    Usage:
        customer = StripeAdapter.create_customer(params)
        session = StripeAdapter.create_checkout_session(params)
        event = StripeAdapter.verify_webhook_signature(payload, signature)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _configure_stripe() -> None:
        """Configure Stripe client with API key, timeout and network retries."""
        if not getattr(settings, "STRIPE_SECRET_KEY", ""):
            raise MisconfigurationError(["STRIPE_SECRET_KEY"])
        stripe.api_key = settings.STRIPE_SECRET_KEY
        timeout = getattr(settings, "STRIPE_API_TIMEOUT_SECONDS", 10)
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)
        stripe.max_network_retries = getattr(settings, "STRIPE_MAX_RETRIES", 2)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Customers
    # =========================================================================

    @classmethod
    def find_customer_by_email(cls, email: str) -> CustomerResult | None:
        """
        Find the most recent Customer with the given email.

        Args:
            email: Email address (exact match, as Stripe compares it)

        Returns:
            CustomerResult, or None when no customer has that email
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "find_customer_by_email",
            "email": mask_email(email),
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customers = stripe.Customer.list(email=email, limit=1)

            duration_ms = (time.time() - start_time) * 1000
            found = customers.data[0] if customers.data else None
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "customer_id": found.id if found else None,
                    "duration_ms": duration_ms,
                },
            )

            if found is None:
                return None
            return CustomerResult(
                id=found.id,
                email=found.email,
                name=found.name,
                metadata=_to_dict(found.metadata),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def create_customer(cls, params: CreateCustomerParams) -> CustomerResult:
        """
        Create a Stripe Customer.

        Args:
            params: Customer contact details and metadata

        Returns:
            CustomerResult with the new customer ID

        Raises:
            GatewayInvalidRequestError: Stripe rejected the details
            GatewayUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_customer",
            "email": mask_email(params.email),
            "idempotency_key": params.idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.create(
                email=params.email,
                name=params.name,
                phone=params.phone,
                metadata=params.metadata,
                idempotency_key=params.idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "customer_id": customer.id,
                    "duration_ms": duration_ms,
                },
            )

            return CustomerResult(
                id=customer.id,
                email=customer.email,
                name=customer.name,
                metadata=_to_dict(customer.metadata),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def update_customer_metadata(
        cls,
        customer_id: str,
        metadata: dict[str, str],
    ) -> CustomerResult:
        """
        Merge metadata into an existing Customer.

        Stripe merges metadata keys, so keys not mentioned are kept.
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "update_customer_metadata",
            "customer_id": customer_id,
            "metadata_keys": sorted(metadata),
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            customer = stripe.Customer.modify(customer_id, metadata=metadata)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

            return CustomerResult(
                id=customer.id,
                email=customer.email,
                name=customer.name,
                metadata=_to_dict(customer.metadata),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    @classmethod
    def create_checkout_session(
        cls,
        params: CreateCheckoutSessionParams,
    ) -> CheckoutSessionResult:
        """
        Create a hosted Checkout Session for the first-month charge.

        Payment mode charges the prorated amount as a one-off inline price
        and saves the card (setup_future_usage=off_session) so the
        subscription can bill it later. Setup mode only saves the card.

        Args:
            params: Session parameters

        Returns:
            CheckoutSessionResult with the hosted page URL

        Raises:
            GatewayInvalidRequestError: Stripe rejected the parameters
            GatewayUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_checkout_session",
            "customer_id": params.customer_id,
            "mode": params.mode,
            "amount_cents": params.amount_cents,
            "idempotency_key": params.idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        session_kwargs: dict[str, Any] = {
            "mode": params.mode,
            "customer": params.customer_id,
            "payment_method_types": ["card"],
            "success_url": params.success_url,
            "cancel_url": params.cancel_url,
            "metadata": params.metadata,
        }
        if params.mode == "payment":
            session_kwargs["line_items"] = [
                {
                    "price_data": {
                        "currency": params.currency,
                        "unit_amount": params.amount_cents,
                        "product_data": {"name": params.product_name},
                    },
                    "quantity": 1,
                }
            ]
            session_kwargs["payment_intent_data"] = {
                "setup_future_usage": "off_session",
                "metadata": params.metadata,
            }
        else:
            session_kwargs["currency"] = params.currency
            session_kwargs["setup_intent_data"] = {"metadata": params.metadata}

        try:
            session = stripe.checkout.Session.create(
                idempotency_key=params.idempotency_key,
                **session_kwargs,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "checkout_session_id": session.id,
                    "duration_ms": duration_ms,
                },
            )

            return CheckoutSessionResult(
                id=session.id,
                mode=session.mode,
                status=session.status,
                url=session.url,
                customer_id=params.customer_id,
                amount_total=session.amount_total,
                metadata=_to_dict(session.metadata),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def list_completed_checkout_sessions(
        cls,
        created_after: datetime,
        limit: int = 100,
    ) -> list[CheckoutSessionResult]:
        """
        List completed Checkout Sessions created after a given time.

        Used by the reconciliation task to find enrollments whose webhook
        never arrived. Auto-paginates up to ``limit`` sessions.
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "list_completed_checkout_sessions",
            "created_after": created_after.isoformat(),
            "limit": limit,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            page = stripe.checkout.Session.list(
                status="complete",
                created={"gte": int(created_after.timestamp())},
                limit=min(limit, 100),
            )

            results: list[CheckoutSessionResult] = []
            for session in page.auto_paging_iter():
                results.append(CheckoutSessionResult.from_payload(session))
                if len(results) >= limit:
                    break

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "count": len(results),
                    "duration_ms": duration_ms,
                },
            )
            return results

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Payment Methods
    # =========================================================================

    @classmethod
    def retrieve_payment_intent(cls, payment_intent_id: str) -> IntentResult:
        """Retrieve a PaymentIntent and the payment method it collected."""
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_payment_intent",
            "payment_intent_id": payment_intent_id,
        }

        start_time = time.time()

        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return IntentResult(
                id=intent.id,
                status=intent.status,
                payment_method_id=_expandable_id(intent.payment_method),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def retrieve_setup_intent(cls, setup_intent_id: str) -> IntentResult:
        """Retrieve a SetupIntent and the payment method it collected."""
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "retrieve_setup_intent",
            "setup_intent_id": setup_intent_id,
        }

        start_time = time.time()

        try:
            intent = stripe.SetupIntent.retrieve(setup_intent_id)

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "status": intent.status,
                    "duration_ms": duration_ms,
                },
            )

            return IntentResult(
                id=intent.id,
                status=intent.status,
                payment_method_id=_expandable_id(intent.payment_method),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def attach_payment_method(
        cls,
        payment_method_id: str,
        customer_id: str,
        make_default: bool = True,
    ) -> None:
        """
        Attach a payment method to a customer and make it the invoice default.

        A method that Checkout already attached to this customer is left as
        is; Stripe reports re-attaching to the same customer as a no-op.
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "attach_payment_method",
            "payment_method_id": payment_method_id,
            "customer_id": customer_id,
            "make_default": make_default,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            payment_method = stripe.PaymentMethod.retrieve(payment_method_id)
            if _expandable_id(payment_method.customer) != customer_id:
                stripe.PaymentMethod.attach(payment_method_id, customer=customer_id)

            if make_default:
                stripe.Customer.modify(
                    customer_id,
                    invoice_settings={"default_payment_method": payment_method_id},
                )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={**log_context, "duration_ms": duration_ms},
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Subscriptions
    # =========================================================================

    @classmethod
    def list_subscriptions(
        cls,
        customer_id: str,
        price_id: str,
    ) -> list[SubscriptionResult]:
        """
        List a customer's subscriptions to a price, in every status.

        Returns:
            SubscriptionResults, newest first
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "list_subscriptions",
            "customer_id": customer_id,
            "price_id": price_id,
        }

        start_time = time.time()

        try:
            subscriptions = stripe.Subscription.list(
                customer=customer_id,
                price=price_id,
                status="all",
                limit=100,
            )

            results = [
                SubscriptionResult(
                    id=sub.id,
                    status=sub.status,
                    customer_id=customer_id,
                    price_id=price_id,
                    billing_cycle_anchor=sub.billing_cycle_anchor,
                    metadata=_to_dict(sub.metadata),
                )
                for sub in subscriptions.data
            ]

            duration_ms = (time.time() - start_time) * 1000
            logger.debug(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "count": len(results),
                    "duration_ms": duration_ms,
                },
            )
            return results

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    @classmethod
    def create_subscription(cls, params: CreateSubscriptionParams) -> SubscriptionResult:
        """
        Create the recurring subscription anchored to the next billing date.

        The partial month was already charged at checkout, so proration is
        off and nothing is billed until the anchor.

        Raises:
            GatewayCardDeclinedError: Payment method declined
            GatewayInvalidRequestError: Unknown price or payment method
            GatewayUnavailableError: Stripe service unavailable
        """
        cls._configure_stripe()
        logger = cls.get_logger()

        log_context = {
            "operation": "create_subscription",
            "customer_id": params.customer_id,
            "price_id": params.price_id,
            "billing_cycle_anchor": params.billing_cycle_anchor,
            "idempotency_key": params.idempotency_key,
        }

        start_time = time.time()
        logger.info("Starting Stripe operation", extra=log_context)

        try:
            subscription = stripe.Subscription.create(
                customer=params.customer_id,
                items=[{"price": params.price_id}],
                billing_cycle_anchor=params.billing_cycle_anchor,
                proration_behavior="none",
                payment_behavior="default_incomplete",
                default_payment_method=params.default_payment_method,
                metadata=params.metadata,
                idempotency_key=params.idempotency_key,
            )

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                "Stripe operation completed",
                extra={
                    **log_context,
                    "subscription_id": subscription.id,
                    "status": subscription.status,
                    "duration_ms": duration_ms,
                },
            )

            return SubscriptionResult(
                id=subscription.id,
                status=subscription.status,
                customer_id=params.customer_id,
                price_id=params.price_id,
                billing_cycle_anchor=subscription.billing_cycle_anchor,
                metadata=_to_dict(subscription.metadata),
            )

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_stripe_error(e, log_context, duration_ms)
            raise

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    @classmethod
    def verify_webhook_signature(
        cls,
        payload: bytes,
        signature: str,
    ) -> dict[str, Any]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw webhook payload bytes, exactly as received
            signature: Stripe-Signature header value

        Returns:
            Event as a plain dict (JSON-serializable for Celery)

        Raises:
            MisconfigurationError: STRIPE_WEBHOOK_SECRET is not set
            InvalidSignatureError: Signature or timestamp did not verify
        """
        secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
        if not secret:
            raise MisconfigurationError(["STRIPE_WEBHOOK_SECRET"])

        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            cls.get_logger().warning(
                "Webhook signature verification failed",
                extra={"error": str(e)},
            )
            raise InvalidSignatureError(
                f"Webhook Error: {e}",
                details={"error": str(e)},
            ) from e
        except ValueError as e:
            raise InvalidSignatureError(
                f"Webhook Error: {e}",
                details={"error": "invalid_payload"},
            ) from e

        return json.loads(payload)

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_stripe_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Stripe exceptions to enrollment domain exceptions.

        Domain exceptions raised inside the adapter pass through unchanged.
        Stripe's own type, code and param are carried over so API callers
        see them verbatim.

        Raises:
            GatewayCardDeclinedError: Card was declined
            GatewayInvalidRequestError: Invalid request parameters
            GatewayAuthenticationError: Invalid API key
            GatewayRateLimitError: Rate limited
            GatewayUnavailableError: API unavailable or unknown failure
        """
        logger = cls.get_logger()

        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, (GatewayError, MisconfigurationError)):
            raise error

        stripe_type = None
        param = None
        error_object: dict[str, Any] = {}
        if isinstance(error, stripe.StripeError):
            error_object = _to_dict(error.error)
            stripe_type = error_object.get("type")
            param = getattr(error, "param", None) or error_object.get("param")

        if isinstance(error, stripe.CardError):
            decline_code = getattr(error, "decline_code", None) or error_object.get(
                "decline_code"
            )
            logger.warning(
                "Card error from Stripe",
                extra={**log_context, "decline_code": decline_code},
            )
            raise GatewayCardDeclinedError(
                str(error.user_message or error),
                stripe_type=stripe_type or "card_error",
                stripe_code=error.code,
                param=param,
                decline_code=decline_code,
            )

        elif isinstance(error, stripe.InvalidRequestError):
            logger.error(
                "Invalid request to Stripe",
                extra={**log_context, "stripe_code": error.code, "param": param},
            )
            raise GatewayInvalidRequestError(
                str(error.user_message or error),
                stripe_type=stripe_type or "invalid_request_error",
                stripe_code=error.code,
                param=param,
            )

        elif isinstance(error, stripe.RateLimitError):
            logger.warning("Rate limited by Stripe", extra=log_context)
            raise GatewayRateLimitError(
                "Stripe rate limit exceeded. Please retry.",
                stripe_type=stripe_type,
                stripe_code=error.code or "rate_limit",
            )

        elif isinstance(error, stripe.APIConnectionError):
            logger.error(
                "Connection error to Stripe",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                "Could not connect to Stripe. Please retry.",
                stripe_type=stripe_type,
                stripe_code="api_connection_error",
            )

        elif isinstance(error, stripe.AuthenticationError):
            logger.critical(
                "Stripe authentication failed - check API key",
                extra=log_context,
            )
            raise GatewayAuthenticationError(
                "Stripe authentication failed",
                stripe_type=stripe_type,
                stripe_code="authentication_error",
            )

        elif isinstance(error, stripe.APIError):
            logger.error("Stripe API error", extra=log_context, exc_info=True)
            raise GatewayUnavailableError(
                "Stripe service error. Please retry.",
                stripe_type=stripe_type or "api_error",
                stripe_code=error.code or "api_error",
            )

        elif isinstance(error, stripe.StripeError):
            logger.error(
                f"Stripe error: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayError(
                str(error.user_message or error),
                stripe_type=stripe_type,
                stripe_code=error.code,
                param=param,
            )

        else:
            logger.error(
                f"Unexpected error from Stripe: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise GatewayUnavailableError(
                f"Unexpected Stripe error: {error}",
                stripe_code="unknown_error",
            )
