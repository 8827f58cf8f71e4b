"""
Subscription activation for completed enrollment checkouts.

Runs when Stripe reports checkout.session.completed, either inline in the
webhook request, from the process_gateway_event Celery task, or from the
periodic reconciliation sweep. All three paths go through
SubscriptionActivator.activate(), which is idempotent per checkout session.

Flow:
    1. Read the customer and the lesson plan label from the session
       (metadata written by the EnrollmentOrchestrator)
    2. Return the existing subscription if a live one for the plan's price
       was already created from this checkout session
    3. Resolve the payment method collected by checkout (PaymentIntent in
       payment mode, SetupIntent in setup mode)
    4. Attach it to the customer as the default invoice payment method
    5. Create the subscription anchored to local midnight on the 1st of next
       month, computed from the processing time

Duplicate deliveries:
    Step 2 catches redeliveries after a successful activation. It matches on
    the checkout_session_id in the subscription metadata, so a payer who
    enrolls a second student on the same plan still gets a second
    subscription. Concurrent deliveries that both pass step 2 send the same
    idempotency key (scoped to the checkout session ID), so Stripe returns
    the first subscription to both.

Usage:
    from enrollments.services import SubscriptionActivator

    result = SubscriptionActivator().activate(event["data"]["object"])
    result.subscription_id
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.utils import timezone

from core.services import BaseService

from enrollments.adapters import (
    CheckoutSessionResult,
    CreateSubscriptionParams,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from enrollments.catalog import PlanCatalog
from enrollments.exceptions import InvalidPlanError, MalformedEventError
from enrollments.proration import billing_time_zone, next_billing_anchor

if TYPE_CHECKING:
    from datetime import datetime

    from enrollments.adapters import PaymentGateway


# Checkout modes opened by the enrollment orchestrator.
ENROLLMENT_CHECKOUT_MODES = frozenset({"payment", "setup"})


@dataclass(frozen=True)
class ActivationResult:
    """
    Outcome of activating one checkout session.

    Attributes:
        subscription_id: Subscription ID (sub_xxx)
        customer_id: Customer ID
        plan_label: Lesson plan label
        created: False when an existing subscription was reused
    """

    subscription_id: str
    customer_id: str
    plan_label: str
    created: bool


def is_enrollment_session(session: CheckoutSessionResult) -> bool:
    """Whether a session was opened by the enrollment orchestrator."""
    return session.mode in ENROLLMENT_CHECKOUT_MODES


class SubscriptionActivator(BaseService):
    """
    Turns a completed enrollment checkout into a recurring subscription.

    Usage:
        activator = SubscriptionActivator()
        result = activator.activate(session_payload)
    """

    def __init__(self, gateway: PaymentGateway | type | None = None):
        self.gateway = gateway or StripeAdapter

    def activate(
        self,
        session: CheckoutSessionResult | dict[str, Any],
        now: datetime | None = None,
    ) -> ActivationResult:
        """
        Create the subscription for a completed checkout session, once.

        Args:
            session: Checkout Session (event data.object or adapter result)
            now: Processing instant (defaults to timezone.now())

        Returns:
            ActivationResult

        Raises:
            MalformedEventError: Session lacks the customer, a known plan
                label or a payment method
            GatewayError: A gateway call failed
        """
        if not isinstance(session, CheckoutSessionResult):
            session = CheckoutSessionResult.from_payload(session)

        logger = self.get_logger()
        log_context: dict[str, Any] = {
            "checkout_session_id": session.id,
            "customer_id": session.customer_id,
            "mode": session.mode,
        }

        if not session.customer_id:
            raise MalformedEventError(
                "Checkout session has no customer",
                details={"checkout_session_id": session.id},
            )

        # Older sessions carried the label under the client's field name.
        label = session.metadata.get("lesson_type") or session.metadata.get("lessonType")
        if not label:
            raise MalformedEventError(
                "Checkout session has no lesson_type metadata",
                details={"checkout_session_id": session.id},
            )

        try:
            plan = PlanCatalog.resolve(label)
        except InvalidPlanError as e:
            raise MalformedEventError(
                f"Unknown lesson type in checkout session: {label}",
                details={"checkout_session_id": session.id, "lesson_type": label},
            ) from e

        log_context["lesson_type"] = plan.label
        log_context["price_id"] = plan.price_id

        for existing in self.gateway.list_subscriptions(session.customer_id, plan.price_id):
            from_this_session = existing.metadata.get("checkout_session_id") == session.id
            if existing.is_live and from_this_session:
                logger.info(
                    "Subscription already exists, skipping creation",
                    extra={
                        **log_context,
                        "subscription_id": existing.id,
                        "status": existing.status,
                    },
                )
                return ActivationResult(
                    subscription_id=existing.id,
                    customer_id=session.customer_id,
                    plan_label=plan.label,
                    created=False,
                )

        payment_method_id = self._resolve_payment_method(session)
        self.gateway.attach_payment_method(payment_method_id, session.customer_id)

        anchor = next_billing_anchor(now or timezone.now(), billing_time_zone())

        subscription = self.gateway.create_subscription(
            CreateSubscriptionParams(
                customer_id=session.customer_id,
                price_id=plan.price_id,
                billing_cycle_anchor=int(anchor.timestamp()),
                default_payment_method=payment_method_id,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_subscription", session.id
                ),
                metadata={
                    "student_name": session.metadata.get("student_name", ""),
                    "lesson_type": plan.label,
                    "checkout_session_id": session.id,
                },
            )
        )

        logger.info(
            "Subscription activated",
            extra={
                **log_context,
                "subscription_id": subscription.id,
                "status": subscription.status,
                "billing_anchor": anchor.isoformat(),
            },
        )

        return ActivationResult(
            subscription_id=subscription.id,
            customer_id=session.customer_id,
            plan_label=plan.label,
            created=True,
        )

    def _resolve_payment_method(self, session: CheckoutSessionResult) -> str:
        """Find the payment method checkout collected."""
        if session.mode == "payment" and session.payment_intent_id:
            intent = self.gateway.retrieve_payment_intent(session.payment_intent_id)
        elif session.mode == "setup" and session.setup_intent_id:
            intent = self.gateway.retrieve_setup_intent(session.setup_intent_id)
        else:
            intent = None

        if intent is None or not intent.payment_method_id:
            raise MalformedEventError(
                "Checkout session has no payment method",
                details={"checkout_session_id": session.id, "mode": session.mode},
            )
        return intent.payment_method_id
