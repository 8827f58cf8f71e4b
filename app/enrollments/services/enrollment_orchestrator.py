"""
Enrollment orchestrator for starting a student's lesson plan.

This module provides the EnrollmentOrchestrator class which serves as the
entry point for a new enrollment. It coordinates the plan catalog, the
proration calculator and the payment gateway.

The orchestrator:
- Validates the inbound request (first missing field wins)
- Resolves the lesson plan before any gateway call
- Computes the prorated first-month charge in the billing timezone
- Creates (or, by policy, reuses) the gateway customer
- Opens a hosted checkout session carrying the correlation metadata

It never creates the subscription. No payment method exists yet at this
point; the webhook side (enrollments.services.subscription_activator) reads
the metadata back once checkout completes.

Failure semantics:
    Gateway failures abort the workflow and propagate as GatewayError.
    A customer created before a later failure is not rolled back: the
    gateway keeps it as an orphan record, logged at WARNING with its ID.

Usage:
    from enrollments.services import EnrollmentOrchestrator

    handle = EnrollmentOrchestrator().enroll(request.data)
    return Response({"checkoutUrl": handle.checkout_url})
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from django.conf import settings
from django.utils import timezone

from core.helpers import mask_email, mask_phone
from core.services import BaseService

from enrollments.adapters import (
    CreateCheckoutSessionParams,
    CreateCustomerParams,
    CustomerResult,
    IdempotencyKeyGenerator,
    StripeAdapter,
)
from enrollments.catalog import Plan, PlanCatalog
from enrollments.exceptions import GatewayError, MisconfigurationError, MissingFieldError
from enrollments.proration import ProrationResult, billing_time_zone, compute_proration

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from enrollments.adapters import PaymentGateway


# Inbound field name -> EnrollmentRequest attribute, in validation order.
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("studentName", "student_name"),
    ("customerName", "payer_name"),
    ("customerEmail", "payer_email"),
    ("customerPhone", "payer_phone"),
    ("lessonType", "plan_label"),
)


# =============================================================================
# Data Types
# =============================================================================


@dataclass(frozen=True)
class EnrollmentRequest:
    """
    A validated enrollment request. Never persisted.

    Attributes:
        student_name: Student taking the lessons
        payer_name: Parent/guardian paying for them
        payer_email: Payer email
        payer_phone: Payer phone
        plan_label: Lesson plan label from the catalog
    """

    student_name: str
    payer_name: str
    payer_email: str
    payer_phone: str
    plan_label: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> EnrollmentRequest:
        """
        Build a request from the client's JSON body.

        Missing, null and whitespace-only values count as absent.

        Raises:
            MissingFieldError: For the first absent field in REQUIRED_FIELDS order
        """
        values: dict[str, str] = {}
        for field_name, attribute in REQUIRED_FIELDS:
            value = payload.get(field_name)
            if value is None or not str(value).strip():
                raise MissingFieldError(field_name)
            values[attribute] = str(value).strip()
        return cls(**values)

    @property
    def correlation_metadata(self) -> dict[str, str]:
        """Metadata the webhook reads back to activate the subscription."""
        return {
            "student_name": self.student_name,
            "lesson_type": self.plan_label,
        }


@dataclass(frozen=True)
class CheckoutHandle:
    """
    Result of a successful enrollment.

    Attributes:
        checkout_url: Hosted checkout page to redirect the payer to
        session_id: Checkout Session ID
        customer_id: Gateway customer ID
        plan_label: Resolved plan label
        proration: First-month charge and billing anchor used
    """

    checkout_url: str
    session_id: str
    customer_id: str
    plan_label: str
    proration: ProrationResult


# =============================================================================
# Enrollment Orchestrator
# =============================================================================


class EnrollmentOrchestrator(BaseService):
    """
    Coordinates a single enrollment from request to hosted checkout.

    The gateway is injected so tests can pass an in-memory double; it
    defaults to StripeAdapter.

    Customer policy:
        ENROLLMENT_REUSE_EXISTING_CUSTOMER=False (default) always creates a
        new customer. When True, the most recent customer with the payer's
        email is reused and its correlation metadata is overwritten. The
        lookup is best-effort: two concurrent enrollments for the same email
        can still create two customers.

    Usage:
        handle = EnrollmentOrchestrator().enroll(payload)
        handle = EnrollmentOrchestrator(gateway=fake).enroll(payload, now=now)
    """

    def __init__(self, gateway: PaymentGateway | type | None = None):
        self.gateway = gateway or StripeAdapter

    @staticmethod
    def check_configuration() -> None:
        """
        Raise if settings needed to enroll are missing.

        Raises:
            MisconfigurationError: STRIPE_SECRET_KEY or CLIENT_URL is blank
        """
        missing = [
            name
            for name in ("STRIPE_SECRET_KEY", "CLIENT_URL")
            if not getattr(settings, name, "")
        ]
        if missing:
            raise MisconfigurationError(missing)

    def enroll(
        self,
        payload: Mapping[str, Any],
        now: datetime | None = None,
    ) -> CheckoutHandle:
        """
        Validate the request, provision the customer and open checkout.

        Args:
            payload: Client body (studentName, customerName, customerEmail,
                customerPhone, lessonType)
            now: Reference instant (defaults to timezone.now())

        Returns:
            CheckoutHandle with the hosted checkout URL

        Raises:
            MisconfigurationError: Required settings are missing
            MissingFieldError: A required field is absent
            InvalidPlanError: Unknown lesson plan label
            GatewayError: Any gateway call failed
        """
        self.check_configuration()
        request = EnrollmentRequest.from_payload(payload)
        plan = PlanCatalog.resolve(request.plan_label)

        now = now or timezone.now()
        proration = compute_proration(plan.amount_cents, now, billing_time_zone())

        logger = self.get_logger()
        log_context = {
            "email": mask_email(request.payer_email),
            "phone": mask_phone(request.payer_phone),
            "lesson_type": plan.label,
            "charge_amount_cents": proration.charge_amount_cents,
            "days_remaining": proration.days_remaining,
            "days_in_period": proration.days_in_period,
            "billing_anchor": proration.billing_anchor.isoformat(),
        }
        logger.info("Starting enrollment", extra=log_context)

        customer = self._provision_customer(request)

        try:
            session = self.gateway.create_checkout_session(
                CreateCheckoutSessionParams(
                    customer_id=customer.id,
                    amount_cents=proration.charge_amount_cents,
                    currency=getattr(settings, "ENROLLMENT_CURRENCY", "usd"),
                    product_name=f"{plan.label} (first month, prorated)",
                    success_url=self._success_url(customer.id, plan),
                    cancel_url=self._cancel_url(customer.id, plan),
                    idempotency_key=IdempotencyKeyGenerator.generate(
                        "create_checkout_session",
                        f"{customer.id}-{int(now.timestamp())}",
                    ),
                    metadata={
                        **request.correlation_metadata,
                        "price_id": plan.price_id,
                    },
                )
            )
        except GatewayError:
            if customer.created:
                logger.warning(
                    "Checkout session failed after customer creation; "
                    "customer left without a subscription",
                    extra={**log_context, "orphan_customer_id": customer.id},
                )
            raise

        logger.info(
            "Enrollment checkout opened",
            extra={
                **log_context,
                "customer_id": customer.id,
                "checkout_session_id": session.id,
                "mode": session.mode,
            },
        )

        return CheckoutHandle(
            checkout_url=session.url,
            session_id=session.id,
            customer_id=customer.id,
            plan_label=plan.label,
            proration=proration,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _provision_customer(self, request: EnrollmentRequest) -> CustomerResult:
        """Create the customer, or reuse one by email when the policy allows."""
        if getattr(settings, "ENROLLMENT_REUSE_EXISTING_CUSTOMER", False):
            existing = self.gateway.find_customer_by_email(request.payer_email)
            if existing is not None:
                self.get_logger().info(
                    "Reusing existing customer",
                    extra={
                        "customer_id": existing.id,
                        "email": mask_email(request.payer_email),
                    },
                )
                updated = self.gateway.update_customer_metadata(
                    existing.id, request.correlation_metadata
                )
                updated.created = False
                return updated

        return self.gateway.create_customer(
            CreateCustomerParams(
                email=request.payer_email,
                name=request.payer_name,
                phone=request.payer_phone,
                metadata=request.correlation_metadata,
                idempotency_key=IdempotencyKeyGenerator.generate(
                    "create_customer",
                    uuid.uuid4(),
                ),
            )
        )

    @staticmethod
    def _client_url() -> str:
        return settings.CLIENT_URL.rstrip("/")

    def _success_url(self, customer_id: str, plan: Plan) -> str:
        # {CHECKOUT_SESSION_ID} is substituted by Stripe and must stay unescaped
        query = urlencode({"customer_id": customer_id, "lesson_type": plan.label})
        return f"{self._client_url()}/thank-you?session_id={{CHECKOUT_SESSION_ID}}&{query}"

    def _cancel_url(self, customer_id: str, plan: Plan) -> str:
        query = urlencode({"customer_id": customer_id, "lesson_type": plan.label})
        return f"{self._client_url()}/cancellation?{query}"
