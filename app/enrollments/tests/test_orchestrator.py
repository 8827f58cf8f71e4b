"""
Tests for EnrollmentOrchestrator.

Runs the orchestrator against the in-memory FakeGateway so every gateway
call can be asserted without touching Stripe.

Test Organization:
    - TestEnrollmentRequest: Payload validation and field order
    - TestEnrollSuccess: Customer, checkout session and metadata
    - TestEnrollRejections: Validation and configuration failures
    - TestCustomerPolicy: Create-new vs reuse-by-email
    - TestGatewayFailures: Propagation and orphan customer logging
    - TestRedirectUrls: Success and cancel URLs
"""

import logging
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from enrollments.adapters import CustomerResult
from enrollments.exceptions import (
    GatewayCardDeclinedError,
    GatewayUnavailableError,
    InvalidPlanError,
    MisconfigurationError,
    MissingFieldError,
)
from enrollments.services import REQUIRED_FIELDS, EnrollmentOrchestrator, EnrollmentRequest
from enrollments.conftest import ENROLLMENT_NOW, MONTHLY_PLAN_LABEL, PLAN_PRICE_ID


# =============================================================================
# EnrollmentRequest
# =============================================================================


class TestEnrollmentRequest:
    """Tests for EnrollmentRequest.from_payload."""

    def test_builds_from_valid_payload(self, enrollment_payload):
        """Should map client field names onto the request."""
        request = EnrollmentRequest.from_payload(enrollment_payload)

        assert request.student_name == "Ada"
        assert request.payer_name == "Grace Lovelace"
        assert request.payer_email == "grace@example.com"
        assert request.payer_phone == "+15555550123"
        assert request.plan_label == MONTHLY_PLAN_LABEL

    @pytest.mark.parametrize("field_name", [name for name, _ in REQUIRED_FIELDS])
    def test_each_missing_field_is_reported(self, enrollment_payload, field_name):
        """Should name the missing field."""
        del enrollment_payload[field_name]

        with pytest.raises(MissingFieldError) as exc_info:
            EnrollmentRequest.from_payload(enrollment_payload)

        assert exc_info.value.field == field_name
        assert exc_info.value.message == f"Missing required field: {field_name}"

    def test_reports_first_missing_field_in_order(self, enrollment_payload):
        """Should report the earliest missing field when several are absent."""
        del enrollment_payload["lessonType"]
        del enrollment_payload["customerEmail"]
        del enrollment_payload["customerName"]

        with pytest.raises(MissingFieldError) as exc_info:
            EnrollmentRequest.from_payload(enrollment_payload)

        assert exc_info.value.field == "customerName"

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_values_count_as_missing(self, enrollment_payload, blank):
        """Should treat null and whitespace-only values as absent."""
        enrollment_payload["customerPhone"] = blank

        with pytest.raises(MissingFieldError) as exc_info:
            EnrollmentRequest.from_payload(enrollment_payload)

        assert exc_info.value.field == "customerPhone"

    def test_correlation_metadata(self, enrollment_payload):
        """Should carry the student name and lesson plan label."""
        request = EnrollmentRequest.from_payload(enrollment_payload)

        assert request.correlation_metadata == {
            "student_name": "Ada",
            "lesson_type": MONTHLY_PLAN_LABEL,
        }


# =============================================================================
# Successful Enrollment
# =============================================================================


class TestEnrollSuccess:
    """Tests for a successful enrollment."""

    def test_returns_checkout_url(self, fake_gateway, enrollment_payload):
        """Should return the hosted checkout URL of the new session."""
        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        assert handle.checkout_url.startswith("https://checkout.stripe.com/")
        assert handle.session_id in fake_gateway.sessions
        assert handle.plan_label == MONTHLY_PLAN_LABEL

    def test_creates_customer_then_checkout(self, fake_gateway, enrollment_payload):
        """Should create exactly one customer and one checkout session."""
        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        assert fake_gateway.operations() == ["create_customer", "create_checkout_session"]
        assert "create_subscription" not in fake_gateway.operations()

    def test_customer_details(self, fake_gateway, enrollment_payload):
        """Should create the customer with the payer's contact details."""
        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[0]
        assert params.email == "grace@example.com"
        assert params.name == "Grace Lovelace"
        assert params.phone == "+15555550123"
        assert params.metadata == {"student_name": "Ada", "lesson_type": MONTHLY_PLAN_LABEL}
        assert params.idempotency_key.startswith("create_customer:")

    def test_prorated_payment_session(self, fake_gateway, enrollment_payload):
        """Should charge the prorated amount in payment mode."""
        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        assert params.amount_cents == 15000
        assert params.mode == "payment"
        assert params.currency == "usd"
        assert params.product_name == f"{MONTHLY_PLAN_LABEL} (first month, prorated)"
        assert params.customer_id == handle.customer_id
        assert handle.proration.charge_amount_cents == 15000

    def test_session_metadata_correlates_webhook(self, fake_gateway, enrollment_payload):
        """Should put what the webhook needs into the session metadata."""
        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        assert params.metadata == {
            "student_name": "Ada",
            "lesson_type": MONTHLY_PLAN_LABEL,
            "price_id": PLAN_PRICE_ID,
        }

    def test_last_day_opens_setup_session(self, fake_gateway, enrollment_payload):
        """Should open a setup-mode session when nothing is due this month."""
        last_day = datetime(2026, 6, 30, 18, tzinfo=timezone.utc)

        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=last_day
        )

        _, params = fake_gateway.calls[1]
        assert params.amount_cents == 0
        assert params.mode == "setup"
        assert fake_gateway.sessions[handle.session_id].mode == "setup"

    def test_separate_enrollments_use_separate_customer_keys(
        self, fake_gateway, enrollment_payload
    ):
        """Should not collapse two enrollments into one customer."""
        orchestrator = EnrollmentOrchestrator(gateway=fake_gateway)

        first = orchestrator.enroll(enrollment_payload, now=ENROLLMENT_NOW)
        second = orchestrator.enroll(enrollment_payload, now=ENROLLMENT_NOW)

        assert first.customer_id != second.customer_id
        assert len(fake_gateway.customers) == 2


# =============================================================================
# Rejections
# =============================================================================


class TestEnrollRejections:
    """Tests for enrollments rejected before any gateway call."""

    def test_missing_field_makes_no_gateway_calls(self, fake_gateway, enrollment_payload):
        """Should fail validation without touching the gateway."""
        del enrollment_payload["studentName"]

        with pytest.raises(MissingFieldError):
            EnrollmentOrchestrator(gateway=fake_gateway).enroll(
                enrollment_payload, now=ENROLLMENT_NOW
            )

        assert fake_gateway.calls == []

    def test_invalid_plan_makes_no_gateway_calls(self, fake_gateway, enrollment_payload):
        """Should reject an unknown plan without touching the gateway."""
        enrollment_payload["lessonType"] = "Tuba Lessons"

        with pytest.raises(InvalidPlanError):
            EnrollmentOrchestrator(gateway=fake_gateway).enroll(
                enrollment_payload, now=ENROLLMENT_NOW
            )

        assert fake_gateway.calls == []

    def test_live_mode_uses_live_price(self, fake_gateway, enrollment_payload, settings):
        """Should bill the live price when live mode is on."""
        settings.STRIPE_LIVE_MODE = True

        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        assert params.metadata["price_id"] != PLAN_PRICE_ID
        assert handle.plan_label == MONTHLY_PLAN_LABEL

    def test_missing_client_url(self, fake_gateway, enrollment_payload, settings):
        """Should refuse to enroll without a client URL."""
        settings.CLIENT_URL = ""

        with pytest.raises(MisconfigurationError) as exc_info:
            EnrollmentOrchestrator(gateway=fake_gateway).enroll(enrollment_payload)

        assert exc_info.value.missing == ["CLIENT_URL"]
        assert exc_info.value.http_status == 500
        assert fake_gateway.calls == []

    def test_missing_secret_key_checked_before_payload(self, fake_gateway, settings):
        """Should report misconfiguration even for an empty payload."""
        settings.STRIPE_SECRET_KEY = ""
        settings.CLIENT_URL = ""

        with pytest.raises(MisconfigurationError) as exc_info:
            EnrollmentOrchestrator(gateway=fake_gateway).enroll({})

        assert exc_info.value.missing == ["STRIPE_SECRET_KEY", "CLIENT_URL"]


# =============================================================================
# Customer Policy
# =============================================================================


class TestCustomerPolicy:
    """Tests for the create-new vs reuse customer policy."""

    def test_default_always_creates(self, fake_gateway, enrollment_payload):
        """Should not look customers up when reuse is off."""
        fake_gateway.customers["cus_old"] = CustomerResult(
            id="cus_old", email="grace@example.com"
        )

        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        assert "find_customer_by_email" not in fake_gateway.operations()
        assert handle.customer_id != "cus_old"

    def test_reuse_existing_customer(self, fake_gateway, enrollment_payload, settings):
        """Should reuse the customer and refresh its metadata."""
        settings.ENROLLMENT_REUSE_EXISTING_CUSTOMER = True
        fake_gateway.customers["cus_old"] = CustomerResult(
            id="cus_old",
            email="grace@example.com",
            metadata={"student_name": "Older Sibling", "lesson_type": "old"},
        )

        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        assert handle.customer_id == "cus_old"
        assert fake_gateway.operations() == [
            "find_customer_by_email",
            "update_customer_metadata",
            "create_checkout_session",
        ]
        assert fake_gateway.customers["cus_old"].metadata == {
            "student_name": "Ada",
            "lesson_type": MONTHLY_PLAN_LABEL,
        }

    def test_reuse_falls_back_to_create(self, fake_gateway, enrollment_payload, settings):
        """Should create a customer when none has the email."""
        settings.ENROLLMENT_REUSE_EXISTING_CUSTOMER = True

        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        assert fake_gateway.operations() == [
            "find_customer_by_email",
            "create_customer",
            "create_checkout_session",
        ]


# =============================================================================
# Gateway Failures
# =============================================================================


class TestGatewayFailures:
    """Tests for gateway failures during enrollment."""

    def test_customer_failure_propagates(self, fake_gateway, enrollment_payload):
        """Should propagate a customer creation failure untouched."""
        fake_gateway.fail_on["create_customer"] = GatewayCardDeclinedError(
            "declined", stripe_code="card_declined"
        )

        with pytest.raises(GatewayCardDeclinedError):
            EnrollmentOrchestrator(gateway=fake_gateway).enroll(
                enrollment_payload, now=ENROLLMENT_NOW
            )

        assert "create_checkout_session" not in fake_gateway.operations()

    def test_checkout_failure_logs_orphan_customer(
        self, fake_gateway, enrollment_payload, caplog
    ):
        """Should log the customer left behind when checkout fails."""
        fake_gateway.fail_on["create_checkout_session"] = GatewayUnavailableError("down")

        with caplog.at_level(logging.WARNING):
            with pytest.raises(GatewayUnavailableError):
                EnrollmentOrchestrator(gateway=fake_gateway).enroll(
                    enrollment_payload, now=ENROLLMENT_NOW
                )

        orphan_records = [r for r in caplog.records if hasattr(r, "orphan_customer_id")]
        assert len(orphan_records) == 1
        assert orphan_records[0].levelno == logging.WARNING
        assert orphan_records[0].orphan_customer_id in fake_gateway.customers

    def test_no_orphan_log_for_reused_customer(
        self, fake_gateway, enrollment_payload, settings, caplog
    ):
        """Should not flag a reused customer as an orphan."""
        settings.ENROLLMENT_REUSE_EXISTING_CUSTOMER = True
        fake_gateway.customers["cus_old"] = CustomerResult(
            id="cus_old", email="grace@example.com"
        )
        fake_gateway.fail_on["create_checkout_session"] = GatewayUnavailableError("down")

        with caplog.at_level(logging.WARNING):
            with pytest.raises(GatewayUnavailableError):
                EnrollmentOrchestrator(gateway=fake_gateway).enroll(
                    enrollment_payload, now=ENROLLMENT_NOW
                )

        assert not [r for r in caplog.records if hasattr(r, "orphan_customer_id")]


# =============================================================================
# Redirect URLs
# =============================================================================


class TestRedirectUrls:
    """Tests for the checkout success and cancel URLs."""

    def test_success_url(self, fake_gateway, enrollment_payload):
        """Should return to the thank-you page with the session placeholder."""
        handle = EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        assert params.success_url.startswith(
            "https://lessons.example.com/thank-you?session_id={CHECKOUT_SESSION_ID}&"
        )
        query = parse_qs(urlsplit(params.success_url).query)
        assert query["customer_id"] == [handle.customer_id]
        assert query["lesson_type"] == [MONTHLY_PLAN_LABEL]

    def test_cancel_url(self, fake_gateway, enrollment_payload):
        """Should return to the cancellation page."""
        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        parts = urlsplit(params.cancel_url)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == (
            "https://lessons.example.com/cancellation"
        )
        assert parse_qs(parts.query)["lesson_type"] == [MONTHLY_PLAN_LABEL]

    def test_trailing_slash_on_client_url(self, fake_gateway, enrollment_payload, settings):
        """Should not produce a double slash."""
        settings.CLIENT_URL = "https://lessons.example.com/"

        EnrollmentOrchestrator(gateway=fake_gateway).enroll(
            enrollment_payload, now=ENROLLMENT_NOW
        )

        _, params = fake_gateway.calls[1]
        assert "//thank-you" not in params.success_url
        assert "//cancellation" not in params.cancel_url
