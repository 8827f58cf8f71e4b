"""
DRF views for the enrollments app.

This module provides API views for:
- Starting an enrollment (hosted checkout for the prorated first month)
- Listing the lesson plans on offer

Related files:
    - services/enrollment_orchestrator.py: EnrollmentOrchestrator
    - serializers.py: Request/response serializers
    - webhooks/views.py: Stripe webhook endpoint
    - urls.py: URL routing

Endpoints:
    POST /api/v1/enrollments/ - Start an enrollment
    GET /api/v1/enrollments/plans/ - List lesson plans
    POST /api/v1/enrollments/webhooks/stripe/ - Stripe webhook endpoint

Security:
    - Enrollment is public (booking page form), rate limited per IP
    - Webhook verifies Stripe signature
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BaseApplicationError
from core.helpers import get_client_ip

from enrollments.catalog import PlanCatalog
from enrollments.serializers import (
    CheckoutResponseSerializer,
    EnrollmentRequestSerializer,
    ErrorResponseSerializer,
    PlanSerializer,
)
from enrollments.services import EnrollmentOrchestrator

logger = logging.getLogger(__name__)


class EnrollmentView(APIView):
    """
    Start a lesson enrollment.

    POST /api/v1/enrollments/

    Request body:
        {
            "studentName": "Ada",
            "customerName": "Grace Lovelace",
            "customerEmail": "grace@example.com",
            "customerPhone": "+1 555 555 0123",
            "lessonType": "45 Minute Lessons - $225 / Month"
        }

    Returns:
        {"checkoutUrl": "https://checkout.stripe.com/..."}
    """

    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_scope = "enrollment"

    orchestrator_class = EnrollmentOrchestrator

    @extend_schema(
        operation_id="create_enrollment",
        summary="Start an enrollment",
        description=(
            "Validates the booking form, creates the Stripe customer and opens a "
            "hosted checkout for the prorated rest of this month. The monthly "
            "subscription is created by the webhook once checkout completes."
        ),
        request=EnrollmentRequestSerializer,
        responses={
            200: CheckoutResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Missing field, unknown lesson type or Stripe rejected the request",
            ),
            500: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Stripe or client URL not configured",
            ),
            503: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Stripe temporarily unavailable",
            ),
        },
        tags=["Enrollments"],
    )
    def post(self, request):
        """Start an enrollment and return the hosted checkout URL."""
        payload = request.data if isinstance(request.data, Mapping) else {}

        try:
            handle = self.orchestrator_class().enroll(payload)
        except BaseApplicationError as e:
            log = logger.error if e.http_status >= 500 else logger.warning
            log(
                f"Enrollment rejected: {e.error_code}",
                extra={"error": e.message, "client_ip": get_client_ip(request)},
            )
            return Response(e.to_dict(), status=e.http_status)

        return Response({"checkoutUrl": handle.checkout_url})


class PlanListView(APIView):
    """
    List the lesson plans of the active Stripe mode.

    GET /api/v1/enrollments/plans/

    Returns:
        [{"label": "30 Minute Lessons - $150 / Month", "amount_cents": 15000}, ...]
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_enrollment_plans",
        summary="List lesson plans",
        responses={200: PlanSerializer(many=True)},
        tags=["Enrollments"],
    )
    def get(self, request):
        return Response(PlanSerializer(PlanCatalog.plans(), many=True).data)
