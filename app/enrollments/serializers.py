"""
DRF serializers for the enrollments app.

This module provides serializers for:
- The enrollment request body and its checkout response
- The lesson plan list
- Error bodies (OpenAPI documentation only)

Field validation of the enrollment body happens in
EnrollmentRequest.from_payload, which reports the first missing field in
a fixed order. EnrollmentRequestSerializer only describes the body for the
schema.

Related files:
    - views.py: Enrollment API views
    - services/enrollment_orchestrator.py: EnrollmentRequest
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, extend_schema_serializer
from rest_framework import serializers


@extend_schema_serializer(
    examples=[
        OpenApiExample(
            "Enrollment",
            value={
                "studentName": "Ada",
                "customerName": "Grace Lovelace",
                "customerEmail": "grace@example.com",
                "customerPhone": "+1 555 555 0123",
                "lessonType": "45 Minute Lessons - $225 / Month",
            },
            request_only=True,
        ),
    ]
)
class EnrollmentRequestSerializer(serializers.Serializer):
    """
    Enrollment request body.

    Fields:
        studentName: Student taking the lessons
        customerName: Parent/guardian paying
        customerEmail: Payer email
        customerPhone: Payer phone
        lessonType: Lesson plan label from GET /plans/
    """

    studentName = serializers.CharField()
    customerName = serializers.CharField()
    customerEmail = serializers.EmailField()
    customerPhone = serializers.CharField()
    lessonType = serializers.CharField()


class CheckoutResponseSerializer(serializers.Serializer):
    checkoutUrl = serializers.URLField(help_text="Hosted checkout page")


class PlanSerializer(serializers.Serializer):
    """
    Lesson plan as offered on the booking page.

    Usage:
        PlanSerializer(PlanCatalog.plans(), many=True).data
    """

    label = serializers.CharField(read_only=True)
    amount_cents = serializers.IntegerField(read_only=True)


class ErrorResponseSerializer(serializers.Serializer):
    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
    type = serializers.CharField(required=False, help_text="Stripe error type")
    code = serializers.CharField(required=False, help_text="Stripe error code")
    param = serializers.CharField(required=False, help_text="Stripe error param")
