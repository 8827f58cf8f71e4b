"""
URL configuration for the enrollments app.

Routes:
    - POST / - Start an enrollment
    - GET /plans/ - List lesson plans
    - POST /webhooks/stripe/ - Stripe webhook endpoint

All routes are prefixed with /api/v1/enrollments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("enrollments/", include("enrollments.urls")),
    ]
"""

from django.urls import path

from enrollments.views import EnrollmentView, PlanListView
from enrollments.webhooks.views import stripe_webhook

app_name = "enrollments"

urlpatterns = [
    path("", EnrollmentView.as_view(), name="enroll"),
    path("plans/", PlanListView.as_view(), name="plans"),
    # Webhook endpoints
    path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
]
