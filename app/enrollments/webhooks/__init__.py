"""
Webhook handling for enrollment events from Stripe.

This module provides the view and handlers that turn a completed checkout
into a lesson subscription. Events are verified, then processed either in a
Celery task or inline.

Usage:
    # In urls.py
    from enrollments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from enrollments.webhooks.handlers import dispatch_event, register_handler
from enrollments.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_event",
    "register_handler",
    "stripe_webhook",
]
