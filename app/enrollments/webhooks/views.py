"""
Webhook endpoint view for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Verifies the webhook signature against the raw request body
2. Queues the verified event for async processing (default), or
   dispatches it inline when ENROLLMENT_WEBHOOK_DEFERRED is off
3. Acknowledges every verified event, including ignored and malformed ones

Stripe expects a 2xx response within a few seconds; queueing keeps the
response fast while subscription creation runs in a Celery worker.

Usage:
    # In urls.py
    from enrollments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from enrollments.adapters import StripeAdapter
from enrollments.exceptions import (
    GatewayError,
    InvalidSignatureError,
    MisconfigurationError,
)
from enrollments.webhooks.handlers import dispatch_event


logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive Stripe webhook events.

    Security:
    - Signature verification is the only authentication for this endpoint
    - The body is read raw; re-serialized JSON would not verify
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Returns:
        HttpResponse with status:
        - 200: Event accepted, ignored or malformed
        - 400: Missing or invalid signature
        - 500: Webhook secret not configured, or an inline gateway failure
          (Stripe redelivers)

    Example Stripe-Signature header:
        t=1614556800,v1=xxx,v0=yyy
    """
    payload = request.body
    signature = request.headers.get("Stripe-Signature", "")

    if not signature:
        logger.warning("Webhook received without Stripe-Signature header")
        return HttpResponse("Missing signature", status=400)

    try:
        event = StripeAdapter.verify_webhook_signature(payload, signature)
    except MisconfigurationError as e:
        logger.error("Webhook secret is not configured", extra=e.details)
        return JsonResponse({"error": e.message}, status=e.http_status)
    except InvalidSignatureError as e:
        return HttpResponse(e.message, status=400)

    stripe_event_id = event.get("id")
    event_type = event.get("type")

    if not event_type:
        logger.warning("Webhook missing event type", extra={"stripe_event_id": stripe_event_id})
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received Stripe webhook: {event_type}",
        extra={"stripe_event_id": stripe_event_id, "event_type": event_type},
    )

    if getattr(settings, "ENROLLMENT_WEBHOOK_DEFERRED", True):
        from enrollments.tasks import process_gateway_event

        try:
            process_gateway_event.delay(event)
        except Exception as e:
            # Broker unreachable: process in the request instead of dropping it
            logger.error(
                f"Failed to queue webhook, processing inline: {type(e).__name__}",
                extra={"stripe_event_id": stripe_event_id},
                exc_info=True,
            )
        else:
            logger.info("Webhook queued for processing", extra={"stripe_event_id": stripe_event_id})
            return HttpResponse("Accepted", status=200)

    try:
        result = dispatch_event(event)
    except GatewayError as e:
        logger.error(
            f"Gateway error processing webhook: {e.message}",
            extra={"stripe_event_id": stripe_event_id, "error_code": e.error_code},
        )
        return JsonResponse(e.to_dict(), status=500)

    if not result.success:
        logger.warning(
            "Webhook acknowledged without action",
            extra={
                "stripe_event_id": stripe_event_id,
                "error": result.error,
                "error_code": result.error_code,
            },
        )
        return HttpResponse("Event acknowledged", status=200)

    return HttpResponse("Webhook received.", status=200)
