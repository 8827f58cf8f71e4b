"""
Celery tasks for enrollment activation.

This module provides async tasks for:
- Processing verified Stripe webhook events outside the request
- Periodic reconciliation of completed checkouts that never got a
  subscription (webhook lost, or worker crashed after acknowledging it)

Usage:
    from enrollments.tasks import process_gateway_event

    # Queue a verified event (done by the webhook view)
    process_gateway_event.delay(event)

    # Sweep the last day of completed checkouts (scheduled via celery beat)
    from enrollments.tasks import reconcile_completed_checkouts
    reconcile_completed_checkouts.delay(lookback_hours=24)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from celery import shared_task
from django.utils import timezone

from enrollments.adapters import StripeAdapter
from enrollments.exceptions import (
    GatewayError,
    GatewayRateLimitError,
    GatewayUnavailableError,
    MalformedEventError,
)
from enrollments.services import SubscriptionActivator, is_enrollment_session
from enrollments.webhooks.handlers import dispatch_event

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_EVENT_RETRIES = 5
DEFAULT_LOOKBACK_HOURS = 24


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(GatewayRateLimitError, GatewayUnavailableError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_EVENT_RETRIES},
    acks_late=True,
)
def process_gateway_event(self, event: dict[str, Any]) -> dict:
    """
    Process a verified Stripe webhook event asynchronously.

    Transient gateway errors (rate limit, unavailable) are retried with
    exponential backoff. Activation is idempotent per checkout session, so a
    retry never creates a second subscription. Permanent gateway errors
    propagate and fail the task; malformed events are logged and dropped.

    Args:
        event: Verified event dict from StripeAdapter.verify_webhook_signature

    Returns:
        Dict with processing result status
    """
    stripe_event_id = event.get("id")
    event_type = event.get("type")

    logger.info(
        f"Processing webhook event: {event_type}",
        extra={
            "stripe_event_id": stripe_event_id,
            "retry_count": self.request.retries,
        },
    )

    try:
        result = dispatch_event(event)
    except GatewayError as e:
        log = logger.warning if e.is_retryable else logger.error
        log(
            f"Gateway error processing webhook: {e.message}",
            extra={
                "stripe_event_id": stripe_event_id,
                "error_code": e.error_code,
                "retryable": e.is_retryable,
            },
        )
        raise

    if not result.success:
        logger.warning(
            "Webhook event dropped",
            extra={
                "stripe_event_id": stripe_event_id,
                "error": result.error,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "dropped",
            "stripe_event_id": stripe_event_id,
            "error_code": result.error_code,
        }

    activation = result.data
    if activation is None:
        return {"status": "ignored", "stripe_event_id": stripe_event_id}

    return {
        "status": "processed",
        "stripe_event_id": stripe_event_id,
        "subscription_id": activation.subscription_id,
        "created": activation.created,
    }


# =============================================================================
# Reconciliation
# =============================================================================


@shared_task
def reconcile_completed_checkouts(lookback_hours: int = DEFAULT_LOOKBACK_HOURS) -> dict:
    """
    Activate completed enrollment checkouts that have no subscription yet.

    Lists checkout sessions completed in the lookback window and runs the
    idempotent activation for each one that the enrollment flow opened.
    Sessions that already have a subscription are counted as existing.
    A gateway failure on one session does not stop the sweep.

    Args:
        lookback_hours: How far back to look (default: 24)

    Returns:
        Dict with counts: checked, created, existing, skipped, failed
    """
    since = timezone.now() - timedelta(hours=lookback_hours)
    sessions = StripeAdapter.list_completed_checkout_sessions(since)
    activator = SubscriptionActivator(gateway=StripeAdapter)

    counts = {"checked": 0, "created": 0, "existing": 0, "skipped": 0, "failed": 0}

    for session in sessions:
        counts["checked"] += 1

        if not is_enrollment_session(session) or not session.metadata:
            counts["skipped"] += 1
            continue

        try:
            activation = activator.activate(session)
        except MalformedEventError as e:
            logger.info(
                f"Skipping checkout session: {e.message}",
                extra={"checkout_session_id": session.id},
            )
            counts["skipped"] += 1
            continue
        except GatewayError as e:
            logger.error(
                f"Reconciliation failed for checkout session: {e.message}",
                extra={"checkout_session_id": session.id, "error_code": e.error_code},
            )
            counts["failed"] += 1
            continue

        if activation.created:
            logger.warning(
                "Reconciliation created a missing subscription",
                extra={
                    "checkout_session_id": session.id,
                    "subscription_id": activation.subscription_id,
                },
            )
            counts["created"] += 1
        else:
            counts["existing"] += 1

    logger.info(
        "Checkout reconciliation complete",
        extra={"lookback_hours": lookback_hours, "counts": counts},
    )
    return counts
