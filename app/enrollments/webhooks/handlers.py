"""
Webhook event handlers for Stripe events.

This module provides a handler registry and the handler for the only event
the enrollment workflow acts on, checkout.session.completed.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- The same dispatch path for the webhook view and the Celery task

Outcomes:
    - Unknown event types: success, nothing done
    - Sessions not opened by the enrollment flow: success, nothing done
    - Malformed enrollment sessions: failure result (MALFORMED_EVENT), to be
      acknowledged since redelivery cannot fix them
    - Gateway errors: raised, so the caller can retry or report them

Usage:
    from enrollments.webhooks.handlers import dispatch_event, register_handler

    @register_handler("customer.subscription.deleted")
    def handle_subscription_deleted(event: dict, gateway=None) -> ServiceResult:
        ...

    result = dispatch_event(event)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from core.services import ServiceResult

from enrollments.adapters import CheckoutSessionResult
from enrollments.exceptions import MalformedEventError
from enrollments.services import SubscriptionActivator, is_enrollment_session

if TYPE_CHECKING:
    from enrollments.adapters import PaymentGateway


logger = logging.getLogger(__name__)

EventHandler = Callable[..., ServiceResult]


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, EventHandler] = {}


def register_handler(event_type: str) -> Callable[[EventHandler], EventHandler]:
    """
    Decorator to register a webhook event handler.

    Handlers receive the verified event dict and an optional gateway
    override, and return a ServiceResult.

    Args:
        event_type: The Stripe event type (e.g., "checkout.session.completed")
    """

    def decorator(func: EventHandler) -> EventHandler:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_event(
    event: dict[str, Any],
    gateway: PaymentGateway | type | None = None,
) -> ServiceResult:
    """
    Dispatch a verified webhook event to the appropriate handler.

    If no handler is registered, returns success so unknown events are
    acknowledged.

    Args:
        event: Verified Stripe event
        gateway: Gateway override (defaults to StripeAdapter)

    Returns:
        ServiceResult from the handler, or success if no handler

    Raises:
        GatewayError: Propagated from the handler
    """
    event_type = event.get("type")
    handler = WEBHOOK_HANDLERS.get(event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {event_type}",
            extra={"stripe_event_id": event.get("id")},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {event_type} to handler",
        extra={"stripe_event_id": event.get("id")},
    )

    return handler(event, gateway=gateway)


# =============================================================================
# Checkout Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(
    event: dict[str, Any],
    gateway: PaymentGateway | type | None = None,
) -> ServiceResult:
    """
    Create the lesson subscription for a completed enrollment checkout.

    Returns:
        ServiceResult with the ActivationResult, None when the session was
        ignored, or a MALFORMED_EVENT failure
    """
    stripe_event_id = event.get("id")
    payload = (event.get("data") or {}).get("object") or {}
    session = CheckoutSessionResult.from_payload(payload)

    if not is_enrollment_session(session):
        logger.info(
            "Ignoring checkout session not opened by enrollment",
            extra={
                "stripe_event_id": stripe_event_id,
                "checkout_session_id": session.id,
                "mode": session.mode,
            },
        )
        return ServiceResult.success(None)

    try:
        result = SubscriptionActivator(gateway=gateway).activate(session)
    except MalformedEventError as e:
        logger.error(
            f"Malformed checkout.session.completed: {e.message}",
            extra={"stripe_event_id": stripe_event_id, **e.details},
        )
        return ServiceResult.from_exception(e)

    return ServiceResult.success(result)
