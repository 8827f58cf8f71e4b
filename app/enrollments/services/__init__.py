"""
Enrollment services.

This module provides:
- EnrollmentOrchestrator: Validates an enrollment and opens hosted checkout
- SubscriptionActivator: Creates the subscription once checkout completes

Usage:
    from enrollments.services import EnrollmentOrchestrator, SubscriptionActivator

    handle = EnrollmentOrchestrator().enroll(payload)
    result = SubscriptionActivator().activate(session)
"""

from enrollments.services.enrollment_orchestrator import (
    REQUIRED_FIELDS,
    CheckoutHandle,
    EnrollmentOrchestrator,
    EnrollmentRequest,
)
from enrollments.services.subscription_activator import (
    ActivationResult,
    SubscriptionActivator,
    is_enrollment_session,
)

__all__ = [
    "REQUIRED_FIELDS",
    "ActivationResult",
    "CheckoutHandle",
    "EnrollmentOrchestrator",
    "EnrollmentRequest",
    "SubscriptionActivator",
    "is_enrollment_session",
]
