"""
Enrollments - lesson plan sign-up and subscription activation.

Modules:
    catalog: Lesson plan labels, Stripe prices and amounts
    proration: First-month charge and billing anchor
    adapters: Stripe gateway adapter and its protocol
    services: EnrollmentOrchestrator, SubscriptionActivator
    webhooks: Stripe webhook view and event handlers
    tasks: Deferred activation and reconciliation (Celery)
"""
