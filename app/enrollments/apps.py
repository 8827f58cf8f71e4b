"""
Enrollments app configuration.

This app turns a booking form submission into a Stripe checkout for the
prorated first month, then into a monthly lesson subscription once the
checkout webhook arrives. It has no models: Stripe is the system of record.
"""

from django.apps import AppConfig


class EnrollmentsConfig(AppConfig):
    """Configuration for the enrollments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "enrollments"
    verbose_name = "Enrollments"

    def ready(self) -> None:
        # Registers the webhook handlers
        from enrollments.webhooks import handlers  # noqa: F401
