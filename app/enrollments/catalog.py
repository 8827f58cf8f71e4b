"""
Lesson plan catalog.

Maps the human-readable lesson plan label shown on the booking page to the
Stripe Price that bills it and the plan's full monthly amount. Stripe keeps
separate objects for live and test mode, so there are two disjoint maps and
the STRIPE_LIVE_MODE setting picks one.

Usage:
    from enrollments.catalog import PlanCatalog

    plan = PlanCatalog.resolve("45 Minute Lessons - $225 / Month", live_mode=False)
    plan.price_id       # "price_1QxDDOIaMu5TUCAv38VEqyFU"
    plan.amount_cents   # 22500
"""

from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from enrollments.exceptions import InvalidPlanError


@dataclass(frozen=True)
class Plan:
    """
    A purchasable lesson plan.

    Attributes:
        label: Label the client submits as lessonType
        price_id: Stripe recurring Price ID (price_xxx)
        amount_cents: Full monthly price in minor units
    """

    label: str
    price_id: str
    amount_cents: int


LIVE_PLANS: tuple[Plan, ...] = (
    Plan("30 Minute Lessons - $150 / Month", "price_1QweXFIaMu5TUCAvMfkFUcnp", 15000),
    Plan("45 Minute Lessons - $225 / Month", "price_1QweYQIaMu5TUCAv3z4AGnAv", 22500),
    Plan("60 Minute Lessons - $300 / Month", "price_1QweZcIaMu5TUCAv76jQaoON", 30000),
)

TEST_PLANS: tuple[Plan, ...] = (
    Plan("30 Minute Lessons - $150 / Month", "price_1QxCAgIaMu5TUCAvAYJ1hCm0", 15000),
    Plan("45 Minute Lessons - $225 / Month", "price_1QxDDOIaMu5TUCAv38VEqyFU", 22500),
    Plan("60 Minute Lessons - $300 / Month", "price_1QxDDfIaMu5TUCAvHi6jUXYu", 30000),
)


class PlanCatalog:
    """Static lookup over the live and test plan maps."""

    _plans: dict[bool, dict[str, Plan]] = {
        True: {plan.label: plan for plan in LIVE_PLANS},
        False: {plan.label: plan for plan in TEST_PLANS},
    }

    @staticmethod
    def live_mode() -> bool:
        """Return the configured mode flag."""
        return bool(getattr(settings, "STRIPE_LIVE_MODE", False))

    @classmethod
    def plans(cls, live_mode: bool | None = None) -> list[Plan]:
        """List the plans of the given (or configured) mode."""
        if live_mode is None:
            live_mode = cls.live_mode()
        return list(cls._plans[bool(live_mode)].values())

    @classmethod
    def labels(cls, live_mode: bool | None = None) -> list[str]:
        return [plan.label for plan in cls.plans(live_mode)]

    @classmethod
    def resolve(cls, label: str | None, live_mode: bool | None = None) -> Plan:
        """
        Look up a plan by exact label.

        Args:
            label: Plan label as submitted by the client
            live_mode: Map to search (defaults to STRIPE_LIVE_MODE)

        Returns:
            The matching Plan

        Raises:
            InvalidPlanError: Label is not in the active map
        """
        if live_mode is None:
            live_mode = cls.live_mode()
        plan = cls._plans[bool(live_mode)].get(label) if label else None
        if plan is None:
            raise InvalidPlanError(label, live_mode=bool(live_mode))
        return plan
