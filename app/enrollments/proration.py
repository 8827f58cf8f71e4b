"""
Proration of the first (partial) month of a lesson plan.

A student who enrolls mid-month pays for the days left in the current
calendar month, then the recurring subscription bills the full amount on
the 1st of each following month. All calendar math happens in the business's
local timezone (ENROLLMENT_TIME_ZONE), never in UTC, so "the 1st" means local
midnight on the 1st.

Rounding:
    The charge is rounded half-up to the nearest minor unit using exact
    Decimal arithmetic, e.g. 2.5 cents -> 3 cents. Changing this changes what
    customers are charged.

Usage:
    from django.utils import timezone
    from enrollments.proration import compute_proration

    result = compute_proration(22500, timezone.now(), ZoneInfo("America/Phoenix"))
    result.charge_amount_cents       # e.g. 15000 on the 10th of a 30-day month
    result.billing_anchor_timestamp  # Unix seconds for Stripe
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from django.conf import settings


@dataclass(frozen=True)
class ProrationResult:
    """
    Prorated charge for the rest of the current month.

    Attributes:
        charge_amount_cents: Amount to charge now (0 <= charge <= full amount)
        days_remaining: Days of the month after the enrollment day
        days_in_period: Days in the enrollment month
        billing_anchor: Local midnight on the 1st of next month (tz-aware)
    """

    charge_amount_cents: int
    days_remaining: int
    days_in_period: int
    billing_anchor: datetime

    @property
    def billing_anchor_timestamp(self) -> int:
        """Anchor as Unix seconds, the form Stripe's billing_cycle_anchor takes."""
        return int(self.billing_anchor.timestamp())


def billing_time_zone() -> ZoneInfo:
    """Return the configured billing timezone."""
    return ZoneInfo(getattr(settings, "ENROLLMENT_TIME_ZONE", "America/Phoenix"))


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def prorate_amount(full_amount_cents: int, days_remaining: int, days_in_period: int) -> int:
    """
    Scale a full-period amount to the remaining days, rounding half-up.

    Args:
        full_amount_cents: Full monthly amount in minor units
        days_remaining: Days to charge for (0..days_in_period)
        days_in_period: Days in the billing period

    Returns:
        round_half_up(full * remaining / period)

    Raises:
        ValueError: On negative amounts or out-of-range day counts
    """
    if full_amount_cents < 0:
        raise ValueError("full_amount_cents must not be negative")
    if days_in_period <= 0:
        raise ValueError("days_in_period must be positive")
    if not 0 <= days_remaining <= days_in_period:
        raise ValueError("days_remaining must be between 0 and days_in_period")

    exact = Decimal(full_amount_cents) * Decimal(days_remaining) / Decimal(days_in_period)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def next_billing_anchor(now: datetime, tz: ZoneInfo) -> datetime:
    """
    Local midnight on the first day of the month after ``now``'s month.

    Args:
        now: Reference instant (must be timezone-aware)
        tz: Billing timezone

    Returns:
        Timezone-aware datetime in ``tz``
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    local = now.astimezone(tz)
    if local.month == 12:
        year, month = local.year + 1, 1
    else:
        year, month = local.year, local.month + 1
    return datetime(year, month, 1, tzinfo=tz)


def compute_proration(full_amount_cents: int, now: datetime, tz: ZoneInfo) -> ProrationResult:
    """
    Compute the first-month charge and the recurring billing anchor.

    The enrollment day itself is never charged: enrolling on the 1st of a
    30-day month charges 29/30 of the full amount, enrolling on the last day
    charges nothing.

    Args:
        full_amount_cents: Plan's full monthly amount in minor units
        now: Reference instant (timezone-aware)
        tz: Billing timezone

    Returns:
        ProrationResult
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    local = now.astimezone(tz)
    period = days_in_month(local.year, local.month)
    remaining = period - local.day

    return ProrationResult(
        charge_amount_cents=prorate_amount(full_amount_cents, remaining, period),
        days_remaining=remaining,
        days_in_period=period,
        billing_anchor=next_billing_anchor(now, tz),
    )
