"""Cancellation penalty calculation.

A listing carries a list of cancellation windows ``{days_quantity,
penalty_percentage}``. When a client cancels with N days left before the
start date, the applicable window is the one with the smallest
``days_quantity`` that is still >= N (the tightest window the cancellation
falls inside). Cancelling outside every window costs nothing.

Examples with windows 7 days → 50% and 3 days → 20%, total 1000:
- 5 days before: the 7-day window applies → 500.00
- 2 days before: the 3-day window applies → 200.00
- 10 days before: no window applies → 0.00

All functions here are pure: identical input always yields identical output.
"""

import datetime as dt
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, TypedDict

from marketplace_core.models.booking import CancellationPolicy

CENTS = Decimal("0.01")
SECONDS_PER_DAY = 86400


class PenaltyCalculation(TypedDict):
    """Result of a penalty calculation."""

    penalty_amount: Decimal
    days_before_booking: int
    applicable_policy: CancellationPolicy | None


def days_before_booking(start_date: dt.date, now: dt.datetime) -> int:
    """Whole days left before the booking starts, rounded up, floored at 0.

    The start date is taken as midnight UTC. A naive ``now`` is read as UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    start = dt.datetime.combine(start_date, dt.time.min, tzinfo=dt.timezone.utc)
    seconds = (start - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / SECONDS_PER_DAY)


def select_policy(
    policies: Iterable[CancellationPolicy], days: int
) -> CancellationPolicy | None:
    """Pick the tightest window that still contains ``days``.

    Ties on ``days_quantity`` resolve to the highest percentage so the result
    does not depend on list order.
    """
    candidates = [p for p in policies if p.days_quantity >= days]
    if not candidates:
        return None
    return min(candidates, key=lambda p: (p.days_quantity, -p.penalty_percentage))


def compute_penalty(
    policies: Iterable[CancellationPolicy],
    total_amount: Decimal,
    start_date: dt.date,
    now: dt.datetime,
) -> PenaltyCalculation:
    """Calculate the penalty a client pays for cancelling.

    Args:
        policies: Cancellation windows of the listing (any order)
        total_amount: Booking total
        start_date: Booking start date
        now: Moment of the cancellation

    Returns:
        PenaltyCalculation with amount rounded to 2 decimals
    """
    days = days_before_booking(start_date, now)
    policy = select_policy(policies, days)

    if policy is None:
        penalty = Decimal("0.00")
    else:
        penalty = (
            Decimal(total_amount) * policy.penalty_percentage / Decimal(100)
        ).quantize(CENTS, rounding=ROUND_HALF_UP)

    return PenaltyCalculation(
        penalty_amount=penalty,
        days_before_booking=days,
        applicable_policy=policy,
    )


def format_amount(amount: Decimal, currency: str) -> str:
    """Format an amount with its currency code, e.g. ``500.00 ARS``."""
    return f"{Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)} {currency}"


def describe_penalty(calculation: PenaltyCalculation, currency: str) -> str:
    """One-line human-readable summary of a penalty calculation."""
    policy = calculation["applicable_policy"]
    days = calculation["days_before_booking"]
    if policy is None or calculation["penalty_amount"] == 0:
        return f"No penalty: cancelled {days} days before the start date"
    return (
        f"Penalty of {format_amount(calculation['penalty_amount'], currency)} "
        f"({policy.penalty_percentage.normalize():f}% for cancelling within "
        f"{policy.days_quantity} days; cancelled {days} days before the start date)"
    )
