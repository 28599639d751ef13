"""Installment plan arithmetic on top of monthly subscriptions"""

from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from permis_gateway.domain.exceptions import InvalidCycleCountError

ALLOWED_CYCLES = frozenset({2, 3, 4})


def validate_cycles(cycles: object) -> int:
    """
    Coerce and check an installment cycle count.

    Raises:
        InvalidCycleCountError: If cycles is not an integer in {2, 3, 4}
    """
    if isinstance(cycles, bool):
        raise InvalidCycleCountError(cycles)
    try:
        n = int(cycles)
    except (TypeError, ValueError):
        raise InvalidCycleCountError(cycles) from None
    if n != cycles and str(n) != str(cycles).strip():
        raise InvalidCycleCountError(cycles)
    if n not in ALLOWED_CYCLES:
        raise InvalidCycleCountError(cycles)
    return n


def per_cycle_amount(total_cents: int, cycles: int) -> int:
    """
    Amount charged on each monthly cycle.

    Integer division; the remainder (< cycles) is not collected on any cycle.

    Example:
        109900 over 3 cycles → 36633 per cycle, 1 cent absorbed
    """
    return total_cents // validate_cycles(cycles)


def is_installment_plan(mode: Optional[str], subscription_id: Optional[str], cycles: Optional[int]) -> bool:
    """Whether a completed checkout must be capped at a fixed number of charges"""
    return mode == "subscription" and bool(subscription_id) and cycles in ALLOWED_CYCLES


def cancellation_date(anchor: datetime, cycles: int) -> datetime:
    """
    Instant at which an N-cycle subscription must stop.

    The first charge happens at creation (cycle 1 of N), so the subscription
    is cancelled (N - 1) calendar months after the anchor: after the Nth
    monthly charge, before an (N+1)th would be attempted. Calendar months
    clamp to month end like the processor's billing anchor does
    (Jan 31 + 1 month = Feb 28/29).
    """
    if anchor.tzinfo is None:
        anchor = anchor.replace(tzinfo=timezone.utc)
    return anchor.astimezone(timezone.utc) + relativedelta(months=validate_cycles(cycles) - 1)
