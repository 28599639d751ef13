"""Installment plan lifecycle driven by checkout completion events"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from permis_gateway.domain.installments import cancellation_date, is_installment_plan
from permis_gateway.domain.metadata import PlanMetadata
from permis_gateway.domain.models import CancellationSchedule

CHECKOUT_COMPLETED = "checkout.session.completed"

OUTCOME_SCHEDULE = "schedule"
OUTCOME_IGNORED = "ignored"


@dataclass(frozen=True)
class PlanDecision:
    """What the controller decided for one webhook event"""

    outcome: str
    reason: str
    schedule: Optional[CancellationSchedule] = None


def _timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def completion_instant(event: Mapping[str, Any], session: Mapping[str, Any], now: Optional[datetime] = None) -> datetime:
    """
    Anchor for the cancellation date.

    The event's created time is when the session completed, i.e. when the
    subscription started and its first cycle was charged. It is identical on
    every redelivery of the same event.
    """
    return _timestamp(event.get("created")) or _timestamp(session.get("created")) or now or datetime.now(timezone.utc)


def evaluate_event(event: Mapping[str, Any], now: Optional[datetime] = None) -> PlanDecision:
    """
    Decide whether a webhook event caps an installment subscription.

    Only completed checkout sessions in subscription mode, with a
    subscription id and 2..4 cycles in their metadata, are capped. One-shot
    sessions and subscriptions with any other cycle count are left alone.

    Raises:
        InvalidPlanMetadataError: If the session metadata is malformed
    """
    event_type = event.get("type")
    if event_type != CHECKOUT_COMPLETED:
        return PlanDecision(OUTCOME_IGNORED, f"event type {event_type}")

    data = event.get("data")
    session = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(session, Mapping):
        return PlanDecision(OUTCOME_IGNORED, "event carries no session object")

    plan = PlanMetadata.from_metadata(session.get("metadata"))

    subscription = session.get("subscription")
    subscription_id = subscription.get("id") if isinstance(subscription, Mapping) else subscription
    mode = session.get("mode")

    if not is_installment_plan(mode, subscription_id, plan.cycles):
        return PlanDecision(OUTCOME_IGNORED, f"mode={mode} cycles={plan.cycles} not an installment plan")

    anchor = completion_instant(event, session, now)
    schedule = CancellationSchedule(
        subscription_id=str(subscription_id),
        session_id=str(session.get("id") or ""),
        event_id=str(event.get("id") or ""),
        offer_id=plan.offer_id,
        cycles=plan.cycles,
        cancel_at=cancellation_date(anchor, plan.cycles),
    )
    return PlanDecision(OUTCOME_SCHEDULE, f"{plan.cycles} cycles", schedule)
