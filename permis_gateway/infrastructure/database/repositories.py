"""Data access layer for scheduled cancellations"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from permis_gateway.domain.models import CancellationSchedule
from permis_gateway.infrastructure.database.models import (
    STATUS_DONE,
    STATUS_FAILED,
    STATUS_PENDING,
    ScheduledCancellation,
)


class CancellationRepository:
    """Repository for the cancellation outbox"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_subscription(self, subscription_id: str) -> Optional[ScheduledCancellation]:
        return (
            self.db.query(ScheduledCancellation)
            .filter(ScheduledCancellation.subscription_id == subscription_id)
            .first()
        )

    def get(self, cancellation_id: uuid.UUID) -> Optional[ScheduledCancellation]:
        return self.db.get(ScheduledCancellation, cancellation_id)

    def record(self, schedule: CancellationSchedule) -> Tuple[ScheduledCancellation, bool]:
        """
        Persist an obligation once per subscription.

        Returns:
            (row, created) where created is False when a previous delivery of
            the same event already recorded it
        """
        existing = self.get_by_subscription(schedule.subscription_id)
        if existing is not None:
            return existing, False

        row = ScheduledCancellation(
            subscription_id=schedule.subscription_id,
            session_id=schedule.session_id,
            event_id=schedule.event_id,
            offer_id=schedule.offer_id,
            cycles=schedule.cycles,
            cancel_at=schedule.cancel_at,
            status=STATUS_PENDING,
        )
        self.db.add(row)
        try:
            self.db.flush()  # Get ID without committing
        except IntegrityError:
            # Concurrent delivery inserted first
            self.db.rollback()
            return self.get_by_subscription(schedule.subscription_id), False
        return row, True

    def list_due(self, max_attempts: int, limit: int = 100) -> List[ScheduledCancellation]:
        """Obligations not yet applied that still have attempts left"""
        return (
            self.db.query(ScheduledCancellation)
            .filter(ScheduledCancellation.status.in_([STATUS_PENDING, STATUS_FAILED]))
            .filter(ScheduledCancellation.attempts < max_attempts)
            .order_by(ScheduledCancellation.created_at.asc())
            .limit(limit)
            .all()
        )

    def mark_attempt(self, row: ScheduledCancellation, error: Optional[str] = None) -> None:
        """Record one execution attempt and its outcome"""
        row.attempts = (row.attempts or 0) + 1
        row.last_attempt_at = datetime.now(timezone.utc)
        if error is None:
            row.status = STATUS_DONE
            row.last_error = None
        else:
            row.status = STATUS_FAILED
            row.last_error = error[:1000]
