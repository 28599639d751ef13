"""Executes recorded cancellation obligations against the payment processor"""

import asyncio
import logging
import uuid
from datetime import timezone

from sqlalchemy.orm import sessionmaker

from permis_gateway.config import settings
from permis_gateway.domain.exceptions import DownstreamMutationError, PaymentProviderError
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor
from permis_gateway.infrastructure.database.models import STATUS_DONE, ScheduledCancellation
from permis_gateway.infrastructure.database.repositories import CancellationRepository
from permis_gateway.infrastructure.observability.logging import log_cancellation_scheduled
from permis_gateway.infrastructure.observability.metrics import (
    cancellation_failure_counter,
    cancellation_scheduled_counter,
)

logger = logging.getLogger(__name__)


def cancel_at_timestamp(row: ScheduledCancellation) -> int:
    """Unix seconds for the stored cancel_at (SQLite hands back naive UTC)"""
    cancel_at = row.cancel_at
    if cancel_at.tzinfo is None:
        cancel_at = cancel_at.replace(tzinfo=timezone.utc)
    return int(cancel_at.timestamp())


class CancellationWorker:
    """Applies cancel_at to installment subscriptions with bounded retries"""

    def __init__(
        self,
        session_factory: sessionmaker,
        processor: PaymentProcessor,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        max_attempts: int | None = None,
    ):
        self.session_factory = session_factory
        self.processor = processor
        self.max_retries = max_retries if max_retries is not None else settings.cancellation_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.cancellation_backoff_base
        self.max_attempts = max_attempts if max_attempts is not None else settings.cancellation_max_attempts

    async def _apply(self, subscription_id: str, cancel_at: int) -> None:
        """
        Set cancel_at with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on any processor error; the mutation is idempotent

        Raises:
            DownstreamMutationError: After max_retries failed tries
        """
        attempt = 0
        while True:
            try:
                await self.processor.schedule_cancellation(subscription_id, cancel_at)
                return
            except PaymentProviderError as e:
                attempt += 1
                cancellation_failure_counter.inc()

                if attempt >= self.max_retries:
                    raise DownstreamMutationError(e.message, code=e.code, type=e.type) from e

                backoff = self.backoff_base * (2 ** (attempt - 1))
                await asyncio.sleep(backoff)

    async def execute(self, cancellation_id: uuid.UUID) -> bool:
        """
        Run one obligation. Failures are logged and left for the next pass.

        Returns:
            True once the subscription carries its cancel_at
        """
        db = self.session_factory()
        try:
            repo = CancellationRepository(db)
            row = repo.get(cancellation_id)
            if row is None:
                logger.warning(f"Scheduled cancellation {cancellation_id} not found")
                return False
            if row.status == STATUS_DONE:
                return True

            try:
                await self._apply(row.subscription_id, cancel_at_timestamp(row))
            except DownstreamMutationError as e:
                repo.mark_attempt(row, error=e.message)
                db.commit()
                logger.error(
                    f"Failed to schedule auto-cancel for subscription {row.subscription_id}: {e.message}",
                    extra={
                        "subscription_id": row.subscription_id,
                        "attempts": row.attempts,
                        "code": e.code,
                        "type": e.type,
                    },
                )
                return False

            repo.mark_attempt(row)
            db.commit()
            cancellation_scheduled_counter.labels(cycles=str(row.cycles)).inc()
            log_cancellation_scheduled(row.subscription_id, row.cycles, row.cancel_at, row.attempts)
            return True
        finally:
            db.close()

    async def run_pending(self, limit: int = 100) -> int:
        """One pass over unapplied obligations; returns how many succeeded"""
        db = self.session_factory()
        try:
            ids = [row.id for row in CancellationRepository(db).list_due(self.max_attempts, limit=limit)]
        finally:
            db.close()

        applied = 0
        for cancellation_id in ids:
            if await self.execute(cancellation_id):
                applied += 1
        return applied

    async def run_forever(self, poll_interval: float | None = None) -> None:
        """Poll for unapplied obligations until cancelled"""
        interval = poll_interval if poll_interval is not None else settings.worker_poll_interval_seconds
        logger.info("Cancellation worker started", extra={"poll_interval_seconds": interval})
        while True:
            applied = await self.run_pending()
            if applied:
                logger.info(f"Applied {applied} scheduled cancellations")
            await asyncio.sleep(interval)


def main() -> None:
    """Entry point: python -m permis_gateway.workers.cancellations"""
    from permis_gateway.infrastructure.clients.stripe_client import StripeClient, configure_stripe
    from permis_gateway.infrastructure.database.session import SessionLocal
    from permis_gateway.infrastructure.observability.logging import setup_logging

    setup_logging(settings.log_level)
    configure_stripe()
    worker = CancellationWorker(SessionLocal, StripeClient())
    asyncio.run(worker.run_forever())


if __name__ == "__main__":
    main()
