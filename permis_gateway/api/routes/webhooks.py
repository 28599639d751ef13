"""POST /webhooks/payment-events - Stripe webhook ingress"""

import logging
from datetime import timezone
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from permis_gateway.api.dependencies import get_cancellation_worker, get_payment_processor, get_request_id
from permis_gateway.api.schemas import ErrorResponse, WebhookAck
from permis_gateway.domain.exceptions import AuthenticationError, InvalidPayloadError, InvalidPlanMetadataError
from permis_gateway.domain.plan_controller import OUTCOME_IGNORED, evaluate_event
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor
from permis_gateway.infrastructure.database.models import STATUS_DONE
from permis_gateway.infrastructure.database.repositories import CancellationRepository
from permis_gateway.infrastructure.database.session import get_db
from permis_gateway.infrastructure.observability.metrics import record_webhook
from permis_gateway.workers.cancellations import CancellationWorker

router = APIRouter()

SIGNATURE_HEADER = "stripe-signature"


@router.post("/webhooks/payment-events", response_model=WebhookAck, responses={400: {"model": ErrorResponse}})
async def receive_payment_event(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    processor: PaymentProcessor = Depends(get_payment_processor),
    worker: CancellationWorker = Depends(get_cancellation_worker),
):
    """
    Authenticate a processor event and cap installment subscriptions.

    Flow:
    1. Verify the signature over the raw body (no JSON parsing before this)
    2. Let the plan controller decide whether the event caps a subscription
    3. Record the cancellation obligation and commit
    4. Acknowledge; the cancel_at mutation runs after the response

    A signature failure answers 400 so the processor redelivers later.
    """
    request_id = get_request_id(request)
    payload = await request.body()

    try:
        event = processor.construct_event(payload, request.headers.get(SIGNATURE_HEADER))
    except (AuthenticationError, InvalidPayloadError):
        record_webhook("unknown", "rejected")
        raise

    event_type = str(event.get("type"))
    log_extra = {"request_id": request_id, "event_id": event.get("id"), "event_type": event_type}

    try:
        decision = evaluate_event(event)
    except InvalidPlanMetadataError as e:
        # Redelivery cannot repair metadata, so acknowledge
        record_webhook(event_type, "invalid_metadata")
        logging.warning(f"Ignoring event with malformed plan metadata: {e}", extra=log_extra)
        return WebhookAck()

    if decision.outcome == OUTCOME_IGNORED:
        record_webhook(event_type, "ignored")
        logging.info(f"Webhook event ignored: {decision.reason}", extra=log_extra)
        return WebhookAck()

    schedule = decision.schedule
    repo = CancellationRepository(db)
    row, created = repo.record(schedule)
    db.commit()

    if not created:
        stored = row.cancel_at if row.cancel_at.tzinfo else row.cancel_at.replace(tzinfo=timezone.utc)
        if stored != schedule.cancel_at:
            logging.warning(
                "Redelivered event computed a different cancel_at; keeping the recorded one",
                extra={**log_extra, "stored": stored.isoformat(), "computed": schedule.cancel_at.isoformat()},
            )

    if row.status != STATUS_DONE:
        background_tasks.add_task(worker.execute, row.id)

    record_webhook(event_type, "scheduled" if created else "duplicate")
    logging.info(
        "Installment plan cancellation recorded",
        extra={
            **log_extra,
            "subscription_id": row.subscription_id,
            "cycles": row.cycles,
            "cancel_at": schedule.cancel_at.isoformat(),
            "duplicate": not created,
        },
    )
    return WebhookAck()
