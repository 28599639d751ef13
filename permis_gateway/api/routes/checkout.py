"""POST /checkout/one-shot, POST /checkout/installments, GET /checkout/session/{id}"""

import time
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from permis_gateway.api.dependencies import get_checkout_factory, get_payment_processor, get_request_id, resolve_origin
from permis_gateway.api.schemas import CheckoutResponse, ErrorResponse, InstallmentCheckoutRequest, OneShotCheckoutRequest
from permis_gateway.domain.checkout import CheckoutRequest, CheckoutSessionFactory
from permis_gateway.domain.exceptions import ClientInputError, InvalidModeError, PaymentProviderError
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor
from permis_gateway.infrastructure.observability.logging import log_checkout_created
from permis_gateway.infrastructure.observability.metrics import checkout_failure_counter, record_checkout

router = APIRouter()

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


async def _open_session(
    checkout: CheckoutRequest,
    processor: PaymentProcessor,
    request_id: str,
    start_time: float,
) -> CheckoutResponse:
    try:
        session_id = await processor.create_checkout_session(checkout.params)
    except PaymentProviderError:
        checkout_failure_counter.labels(reason="provider").inc()
        raise

    duration_ms = (time.time() - start_time) * 1000
    record_checkout(checkout.mode_label)
    log_checkout_created(
        request_id, session_id, checkout.offer_id, checkout.mode_label, checkout.unit_amount_cents, duration_ms
    )
    return CheckoutResponse(session_id=session_id)


@router.post("/checkout/one-shot", response_model=CheckoutResponse, responses=ERROR_RESPONSES)
async def create_one_shot_checkout(
    request_body: OneShotCheckoutRequest,
    request: Request,
    factory: CheckoutSessionFactory = Depends(get_checkout_factory),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Open a hosted checkout charging the full one-shot price once.

    Promotion codes can be redeemed on the hosted page; lead fields and the
    promo code typed in the form travel in the session metadata.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        if request_body.mode != "1x":
            raise InvalidModeError("Use /checkout/installments to pay in several installments")
        checkout = factory.one_shot(
            request_body.offer_id,
            request_body.lead(),
            resolve_origin(request),
            promo_code=request_body.promo_code,
        )
    except ClientInputError:
        checkout_failure_counter.labels(reason="client_input").inc()
        raise

    return await _open_session(checkout, processor, request_id, start_time)


@router.post("/checkout/installments", response_model=CheckoutResponse, responses=ERROR_RESPONSES)
async def create_installment_checkout(
    request_body: InstallmentCheckoutRequest,
    request: Request,
    factory: CheckoutSessionFactory = Depends(get_checkout_factory),
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Open a hosted checkout for a monthly subscription of floor(total / cycles).

    The subscription is capped at `cycles` charges once the webhook reports
    the session as completed.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        checkout = factory.installments(
            request_body.offer_id,
            request_body.cycles,
            request_body.lead(),
            resolve_origin(request),
        )
    except ClientInputError:
        checkout_failure_counter.labels(reason="client_input").inc()
        raise

    logging.info(
        "Installment checkout requested",
        extra={
            "request_id": request_id,
            "offer_id": checkout.offer_id,
            "cycles": request_body.cycles,
            "per_cycle_cents": checkout.unit_amount_cents,
        },
    )
    return await _open_session(checkout, processor, request_id, start_time)


@router.get("/checkout/session/{session_id}", responses={400: {"model": ErrorResponse}})
async def get_checkout_session(
    session_id: str,
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """
    Read-through of a checkout session for the receipt page.

    Returns:
        The processor's session with payment_intent and subscription expanded
    """
    try:
        return await processor.retrieve_session(session_id)
    except PaymentProviderError as e:
        return JSONResponse(status_code=400, content={"error": e.message})
