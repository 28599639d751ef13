"""Exception handlers mapping domain errors to JSON error bodies"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from permis_gateway.domain.exceptions import (
    AuthenticationError,
    ClientInputError,
    InvalidPayloadError,
    PaymentProviderError,
)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Client input, authentication and payload errors → 400 {error}.
    Payment processor errors → 500 {error, code, type}.
    """

    @app.exception_handler(ClientInputError)
    async def client_input_error(request: Request, exc: ClientInputError):
        logging.warning(f"Rejected request: {exc}", extra={"request_id": _request_id(request), "path": request.url.path})
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(AuthenticationError)
    async def authentication_error(request: Request, exc: AuthenticationError):
        logging.warning(f"Webhook authentication failed: {exc}", extra={"request_id": _request_id(request)})
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {exc}"})

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_error(request: Request, exc: InvalidPayloadError):
        logging.warning(f"Invalid webhook payload: {exc}", extra={"request_id": _request_id(request)})
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {exc}"})

    @app.exception_handler(PaymentProviderError)
    async def payment_provider_error(request: Request, exc: PaymentProviderError):
        logging.error(
            f"Payment provider error: {exc.message}",
            extra={"request_id": _request_id(request), "code": exc.code, "type": exc.type},
        )
        return JSONResponse(
            status_code=500,
            content={"error": exc.message, "code": exc.code, "type": exc.type},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        else:
            message = "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})
