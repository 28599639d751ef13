"""FastAPI application factory"""

import logging

from fastapi import Depends, FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from permis_gateway.api.dependencies import get_payment_processor
from permis_gateway.api.errors import register_exception_handlers
from permis_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from permis_gateway.api.routes import checkout, webhooks
from permis_gateway.api.schemas import DiagnosticsResponse
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor, configure_stripe
from permis_gateway.infrastructure.observability.logging import setup_logging
from permis_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def _stripe_mode(secret_key: str) -> str:
    if secret_key.startswith(("sk_live_", "rk_live_")):
        return "live"
    if secret_key.startswith(("sk_test_", "rk_test_")):
        return "test"
    return "unset" if not secret_key else "unknown"


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Permis Enrollment Payment Gateway",
        description="Checkout sessions and installment plan lifecycle for driving-school enrollment",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    configure_stripe()
    if not settings.stripe_secret_key:
        logging.error("STRIPE_SECRET_KEY is not set; checkout calls will fail")
    if not settings.stripe_webhook_secret:
        logging.warning("STRIPE_WEBHOOK_SECRET is not set; webhook bodies are trusted unsigned (development only)")

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Deployment sanity check; never exposes key material
    @app.get("/diagnostics", response_model=DiagnosticsResponse)
    def diagnostics(processor: PaymentProcessor = Depends(get_payment_processor)):
        return DiagnosticsResponse(
            front_url=settings.front_url,
            stripe_mode=_stripe_mode(settings.stripe_secret_key),
            webhook_signing=processor.webhook_signing_enabled,
        )

    # Register API routers
    app.include_router(checkout.router, tags=["checkout"])
    app.include_router(webhooks.router, tags=["webhooks"])

    return app


app = create_app()
