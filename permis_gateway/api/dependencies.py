"""Dependency injection for FastAPI endpoints"""

from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy.orm import sessionmaker

from permis_gateway.config import settings
from permis_gateway.domain.catalog import OfferCatalog, default_catalog, load_catalog
from permis_gateway.domain.checkout import CheckoutSessionFactory
from permis_gateway.infrastructure.clients.stripe_client import PaymentProcessor, StripeClient
from permis_gateway.infrastructure.database.session import get_session_factory
from permis_gateway.workers.cancellations import CancellationWorker


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


@lru_cache
def get_offer_catalog() -> OfferCatalog:
    """Provide the single shared offer catalog"""
    if settings.offer_catalog_file:
        return load_catalog(settings.offer_catalog_file)
    return default_catalog()


def get_checkout_factory(catalog: OfferCatalog = Depends(get_offer_catalog)) -> CheckoutSessionFactory:
    """Provide checkout session factory bound to the shared catalog"""
    return CheckoutSessionFactory(catalog, currency=settings.currency)


@lru_cache
def get_payment_processor() -> PaymentProcessor:
    """Provide Stripe client instance"""
    return StripeClient()


def get_cancellation_worker(
    session_factory: sessionmaker = Depends(get_session_factory),
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> CancellationWorker:
    """Provide worker used to apply cancellations after the webhook is acknowledged"""
    return CancellationWorker(session_factory, processor)


def _first(value: str) -> str:
    return value.split(",")[0].strip()


def resolve_origin(request: Request) -> str:
    """
    Origin the buyer is redirected back to after checkout.

    An allow-listed browser Origin header wins; otherwise the request's
    effective scheme and host (proxy headers first), falling back to
    FRONT_URL when no host is known.
    """
    allowed = {origin.rstrip("/") for origin in settings.allowed_redirect_origins}
    origin = (request.headers.get("origin") or "").rstrip("/")
    if origin and origin in allowed:
        return origin

    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if not host:
        return settings.front_url.rstrip("/")
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme or "https"
    return f"{_first(scheme)}://{_first(host)}"
