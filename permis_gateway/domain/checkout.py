"""Checkout session construction for one-shot and installment payments"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from permis_gateway.domain.catalog import OfferCatalog
from permis_gateway.domain.installments import per_cycle_amount, validate_cycles
from permis_gateway.domain.metadata import PlanMetadata
from permis_gateway.domain.models import CheckoutMode, LeadFields

SUCCESS_PATH = "/payment-success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/?resume=checkout"


@dataclass(frozen=True)
class CheckoutRequest:
    """Processor-ready session parameters plus what was decided while building them"""

    params: Dict[str, Any]
    offer_id: str
    mode_label: str
    unit_amount_cents: int


def redirect_urls(origin: str) -> Dict[str, str]:
    """Success and cancel targets on the caller's own origin"""
    base = origin.rstrip("/")
    return {"success_url": f"{base}{SUCCESS_PATH}", "cancel_url": f"{base}{CANCEL_PATH}"}


class CheckoutSessionFactory:
    """
    Builds checkout session parameters from the shared offer catalog.

    Pure: no processor calls here; the API layer hands the params to the
    payment processor client and returns the id it assigns.
    """

    def __init__(self, catalog: OfferCatalog, currency: str = "eur"):
        self.catalog = catalog
        self.currency = currency

    def one_shot(
        self,
        offer_id: str,
        lead: LeadFields,
        origin: str,
        promo_code: Optional[str] = None,
    ) -> CheckoutRequest:
        """
        Single immediate charge for the full one-shot price.

        Raises:
            UnknownOfferError: If the offer is not sold as a one-shot payment
        """
        offer = self.catalog.lookup_one_shot(offer_id)
        metadata = PlanMetadata.one_shot(offer.offer_id, lead, promo_code)

        params = {
            "mode": CheckoutMode.PAYMENT.value,
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "unit_amount": offer.amount_cents,
                        "product_data": {"name": offer.label},
                    },
                    "quantity": 1,
                }
            ],
            "payment_method_types": ["card"],
            "phone_number_collection": {"enabled": True},
            "allow_promotion_codes": True,
            "metadata": metadata.to_metadata(),
            **redirect_urls(origin),
        }
        return CheckoutRequest(
            params=params,
            offer_id=offer.offer_id,
            mode_label=metadata.mode,
            unit_amount_cents=offer.amount_cents,
        )

    def installments(self, offer_id: str, cycles: Any, lead: LeadFields, origin: str) -> CheckoutRequest:
        """
        Monthly subscription charging floor(total / cycles) per cycle.

        The plan details go into both the session metadata (read back by the
        webhook) and the subscription metadata (kept on the subscription).

        Raises:
            UnknownOfferError: If the offer is not sold in installments
            InvalidCycleCountError: If cycles is not 2, 3 or 4
        """
        offer = self.catalog.lookup_installment(offer_id)
        n = validate_cycles(cycles)
        amount = per_cycle_amount(offer.amount_cents, n)
        metadata = PlanMetadata.installments(offer.offer_id, n, lead)

        params = {
            "mode": CheckoutMode.SUBSCRIPTION.value,
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "recurring": {"interval": "month"},
                        "unit_amount": amount,
                        "product_data": {"name": f"{offer.label} ({n}x)"},
                    },
                    "quantity": 1,
                }
            ],
            "payment_method_types": ["card"],
            "phone_number_collection": {"enabled": True},
            "subscription_data": {"metadata": metadata.to_subscription_metadata()},
            "metadata": metadata.to_metadata(),
            **redirect_urls(origin),
        }
        return CheckoutRequest(
            params=params,
            offer_id=offer.offer_id,
            mode_label=metadata.mode,
            unit_amount_cents=amount,
        )
