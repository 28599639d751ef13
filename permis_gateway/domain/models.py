"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CheckoutMode(str, Enum):
    """Processor checkout session mode"""

    PAYMENT = "payment"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class Offer:
    """Priced enrollment offer from the catalog"""

    offer_id: str
    label: str
    amount_cents: int


@dataclass(frozen=True)
class LeadFields:
    """Contact details captured by the enrollment form"""

    first_name: str = ""
    last_name: str = ""
    phone: str = ""

    def trimmed(self) -> "LeadFields":
        return LeadFields(
            first_name=(self.first_name or "").strip(),
            last_name=(self.last_name or "").strip(),
            phone=(self.phone or "").strip(),
        )


@dataclass(frozen=True)
class CancellationSchedule:
    """Decision to cap an installment subscription at a fixed instant"""

    subscription_id: str
    session_id: str
    event_id: str
    offer_id: str
    cycles: int
    cancel_at: datetime
