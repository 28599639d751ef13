"""Typed plan envelope carried in processor metadata bags"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from permis_gateway.domain.exceptions import InvalidPlanMetadataError
from permis_gateway.domain.installments import ALLOWED_CYCLES
from permis_gateway.domain.models import LeadFields

_MODE_PATTERN = re.compile(r"^([1-9])x$")


@dataclass(frozen=True)
class PlanMetadata:
    """
    What checkout writes into the session (and subscription) metadata and
    what the webhook reads back.

    cycles is None for one-shot purchases; 2..4 for installment plans.
    """

    offer_id: str
    mode: str
    lead: LeadFields
    cycles: Optional[int] = None
    promo_code: Optional[str] = None

    @classmethod
    def one_shot(cls, offer_id: str, lead: LeadFields, promo_code: Optional[str]) -> "PlanMetadata":
        return cls(offer_id=offer_id, mode="1x", lead=lead.trimmed(), promo_code=(promo_code or "").strip())

    @classmethod
    def installments(cls, offer_id: str, cycles: int, lead: LeadFields) -> "PlanMetadata":
        if cycles not in ALLOWED_CYCLES:
            raise InvalidPlanMetadataError(f"Installment plan cannot have {cycles} cycles")
        return cls(offer_id=offer_id, mode=f"{cycles}x", lead=lead.trimmed(), cycles=cycles)

    def to_metadata(self) -> Dict[str, str]:
        """Session-level metadata (processor metadata values are strings)"""
        data = {
            "offerId": self.offer_id,
            "mode": self.mode,
            "firstName": self.lead.first_name,
            "lastName": self.lead.last_name,
            "phone": self.lead.phone,
        }
        if self.cycles is not None:
            data["cycles"] = str(self.cycles)
        if self.promo_code is not None:
            data["promoCode"] = self.promo_code
        return data

    def to_subscription_metadata(self) -> Dict[str, str]:
        """Subscription-level metadata; survives onto the subscription object"""
        data = self.to_metadata()
        data.pop("mode", None)
        data.pop("promoCode", None)
        return data

    @classmethod
    def from_metadata(cls, metadata: Optional[Mapping[str, Any]]) -> "PlanMetadata":
        """
        Parse a metadata bag written by checkout.

        A missing cycles entry means a one-shot purchase. A cycles or mode
        entry that is present but unreadable is rejected instead of being
        read as zero.

        Raises:
            InvalidPlanMetadataError: On a non-object metadata bag, malformed
                cycles/mode, or when both are present and disagree
        """
        metadata = metadata or {}
        if not isinstance(metadata, Mapping):
            raise InvalidPlanMetadataError(f"metadata is not an object: {type(metadata).__name__}")

        cycles: Optional[int] = None
        raw_cycles = metadata.get("cycles")
        if raw_cycles not in (None, ""):
            try:
                cycles = int(str(raw_cycles).strip())
            except ValueError:
                raise InvalidPlanMetadataError(f"cycles is not an integer: {raw_cycles!r}") from None
            if cycles < 1:
                raise InvalidPlanMetadataError(f"cycles must be positive: {cycles}")

        mode = str(metadata.get("mode") or (f"{cycles}x" if cycles else "1x"))
        match = _MODE_PATTERN.match(mode)
        if not match:
            raise InvalidPlanMetadataError(f"Unrecognised mode label: {mode!r}")
        if cycles is not None and int(match.group(1)) != cycles:
            raise InvalidPlanMetadataError(f"mode {mode!r} disagrees with cycles={cycles}")

        return cls(
            offer_id=str(metadata.get("offerId") or ""),
            mode=mode,
            lead=LeadFields(
                first_name=str(metadata.get("firstName") or ""),
                last_name=str(metadata.get("lastName") or ""),
                phone=str(metadata.get("phone") or ""),
            ),
            cycles=cycles,
            promo_code=metadata.get("promoCode"),
        )
