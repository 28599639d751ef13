"""Offer catalog shared by one-shot and installment checkout"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping

from permis_gateway.domain.exceptions import UnknownOfferError
from permis_gateway.domain.models import Offer


@dataclass(frozen=True)
class OfferCatalog:
    """
    Two independently keyed pricing tables.

    The same offer id may appear in both tables with different totals; the
    installment total is higher since it prices deferred payment.
    """

    one_shot: Mapping[str, Offer] = field(default_factory=dict)
    installments: Mapping[str, Offer] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "one_shot", MappingProxyType(dict(self.one_shot)))
        object.__setattr__(self, "installments", MappingProxyType(dict(self.installments)))

        for table in (self.one_shot, self.installments):
            for key, offer in table.items():
                if key != offer.offer_id:
                    raise ValueError(f"Catalog key {key!r} does not match offer id {offer.offer_id!r}")
                if offer.amount_cents <= 0:
                    raise ValueError(f"Offer {key!r} must have a positive amount")

        for offer_id in set(self.one_shot) & set(self.installments):
            if self.installments[offer_id].amount_cents <= self.one_shot[offer_id].amount_cents:
                raise ValueError(f"Installment total for {offer_id!r} must exceed its one-shot price")

    def lookup_one_shot(self, offer_id: str) -> Offer:
        """Offer priced for a single immediate charge"""
        try:
            return self.one_shot[offer_id]
        except KeyError:
            raise UnknownOfferError(offer_id) from None

    def lookup_installment(self, offer_id: str) -> Offer:
        """Offer priced for an installment plan (total over all cycles)"""
        try:
            return self.installments[offer_id]
        except KeyError:
            raise UnknownOfferError(offer_id) from None


def _table(entries: Mapping[str, Mapping[str, Any]]) -> Dict[str, Offer]:
    return {
        offer_id: Offer(offer_id=offer_id, label=str(entry["label"]), amount_cents=int(entry["amount_cents"]))
        for offer_id, entry in entries.items()
    }


_DEFAULT_LABELS = {
    "classique-10h": "Permis 10 heures",
    "classique-20h": "Permis 20 heures",
    "classique-30h": "Permis 30 heures",
    "accelere-20h": "Accélérée 20 heures",
    "accelere-30h": "Accélérée 30 heures",
}

_DEFAULT_ONE_SHOT_CENTS = {
    "classique-10h": 64900,
    "classique-20h": 99900,
    "classique-30h": 149900,
    "accelere-20h": 149900,
    "accelere-30h": 179900,
}

_DEFAULT_INSTALLMENT_CENTS = {
    "classique-10h": 69900,
    "classique-20h": 109900,
    "classique-30h": 164900,
    "accelere-20h": 159900,
    "accelere-30h": 189900,
}


def default_catalog() -> OfferCatalog:
    """Catalog shipped with the service (EUR, minor units)"""
    return OfferCatalog(
        one_shot={
            key: Offer(offer_id=key, label=_DEFAULT_LABELS[key], amount_cents=amount)
            for key, amount in _DEFAULT_ONE_SHOT_CENTS.items()
        },
        installments={
            key: Offer(offer_id=key, label=_DEFAULT_LABELS[key], amount_cents=amount)
            for key, amount in _DEFAULT_INSTALLMENT_CENTS.items()
        },
    )


def load_catalog(path: str | Path) -> OfferCatalog:
    """
    Build a catalog from a JSON file.

    Expected shape:
        {"one_shot": {"<offer id>": {"label": "...", "amount_cents": 99900}},
         "installments": {"<offer id>": {"label": "...", "amount_cents": 109900}}}

    Raises:
        ValueError: On malformed entries or an installment total not above
            the one-shot price
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    try:
        return OfferCatalog(
            one_shot=_table(data.get("one_shot", {})),
            installments=_table(data.get("installments", {})),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"Invalid offer catalog {path}: {e}") from e
