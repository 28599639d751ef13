"""Unit tests for the plan metadata envelope"""

import pytest
from permis_gateway.domain.exceptions import InvalidPlanMetadataError
from permis_gateway.domain.metadata import PlanMetadata
from permis_gateway.domain.models import LeadFields


def test_installment_metadata_written_as_strings():
    meta = PlanMetadata.installments("classique-20h", 3, LeadFields(" Ada ", "Lovelace ", " 0600000000"))

    assert meta.to_metadata() == {
        "offerId": "classique-20h",
        "mode": "3x",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "phone": "0600000000",
        "cycles": "3",
    }


def test_subscription_metadata_keeps_cycles_and_offer():
    meta = PlanMetadata.installments("accelere-30h", 4, LeadFields("Ada", "Lovelace", "06"))
    sub = meta.to_subscription_metadata()

    assert sub["cycles"] == "4"
    assert sub["offerId"] == "accelere-30h"
    assert "mode" not in sub


def test_one_shot_metadata_trims_promo_code():
    meta = PlanMetadata.one_shot("classique-10h", LeadFields(), "  PERMIS10 ")
    data = meta.to_metadata()

    assert data["promoCode"] == "PERMIS10"
    assert data["mode"] == "1x"
    assert "cycles" not in data


def test_parse_missing_cycles_is_one_shot():
    meta = PlanMetadata.from_metadata({"offerId": "classique-10h", "mode": "1x"})
    assert meta.cycles is None
    assert meta.mode == "1x"


def test_parse_absent_metadata():
    meta = PlanMetadata.from_metadata(None)
    assert meta.cycles is None
    assert meta.offer_id == ""


def test_parse_cycles_without_mode():
    meta = PlanMetadata.from_metadata({"offerId": "classique-20h", "cycles": "3"})
    assert meta.cycles == 3
    assert meta.mode == "3x"


@pytest.mark.parametrize(
    "metadata",
    [
        {"cycles": "three"},
        {"cycles": "0"},
        {"cycles": "3", "mode": "2x"},
        {"mode": "monthly"},
        ["cycles", "3"],
        "cycles=3",
    ],
)
def test_parse_rejects_malformed(metadata):
    with pytest.raises(InvalidPlanMetadataError):
        PlanMetadata.from_metadata(metadata)


def test_parse_round_trip_of_written_metadata():
    written = PlanMetadata.installments("classique-30h", 2, LeadFields("Ada", "Lovelace", "06")).to_metadata()
    parsed = PlanMetadata.from_metadata(written)

    assert parsed.cycles == 2
    assert parsed.offer_id == "classique-30h"
    assert parsed.lead == LeadFields("Ada", "Lovelace", "06")


def test_installments_envelope_rejects_unsupported_cycles():
    with pytest.raises(InvalidPlanMetadataError):
        PlanMetadata.installments("classique-20h", 5, LeadFields())
