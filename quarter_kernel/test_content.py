"""
Quarter Kernel: Content Catalog Tests

Every structural rule fails fast at load time with ContentValidationError.

Run:  python -m pytest quarter_kernel/test_content.py
"""

from __future__ import annotations

import copy
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.constants import SITUATION_EVIL_INTENSITY
from quarter_kernel.content import build_catalog, catalog_to_dict
from quarter_kernel.effects import Fine, MeterDelta, ProfitDelta, effect_from_dict
from quarter_kernel.errors import ContentValidationError, ContractViolationError
from quarter_kernel.sample_content import SAMPLE_CONTENT, default_catalog


def _raw() -> dict:
    return copy.deepcopy(SAMPLE_CONTENT)


def _expect_invalid(raw: dict) -> None:
    with pytest.raises(ContentValidationError):
        build_catalog(raw)


# ══════════════════════════════════════════════════════════════
# Sample catalog
# ══════════════════════════════════════════════════════════════

def test_sample_catalog_builds() -> None:
    catalog = default_catalog()
    assert catalog.name == "sample"
    assert len(catalog.project_cards) == 12
    assert len(catalog.crisis_cards) == 4
    assert len(catalog.situations) == 6
    assert sum(1 for c in catalog.project_cards if c.is_revenue) == 3


def test_catalog_plain_data_roundtrip() -> None:
    catalog = default_catalog()
    assert build_catalog(catalog_to_dict(catalog)) == catalog


def test_lookups() -> None:
    catalog = default_catalog()
    assert catalog.project_card("PROJ_AGILE").meter_affinity == "morale"
    assert catalog.crisis_card("CRISIS_DATA_BREACH").choice_ids() == [
        "disclose", "lawyer_up", "bury_it",
    ]
    assert catalog.triggers_for("PROJ_AGILE") is None
    assert catalog.triggers_for("PROJ_ERP") is not None
    assert catalog.generic_pool("good") == ("SIT_TECH_PRESS_RECOGNITION",)


def test_unknown_choice_is_contract_violation() -> None:
    card = default_catalog().crisis_card("CRISIS_VIRAL_MEMO")
    with pytest.raises(ContractViolationError) as exc_info:
        card.get_choice("ignore_it")
    assert exc_info.value.rule == "unknown_choice"


def test_situation_event_card_defaults() -> None:
    catalog = default_catalog()
    card = catalog.situation("SIT_GLASSDOOR_FIRESTORM").to_event_card(2, SITUATION_EVIL_INTENSITY)
    by_id = {c.choice_id: c for c in card.choices}
    assert by_id["SIT_GLASSDOOR_FIRESTORM_pc"].pc_cost == 1
    assert by_id["SIT_GLASSDOOR_FIRESTORM_evil"].corporate_intensity == SITUATION_EVIL_INTENSITY
    assert by_id["SIT_GLASSDOOR_FIRESTORM_defer"].is_defer
    assert by_id["SIT_GLASSDOOR_FIRESTORM_risk"].is_tiered
    assert card.situation_id == "SIT_GLASSDOOR_FIRESTORM"


# ══════════════════════════════════════════════════════════════
# Effects
# ══════════════════════════════════════════════════════════════

def test_effect_kinds_parse() -> None:
    assert effect_from_dict({"kind": "meter", "meter": "runway", "delta": -3}) == MeterDelta("runway", -3)
    assert effect_from_dict({"kind": "profit", "amount": 4}) == ProfitDelta(4)
    assert effect_from_dict({"kind": "fine", "amount": 2}) == Fine(2)


@pytest.mark.parametrize("data", [
    {"kind": "meter", "meter": "happiness", "delta": 1},
    {"kind": "fine", "amount": -1},
    {"kind": "bonus", "amount": 1},
    {"kind": "profit"},
    {"kind": "meter", "meter": "runway", "delta": 1.5},
    {"kind": "profit", "amount": True},
])
def test_malformed_effects_rejected(data: dict) -> None:
    with pytest.raises(ContentValidationError):
        effect_from_dict(data)


# ══════════════════════════════════════════════════════════════
# Structural rules
# ══════════════════════════════════════════════════════════════

def test_duplicate_project_card_ids() -> None:
    raw = _raw()
    raw["project_cards"].append(copy.deepcopy(raw["project_cards"][0]))
    _expect_invalid(raw)


def test_event_needs_two_to_four_choices() -> None:
    raw = _raw()
    raw["crisis_cards"][0]["choices"] = raw["crisis_cards"][0]["choices"][:1]
    _expect_invalid(raw)

    raw = _raw()
    extra = raw["crisis_cards"][0]["choices"]
    raw["crisis_cards"][0]["choices"] = extra + [
        dict(extra[0], choice_id="c4"), dict(extra[0], choice_id="c5"),
    ]
    _expect_invalid(raw)


def test_duplicate_choice_ids() -> None:
    raw = _raw()
    choices = raw["crisis_cards"][1]["choices"]
    choices[1]["choice_id"] = choices[0]["choice_id"]
    _expect_invalid(raw)


def test_negative_choice_cost() -> None:
    raw = _raw()
    raw["crisis_cards"][2]["choices"][2]["pc_cost"] = -1
    _expect_invalid(raw)


def test_unknown_card_category_and_affinity() -> None:
    raw = _raw()
    raw["project_cards"][0]["category"] = "moonshot"
    _expect_invalid(raw)

    raw = _raw()
    raw["project_cards"][0]["meter_affinity"] = "vibes"
    _expect_invalid(raw)


def test_situation_needs_every_response_kind() -> None:
    raw = _raw()
    raw["situations"][0]["responses"] = raw["situations"][0]["responses"][:3]
    _expect_invalid(raw)


def test_situation_severity_range() -> None:
    raw = _raw()
    raw["situations"][0]["severity"] = 5
    _expect_invalid(raw)


def test_trigger_references_must_resolve() -> None:
    raw = _raw()
    raw["card_situations"]["PROJ_ERP"] = [{"situation_id": "SIT_NOPE", "weight": 1}]
    _expect_invalid(raw)

    raw = _raw()
    raw["card_situations"]["PROJ_NOPE"] = [
        {"situation_id": "SIT_GLASSDOOR_FIRESTORM", "weight": 1},
    ]
    _expect_invalid(raw)

    raw = _raw()
    raw["generic_pools"]["bad"] = ["SIT_NOPE"]
    _expect_invalid(raw)


def test_trigger_weight_must_be_positive() -> None:
    raw = _raw()
    raw["card_situations"]["PROJ_ERP"][0]["weight"] = 0
    _expect_invalid(raw)


def test_missing_required_field() -> None:
    raw = _raw()
    del raw["project_cards"][0]["title"]
    _expect_invalid(raw)
