"""
Quarter Kernel: Outcome Resolver Tests

Weight assembly (fixed modifier order, saturation, expected floor),
single-draw rolls and crisis-choice baselines.

Run:  python -m pytest quarter_kernel/test_outcomes.py
"""

from __future__ import annotations

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.content import Choice, OutcomeProfile, PlayableCard
from quarter_kernel.domain_types import TIER_BAD, TIER_EXPECTED, TIER_GOOD, OrgMeters
from quarter_kernel.outcomes import (
    OutcomeModifiers,
    OutcomeWeights,
    affinity_modifier,
    card_modifiers,
    compute_weights,
    crisis_weights,
    momentum_bonus,
    position_risk,
    roll_crisis_choice,
    roll_outcome,
    roll_tier,
    synergy_bonus,
)
from quarter_kernel.rng import DeterministicRNG


def _card(card_id: str = "C", affinity: str = "delivery", category: str = "action") -> PlayableCard:
    return PlayableCard(
        card_id=card_id, title=card_id, description="",
        outcomes=OutcomeProfile(), category=category, meter_affinity=affinity,
    )


# ══════════════════════════════════════════════════════════════
# Weights
# ══════════════════════════════════════════════════════════════

def test_honeymoon_weights_in_first_quarter() -> None:
    w = compute_weights(OutcomeModifiers(quarter=1))
    assert (w.good, w.expected, w.bad) == (35, 55, 10)


def test_neutral_weights_after_honeymoon() -> None:
    w = compute_weights(OutcomeModifiers(quarter=10))
    assert (w.good, w.expected, w.bad) == (20, 60, 20)


def test_weights_saturate_at_bounds() -> None:
    w = compute_weights(OutcomeModifiers(
        alignment=0, pressure_level=8, evil_score=100, quarter=10, risk=20,
    ))
    assert (w.good, w.expected, w.bad) == (5, 35, 60)


def test_expected_floor_takes_from_bad() -> None:
    w = compute_weights(OutcomeModifiers(
        alignment=100, quarter=1, risk=60, momentum=5, synergy=10, evil_path=10,
    ))
    assert (w.good, w.expected, w.bad) == (60, 10, 30)


def test_weights_always_sum_to_100() -> None:
    for alignment in range(0, 101, 10):
        for pressure in range(0, 9, 2):
            for evil in (0, 5, 20, 60):
                for risk in (-15, 0, 20, 35):
                    for quarter in (1, 3, 8):
                        w = compute_weights(OutcomeModifiers(
                            alignment=alignment, pressure_level=pressure,
                            evil_score=evil, quarter=quarter, risk=risk,
                        ))
                        assert w.good + w.expected + w.bad == 100
                        assert min(w.good, w.expected, w.bad) >= 0


# ══════════════════════════════════════════════════════════════
# Rolls
# ══════════════════════════════════════════════════════════════

def test_zero_bad_weight_never_yields_bad() -> None:
    rng = DeterministicRNG(7)
    weights = OutcomeWeights(good=30, expected=70, bad=0)
    tiers = {roll_tier(weights, rng) for _ in range(500)}
    assert TIER_BAD not in tiers
    assert tiers == {TIER_GOOD, TIER_EXPECTED}


def test_zero_weight_sum_degrades_to_expected_without_drawing() -> None:
    rng = DeterministicRNG(1)
    assert roll_tier(OutcomeWeights(0, 0, 0), rng) == TIER_EXPECTED
    assert rng.draws == 0


def test_roll_consumes_exactly_one_draw() -> None:
    rng = DeterministicRNG(3)
    roll_outcome(OutcomeModifiers(), rng)
    assert rng.draws == 1


def test_roll_is_deterministic_per_seed() -> None:
    mods = OutcomeModifiers(quarter=5, risk=10)
    first = [roll_outcome(mods, DeterministicRNG(s))[0] for s in range(30)]
    second = [roll_outcome(mods, DeterministicRNG(s))[0] for s in range(30)]
    assert first == second


def test_crisis_choice_baselines() -> None:
    pc = Choice("a", "pay", pc_cost=2, outcomes=OutcomeProfile())
    corp = Choice("b", "bury", corporate_intensity=2, outcomes=OutcomeProfile())
    plain = Choice("c", "wing it", outcomes=OutcomeProfile())
    assert crisis_weights(pc).to_dict() == {"bad": 10, "expected": 20, "good": 70}
    assert crisis_weights(corp).to_dict() == {"bad": 20, "expected": 10, "good": 70}
    assert crisis_weights(plain).to_dict() == {"bad": 10, "expected": 70, "good": 20}
    assert roll_crisis_choice(plain, DeterministicRNG(0)) in (TIER_GOOD, TIER_EXPECTED, TIER_BAD)


# ══════════════════════════════════════════════════════════════
# Card modifiers
# ══════════════════════════════════════════════════════════════

def test_position_risk_grows_and_saturates() -> None:
    assert [position_risk(p) for p in range(5)] == [0, 10, 20, 20, 20]


def test_affinity_modifier_bands() -> None:
    card = _card()
    assert affinity_modifier(card, OrgMeters(delivery=75)) == 15
    assert affinity_modifier(card, OrgMeters(delivery=65)) == 8
    assert affinity_modifier(card, OrgMeters(delivery=50)) == 0
    assert affinity_modifier(card, OrgMeters(delivery=30)) == -8
    assert affinity_modifier(card, OrgMeters(delivery=10)) == -15
    assert affinity_modifier(_card(affinity=None), OrgMeters()) == 0


def test_synergy_and_momentum() -> None:
    card = _card()
    assert synergy_bonus(card, []) == 0
    assert synergy_bonus(card, [_card("A")]) == 5
    assert synergy_bonus(card, [_card("A"), _card("B")]) == 10
    assert synergy_bonus(card, [_card("A", affinity="morale")]) == 0
    assert [momentum_bonus(n) for n in range(5)] == [0, 0, 3, 5, 5]


def test_card_modifiers_combine_position_and_affinity() -> None:
    card = _card()
    mods = card_modifiers(card, OrgMeters(delivery=75), [], 0, 1, 0, 4, position=2)
    assert mods.risk == 20 - 15
    assert mods.quarter == 4
    assert mods.evil_path == 0
