"""
Quarter Kernel: Outcome Resolver v1.0

Base profile + situational modifiers -> one outcome tier via a single
weighted integer draw.

Modifier order (fixed):
  good = 20 + alignment - pressure - evil + honeymoon_good
            + momentum + synergy + evil_path
  bad  = 20 - alignment + pressure + evil + risk - honeymoon_bad
  good, bad clamped to [5, 60]
  expected = 100 - good - bad, floored at 10 (bad absorbs the overflow)

Rules:
  - Weights are non-negative and sum to 100 for the general roll.
  - A zero weight sum degrades to Expected without drawing.
  - A zero bad weight never yields Bad.
  - Pure: reads nothing but its inputs, consumes at most one draw.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .constants import POSITION_RISK
from .content import Choice, PlayableCard
from .domain_types import (
    TIER_BAD,
    TIER_EXPECTED,
    TIER_GOOD,
    OrgMeters,
    clamp,
    trunc_div,
)
from .rng import DeterministicRNG


BASE_GOOD: int = 20
BASE_BAD: int = 20
MIN_TIER_WEIGHT: int = 5
MAX_TIER_WEIGHT: int = 60
MIN_EXPECTED_WEIGHT: int = 10

HONEYMOON_QUARTERS: int = 3
HONEYMOON_GOOD: int = 15
HONEYMOON_BAD: int = 10


@dataclass(frozen=True)
class OutcomeWeights:
    good: int
    expected: int
    bad: int

    @property
    def total(self) -> int:
        return max(0, self.good) + max(0, self.expected) + max(0, self.bad)

    def to_dict(self) -> dict:
        return {"bad": self.bad, "expected": self.expected, "good": self.good}


@dataclass(frozen=True)
class OutcomeModifiers:
    """Independent integer inputs to the general roll."""

    alignment: int = 50
    pressure_level: int = 1
    evil_score: int = 0
    quarter: int = 1
    risk: int = 0
    momentum: int = 0
    synergy: int = 0
    evil_path: int = 0


# Crisis-choice baselines: (good, expected, bad)
PC_CHOICE_WEIGHTS = OutcomeWeights(good=70, expected=20, bad=10)
CORPORATE_CHOICE_WEIGHTS = OutcomeWeights(good=70, expected=10, bad=20)
STANDARD_CHOICE_WEIGHTS = OutcomeWeights(good=20, expected=70, bad=10)


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

def compute_weights(mods: OutcomeModifiers) -> OutcomeWeights:
    """Apply the modifiers in their fixed order and saturate."""
    alignment_mod = trunc_div(mods.alignment - 50, 5)
    pressure_mod = mods.pressure_level - 1
    evil_mod = mods.evil_score // 2

    honeymoon_good = 0
    honeymoon_bad = 0
    if mods.quarter <= HONEYMOON_QUARTERS:
        fade = HONEYMOON_QUARTERS - mods.quarter + 1
        honeymoon_good = HONEYMOON_GOOD * fade // HONEYMOON_QUARTERS
        honeymoon_bad = HONEYMOON_BAD * fade // HONEYMOON_QUARTERS

    good = (BASE_GOOD + alignment_mod - pressure_mod - evil_mod + honeymoon_good
            + mods.momentum + mods.synergy + mods.evil_path)
    bad = BASE_BAD - alignment_mod + pressure_mod + evil_mod + mods.risk - honeymoon_bad

    good = clamp(good, MIN_TIER_WEIGHT, MAX_TIER_WEIGHT)
    bad = clamp(bad, MIN_TIER_WEIGHT, MAX_TIER_WEIGHT)
    expected = 100 - good - bad
    if expected < MIN_EXPECTED_WEIGHT:
        expected = MIN_EXPECTED_WEIGHT
        bad = 100 - good - expected
    return OutcomeWeights(good=good, expected=expected, bad=bad)


def crisis_weights(choice: Choice) -> OutcomeWeights:
    if choice.pc_cost > 0:
        return PC_CHOICE_WEIGHTS
    if choice.corporate_intensity > 0:
        return CORPORATE_CHOICE_WEIGHTS
    return STANDARD_CHOICE_WEIGHTS


# ---------------------------------------------------------------------------
# Rolls
# ---------------------------------------------------------------------------

def roll_tier(weights: OutcomeWeights, rng: DeterministicRNG) -> str:
    """One draw over the weight sum; cumulative good -> expected -> bad."""
    good = max(0, weights.good)
    expected = max(0, weights.expected)
    total = weights.total
    if total <= 0:
        return TIER_EXPECTED
    roll = rng.rand_below(total)
    if roll < good:
        return TIER_GOOD
    if roll < good + expected:
        return TIER_EXPECTED
    return TIER_BAD


def roll_outcome(
    mods: OutcomeModifiers, rng: DeterministicRNG,
) -> Tuple[str, OutcomeWeights]:
    weights = compute_weights(mods)
    return roll_tier(weights, rng), weights


def roll_crisis_choice(choice: Choice, rng: DeterministicRNG) -> str:
    return roll_tier(crisis_weights(choice), rng)


# ---------------------------------------------------------------------------
# Card modifiers
# ---------------------------------------------------------------------------

def position_risk(position: int) -> int:
    """Risk for the card played at 0-based *position* this quarter."""
    return POSITION_RISK[min(position, len(POSITION_RISK) - 1)]


def affinity_modifier(card: PlayableCard, org: OrgMeters) -> int:
    """A strong affinity meter lowers risk; a weak one raises it."""
    if card.meter_affinity is None:
        return 0
    value = org.get(card.meter_affinity)
    if value >= 70:
        return 15
    if value >= 60:
        return 8
    if value < 25:
        return -15
    if value < 40:
        return -8
    return 0


def synergy_bonus(card: PlayableCard, played: Sequence[PlayableCard]) -> int:
    if card.meter_affinity is None:
        return 0
    matches = sum(1 for p in played if p.meter_affinity == card.meter_affinity)
    if matches >= 2:
        return 10
    if matches == 1:
        return 5
    return 0


def momentum_bonus(consecutive_successes: int) -> int:
    if consecutive_successes >= 3:
        return 5
    if consecutive_successes == 2:
        return 3
    return 0


def evil_path_bonus(card: PlayableCard, evil_score: int) -> int:
    if not card.is_corporate:
        return 0
    if evil_score >= 20:
        return 10
    if evil_score >= 10:
        return 5
    return 0


def card_modifiers(
    card: PlayableCard,
    org: OrgMeters,
    played: List[PlayableCard],
    consecutive_successes: int,
    pressure_level: int,
    evil_score: int,
    quarter: int,
    position: Optional[int] = None,
) -> OutcomeModifiers:
    """Assemble the general-roll modifiers for playing *card* now."""
    pos = len(played) if position is None else position
    return OutcomeModifiers(
        alignment=org.alignment,
        pressure_level=pressure_level,
        evil_score=evil_score,
        quarter=quarter,
        risk=position_risk(pos) - affinity_modifier(card, org),
        momentum=momentum_bonus(consecutive_successes),
        synergy=synergy_bonus(card, played),
        evil_path=evil_path_bonus(card, evil_score),
    )
