"""
Quarter Kernel: Quarterly Finance v1.0

Board directives, base operations profit, revenue-card scaling, and the
meter consequences of a quarter's financial result.

All math is integer. Growth and scaling multipliers are fixed-point
(percent / basis points) and truncate toward zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from .domain_types import (
    METER_ALIGNMENT,
    METER_DELIVERY,
    METER_GOVERNANCE,
    METER_MORALE,
    METER_RUNWAY,
    OrgMeters,
    trunc_div,
)
from .rng import DeterministicRNG


# ---------------------------------------------------------------------------
# Directives
# ---------------------------------------------------------------------------

DIRECTIVE_PROFIT_FLOOR = "profit_floor"
DIRECTIVE_PROFIT_INCREASE = "profit_increase"

DIRECTIVES: Tuple[str, ...] = (DIRECTIVE_PROFIT_FLOOR, DIRECTIVE_PROFIT_INCREASE)

_DIRECTIVE_TITLES = {
    DIRECTIVE_PROFIT_FLOOR: "Achieve Quarterly Profit",
    DIRECTIVE_PROFIT_INCREASE: "Increase Quarterly Profit",
}


def directive_required_amount(directive_id: str, pressure_level: int) -> int:
    """Profit (floor) or profit growth (increase) the board asks for, in millions."""
    if directive_id == DIRECTIVE_PROFIT_FLOOR:
        return min(21, 5 + pressure_level * 2)
    if directive_id == DIRECTIVE_PROFIT_INCREASE:
        return 5 + math.isqrt(pressure_level * 8)
    raise ValueError(f"Unknown directive {directive_id!r}")


def is_directive_met(
    directive_id: str, last_profit: int, profit: int, pressure_level: int,
) -> bool:
    required = directive_required_amount(directive_id, pressure_level)
    if directive_id == DIRECTIVE_PROFIT_FLOOR:
        return profit >= required
    return profit - last_profit >= required


def directive_title(directive_id: str) -> str:
    return _DIRECTIVE_TITLES[directive_id]


def next_directive(pressure_level: int) -> str:
    """The board currently always asks for a profit floor."""
    return DIRECTIVE_PROFIT_FLOOR


# ---------------------------------------------------------------------------
# Base operations
# ---------------------------------------------------------------------------

BASE_OPERATIONS_MIN: int = 80
BASE_OPERATIONS_MAX: int = 140
BAD_QUARTER_PERCENT: int = 8
GROWTH_PERCENT_PER_QUARTER: int = 2

HIGH_METER: int = 60
LOW_METER: int = 35
METER_BONUS: int = 10
METER_PENALTY: int = 15
VARIANCE: int = 15


def _grow(value: int, growth_percent: int) -> int:
    return trunc_div(value * growth_percent, 100)


def base_operations(
    org: OrgMeters, rng: DeterministicRNG, quarters_survived: int,
) -> int:
    """
    Independent quarterly operating profit with 2% organic growth per quarter.
    An 8% bad quarter replaces the whole calculation.
    """
    growth = 100 + quarters_survived * GROWTH_PERCENT_PER_QUARTER

    if rng.rand_int(0, 99) < BAD_QUARTER_PERCENT:
        return rng.rand_int(_grow(-30, growth), _grow(21, growth) - 1)

    profit = rng.rand_int(
        _grow(BASE_OPERATIONS_MIN, growth), _grow(BASE_OPERATIONS_MAX, growth),
    )

    bonus = _grow(METER_BONUS, growth)
    penalty = _grow(METER_PENALTY, growth)
    modifiers = 0
    for meter, weight in ((METER_DELIVERY, 1), (METER_RUNWAY, 1), (METER_GOVERNANCE, 2)):
        value = org.get(meter)
        if value >= HIGH_METER:
            modifiers += bonus // weight
        elif value < LOW_METER:
            modifiers -= penalty // weight

    variance = _grow(VARIANCE, growth)
    return profit + modifiers + rng.rand_int(-variance, variance)


# ---------------------------------------------------------------------------
# Revenue scaling
# ---------------------------------------------------------------------------

REVENUE_BASELINE_TARGET: int = 25
_BP: int = 10_000

# Basis points per revenue card index this quarter.
REVENUE_DIMINISHING_BP: Tuple[int, ...] = (10_000, 6_500, 3_500)


def delivery_multiplier_bp(delivery: int) -> int:
    if delivery >= 90:
        return 10_500
    if delivery >= 80:
        return 10_300
    return _BP


def target_scaling_bp(target: int) -> int:
    return max(_BP // 2, target * _BP // REVENUE_BASELINE_TARGET)


def scale_revenue(
    base_amount: int, pressure_level: int, delivery: int, revenue_index: int,
) -> int:
    """
    Scale a revenue card's profit impact:
      base * max(0.5, target / 25) * delivery bonus * diminishing returns
    """
    target = directive_required_amount(DIRECTIVE_PROFIT_INCREASE, pressure_level)
    diminishing = REVENUE_DIMINISHING_BP[
        min(revenue_index, len(REVENUE_DIMINISHING_BP) - 1)
    ]
    numerator = (base_amount * target_scaling_bp(target)
                 * delivery_multiplier_bp(delivery) * diminishing)
    return trunc_div(numerator, _BP ** 3)


# ---------------------------------------------------------------------------
# Meter consequences
# ---------------------------------------------------------------------------

MeterChanges = List[Tuple[str, int]]


def performance_effects(
    profit: int, profit_delta: int, cards_played: int, rng: DeterministicRNG,
) -> MeterChanges:
    """Morale / alignment / runway react to the trend; delivery to execution."""
    changes: MeterChanges = []
    if profit_delta >= 15:
        changes += [(METER_MORALE, rng.rand_int(2, 6)),
                    (METER_ALIGNMENT, rng.rand_int(1, 4)),
                    (METER_RUNWAY, rng.rand_int(2, 5))]
    elif profit_delta >= 5:
        changes += [(METER_MORALE, rng.rand_int(1, 3)),
                    (METER_ALIGNMENT, rng.rand_int(0, 2)),
                    (METER_RUNWAY, rng.rand_int(1, 3))]
    elif profit_delta <= -15:
        changes += [(METER_MORALE, -rng.rand_int(2, 6)),
                    (METER_ALIGNMENT, -rng.rand_int(1, 4)),
                    (METER_RUNWAY, -rng.rand_int(2, 5))]
    elif profit_delta <= -5:
        changes += [(METER_MORALE, -rng.rand_int(1, 3)),
                    (METER_ALIGNMENT, -rng.rand_int(0, 2)),
                    (METER_RUNWAY, -rng.rand_int(1, 3))]

    if cards_played > 0:
        if profit >= 20:
            changes.append((METER_DELIVERY, rng.rand_int(2, 6)))
        elif profit >= 10:
            changes.append((METER_DELIVERY, rng.rand_int(1, 3)))
        elif profit <= -10:
            changes.append((METER_DELIVERY, -rng.rand_int(1, 3)))

    return [(m, d) for m, d in changes if d != 0]


def passive_recovery(org: OrgMeters) -> MeterChanges:
    """The three lowest meters drift back toward health."""
    ranked = org.ranked()
    changes: MeterChanges = []

    meter, value = ranked[0]
    if value < 50:
        changes.append((meter, min(5, 50 - value)))
    elif value < 60:
        changes.append((meter, 3))

    meter, value = ranked[1]
    if value < 45:
        changes.append((meter, min(3, 45 - value)))

    meter, value = ranked[2]
    if value < 35:
        changes.append((meter, min(2, 35 - value)))

    return changes


EXCEPTIONAL_BONUS: int = 10
OUTSTANDING_GROWTH: int = 30
AWARD_PERCENT: int = 40


@dataclass(frozen=True)
class QuarterResult:
    """Financial summary of a resolved quarter (logged, not stored)."""

    base_operations: int
    project_impact: int
    fines: int
    profit: int
    profit_delta: int
    directive_met: bool

    def to_dict(self) -> dict:
        return {
            "base_operations": self.base_operations,
            "directive_met": self.directive_met,
            "fines": self.fines,
            "profit": self.profit,
            "profit_delta": self.profit_delta,
            "project_impact": self.project_impact,
        }


def exceptional_rewards(
    directive_met: bool,
    profit_delta: int,
    bonus: int,
    org: OrgMeters,
    rng: DeterministicRNG,
) -> MeterChanges:
    """Occasional board awards after outstanding quarters."""
    exceptional = bonus >= EXCEPTIONAL_BONUS and directive_met
    outstanding = profit_delta >= OUTSTANDING_GROWTH
    if not exceptional and not outstanding:
        return []
    if rng.rand_int(0, 99) >= AWARD_PERCENT:
        return []

    rewards: MeterChanges = []
    if outstanding:
        rewards.append((METER_RUNWAY, rng.rand_int(3, 7)))
    if exceptional:
        lowest, value = org.ranked()[0]
        if value < 70:
            rewards.append((lowest, rng.rand_int(2, 5)))
    return rewards
