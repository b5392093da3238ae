"""
Quarter Kernel: Favorability & Survival Calculator v1.0

Pure calculators for the board's quarterly verdict:
  - favorability delta (success / partial success / failure)
  - tenure decay, low-meter and low-activity adjustments
  - ouster threshold on a d20 and the single roll against it
  - quarterly bonus, golden parachute, final score

Every function reads only its arguments. The only randomness is the one d20
draw in roll_for_ouster, and only when the threshold is positive.
"""

from __future__ import annotations

import sys
from typing import List, Optional, Sequence, Tuple

from .constants import PARACHUTE_BASE, SCORE_PC_WEIGHT
from .domain_types import METERS, GameConfig, OrgMeters, TenureState, trunc_div
from .rng import DeterministicRNG


BASE_SUCCESS_REWARD: int = 8
DIRECTIVE_FAILED_PENALTY: int = -4
NEGATIVE_PROFIT_PENALTY: int = -10
PROFIT_DECLINE_PENALTY: int = -3
FLAT_PROFIT_PENALTY: int = -1
BASE_MAX_LOSS: int = -12
GRACE_PERIOD_QUARTERS: int = 4

# Sentinel for "no cap" on a positive favorability gain.
NO_CAP: int = sys.maxsize

# (max positive gain, penalty, reason)
Adjustment = Tuple[int, int, Optional[str]]


# ---------------------------------------------------------------------------
# Favorability delta
# ---------------------------------------------------------------------------

def weak_streak_penalty(streak: int) -> int:
    if streak <= 0:
        return 0
    return (-1, -3, -5)[streak - 1] if streak <= 3 else -7


def weak_streak_gain_cap(streak: int) -> int:
    if streak <= 0:
        return NO_CAP
    if streak == 1:
        return 6
    if streak == 2:
        return 2
    return 0


def evil_penalty_on_success(evil_score: int) -> int:
    if evil_score >= 20:
        return 3
    if evil_score >= 10:
        return 1
    return 0


def evil_scrutiny_on_failure(evil_score: int) -> int:
    if evil_score >= 20:
        return 8
    if evil_score >= 10:
        return 4
    if evil_score >= 5:
        return 2
    return 0


def success_reward(pressure_level: int, quarters_survived: int, config: GameConfig) -> int:
    reward = BASE_SUCCESS_REWARD + config.success_reward_bonus
    if quarters_survived < GRACE_PERIOD_QUARTERS:
        return reward
    penalty = 1 if config.success_reward_bonus < 0 and pressure_level >= 5 else 0
    return max(5, reward - penalty)


def max_loss(quarters_survived: int) -> int:
    """-12 in year one, then 2 deeper every 4 quarters, bottoming at -18."""
    if quarters_survived < GRACE_PERIOD_QUARTERS:
        return BASE_MAX_LOSS
    tenure = quarters_survived - GRACE_PERIOD_QUARTERS
    return BASE_MAX_LOSS - min(6, (tenure // 4) * 2)


def compute_favorability_delta(
    last_profit: int,
    current_profit: int,
    directive_met: bool,
    pressure_level: int,
    evil_score: int,
    weak_project_streak: int,
    quarters_survived: int,
    config: GameConfig,
) -> int:
    """
    Board reaction to the quarter's financial result.

    A success needs non-negative profit and the directive met; it is a full
    success only if profit also grew. Failures stack penalties and are
    bounded by the tenure-scaled maximum loss.
    """
    streak_penalty = weak_streak_penalty(weak_project_streak)
    gain_cap = weak_streak_gain_cap(weak_project_streak)
    reward = success_reward(pressure_level, quarters_survived, config)

    if current_profit >= 0 and directive_met:
        if current_profit <= last_profit:
            reward = reward // 2
        gain = reward - evil_penalty_on_success(evil_score) + streak_penalty
        return min(gain, gain_cap)

    change = 0
    if current_profit < 0:
        change += NEGATIVE_PROFIT_PENALTY
        change -= min(4, abs(current_profit) // 5)
    elif current_profit < last_profit:
        decline = last_profit - current_profit
        if decline > 10:
            change += PROFIT_DECLINE_PENALTY * 2
        elif decline > 5:
            change += PROFIT_DECLINE_PENALTY
        else:
            change += FLAT_PROFIT_PENALTY

    if not directive_met:
        change += DIRECTIVE_FAILED_PENALTY

    change -= pressure_level
    change -= evil_scrutiny_on_failure(evil_score)
    change += streak_penalty
    return max(change, max_loss(quarters_survived))


def tenure_decay(quarters_survived: int, config: GameConfig) -> int:
    if not config.tenure_decay_enabled:
        return 0
    if quarters_survived < config.tenure_decay_start_quarter:
        return 0
    return -1


def low_meter_adjustment(org: OrgMeters) -> Adjustment:
    critical: List[str] = []
    low = 0
    for meter in METERS:
        value = org.get(meter)
        if value < 5:
            critical.append(meter)
        elif value < 15:
            low += 1

    if len(critical) >= 2:
        return 0, -5, f"organization in crisis: {', '.join(critical)} critically low"
    if len(critical) == 1:
        return 0, -2, f"{critical[0]} critically low"
    if low >= 3:
        return 2, 0, "multiple metrics concerning"
    return NO_CAP, 0, None


def expected_project_count(quarters_survived: int) -> int:
    return 1 if quarters_survived < 2 else 2


def low_activity_adjustment(projects_played: int, quarters_survived: int) -> Adjustment:
    expected = expected_project_count(quarters_survived)
    if projects_played >= expected or quarters_survived < 2:
        return NO_CAP, 0, None

    multiplier = 1 + quarters_survived // 3
    if projects_played == 0:
        return 0, -5 * multiplier, "board expects active strategic leadership"
    return 0, -4 * multiplier, (
        f"board expected {expected}+ projects, only {projects_played} delivered"
    )


def apply_adjustment(change: int, adjustment: Adjustment) -> int:
    cap, penalty, _ = adjustment
    change += penalty
    if change > cap:
        change = cap
    return change


# ---------------------------------------------------------------------------
# Survival
# ---------------------------------------------------------------------------

HONEYMOON_QUARTERS: int = 8
OUSTER_CAP: int = 14
AUTO_OUSTER: int = 20


def ouster_threshold(
    favorability: int,
    pressure_level: int,
    quarters_survived: int = 0,
    evil_score: int = 0,
    directive_met: bool = False,
    profit_positive: bool = False,
    profit_improving: bool = False,
    consecutive_negative_quarters: int = 0,
    consecutive_weak_project_quarters: int = 0,
    cards_played: int = 1,
) -> int:
    """Ouster threshold on a d20 (0 = no vote, 20 = certain)."""
    if favorability >= 55:
        return 0
    if favorability >= 40:
        threshold = 1
    elif favorability >= 25:
        threshold = 2
    elif favorability >= 10:
        threshold = 3
    else:
        threshold = 4

    threshold += pressure_level // 2

    if quarters_survived < 4:
        threshold = max(0, threshold - 4)
    elif quarters_survived < 6:
        threshold = max(0, threshold - 2)
    elif quarters_survived < HONEYMOON_QUARTERS:
        threshold = max(0, threshold - 1)

    if evil_score == 0:
        threshold = max(0, threshold - 2)
    elif evil_score < 5:
        threshold = max(0, threshold - 1)

    # Base operations alone earn no credit with the board.
    if cards_played > 0:
        if directive_met:
            threshold = max(0, threshold - 2)
        if profit_positive:
            threshold = max(0, threshold - 1)
        if profit_improving:
            threshold = max(0, threshold - 1)

    if consecutive_negative_quarters >= 3:
        threshold += 4
    elif consecutive_negative_quarters >= 2:
        threshold += 2

    if consecutive_weak_project_quarters >= 6:
        return AUTO_OUSTER
    if consecutive_weak_project_quarters >= 4:
        threshold += 6
    elif consecutive_weak_project_quarters >= 2:
        threshold += 3

    return min(threshold, OUSTER_CAP)


def roll_for_ouster(threshold: int, rng: DeterministicRNG) -> Tuple[bool, Optional[int]]:
    """One d20 against *threshold*. No draw when the threshold is zero."""
    if threshold <= 0:
        return False, None
    roll = rng.rand_int(1, 20)
    return roll <= threshold, roll


def profit_trajectory(recent_profits: Sequence[int]) -> int:
    """Most recent profit minus the truncated mean of the older ones."""
    if len(recent_profits) < 2:
        return 0
    older = recent_profits[:-1]
    return recent_profits[-1] - trunc_div(sum(older), len(older))


# ---------------------------------------------------------------------------
# Compensation
# ---------------------------------------------------------------------------

def quarterly_bonus(
    tenure: TenureState, org: OrgMeters, directive_met: bool, profit_delta: int,
) -> Tuple[int, List[str]]:
    """Bonus in millions plus the reasons, floored at zero."""
    bonus = 2
    reasons = ["+2 base compensation"]

    if directive_met:
        bonus += 4
        reasons.append("+4 met board directive")
    if profit_delta > 0:
        bonus += 3
        reasons.append("+3 profit growth")
    if all(org.get(m) >= 40 for m in METERS):
        bonus += 3
        reasons.append("+3 all metrics healthy")
    if tenure.favorability >= 70:
        bonus += 2
        reasons.append("+2 strong board confidence")
    if tenure.evil_score - tenure.evil_score_last_quarter <= 0:
        bonus += 2
        reasons.append("+2 maintained ethical standards")

    if not directive_met:
        bonus -= 3
        reasons.append("-3 failed board directive")
    critical = [m for m in METERS if org.get(m) < 20]
    if critical:
        bonus -= 2 * len(critical)
        reasons.append(f"-{2 * len(critical)} critical metrics ({', '.join(critical)})")
    if tenure.evil_score >= 15:
        bonus -= 3
        reasons.append("-3 reputation concerns")

    return max(0, bonus), reasons


def parachute(tenure: TenureState) -> int:
    if tenure.total_cards_played == 0:
        return PARACHUTE_BASE
    return max(
        PARACHUTE_BASE,
        PARACHUTE_BASE + tenure.quarters_survived * 3 - tenure.evil_score * 2,
    )


def final_score(tenure: TenureState, political_capital: int) -> int:
    """Doubled on retirement, halved on ouster."""
    subtotal = (tenure.accumulated_bonus + parachute(tenure)
                + political_capital * SCORE_PC_WEIGHT + tenure.total_cards_played)
    if tenure.has_retired:
        return max(0, subtotal * 2)
    return max(0, trunc_div(subtotal, 2))


def can_retire(tenure: TenureState, config: GameConfig) -> bool:
    return not tenure.is_terminal and tenure.accumulated_bonus >= config.retirement_threshold
