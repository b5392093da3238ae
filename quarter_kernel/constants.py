"""
Quarter Kernel: Tuning Constants (Default Values)

All magic numbers live here as module-level defaults.
Difficulty-dependent values are resolved into a GameConfig once per game
and travel with the state; everything below is difficulty-independent.
"""

from typing import Dict, Tuple

from .domain_types import (
    GameConfig,
    METER_ALIGNMENT,
    METER_DELIVERY,
    METER_GOVERNANCE,
    METER_MORALE,
    METER_RUNWAY,
)

# --- Cards ---
HAND_SIZE: int = 7
MAX_CARDS_PER_QUARTER: int = 3

# Capital cost per card position (1st, 2nd, 3rd). Cards are free by default.
CARD_PC_COSTS: Tuple[int, ...] = (0, 0, 0)

# Outcome risk added per card position.
POSITION_RISK: Tuple[int, ...] = (0, 10, 20)

ZERO_PLAY_REFRESH_COUNT: int = 3

# --- Demand ---
CRISIS_CHANCE_PERCENT: int = 33

# --- Political capital ---
PC_INITIAL: int = 10
PC_MAX: int = 20
PC_DECAY_THRESHOLD: int = 10

# Restraint bonus indexed by cards played (0, 1, 2, 3+).
RESTRAINT_BONUS: Tuple[int, ...] = (3, 2, 1, 0)

EXCHANGE_COSTS: Dict[str, int] = {
    METER_MORALE: 10,
    METER_ALIGNMENT: 10,
    METER_DELIVERY: 10,
    METER_GOVERNANCE: 15,
    METER_RUNWAY: 20,
}

BOOST_COST: int = 1
BOOST_AMOUNT: int = 5
SCHMOOZE_COST: int = 2
SCHMOOZE_SUCCESS_PERCENT: int = 85
REORG_COST: int = 3
REDEEM_EVIL_COST: int = 2

# Default capital cost of a situation's political-capital response.
SITUATION_PC_COST: int = 2
SITUATION_EVIL_INTENSITY: int = 2

# --- Revenue neglect ---
REVENUE_NEGLECT_THRESHOLD: int = 3
REVENUE_NEGLECT_METER_PENALTY: int = 8
REVENUE_NEGLECT_FAVORABILITY_PENALTY: int = 15

# --- Tenure ---
INITIAL_PRESSURE: int = 1
MAX_PRESSURE: int = 8
RECENT_PROFIT_WINDOW: int = 3

# --- Deferred queue ---
DEFERRED_CAPACITY: int = 5
DEFERRED_RESURFACE_PERCENT: int = 30
DEFERRED_FADE_QUARTERS: int = 4
FOLLOW_UP_WINDOW: int = 3

# --- Score ---
PARACHUTE_BASE: int = 10
SCORE_PC_WEIGHT: int = 5


# --- Difficulty tiers ---
DIFFICULTY_PRESETS: Dict[str, GameConfig] = {
    "welch": GameConfig(
        difficulty="welch",
        retirement_threshold=120,
        tenure_decay_enabled=False,
        tenure_decay_start_quarter=0,
        success_reward_bonus=1,
        starting_favorability=80,
    ),
    "nadella": GameConfig(
        difficulty="nadella",
        retirement_threshold=140,
        tenure_decay_enabled=True,
        tenure_decay_start_quarter=16,
        success_reward_bonus=0,
        starting_favorability=75,
    ),
    "icahn": GameConfig(
        difficulty="icahn",
        retirement_threshold=180,
        tenure_decay_enabled=True,
        tenure_decay_start_quarter=6,
        success_reward_bonus=-1,
        starting_favorability=65,
    ),
}

DEFAULT_DIFFICULTY: str = "nadella"


def get_difficulty(name: str = DEFAULT_DIFFICULTY) -> GameConfig:
    """Resolve a difficulty tier name. Unknown names hard fail."""
    try:
        return DIFFICULTY_PRESETS[name]
    except KeyError:
        raise ValueError(
            f"Unknown difficulty {name!r}: expected one of "
            f"{sorted(DIFFICULTY_PRESETS)}"
        ) from None
