"""
Quarter Kernel: Political Capital Economy v1.0

Rules:
  - Balance is clamped to [0, PC_MAX] on every earn.
  - spend() is atomic: it fails before touching the balance.
  - End of quarter: +1 governance >= 60, +1 alignment >= 60,
    -1 morale < 30, -1 decay above the threshold; summed, then clamped.
  - Restraint bonus: 3 / 2 / 1 / 0 for 0 / 1 / 2 / 3+ cards played.
  - Exchange: a fixed meter amount (10..20 by meter) buys 1 capital.
"""

from __future__ import annotations

from .constants import (
    CARD_PC_COSTS,
    EXCHANGE_COSTS,
    PC_DECAY_THRESHOLD,
    PC_MAX,
    RESTRAINT_BONUS,
)
from .domain_types import OrgMeters, ResourceState, clamp, validate_meter
from .errors import ContractViolationError, InsufficientCapitalError


def can_afford(resources: ResourceState, cost: int) -> bool:
    return 0 <= cost <= resources.political_capital


def spend(resources: ResourceState, cost: int) -> None:
    """Deduct *cost*. Raises InsufficientCapitalError without mutating."""
    if cost < 0:
        raise ValueError(f"Spend cost must be non-negative, got {cost}")
    if not can_afford(resources, cost):
        raise InsufficientCapitalError(resources.political_capital, cost)
    resources.political_capital -= cost


def earn(resources: ResourceState, delta: int) -> int:
    """Add *delta* (may be negative), clamped. Returns the applied change."""
    old = resources.political_capital
    resources.political_capital = clamp(old + delta, 0, PC_MAX)
    return resources.political_capital - old


def end_of_quarter_delta(org: OrgMeters, balance: int) -> int:
    delta = 0
    if org.governance >= 60:
        delta += 1
    if org.alignment >= 60:
        delta += 1
    if org.morale < 30:
        delta -= 1
    if balance > PC_DECAY_THRESHOLD:
        delta -= 1
    return delta


def apply_end_of_quarter(resources: ResourceState, org: OrgMeters) -> int:
    return earn(resources, end_of_quarter_delta(org, resources.political_capital))


def restraint_bonus(cards_played: int) -> int:
    return RESTRAINT_BONUS[min(cards_played, len(RESTRAINT_BONUS) - 1)]


def card_pc_cost(position: int) -> int:
    """Capital cost of the card played at 0-based *position*."""
    if position >= len(CARD_PC_COSTS):
        return CARD_PC_COSTS[-1]
    return CARD_PC_COSTS[position]


# ---------------------------------------------------------------------------
# Meter exchange
# ---------------------------------------------------------------------------

def exchange_cost(meter: str) -> int:
    validate_meter(meter)
    return EXCHANGE_COSTS[meter]


def can_exchange(org: OrgMeters, meter: str, amount: int = 1) -> bool:
    if amount < 1:
        return False
    return org.get(meter) >= exchange_cost(meter) * amount


def exchange_meter(
    org: OrgMeters, resources: ResourceState, meter: str, amount: int = 1,
) -> int:
    """
    Trade meter points for *amount* units of capital, all or nothing.
    Returns capital actually gained (the balance cap may absorb some).
    """
    if amount < 1:
        raise ContractViolationError(
            "invalid_exchange", f"exchange amount must be >= 1, got {amount}",
        )
    if not can_exchange(org, meter, amount):
        raise ContractViolationError(
            "insufficient_meter",
            f"{meter}={org.get(meter)} cannot cover "
            f"{exchange_cost(meter) * amount} for {amount} capital",
        )
    org.adjust(meter, -exchange_cost(meter) * amount)
    return earn(resources, amount)
