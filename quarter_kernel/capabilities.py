"""
Quarter Kernel: Capability Queries v1.0

Read-only predicates callers use to pre-validate an action. advance()
raises ContractViolationError for anything these report as impossible.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, List

from .constants import (
    BOOST_COST,
    MAX_CARDS_PER_QUARTER,
    REDEEM_EVIL_COST,
    REORG_COST,
    SCHMOOZE_COST,
)
from .domain_types import (
    METERS,
    METER_MAX,
    PHASE_CRISIS,
    PHASE_DEMAND,
    PHASE_PLAY_CARDS,
    PHASE_RESOLUTION,
    GameState,
)
from .economy import can_afford, can_exchange, card_pc_cost
from .favorability import can_retire as _tenure_can_retire


# Phase -> action types it accepts.
PHASE_ACTIONS: Dict[str, FrozenSet[str]] = {
    PHASE_DEMAND: frozenset({"advance"}),
    PHASE_PLAY_CARDS: frozenset({
        "advance", "play_card", "end_play", "exchange_meter", "boost_meter",
        "schmooze_board", "reorg_hand", "redeem_evil",
    }),
    PHASE_CRISIS: frozenset({"advance", "choose"}),
    PHASE_RESOLUTION: frozenset({"advance", "retire"}),
}


def accepts(state: GameState, action_type: str) -> bool:
    if state.tenure.is_terminal:
        return False
    return action_type in PHASE_ACTIONS[state.cursor.phase]


def _in_play_phase(state: GameState) -> bool:
    return not state.tenure.is_terminal and state.cursor.phase == PHASE_PLAY_CARDS


def can_afford_next_card(state: GameState) -> bool:
    return can_afford(state.resources, card_pc_cost(len(state.played_this_quarter)))


def can_play_card(state: GameState, card_id: str) -> bool:
    return (
        _in_play_phase(state)
        and card_id in state.hand
        and len(state.played_this_quarter) < MAX_CARDS_PER_QUARTER
        and can_afford_next_card(state)
    )


def can_exchange_meter(state: GameState, meter: str, amount: int = 1) -> bool:
    return _in_play_phase(state) and meter in METERS and can_exchange(state.org, meter, amount)


def can_boost(state: GameState, meter: str) -> bool:
    return (
        _in_play_phase(state)
        and meter in METERS
        and state.org.get(meter) < METER_MAX
        and can_afford(state.resources, BOOST_COST)
    )


def can_schmooze(state: GameState) -> bool:
    return _in_play_phase(state) and can_afford(state.resources, SCHMOOZE_COST)


def can_reorg(state: GameState) -> bool:
    return _in_play_phase(state) and can_afford(state.resources, REORG_COST)


def can_redeem_evil(state: GameState) -> bool:
    return (
        _in_play_phase(state)
        and state.tenure.evil_score > 0
        and can_afford(state.resources, REDEEM_EVIL_COST)
    )


def can_choose(state: GameState, choice_id: str) -> bool:
    if state.tenure.is_terminal or state.cursor.phase != PHASE_CRISIS:
        return False
    crisis = state.current_crisis
    if crisis is None or choice_id not in crisis.choice_ids():
        return False
    choice = crisis.get_choice(choice_id)
    if choice.is_defer:
        return (
            state.active_situation is not None
            and state.catalog.situation(state.active_situation.situation_id).can_defer
        )
    return can_afford(state.resources, choice.pc_cost)


def can_retire(state: GameState) -> bool:
    return (
        state.cursor.phase == PHASE_RESOLUTION
        and _tenure_can_retire(state.tenure, state.config)
    )


def legal_actions(state: GameState) -> List[dict]:
    """
    Every action the current state accepts, as {action_type, payload} dicts.
    Exchanges are listed for one unit only.
    """
    if state.tenure.is_terminal:
        return []

    actions: List[dict] = []
    phase = state.cursor.phase

    if phase == PHASE_PLAY_CARDS:
        for card_id in state.hand:
            if can_play_card(state, card_id):
                actions.append({"action_type": "play_card", "payload": {"card_id": card_id}})
        for meter in METERS:
            if can_exchange_meter(state, meter):
                actions.append({
                    "action_type": "exchange_meter",
                    "payload": {"meter": meter, "amount": 1},
                })
            if can_boost(state, meter):
                actions.append({"action_type": "boost_meter", "payload": {"meter": meter}})
        if can_schmooze(state):
            actions.append({"action_type": "schmooze_board", "payload": {}})
        if can_reorg(state):
            actions.append({"action_type": "reorg_hand", "payload": {}})
        if can_redeem_evil(state):
            actions.append({"action_type": "redeem_evil", "payload": {}})
        actions.append({"action_type": "end_play", "payload": {}})
    elif phase == PHASE_CRISIS and state.current_crisis is not None:
        for choice_id in state.current_crisis.choice_ids():
            if can_choose(state, choice_id):
                actions.append({"action_type": "choose", "payload": {"choice_id": choice_id}})
    elif phase == PHASE_RESOLUTION and can_retire(state):
        actions.append({"action_type": "retire", "payload": {}})

    actions.append({"action_type": "advance", "payload": {}})
    return actions
