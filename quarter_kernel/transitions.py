"""
Quarter Kernel: Phase State Machine v1.0

ALL state-mutation logic lives here (or in the calculators it calls on the
working copy). All math is pure integer.

    advance(state, action, rng) -> (new_state, TransitionLog)

Demand -> PlayCards -> Crisis -> Resolution -> Demand(quarter + 1)

The input state is never mutated: a deep copy is made first, and every
contract violation raises before that copy is returned.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from .actions import BaseAction
from .capabilities import PHASE_ACTIONS
from .constants import (
    BOOST_AMOUNT,
    BOOST_COST,
    CRISIS_CHANCE_PERCENT,
    HAND_SIZE,
    MAX_CARDS_PER_QUARTER,
    MAX_PRESSURE,
    RECENT_PROFIT_WINDOW,
    REDEEM_EVIL_COST,
    REORG_COST,
    REVENUE_NEGLECT_FAVORABILITY_PENALTY,
    REVENUE_NEGLECT_METER_PENALTY,
    REVENUE_NEGLECT_THRESHOLD,
    SCHMOOZE_COST,
    SCHMOOZE_SUCCESS_PERCENT,
    ZERO_PLAY_REFRESH_COUNT,
)
from .content import Choice
from .deferred import (
    check_follow_ups,
    defer_situation,
    maintain_deferred,
    pop_due_situation,
    queue_follow_up,
    queue_situation,
    situation_crisis,
    situation_trigger,
)
from .domain_types import (
    LOG_EVENT,
    LOG_INFO,
    LOG_OUTCOME,
    METERS,
    METER_ALIGNMENT,
    METER_GOVERNANCE,
    METER_MORALE,
    PHASE_CRISIS,
    PHASE_DEMAND,
    PHASE_PLAY_CARDS,
    PHASE_RESOLUTION,
    METER_MAX,
    TIER_BAD,
    TIER_GOOD,
    GameState,
    LogEntry,
    QuarterLedger,
    TenureState,
    TransitionLog,
    clamp,
)
from .economy import (
    apply_end_of_quarter,
    can_afford,
    card_pc_cost,
    earn,
    exchange_meter,
    restraint_bonus,
    spend,
)
from .effects import MeterDelta, ProfitDelta, apply_effect, apply_effects
from .errors import ContractViolationError
from .favorability import (
    apply_adjustment,
    can_retire,
    compute_favorability_delta,
    final_score,
    low_activity_adjustment,
    low_meter_adjustment,
    ouster_threshold,
    parachute,
    profit_trajectory,
    quarterly_bonus,
    roll_for_ouster,
    tenure_decay,
)
from .finance import (
    QuarterResult,
    base_operations,
    directive_required_amount,
    directive_title,
    exceptional_rewards,
    is_directive_met,
    next_directive,
    passive_recovery,
    performance_effects,
    scale_revenue,
)
from .outcomes import card_modifiers, roll_crisis_choice, roll_outcome
from .rng import DeterministicRNG

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Public dispatcher
# ---------------------------------------------------------------------------

def advance(
    state: GameState, action: BaseAction, rng: DeterministicRNG,
) -> Tuple[GameState, TransitionLog]:
    """
    Apply *action* to *state* in its current phase and return
    ``(new_state, log)``. The original state is never mutated.
    """
    if state.tenure.is_terminal:
        raise ContractViolationError(
            "game_over",
            "the game has ended ("
            + ("retired" if state.tenure.has_retired else "ousted") + ")",
        )

    phase = state.cursor.phase
    atype = action.action_type
    if atype not in PHASE_ACTIONS[phase]:
        raise ContractViolationError(
            "invalid_transition",
            f"{atype!r} is not accepted in phase {phase!r}; "
            f"expected one of {sorted(PHASE_ACTIONS[phase])}",
        )

    new_state = state.copy()
    log: List[LogEntry] = []

    if phase == PHASE_DEMAND:
        _advance_demand(new_state, rng, log)
    elif phase == PHASE_PLAY_CARDS:
        _advance_play_cards(new_state, action, rng, log)
    elif phase == PHASE_CRISIS:
        _advance_crisis(new_state, action, rng, log)
    elif phase == PHASE_RESOLUTION:
        _advance_resolution(new_state, action, rng, log)
    else:
        raise ValueError(f"Unknown phase: {phase}")

    new_state.actions_applied += 1
    return new_state, TransitionLog(
        quarter=state.cursor.quarter, phase=phase, entries=tuple(log),
    )


# ---------------------------------------------------------------------------
# Demand
# ---------------------------------------------------------------------------

def _advance_demand(
    state: GameState, rng: DeterministicRNG, log: List[LogEntry],
) -> None:
    required = directive_required_amount(state.directive_id, state.tenure.pressure_level)
    log.append(LogEntry(
        category=LOG_INFO,
        code="directive_issued",
        message=f"{directive_title(state.directive_id)}: {required}M",
        amount=required,
    ))

    if rng.rand_int(1, 100) <= CRISIS_CHANCE_PERCENT:
        crisis_id, deck = state.crisis_deck.draw(rng)
        if crisis_id is not None:
            state.crisis_deck = deck.with_discarded([crisis_id])
            state.current_crisis = state.catalog.crisis_card(crisis_id)
            log.append(LogEntry(
                category=LOG_EVENT,
                code="crisis_drawn",
                message=state.current_crisis.title,
            ))

    state.cursor = state.cursor.next()


# ---------------------------------------------------------------------------
# PlayCards
# ---------------------------------------------------------------------------

def _advance_play_cards(
    state: GameState, action: BaseAction, rng: DeterministicRNG,
    log: List[LogEntry],
) -> None:
    atype = action.action_type

    if atype == "play_card":
        _play_card(state, action, rng, log)
    elif atype in ("end_play", "advance"):
        _end_play_phase(state, rng, log)
    elif atype == "exchange_meter":
        meter = _require_meter(action)
        amount = action.payload.get("amount", 1)
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ContractViolationError(
                "malformed_action", f"exchange amount must be an integer, got {amount!r}",
            )
        before = state.org.get(meter)
        gained = exchange_meter(state.org, state.resources, meter, amount)
        log.append(LogEntry(
            category=LOG_INFO, code="meter_exchanged", meter=meter,
            delta=state.org.get(meter) - before, amount=gained,
        ))
    elif atype == "boost_meter":
        meter = _require_meter(action)
        if state.org.get(meter) >= METER_MAX:
            raise ContractViolationError("meter_full", f"{meter} is already at {METER_MAX}")
        spend(state.resources, BOOST_COST)
        log.append(LogEntry(category=LOG_INFO, code="meter_boosted", amount=BOOST_COST))
        log.extend(apply_effect(MeterDelta(meter, BOOST_AMOUNT), state))
    elif atype == "schmooze_board":
        _schmooze(state, rng, log)
    elif atype == "reorg_hand":
        spend(state.resources, REORG_COST)
        state.project_deck = state.project_deck.with_discarded(state.hand)
        state.hand, state.project_deck = state.project_deck.draw_many(HAND_SIZE, rng)
        log.append(LogEntry(
            category=LOG_INFO, code="hand_reorganized", amount=len(state.hand),
        ))
    elif atype == "redeem_evil":
        if state.tenure.evil_score <= 0:
            raise ContractViolationError("nothing_to_redeem", "evil score is already 0")
        spend(state.resources, REDEEM_EVIL_COST)
        state.tenure.evil_score -= 1
        log.append(LogEntry(category=LOG_INFO, code="evil_redeemed", amount=1))
    else:
        raise ValueError(f"Unknown action type: {atype}")


def _require_meter(action: BaseAction) -> str:
    meter = action.require("meter")
    if meter not in METERS:
        raise ContractViolationError(
            "unknown_meter", f"{meter!r} is not one of {list(METERS)}",
        )
    return meter


def _schmooze(state: GameState, rng: DeterministicRNG, log: List[LogEntry]) -> None:
    spend(state.resources, SCHMOOZE_COST)
    if rng.rand_int(1, 100) <= SCHMOOZE_SUCCESS_PERCENT:
        delta = rng.rand_int(1, 5)
        code = "schmooze_succeeded"
    else:
        delta = -rng.rand_int(1, 3)
        code = "schmooze_backfired"
    applied = _change_favorability(state.tenure, delta)
    log.append(LogEntry(category=LOG_EVENT, code=code, delta=applied))


def _play_card(
    state: GameState, action: BaseAction, rng: DeterministicRNG,
    log: List[LogEntry],
) -> None:
    card_id = action.require("card_id")
    if card_id not in state.hand:
        raise ContractViolationError(
            "unknown_card", f"card {card_id!r} is not in hand",
        )
    position = len(state.played_this_quarter)
    if position >= MAX_CARDS_PER_QUARTER:
        raise ContractViolationError(
            "card_cap",
            f"already played {position} of {MAX_CARDS_PER_QUARTER} cards this quarter",
        )
    spend(state.resources, card_pc_cost(position))

    catalog = state.catalog
    tenure = state.tenure
    quarter = state.cursor.quarter
    card = catalog.project_card(card_id)
    played = [catalog.project_card(c) for c in state.played_this_quarter]

    mods = card_modifiers(
        card, state.org, played, tenure.consecutive_successes,
        tenure.pressure_level, tenure.evil_score, quarter, position,
    )
    tier, weights = roll_outcome(mods, rng)
    logger.debug(
        "Q%d card %s at position %d: weights %s -> %s",
        quarter, card_id, position, weights.to_dict(), tier,
    )
    log.append(LogEntry(
        category=LOG_OUTCOME, code="card_played", message=card.title, tier=tier,
    ))

    delivery = state.org.delivery
    for effect in card.outcomes.effects_for(tier):
        if isinstance(effect, ProfitDelta):
            if not card.is_revenue:
                logger.debug("Ignoring profit effect on non-revenue card %s", card_id)
                continue
            scaled = scale_revenue(
                effect.amount, tenure.pressure_level, delivery,
                state.ledger.revenue_cards_played,
            )
            log.extend(apply_effect(ProfitDelta(scaled), state))
        else:
            log.extend(apply_effect(effect, state))
    if card.is_revenue:
        state.ledger.revenue_cards_played += 1

    if tier == TIER_GOOD:
        tenure.consecutive_successes += 1
    elif tier == TIER_BAD:
        tenure.consecutive_successes = 0

    if card.is_corporate and card.corporate_intensity > 0:
        log.extend(_corporate_cost(tenure, card.corporate_intensity))

    trigger = situation_trigger(catalog, card_id, tier, quarter, rng)
    if trigger is not None:
        situation_id, delay = trigger
        log.extend(queue_situation(state, situation_id, card_id, delay))

    state.hand = [c for c in state.hand if c != card_id]
    state.project_deck = state.project_deck.with_discarded([card_id])
    state.played_this_quarter = state.played_this_quarter + [card_id]
    queue_follow_up(state, card_id, card.title, tier)

    more = (
        len(state.played_this_quarter) < MAX_CARDS_PER_QUARTER
        and bool(state.hand)
        and can_afford(state.resources, card_pc_cost(len(state.played_this_quarter)))
        and not action.payload.get("end_phase", False)
    )
    if not more:
        _end_play_phase(state, rng, log)


def _end_play_phase(
    state: GameState, rng: DeterministicRNG, log: List[LogEntry],
) -> None:
    played = len(state.played_this_quarter)

    gained = earn(state.resources, restraint_bonus(played))
    log.append(LogEntry(category=LOG_INFO, code="restraint_bonus", amount=gained))

    if state.ledger.revenue_cards_played >= REVENUE_NEGLECT_THRESHOLD:
        log.append(LogEntry(
            category=LOG_EVENT,
            code="revenue_neglect",
            message=f"{state.ledger.revenue_cards_played} revenue projects in one quarter",
        ))
        for meter in (METER_MORALE, METER_GOVERNANCE, METER_ALIGNMENT):
            log.extend(apply_effect(
                MeterDelta(meter, -REVENUE_NEGLECT_METER_PENALTY), state,
            ))
        _change_favorability(state.tenure, -REVENUE_NEGLECT_FAVORABILITY_PENALTY)

    if played == 0 and len(state.hand) >= ZERO_PLAY_REFRESH_COUNT:
        shuffled = list(state.hand)
        rng.shuffle(shuffled)
        discarded = shuffled[:ZERO_PLAY_REFRESH_COUNT]
        state.hand = [c for c in state.hand if c not in discarded]
        deck = state.project_deck.with_discarded(discarded)
        drawn, state.project_deck = deck.draw_many(ZERO_PLAY_REFRESH_COUNT, rng)
        state.hand = state.hand + drawn
        log.append(LogEntry(
            category=LOG_INFO, code="hand_refreshed", amount=len(drawn),
        ))

    state.cursor = state.cursor.next()


# ---------------------------------------------------------------------------
# Crisis
# ---------------------------------------------------------------------------

def _advance_crisis(
    state: GameState, action: BaseAction, rng: DeterministicRNG,
    log: List[LogEntry],
) -> None:
    if not state.crisis_prepared:
        log.extend(check_follow_ups(state, rng))
        log.extend(maintain_deferred(state, rng))
        if state.current_crisis is None:
            pending = pop_due_situation(state)
            if pending is not None:
                state.current_crisis = situation_crisis(state.catalog, pending)
                state.active_situation = pending
                log.append(LogEntry(
                    category=LOG_EVENT,
                    code="situation_surfaced",
                    message=state.current_crisis.title,
                ))
        state.crisis_prepared = True

    crisis = state.current_crisis
    if crisis is None:
        if action.action_type == "choose":
            raise ContractViolationError("no_crisis", "there is no crisis to answer")
        log.append(LogEntry(category=LOG_INFO, code="no_crisis"))
        state.cursor = state.cursor.next()
        return

    if action.action_type == "advance":
        log.append(LogEntry(
            category=LOG_INFO, code="awaiting_choice", message=crisis.title,
        ))
        return

    choice = crisis.get_choice(action.require("choice_id"))
    _resolve_choice(state, choice, rng, log)
    state.current_crisis = None
    state.active_situation = None
    state.cursor = state.cursor.next()


def _resolve_choice(
    state: GameState, choice: Choice, rng: DeterministicRNG,
    log: List[LogEntry],
) -> None:
    if choice.is_defer:
        if state.active_situation is None:
            raise ContractViolationError(
                "cannot_defer", "only situations can be deferred",
            )
        log.extend(defer_situation(state, state.active_situation))
        return

    if choice.pc_cost:
        spend(state.resources, choice.pc_cost)

    if choice.is_tiered:
        tier = roll_crisis_choice(choice, rng)
        log.append(LogEntry(
            category=LOG_OUTCOME, code="crisis_resolved",
            message=choice.label, tier=tier,
        ))
        effects = choice.outcomes.effects_for(tier)
    else:
        log.append(LogEntry(
            category=LOG_OUTCOME, code="crisis_resolved", message=choice.label,
        ))
        effects = choice.effects
    log.extend(apply_effects(effects, state))

    if choice.is_corporate:
        log.extend(_corporate_cost(state.tenure, choice.corporate_intensity))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def _advance_resolution(
    state: GameState, action: BaseAction, rng: DeterministicRNG,
    log: List[LogEntry],
) -> None:
    tenure = state.tenure
    config = state.config

    if action.action_type == "retire":
        if not can_retire(tenure, config):
            raise ContractViolationError(
                "cannot_retire",
                f"accumulated bonus {tenure.accumulated_bonus} is below "
                f"the {config.retirement_threshold} retirement threshold",
            )
        tenure.has_retired = True
        score = final_score(tenure, state.resources.political_capital)
        log.append(LogEntry(
            category=LOG_EVENT, code="ceo_retired", amount=score,
            message=f"parachute {parachute(tenure)}M",
        ))
        logger.info(
            "CEO retired after %d quarters, final score %d",
            tenure.quarters_survived, score,
        )
        return

    for meter, delta in passive_recovery(state.org):
        log.extend(apply_effect(MeterDelta(meter, delta), state))

    ledger = state.ledger
    cards_played = len(state.played_this_quarter)
    base = base_operations(state.org, rng, tenure.quarters_survived)
    profit = base + ledger.net
    profit_delta = profit - tenure.last_quarter_profit

    for meter, delta in performance_effects(profit, profit_delta, cards_played, rng):
        log.extend(apply_effect(MeterDelta(meter, delta), state))

    directive_met = is_directive_met(
        state.directive_id, tenure.last_quarter_profit, profit, tenure.pressure_level,
    )
    weak_quarter = cards_played == 0 or ledger.project_profit <= 0
    if directive_met and weak_quarter and tenure.consecutive_weak_project_quarters >= 1:
        directive_met = False
        log.append(LogEntry(category=LOG_EVENT, code="directive_overridden"))

    result = QuarterResult(
        base_operations=base,
        project_impact=ledger.project_profit,
        fines=ledger.fines,
        profit=profit,
        profit_delta=profit_delta,
        directive_met=directive_met,
    )
    log.append(LogEntry(
        category=LOG_INFO,
        code="directive_met" if directive_met else "directive_failed",
        message=f"base {base}M, projects {ledger.project_profit}M, fines {ledger.fines}M",
        amount=profit,
    ))

    # Favorability, in fixed order.
    change = compute_favorability_delta(
        tenure.last_quarter_profit, profit, directive_met, tenure.pressure_level,
        tenure.evil_score, tenure.consecutive_weak_project_quarters,
        tenure.quarters_survived, config,
    )
    change += tenure_decay(tenure.quarters_survived, config)
    if cards_played == 0 and change > 0:
        change = 0
    if cards_played > 0:
        change += 1
    change = apply_adjustment(change, low_meter_adjustment(state.org))
    change = apply_adjustment(
        change, low_activity_adjustment(cards_played, tenure.quarters_survived),
    )

    bonus = 0
    if cards_played > 0:
        bonus, reasons = quarterly_bonus(tenure, state.org, directive_met, profit_delta)
        logger.debug("Quarterly bonus %d: %s", bonus, reasons)

    _record_quarter(tenure, profit, ledger, cards_played, change, bonus)
    log.append(LogEntry(
        category=LOG_INFO, code="favorability_changed", delta=change,
        amount=tenure.favorability,
    ))
    log.append(LogEntry(category=LOG_INFO, code="quarterly_bonus", amount=bonus))

    for meter, delta in exceptional_rewards(directive_met, profit_delta, bonus, state.org, rng):
        log.extend(apply_effect(MeterDelta(meter, delta), state))

    threshold = ouster_threshold(
        tenure.favorability,
        tenure.pressure_level,
        tenure.quarters_survived,
        tenure.evil_score,
        directive_met,
        profit_positive=profit >= 0,
        profit_improving=profit_trajectory(tenure.recent_profits) > 0,
        consecutive_negative_quarters=tenure.consecutive_negative_quarters,
        consecutive_weak_project_quarters=tenure.consecutive_weak_project_quarters,
        cards_played=cards_played,
    )
    ousted, roll = roll_for_ouster(threshold, rng)
    logger.info(
        "Q%d resolved: %s, favorability %d, ouster threshold %d, roll %s",
        state.cursor.quarter, result.to_dict(), tenure.favorability, threshold, roll,
    )

    if ousted:
        tenure.is_ousted = True
        state.current_crisis = None
        score = final_score(tenure, state.resources.political_capital)
        log.append(LogEntry(
            category=LOG_EVENT, code="ceo_ousted", amount=score,
            message=f"parachute {parachute(tenure)}M",
        ))
        logger.info(
            "CEO ousted after %d quarters, final score %d",
            tenure.quarters_survived, score,
        )
        return

    log.append(LogEntry(category=LOG_EVENT, code="ceo_survived", amount=threshold))
    if can_retire(tenure, config):
        log.append(LogEntry(
            category=LOG_INFO, code="retirement_available",
            amount=tenure.accumulated_bonus,
        ))

    pc_delta = apply_end_of_quarter(state.resources, state.org)
    if pc_delta:
        log.append(LogEntry(category=LOG_INFO, code="capital_adjusted", amount=pc_delta))

    state.cursor = state.cursor.next()
    state.directive_id = next_directive(tenure.pressure_level)
    drawn, state.project_deck = state.project_deck.draw_many(
        max(0, HAND_SIZE - len(state.hand)), rng,
    )
    state.hand = state.hand + drawn
    state.played_this_quarter = []
    state.ledger = QuarterLedger()
    state.crisis_prepared = False


def _record_quarter(
    tenure: TenureState,
    profit: int,
    ledger: QuarterLedger,
    cards_played: int,
    favorability_change: int,
    bonus: int,
) -> None:
    tenure.total_profit += profit
    tenure.recent_profits = (tenure.recent_profits + [profit])[-RECENT_PROFIT_WINDOW:]
    if profit < 0:
        tenure.consecutive_negative_quarters += 1
    else:
        tenure.consecutive_negative_quarters = 0
    if ledger.project_profit <= 0:
        tenure.consecutive_weak_project_quarters += 1
    else:
        tenure.consecutive_weak_project_quarters = 0
    tenure.total_cards_played += cards_played
    _change_favorability(tenure, favorability_change)
    tenure.quarters_survived += 1
    tenure.pressure_level = min(tenure.quarters_survived // 2, MAX_PRESSURE)
    tenure.accumulated_bonus += bonus
    tenure.last_quarterly_bonus = bonus
    tenure.evil_score_last_quarter = tenure.evil_score
    tenure.last_quarter_profit = profit


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _change_favorability(tenure: TenureState, delta: int) -> int:
    old = tenure.favorability
    tenure.favorability = clamp(old + delta, 0, 100)
    return tenure.favorability - old


def _corporate_cost(tenure: TenureState, intensity: int) -> List[LogEntry]:
    """Corporate moves please the board and cost the conscience."""
    tenure.evil_score += intensity
    applied = _change_favorability(tenure, intensity)
    return [LogEntry(
        category=LOG_EVENT, code="corporate_choice", amount=intensity, delta=applied,
    )]
