"""
Quarter Kernel v1.0: Test Scenarios

Executable scenarios through the engine and the pure transition function:
  1. New game, strict phase cycle, quarter +1 per cycle
  2. Determinism of replays
  3. Contract violations leave the state untouched
  4. Card plays, economy actions, crisis choices, deferral
  5. Zero-card quarter: +3 capital, no favorability gain
  6. Retirement and ouster are terminal

Run:  python -m pytest quarter_kernel/test_scenarios.py
"""

from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.actions import (
    ACTION_CLASS_MAP,
    AdvanceAction,
    BaseAction,
    BoostMeterAction,
    ChooseAction,
    EndPlayAction,
    ExchangeMeterAction,
    PlayCardAction,
    RedeemEvilAction,
    ReorgHandAction,
    RetireAction,
    SchmoozeBoardAction,
    reconstruct_action,
)
from quarter_kernel.capabilities import can_boost, legal_actions
from quarter_kernel.deferred import situation_crisis
from quarter_kernel.domain_types import (
    METERS,
    PHASE_CRISIS,
    PHASE_DEMAND,
    PHASE_PLAY_CARDS,
    PHASE_RESOLUTION,
    PHASES,
    GameState,
    PendingSituation,
    QuarterCursor,
)
from quarter_kernel.engine import QuarterEngine
from quarter_kernel.errors import ContractViolationError, InsufficientCapitalError
from quarter_kernel.hashing import canonical_hash
from quarter_kernel.invariants import InvariantViolationError, validate_invariants
from quarter_kernel.rng import DeterministicRNG
from quarter_kernel.state import create_initial_state
from quarter_kernel.transitions import advance


def _action(engine: QuarterEngine, cls=AdvanceAction, **payload) -> BaseAction:
    return cls(sequence=engine.last_sequence + 1, payload=payload)


def _step(engine: QuarterEngine, cls=AdvanceAction, **payload):
    return engine.apply_action(_action(engine, cls, **payload))


def _cautious_action(state: GameState) -> BaseAction:
    """Play one card a quarter and take the first crisis choice on offer."""
    phase = state.cursor.phase
    options = legal_actions(state)
    if phase == PHASE_PLAY_CARDS:
        plays = [a for a in options if a["action_type"] == "play_card"]
        if plays and not state.played_this_quarter:
            return PlayCardAction(payload=plays[0]["payload"])
        return EndPlayAction()
    if phase == PHASE_CRISIS and state.current_crisis is not None:
        choices = [a for a in options if a["action_type"] == "choose"]
        return ChooseAction(payload=choices[0]["payload"])
    return AdvanceAction()


def _play(engine: QuarterEngine, max_actions: int) -> list:
    trail = []
    for _ in range(max_actions):
        if engine.state.tenure.is_terminal:
            break
        action = _cautious_action(engine.state)
        action.sequence = engine.last_sequence + 1
        engine.apply_action(action)
        trail.append(action)
    return trail


def _at(state: GameState, phase: str, quarter: int = 1) -> GameState:
    state.cursor = QuarterCursor(quarter=quarter, phase=phase)
    return state


# ══════════════════════════════════════════════════════════════
# Scenario 1: new game and the phase cycle
# ══════════════════════════════════════════════════════════════

def test_new_game_opening_state() -> None:
    engine = QuarterEngine()
    state = engine.new_game(seed=42)
    assert state.cursor == QuarterCursor(quarter=1, phase=PHASE_DEMAND)
    assert len(state.hand) == 7
    assert len(set(state.hand)) == 7
    assert state.resources.political_capital == 10
    assert state.tenure.favorability == 75
    assert state.tenure.pressure_level == 1
    assert state.org.as_dict() == {m: 60 for m in METERS}
    assert state.project_deck.total == 12 - 7
    assert state.crisis_deck.total == 4


def test_engine_requires_a_game() -> None:
    with pytest.raises(RuntimeError):
        QuarterEngine().state


def test_strict_phase_cycle() -> None:
    engine = QuarterEngine()
    engine.new_game(seed=3)
    previous = engine.state.cursor
    for _ in range(120):
        if engine.state.tenure.is_terminal:
            break
        action = _cautious_action(engine.state)
        action.sequence = engine.last_sequence + 1
        engine.apply_action(action)
        current = engine.state.cursor
        if current != previous:
            expected = previous.next()
            assert current == expected
            if previous.phase == PHASE_RESOLUTION:
                assert current.quarter == previous.quarter + 1
                assert current.phase == PHASES[0]
        previous = current
    assert engine.state.cursor.quarter >= 2


def test_quarter_boundary_resets_per_quarter_state() -> None:
    engine = QuarterEngine()
    engine.new_game(seed=8)
    _step(engine)
    card = engine.state.hand[0]
    _step(engine, PlayCardAction, card_id=card, end_phase=True)
    assert engine.state.cursor.phase == PHASE_CRISIS
    while engine.state.cursor.phase != PHASE_RESOLUTION:
        action = _cautious_action(engine.state)
        action.sequence = engine.last_sequence + 1
        engine.apply_action(action)
    _step(engine)
    state = engine.state
    assert state.cursor == QuarterCursor(quarter=2, phase=PHASE_DEMAND)
    assert state.played_this_quarter == []
    assert state.ledger.project_profit == 0 and state.ledger.fines == 0
    assert len(state.hand) == 7
    assert not state.crisis_prepared
    assert state.tenure.quarters_survived == 1
    assert state.tenure.total_cards_played == 1
    assert len(state.tenure.recent_profits) == 1


# ══════════════════════════════════════════════════════════════
# Scenario 2: determinism
# ══════════════════════════════════════════════════════════════

def test_same_seed_same_actions_same_hash() -> None:
    first = QuarterEngine()
    first.new_game(seed=1234)
    trail = _play(first, 80)

    second = QuarterEngine()
    second.replay(1234, [reconstruct_action(a.to_dict()) for a in trail])
    assert canonical_hash(second.state) == canonical_hash(first.state)
    assert second.last_log == first.last_log


def test_different_seeds_diverge() -> None:
    a = QuarterEngine()
    a.new_game(seed=1)
    b = QuarterEngine()
    b.new_game(seed=2)
    assert canonical_hash(a.state) != canonical_hash(b.state)


def test_advance_is_pure() -> None:
    state = create_initial_state(5)
    before = canonical_hash(state)
    first, log1 = advance(state, AdvanceAction(), DeterministicRNG.for_step(5, 1))
    second, log2 = advance(state, AdvanceAction(), DeterministicRNG.for_step(5, 1))
    assert canonical_hash(state) == before
    assert canonical_hash(first) == canonical_hash(second)
    assert log1 == log2
    assert first.actions_applied == 1


# ══════════════════════════════════════════════════════════════
# Scenario 3: contract violations
# ══════════════════════════════════════════════════════════════

def test_sequence_violation() -> None:
    engine = QuarterEngine()
    engine.new_game(seed=1)
    with pytest.raises(ValueError, match="Sequence violation"):
        engine.apply_action(AdvanceAction(sequence=2))
    _step(engine)
    with pytest.raises(ValueError, match="Sequence violation"):
        engine.apply_action(AdvanceAction(sequence=1))


def test_phase_rejects_foreign_action_without_mutation() -> None:
    engine = QuarterEngine()
    engine.new_game(seed=1)
    before = canonical_hash(engine.state)
    with pytest.raises(ContractViolationError) as exc_info:
        _step(engine, PlayCardAction, card_id=engine.state.hand[0])
    assert exc_info.value.rule == "invalid_transition"
    assert canonical_hash(engine.state) == before
    _step(engine)
    assert engine.state.cursor.phase == PHASE_PLAY_CARDS


def test_unknown_card_and_malformed_payload() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    rng = DeterministicRNG(0)
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, PlayCardAction(payload={"card_id": "PROJ_NOT_A_CARD"}), rng)
    assert exc_info.value.rule == "unknown_card"
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, PlayCardAction(), rng)
    assert exc_info.value.rule == "malformed_action"
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, BoostMeterAction(payload={"meter": "hype"}), rng)
    assert exc_info.value.rule == "unknown_meter"


def test_exchange_amount_must_be_an_integer() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    before = canonical_hash(state)
    for amount in (1.5, "2", True, None):
        with pytest.raises(ContractViolationError) as exc_info:
            advance(
                state,
                ExchangeMeterAction(payload={"meter": "morale", "amount": amount}),
                DeterministicRNG(0),
            )
        assert exc_info.value.rule == "malformed_action"
    assert canonical_hash(state) == before
    assert state.org.morale == 60
    assert state.resources.political_capital == 10


def test_boost_rejected_on_full_meter() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    state.org.morale = 100
    assert not can_boost(state, "morale")
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, BoostMeterAction(payload={"meter": "morale"}), DeterministicRNG(0))
    assert exc_info.value.rule == "meter_full"
    assert state.resources.political_capital == 10
    assert state.org.morale == 100
    assert {"action_type": "boost_meter", "payload": {"meter": "morale"}} not in legal_actions(state)


def test_non_integer_meters_and_capital_break_invariants() -> None:
    state = create_initial_state(9)
    state.org.morale = 45.0
    with pytest.raises(InvariantViolationError) as exc_info:
        validate_invariants(state)
    assert exc_info.value.rule == "meter_bounds"

    state = create_initial_state(9)
    state.resources.political_capital = 11.5
    with pytest.raises(InvariantViolationError) as exc_info:
        validate_invariants(state)
    assert exc_info.value.rule == "capital_bounds"

    state = create_initial_state(9)
    state.resources.political_capital = True
    with pytest.raises(InvariantViolationError):
        validate_invariants(state)


def test_card_cap() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    state.played_this_quarter = ["PROJ_A", "PROJ_B", "PROJ_C"]
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, PlayCardAction(payload={"card_id": state.hand[0]}), DeterministicRNG(0))
    assert exc_info.value.rule == "card_cap"


def test_failed_overspend_mutates_nothing() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    state.resources.political_capital = 2
    hand = list(state.hand)
    with pytest.raises(InsufficientCapitalError):
        advance(state, ReorgHandAction(), DeterministicRNG(0))
    assert state.resources.political_capital == 2
    assert state.hand == hand


def test_redeem_with_no_evil() -> None:
    state = _at(create_initial_state(9), PHASE_PLAY_CARDS)
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, RedeemEvilAction(), DeterministicRNG(0))
    assert exc_info.value.rule == "nothing_to_redeem"


def test_terminal_game_rejects_everything() -> None:
    state = create_initial_state(9)
    state.tenure.is_ousted = True
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, AdvanceAction(), DeterministicRNG(0))
    assert exc_info.value.rule == "game_over"
    assert legal_actions(state) == []


def test_unknown_action_type_cannot_be_reconstructed() -> None:
    with pytest.raises(ValueError):
        reconstruct_action({"action_type": "bribe_auditor", "sequence": 1})
    assert set(ACTION_CLASS_MAP) == {
        "advance", "play_card", "end_play", "exchange_meter", "boost_meter",
        "schmooze_board", "reorg_hand", "redeem_evil", "choose", "retire",
    }


# ══════════════════════════════════════════════════════════════
# Scenario 4: play phase and crisis
# ══════════════════════════════════════════════════════════════

def test_three_plays_end_the_phase() -> None:
    state = _at(create_initial_state(21), PHASE_PLAY_CARDS)
    for i in range(3):
        assert state.cursor.phase == PHASE_PLAY_CARDS
        card = state.hand[0]
        state, log = advance(state, PlayCardAction(payload={"card_id": card}), DeterministicRNG(i))
        assert "card_played" in log.codes()
        assert card not in state.hand
        assert state.played_this_quarter[-1] == card
    assert state.cursor.phase == PHASE_CRISIS
    assert "restraint_bonus" in log.codes()
    assert len(state.pending_follow_ups) == 3


def test_boost_meter() -> None:
    state = _at(create_initial_state(4), PHASE_PLAY_CARDS)
    state, log = advance(state, BoostMeterAction(payload={"meter": "delivery"}), DeterministicRNG(0))
    assert state.org.delivery == 65
    assert state.resources.political_capital == 9
    assert state.cursor.phase == PHASE_PLAY_CARDS
    assert "meter_changed" in log.codes()


def test_exchange_meter() -> None:
    state = _at(create_initial_state(4), PHASE_PLAY_CARDS)
    state, _ = advance(
        state, ExchangeMeterAction(payload={"meter": "morale", "amount": 2}), DeterministicRNG(0),
    )
    assert state.org.morale == 40
    assert state.resources.political_capital == 12


def test_schmooze_moves_favorability_within_bounds() -> None:
    for seed in range(20):
        state = _at(create_initial_state(4), PHASE_PLAY_CARDS)
        state, log = advance(state, SchmoozeBoardAction(), DeterministicRNG(seed))
        assert state.resources.political_capital == 8
        assert 75 - 3 <= state.tenure.favorability <= 75 + 5
        assert log.codes()[0] in ("schmooze_succeeded", "schmooze_backfired")


def test_reorg_redraws_hand() -> None:
    state = _at(create_initial_state(4), PHASE_PLAY_CARDS)
    state, log = advance(state, ReorgHandAction(), DeterministicRNG(0))
    assert len(state.hand) == 7
    assert state.resources.political_capital == 7
    assert state.hand and "hand_reorganized" in log.codes()


def test_redeem_evil() -> None:
    state = _at(create_initial_state(4), PHASE_PLAY_CARDS)
    state.tenure.evil_score = 3
    state, _ = advance(state, RedeemEvilAction(), DeterministicRNG(0))
    assert state.tenure.evil_score == 2
    assert state.resources.political_capital == 8


def test_crisis_without_pending_event_passes_through() -> None:
    state = _at(create_initial_state(4), PHASE_CRISIS)
    state.crisis_prepared = True
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, ChooseAction(payload={"choice_id": "x"}), DeterministicRNG(0))
    assert exc_info.value.rule == "no_crisis"
    state, log = advance(state, AdvanceAction(), DeterministicRNG(0))
    assert state.cursor.phase == PHASE_RESOLUTION
    assert "no_crisis" in log.codes()


def test_crisis_waits_for_a_choice() -> None:
    state = _at(create_initial_state(4), PHASE_CRISIS)
    state.crisis_prepared = True
    state.current_crisis = state.catalog.crisis_card("CRISIS_KEY_CLIENT_LOST")
    state, log = advance(state, AdvanceAction(), DeterministicRNG(0))
    assert state.cursor.phase == PHASE_CRISIS
    assert log.codes() == ["awaiting_choice"]

    state, log = advance(state, ChooseAction(payload={"choice_id": "win_back"}), DeterministicRNG(0))
    assert state.cursor.phase == PHASE_RESOLUTION
    assert state.current_crisis is None
    assert state.ledger.project_profit == 5
    assert state.org.runway == 54


def test_crisis_capital_cost_paid_first() -> None:
    state = _at(create_initial_state(4), PHASE_CRISIS)
    state.crisis_prepared = True
    state.current_crisis = state.catalog.crisis_card("CRISIS_REGULATOR_INQUIRY")
    state.resources.political_capital = 1
    with pytest.raises(InsufficientCapitalError):
        advance(state, ChooseAction(payload={"choice_id": "lobby"}), DeterministicRNG(0))
    state.resources.political_capital = 5
    state, _ = advance(state, ChooseAction(payload={"choice_id": "lobby"}), DeterministicRNG(0))
    assert state.resources.political_capital == 3
    assert state.org.governance == 64


def test_corporate_choice_adds_evil_and_favorability() -> None:
    state = _at(create_initial_state(4), PHASE_CRISIS)
    state.crisis_prepared = True
    state.current_crisis = state.catalog.crisis_card("CRISIS_DATA_BREACH")
    state, log = advance(state, ChooseAction(payload={"choice_id": "bury_it"}), DeterministicRNG(0))
    assert state.tenure.evil_score == 3
    assert state.tenure.favorability == 78
    assert "corporate_choice" in log.codes()


def _situation_crisis_state(situation_id: str, quarter: int = 3) -> GameState:
    state = _at(create_initial_state(4), PHASE_CRISIS, quarter)
    pending = PendingSituation(
        situation_id=situation_id, origin_id="PROJ_ERP",
        scheduled_quarter=quarter, queued_at_quarter=quarter - 1,
    )
    state.crisis_prepared = True
    state.active_situation = pending
    state.current_crisis = situation_crisis(state.catalog, pending)
    return state


def test_defer_situation_choice() -> None:
    state = _situation_crisis_state("SIT_KEY_PERFORMER_QUITS", quarter=3)
    state, log = advance(
        state, ChooseAction(payload={"choice_id": "SIT_KEY_PERFORMER_QUITS_defer"}),
        DeterministicRNG(0),
    )
    assert "situation_deferred" in log.codes()
    assert state.cursor.phase == PHASE_RESOLUTION
    assert state.current_crisis is None and state.active_situation is None
    deferred = state.deferred_situations[-1]
    assert deferred.scheduled_quarter == 4
    assert deferred.defer_count == 1


def test_critical_situation_defer_rejected() -> None:
    state = _situation_crisis_state("SIT_MASS_RESIGNATION")
    with pytest.raises(ContractViolationError) as exc_info:
        advance(
            state, ChooseAction(payload={"choice_id": "SIT_MASS_RESIGNATION_defer"}),
            DeterministicRNG(0),
        )
    assert exc_info.value.rule == "cannot_defer"
    choice_ids = [a["payload"].get("choice_id") for a in legal_actions(state)]
    assert "SIT_MASS_RESIGNATION_defer" not in choice_ids
    assert "SIT_MASS_RESIGNATION_risk" in choice_ids


def test_due_situation_surfaces_as_crisis() -> None:
    state = _at(create_initial_state(4), PHASE_CRISIS, 3)
    state.pending_situations = [PendingSituation(
        situation_id="SIT_GLASSDOOR_FIRESTORM", origin_id="PROJ_AGILE",
        scheduled_quarter=3, queued_at_quarter=2,
    )]
    state, log = advance(state, AdvanceAction(), DeterministicRNG(0))
    assert "situation_surfaced" in log.codes()
    assert state.current_crisis.situation_id == "SIT_GLASSDOOR_FIRESTORM"
    assert state.active_situation is not None
    assert state.pending_situations == []
    assert state.cursor.phase == PHASE_CRISIS


# ══════════════════════════════════════════════════════════════
# Scenario 5: zero-card quarter
# ══════════════════════════════════════════════════════════════

def test_zero_card_quarter() -> None:
    for seed in range(10):
        engine = QuarterEngine()
        engine.new_game(seed=seed)
        _step(engine)
        hand_before = set(engine.state.hand)
        _, log = _step(engine, EndPlayAction)
        assert engine.state.resources.political_capital == 13
        assert "hand_refreshed" in log.codes()
        assert len(engine.state.hand) == 7
        assert len(hand_before & set(engine.state.hand)) >= 4
        while engine.state.cursor.phase != PHASE_RESOLUTION:
            action = _cautious_action(engine.state)
            action.sequence = engine.last_sequence + 1
            engine.apply_action(action)
        favorability = engine.state.tenure.favorability
        _step(engine)
        assert engine.state.tenure.favorability <= favorability
        assert engine.state.tenure.last_quarterly_bonus == 0


# ══════════════════════════════════════════════════════════════
# Scenario 6: terminal outcomes
# ══════════════════════════════════════════════════════════════

def test_retirement() -> None:
    state = _at(create_initial_state(4), PHASE_RESOLUTION)
    state.tenure.accumulated_bonus = 150
    assert any(a["action_type"] == "retire" for a in legal_actions(state))
    state, log = advance(state, RetireAction(), DeterministicRNG(0))
    assert state.tenure.has_retired
    assert "ceo_retired" in log.codes()
    assert state.cursor.phase == PHASE_RESOLUTION


def test_retirement_below_threshold() -> None:
    state = _at(create_initial_state(4), PHASE_RESOLUTION)
    state.tenure.accumulated_bonus = 139
    with pytest.raises(ContractViolationError) as exc_info:
        advance(state, RetireAction(), DeterministicRNG(0))
    assert exc_info.value.rule == "cannot_retire"


def test_weak_streak_forces_ouster() -> None:
    state = _at(create_initial_state(4), PHASE_RESOLUTION, 12)
    state.tenure.quarters_survived = 11
    state.tenure.favorability = 50
    state.tenure.consecutive_weak_project_quarters = 5
    state, log = advance(state, AdvanceAction(), DeterministicRNG(0))
    assert state.tenure.is_ousted
    assert "ceo_ousted" in log.codes()
    assert state.cursor == QuarterCursor(quarter=12, phase=PHASE_RESOLUTION)
    with pytest.raises(ContractViolationError):
        advance(state, AdvanceAction(), DeterministicRNG(0))


def test_long_game_keeps_invariants() -> None:
    for seed in (0, 17, 99):
        engine = QuarterEngine()
        engine.new_game(seed=seed, difficulty="icahn")
        _play(engine, 400)
        state = engine.state
        assert all(0 <= v <= 100 for v in state.org.as_dict().values())
        assert 0 <= state.resources.political_capital <= 20
        assert 0 <= state.tenure.favorability <= 100
        expected = state.cursor.quarter - (0 if state.tenure.is_ousted else 1)
        assert state.tenure.quarters_survived == expected
        assert len(state.tenure.recent_profits) <= 3
