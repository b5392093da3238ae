"""
Quarter Kernel: Invariant Checks v1.0

Hard-fail validation of a GameState. Every check raises
InvariantViolationError on failure. The engine runs these after every step
and the snapshot decoder runs them on restore.
"""

from __future__ import annotations

from .constants import DEFERRED_CAPACITY, HAND_SIZE, MAX_CARDS_PER_QUARTER, MAX_PRESSURE, PC_MAX
from .domain_types import METERS, METER_MAX, METER_MIN, PHASES, GameState


class InvariantViolationError(Exception):
    """Raised when a game-state invariant is violated."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_invariants(state: GameState) -> None:
    """Run every check. Raises InvariantViolationError on the first failure."""
    _check_meter_bounds(state)
    _check_capital_bounds(state)
    _check_tenure_bounds(state)
    _check_cursor(state)
    _check_hand(state)
    _check_deferred_capacity(state)
    _check_terminal_flags(state)
    _check_crisis_consistency(state)


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_meter_bounds(state: GameState) -> None:
    for meter in METERS:
        value = state.org.get(meter)
        if not _is_int(value):
            raise InvariantViolationError(
                "meter_bounds", f"{meter}={value!r} is not an integer",
            )
        if not METER_MIN <= value <= METER_MAX:
            raise InvariantViolationError(
                "meter_bounds",
                f"{meter}={value} outside [{METER_MIN}, {METER_MAX}]",
            )


def _check_capital_bounds(state: GameState) -> None:
    pc = state.resources.political_capital
    if not _is_int(pc):
        raise InvariantViolationError(
            "capital_bounds", f"political_capital={pc!r} is not an integer",
        )
    if not 0 <= pc <= PC_MAX:
        raise InvariantViolationError(
            "capital_bounds", f"political_capital={pc} outside [0, {PC_MAX}]",
        )


def _check_tenure_bounds(state: GameState) -> None:
    t = state.tenure
    if not 0 <= t.favorability <= 100:
        raise InvariantViolationError(
            "favorability_bounds", f"favorability={t.favorability} outside [0, 100]",
        )
    if t.evil_score < 0:
        raise InvariantViolationError(
            "evil_non_negative", f"evil_score={t.evil_score} is negative",
        )
    if not 0 <= t.pressure_level <= MAX_PRESSURE:
        raise InvariantViolationError(
            "pressure_bounds",
            f"pressure_level={t.pressure_level} outside [0, {MAX_PRESSURE}]",
        )
    if t.quarters_survived < 0:
        raise InvariantViolationError(
            "quarters_non_negative", f"quarters_survived={t.quarters_survived}",
        )


def _check_cursor(state: GameState) -> None:
    if state.cursor.phase not in PHASES:
        raise InvariantViolationError(
            "phase_valid", f"unknown phase {state.cursor.phase!r}",
        )
    if state.cursor.quarter < 1:
        raise InvariantViolationError(
            "quarter_positive", f"quarter={state.cursor.quarter} must be >= 1",
        )


def _check_hand(state: GameState) -> None:
    if len(state.hand) > HAND_SIZE:
        raise InvariantViolationError(
            "hand_size", f"hand holds {len(state.hand)} cards, max {HAND_SIZE}",
        )
    if len(state.played_this_quarter) > MAX_CARDS_PER_QUARTER:
        raise InvariantViolationError(
            "card_cap",
            f"{len(state.played_this_quarter)} cards played this quarter, "
            f"max {MAX_CARDS_PER_QUARTER}",
        )
    known = {c.card_id for c in state.catalog.project_cards}
    for card_id in state.hand:
        if card_id not in known:
            raise InvariantViolationError(
                "hand_content", f"hand card {card_id!r} not in catalog",
            )


def _check_deferred_capacity(state: GameState) -> None:
    if len(state.deferred_situations) > DEFERRED_CAPACITY:
        raise InvariantViolationError(
            "deferred_capacity",
            f"{len(state.deferred_situations)} deferred situations, "
            f"max {DEFERRED_CAPACITY}",
        )


def _check_terminal_flags(state: GameState) -> None:
    if state.tenure.is_ousted and state.tenure.has_retired:
        raise InvariantViolationError(
            "terminal_exclusive", "CEO cannot be both ousted and retired",
        )


def _check_crisis_consistency(state: GameState) -> None:
    if state.active_situation is not None and state.current_crisis is None:
        raise InvariantViolationError(
            "active_situation_without_crisis",
            f"situation {state.active_situation.situation_id!r} active "
            f"with no crisis pending",
        )
