"""
Quarter Kernel: Effect System v1.0

Closed set of effect kinds:
  - MeterDelta(meter, delta)   stage 1: applied directly, clamped
  - ProfitDelta(amount)        stage 2: accumulated into the quarter ledger
  - Fine(amount >= 0)          stage 2: accumulated into the quarter ledger

Profit never folds into the per-effect state transform: Resolution reads the
ledger once all of the quarter's effects have landed.
Applying an effect consumes no randomness and never fails for valid input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Union

from .domain_types import LOG_INFO, LOG_METER_CHANGE, LogEntry, validate_meter
from .errors import ContentValidationError

if TYPE_CHECKING:
    from .domain_types import GameState


EFFECT_METER = "meter"
EFFECT_PROFIT = "profit"
EFFECT_FINE = "fine"


@dataclass(frozen=True)
class MeterDelta:
    meter: str
    delta: int

    def __post_init__(self) -> None:
        try:
            validate_meter(self.meter)
        except ValueError as exc:
            raise ContentValidationError(str(exc)) from exc


@dataclass(frozen=True)
class ProfitDelta:
    """Profit impact in millions. Only revenue cards and crises produce it."""

    amount: int


@dataclass(frozen=True)
class Fine:
    """Monetary fine in millions, deducted from the quarter's result."""

    amount: int

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ContentValidationError(
                f"Fine amount must be non-negative, got {self.amount}"
            )


Effect = Union[MeterDelta, ProfitDelta, Fine]


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def apply_effect(effect: Effect, state: "GameState") -> List[LogEntry]:
    """Apply one effect to the working copy and return its log entries."""
    if isinstance(effect, MeterDelta):
        applied = state.org.adjust(effect.meter, effect.delta)
        return [LogEntry(
            category=LOG_METER_CHANGE,
            code="meter_changed",
            meter=effect.meter,
            delta=applied,
        )]
    if isinstance(effect, ProfitDelta):
        state.ledger.project_profit += effect.amount
        return [LogEntry(
            category=LOG_INFO, code="profit_recorded", amount=effect.amount,
        )]
    if isinstance(effect, Fine):
        state.ledger.fines += effect.amount
        return [LogEntry(category=LOG_INFO, code="fine_recorded", amount=effect.amount)]
    raise TypeError(f"Unknown effect type: {type(effect).__name__}")


def apply_effects(effects: Iterable[Effect], state: "GameState") -> List[LogEntry]:
    entries: List[LogEntry] = []
    for effect in effects:
        entries.extend(apply_effect(effect, state))
    return entries


# ---------------------------------------------------------------------------
# Plain-data form
# ---------------------------------------------------------------------------

def effect_to_dict(effect: Effect) -> dict:
    if isinstance(effect, MeterDelta):
        return {"kind": EFFECT_METER, "meter": effect.meter, "delta": effect.delta}
    if isinstance(effect, ProfitDelta):
        return {"kind": EFFECT_PROFIT, "amount": effect.amount}
    if isinstance(effect, Fine):
        return {"kind": EFFECT_FINE, "amount": effect.amount}
    raise TypeError(f"Unknown effect type: {type(effect).__name__}")


def effect_from_dict(data: dict) -> Effect:
    """Build an effect from its plain-data form. Unknown kinds hard fail."""
    if not isinstance(data, dict):
        raise ContentValidationError(f"Effect must be an object, got {data!r}")
    kind = data.get("kind")
    try:
        if kind == EFFECT_METER:
            return MeterDelta(meter=data["meter"], delta=_int(data["delta"]))
        if kind == EFFECT_PROFIT:
            return ProfitDelta(amount=_int(data["amount"]))
        if kind == EFFECT_FINE:
            return Fine(amount=_int(data["amount"]))
    except KeyError as exc:
        raise ContentValidationError(
            f"Effect {kind!r} missing field {exc.args[0]!r}"
        ) from exc
    raise ContentValidationError(f"Unknown effect kind: {kind!r}")


def _int(value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ContentValidationError(f"Expected integer, got {value!r}")
    return value
