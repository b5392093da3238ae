"""
Quarter Kernel: Core Domain Types v1.0

Pure data plus small self-contained helpers (clamping, deck draws).
All numeric values are plain integers. No float.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Meter:
    One of five 0-100 organizational health metrics.

Directive:
    The board's quarterly profit target.

Pressure Level:
    Expectation tier derived from tenure (0..8).

Evil Score:
    Cumulative moral cost of corporate choices. Only redemption lowers it.

Ledger:
    Per-quarter accumulator of project profit and fines, consumed by
    the Resolution phase.

────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .rng import DeterministicRNG

if TYPE_CHECKING:
    from .content import ContentCatalog, EventCard


# ── Meters ────────────────────────────────────────────────────
METER_DELIVERY = "delivery"
METER_MORALE = "morale"
METER_GOVERNANCE = "governance"
METER_ALIGNMENT = "alignment"
METER_RUNWAY = "runway"

METERS: Tuple[str, ...] = (
    METER_DELIVERY, METER_MORALE, METER_GOVERNANCE, METER_ALIGNMENT, METER_RUNWAY,
)

METER_MIN: int = 0
METER_MAX: int = 100

# ── Phases ────────────────────────────────────────────────────
PHASE_DEMAND = "demand"
PHASE_PLAY_CARDS = "play_cards"
PHASE_CRISIS = "crisis"
PHASE_RESOLUTION = "resolution"

PHASES: Tuple[str, ...] = (
    PHASE_DEMAND, PHASE_PLAY_CARDS, PHASE_CRISIS, PHASE_RESOLUTION,
)

# ── Outcome tiers ─────────────────────────────────────────────
TIER_GOOD = "good"
TIER_EXPECTED = "expected"
TIER_BAD = "bad"

TIERS: Tuple[str, ...] = (TIER_GOOD, TIER_EXPECTED, TIER_BAD)

# ── Log categories ────────────────────────────────────────────
LOG_INFO = "info"
LOG_METER_CHANGE = "meter_change"
LOG_OUTCOME = "outcome"
LOG_EVENT = "event"

LOG_CATEGORIES: Tuple[str, ...] = (LOG_INFO, LOG_METER_CHANGE, LOG_OUTCOME, LOG_EVENT)


def clamp(value: int, low: int, high: int) -> int:
    """Clamp an integer into [low, high]."""
    if value < low:
        return low
    if value > high:
        return high
    return value


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero (not floor)."""
    q = abs(numerator) // abs(denominator)
    return q if (numerator >= 0) == (denominator > 0) else -q


def validate_meter(meter: str) -> None:
    """Hard fail on a meter name outside the closed set."""
    if meter not in METERS:
        raise ValueError(f"Unknown meter {meter!r}: expected one of {list(METERS)}")


def validate_tier(tier: str) -> None:
    if tier not in TIERS:
        raise ValueError(f"Unknown outcome tier {tier!r}")


# ── Organization ──────────────────────────────────────────────

@dataclass
class OrgMeters:
    """Five independent meters, each clamped to [0, 100] on every change."""

    delivery: int = 60
    morale: int = 60
    governance: int = 60
    alignment: int = 60
    runway: int = 60

    def get(self, meter: str) -> int:
        validate_meter(meter)
        return getattr(self, meter)

    def adjust(self, meter: str, delta: int) -> int:
        """Apply *delta* to *meter*, clamped. Returns the change actually applied."""
        old = self.get(meter)
        new = clamp(old + delta, METER_MIN, METER_MAX)
        setattr(self, meter, new)
        return new - old

    def as_dict(self) -> Dict[str, int]:
        return {m: getattr(self, m) for m in METERS}

    def ranked(self) -> List[Tuple[str, int]]:
        """Meters ordered lowest first; ties keep the canonical meter order."""
        return sorted(
            ((m, getattr(self, m)) for m in METERS),
            key=lambda pair: (pair[1], METERS.index(pair[0])),
        )


# ── Tenure / Survival ─────────────────────────────────────────

@dataclass
class TenureState:
    """CEO tenure, board standing and financial history."""

    quarters_survived: int = 0
    pressure_level: int = 1
    favorability: int = 75
    total_profit: int = 0
    evil_score: int = 0
    evil_score_last_quarter: int = 0
    last_quarter_profit: int = 0
    recent_profits: List[int] = field(default_factory=list)
    consecutive_successes: int = 0
    consecutive_negative_quarters: int = 0
    consecutive_weak_project_quarters: int = 0
    total_cards_played: int = 0
    accumulated_bonus: int = 0
    last_quarterly_bonus: int = 0
    is_ousted: bool = False
    has_retired: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.is_ousted or self.has_retired


# ── Resource economy ──────────────────────────────────────────

@dataclass
class ResourceState:
    """Political capital balance, clamped to [0, max] by economy.py."""

    political_capital: int = 10


# ── Cursor ────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuarterCursor:
    """Quarter number (1-based) and current phase."""

    quarter: int = 1
    phase: str = PHASE_DEMAND

    def next(self) -> "QuarterCursor":
        """Demand -> PlayCards -> Crisis -> Resolution -> Demand(quarter + 1)."""
        idx = PHASES.index(self.phase)
        if idx == len(PHASES) - 1:
            return QuarterCursor(quarter=self.quarter + 1, phase=PHASES[0])
        return QuarterCursor(quarter=self.quarter, phase=PHASES[idx + 1])


# ── Deferred records ──────────────────────────────────────────

@dataclass(frozen=True)
class PendingSituation:
    """A situation scheduled to surface as a crisis in a future quarter."""

    situation_id: str
    origin_id: str
    scheduled_quarter: int
    queued_at_quarter: int
    defer_count: int = 0

    def is_due(self, quarter: int) -> bool:
        return self.scheduled_quarter <= quarter

    def quarters_waiting(self, quarter: int) -> int:
        return quarter - self.queued_at_quarter

    def deferred(self, current_quarter: int) -> "PendingSituation":
        return replace(
            self,
            scheduled_quarter=current_quarter + 1,
            defer_count=self.defer_count + 1,
        )

    def to_dict(self) -> dict:
        return {
            "defer_count": self.defer_count,
            "origin_id": self.origin_id,
            "queued_at_quarter": self.queued_at_quarter,
            "scheduled_quarter": self.scheduled_quarter,
            "situation_id": self.situation_id,
        }


@dataclass(frozen=True)
class PendingFollowUp:
    """A played card that may echo back in a later Crisis phase."""

    card_id: str
    card_title: str
    played_at_quarter: int
    origin_tier: str

    def quarters_since(self, quarter: int) -> int:
        return quarter - self.played_at_quarter

    def has_expired(self, quarter: int, window: int) -> bool:
        return self.quarters_since(quarter) > window

    def to_dict(self) -> dict:
        return {
            "card_id": self.card_id,
            "card_title": self.card_title,
            "origin_tier": self.origin_tier,
            "played_at_quarter": self.played_at_quarter,
        }


# ── Decks ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class CardPile:
    """Copy-on-write draw / discard piles holding content ids."""

    draw_pile: Tuple[str, ...] = ()
    discard_pile: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.draw_pile) + len(self.discard_pile)

    def draw(self, rng: DeterministicRNG) -> Tuple[Optional[str], "CardPile"]:
        """Draw the top id, reshuffling the discard pile in when empty."""
        pile = self
        if not pile.draw_pile:
            if not pile.discard_pile:
                return None, pile
            reshuffled = list(pile.discard_pile)
            rng.shuffle(reshuffled)
            pile = CardPile(draw_pile=tuple(reshuffled), discard_pile=())
        return pile.draw_pile[0], CardPile(pile.draw_pile[1:], pile.discard_pile)

    def draw_many(
        self, count: int, rng: DeterministicRNG,
    ) -> Tuple[List[str], "CardPile"]:
        drawn: List[str] = []
        pile = self
        for _ in range(count):
            card_id, pile = pile.draw(rng)
            if card_id is None:
                break
            drawn.append(card_id)
        return drawn, pile

    def with_discarded(self, card_ids: List[str]) -> "CardPile":
        return CardPile(self.draw_pile, self.discard_pile + tuple(card_ids))


# ── Ledger ────────────────────────────────────────────────────

@dataclass
class QuarterLedger:
    """
    Per-quarter profit / fine accumulator.

    Stage 2 of the effect pipeline: profit and fine effects land here during
    PlayCards and Crisis and are consumed once by Resolution.
    """

    project_profit: int = 0
    fines: int = 0
    revenue_cards_played: int = 0

    @property
    def net(self) -> int:
        return self.project_profit - self.fines


# ── Configuration ─────────────────────────────────────────────

@dataclass(frozen=True)
class GameConfig:
    """Resolved difficulty configuration, passed explicitly to calculators."""

    difficulty: str = "nadella"
    retirement_threshold: int = 140
    tenure_decay_enabled: bool = True
    tenure_decay_start_quarter: int = 16
    success_reward_bonus: int = 0
    starting_favorability: int = 75

    def to_dict(self) -> dict:
        return {
            "difficulty": self.difficulty,
            "retirement_threshold": self.retirement_threshold,
            "starting_favorability": self.starting_favorability,
            "success_reward_bonus": self.success_reward_bonus,
            "tenure_decay_enabled": self.tenure_decay_enabled,
            "tenure_decay_start_quarter": self.tenure_decay_start_quarter,
        }


# ── Log ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class LogEntry:
    """One machine-readable log record. Presentation renders it."""

    category: str
    code: str
    message: str = ""
    meter: Optional[str] = None
    delta: int = 0
    tier: Optional[str] = None
    amount: int = 0

    def to_dict(self) -> dict:
        d: dict = {"category": self.category, "code": self.code}
        if self.message:
            d["message"] = self.message
        if self.meter is not None:
            d["meter"] = self.meter
            d["delta"] = self.delta
        if self.tier is not None:
            d["tier"] = self.tier
        if self.amount:
            d["amount"] = self.amount
        return d


@dataclass(frozen=True)
class TransitionLog:
    """Ordered log of one advance() call."""

    quarter: int
    phase: str
    entries: Tuple[LogEntry, ...] = ()

    def codes(self) -> List[str]:
        return [e.code for e in self.entries]

    def to_dict(self) -> dict:
        return {
            "quarter": self.quarter,
            "phase": self.phase,
            "entries": [e.to_dict() for e in self.entries],
        }


# ── Game state ────────────────────────────────────────────────

@dataclass
class GameState:
    """
    Complete game state: the save format.

    The catalog is frozen content shared between copies; everything else is
    deep-copied on every transition.
    """

    config: GameConfig
    catalog: "ContentCatalog"
    seed: int = 0
    cursor: QuarterCursor = field(default_factory=QuarterCursor)
    org: OrgMeters = field(default_factory=OrgMeters)
    tenure: TenureState = field(default_factory=TenureState)
    resources: ResourceState = field(default_factory=ResourceState)
    ledger: QuarterLedger = field(default_factory=QuarterLedger)
    directive_id: str = "profit_floor"
    crisis_deck: CardPile = field(default_factory=CardPile)
    project_deck: CardPile = field(default_factory=CardPile)
    hand: List[str] = field(default_factory=list)
    played_this_quarter: List[str] = field(default_factory=list)
    current_crisis: Optional["EventCard"] = None
    active_situation: Optional[PendingSituation] = None
    crisis_prepared: bool = False
    pending_situations: List[PendingSituation] = field(default_factory=list)
    deferred_situations: List[PendingSituation] = field(default_factory=list)
    pending_follow_ups: List[PendingFollowUp] = field(default_factory=list)
    actions_applied: int = 0

    def copy(self) -> "GameState":
        """Deep-copy the state for immutable transitions; the catalog is shared."""
        return copy.deepcopy(self, {id(self.catalog): self.catalog})

    def to_dict(self) -> dict:
        """Serialise state to a plain dict (for diagnostics / runtime snapshots)."""
        t = self.tenure
        return {
            "catalog": self.catalog.name,
            "seed": self.seed,
            "config": self.config.to_dict(),
            "quarter": self.cursor.quarter,
            "phase": self.cursor.phase,
            "meters": self.org.as_dict(),
            "tenure": {
                "accumulated_bonus": t.accumulated_bonus,
                "consecutive_negative_quarters": t.consecutive_negative_quarters,
                "consecutive_successes": t.consecutive_successes,
                "consecutive_weak_project_quarters": t.consecutive_weak_project_quarters,
                "evil_score": t.evil_score,
                "evil_score_last_quarter": t.evil_score_last_quarter,
                "favorability": t.favorability,
                "has_retired": t.has_retired,
                "is_ousted": t.is_ousted,
                "last_quarter_profit": t.last_quarter_profit,
                "last_quarterly_bonus": t.last_quarterly_bonus,
                "pressure_level": t.pressure_level,
                "quarters_survived": t.quarters_survived,
                "recent_profits": list(t.recent_profits),
                "total_cards_played": t.total_cards_played,
                "total_profit": t.total_profit,
            },
            "political_capital": self.resources.political_capital,
            "ledger": {
                "fines": self.ledger.fines,
                "project_profit": self.ledger.project_profit,
                "revenue_cards_played": self.ledger.revenue_cards_played,
            },
            "directive_id": self.directive_id,
            "hand": list(self.hand),
            "played_this_quarter": list(self.played_this_quarter),
            "crisis_deck_size": self.crisis_deck.total,
            "project_deck_size": self.project_deck.total,
            "current_crisis": (
                self.current_crisis.event_id if self.current_crisis else None
            ),
            "current_crisis_choices": (
                self.current_crisis.choice_ids() if self.current_crisis else []
            ),
            "active_situation": (
                self.active_situation.to_dict() if self.active_situation else None
            ),
            "pending_situations": [p.to_dict() for p in self.pending_situations],
            "deferred_situations": [p.to_dict() for p in self.deferred_situations],
            "pending_follow_ups": [f.to_dict() for f in self.pending_follow_ups],
            "actions_applied": self.actions_applied,
        }
