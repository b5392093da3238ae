"""
Quarter Kernel: Deferred Event Queue v1.0

Situations and follow-ups scheduled into future quarters.

Entry lifecycle:
  queued -> due (scheduled <= current) -> surfaces as the Crisis
  queued -> deferred (scheduled = current + 1, defer_count + 1)
  deferred -> resurfaces (30% per quarter once due) -> pending
  deferred -> fades after waiting DEFERRED_FADE_QUARTERS (expiry effects)

The deferred list holds at most DEFERRED_CAPACITY entries; a deferral that
overflows it pushes the oldest (by queued-at quarter) back into pending for
the next quarter.

All functions mutate the working copy handed in by transitions.py and return
log entries. Every draw goes through the injected rng.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from .constants import (
    DEFERRED_CAPACITY,
    DEFERRED_FADE_QUARTERS,
    DEFERRED_RESURFACE_PERCENT,
    FOLLOW_UP_WINDOW,
    SITUATION_EVIL_INTENSITY,
    SITUATION_PC_COST,
)
from .content import ContentCatalog, EventCard, SEVERITY_NAMES
from .domain_types import (
    LOG_EVENT,
    METER_ALIGNMENT,
    METER_DELIVERY,
    METER_GOVERNANCE,
    METER_MORALE,
    TIER_BAD,
    TIER_GOOD,
    LogEntry,
    PendingFollowUp,
    PendingSituation,
)
from .effects import MeterDelta, apply_effect, apply_effects
from .errors import ContractViolationError
from .rng import DeterministicRNG

if TYPE_CHECKING:
    from .domain_types import GameState

logger = logging.getLogger(__name__)


FOLLOW_UP_BASE_CHANCE: int = 20
FOLLOW_UP_CHANCE_PER_QUARTER: int = 5
FOLLOW_UP_MAX_CHANCE: int = 40
FOLLOW_UP_GOOD_WEIGHT: int = 20
FOLLOW_UP_MEH_WEIGHT: int = 50

FOLLOW_UP_GOOD = "good"
FOLLOW_UP_MEH = "meh"
FOLLOW_UP_CRISIS = "crisis"

FOLLOW_UP_METERS: Tuple[str, ...] = (
    METER_DELIVERY, METER_MORALE, METER_GOVERNANCE, METER_ALIGNMENT,
)

CARD_TRIGGER_NONE_ROLL: int = 18
GENERIC_TRIGGER_MAX_CHANCE: int = 25


# ---------------------------------------------------------------------------
# Situation queue
# ---------------------------------------------------------------------------

def queue_situation(
    state: "GameState", situation_id: str, origin_id: str, delay: int,
) -> List[LogEntry]:
    quarter = state.cursor.quarter
    entry = PendingSituation(
        situation_id=situation_id,
        origin_id=origin_id,
        scheduled_quarter=quarter + delay,
        queued_at_quarter=quarter,
    )
    state.pending_situations = state.pending_situations + [entry]
    return [LogEntry(
        category=LOG_EVENT,
        code="situation_queued",
        message=f"{situation_id} from {origin_id} due in quarter {entry.scheduled_quarter}",
    )]


def defer_situation(state: "GameState", situation: PendingSituation) -> List[LogEntry]:
    """Move *situation* to the deferred list, evicting the oldest on overflow."""
    definition = state.catalog.situation(situation.situation_id)
    if not definition.can_defer:
        raise ContractViolationError(
            "cannot_defer",
            f"situation {situation.situation_id!r} is "
            f"{SEVERITY_NAMES[definition.severity]} and must be handled now",
        )

    quarter = state.cursor.quarter
    entries = [LogEntry(
        category=LOG_EVENT,
        code="situation_deferred",
        message=f"{situation.situation_id} deferred to quarter {quarter + 1}",
    )]
    deferred = state.deferred_situations + [situation.deferred(quarter)]
    pending = [p for p in state.pending_situations if p != situation]

    if len(deferred) > DEFERRED_CAPACITY:
        oldest = min(deferred, key=lambda p: p.queued_at_quarter)
        deferred.remove(oldest)
        evicted = PendingSituation(
            situation_id=oldest.situation_id,
            origin_id=oldest.origin_id,
            scheduled_quarter=quarter + 1,
            queued_at_quarter=oldest.queued_at_quarter,
            defer_count=oldest.defer_count,
        )
        pending.append(evicted)
        entries.append(LogEntry(
            category=LOG_EVENT,
            code="deferred_evicted",
            message=f"{oldest.situation_id} can no longer be put off",
        ))

    state.deferred_situations = deferred
    state.pending_situations = pending
    return entries


def pop_due_situation(state: "GameState") -> Optional[PendingSituation]:
    """Remove and return the first pending situation due this quarter."""
    quarter = state.cursor.quarter
    for i, pending in enumerate(state.pending_situations):
        if pending.is_due(quarter):
            state.pending_situations = (
                state.pending_situations[:i] + state.pending_situations[i + 1:]
            )
            return pending
    return None


def situation_crisis(catalog: ContentCatalog, pending: PendingSituation) -> EventCard:
    """The event card a surfacing situation presents, escalated per deferral."""
    definition = catalog.situation(pending.situation_id)
    if pending.defer_count:
        definition = definition.escalated(pending.defer_count)
    return definition.to_event_card(SITUATION_PC_COST, SITUATION_EVIL_INTENSITY)


def maintain_deferred(state: "GameState", rng: DeterministicRNG) -> List[LogEntry]:
    """Fade long-ignored situations; give due ones a chance to resurface."""
    quarter = state.cursor.quarter
    entries: List[LogEntry] = []
    kept: List[PendingSituation] = []
    resurfaced: List[PendingSituation] = []

    for entry in state.deferred_situations:
        if entry.quarters_waiting(quarter) >= DEFERRED_FADE_QUARTERS:
            definition = state.catalog.situation(entry.situation_id)
            entries.append(LogEntry(
                category=LOG_EVENT,
                code="situation_faded",
                message=f"{entry.situation_id} faded after "
                        f"{entry.quarters_waiting(quarter)} quarters",
            ))
            entries.extend(apply_effects(definition.expiry_effects, state))
            continue
        if entry.is_due(quarter) and rng.rand_int(1, 100) <= DEFERRED_RESURFACE_PERCENT:
            resurfaced.append(PendingSituation(
                situation_id=entry.situation_id,
                origin_id=entry.origin_id,
                scheduled_quarter=quarter,
                queued_at_quarter=entry.queued_at_quarter,
                defer_count=entry.defer_count,
            ))
            entries.append(LogEntry(
                category=LOG_EVENT,
                code="situation_resurfaced",
                message=entry.situation_id,
            ))
            continue
        kept.append(entry)

    state.deferred_situations = kept
    state.pending_situations = state.pending_situations + resurfaced
    return entries


# ---------------------------------------------------------------------------
# Follow-ups
# ---------------------------------------------------------------------------

def queue_follow_up(
    state: "GameState", card_id: str, card_title: str, tier: str,
) -> None:
    state.pending_follow_ups = state.pending_follow_ups + [PendingFollowUp(
        card_id=card_id,
        card_title=card_title,
        played_at_quarter=state.cursor.quarter,
        origin_tier=tier,
    )]


def expire_follow_ups(state: "GameState") -> int:
    quarter = state.cursor.quarter
    before = len(state.pending_follow_ups)
    state.pending_follow_ups = [
        f for f in state.pending_follow_ups
        if not f.has_expired(quarter, FOLLOW_UP_WINDOW)
    ]
    return before - len(state.pending_follow_ups)


def follow_up_chance(quarters_since: int) -> int:
    return min(
        FOLLOW_UP_MAX_CHANCE,
        FOLLOW_UP_BASE_CHANCE + quarters_since * FOLLOW_UP_CHANCE_PER_QUARTER,
    )


def follow_up_kind(roll: int, origin_tier: str) -> str:
    good = FOLLOW_UP_GOOD_WEIGHT
    meh = FOLLOW_UP_MEH_WEIGHT
    if origin_tier == TIER_GOOD:
        good += 10
        meh -= 5
    elif origin_tier == TIER_BAD:
        good -= 10
        meh -= 10
    if roll <= good:
        return FOLLOW_UP_GOOD
    if roll <= good + meh:
        return FOLLOW_UP_MEH
    return FOLLOW_UP_CRISIS


def check_follow_ups(state: "GameState", rng: DeterministicRNG) -> List[LogEntry]:
    """
    Expire stale follow-ups, then roll each remaining one.
    A triggered follow-up is consumed whatever its kind.
    """
    expire_follow_ups(state)
    quarter = state.cursor.quarter
    entries: List[LogEntry] = []
    remaining: List[PendingFollowUp] = []

    for follow_up in state.pending_follow_ups:
        if rng.rand_int(1, 100) > follow_up_chance(follow_up.quarters_since(quarter)):
            remaining.append(follow_up)
            continue

        kind = follow_up_kind(rng.rand_int(1, 100), follow_up.origin_tier)
        if kind == FOLLOW_UP_GOOD:
            meter = FOLLOW_UP_METERS[rng.rand_int(0, len(FOLLOW_UP_METERS) - 1)]
            delta = rng.rand_int(3, 7)
            entries.append(LogEntry(
                category=LOG_EVENT, code="follow_up_good",
                message=f"good news on {follow_up.card_title}",
            ))
            entries.extend(apply_effect(MeterDelta(meter, delta), state))
        elif kind == FOLLOW_UP_MEH:
            meter = FOLLOW_UP_METERS[rng.rand_int(0, len(FOLLOW_UP_METERS) - 1)]
            positive = rng.rand_int(1, 100) <= 60
            magnitude = rng.rand_int(2, 5)
            entries.append(LogEntry(
                category=LOG_EVENT, code="follow_up_meh",
                message=f"update on {follow_up.card_title}",
            ))
            entries.extend(apply_effect(
                MeterDelta(meter, magnitude if positive else -magnitude), state,
            ))
        elif kind == FOLLOW_UP_CRISIS:
            pool = state.catalog.follow_up_pool(follow_up.origin_tier)
            if pool:
                situation_id = rng.rand_choice(pool)
                entries.append(LogEntry(
                    category=LOG_EVENT, code="follow_up_crisis",
                    message=f"crisis brewing from {follow_up.card_title}",
                ))
                entries.extend(queue_situation(state, situation_id, follow_up.card_id, 0))
            else:
                logger.debug("No follow-up pool for tier %s", follow_up.origin_tier)
        else:
            raise ValueError(f"Unknown follow-up kind: {kind}")

    state.pending_follow_ups = remaining
    return entries


# ---------------------------------------------------------------------------
# Situation triggers on card play
# ---------------------------------------------------------------------------

def card_trigger_delay(roll: int) -> int:
    """d20 band -> quarters of delay (roll >= 18 never reaches here)."""
    if roll <= 5:
        return 0
    if roll <= 10:
        return 1
    if roll <= 14:
        return 2
    return 3


def generic_trigger_delay(roll: int) -> int:
    """d10 band -> quarters of delay."""
    if roll <= 4:
        return 0
    if roll <= 7:
        return 1
    if roll <= 9:
        return 2
    return 3


def generic_trigger_chance(quarter: int) -> int:
    return min(GENERIC_TRIGGER_MAX_CHANCE, 5 + 2 * quarter)


def situation_trigger(
    catalog: ContentCatalog, card_id: str, tier: str, quarter: int,
    rng: DeterministicRNG,
) -> Optional[Tuple[str, int]]:
    """
    Roll whether playing *card_id* with outcome *tier* plants a situation.
    Returns (situation_id, delay) or None.
    """
    mapping = catalog.triggers_for(card_id)
    if mapping is not None:
        roll = rng.rand_int(1, 20)
        if roll >= CARD_TRIGGER_NONE_ROLL:
            return None
        trigger = mapping.select_trigger(tier, rng)
        if trigger is None:
            return None
        return trigger.situation_id, card_trigger_delay(roll)

    pool = catalog.generic_pool(tier)
    if not pool:
        return None
    if rng.rand_int(1, 100) > generic_trigger_chance(quarter):
        return None
    situation_id = rng.rand_choice(pool)
    return situation_id, generic_trigger_delay(rng.rand_int(1, 10))
