"""
Quarter Kernel: Content Model v1.0

Cards, crises, situations and their choices are frozen, pre-validated data.
The kernel reads them and never mutates them.

Rules (enforced when content is built, never at play time):
  - An event card has 2..4 choices with unique ids.
  - A situation has exactly one response of each kind (pc, risk, evil, defer).
  - Every id referenced by a trigger or pool resolves inside the catalog.
  - Ids are unique per collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from .domain_types import METERS, TIER_BAD, TIER_EXPECTED, TIER_GOOD, TIERS
from .effects import Effect, effect_from_dict, effect_to_dict
from .errors import ContentValidationError, ContractViolationError
from .rng import DeterministicRNG


MIN_CHOICES: int = 2
MAX_CHOICES: int = 4

# ── Card categories ───────────────────────────────────────────
CATEGORY_ACTION = "action"
CATEGORY_RESPONSE = "response"
CATEGORY_CORPORATE = "corporate"
CATEGORY_EMAIL = "email"
CATEGORY_REVENUE = "revenue"

CATEGORIES: Tuple[str, ...] = (
    CATEGORY_ACTION, CATEGORY_RESPONSE, CATEGORY_CORPORATE,
    CATEGORY_EMAIL, CATEGORY_REVENUE,
)

# ── Situation responses ───────────────────────────────────────
RESPONSE_PC = "pc"
RESPONSE_RISK = "risk"
RESPONSE_EVIL = "evil"
RESPONSE_DEFER = "defer"

RESPONSES: Tuple[str, ...] = (RESPONSE_PC, RESPONSE_RISK, RESPONSE_EVIL, RESPONSE_DEFER)

# ── Severity ──────────────────────────────────────────────────
SEVERITY_MINOR = 1
SEVERITY_MODERATE = 2
SEVERITY_MAJOR = 3
SEVERITY_CRITICAL = 4

SEVERITY_NAMES: Dict[int, str] = {
    SEVERITY_MINOR: "minor",
    SEVERITY_MODERATE: "moderate",
    SEVERITY_MAJOR: "major",
    SEVERITY_CRITICAL: "critical",
}


# ---------------------------------------------------------------------------
# Choices and cards
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OutcomeProfile:
    """Three effect lists, one per outcome tier."""

    good: Tuple[Effect, ...] = ()
    expected: Tuple[Effect, ...] = ()
    bad: Tuple[Effect, ...] = ()

    def effects_for(self, tier: str) -> Tuple[Effect, ...]:
        if tier == TIER_GOOD:
            return self.good
        if tier == TIER_EXPECTED:
            return self.expected
        if tier == TIER_BAD:
            return self.bad
        raise ValueError(f"Unknown outcome tier {tier!r}")


@dataclass(frozen=True)
class Choice:
    """
    One option of an event card: flat effects or a tiered profile, plus an
    optional political capital cost and corporate intensity (paid in evil).
    """

    choice_id: str
    label: str
    effects: Tuple[Effect, ...] = ()
    outcomes: Optional[OutcomeProfile] = None
    pc_cost: int = 0
    corporate_intensity: int = 0
    response: str = ""

    @property
    def is_tiered(self) -> bool:
        return self.outcomes is not None

    @property
    def is_corporate(self) -> bool:
        return self.corporate_intensity > 0

    @property
    def is_defer(self) -> bool:
        return self.response == RESPONSE_DEFER


@dataclass(frozen=True)
class EventCard:
    """A crisis (or a situation surfaced as a crisis) awaiting a choice."""

    event_id: str
    title: str
    description: str
    choices: Tuple[Choice, ...]
    severity: int = 0
    situation_id: str = ""

    def __post_init__(self) -> None:
        _validate_choices(self.event_id, self.choices)

    def choice_ids(self) -> List[str]:
        return [c.choice_id for c in self.choices]

    def get_choice(self, choice_id: str) -> Choice:
        for choice in self.choices:
            if choice.choice_id == choice_id:
                return choice
        raise ContractViolationError(
            "unknown_choice",
            f"choice {choice_id!r} not offered by {self.event_id!r}; "
            f"expected one of {self.choice_ids()}",
        )


@dataclass(frozen=True)
class PlayableCard:
    """A project card the player can run during PlayCards."""

    card_id: str
    title: str
    description: str
    outcomes: OutcomeProfile
    category: str = CATEGORY_ACTION
    meter_affinity: Optional[str] = None
    corporate_intensity: int = 0

    def __post_init__(self) -> None:
        if self.category not in CATEGORIES:
            raise ContentValidationError(
                f"Card {self.card_id!r}: unknown category {self.category!r}"
            )
        if self.meter_affinity is not None and self.meter_affinity not in METERS:
            raise ContentValidationError(
                f"Card {self.card_id!r}: unknown meter affinity {self.meter_affinity!r}"
            )
        if self.corporate_intensity < 0:
            raise ContentValidationError(
                f"Card {self.card_id!r}: corporate intensity must be >= 0"
            )

    @property
    def is_corporate(self) -> bool:
        return self.category == CATEGORY_CORPORATE or self.corporate_intensity > 0

    @property
    def is_revenue(self) -> bool:
        return self.category == CATEGORY_REVENUE


# ---------------------------------------------------------------------------
# Situations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SituationResponse:
    response: str
    label: str
    outcomes: OutcomeProfile = field(default_factory=OutcomeProfile)
    pc_cost: int = 0
    evil_delta: int = 0


@dataclass(frozen=True)
class SituationDefinition:
    """
    A consequence that surfaces as a crisis. Deferring it escalates severity
    by one step per deferral; critical situations cannot be deferred.
    """

    situation_id: str
    title: str
    description: str
    severity: int
    responses: Tuple[SituationResponse, ...]
    expiry_effects: Tuple[Effect, ...] = ()

    def __post_init__(self) -> None:
        if self.severity not in SEVERITY_NAMES:
            raise ContentValidationError(
                f"Situation {self.situation_id!r}: severity must be 1..4, "
                f"got {self.severity!r}"
            )
        kinds = [r.response for r in self.responses]
        if sorted(kinds) != sorted(RESPONSES):
            raise ContentValidationError(
                f"Situation {self.situation_id!r} needs exactly one response "
                f"of each kind {list(RESPONSES)}, got {kinds}"
            )

    @property
    def can_defer(self) -> bool:
        return self.severity < SEVERITY_CRITICAL

    def escalated(self, steps: int) -> "SituationDefinition":
        return replace(self, severity=min(SEVERITY_CRITICAL, self.severity + steps))

    def to_event_card(self, pc_cost_default: int, evil_default: int) -> EventCard:
        choices: List[Choice] = []
        for r in self.responses:
            choice_id = f"{self.situation_id}_{r.response}"
            if r.response == RESPONSE_PC:
                choice = Choice(
                    choice_id, r.label, outcomes=r.outcomes,
                    pc_cost=r.pc_cost or pc_cost_default, response=r.response,
                )
            elif r.response == RESPONSE_EVIL:
                choice = Choice(
                    choice_id, r.label, outcomes=r.outcomes,
                    corporate_intensity=r.evil_delta if r.evil_delta > 0 else evil_default,
                    response=r.response,
                )
            elif r.response == RESPONSE_RISK:
                choice = Choice(choice_id, r.label, outcomes=r.outcomes, response=r.response)
            elif r.response == RESPONSE_DEFER:
                choice = Choice(choice_id, r.label, response=r.response)
            else:
                raise ValueError(f"Unknown response kind {r.response!r}")
            choices.append(choice)
        return EventCard(
            event_id=self.situation_id,
            title=self.title,
            description=self.description,
            choices=tuple(choices),
            severity=self.severity,
            situation_id=self.situation_id,
        )


@dataclass(frozen=True)
class SituationTrigger:
    """A weighted chance for a card outcome to queue a situation."""

    situation_id: str
    weight: int
    on_tier: Optional[str] = None

    def matches(self, tier: str) -> bool:
        return self.on_tier is None or self.on_tier == tier


@dataclass(frozen=True)
class CardSituations:
    card_id: str
    triggers: Tuple[SituationTrigger, ...]

    def select_trigger(
        self, tier: str, rng: DeterministicRNG,
    ) -> Optional[SituationTrigger]:
        """Weighted pick among the triggers matching *tier* (one draw)."""
        matching = [t for t in self.triggers if t.matches(tier)]
        if not matching:
            return None
        roll = rng.rand_int(1, sum(t.weight for t in matching))
        cumulative = 0
        for trigger in matching:
            cumulative += trigger.weight
            if roll <= cumulative:
                return trigger
        return matching[-1]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContentCatalog:
    """All content one game draws from, validated on construction."""

    name: str
    crisis_cards: Tuple[EventCard, ...] = ()
    project_cards: Tuple[PlayableCard, ...] = ()
    situations: Tuple[SituationDefinition, ...] = ()
    card_situations: Tuple[CardSituations, ...] = ()
    generic_pools: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    follow_up_pools: Dict[str, Tuple[str, ...]] = field(default_factory=dict)

    _crisis_index: Dict[str, EventCard] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )
    _card_index: Dict[str, PlayableCard] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )
    _situation_index: Dict[str, SituationDefinition] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )
    _trigger_index: Dict[str, CardSituations] = field(
        init=False, repr=False, compare=False, default_factory=dict,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_crisis_index", _unique_index(
            "crisis card", [(c.event_id, c) for c in self.crisis_cards],
        ))
        object.__setattr__(self, "_card_index", _unique_index(
            "project card", [(c.card_id, c) for c in self.project_cards],
        ))
        object.__setattr__(self, "_situation_index", _unique_index(
            "situation", [(s.situation_id, s) for s in self.situations],
        ))
        object.__setattr__(self, "_trigger_index", _unique_index(
            "card trigger set", [(cs.card_id, cs) for cs in self.card_situations],
        ))
        self._check_references()

    def _check_references(self) -> None:
        for cs in self.card_situations:
            if cs.card_id not in self._card_index:
                raise ContentValidationError(
                    f"Trigger set references unknown card {cs.card_id!r}"
                )
            for t in cs.triggers:
                self._require_situation(t.situation_id, f"card {cs.card_id!r}")
                if t.weight <= 0:
                    raise ContentValidationError(
                        f"Trigger weight must be positive for card {cs.card_id!r}"
                    )
                if t.on_tier is not None and t.on_tier not in TIERS:
                    raise ContentValidationError(
                        f"Unknown trigger tier {t.on_tier!r} for card {cs.card_id!r}"
                    )
        for label, pools in (("generic", self.generic_pools),
                             ("follow-up", self.follow_up_pools)):
            for tier, ids in pools.items():
                if tier not in TIERS:
                    raise ContentValidationError(
                        f"Unknown tier {tier!r} in {label} situation pool"
                    )
                for sid in ids:
                    self._require_situation(sid, f"{label} pool {tier!r}")

    def _require_situation(self, situation_id: str, context: str) -> None:
        if situation_id not in self._situation_index:
            raise ContentValidationError(
                f"{context} references unknown situation {situation_id!r}"
            )

    # -- Lookups ------------------------------------------------------------

    def crisis_card(self, event_id: str) -> EventCard:
        return self._crisis_index[event_id]

    def project_card(self, card_id: str) -> PlayableCard:
        return self._card_index[card_id]

    def situation(self, situation_id: str) -> SituationDefinition:
        return self._situation_index[situation_id]

    def triggers_for(self, card_id: str) -> Optional[CardSituations]:
        return self._trigger_index.get(card_id)

    def generic_pool(self, tier: str) -> Tuple[str, ...]:
        return self.generic_pools.get(tier, ())

    def follow_up_pool(self, tier: str) -> Tuple[str, ...]:
        return self.follow_up_pools.get(tier, ())


def _unique_index(kind: str, pairs: list) -> dict:
    index: dict = {}
    for key, value in pairs:
        if key in index:
            raise ContentValidationError(f"Duplicate {kind} id: {key!r}")
        index[key] = value
    return index


def _validate_choices(event_id: str, choices: Tuple[Choice, ...]) -> None:
    if not MIN_CHOICES <= len(choices) <= MAX_CHOICES:
        raise ContentValidationError(
            f"Event {event_id!r} must have {MIN_CHOICES}..{MAX_CHOICES} "
            f"choices, got {len(choices)}"
        )
    ids = [c.choice_id for c in choices]
    if len(set(ids)) != len(ids):
        raise ContentValidationError(f"Event {event_id!r} has duplicate choice ids: {ids}")
    for c in choices:
        if c.pc_cost < 0 or c.corporate_intensity < 0:
            raise ContentValidationError(
                f"Choice {c.choice_id!r}: costs must be non-negative"
            )


# ---------------------------------------------------------------------------
# Plain-data form (load / save)
# ---------------------------------------------------------------------------

def build_catalog(raw: dict) -> ContentCatalog:
    """
    Build and validate a catalog from plain data.

    Fails fast with ContentValidationError on the first structural problem.
    """
    try:
        return ContentCatalog(
            name=raw["name"],
            crisis_cards=tuple(event_card_from_dict(c) for c in raw.get("crisis_cards", [])),
            project_cards=tuple(_card_from_dict(c) for c in raw.get("project_cards", [])),
            situations=tuple(_situation_from_dict(s) for s in raw.get("situations", [])),
            card_situations=tuple(
                CardSituations(
                    card_id=card_id,
                    triggers=tuple(
                        SituationTrigger(
                            situation_id=t["situation_id"],
                            weight=t["weight"],
                            on_tier=t.get("on_tier"),
                        )
                        for t in triggers
                    ),
                )
                for card_id, triggers in sorted(raw.get("card_situations", {}).items())
            ),
            generic_pools={
                tier: tuple(ids) for tier, ids in raw.get("generic_pools", {}).items()
            },
            follow_up_pools={
                tier: tuple(ids) for tier, ids in raw.get("follow_up_pools", {}).items()
            },
        )
    except KeyError as exc:
        raise ContentValidationError(f"Missing content field {exc.args[0]!r}") from exc
    except TypeError as exc:
        raise ContentValidationError(f"Malformed content: {exc}") from exc


def catalog_to_dict(catalog: ContentCatalog) -> dict:
    return {
        "name": catalog.name,
        "crisis_cards": [event_card_to_dict(c) for c in catalog.crisis_cards],
        "project_cards": [_card_to_dict(c) for c in catalog.project_cards],
        "situations": [_situation_to_dict(s) for s in catalog.situations],
        "card_situations": {
            cs.card_id: [
                {"on_tier": t.on_tier, "situation_id": t.situation_id, "weight": t.weight}
                for t in cs.triggers
            ]
            for cs in catalog.card_situations
        },
        "generic_pools": {t: list(ids) for t, ids in sorted(catalog.generic_pools.items())},
        "follow_up_pools": {t: list(ids) for t, ids in sorted(catalog.follow_up_pools.items())},
    }


def event_card_to_dict(card: EventCard) -> dict:
    return {
        "event_id": card.event_id,
        "title": card.title,
        "description": card.description,
        "severity": card.severity,
        "situation_id": card.situation_id,
        "choices": [
            {
                "choice_id": c.choice_id,
                "label": c.label,
                "effects": [effect_to_dict(e) for e in c.effects],
                "outcomes": _profile_to_dict(c.outcomes) if c.outcomes else None,
                "pc_cost": c.pc_cost,
                "corporate_intensity": c.corporate_intensity,
                "response": c.response,
            }
            for c in card.choices
        ],
    }


def event_card_from_dict(data: dict) -> EventCard:
    choices = tuple(
        Choice(
            choice_id=c["choice_id"],
            label=c["label"],
            effects=tuple(effect_from_dict(e) for e in c.get("effects", [])),
            outcomes=_profile_from_dict(c["outcomes"]) if c.get("outcomes") else None,
            pc_cost=c.get("pc_cost", 0),
            corporate_intensity=c.get("corporate_intensity", 0),
            response=c.get("response", ""),
        )
        for c in data["choices"]
    )
    return EventCard(
        event_id=data["event_id"],
        title=data["title"],
        description=data.get("description", ""),
        choices=choices,
        severity=data.get("severity", 0),
        situation_id=data.get("situation_id", ""),
    )


def _profile_to_dict(profile: OutcomeProfile) -> dict:
    return {
        tier: [effect_to_dict(e) for e in profile.effects_for(tier)]
        for tier in TIERS
    }


def _profile_from_dict(data: dict) -> OutcomeProfile:
    return OutcomeProfile(
        good=tuple(effect_from_dict(e) for e in data.get(TIER_GOOD, [])),
        expected=tuple(effect_from_dict(e) for e in data.get(TIER_EXPECTED, [])),
        bad=tuple(effect_from_dict(e) for e in data.get(TIER_BAD, [])),
    )


def _card_to_dict(card: PlayableCard) -> dict:
    return {
        "card_id": card.card_id,
        "title": card.title,
        "description": card.description,
        "category": card.category,
        "meter_affinity": card.meter_affinity,
        "corporate_intensity": card.corporate_intensity,
        "outcomes": _profile_to_dict(card.outcomes),
    }


def _card_from_dict(data: dict) -> PlayableCard:
    return PlayableCard(
        card_id=data["card_id"],
        title=data["title"],
        description=data.get("description", ""),
        outcomes=_profile_from_dict(data["outcomes"]),
        category=data.get("category", CATEGORY_ACTION),
        meter_affinity=data.get("meter_affinity"),
        corporate_intensity=data.get("corporate_intensity", 0),
    )


def _situation_to_dict(situation: SituationDefinition) -> dict:
    return {
        "situation_id": situation.situation_id,
        "title": situation.title,
        "description": situation.description,
        "severity": situation.severity,
        "responses": [
            {
                "response": r.response,
                "label": r.label,
                "outcomes": _profile_to_dict(r.outcomes),
                "pc_cost": r.pc_cost,
                "evil_delta": r.evil_delta,
            }
            for r in situation.responses
        ],
        "expiry_effects": [effect_to_dict(e) for e in situation.expiry_effects],
    }


def _situation_from_dict(data: dict) -> SituationDefinition:
    return SituationDefinition(
        situation_id=data["situation_id"],
        title=data["title"],
        description=data.get("description", ""),
        severity=data["severity"],
        responses=tuple(
            SituationResponse(
                response=r["response"],
                label=r["label"],
                outcomes=_profile_from_dict(r.get("outcomes", {})),
                pc_cost=r.get("pc_cost", 0),
                evil_delta=r.get("evil_delta", 0),
            )
            for r in data["responses"]
        ),
        expiry_effects=tuple(effect_from_dict(e) for e in data.get("expiry_effects", [])),
    )
