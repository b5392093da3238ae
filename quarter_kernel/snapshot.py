"""
Quarter Kernel: Snapshot Encoder / Decoder v1.0

Pure-data canonical JSON serialization and deserialization of GameState.

Rules:
  - The whole value model is encoded, catalog included, so a snapshot is
    self-contained: decode it and play on.
  - Keys sorted, no whitespace, no float anywhere.
  - All integers validated against int64 range.
  - Unknown or missing fields hard fail. No defaults injected.
  - Invariant validation explicitly triggered via restore_snapshot only.
"""

from __future__ import annotations

import hashlib
import json
import pathlib
from typing import Any, Dict, List, Optional

from .content import (
    ContentCatalog,
    EventCard,
    build_catalog,
    catalog_to_dict,
    event_card_from_dict,
    event_card_to_dict,
)
from .domain_types import (
    CardPile,
    GameConfig,
    GameState,
    OrgMeters,
    PendingFollowUp,
    PendingSituation,
    QuarterCursor,
    QuarterLedger,
    ResourceState,
    TenureState,
)
from .errors import ContentValidationError
from .invariants import InvariantViolationError, validate_invariants


SNAPSHOT_VERSION: int = 1

# ── Int64 Bounds ──────────────────────────────────────────────
_INT64_MIN: int = -(2**63)
_INT64_MAX: int = 2**63 - 1


# ══════════════════════════════════════════════════════════════
# Exception Hierarchy
# ══════════════════════════════════════════════════════════════

class SnapshotError(Exception):
    """Base exception for all snapshot operations."""


class SerializationError(SnapshotError):
    """Raised when encoding a GameState to JSON fails."""


class DeserializationError(SnapshotError):
    """Raised when decoding JSON to GameState fails."""


class InvariantViolationSnapshotError(SnapshotError):
    """Wraps an InvariantViolationError raised during restore."""

    def __init__(self, original: InvariantViolationError) -> None:
        self.original = original
        super().__init__(
            f"Invariant violation during snapshot restore: {original}"
        )


# ══════════════════════════════════════════════════════════════
# Encoder
# ══════════════════════════════════════════════════════════════

def encode_snapshot(state: GameState) -> str:
    """
    Serialize a GameState into a canonical JSON string.

    Byte-for-byte identical output for identical states.
    No mutation. No validation.
    """
    try:
        obj = snapshot_dict(state)
        return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)
    except Exception as exc:
        raise SerializationError(f"Failed to encode snapshot: {exc}") from exc


def snapshot_dict(state: GameState) -> Dict[str, Any]:
    t = state.tenure
    return {
        "version": SNAPSHOT_VERSION,
        "seed": state.seed,
        "config": state.config.to_dict(),
        "catalog": catalog_to_dict(state.catalog),
        "cursor": {"phase": state.cursor.phase, "quarter": state.cursor.quarter},
        "meters": state.org.as_dict(),
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
        "political_capital": state.resources.political_capital,
        "ledger": {
            "fines": state.ledger.fines,
            "project_profit": state.ledger.project_profit,
            "revenue_cards_played": state.ledger.revenue_cards_played,
        },
        "directive_id": state.directive_id,
        "crisis_deck": _pile_dict(state.crisis_deck),
        "project_deck": _pile_dict(state.project_deck),
        "hand": list(state.hand),
        "played_this_quarter": list(state.played_this_quarter),
        "current_crisis": (
            event_card_to_dict(state.current_crisis) if state.current_crisis else None
        ),
        "active_situation": (
            state.active_situation.to_dict() if state.active_situation else None
        ),
        "crisis_prepared": state.crisis_prepared,
        "pending_situations": [p.to_dict() for p in state.pending_situations],
        "deferred_situations": [p.to_dict() for p in state.deferred_situations],
        "pending_follow_ups": [f.to_dict() for f in state.pending_follow_ups],
        "actions_applied": state.actions_applied,
    }


def _pile_dict(pile: CardPile) -> Dict[str, Any]:
    return {"discard_pile": list(pile.discard_pile), "draw_pile": list(pile.draw_pile)}


# ══════════════════════════════════════════════════════════════
# Decoder
# ══════════════════════════════════════════════════════════════

# -- Field whitelists (exact sets, no extras, no omissions) --

_SNAPSHOT_FIELDS = frozenset({
    "version", "seed", "config", "catalog", "cursor", "meters", "tenure",
    "political_capital", "ledger", "directive_id", "crisis_deck",
    "project_deck", "hand", "played_this_quarter", "current_crisis",
    "active_situation", "crisis_prepared", "pending_situations",
    "deferred_situations", "pending_follow_ups", "actions_applied",
})

_CONFIG_FIELDS = frozenset({
    "difficulty", "retirement_threshold", "starting_favorability",
    "success_reward_bonus", "tenure_decay_enabled", "tenure_decay_start_quarter",
})

_CURSOR_FIELDS = frozenset({"phase", "quarter"})

_METER_FIELDS = frozenset(OrgMeters().as_dict())

_TENURE_INT_FIELDS = frozenset({
    "accumulated_bonus", "consecutive_negative_quarters", "consecutive_successes",
    "consecutive_weak_project_quarters", "evil_score", "evil_score_last_quarter",
    "favorability", "last_quarter_profit", "last_quarterly_bonus",
    "pressure_level", "quarters_survived", "total_cards_played", "total_profit",
})

_TENURE_FIELDS = _TENURE_INT_FIELDS | {"has_retired", "is_ousted", "recent_profits"}

_LEDGER_FIELDS = frozenset({"fines", "project_profit", "revenue_cards_played"})

_PILE_FIELDS = frozenset({"discard_pile", "draw_pile"})

_SITUATION_FIELDS = frozenset({
    "defer_count", "origin_id", "queued_at_quarter", "scheduled_quarter",
    "situation_id",
})

_FOLLOW_UP_FIELDS = frozenset({
    "card_id", "card_title", "origin_tier", "played_at_quarter",
})


def decode_snapshot(json_str: str) -> GameState:
    """
    Strict deserialization of canonical JSON to GameState.

    Fails on: missing fields, unknown fields, floats, int64 overflow,
    wrong types, invalid content. No defaults. No coercion.
    """
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Invalid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise DeserializationError(
            f"Top-level JSON must be object, got {type(raw).__name__}"
        )

    _assert_no_floats(raw, "$")
    _check_fields(raw, _SNAPSHOT_FIELDS, "snapshot")

    if raw["version"] != SNAPSHOT_VERSION:
        raise DeserializationError(
            f"Unsupported snapshot version {raw['version']!r}, "
            f"expected {SNAPSHOT_VERSION}"
        )

    catalog = _decode_catalog(raw["catalog"])

    cfg = _object(raw, "config")
    _check_fields(cfg, _CONFIG_FIELDS, "config")
    _validate_int64(cfg, ["retirement_threshold", "starting_favorability",
                          "success_reward_bonus", "tenure_decay_start_quarter"])
    config = GameConfig(
        difficulty=_str(cfg, "difficulty"),
        retirement_threshold=cfg["retirement_threshold"],
        tenure_decay_enabled=_bool(cfg, "tenure_decay_enabled"),
        tenure_decay_start_quarter=cfg["tenure_decay_start_quarter"],
        success_reward_bonus=cfg["success_reward_bonus"],
        starting_favorability=cfg["starting_favorability"],
    )

    cur = _object(raw, "cursor")
    _check_fields(cur, _CURSOR_FIELDS, "cursor")
    _validate_int64(cur, ["quarter"])
    cursor = QuarterCursor(quarter=cur["quarter"], phase=_str(cur, "phase"))

    meters = _object(raw, "meters")
    _check_fields(meters, _METER_FIELDS, "meters")
    _validate_int64(meters, sorted(_METER_FIELDS))
    org = OrgMeters(**meters)

    ten = _object(raw, "tenure")
    _check_fields(ten, _TENURE_FIELDS, "tenure")
    _validate_int64(ten, sorted(_TENURE_INT_FIELDS))
    tenure = TenureState(
        recent_profits=_int_list(ten, "recent_profits"),
        has_retired=_bool(ten, "has_retired"),
        is_ousted=_bool(ten, "is_ousted"),
        **{name: ten[name] for name in _TENURE_INT_FIELDS},
    )

    led = _object(raw, "ledger")
    _check_fields(led, _LEDGER_FIELDS, "ledger")
    _validate_int64(led, sorted(_LEDGER_FIELDS))
    ledger = QuarterLedger(**led)

    _validate_int64(raw, ["seed", "political_capital", "actions_applied"])

    return GameState(
        config=config,
        catalog=catalog,
        seed=raw["seed"],
        cursor=cursor,
        org=org,
        tenure=tenure,
        resources=ResourceState(political_capital=raw["political_capital"]),
        ledger=ledger,
        directive_id=_str(raw, "directive_id"),
        crisis_deck=_decode_pile(raw["crisis_deck"], "crisis_deck"),
        project_deck=_decode_pile(raw["project_deck"], "project_deck"),
        hand=_str_list(raw, "hand"),
        played_this_quarter=_str_list(raw, "played_this_quarter"),
        current_crisis=_decode_crisis(raw["current_crisis"]),
        active_situation=(
            None if raw["active_situation"] is None
            else _decode_situation(raw["active_situation"], "active_situation")
        ),
        crisis_prepared=_bool(raw, "crisis_prepared"),
        pending_situations=[
            _decode_situation(p, f"pending_situations[{i}]")
            for i, p in enumerate(_list(raw, "pending_situations"))
        ],
        deferred_situations=[
            _decode_situation(p, f"deferred_situations[{i}]")
            for i, p in enumerate(_list(raw, "deferred_situations"))
        ],
        pending_follow_ups=[
            _decode_follow_up(f, f"pending_follow_ups[{i}]")
            for i, f in enumerate(_list(raw, "pending_follow_ups"))
        ],
        actions_applied=raw["actions_applied"],
    )


def _decode_catalog(data: Any) -> ContentCatalog:
    if not isinstance(data, dict):
        raise DeserializationError("'catalog' must be a JSON object")
    try:
        return build_catalog(data)
    except ContentValidationError as exc:
        raise DeserializationError(f"Invalid catalog: {exc}") from exc


def _decode_crisis(data: Any) -> Optional[EventCard]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise DeserializationError("'current_crisis' must be a JSON object or null")
    try:
        return event_card_from_dict(data)
    except (ContentValidationError, KeyError) as exc:
        raise DeserializationError(f"Invalid current_crisis: {exc}") from exc


def _decode_pile(data: Any, context: str) -> CardPile:
    if not isinstance(data, dict):
        raise DeserializationError(f"'{context}' must be a JSON object")
    _check_fields(data, _PILE_FIELDS, context)
    return CardPile(
        draw_pile=tuple(_str_list(data, "draw_pile")),
        discard_pile=tuple(_str_list(data, "discard_pile")),
    )


def _decode_situation(data: Any, context: str) -> PendingSituation:
    if not isinstance(data, dict):
        raise DeserializationError(f"{context} must be a JSON object")
    _check_fields(data, _SITUATION_FIELDS, context)
    _validate_int64(data, ["defer_count", "queued_at_quarter", "scheduled_quarter"])
    return PendingSituation(
        situation_id=_str(data, "situation_id"),
        origin_id=_str(data, "origin_id"),
        scheduled_quarter=data["scheduled_quarter"],
        queued_at_quarter=data["queued_at_quarter"],
        defer_count=data["defer_count"],
    )


def _decode_follow_up(data: Any, context: str) -> PendingFollowUp:
    if not isinstance(data, dict):
        raise DeserializationError(f"{context} must be a JSON object")
    _check_fields(data, _FOLLOW_UP_FIELDS, context)
    _validate_int64(data, ["played_at_quarter"])
    return PendingFollowUp(
        card_id=_str(data, "card_id"),
        card_title=_str(data, "card_title"),
        played_at_quarter=data["played_at_quarter"],
        origin_tier=_str(data, "origin_tier"),
    )


# ══════════════════════════════════════════════════════════════
# Restore (decode + validate)
# ══════════════════════════════════════════════════════════════

def restore_snapshot(json_str: str) -> GameState:
    """
    Decode a snapshot and immediately validate invariants.

    Hard fail on first invariant violation.
    """
    state = decode_snapshot(json_str)
    try:
        validate_invariants(state)
    except InvariantViolationError as exc:
        raise InvariantViolationSnapshotError(exc) from exc
    return state


# ══════════════════════════════════════════════════════════════
# File I/O
# ══════════════════════════════════════════════════════════════

def export_snapshot_to_file(state: GameState, path: pathlib.Path) -> None:
    """Write canonical snapshot JSON to *path* (UTF-8, no metadata)."""
    path.write_text(encode_snapshot(state), encoding="utf-8")


def import_snapshot_from_file(path: pathlib.Path) -> GameState:
    """Read a snapshot file and restore it. No fallback. No silent repair."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DeserializationError(
            f"Failed to read snapshot file {path}: {exc}"
        ) from exc
    return restore_snapshot(text)


# ══════════════════════════════════════════════════════════════
# Integrity Hash
# ══════════════════════════════════════════════════════════════

def snapshot_hash(state: GameState) -> str:
    """SHA-256 of canonical snapshot JSON bytes. Lowercase hex."""
    return hashlib.sha256(encode_snapshot(state).encode("utf-8")).hexdigest()


# ══════════════════════════════════════════════════════════════
# Internal Validation Helpers
# ══════════════════════════════════════════════════════════════

def _check_fields(data: dict, expected: frozenset, context: str) -> None:
    """Fail if data has missing or unknown fields vs expected set."""
    actual = set(data.keys())
    missing = expected - actual
    unknown = actual - expected
    if missing:
        raise DeserializationError(f"Missing fields in {context}: {sorted(missing)}")
    if unknown:
        raise DeserializationError(f"Unknown fields in {context}: {sorted(unknown)}")


def _assert_no_floats(obj: Any, path: str) -> None:
    """Recursively walk parsed JSON and fail if any float is found."""
    if isinstance(obj, float):
        raise DeserializationError(
            f"Float detected at {path}: {obj!r}; floats are prohibited"
        )
    if isinstance(obj, dict):
        for k, v in obj.items():
            _assert_no_floats(v, f"{path}.{k}")
    elif isinstance(obj, list):
        for i, v in enumerate(obj):
            _assert_no_floats(v, f"{path}[{i}]")


def _assert_int64_range(value: int, name: str) -> None:
    if value < _INT64_MIN or value > _INT64_MAX:
        raise DeserializationError(f"Value out of int64 range for '{name}': {value}")


def _validate_int64(data: dict, field_names: List[str]) -> None:
    """Validate that the named fields are ints (not bools) within int64."""
    for fname in field_names:
        val = data[fname]
        if not isinstance(val, int) or isinstance(val, bool):
            raise DeserializationError(
                f"Field '{fname}' must be int, got {type(val).__name__}"
            )
        _assert_int64_range(val, fname)


def _object(data: dict, name: str) -> dict:
    val = data[name]
    if not isinstance(val, dict):
        raise DeserializationError(f"'{name}' must be a JSON object")
    return val


def _list(data: dict, name: str) -> list:
    val = data[name]
    if not isinstance(val, list):
        raise DeserializationError(f"'{name}' must be a JSON array")
    return val


def _str(data: dict, name: str) -> str:
    val = data[name]
    if not isinstance(val, str):
        raise DeserializationError(f"'{name}' must be string, got {type(val).__name__}")
    return val


def _bool(data: dict, name: str) -> bool:
    val = data[name]
    if not isinstance(val, bool):
        raise DeserializationError(f"'{name}' must be bool, got {type(val).__name__}")
    return val


def _str_list(data: dict, name: str) -> List[str]:
    items = _list(data, name)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise DeserializationError(f"'{name}[{i}]' must be string")
    return list(items)


def _int_list(data: dict, name: str) -> List[int]:
    items = _list(data, name)
    for i, item in enumerate(items):
        if not isinstance(item, int) or isinstance(item, bool):
            raise DeserializationError(f"'{name}[{i}]' must be int")
        _assert_int64_range(item, f"{name}[{i}]")
    return list(items)
