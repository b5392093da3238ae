"""
Quarter Kernel: Canonical Hashing v1.0

Deterministic canonical serialization + SHA-256 hashing of GameState.
Produces byte-identical output across platforms.

Rules:
  - Top-level fields in a fixed order (kernel version first)
  - The catalog contributes its name and a digest of its content, not the
    content itself
  - Deck piles and queues keep their order; order is game state
  - UTF-8 JSON, no whitespace, no float, no platform newline
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict

from .content import ContentCatalog, catalog_to_dict
from .domain_types import GameState
from .snapshot import snapshot_dict


KERNEL_VERSION: int = 1

_FIELD_ORDER = (
    "seed", "config", "cursor", "meters", "tenure", "political_capital",
    "ledger", "directive_id", "crisis_deck", "project_deck", "hand",
    "played_this_quarter", "current_crisis", "active_situation",
    "crisis_prepared", "pending_situations", "deferred_situations",
    "pending_follow_ups", "actions_applied",
)


def canonical_serialize(state: GameState) -> bytes:
    """
    Canonical serialization of GameState to UTF-8 JSON bytes.
    No whitespace. No float. Deterministic field order.
    """
    obj = _build_canonical_dict(state)
    return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=False).encode("utf-8")


def canonical_hash(state: GameState) -> str:
    """SHA-256 of canonical serialization. Lowercase hex string."""
    return hashlib.sha256(canonical_serialize(state)).hexdigest()


def catalog_digest(catalog: ContentCatalog) -> str:
    raw = json.dumps(catalog_to_dict(catalog), ensure_ascii=True,
                     separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _build_canonical_dict(state: GameState) -> Dict[str, Any]:
    body = snapshot_dict(state)
    canonical: Dict[str, Any] = {
        "kernel_version": KERNEL_VERSION,
        "catalog": {"name": state.catalog.name, "digest": catalog_digest(state.catalog)},
    }
    for key in _FIELD_ORDER:
        canonical[key] = body[key]
    return canonical
