"""
Quarter Kernel v1.0
Deterministic quarterly business-survival simulation core.
advance(state, action, rng) -> (state', log). Pure integer arithmetic, no I/O.
"""

from .domain_types import (
    GameConfig, GameState, OrgMeters, TenureState, ResourceState,
    QuarterCursor, QuarterLedger, PendingSituation, PendingFollowUp,
    CardPile, LogEntry, TransitionLog, METERS, PHASES, TIERS,
)
from .actions import (
    BaseAction,
    AdvanceAction,
    PlayCardAction,
    EndPlayAction,
    ExchangeMeterAction,
    BoostMeterAction,
    SchmoozeBoardAction,
    ReorgHandAction,
    RedeemEvilAction,
    ChooseAction,
    RetireAction,
    reconstruct_action,
)
from .content import ContentCatalog, build_catalog, catalog_to_dict
from .errors import ContractViolationError, InsufficientCapitalError, ContentValidationError
from .invariants import InvariantViolationError, validate_invariants
from .rng import DeterministicRNG
from .state import create_initial_state
from .transitions import advance
from .engine import QuarterEngine
from .capabilities import legal_actions
from .hashing import canonical_serialize, canonical_hash
from .snapshot import (
    SnapshotError,
    SerializationError,
    DeserializationError,
    InvariantViolationSnapshotError,
    encode_snapshot,
    decode_snapshot,
    restore_snapshot,
    export_snapshot_to_file,
    import_snapshot_from_file,
    snapshot_hash,
)
from .constants import DEFAULT_DIFFICULTY, DIFFICULTY_PRESETS, get_difficulty
from .sample_content import default_catalog

__all__ = [
    "GameConfig",
    "GameState",
    "OrgMeters",
    "TenureState",
    "ResourceState",
    "QuarterCursor",
    "QuarterLedger",
    "PendingSituation",
    "PendingFollowUp",
    "CardPile",
    "LogEntry",
    "TransitionLog",
    "METERS",
    "PHASES",
    "TIERS",
    "BaseAction",
    "AdvanceAction",
    "PlayCardAction",
    "EndPlayAction",
    "ExchangeMeterAction",
    "BoostMeterAction",
    "SchmoozeBoardAction",
    "ReorgHandAction",
    "RedeemEvilAction",
    "ChooseAction",
    "RetireAction",
    "reconstruct_action",
    "ContentCatalog",
    "build_catalog",
    "catalog_to_dict",
    "ContractViolationError",
    "InsufficientCapitalError",
    "ContentValidationError",
    "InvariantViolationError",
    "validate_invariants",
    "DeterministicRNG",
    "create_initial_state",
    "advance",
    "QuarterEngine",
    "legal_actions",
    "canonical_serialize",
    "canonical_hash",
    "SnapshotError",
    "SerializationError",
    "DeserializationError",
    "InvariantViolationSnapshotError",
    "encode_snapshot",
    "decode_snapshot",
    "restore_snapshot",
    "export_snapshot_to_file",
    "import_snapshot_from_file",
    "snapshot_hash",
    "DEFAULT_DIFFICULTY",
    "DIFFICULTY_PRESETS",
    "get_difficulty",
    "default_catalog",
]
