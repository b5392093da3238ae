"""
Quarter Runtime: Persistence Layer v1

Non-invasive persistence around the Quarter Kernel: sqlite action journal,
snapshots, replay, determinism verification, drift comparison and metrics.
"""

from .action_repository import ActionRepository, GameNotFoundError, GameRecord
from .snapshot_repository import SnapshotRepository
from .session import GameSession, SnapshotInconsistencyError, DeterminismError
from .drift import compare_states
from .observability import SessionMetrics, collect_metrics

__all__ = [
    "ActionRepository",
    "GameNotFoundError",
    "GameRecord",
    "SnapshotRepository",
    "GameSession",
    "SnapshotInconsistencyError",
    "DeterminismError",
    "compare_states",
    "SessionMetrics",
    "collect_metrics",
]
