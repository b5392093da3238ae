"""
Observability: in-process metrics collection.

No external dependencies. Uses compute_diagnostics + timing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from quarter_kernel.hashing import canonical_hash

if TYPE_CHECKING:
    from .session import GameSession


@dataclass(frozen=True)
class SessionMetrics:
    """Snapshot of observable session metrics."""

    replay_latency_ms: float
    action_count: int
    quarter: int
    favorability: int
    political_capital: int
    evil_score: int
    terminal: bool
    last_state_hash: str
    snapshot_count: int
    warnings: list

    def to_dict(self) -> dict:
        return {
            "replay_latency_ms": self.replay_latency_ms,
            "action_count": self.action_count,
            "quarter": self.quarter,
            "favorability": self.favorability,
            "political_capital": self.political_capital,
            "evil_score": self.evil_score,
            "terminal": self.terminal,
            "last_state_hash": self.last_state_hash,
            "snapshot_count": self.snapshot_count,
            "warnings": list(self.warnings),
        }


def collect_metrics(session: "GameSession") -> SessionMetrics:
    """
    Collect metrics from a live session.

    Performs a full replay to measure latency.
    """
    start = time.perf_counter()
    session.replay_full()
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    diagnostics = session.get_diagnostics()

    return SessionMetrics(
        replay_latency_ms=round(elapsed_ms, 2),
        action_count=session.current_sequence,
        quarter=diagnostics["quarter"],
        favorability=diagnostics["favorability"],
        political_capital=diagnostics["political_capital"],
        evil_score=diagnostics["evil_score"],
        terminal=diagnostics["terminal"],
        last_state_hash=canonical_hash(session.state),
        snapshot_count=session.count_snapshots(),
        warnings=diagnostics["warnings"],
    )
