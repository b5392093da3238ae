"""
Snapshot Repository: sqlite3-backed game snapshots.

A snapshot is the canonical snapshot JSON of the state AFTER a given action
sequence, stored with its integrity hash. Snapshots serve:
  1. Drift comparison between two points of a game
  2. Consistency verification (stored snapshot vs replayed state)
  3. Fast resume (restore the latest snapshot, replay only the tail)

A stored snapshot is always restored through restore_snapshot(), so its
invariants are re-checked before any play continues from it.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from quarter_kernel.domain_types import GameState
from quarter_kernel.snapshot import encode_snapshot, restore_snapshot, snapshot_hash

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class SnapshotRepository:
    """Snapshot store backed by sqlite3. Shares the DB file with ActionRepository."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self._db_path = str(db_path)
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema_sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        self._conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save_snapshot(self, game_id: str, sequence: int, state: GameState) -> str:
        """
        Persist the state at *sequence*; returns its snapshot hash.
        Re-snapshotting the same sequence overwrites the previous row.
        """
        now = datetime.now(timezone.utc).isoformat()
        digest = snapshot_hash(state)
        with self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO snapshots
                    (game_id, sequence, snapshot_json, state_hash, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (game_id, sequence, encode_snapshot(state), digest, now),
            )
        return digest

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_latest_snapshot(self, game_id: str) -> Optional[Tuple[int, GameState]]:
        """Return (sequence, restored state) of the newest snapshot, or None."""
        cursor = self._conn.execute(
            """
            SELECT sequence, snapshot_json
            FROM snapshots
            WHERE game_id = ?
            ORDER BY sequence DESC
            LIMIT 1
            """,
            (game_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return (row[0], restore_snapshot(row[1]))

    def load_snapshot_at(self, game_id: str, sequence: int) -> Optional[GameState]:
        cursor = self._conn.execute(
            "SELECT snapshot_json FROM snapshots WHERE game_id = ? AND sequence = ?",
            (game_id, sequence),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return restore_snapshot(row[0])

    def load_snapshot_hash(self, game_id: str, sequence: int) -> Optional[str]:
        cursor = self._conn.execute(
            "SELECT state_hash FROM snapshots WHERE game_id = ? AND sequence = ?",
            (game_id, sequence),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def list_sequences(self, game_id: str) -> List[int]:
        cursor = self._conn.execute(
            "SELECT sequence FROM snapshots WHERE game_id = ? ORDER BY sequence",
            (game_id,),
        )
        return [row[0] for row in cursor]

    def count_snapshots(self, game_id: str) -> int:
        cursor = self._conn.execute(
            "SELECT COUNT(*) FROM snapshots WHERE game_id = ?",
            (game_id,),
        )
        return cursor.fetchone()[0]

    def close(self) -> None:
        self._conn.close()
