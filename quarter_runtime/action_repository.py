"""
Action Repository: sqlite3-backed action journal.

Concurrency control (retry on IntegrityError),
idempotency (action_uuid dedup),
stream metadata (last_state_hash tracking).

Stores each game's seed, difficulty and content catalog once, then every
accepted action as JSON. Reconstructs proper action class instances on load
(strict type dispatch, never a generic BaseAction).

All sequence assignment is transaction-wrapped.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from quarter_kernel.actions import BaseAction, reconstruct_action
from quarter_kernel.content import ContentCatalog, build_catalog, catalog_to_dict

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Max retries for concurrent sequence conflicts
_MAX_RETRIES: int = 3


class GameNotFoundError(LookupError):
    """Raised when a game id has no stored record."""

    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"Unknown game {game_id!r}")


@dataclass(frozen=True)
class GameRecord:
    """What a game was dealt from: everything replay needs besides actions."""

    game_id: str
    seed: int
    difficulty: str
    catalog: ContentCatalog
    created_at: str


def _row_to_action(row: tuple) -> BaseAction:
    return reconstruct_action({
        "action_type": row[0],
        "timestamp": row[1],
        "payload": json.loads(row[2]),
        "sequence": row[3],
        "action_uuid": row[4] or "",
    })


class ActionRepository:
    """
    Append-only action journal backed by sqlite3.

      - Retry on IntegrityError (concurrent sequence conflict)
      - Idempotency via action_uuid (duplicate returns the existing sequence)
      - Stream metadata CRUD (last_state_hash tracking)

    Single writer per game assumed; the retry absorbs the occasional race.
    """

    def __init__(self, db_path: Union[str, Path]) -> None:
        self._db_path = str(db_path)
        # One request at a time uses a connection; the web layer may hand it
        # between worker threads.
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema_sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        self._conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def create_game(
        self,
        game_id: str,
        seed: int,
        difficulty: str,
        catalog: ContentCatalog,
    ) -> GameRecord:
        """Register a new game. Raises ValueError if the id is taken."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO games (game_id, seed, difficulty, catalog_json, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        game_id,
                        seed,
                        difficulty,
                        json.dumps(catalog_to_dict(catalog), ensure_ascii=False, sort_keys=True),
                        now,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ValueError(f"Game {game_id!r} already exists") from exc
        logger.info("Created game %s (seed=%d, difficulty=%s)", game_id, seed, difficulty)
        return GameRecord(game_id, seed, difficulty, catalog, now)

    def load_game(self, game_id: str) -> GameRecord:
        """Load a game record. Raises GameNotFoundError if absent."""
        cursor = self._conn.execute(
            "SELECT seed, difficulty, catalog_json, created_at FROM games WHERE game_id = ?",
            (game_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise GameNotFoundError(game_id)
        return GameRecord(
            game_id=game_id,
            seed=row[0],
            difficulty=row[1],
            catalog=build_catalog(json.loads(row[2])),
            created_at=row[3],
        )

    def list_games(self) -> List[dict]:
        cursor = self._conn.execute(
            """
            SELECT g.game_id, g.seed, g.difficulty, g.created_at,
                   COALESCE(m.last_sequence, 0)
            FROM games g
            LEFT JOIN stream_metadata m ON m.game_id = g.game_id
            ORDER BY g.created_at, g.game_id
            """
        )
        return [
            {
                "game_id": row[0],
                "seed": row[1],
                "difficulty": row[2],
                "created_at": row[3],
                "last_sequence": row[4],
            }
            for row in cursor
        ]

    # ------------------------------------------------------------------
    # Write (with concurrency + idempotency)
    # ------------------------------------------------------------------

    def append_action(
        self,
        game_id: str,
        action: BaseAction,
        action_uuid: str = "",
    ) -> int:
        """
        Append a single action. Assigns the next sequence atomically.
        Returns the assigned sequence number.

        Idempotency: if action_uuid is provided and already exists,
        returns the existing sequence without inserting a duplicate.
        """
        if action_uuid:
            existing = self.find_by_uuid(game_id, action_uuid)
            if existing is not None:
                return existing

        for attempt in range(_MAX_RETRIES):
            try:
                with self._conn:
                    seq = self._next_sequence(game_id)
                    self._insert(game_id, seq, action, action_uuid)
                logger.debug("Journaled %s as %s#%d", action.action_type, game_id, seq)
                return seq
            except sqlite3.IntegrityError:
                if attempt == _MAX_RETRIES - 1:
                    raise
                logger.warning(
                    "Sequence conflict on %s (attempt %d), retrying", game_id, attempt + 1,
                )

        raise RuntimeError("append_action: exhausted retries")  # pragma: no cover

    def append_batch(self, game_id: str, actions: List[BaseAction]) -> List[int]:
        """
        Append multiple actions inside a single transaction.
        If any insert fails the whole batch is rolled back.
        """
        sequences: List[int] = []
        with self._conn:
            base_seq = self._next_sequence(game_id)
            for i, action in enumerate(actions):
                seq = base_seq + i
                self._insert(game_id, seq, action, action.action_uuid)
                sequences.append(seq)
        return sequences

    def _insert(
        self, game_id: str, seq: int, action: BaseAction, action_uuid: str,
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO actions
                (game_id, sequence, action_type, timestamp, action_uuid, payload_json)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                game_id,
                seq,
                action.action_type,
                action.timestamp,
                action_uuid or None,
                json.dumps(action.payload, ensure_ascii=False, sort_keys=True),
            ),
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_actions(
        self, game_id: str, after_sequence: int = 0,
    ) -> List[BaseAction]:
        """
        Load actions ordered by sequence. With after_sequence > 0 only the
        tail after that point is returned (replay on top of a snapshot).
        """
        cursor = self._conn.execute(
            """
            SELECT action_type, timestamp, payload_json, sequence, action_uuid
            FROM actions
            WHERE game_id = ? AND sequence > ?
            ORDER BY sequence
            """,
            (game_id, after_sequence),
        )
        return [_row_to_action(row) for row in cursor]

    def get_last_sequence(self, game_id: str) -> int:
        """Return the highest sequence number for a game, or 0 if none."""
        cursor = self._conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) FROM actions WHERE game_id = ?",
            (game_id,),
        )
        return cursor.fetchone()[0]

    # ------------------------------------------------------------------
    # Idempotency lookup
    # ------------------------------------------------------------------

    def find_by_uuid(self, game_id: str, action_uuid: str) -> Optional[int]:
        """Return the sequence of the action with this uuid, or None."""
        cursor = self._conn.execute(
            "SELECT sequence FROM actions WHERE game_id = ? AND action_uuid = ?",
            (game_id, action_uuid),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def load_action_by_uuid(
        self, game_id: str, action_uuid: str,
    ) -> Optional[BaseAction]:
        cursor = self._conn.execute(
            """
            SELECT action_type, timestamp, payload_json, sequence, action_uuid
            FROM actions
            WHERE game_id = ? AND action_uuid = ?
            """,
            (game_id, action_uuid),
        )
        row = cursor.fetchone()
        return _row_to_action(row) if row else None

    # ------------------------------------------------------------------
    # Stream metadata
    # ------------------------------------------------------------------

    def update_metadata(
        self, game_id: str, sequence: int, state_hash: str,
    ) -> None:
        """Upsert stream metadata with the latest known hash."""
        now = datetime.now(timezone.utc).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO stream_metadata
                    (game_id, last_sequence, last_state_hash, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(game_id) DO UPDATE SET
                    last_sequence = excluded.last_sequence,
                    last_state_hash = excluded.last_state_hash,
                    updated_at = excluded.updated_at
                """,
                (game_id, sequence, state_hash, now),
            )

    def load_metadata(self, game_id: str) -> Optional[Tuple[int, str]]:
        """Return (last_sequence, last_state_hash) or None."""
        cursor = self._conn.execute(
            "SELECT last_sequence, last_state_hash FROM stream_metadata WHERE game_id = ?",
            (game_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return (row[0], row[1])

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _next_sequence(self, game_id: str) -> int:
        """Must be called inside the caller's transaction."""
        cursor = self._conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) FROM actions WHERE game_id = ?",
            (game_id,),
        )
        return cursor.fetchone()[0] + 1

    def close(self) -> None:
        self._conn.close()
