"""
Game Session: orchestrates engine + persistence.

Hash tracking (stream_metadata), idempotency passthrough,
determinism verification, observability.

Apply-before-persist order:
  1. engine.apply_action(action)      may raise ContractViolationError /
                                      InvariantViolationError
  2. action_repo.append_action(...)   only if step 1 succeeded
  3. update metadata hash             only if step 2 succeeded
  4. snapshot if interval reached     only if step 2 succeeded

Persisted actions are therefore always valid and replayable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from quarter_kernel.actions import BaseAction
from quarter_kernel.constants import DEFAULT_DIFFICULTY
from quarter_kernel.content import ContentCatalog
from quarter_kernel.domain_types import GameState, TransitionLog
from quarter_kernel.engine import QuarterEngine
from quarter_kernel.hashing import canonical_hash
from quarter_kernel.sample_content import default_catalog
from quarter_kernel.snapshot import snapshot_dict

from .action_repository import ActionRepository, GameRecord
from .snapshot_repository import SnapshotRepository

if TYPE_CHECKING:
    from .observability import SessionMetrics

logger = logging.getLogger(__name__)


class SnapshotInconsistencyError(Exception):
    """Raised when a stored snapshot doesn't match the replayed state."""

    def __init__(self, game_id: str, sequence: int, diff_keys: list):
        self.game_id = game_id
        self.sequence = sequence
        self.diff_keys = diff_keys
        super().__init__(
            f"Snapshot inconsistency at seq {sequence} for game "
            f"{game_id!r}: divergent keys {diff_keys}"
        )


class DeterminismError(Exception):
    """Raised when replay produces a different hash than the stored one."""

    def __init__(self, game_id: str, expected: str, actual: str):
        self.game_id = game_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Determinism failure for game {game_id!r}: "
            f"stored hash={expected!r}, replayed hash={actual!r}"
        )


class GameSession:
    """
    Orchestrates a QuarterEngine with the persistent action and snapshot
    stores for one game id.
    """

    def __init__(
        self,
        game_id: str,
        engine: QuarterEngine,
        action_repo: ActionRepository,
        snapshot_repo: SnapshotRepository,
        snapshot_interval: int = 10,
    ) -> None:
        self._game_id = game_id
        self._engine = engine
        self._action_repo = action_repo
        self._snapshot_repo = snapshot_repo
        self._snapshot_interval = snapshot_interval
        self._current_sequence: int = 0
        self._record: Optional[GameRecord] = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def start(
        self,
        seed: int,
        difficulty: str = DEFAULT_DIFFICULTY,
        catalog: Optional[ContentCatalog] = None,
    ) -> dict:
        """Deal a new game and register it. The deal is validated first."""
        catalog = catalog or default_catalog()
        state = self._engine.new_game(seed, difficulty=difficulty, catalog=catalog)
        self._record = self._action_repo.create_game(
            self._game_id, seed, difficulty, catalog,
        )
        self._current_sequence = 0
        self._action_repo.update_metadata(self._game_id, 0, canonical_hash(state))
        return state.to_dict()

    def initialize(self, from_snapshot: bool = False) -> None:
        """
        Reconstruct the game from the journal.

        By default replays every action from the deal. With from_snapshot,
        restores the latest stored snapshot and replays only the tail.
        """
        self._record = self._action_repo.load_game(self._game_id)
        self._current_sequence = self._action_repo.get_last_sequence(self._game_id)

        latest = self._snapshot_repo.load_latest_snapshot(self._game_id) if from_snapshot else None
        if latest is not None:
            sequence, state = latest
            self._engine.load_state(state)
            tail = self._action_repo.load_actions(self._game_id, after_sequence=sequence)
            self._engine.apply_sequence(tail)
            logger.info(
                "Resumed %s from snapshot #%d plus %d action(s)",
                self._game_id, sequence, len(tail),
            )
        else:
            self._replay_into(self._engine, self._action_repo.load_actions(self._game_id))

    # ------------------------------------------------------------------
    # Action application (apply-before-persist)
    # ------------------------------------------------------------------

    def apply_action(
        self,
        action: BaseAction,
        action_uuid: str = "",
    ) -> Tuple[dict, Optional[TransitionLog]]:
        """
        Apply an action to the engine, then persist it if that succeeded.

        If the engine raises nothing is persisted; the journal stays clean.
        A repeated action_uuid is not applied again: the current state is
        returned with no log.
        """
        if action_uuid:
            existing = self._action_repo.find_by_uuid(self._game_id, action_uuid)
            if existing is not None:
                logger.info(
                    "Duplicate action %s for %s ignored (already #%d)",
                    action_uuid, self._game_id, existing,
                )
                return self.get_state(), None

        seq = self._current_sequence + 1
        action.sequence = seq
        action.action_uuid = action_uuid

        state, log = self._engine.apply_action(action)

        self._action_repo.append_action(self._game_id, action, action_uuid=action_uuid)
        self._current_sequence = seq

        state_hash = canonical_hash(state)
        self._action_repo.update_metadata(self._game_id, seq, state_hash)

        if self._snapshot_interval > 0 and seq % self._snapshot_interval == 0:
            self._snapshot_repo.save_snapshot(self._game_id, seq, state)
            logger.debug("Snapshot of %s at #%d", self._game_id, seq)

        return state.to_dict(), log

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def replay_full(self) -> dict:
        """Reset the engine and replay every journaled action from the deal."""
        self._record = self._action_repo.load_game(self._game_id)
        self._current_sequence = self._action_repo.get_last_sequence(self._game_id)
        self._replay_into(self._engine, self._action_repo.load_actions(self._game_id))
        return self._engine.state.to_dict()

    def replay_to_sequence(self, target_sequence: int) -> dict:
        """
        State dict after actions 1..target_sequence.
        Uses a fresh engine so the live state is not disturbed.
        """
        return self._state_at(target_sequence).to_dict()

    def _state_at(self, target_sequence: int) -> GameState:
        actions = self._action_repo.load_actions(self._game_id)[:target_sequence]
        temp_engine = QuarterEngine()
        self._replay_into(temp_engine, actions)
        return temp_engine.state

    def _replay_into(self, engine: QuarterEngine, actions: List[BaseAction]) -> None:
        record = self.record
        engine.replay(
            record.seed, actions, difficulty=record.difficulty, catalog=record.catalog,
        )

    # ------------------------------------------------------------------
    # Determinism verification
    # ------------------------------------------------------------------

    def verify_determinism(self) -> bool:
        """
        Replay from scratch and compare the hash with the stored metadata.

        Raises DeterminismError on mismatch. Returns True when consistent
        (or no metadata exists yet).
        """
        metadata = self._action_repo.load_metadata(self._game_id)
        if metadata is None:
            return True
        stored_seq, stored_hash = metadata

        replayed_hash = canonical_hash(self._state_at(stored_seq))
        if replayed_hash != stored_hash:
            logger.error("Replay of %s diverged at #%d", self._game_id, stored_seq)
            raise DeterminismError(self._game_id, stored_hash, replayed_hash)
        return True

    # ------------------------------------------------------------------
    # Snapshot consistency verification
    # ------------------------------------------------------------------

    def verify_snapshot_consistency(self) -> bool:
        """
        For every stored snapshot at sequence N, replay actions 1..N and
        compare the whole value model. Raises SnapshotInconsistencyError on
        the first mismatch.
        """
        for seq in self._snapshot_repo.list_sequences(self._game_id):
            stored = self._snapshot_repo.load_snapshot_at(self._game_id, seq)
            replayed = self._state_at(seq)
            diff_keys = _dict_diff_keys(snapshot_dict(stored), snapshot_dict(replayed))
            if diff_keys:
                raise SnapshotInconsistencyError(self._game_id, seq, diff_keys)
        return True

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_metrics(self) -> "SessionMetrics":
        from .observability import collect_metrics
        return collect_metrics(self)

    # ------------------------------------------------------------------
    # Delegates
    # ------------------------------------------------------------------

    def get_state(self) -> dict:
        return self._engine.state.to_dict()

    def get_diagnostics(self) -> dict:
        return self._engine.get_diagnostics()

    def legal_actions(self) -> List[dict]:
        return self._engine.legal_actions()

    def count_snapshots(self) -> int:
        return self._snapshot_repo.count_snapshots(self._game_id)

    @property
    def state(self) -> GameState:
        return self._engine.state

    @property
    def record(self) -> GameRecord:
        if self._record is None:
            self._record = self._action_repo.load_game(self._game_id)
        return self._record

    @property
    def game_id(self) -> str:
        return self._game_id

    @property
    def current_sequence(self) -> int:
        return self._current_sequence


def _dict_diff_keys(a: dict, b: dict) -> list:
    """Top-level keys where two dicts differ."""
    all_keys = set(a.keys()) | set(b.keys())
    return [k for k in sorted(all_keys) if a.get(k) != b.get(k)]
