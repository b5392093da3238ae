"""
Quarter Runtime v1: Integration Tests

Scenario:
  Phase 1: Start a game and apply 20 actions through a session
  Phase 2: Verify actions persisted, snapshots created at interval
  Phase 3: Restart session (new engine instance), replay from DB
  Phase 4: Resume from the latest snapshot plus the journal tail
  Phase 5: Verify snapshot consistency (and detect a tampered snapshot)
  Phase 6: Drift analysis (seq 6 vs seq 20)
  Phase 7: Idempotency (duplicate action_uuid applies once)
  Phase 8: Hash validation (stream_metadata matches replay hash)
  Phase 9: Observability (get_metrics returns valid data)
  Phase 10: Determinism verification (and detection of a bad hash)

Run:  python -m pytest quarter_runtime/test_runtime.py
"""

from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.actions import ACTION_CLASS_MAP, AdvanceAction, PlayCardAction
from quarter_kernel.domain_types import PHASE_PLAY_CARDS
from quarter_kernel.engine import QuarterEngine
from quarter_kernel.errors import ContractViolationError
from quarter_kernel.hashing import canonical_hash

from quarter_runtime.action_repository import ActionRepository, GameNotFoundError
from quarter_runtime.drift import compare_states
from quarter_runtime.session import (
    DeterminismError,
    GameSession,
    SnapshotInconsistencyError,
)
from quarter_runtime.snapshot_repository import SnapshotRepository

ACTION_COUNT = 20
INTERVAL = 5


def _next_action(session: GameSession):
    """First legal action, one card play per quarter."""
    pick = session.legal_actions()[0]
    state = session.state
    if state.cursor.phase == PHASE_PLAY_CARDS and state.played_this_quarter:
        pick = {"action_type": "end_play", "payload": {}}
    return ACTION_CLASS_MAP[pick["action_type"]](
        timestamp="2026-01-01T00:00:00Z", payload=dict(pick["payload"]),
    )


@pytest.fixture
def repos(tmp_path):
    db_path = tmp_path / "games.db"
    action_repo = ActionRepository(db_path)
    snapshot_repo = SnapshotRepository(db_path)
    yield action_repo, snapshot_repo
    action_repo.close()
    snapshot_repo.close()


def _session(repos, game_id: str = "demo", interval: int = INTERVAL) -> GameSession:
    action_repo, snapshot_repo = repos
    return GameSession(
        game_id=game_id,
        engine=QuarterEngine(),
        action_repo=action_repo,
        snapshot_repo=snapshot_repo,
        snapshot_interval=interval,
    )


@pytest.fixture
def played(repos) -> GameSession:
    session = _session(repos)
    session.start(seed=2026)
    for _ in range(ACTION_COUNT):
        session.apply_action(_next_action(session))
    return session


# ══════════════════════════════════════════════════════════════
# Phases 1-2: apply and persist
# ══════════════════════════════════════════════════════════════

def test_actions_and_snapshots_persisted(repos, played) -> None:
    action_repo, snapshot_repo = repos
    assert played.current_sequence == ACTION_COUNT
    assert action_repo.get_last_sequence("demo") == ACTION_COUNT
    loaded = action_repo.load_actions("demo")
    assert [a.sequence for a in loaded] == list(range(1, ACTION_COUNT + 1))
    assert snapshot_repo.list_sequences("demo") == [5, 10, 15, 20]
    assert action_repo.load_actions("demo", after_sequence=15)[0].sequence == 16


def test_rejected_action_is_not_journaled(repos) -> None:
    action_repo, _ = repos
    session = _session(repos)
    session.start(seed=1)
    with pytest.raises(ContractViolationError):
        session.apply_action(PlayCardAction(payload={"card_id": session.state.hand[0]}))
    assert action_repo.get_last_sequence("demo") == 0
    assert session.current_sequence == 0
    session.apply_action(AdvanceAction())
    assert action_repo.get_last_sequence("demo") == 1


def test_game_registry(repos) -> None:
    action_repo, _ = repos
    session = _session(repos)
    session.start(seed=9, difficulty="icahn")
    record = action_repo.load_game("demo")
    assert (record.seed, record.difficulty) == (9, "icahn")
    assert record.catalog == session.state.catalog
    assert [g["game_id"] for g in action_repo.list_games()] == ["demo"]
    with pytest.raises(ValueError):
        _session(repos).start(seed=9)
    with pytest.raises(GameNotFoundError):
        _session(repos, game_id="nope").initialize()


def test_unknown_difficulty_registers_nothing(repos) -> None:
    action_repo, _ = repos
    with pytest.raises(ValueError):
        _session(repos).start(seed=1, difficulty="buffett")
    assert action_repo.list_games() == []


# ══════════════════════════════════════════════════════════════
# Phases 3-5: replay, resume, snapshot consistency
# ══════════════════════════════════════════════════════════════

def test_replay_from_db_matches(repos, played) -> None:
    restarted = _session(repos)
    restarted.initialize()
    assert restarted.get_state() == played.get_state()
    assert restarted.current_sequence == ACTION_COUNT


def test_resume_from_snapshot_matches(repos, played) -> None:
    resumed = _session(repos)
    resumed.initialize(from_snapshot=True)
    assert canonical_hash(resumed.state) == canonical_hash(played.state)
    resumed.apply_action(_next_action(resumed))
    assert resumed.current_sequence == ACTION_COUNT + 1


def test_snapshot_consistency(repos, played) -> None:
    assert played.verify_snapshot_consistency() is True

    _, snapshot_repo = repos
    wrong = QuarterEngine()
    wrong.new_game(seed=99)
    snapshot_repo.save_snapshot("demo", 10, wrong.state)
    with pytest.raises(SnapshotInconsistencyError) as exc_info:
        played.verify_snapshot_consistency()
    assert exc_info.value.sequence == 10
    assert "seed" in exc_info.value.diff_keys


# ══════════════════════════════════════════════════════════════
# Phase 6: drift
# ══════════════════════════════════════════════════════════════

def test_drift_between_sequences(played) -> None:
    early = played.replay_to_sequence(6)
    late = played.get_state()
    drift = compare_states(early, late)
    assert drift["quarter_delta"] == late["quarter"] - early["quarter"]
    assert drift["quarter_delta"] >= 1
    assert drift["favorability_delta"] == (
        late["tenure"]["favorability"] - early["tenure"]["favorability"]
    )
    for meter, delta in drift["meter_deltas"].items():
        assert delta == late["meters"][meter] - early["meters"][meter]
    assert compare_states(late, late)["meter_deltas"] == {m: 0 for m in late["meters"]}


# ══════════════════════════════════════════════════════════════
# Phase 7: idempotency
# ══════════════════════════════════════════════════════════════

def test_duplicate_action_uuid_applies_once(repos) -> None:
    action_repo, _ = repos
    session = _session(repos, game_id="idem", interval=100)
    session.start(seed=3)

    _, log = session.apply_action(AdvanceAction(), action_uuid="uuid-abc-123")
    assert log is not None
    state_after_first = session.get_state()

    state, log = session.apply_action(AdvanceAction(), action_uuid="uuid-abc-123")
    assert log is None
    assert state == state_after_first
    assert action_repo.get_last_sequence("idem") == 1

    assert action_repo.append_action("idem", AdvanceAction(), action_uuid="uuid-abc-123") == 1
    loaded = action_repo.load_action_by_uuid("idem", "uuid-abc-123")
    assert isinstance(loaded, AdvanceAction)
    assert loaded.action_uuid == "uuid-abc-123"
    assert action_repo.load_action_by_uuid("idem", "missing") is None


# ══════════════════════════════════════════════════════════════
# Phases 8-10: hashes, metrics, determinism
# ══════════════════════════════════════════════════════════════

def test_stream_metadata_matches_replay(repos, played) -> None:
    action_repo, _ = repos
    stored_seq, stored_hash = action_repo.load_metadata("demo")
    assert stored_seq == ACTION_COUNT

    engine = QuarterEngine()
    engine.replay(2026, action_repo.load_actions("demo"))
    assert canonical_hash(engine.state) == stored_hash


def test_metrics(played) -> None:
    metrics = played.get_metrics()
    assert metrics.action_count == ACTION_COUNT
    assert metrics.replay_latency_ms >= 0
    assert metrics.snapshot_count == 4
    assert metrics.last_state_hash == canonical_hash(played.state)
    assert metrics.quarter == played.state.cursor.quarter
    assert metrics.to_dict()["warnings"] == metrics.warnings


def test_determinism_verification(repos, played) -> None:
    assert played.verify_determinism() is True

    action_repo, _ = repos
    action_repo.update_metadata("demo", ACTION_COUNT, "0" * 64)
    with pytest.raises(DeterminismError) as exc_info:
        played.verify_determinism()
    assert exc_info.value.expected == "0" * 64
