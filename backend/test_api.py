"""
Quarter Kernel API: HTTP Tests

Every request replays from a throwaway sqlite journal.

Run:  python -m pytest backend/test_api.py
"""

from __future__ import annotations

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import backend.main as api
from quarter_kernel.invariants import InvariantViolationError
from quarter_kernel.snapshot import restore_snapshot, snapshot_hash


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(api, "GAME_DB_PATH", str(tmp_path / "games.db"))
    monkeypatch.setattr(api, "SNAPSHOT_INTERVAL", 3)
    return TestClient(api.app)


def _new_game(client: TestClient, game_id: str = "g1", seed: int = 42) -> dict:
    resp = client.post("/games", json={"game_id": game_id, "seed": seed})
    assert resp.status_code == 201
    return resp.json()


def _act(client: TestClient, game_id: str, action_type: str, **payload):
    return client.post(
        f"/games/{game_id}/actions",
        json={"action_type": action_type, "payload": payload},
    )


def _play(client: TestClient, game_id: str, steps: int) -> dict:
    """Follow the first legal action, one card play per quarter."""
    body = client.get(f"/games/{game_id}/state").json()
    for _ in range(steps):
        if body["state"]["phase"] == "play_cards" and body["state"]["played_this_quarter"]:
            pick = {"action_type": "end_play", "payload": {}}
        else:
            pick = body["legal_actions"][0]
        resp = _act(client, game_id, pick["action_type"], **pick["payload"])
        assert resp.status_code == 200, resp.text
        body = resp.json()
    return body


# ══════════════════════════════════════════════════════════════
# Games
# ══════════════════════════════════════════════════════════════

def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok", "version": "1.0.0"}


def test_create_game(client) -> None:
    body = _new_game(client)
    assert body["game_id"] == "g1"
    assert body["seed"] == 42
    assert body["difficulty"] == "nadella"
    assert body["sequence"] == 0
    assert body["state"]["quarter"] == 1
    assert body["state"]["phase"] == "demand"
    assert body["legal_actions"] == [{"action_type": "advance", "payload": {}}]
    assert body["log"] is None
    assert len(body["state_hash"]) == 64


def test_same_seed_same_deal(client) -> None:
    a = _new_game(client, "a", seed=7)
    b = _new_game(client, "b", seed=7)
    assert a["state_hash"] == b["state_hash"]
    assert [g["game_id"] for g in client.get("/games").json()] == ["a", "b"]


def test_create_game_without_seed(client) -> None:
    resp = client.post("/games", json={"difficulty": "welch"})
    assert resp.status_code == 201
    body = resp.json()
    assert isinstance(body["seed"], int)
    assert body["state"]["tenure"]["favorability"] == 80


def test_create_game_rejections(client) -> None:
    assert client.post("/games", json={"seed": 1, "difficulty": "buffett"}).status_code == 400
    _new_game(client)
    assert client.post("/games", json={"game_id": "g1", "seed": 1}).status_code == 400


def test_unknown_game_is_404(client) -> None:
    assert client.get("/games/missing/state").status_code == 404
    assert _act(client, "missing", "advance").status_code == 404
    assert client.get("/games/missing/verify").status_code == 404


# ══════════════════════════════════════════════════════════════
# Actions
# ══════════════════════════════════════════════════════════════

def test_apply_action(client) -> None:
    _new_game(client)
    resp = _act(client, "g1", "advance")
    assert resp.status_code == 200
    body = resp.json()
    assert body["sequence"] == 1
    assert body["state"]["phase"] == "play_cards"
    assert body["log"]["phase"] == "demand"
    assert body["log"]["entries"][0]["code"] == "directive_issued"
    assert body["duplicate"] is False


def test_bad_actions_are_400(client) -> None:
    _new_game(client)
    resp = _act(client, "g1", "bribe_auditor")
    assert resp.status_code == 400
    resp = _act(client, "g1", "play_card", card_id="PROJ_AGILE")
    assert resp.status_code == 400
    assert "[CONTRACT:invalid_transition]" in resp.json()["detail"]
    assert client.get("/games/g1/state").json()["sequence"] == 0


def test_non_integer_exchange_amount_is_400(client) -> None:
    _new_game(client)
    before = _act(client, "g1", "advance").json()
    for amount in (1.5, "2"):
        resp = _act(client, "g1", "exchange_meter", meter="morale", amount=amount)
        assert resp.status_code == 400
        assert "[CONTRACT:malformed_action]" in resp.json()["detail"]

    body = client.get("/games/g1/state").json()
    assert body["sequence"] == 1
    assert body["state_hash"] == before["state_hash"]
    assert isinstance(body["state"]["meters"]["morale"], int)
    assert isinstance(body["state"]["political_capital"], int)
    assert client.get("/games/g1/verify").status_code == 200


def test_duplicate_action_uuid(client) -> None:
    _new_game(client)
    request = {"action_type": "advance", "payload": {}, "action_uuid": "once"}
    first = client.post("/games/g1/actions", json=request).json()
    second = client.post("/games/g1/actions", json=request).json()
    assert second["duplicate"] is True
    assert second["log"] is None
    assert second["sequence"] == first["sequence"] == 1
    assert second["state_hash"] == first["state_hash"]


def test_invariant_violation_is_422(client, monkeypatch) -> None:
    import quarter_kernel.engine as engine_module

    real = engine_module.validate_invariants

    def failing(state):
        if state.actions_applied >= 1:
            raise InvariantViolationError("meter_bounds", "forced for the test")
        real(state)

    monkeypatch.setattr(engine_module, "validate_invariants", failing)
    _new_game(client)
    resp = _act(client, "g1", "advance")
    assert resp.status_code == 422
    assert "[INVARIANT:meter_bounds]" in resp.json()["detail"]


# ══════════════════════════════════════════════════════════════
# Read-only views
# ══════════════════════════════════════════════════════════════

def test_diagnostics_and_legal_actions(client) -> None:
    _new_game(client)
    _act(client, "g1", "advance")
    diagnostics = client.get("/games/g1/diagnostics").json()
    assert diagnostics["phase"] == "play_cards"
    assert diagnostics["political_capital"] == 10
    legal = client.get("/games/g1/legal-actions").json()
    types = {a["action_type"] for a in legal}
    assert {"play_card", "end_play", "advance"} <= types
    assert diagnostics["legal_action_count"] == len(legal)


def test_long_play_verifies(client) -> None:
    _new_game(client, seed=11)
    body = _play(client, "g1", 15)
    assert body["sequence"] == 15

    verify = client.get("/games/g1/verify").json()
    assert verify == {
        "game_id": "g1", "sequence": 15,
        "deterministic": True, "snapshots_consistent": True,
    }

    metrics = client.get("/games/g1/metrics").json()
    assert metrics["action_count"] == 15
    assert metrics["snapshot_count"] == 5
    assert metrics["last_state_hash"] == body["state_hash"]


def test_snapshot_endpoint(client) -> None:
    _new_game(client)
    _play(client, "g1", 6)
    body = client.get("/games/g1/snapshot").json()
    restored = restore_snapshot(body["snapshot"])
    assert snapshot_hash(restored) == body["snapshot_hash"]
    assert body["sequence"] == 6


def test_drift_endpoint(client) -> None:
    _new_game(client)
    _play(client, "g1", 12)
    drift = client.get("/games/g1/drift", params={"from_seq": 0}).json()
    assert drift["quarter_a"] == 1
    assert drift["quarter_delta"] >= 1
    assert client.get("/games/g1/drift", params={"from_seq": 50}).status_code == 400
