"""
FastAPI Backend: Quarter Kernel API v1.

Stateless: every request replays the game from the sqlite journal.
No in-memory state between requests.

Endpoints:
  GET  /health                      liveness
  GET  /games                       list stored games
  POST /games                       deal a new game
  GET  /games/{id}/state            replay + return state, diagnostics, legal actions
  POST /games/{id}/actions          apply + persist one action, return the log
  GET  /games/{id}/diagnostics      diagnostics only
  GET  /games/{id}/legal-actions    actions the current phase accepts
  GET  /games/{id}/snapshot         canonical snapshot JSON + hash
  GET  /games/{id}/drift            structured diff between two sequences
  GET  /games/{id}/metrics          replay latency and session metrics
  GET  /games/{id}/verify           determinism + snapshot consistency
"""
from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

# Add project root to path for kernel imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.actions import ACTION_CLASS_MAP, BaseAction
from quarter_kernel.constants import DEFAULT_DIFFICULTY
from quarter_kernel.diagnostics import compute_diagnostics
from quarter_kernel.domain_types import TransitionLog
from quarter_kernel.engine import QuarterEngine
from quarter_kernel.hashing import canonical_hash
from quarter_kernel.invariants import InvariantViolationError
from quarter_kernel.snapshot import encode_snapshot, snapshot_hash

from quarter_runtime.action_repository import ActionRepository, GameNotFoundError
from quarter_runtime.drift import compare_states
from quarter_runtime.session import (
    DeterminismError,
    GameSession,
    SnapshotInconsistencyError,
)
from quarter_runtime.snapshot_repository import SnapshotRepository

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

GAME_DB_PATH = os.environ.get(
    "GAME_DB_PATH", os.path.join(os.path.dirname(os.path.abspath(__file__)), "games.db"),
)
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
SNAPSHOT_INTERVAL = int(os.environ.get("SNAPSHOT_INTERVAL", "10"))

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="QuarterKernel API",
    version="1.0.0",
    description="Deterministic quarterly business-survival simulation, journaled API",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateGameRequest(BaseModel):
    game_id: Optional[str] = None
    seed: Optional[int] = None
    difficulty: str = DEFAULT_DIFFICULTY


class ActionRequest(BaseModel):
    action_type: str
    payload: Dict[str, Any] = {}
    timestamp: str = ""
    action_uuid: str = ""


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------


@contextmanager
def _open_session(game_id: str) -> Iterator[GameSession]:
    """Open both stores on the configured DB and wrap them in a session."""
    action_repo = ActionRepository(GAME_DB_PATH)
    snapshot_repo = SnapshotRepository(GAME_DB_PATH)
    try:
        yield GameSession(
            game_id=game_id,
            engine=QuarterEngine(),
            action_repo=action_repo,
            snapshot_repo=snapshot_repo,
            snapshot_interval=SNAPSHOT_INTERVAL,
        )
    finally:
        action_repo.close()
        snapshot_repo.close()


@contextmanager
def _replayed(game_id: str) -> Iterator[GameSession]:
    """A session with the game replayed from the journal; unknown id is 404."""
    with _open_session(game_id) as session:
        try:
            session.initialize()
        except GameNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        yield session


def _build_action(req: ActionRequest) -> BaseAction:
    """Build a typed action from request data. Server assigns sequence."""
    cls = ACTION_CLASS_MAP.get(req.action_type)
    if cls is None:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown action_type: {req.action_type!r}. "
                   f"Valid types: {sorted(ACTION_CLASS_MAP)}",
        )
    return cls(timestamp=req.timestamp, payload=dict(req.payload))


def _game_payload(session: GameSession, log: Optional[TransitionLog] = None) -> dict:
    state = session.state
    return {
        "game_id": session.game_id,
        "sequence": session.current_sequence,
        "state_hash": canonical_hash(state),
        "state": state.to_dict(),
        "diagnostics": compute_diagnostics(state),
        "legal_actions": session.legal_actions(),
        "log": log.to_dict() if log is not None else None,
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "version": "1.0.0"}


@app.get("/games")
def list_games():
    repo = ActionRepository(GAME_DB_PATH)
    try:
        return repo.list_games()
    finally:
        repo.close()


@app.post("/games", status_code=201)
def create_game(req: CreateGameRequest):
    """
    Deal a new game. Without a seed one is derived from the clock; the seed
    is returned so the deal can be reproduced.
    """
    game_id = req.game_id or uuid.uuid4().hex
    seed = req.seed if req.seed is not None else int(time.time() * 1000) % (2**31)

    with _open_session(game_id) as session:
        try:
            session.start(seed, difficulty=req.difficulty)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        payload = _game_payload(session)
    payload["seed"] = seed
    payload["difficulty"] = req.difficulty
    return payload


@app.get("/games/{game_id}/state")
def get_state(game_id: str):
    """Load all actions -> replay -> return state + diagnostics."""
    with _replayed(game_id) as session:
        return _game_payload(session)


@app.post("/games/{game_id}/actions")
def apply_action(game_id: str, req: ActionRequest):
    """
    Apply an action, persist it, and return the new state with its log.

    Server assigns sequence. A repeated action_uuid is answered with the
    current state and no log.
    """
    action = _build_action(req)
    with _replayed(game_id) as session:
        try:
            _, log = session.apply_action(action, action_uuid=req.action_uuid)
        except InvariantViolationError as exc:
            logger.error("Invariant violated in %s: %s", game_id, exc)
            raise HTTPException(status_code=422, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        payload = _game_payload(session, log)
        payload["duplicate"] = log is None
        return payload


@app.get("/games/{game_id}/diagnostics")
def get_diagnostics(game_id: str):
    with _replayed(game_id) as session:
        return session.get_diagnostics()


@app.get("/games/{game_id}/legal-actions")
def get_legal_actions(game_id: str):
    with _replayed(game_id) as session:
        return session.legal_actions()


@app.get("/games/{game_id}/snapshot")
def get_snapshot(game_id: str):
    with _replayed(game_id) as session:
        return {
            "sequence": session.current_sequence,
            "snapshot": encode_snapshot(session.state),
            "snapshot_hash": snapshot_hash(session.state),
        }


@app.get("/games/{game_id}/drift")
def get_drift(
    game_id: str,
    from_seq: int = Query(0, ge=0, description="Earlier sequence number"),
    to_seq: Optional[int] = Query(None, ge=0, description="Later sequence (default: latest)"),
):
    with _replayed(game_id) as session:
        last = session.current_sequence
        end = last if to_seq is None else to_seq
        if from_seq > last or end > last:
            raise HTTPException(
                status_code=400,
                detail=f"Sequence out of range: the game has {last} action(s)",
            )
        return compare_states(
            session.replay_to_sequence(from_seq), session.replay_to_sequence(end),
        )


@app.get("/games/{game_id}/metrics")
def get_metrics(game_id: str):
    with _replayed(game_id) as session:
        return session.get_metrics().to_dict()


@app.get("/games/{game_id}/verify")
def verify(game_id: str):
    """Replay from scratch; compare with stored hashes and snapshots."""
    with _replayed(game_id) as session:
        try:
            session.verify_determinism()
            session.verify_snapshot_consistency()
        except (DeterminismError, SnapshotInconsistencyError) as exc:
            logger.error("Verification failed for %s: %s", game_id, exc)
            raise HTTPException(status_code=409, detail=str(exc))
        return {
            "game_id": game_id,
            "sequence": session.current_sequence,
            "deterministic": True,
            "snapshots_consistent": True,
        }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
