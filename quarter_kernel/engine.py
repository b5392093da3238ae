"""
Quarter Kernel: Engine v1.0

Top-level orchestrator. Delegates mutation to transitions.py,
validates via invariants.py, reports via diagnostics.py.

Constraints:
  - Action sequence numbers strictly increasing from 1, no gaps, no
    duplicates; the expected number is state.actions_applied + 1
  - Every step draws from its own stream: for_step(seed, sequence)
  - Hard fail on any violation; a rejected action leaves the state as it was
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .actions import BaseAction
from .capabilities import legal_actions as _legal_actions
from .constants import DEFAULT_DIFFICULTY
from .content import ContentCatalog
from .diagnostics import compute_diagnostics
from .domain_types import GameState, TransitionLog
from .invariants import validate_invariants
from .rng import DeterministicRNG
from .state import create_initial_state
from .transitions import advance

logger = logging.getLogger(__name__)


class QuarterEngine:
    """Stateful engine that wraps the pure functional transition layer."""

    def __init__(self) -> None:
        self._state: Optional[GameState] = None
        self._last_log: Optional[TransitionLog] = None

    # -- State access -------------------------------------------------------

    @property
    def state(self) -> GameState:
        if self._state is None:
            raise RuntimeError("Engine not initialised: call new_game() first")
        return self._state

    @property
    def last_log(self) -> Optional[TransitionLog]:
        return self._last_log

    @property
    def last_sequence(self) -> int:
        return self.state.actions_applied

    # -- Public API ---------------------------------------------------------

    def new_game(
        self,
        seed: int,
        difficulty: str = DEFAULT_DIFFICULTY,
        catalog: Optional[ContentCatalog] = None,
    ) -> GameState:
        """Deal a fresh game and store it."""
        self._state = create_initial_state(seed, catalog=catalog, difficulty=difficulty)
        self._last_log = None
        validate_invariants(self._state)
        logger.info("New game: seed=%d difficulty=%s", seed, difficulty)
        return self._state

    def load_state(self, state: GameState) -> GameState:
        """Resume from a restored state; sequencing continues from it."""
        validate_invariants(state)
        self._state = state
        self._last_log = None
        return state

    def apply_action(self, action: BaseAction) -> Tuple[GameState, TransitionLog]:
        """
        Apply a single action:
          1. Validate sequence (strictly increasing, no gaps)
          2. Derive the step's rng from the game seed
          3. Delegate to transitions.advance
          4. Validate invariants on the new state
          5. Store and return
        """
        state = self.state
        expected = state.actions_applied + 1
        if action.sequence != expected:
            raise ValueError(
                f"Sequence violation: expected {expected}, got {action.sequence}"
            )

        rng = DeterministicRNG.for_step(state.seed, action.sequence)
        new_state, log = advance(state, action, rng)
        validate_invariants(new_state)
        self._state = new_state
        self._last_log = log

        if new_state.tenure.is_terminal:
            logger.info(
                "Game over at action %d: %s",
                action.sequence, "retired" if new_state.tenure.has_retired else "ousted",
            )
        return new_state, log

    def apply_sequence(self, actions: List[BaseAction]) -> GameState:
        """Apply an ordered sequence of actions. Returns the final state."""
        for action in actions:
            self.apply_action(action)
        return self.state

    def replay(
        self,
        seed: int,
        actions: List[BaseAction],
        difficulty: str = DEFAULT_DIFFICULTY,
        catalog: Optional[ContentCatalog] = None,
    ) -> GameState:
        """Deal the game again from *seed* and replay every action."""
        self.new_game(seed, difficulty=difficulty, catalog=catalog)
        return self.apply_sequence(actions)

    def legal_actions(self) -> List[dict]:
        return _legal_actions(self.state)

    def get_diagnostics(self) -> dict:
        return compute_diagnostics(self.state)
