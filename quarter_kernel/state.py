"""
Quarter Kernel: State Construction
"""

from __future__ import annotations

from typing import Optional

from .constants import DEFAULT_DIFFICULTY, HAND_SIZE, PC_INITIAL, get_difficulty
from .content import ContentCatalog
from .domain_types import CardPile, GameState, ResourceState, TenureState
from .rng import DeterministicRNG
from .sample_content import default_catalog


def create_initial_state(
    seed: int,
    catalog: Optional[ContentCatalog] = None,
    difficulty: str = DEFAULT_DIFFICULTY,
) -> GameState:
    """
    Create a fresh game at quarter 1, Demand phase.

    Both decks are shuffled and the opening hand drawn from the step-0
    stream of *seed*, so the same seed always deals the same game.
    """
    config = get_difficulty(difficulty)
    catalog = catalog or default_catalog()
    rng = DeterministicRNG.for_step(seed, 0)

    crisis_ids = [c.event_id for c in catalog.crisis_cards]
    project_ids = [c.card_id for c in catalog.project_cards]
    rng.shuffle(crisis_ids)
    rng.shuffle(project_ids)

    project_deck = CardPile(draw_pile=tuple(project_ids))
    hand, project_deck = project_deck.draw_many(HAND_SIZE, rng)

    return GameState(
        config=config,
        catalog=catalog,
        seed=seed,
        tenure=TenureState(favorability=config.starting_favorability),
        resources=ResourceState(political_capital=PC_INITIAL),
        crisis_deck=CardPile(draw_pile=tuple(crisis_ids)),
        project_deck=project_deck,
        hand=hand,
    )
