"""
Deterministic RNG: seeded random wrapper.

Every draw the kernel makes passes through one DeterministicRNG instance
injected by the caller. Identical (seed, action sequence) gives an identical
call sequence and therefore identical states.
"""

from __future__ import annotations

import hashlib
import random
from fractions import Fraction
from typing import List, Sequence, TypeVar

T = TypeVar("T")


class DeterministicRNG:
    """Local seeded RNG. No global random state touched."""

    def __init__(self, seed: int) -> None:
        self._seed = seed
        self._rng = random.Random(seed)
        self._draws = 0

    @classmethod
    def for_step(cls, seed: int, step: int) -> "DeterministicRNG":
        """
        Independent stream for one engine step, derived from the game seed.
        The same (seed, step) always yields the same stream on every platform.
        """
        digest = hashlib.sha256(f"{seed}:{step}".encode("ascii")).digest()
        return cls(int.from_bytes(digest[:8], "big"))

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def draws(self) -> int:
        """Number of draws taken so far (diagnostics only)."""
        return self._draws

    def rand_int(self, low: int, high: int) -> int:
        """Return random integer in [low, high] inclusive."""
        if high < low:
            raise ValueError(f"Empty range: [{low}, {high}]")
        self._draws += 1
        return self._rng.randint(low, high)

    def rand_below(self, bound: int) -> int:
        """Return random integer in [0, bound)."""
        return self.rand_int(0, bound - 1)

    def rand_fraction(self, denominator: int = 10_000) -> Fraction:
        """Return an exact fraction in [0, 1) on a grid of 1/denominator."""
        if denominator < 1:
            raise ValueError(f"Denominator must be >= 1, got {denominator}")
        return Fraction(self.rand_below(denominator), denominator)

    def rand_choice(self, seq: Sequence[T]) -> T:
        """Pick one element from a non-empty sequence."""
        if not seq:
            raise ValueError("Cannot choose from an empty sequence")
        return seq[self.rand_below(len(seq))]

    def shuffle(self, seq: List[T]) -> None:
        """In-place deterministic shuffle."""
        self._draws += 1
        self._rng.shuffle(seq)
