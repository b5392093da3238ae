"""
Quarter Kernel: Random Source Tests

Run:  python -m pytest quarter_kernel/test_rng.py
"""

from __future__ import annotations

import os
import sys
from fractions import Fraction

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quarter_kernel.rng import DeterministicRNG


# ══════════════════════════════════════════════════════════════
# Streams
# ══════════════════════════════════════════════════════════════

def test_same_seed_same_stream() -> None:
    a = DeterministicRNG(31)
    b = DeterministicRNG(31)
    assert [a.rand_int(1, 100) for _ in range(50)] == [b.rand_int(1, 100) for _ in range(50)]
    assert a.draws == 50


def test_for_step_is_stable_and_step_sensitive() -> None:
    assert DeterministicRNG.for_step(7, 3).seed == DeterministicRNG.for_step(7, 3).seed
    assert DeterministicRNG.for_step(7, 3).seed != DeterministicRNG.for_step(7, 4).seed
    assert DeterministicRNG.for_step(7, 3).seed != DeterministicRNG.for_step(8, 3).seed
    a = DeterministicRNG.for_step(7, 3)
    b = DeterministicRNG.for_step(7, 3)
    assert [a.rand_below(1000) for _ in range(10)] == [b.rand_below(1000) for _ in range(10)]


# ══════════════════════════════════════════════════════════════
# Draws
# ══════════════════════════════════════════════════════════════

def test_rand_int_bounds_are_inclusive() -> None:
    rng = DeterministicRNG(5)
    seen = {rng.rand_int(1, 3) for _ in range(200)}
    assert seen == {1, 2, 3}
    with pytest.raises(ValueError):
        rng.rand_int(4, 3)


def test_rand_fraction_is_exact_and_half_open() -> None:
    rng = DeterministicRNG(12)
    draws = [rng.rand_fraction(4) for _ in range(200)]
    assert all(isinstance(d, Fraction) for d in draws)
    assert set(draws) == {Fraction(0), Fraction(1, 4), Fraction(1, 2), Fraction(3, 4)}
    assert rng.draws == 200


def test_rand_fraction_replays() -> None:
    a = DeterministicRNG(99)
    b = DeterministicRNG(99)
    assert [a.rand_fraction() for _ in range(20)] == [b.rand_fraction() for _ in range(20)]
    with pytest.raises(ValueError):
        a.rand_fraction(0)


def test_choice_and_shuffle() -> None:
    rng = DeterministicRNG(3)
    with pytest.raises(ValueError):
        rng.rand_choice([])
    items = list(range(10))
    rng.shuffle(items)
    assert sorted(items) == list(range(10))
    replay = list(range(10))
    DeterministicRNG(3).shuffle(replay)
    assert replay == items
