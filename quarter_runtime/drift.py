"""
Drift Comparator: pure function, no side effects.

Computes a structured diff between two state dicts (GameState.to_dict()
output), typically the same game at two sequence numbers. No engine
dependency.
"""

from __future__ import annotations

from typing import Dict, List, Set


def compare_states(state_a: dict, state_b: dict) -> dict:
    """
    Compare two state dicts and return a structured diff.

    Returns dict with:
        quarter / favorability / political_capital / evil_score /
        accumulated_bonus / total_profit deltas, per-meter deltas,
        phase_a / phase_b, cards drawn into and out of the hand,
        situations queued and cleared
    """
    tenure_a = state_a.get("tenure", {})
    tenure_b = state_b.get("tenure", {})

    meters_a = state_a.get("meters", {})
    meters_b = state_b.get("meters", {})
    meter_deltas: Dict[str, int] = {
        m: meters_b.get(m, 0) - meters_a.get(m, 0)
        for m in sorted(set(meters_a) | set(meters_b))
    }

    hand_a: Set[str] = set(state_a.get("hand", []))
    hand_b: Set[str] = set(state_b.get("hand", []))

    queued_a = _situation_keys(state_a)
    queued_b = _situation_keys(state_b)

    result = {
        "quarter_a": state_a.get("quarter", 0),
        "quarter_b": state_b.get("quarter", 0),
        "quarter_delta": state_b.get("quarter", 0) - state_a.get("quarter", 0),
        "phase_a": state_a.get("phase"),
        "phase_b": state_b.get("phase"),
        "political_capital_delta": (
            state_b.get("political_capital", 0) - state_a.get("political_capital", 0)
        ),
        "meter_deltas": meter_deltas,
        "cards_drawn": sorted(hand_b - hand_a),
        "cards_spent": sorted(hand_a - hand_b),
        "situations_queued": sorted(queued_b - queued_a),
        "situations_cleared": sorted(queued_a - queued_b),
    }
    for key in ("favorability", "evil_score", "accumulated_bonus", "total_profit"):
        result[f"{key}_a"] = tenure_a.get(key, 0)
        result[f"{key}_b"] = tenure_b.get(key, 0)
        result[f"{key}_delta"] = tenure_b.get(key, 0) - tenure_a.get(key, 0)
    return result


def _situation_keys(state_dict: dict) -> Set[str]:
    """Identify queued situations by id and the quarter they were queued."""
    keys: List[str] = []
    for queue in ("pending_situations", "deferred_situations"):
        for entry in state_dict.get(queue, []):
            keys.append(f"{entry['situation_id']}@{entry['queued_at_quarter']}")
    return set(keys)
