"""
Quarter Kernel: Diagnostics v1.0

Compute a diagnostic summary of a game in progress: survival odds inputs,
meter health and queue depths, plus human-readable warnings.
"""

from __future__ import annotations

from .capabilities import legal_actions
from .constants import DEFERRED_CAPACITY, PC_DECAY_THRESHOLD
from .domain_types import GameState
from .favorability import can_retire, ouster_threshold, profit_trajectory


def compute_diagnostics(state: GameState) -> dict:
    """
    Return a diagnostic dict summarising the current game health.
    projected_ouster_threshold assumes a quarter with cards played, the
    directive missed and profit at last quarter's level.
    """
    t = state.tenure
    ranked = state.org.ranked()
    lowest_meter, lowest_value = ranked[0]

    projected = ouster_threshold(
        t.favorability,
        t.pressure_level,
        t.quarters_survived,
        t.evil_score,
        False,
        profit_positive=t.last_quarter_profit >= 0,
        profit_improving=profit_trajectory(t.recent_profits) > 0,
        consecutive_negative_quarters=t.consecutive_negative_quarters,
        consecutive_weak_project_quarters=t.consecutive_weak_project_quarters,
    )

    warnings: list[str] = []

    if t.favorability < 40:
        warnings.append(f"Board favorability={t.favorability}: ouster vote likely")
    critical = [m for m, v in ranked if v < 20]
    if critical:
        warnings.append(f"{len(critical)} critical meter(s): {', '.join(critical)}")
    if t.consecutive_weak_project_quarters >= 2:
        warnings.append(
            f"{t.consecutive_weak_project_quarters} weak project quarters in a row"
        )
    if t.consecutive_negative_quarters >= 2:
        warnings.append(f"{t.consecutive_negative_quarters} loss-making quarters in a row")
    if t.evil_score >= 15:
        warnings.append(f"Evil score={t.evil_score}: reputation concerns")
    if state.resources.political_capital > PC_DECAY_THRESHOLD:
        warnings.append(
            f"Political capital={state.resources.political_capital} "
            f"decays while above {PC_DECAY_THRESHOLD}"
        )
    if len(state.deferred_situations) >= DEFERRED_CAPACITY:
        warnings.append("Deferred queue full: the next deferral evicts the oldest")

    return {
        "quarter": state.cursor.quarter,
        "phase": state.cursor.phase,
        "terminal": t.is_terminal,
        "favorability": t.favorability,
        "pressure_level": t.pressure_level,
        "evil_score": t.evil_score,
        "political_capital": state.resources.political_capital,
        "accumulated_bonus": t.accumulated_bonus,
        "can_retire": can_retire(t, state.config),
        "lowest_meter": lowest_meter,
        "lowest_meter_value": lowest_value,
        "projected_ouster_threshold": projected,
        "pending_situations": len(state.pending_situations),
        "deferred_situations": len(state.deferred_situations),
        "pending_follow_ups": len(state.pending_follow_ups),
        "legal_action_count": len(legal_actions(state)),
        "warnings": warnings,
    }
