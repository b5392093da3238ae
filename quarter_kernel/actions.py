"""
Quarter Kernel: Player Actions v1.0

Actions are **pure data**. They carry the player's intent and payload only.
They contain ZERO transition logic; transitions.py decides what each one
means in the current phase.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .errors import ContractViolationError


@dataclass
class BaseAction:
    """Base for all player actions: pure data container."""

    action_type: str = ""
    timestamp: str = ""
    sequence: int = 0
    action_uuid: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "action_type": self.action_type,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "payload": dict(self.payload),
        }
        if self.action_uuid:
            d["action_uuid"] = self.action_uuid
        return d

    def require(self, key: str) -> Any:
        """Payload value for *key*; a missing key is a contract violation."""
        if key not in self.payload:
            raise ContractViolationError(
                "malformed_action",
                f"{self.action_type!r} requires payload key {key!r}",
            )
        return self.payload[key]


@dataclass
class AdvanceAction(BaseAction):
    """Move the quarter along: confirm the directive, end plays, wait, resolve."""

    action_type: str = "advance"


@dataclass
class PlayCardAction(BaseAction):
    action_type: str = "play_card"
    # payload keys: card_id, end_phase (optional bool)


@dataclass
class EndPlayAction(BaseAction):
    """Stop playing cards this quarter."""

    action_type: str = "end_play"


@dataclass
class ExchangeMeterAction(BaseAction):
    action_type: str = "exchange_meter"
    # payload keys: meter, amount (optional, default 1)


@dataclass
class BoostMeterAction(BaseAction):
    action_type: str = "boost_meter"
    # payload keys: meter


@dataclass
class SchmoozeBoardAction(BaseAction):
    action_type: str = "schmooze_board"


@dataclass
class ReorgHandAction(BaseAction):
    """Spend capital to discard the hand and draw a fresh one."""

    action_type: str = "reorg_hand"


@dataclass
class RedeemEvilAction(BaseAction):
    action_type: str = "redeem_evil"


@dataclass
class ChooseAction(BaseAction):
    """Answer the pending crisis."""

    action_type: str = "choose"
    # payload keys: choice_id


@dataclass
class RetireAction(BaseAction):
    """Retire at Resolution once the accumulated bonus clears the threshold."""

    action_type: str = "retire"


# Strict action-type -> class mapping. Never fall back to BaseAction.
ACTION_CLASS_MAP = {
    "advance": AdvanceAction,
    "play_card": PlayCardAction,
    "end_play": EndPlayAction,
    "exchange_meter": ExchangeMeterAction,
    "boost_meter": BoostMeterAction,
    "schmooze_board": SchmoozeBoardAction,
    "reorg_hand": ReorgHandAction,
    "redeem_evil": RedeemEvilAction,
    "choose": ChooseAction,
    "retire": RetireAction,
}


def reconstruct_action(action_dict: dict) -> BaseAction:
    """
    Reconstruct a typed action from its stored dict.

    Raises ValueError for unknown types; never silently degrades.
    """
    atype = action_dict["action_type"]
    cls = ACTION_CLASS_MAP.get(atype)
    if cls is None:
        raise ValueError(
            f"Unknown action_type {atype!r}: cannot reconstruct. "
            f"Known types: {sorted(ACTION_CLASS_MAP)}"
        )
    return cls(
        timestamp=action_dict.get("timestamp", ""),
        sequence=action_dict.get("sequence", 0),
        action_uuid=action_dict.get("action_uuid", ""),
        payload=dict(action_dict.get("payload", {})),
    )
