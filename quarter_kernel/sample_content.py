"""
Sample Content: a small, playable default catalog.

Plain data in the catalog's load format. build_catalog() validates it the
same way it validates any external content, so this module doubles as the
reference example of that format.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from .content import ContentCatalog, build_catalog


def _m(meter: str, delta: int) -> dict:
    return {"kind": "meter", "meter": meter, "delta": delta}


def _profit(amount: int) -> dict:
    return {"kind": "profit", "amount": amount}


def _fine(amount: int) -> dict:
    return {"kind": "fine", "amount": amount}


def _profile(good: List[dict], expected: List[dict], bad: List[dict]) -> dict:
    return {"good": good, "expected": expected, "bad": bad}


def _card(
    card_id: str,
    title: str,
    description: str,
    outcomes: dict,
    category: str = "action",
    affinity: Optional[str] = None,
    intensity: int = 0,
) -> dict:
    return {
        "card_id": card_id,
        "title": title,
        "description": description,
        "category": category,
        "meter_affinity": affinity,
        "corporate_intensity": intensity,
        "outcomes": outcomes,
    }


# ═══════════════════════════════════════════════════════════════════════
# PROJECT CARDS
# ═══════════════════════════════════════════════════════════════════════

_PROJECT_CARDS = [
    _card(
        "PROJ_DIGITAL_TRANSFORMATION", "Digital Transformation",
        "Embark on a company-wide digital transformation journey.",
        _profile(
            [_m("delivery", 12), _m("alignment", 5)],
            [_m("delivery", 5), _m("runway", -5)],
            [_m("delivery", -8), _m("runway", -10), _m("morale", -5)],
        ),
        affinity="delivery",
    ),
    _card(
        "PROJ_CLOUD_MIGRATION", "Lift and Shift to Cloud",
        "Migrate every system to the cloud because modern companies do.",
        _profile(
            [_m("delivery", 10), _m("runway", 5)],
            [_m("delivery", 4), _m("runway", -4)],
            [_m("runway", -12), _m("governance", -6)],
        ),
        affinity="delivery",
    ),
    _card(
        "PROJ_AGILE", "Agile at Scale",
        "Transform the entire organization to agile methodology.",
        _profile(
            [_m("delivery", 8), _m("morale", 6)],
            [_m("delivery", 3), _m("morale", -2)],
            [_m("morale", -10), _m("delivery", -5)],
        ),
        affinity="morale",
    ),
    _card(
        "PROJ_CULTURE", "Culture & Values Refresh",
        "Rebrand the corporate values with new posters and an app.",
        _profile(
            [_m("morale", 10), _m("alignment", 8)],
            [_m("morale", 4), _m("alignment", 3)],
            [_m("morale", -6), _m("alignment", -4)],
        ),
        category="response",
        affinity="alignment",
    ),
    _card(
        "PROJ_ERP", "ERP Overhaul",
        "Replace the legacy ERP with a modern solution.",
        _profile(
            [_m("governance", 12), _m("delivery", 4)],
            [_m("governance", 5), _m("runway", -6)],
            [_m("governance", -8), _m("runway", -12)],
        ),
        affinity="governance",
    ),
    _card(
        "PROJ_COMPLIANCE_AUDIT", "Compliance Audit",
        "Invite the auditors in before the regulators invite themselves.",
        _profile(
            [_m("governance", 10)],
            [_m("governance", 5), _m("morale", -2)],
            [_m("governance", -4), _m("morale", -6)],
        ),
        category="response",
        affinity="governance",
    ),
    _card(
        "PROJ_ALL_HANDS_EMAIL", "Inspirational All-Hands Email",
        "Send a heartfelt email about synergy and shared purpose.",
        _profile(
            [_m("alignment", 8), _m("morale", 3)],
            [_m("alignment", 3)],
            [_m("morale", -5), _m("alignment", -3)],
        ),
        category="email",
        affinity="alignment",
    ),
    _card(
        "PROJ_GLOBAL_OP_MODEL", "Global Operating Model",
        "Redesign the company structure for 'efficiency'.",
        _profile(
            [_m("runway", 15), _m("morale", -8)],
            [_m("runway", 8), _m("morale", -12)],
            [_m("morale", -20), _m("delivery", -12), _m("alignment", -10)],
        ),
        category="corporate",
        affinity="runway",
        intensity=3,
    ),
    _card(
        "PROJ_OFFSHORE_SUPPORT", "Offshore Customer Support",
        "Move support to the cheapest time zone available.",
        _profile(
            [_m("runway", 10)],
            [_m("runway", 6), _m("alignment", -6)],
            [_m("alignment", -12), _m("governance", -5)],
        ),
        category="corporate",
        affinity="runway",
        intensity=2,
    ),
    _card(
        "PROJ_PREMIUM_TIER", "Launch Premium Tier",
        "Charge more for the features customers already had.",
        _profile(
            [_profit(14), _m("alignment", 3)],
            [_profit(8)],
            [_profit(-4), _m("alignment", -6)],
        ),
        category="revenue",
        affinity="delivery",
    ),
    _card(
        "PROJ_ENTERPRISE_DEAL", "Chase the Enterprise Deal",
        "Put the whole sales org behind one very large logo.",
        _profile(
            [_profit(18), _m("morale", 4)],
            [_profit(10), _m("morale", -3)],
            [_profit(-6), _m("morale", -8)],
        ),
        category="revenue",
        affinity="morale",
    ),
    _card(
        "PROJ_PRICE_HIKE", "Quiet Price Increase",
        "Raise prices and hope nobody reads the renewal notice.",
        _profile(
            [_profit(12)],
            [_profit(7), _m("alignment", -4)],
            [_profit(-3), _m("alignment", -10)],
        ),
        category="revenue",
        affinity="runway",
    ),
]


# ═══════════════════════════════════════════════════════════════════════
# CRISIS CARDS
# ═══════════════════════════════════════════════════════════════════════

_CRISIS_CARDS = [
    {
        "event_id": "CRISIS_DATA_BREACH",
        "title": "Data Breach",
        "description": "Customer records turned up for sale on a forum.",
        "choices": [
            {
                "choice_id": "disclose",
                "label": "Disclose and notify everyone",
                "outcomes": _profile(
                    [_m("governance", 8), _m("alignment", 4)],
                    [_m("governance", 4), _m("runway", -6)],
                    [_m("runway", -10), _fine(5)],
                ),
            },
            {
                "choice_id": "lawyer_up",
                "label": "Retain outside counsel",
                "pc_cost": 3,
                "outcomes": _profile(
                    [_m("governance", 10)],
                    [_m("governance", 3), _m("runway", -4)],
                    [_fine(8)],
                ),
            },
            {
                "choice_id": "bury_it",
                "label": "Keep it quiet",
                "corporate_intensity": 3,
                "outcomes": _profile(
                    [_m("runway", 4)],
                    [_m("governance", -6)],
                    [_m("governance", -12), _fine(15)],
                ),
            },
        ],
    },
    {
        "event_id": "CRISIS_KEY_CLIENT_LOST",
        "title": "Key Client Walks",
        "description": "Our largest customer announced a move to a competitor.",
        "choices": [
            {
                "choice_id": "win_back",
                "label": "Fly the executive team out to win them back",
                "effects": [_m("runway", -6), _profit(5)],
            },
            {
                "choice_id": "accept",
                "label": "Accept the loss and refocus",
                "effects": [_profit(-8), _m("alignment", 4)],
            },
        ],
    },
    {
        "event_id": "CRISIS_REGULATOR_INQUIRY",
        "title": "Regulator Inquiry",
        "description": "A regulator has questions about last year's filings.",
        "choices": [
            {
                "choice_id": "cooperate",
                "label": "Cooperate fully",
                "effects": [_m("governance", 6), _m("delivery", -4)],
            },
            {
                "choice_id": "settle",
                "label": "Settle quickly",
                "effects": [_fine(6), _m("governance", 2)],
            },
            {
                "choice_id": "lobby",
                "label": "Call in a favor",
                "pc_cost": 2,
                "effects": [_m("governance", 4)],
            },
        ],
    },
    {
        "event_id": "CRISIS_VIRAL_MEMO",
        "title": "Leaked Memo Goes Viral",
        "description": "An internal memo about 'headcount optimization' leaked.",
        "choices": [
            {
                "choice_id": "apologize",
                "label": "Apologize publicly",
                "outcomes": _profile(
                    [_m("morale", 8), _m("alignment", 6)],
                    [_m("morale", 2)],
                    [_m("morale", -6), _m("alignment", -4)],
                ),
            },
            {
                "choice_id": "find_leaker",
                "label": "Find the leaker",
                "corporate_intensity": 2,
                "outcomes": _profile(
                    [_m("governance", 6)],
                    [_m("morale", -8)],
                    [_m("morale", -14), _m("alignment", -8)],
                ),
            },
        ],
    },
]


# ═══════════════════════════════════════════════════════════════════════
# SITUATIONS
# ═══════════════════════════════════════════════════════════════════════

def _situation(
    situation_id: str,
    title: str,
    description: str,
    severity: int,
    pc: tuple,
    risk: tuple,
    evil: tuple,
    expiry: Optional[List[dict]] = None,
) -> dict:
    """pc / risk / evil are (label, outcomes[, cost]) tuples."""
    return {
        "situation_id": situation_id,
        "title": title,
        "description": description,
        "severity": severity,
        "responses": [
            {"response": "pc", "label": pc[0], "outcomes": pc[1],
             "pc_cost": pc[2] if len(pc) > 2 else 0},
            {"response": "risk", "label": risk[0], "outcomes": risk[1]},
            {"response": "evil", "label": evil[0], "outcomes": evil[1],
             "evil_delta": evil[2] if len(evil) > 2 else 0},
            {"response": "defer", "label": "Deal with it next quarter"},
        ],
        "expiry_effects": expiry or [],
    }


_SITUATIONS = [
    _situation(
        "SIT_KEY_PERFORMER_QUITS", "Key Performer Resignation",
        "A critical team member has handed in their notice.", 2,
        ("Make a retention counter-offer", _profile(
            [_m("delivery", 12), _m("morale", 5)],
            [_m("runway", -12), _m("delivery", -4)],
            [_m("runway", -16), _m("morale", -8)],
        ), 2),
        ("Conduct an exit interview", _profile(
            [_m("governance", 8), _m("alignment", 4)],
            [_m("delivery", -8), _m("morale", -4)],
            [_m("delivery", -16), _m("morale", -12)],
        )),
        ("Enforce the non-compete", _profile(
            [_m("governance", 4), _m("delivery", -4)],
            [_m("morale", -12), _m("delivery", -8)],
            [_m("morale", -16), _fine(8)],
        ), 1),
        expiry=[_m("delivery", -6)],
    ),
    _situation(
        "SIT_GLASSDOOR_FIRESTORM", "Glassdoor Review Firestorm",
        "Negative reviews are flooding in and going viral.", 1,
        ("Hire a PR firm", _profile(
            [_m("alignment", 10)],
            [_m("alignment", 5), _m("runway", -5)],
            [_m("runway", -10)],
        ), 1),
        ("Post a CEO response", _profile(
            [_m("alignment", 10), _m("morale", 5)],
            [_m("alignment", 5)],
            [_m("alignment", -10)],
        )),
        ("Flag reviews for removal", _profile(
            [_m("alignment", 4)],
            [_m("morale", -6)],
            [_m("morale", -10), _m("alignment", -8)],
        )),
        expiry=[_m("morale", -4)],
    ),
    _situation(
        "SIT_SECURITY_VULNERABILITY", "Security Vulnerability",
        "A researcher found a hole in the customer portal.", 3,
        ("Pay for an emergency patch", _profile(
            [_m("governance", 10)],
            [_m("governance", 4), _m("runway", -6)],
            [_m("runway", -10), _fine(4)],
        ), 3),
        ("Patch it in the next sprint", _profile(
            [_m("delivery", 4)],
            [_m("delivery", -6)],
            [_m("governance", -10), _fine(10)],
        )),
        ("Threaten the researcher", _profile(
            [_m("governance", 2)],
            [_m("alignment", -10)],
            [_m("alignment", -15), _fine(12)],
        ), 3),
        expiry=[_m("governance", -8), _fine(6)],
    ),
    _situation(
        "SIT_MASS_RESIGNATION", "Mass Resignation",
        "An entire department resigned on the same afternoon.", 4,
        ("Emergency retention bonuses", _profile(
            [_m("morale", 10), _m("delivery", 6)],
            [_m("runway", -15)],
            [_m("runway", -20), _m("delivery", -10)],
        ), 4),
        ("Reorganize around the gap", _profile(
            [_m("delivery", 4)],
            [_m("delivery", -12), _m("morale", -6)],
            [_m("delivery", -20), _m("morale", -12)],
        )),
        ("Announce it was planned", _profile(
            [_m("alignment", 2)],
            [_m("morale", -15)],
            [_m("morale", -20), _m("alignment", -12)],
        ), 3),
    ),
    _situation(
        "SIT_TECH_PRESS_RECOGNITION", "Tech Press Recognition",
        "A trade publication wants to feature our turnaround.", 1,
        ("Fund a proper media tour", _profile(
            [_m("alignment", 10), _m("morale", 6)],
            [_m("alignment", 5)],
            [_m("runway", -6)],
        ), 1),
        ("Give a candid interview", _profile(
            [_m("morale", 8), _m("alignment", 6)],
            [_m("alignment", 3)],
            [_m("alignment", -6)],
        )),
        ("Take credit for everything", _profile(
            [_m("alignment", 6)],
            [_m("morale", -6)],
            [_m("morale", -10)],
        )),
    ),
    _situation(
        "SIT_DATA_MIGRATION_DISASTER", "Data Migration Disaster",
        "Half the customer records did not survive the move.", 3,
        ("Bring in the vendor's experts", _profile(
            [_m("delivery", 10)],
            [_m("delivery", 2), _m("runway", -8)],
            [_m("runway", -12), _m("delivery", -6)],
        ), 2),
        ("Restore from backups", _profile(
            [_m("delivery", 6), _m("governance", 4)],
            [_m("delivery", -6)],
            [_m("delivery", -14), _m("governance", -6)],
        )),
        ("Blame the vendor publicly", _profile(
            [_m("alignment", 4)],
            [_m("governance", -8)],
            [_m("governance", -12), _fine(6)],
        ), 2),
        expiry=[_m("delivery", -8)],
    ),
]


# ═══════════════════════════════════════════════════════════════════════
# TRIGGERS AND POOLS
# ═══════════════════════════════════════════════════════════════════════

_CARD_SITUATIONS = {
    "PROJ_CLOUD_MIGRATION": [
        {"situation_id": "SIT_DATA_MIGRATION_DISASTER", "weight": 3, "on_tier": "bad"},
        {"situation_id": "SIT_SECURITY_VULNERABILITY", "weight": 2},
        {"situation_id": "SIT_TECH_PRESS_RECOGNITION", "weight": 2, "on_tier": "good"},
    ],
    "PROJ_GLOBAL_OP_MODEL": [
        {"situation_id": "SIT_MASS_RESIGNATION", "weight": 1, "on_tier": "bad"},
        {"situation_id": "SIT_KEY_PERFORMER_QUITS", "weight": 3},
        {"situation_id": "SIT_GLASSDOOR_FIRESTORM", "weight": 2},
    ],
    "PROJ_ERP": [
        {"situation_id": "SIT_DATA_MIGRATION_DISASTER", "weight": 2},
        {"situation_id": "SIT_KEY_PERFORMER_QUITS", "weight": 1, "on_tier": "bad"},
    ],
}

_GENERIC_POOLS = {
    "bad": ["SIT_KEY_PERFORMER_QUITS", "SIT_GLASSDOOR_FIRESTORM", "SIT_SECURITY_VULNERABILITY"],
    "expected": ["SIT_GLASSDOOR_FIRESTORM"],
    "good": ["SIT_TECH_PRESS_RECOGNITION"],
}

_FOLLOW_UP_POOLS = {
    "bad": ["SIT_KEY_PERFORMER_QUITS", "SIT_SECURITY_VULNERABILITY", "SIT_GLASSDOOR_FIRESTORM"],
    "expected": ["SIT_KEY_PERFORMER_QUITS", "SIT_GLASSDOOR_FIRESTORM"],
    "good": ["SIT_TECH_PRESS_RECOGNITION"],
}


SAMPLE_CONTENT: dict = {
    "name": "sample",
    "project_cards": _PROJECT_CARDS,
    "crisis_cards": _CRISIS_CARDS,
    "situations": _SITUATIONS,
    "card_situations": _CARD_SITUATIONS,
    "generic_pools": _GENERIC_POOLS,
    "follow_up_pools": _FOLLOW_UP_POOLS,
}


@lru_cache(maxsize=1)
def default_catalog() -> ContentCatalog:
    """The validated sample catalog (built once per process)."""
    return build_catalog(SAMPLE_CONTENT)
