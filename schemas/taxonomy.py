# schemas/taxonomy.py - Single authoritative taxonomy for questionnaire aspects.
"""Centralised taxonomy for the IT-governance questionnaire.

Every classification the engine, the reports and the remote validator
payload agree on is defined here exactly once:

* the fixed aspect (category) enumeration ``A..D`` and its labels
* the COBIT 2019 framework domains
* the aspect → framework-domain mapping used by the domain breakdown
* question-id helpers (category prefix)
"""
from __future__ import annotations

from typing import Literal, get_args


# ══════════════════════════════════════════════════════════════════
# Aspect enumeration
# ══════════════════════════════════════════════════════════════════

AspectCategory = Literal["A", "B", "C", "D"]

ALL_ASPECTS: tuple[str, ...] = get_args(AspectCategory)


ASPECT_LABELS: dict[str, str] = {
    "A": "Active Oversight by the Board of Directors and Commissioners",
    "B": "Adequacy of IT Policies and Procedures",
    "C": "IT Risk Management",
    "D": "Internal Control and Audit",
}

ASPECT_SHORT_LABELS: dict[str, str] = {
    "A": "Governance",
    "B": "Policy",
    "C": "Risk",
    "D": "Audit",
}


# ══════════════════════════════════════════════════════════════════
# Framework domains (COBIT 2019)
# ══════════════════════════════════════════════════════════════════

FrameworkDomain = Literal["EDM", "APO", "BAI", "DSS", "MEA"]

ALL_FRAMEWORK_DOMAINS: tuple[str, ...] = get_args(FrameworkDomain)

FRAMEWORK_DOMAINS: dict[str, dict[str, str]] = {
    "EDM": {
        "name": "Evaluate, Direct and Monitor",
        "description": "Governance objectives ensuring stakeholder needs are evaluated",
    },
    "APO": {
        "name": "Align, Plan and Organize",
        "description": "Management objectives for IT alignment with business strategy",
    },
    "BAI": {
        "name": "Build, Acquire and Implement",
        "description": "Solution delivery and change management",
    },
    "DSS": {
        "name": "Deliver, Service and Support",
        "description": "Service delivery and support operations",
    },
    "MEA": {
        "name": "Monitor, Evaluate and Assess",
        "description": "Performance monitoring and compliance",
    },
}

ASPECT_FRAMEWORK_MAPPING: dict[str, list[str]] = {
    "A": ["EDM", "APO"],
    "B": ["BAI", "DSS"],
    "C": ["APO", "DSS"],
    "D": ["MEA"],
}


# ══════════════════════════════════════════════════════════════════
# Question-id helpers
# ══════════════════════════════════════════════════════════════════

def category_of(question_id: str) -> str:
    """Return the category code encoded in a dot-delimited question id.

    ``"B.6.5"`` → ``"B"``.  Ids without a dot return the whole id.
    """
    return (question_id or "").split(".", 1)[0].strip()


def belongs_to(question_id: str, category: str) -> bool:
    """True when *question_id* sits inside *category* (segment prefix match)."""
    return category_of(question_id) == category
