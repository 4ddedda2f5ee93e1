"""Build the deterministic payload the remote secondary validator consumes.

Only answered questions are sent, trimmed to the fields the validator
contract names (id, text, answer, category, framework ref, parent id).
Question text is capped so the prompt stays token-stable regardless of
how verbose the questionnaire is.
"""
from __future__ import annotations

from typing import Any, Sequence

from schemas.domain import Question
from schemas.taxonomy import FRAMEWORK_DOMAINS

MAX_TEXT_CHARS = 200


def build_validator_payload(questions: Sequence[Question]) -> list[dict[str, Any]]:
    return [
        {
            "id": q.id,
            "text": q.text[:MAX_TEXT_CHARS],
            "answer": q.answer.value,
            "category": q.category,
            "framework_ref": q.framework_ref or "N/A",
            "parent_id": q.parent_id,
        }
        for q in questions
        if q.is_answered
    ]


def framework_reference_text() -> str:
    """Framework domain listing embedded in the system prompt."""
    lines = ["COBIT 2019 framework domains:"]
    for code, info in FRAMEWORK_DOMAINS.items():
        lines.append(f"- {code} ({info['name']}): {info['description']}")
    return "\n".join(lines)
