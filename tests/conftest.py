"""
Pytest fixtures for the assessor tests: question and rule factories.
"""

from __future__ import annotations

import pytest

from schemas.domain import (
    EvidenceExpectation,
    Question,
    Rule,
    Severity,
    Strictness,
    parse_answer,
)
from schemas.taxonomy import category_of


@pytest.fixture
def make_question():
    """Factory for Question objects; answers accept the same tokens as parse_answer."""

    def _make(
        qid: str,
        answer: str | None = None,
        *,
        evidence: str | None = None,
        parent_id: str | None = None,
        sub_level: int | None = None,
        text: str = "",
        framework_ref: str | None = None,
    ) -> Question:
        return Question(
            id=qid,
            category=category_of(qid),
            text=text or f"Question {qid}",
            parent_id=parent_id,
            is_sub_question=parent_id is not None,
            sub_level=sub_level if sub_level is not None else (1 if parent_id else 0),
            answer=parse_answer(answer),
            evidence=evidence,
            framework_ref=framework_ref,
        )

    return _make


@pytest.fixture
def make_rule():
    """Factory for operator rules (absence tolerant unless told otherwise)."""

    def _make(
        rule_id: str,
        condition: str,
        evidence: str,
        *,
        severity: str = "major",
        expectation: str = "mustBeAbsentOrNegative",
        condition_answer: str = "affirmative",
        category: str = "Missing evidence",
        framework_ref: str | None = None,
    ) -> Rule:
        return Rule(
            id=rule_id,
            name=f"Rule {rule_id}",
            severity=Severity(severity),
            condition_question_id=condition,
            condition_answer=parse_answer(condition_answer),
            evidence_question_id=evidence,
            evidence_expectation=EvidenceExpectation(expectation),
            strictness=Strictness.ABSENCE_TOLERANT,
            description=f"{condition} claimed without {evidence}",
            category=category,
            recommendation="Provide supporting documents.",
            framework_ref=framework_ref,
        )

    return _make


@pytest.fixture
def committee_scenario(make_question):
    """Steering committee claimed (A.5) but no meeting records (A.8)."""
    return [
        make_question("A.5", "affirmative"),
        make_question("A.8", "negative"),
    ]
