"""Aspect aggregation: per-category compliance rollups.

Produces one ``AspectScore`` per fixed category, in declaration order:

  - **Counts** over top-level questions only (sub-questions are excluded
    from total / answered / affirmative / negative)
  - **Compliance** = round(affirmative / answered × 100), 0 when nothing
    in the category is answered
  - **Findings** whose primary question id sits in the category
    (segment prefix match on the category code)

A framework-domain breakdown per category is available for the detailed
report views.
"""
from __future__ import annotations

from typing import Any, Sequence

from engine.scoring import percentage
from schemas.domain import Answer, AspectScore, Finding, Question
from schemas.taxonomy import (
    ALL_ASPECTS,
    ASPECT_FRAMEWORK_MAPPING,
    ASPECT_LABELS,
    belongs_to,
)


def _top_level_in(questions: Sequence[Question], aspect: str) -> list[Question]:
    return [q for q in questions if q.category == aspect and not q.is_sub_question]


def aspect_score(
    questions: Sequence[Question],
    findings: Sequence[Finding],
    aspect: str,
) -> AspectScore:
    top_level = _top_level_in(questions, aspect)
    answered = [q for q in top_level if q.is_answered]
    affirmative = sum(1 for q in answered if q.answer is Answer.AFFIRMATIVE)
    negative = sum(1 for q in answered if q.answer is Answer.NEGATIVE)

    return AspectScore(
        aspect=aspect,
        aspect_name=ASPECT_LABELS.get(aspect, aspect),
        total_questions=len(top_level),
        answered_questions=len(answered),
        affirmative_answers=affirmative,
        negative_answers=negative,
        compliance_score=percentage(affirmative, len(answered)),
        findings=tuple(f for f in findings if belongs_to(f.question_id, aspect)),
    )


def aggregate(questions: Sequence[Question], findings: Sequence[Finding]) -> list[AspectScore]:
    """One AspectScore per fixed category, in declaration order."""
    return [aspect_score(questions, findings, aspect) for aspect in ALL_ASPECTS]


def overall_compliance(aspect_scores: Sequence[AspectScore]) -> int:
    """Affirmative share over every answered top-level question."""
    answered = sum(a.answered_questions for a in aspect_scores)
    affirmative = sum(a.affirmative_answers for a in aspect_scores)
    return percentage(affirmative, answered)


def framework_domain_breakdown(questions: Sequence[Question], aspect: str) -> list[dict[str, Any]]:
    """Per framework domain mapped to *aspect*: totals and compliance.

    A question belongs to a domain when its framework reference starts
    with the domain code (``APO12.02`` → ``APO``).  Domains without any
    question are omitted.
    """
    top_level = _top_level_in(questions, aspect)
    out: list[dict[str, Any]] = []
    for domain in ASPECT_FRAMEWORK_MAPPING.get(aspect, []):
        in_domain = [
            q for q in top_level
            if (q.framework_ref or "").upper().startswith(domain)
        ]
        if not in_domain:
            continue
        answered = sum(1 for q in in_domain if q.is_answered)
        compliant = sum(1 for q in in_domain if q.answer is Answer.AFFIRMATIVE)
        out.append({
            "domain": domain,
            "total": len(in_domain),
            "compliant": compliant,
            "percentage": percentage(compliant, answered),
        })
    return out
