# engine/rule_matcher.py - condition→evidence rule evaluation
"""Rule Matcher.

One generic evaluator serves both the operator rule table and the static
cross-validation pairs; the rule's ``strictness`` decides how the
evidence question is judged:

  absence_tolerant  mustBeAbsentOrNegative fails on negative, unanswered
                    or empty evidence; mustBeNegative fails on negative only
  exact             fails when the evidence answer equals ``evidence_answer``

Rules whose condition or evidence question is not in the batch are
skipped silently: the rule does not apply to this assessment variant.
"""
from __future__ import annotations

import logging
import uuid
from typing import Iterable, Mapping

from schemas.domain import (
    Answer,
    EvidenceExpectation,
    Finding,
    FindingSource,
    Question,
    Rule,
    Strictness,
)

logger = logging.getLogger(__name__)


def new_finding_id() -> str:
    return f"FIND_{uuid.uuid4().hex[:12]}"


def index_questions(questions: Iterable[Question]) -> dict[str, Question]:
    """Exact id → question lookup.  Later duplicates win, like a Map."""
    return {q.id: q for q in questions}


def evidence_fails(rule: Rule, evidence: Question) -> bool:
    """True when the evidence question does NOT meet the rule's expectation."""
    if rule.strictness is Strictness.EXACT:
        return evidence.answer is rule.evidence_answer

    if rule.evidence_expectation is EvidenceExpectation.MUST_BE_NEGATIVE:
        return evidence.answer is Answer.NEGATIVE

    # MUST_BE_ABSENT_OR_NEGATIVE
    return (
        evidence.answer in (Answer.NEGATIVE, Answer.UNANSWERED)
        or not evidence.has_evidence
    )


def evaluate_rule(
    rule: Rule,
    question_map: Mapping[str, Question],
    *,
    source: FindingSource = "rule_matcher",
) -> Finding | None:
    """Evaluate one rule.  Returns a Finding when it fires, else None."""
    condition = question_map.get(rule.condition_question_id)
    evidence = question_map.get(rule.evidence_question_id)
    if condition is None or evidence is None:
        logger.debug(
            "Rule %s skipped: unresolved reference (%s, %s)",
            rule.id, rule.condition_question_id, rule.evidence_question_id,
        )
        return None

    if condition.answer is not rule.condition_answer:
        return None
    if not evidence_fails(rule, evidence):
        return None

    return Finding(
        id=new_finding_id(),
        source_rule_id=rule.id,
        rule_name=rule.name,
        source=source,
        severity=rule.severity,
        question_ids=(condition.id, evidence.id),
        question_texts=(condition.text, evidence.text),
        description=rule.description,
        recommendation=rule.recommendation,
        category=rule.category,
        framework_ref=rule.framework_ref or condition.framework_ref,
    )


def evaluate_rules(
    rules: Iterable[Rule],
    question_map: Mapping[str, Question],
    *,
    source: FindingSource,
) -> list[Finding]:
    """Evaluate a rule table in order.  No deduplication between rules."""
    findings: list[Finding] = []
    for rule in rules:
        finding = evaluate_rule(rule, question_map, source=source)
        if finding is not None:
            findings.append(finding)
    return findings


def match(questions: Iterable[Question], rules: Iterable[Rule]) -> list[Finding]:
    """Evaluate operator rules against the answer set.

    Output order equals rule table order.  Two rules firing on the same
    question pair both produce findings.
    """
    return evaluate_rules(rules, index_questions(questions), source="rule_matcher")
