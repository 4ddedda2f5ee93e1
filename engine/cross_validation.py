# engine/cross_validation.py - semantic pairs + structural pattern detector
"""Cross-Validator.

Two independent passes, concatenated in this order:

(a) Static semantic pairs - known contradictions loaded from the rule
    pack (``cross_validation.json``).  Evaluated through the same
    generic evaluator as operator rules, with exact-match strictness:
    no empty-evidence fallback, both answers must be explicitly set.

(b) Structural pattern detector - a top-level question answered
    affirmatively whose direct sub-questions (at least two) are ALL
    answered negatively.  A single affirmative or unanswered child
    suppresses the finding for that parent.

A question may appear in findings from both passes.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from engine.rule_matcher import evaluate_rules, index_questions, new_finding_id
from schemas.domain import Answer, Finding, Question, Rule, Severity

PATTERN_RULE_ID = "PATTERN-PARENT-AFFIRMATIVE-CHILDREN-NEGATIVE"
PATTERN_RULE_NAME = "Affirmative main question with all sub-questions negative"
PATTERN_CATEGORY = "Manipulation pattern"

# Fixed thresholds
MIN_SUB_QUESTIONS = 2


def static_pair_findings(questions: Iterable[Question], pairs: Sequence[Rule]) -> list[Finding]:
    """Pass (a): evaluate the static semantic pair table."""
    return evaluate_rules(pairs, index_questions(questions), source="cross_validation")


def _children_by_parent(questions: Sequence[Question]) -> dict[str, list[Question]]:
    children: dict[str, list[Question]] = defaultdict(list)
    for q in questions:
        if q.parent_id:
            children[q.parent_id].append(q)
    return children


def detect_parent_child_pattern(questions: Iterable[Question]) -> list[Finding]:
    """Pass (b): parent affirmative, every direct child negative.

    Children whose ``parent_id`` names a question outside the batch have
    no verified parent and are never considered.
    """
    questions = list(questions)
    children_of = _children_by_parent(questions)
    findings: list[Finding] = []

    for parent in questions:
        if parent.is_sub_question or parent.answer is not Answer.AFFIRMATIVE:
            continue
        children = children_of.get(parent.id, [])
        if len(children) < MIN_SUB_QUESTIONS:
            continue
        if not all(c.answer is Answer.NEGATIVE for c in children):
            continue

        child_ids = ", ".join(c.id for c in children)
        findings.append(Finding(
            id=new_finding_id(),
            source_rule_id=PATTERN_RULE_ID,
            rule_name=PATTERN_RULE_NAME,
            source="pattern_detector",
            severity=Severity.MAJOR,
            question_ids=(parent.id,),
            question_texts=(parent.text,),
            description=(
                f"Question {parent.id} is answered affirmatively while all "
                f"{len(children)} of its sub-questions ({child_ids}) are answered "
                "negatively. This pattern is a likely signal of administrative "
                "manipulation of the main answer."
            ),
            recommendation=(
                f"Re-verify the answer to {parent.id} against the sub-question "
                "evidence and request supporting documentation for the main claim."
            ),
            category=PATTERN_CATEGORY,
            framework_ref=parent.framework_ref,
        ))
    return findings


def cross_validate(
    questions: Iterable[Question],
    pairs: Sequence[Rule] | None = None,
    *,
    include_static_pairs: bool = True,
    include_pattern_detector: bool = True,
) -> list[Finding]:
    """Run both cross-validation passes and concatenate their findings.

    *pairs* defaults to the static pairs of the default rule pack.
    """
    questions = list(questions)
    findings: list[Finding] = []
    if include_static_pairs:
        if pairs is None:
            from rule_packs.loader import default_cross_validation_pairs
            pairs = default_cross_validation_pairs()
        findings.extend(static_pair_findings(questions, pairs))
    if include_pattern_detector:
        findings.extend(detect_parent_child_pattern(questions))
    return findings
