"""
Tests for per-aspect aggregation and the framework-domain breakdown.
"""

from __future__ import annotations

from engine.aggregation import aggregate, framework_domain_breakdown, overall_compliance
from schemas.domain import Finding, Severity
from schemas.taxonomy import ALL_ASPECTS, ASPECT_LABELS


def _finding(fid, *qids, severity=Severity.MINOR):
    return Finding(id=fid, source_rule_id="R", rule_name="R", source="rule_matcher",
                   severity=severity, question_ids=tuple(qids))


def test_one_score_per_aspect_in_declaration_order(make_question):
    scores = aggregate([make_question("C.1", "affirmative")], [])
    assert [s.aspect for s in scores] == list(ALL_ASPECTS)
    assert scores[2].aspect_name == ASPECT_LABELS["C"]


def test_other_aspects_empty_when_all_questions_in_a(make_question):
    questions = [make_question(f"A.{i}", "affirmative") for i in range(1, 4)]
    scores = {s.aspect: s for s in aggregate(questions, [])}

    assert scores["A"].total_questions == 3
    assert scores["A"].compliance_score == 100
    for aspect in ("B", "C", "D"):
        assert scores[aspect].total_questions == 0
        assert scores[aspect].compliance_score == 0


def test_sub_questions_do_not_count(make_question):
    questions = [
        make_question("B.1", "affirmative"),
        make_question("B.2", "negative"),
        make_question("B.3", None),
        make_question("B.1.a", "negative", parent_id="B.1"),
        make_question("B.1.b", "negative", parent_id="B.1"),
    ]
    b = aggregate(questions, [])[1]

    assert b.total_questions == 3
    assert b.answered_questions == 2
    assert b.affirmative_answers == 1
    assert b.negative_answers == 1
    assert b.compliance_score == 50


def test_compliance_rounds_half_up(make_question):
    # 1 / 8 = 12.5 % → 13
    questions = [make_question("D.1", "affirmative")] + [
        make_question(f"D.{i}", "negative") for i in range(2, 9)
    ]
    assert aggregate(questions, [])[3].compliance_score == 13


def test_zero_answered_is_zero_not_error(make_question):
    a = aggregate([make_question("A.1", None)], [])[0]
    assert a.total_questions == 1
    assert a.answered_questions == 0
    assert a.compliance_score == 0


def test_findings_grouped_by_primary_question_category(make_question):
    findings = [
        _finding("F1", "A.5", "A.8"),
        _finding("F2", "B.6"),
        _finding("F3", "AB.1"),  # not category A
    ]
    scores = {s.aspect: s for s in aggregate([], findings)}

    assert [f.id for f in scores["A"].findings] == ["F1"]
    assert [f.id for f in scores["B"].findings] == ["F2"]
    assert scores["C"].findings == ()


def test_overall_compliance(make_question):
    questions = [
        make_question("A.1", "affirmative"),
        make_question("A.2", "affirmative"),
        make_question("B.1", "negative"),
    ]
    assert overall_compliance(aggregate(questions, [])) == 67
    assert overall_compliance(aggregate([], [])) == 0


def test_framework_domain_breakdown(make_question):
    questions = [
        make_question("A.1", "affirmative", framework_ref="EDM01.01"),
        make_question("A.2", "negative", framework_ref="edm02.03"),
        make_question("A.3", None, framework_ref="EDM03.01"),
        make_question("A.4", "affirmative", framework_ref="BAI01.01"),  # not mapped to A
        make_question("A.1.a", "affirmative", parent_id="A.1", framework_ref="APO01.01"),
    ]
    breakdown = framework_domain_breakdown(questions, "A")

    assert breakdown == [{"domain": "EDM", "total": 3, "compliant": 1, "percentage": 50}]
