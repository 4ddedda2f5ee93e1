"""
Tests for finding explanations and the per-rule status board.
"""

from __future__ import annotations

import pytest

from agent.why_reasoning import explain_finding, explain_relationship, rule_status_board
from engine.rule_matcher import match
from schemas.domain import Finding, Severity


def _finding(category, *, severity=Severity.MAJOR, description="", qids=("A.1", "A.2")):
    return Finding(id="F1", source_rule_id="R", rule_name="R", source="rule_matcher",
                   severity=severity, question_ids=qids, description=description,
                   category=category)


@pytest.mark.parametrize(
    "category, phrase",
    [
        ("Missing evidence", "supporting documentation"),
        ("Logic inconsistency", "contradicts"),
        ("Control gap", "control gap"),
        ("Framework violation", "violation"),
    ],
)
def test_explain_finding_by_category(category, phrase):
    text = explain_finding(_finding(category))
    assert text.startswith("This finding was detected from the answer to question A.1.")
    assert phrase in text


def test_explain_finding_falls_back_to_description():
    assert explain_finding(_finding("Manipulation pattern", description="Odd pattern.")).endswith("Odd pattern.")
    assert "potential departure" in explain_finding(_finding("Other"))


def test_explain_relationship(make_question):
    questions = [make_question("A.1", "affirmative", framework_ref="EDM01.01")]

    major = explain_relationship(_finding("x"), questions)
    minor = explain_relationship(_finding("x", severity=Severity.MINOR), questions)

    assert "EDM01.01" in major and "MAJOR" in major
    assert "MINOR" in minor
    assert explain_relationship(_finding("x", qids=("Z.1",)), questions) == ""


def test_relationship_without_framework_ref(make_question):
    text = explain_relationship(_finding("x"), [make_question("A.1", "affirmative")])
    assert "N/A" in text


def test_rule_status_board(make_question, make_rule):
    rules = [
        make_rule("FR-1", "A.1", "A.2", category="Missing evidence"),
        make_rule("FR-2", "B.1", "B.2", category="Missing evidence"),
        make_rule("FR-3", "C.1", "C.2", category="Control gap", severity="minor"),
    ]
    questions = [make_question("A.1", "affirmative"), make_question("A.2", "negative")]
    findings = match(questions, rules)

    board = rule_status_board(rules, findings)
    assert (board["total"], board["detected"], board["clean"]) == (3, 1, 2)
    assert list(board["groups"]) == ["Missing evidence", "Control gap"]
    first = board["groups"]["Missing evidence"][0]
    assert first["status"] == "detected"
    assert first["finding_id"] == findings[0].id
    assert first["question_ids"] == ["A.1", "A.2"]

    detected = rule_status_board(rules, findings, status_filter="detected")
    assert [e["rule_id"] for g in detected["groups"].values() for e in g] == ["FR-1"]
    assert detected["clean"] == 2

    clean = rule_status_board(rules, findings, status_filter="clean")
    assert [e["rule_id"] for g in clean["groups"].values() for e in g] == ["FR-2", "FR-3"]


def test_rule_status_board_rejects_unknown_filter():
    with pytest.raises(ValueError):
        rule_status_board([], [], status_filter="everything")
