"""
Tests for the Score Calculator: both formulas, consistency accounting and
score bands.
"""

from __future__ import annotations

import pytest

from engine.scoring import (
    penalty_honesty_score,
    percentage,
    round_half_up,
    score,
    score_label,
    score_status,
    weighted_compliance_index,
)
from schemas.domain import Finding, Severity


def _findings(major=0, minor=0):
    out = [Finding(id=f"M{i}", source_rule_id="R", rule_name="R", source="rule_matcher",
                   severity=Severity.MAJOR, question_ids=("A.1",)) for i in range(major)]
    out += [Finding(id=f"m{i}", source_rule_id="R", rule_name="R", source="rule_matcher",
                    severity=Severity.MINOR, question_ids=("A.1",)) for i in range(minor)]
    return out


def test_penalty_formula():
    assert penalty_honesty_score(0, 0) == 100
    assert penalty_honesty_score(1, 0) == 90
    assert penalty_honesty_score(2, 3) == 71
    assert penalty_honesty_score(10, 1) == 0


def test_penalty_is_monotonic_in_major_findings():
    for minor in range(0, 5):
        previous = penalty_honesty_score(0, minor)
        for major in range(1, 15):
            current = penalty_honesty_score(major, minor)
            assert current <= previous
            previous = current


def test_weighted_formula():
    assert weighted_compliance_index(0, 0, 10) == 100
    assert weighted_compliance_index(1, 0, 2) == 50
    assert weighted_compliance_index(0, 1, 0) == 67  # answered floored at 1
    assert weighted_compliance_index(5, 5, 1) == 0


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert percentage(1, 8) == 13
    assert percentage(3, 0) == 0


def test_score_counts(make_question):
    questions = [make_question(f"A.{i}", "affirmative") for i in range(1, 4)] + [make_question("A.9", None)]
    summary = score(questions, _findings(major=1, minor=1))

    assert summary.major_count == 1
    assert summary.minor_count == 1
    assert summary.inconsistent_count == 2
    assert summary.consistent_count == 1
    assert summary.honesty_score == 87
    assert summary.compliance_index == 56  # 100 - 4/9*100 = 55.6


def test_consistent_count_never_negative(make_question):
    summary = score([make_question("A.1", "negative")], _findings(minor=3))
    assert summary.consistent_count == 0
    assert summary.inconsistent_count == 3


def test_empty_input_scores_full():
    summary = score([], [])
    assert summary.honesty_score == 100
    assert summary.compliance_index == 100
    assert summary.to_dict()["consistent_count"] == 0


@pytest.mark.parametrize(
    "value, label, status",
    [
        (100, "Excellent", "pass"),
        (90, "Excellent", "pass"),
        (85, "Good", "pass"),
        (79, "Fair", "warning"),
        (60, "Poor", "warning"),
        (59, "Critical", "fail"),
        (0, "Critical", "fail"),
    ],
)
def test_score_bands(value, label, status):
    assert score_label(value) == label
    assert score_status(value) == status
