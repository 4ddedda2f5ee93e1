# engine/scoring.py
"""Score Calculator: finding counts and severities → trust scores.

Two formulas are kept side by side because different report views use
them with different expected ranges; they are deliberately NOT merged.

Honesty score (penalty based)
─────────────────────────────
  penalty       = major × 10 + minor × 3
  honesty_score = max(0, 100 − penalty)

Compliance index (weighted deduction)
─────────────────────────────────────
  weighted_deduction     = major × 3 + minor × 1
  max_possible_deduction = max(answered, 1) × 3
  compliance_index       = max(0, round(100 − weighted / max_possible × 100))

Consistency accounting treats every finding as exactly one inconsistent
answer.  ``consistent_answers`` is therefore an approximation, not an
exact count of non-conflicting answers.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from schemas.domain import Finding, Question, Severity

MAJOR_PENALTY = 10
MINOR_PENALTY = 3

MAJOR_WEIGHT = 3
MINOR_WEIGHT = 1
MAX_WEIGHT_PER_ANSWER = 3

_LABEL_THRESHOLDS: list[tuple[str, int]] = [
    ("Excellent", 90),
    ("Good", 80),
    ("Fair", 70),
    ("Poor", 60),
]

_STATUS_THRESHOLDS: list[tuple[str, int]] = [
    ("pass", 80),
    ("warning", 60),
]


@dataclass(frozen=True)
class ScoreSummary:
    honesty_score: int
    compliance_index: int
    major_count: int
    minor_count: int
    consistent_count: int
    inconsistent_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "honesty_score": self.honesty_score,
            "compliance_index": self.compliance_index,
            "major_count": self.major_count,
            "minor_count": self.minor_count,
            "consistent_count": self.consistent_count,
            "inconsistent_count": self.inconsistent_count,
        }


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (JS Math.round semantics)."""
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage, 0 when the denominator is empty."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def count_by_severity(findings: Iterable[Finding]) -> tuple[int, int]:
    major = minor = 0
    for f in findings:
        if f.severity is Severity.MAJOR:
            major += 1
        elif f.severity is Severity.MINOR:
            minor += 1
    return major, minor


def penalty_honesty_score(major_count: int, minor_count: int) -> int:
    penalty = major_count * MAJOR_PENALTY + minor_count * MINOR_PENALTY
    return max(0, 100 - penalty)


def weighted_compliance_index(major_count: int, minor_count: int, answered_count: int) -> int:
    weighted_deduction = major_count * MAJOR_WEIGHT + minor_count * MINOR_WEIGHT
    max_possible_deduction = max(answered_count, 1) * MAX_WEIGHT_PER_ANSWER
    return max(0, round_half_up(100 - weighted_deduction / max_possible_deduction * 100))


def answered_count(questions: Iterable[Question]) -> int:
    return sum(1 for q in questions if q.is_answered)


def score(questions: Sequence[Question], findings: Sequence[Finding]) -> ScoreSummary:
    """Compute both scores plus the consistency counts."""
    major, minor = count_by_severity(findings)
    answered = answered_count(questions)
    inconsistent = len(findings)
    return ScoreSummary(
        honesty_score=penalty_honesty_score(major, minor),
        compliance_index=weighted_compliance_index(major, minor, answered),
        major_count=major,
        minor_count=minor,
        consistent_count=max(0, answered - inconsistent),
        inconsistent_count=inconsistent,
    )


def score_label(value: int) -> str:
    for label, threshold in _LABEL_THRESHOLDS:
        if value >= threshold:
            return label
    return "Critical"


def score_status(value: int) -> str:
    for status, threshold in _STATUS_THRESHOLDS:
        if value >= threshold:
            return status
    return "fail"
