"""Why-Finding Reasoning: explains WHY a finding was raised.

Deterministic, template-driven narration over the engine output:
  1. explain_finding       what the finding means, chosen by its category tag
  2. explain_relationship  how the implicated question ties into the framework
  3. rule_status_board     per-rule detected / clean status, grouped by category

Usage:
    from agent.why_reasoning import explain_finding, rule_status_board
    text = explain_finding(finding, questions)
    board = rule_status_board(rules, result.findings, status_filter="detected")
"""
from __future__ import annotations

from typing import Any, Iterable, Sequence

from schemas.domain import Finding, Question, Rule, Severity

STATUS_FILTERS = ("all", "detected", "clean")


# ──────────────────────────────────────────────────────────────────
# Finding narration
# ──────────────────────────────────────────────────────────────────

# (keywords, explanation) - first match on the lower-cased category wins
_CATEGORY_EXPLANATIONS: list[tuple[tuple[str, ...], str]] = [
    (("evidence", "bukti"),
     "An affirmative answer was given without adequate supporting documentation. "
     "This casts doubt on the accuracy of the compliance claim."),
    (("inconsisten",),
     "The claimed policy contradicts the operational implementation. "
     "Answers to the related questions do not agree with each other."),
    (("gap", "kontrol", "control"),
     "A control gap exists: a control that should be in place is either not "
     "identified or not operating effectively."),
    (("violation", "pelanggaran"),
     "The answers indicate a violation of the framework standard that applies "
     "to the related domain."),
]

_FALLBACK_EXPLANATION = (
    "The answer pattern indicates a potential departure from the assessment standard."
)


def _question_lookup(questions: Iterable[Question]) -> dict[str, Question]:
    return {q.id: q for q in questions}


def explain_finding(finding: Finding, questions: Sequence[Question] = ()) -> str:
    """Plain-language explanation for *finding*.

    ``questions`` is accepted for symmetry with ``explain_relationship``;
    the explanation itself depends only on the finding.
    """
    text = f"This finding was detected from the answer to question {finding.question_id}. "
    tag = (finding.category or "").lower()
    for keywords, explanation in _CATEGORY_EXPLANATIONS:
        if any(k in tag for k in keywords):
            return text + explanation
    return text + (finding.description or _FALLBACK_EXPLANATION)


def explain_relationship(finding: Finding, questions: Sequence[Question]) -> str:
    """Framework context and severity guidance; empty when the question is unknown."""
    question = _question_lookup(questions).get(finding.question_id)
    if question is None:
        return ""

    text = (
        f"Question {finding.question_id} relates to framework reference "
        f"{question.framework_ref or 'N/A'}. "
    )
    if finding.severity is Severity.MAJOR:
        text += (
            "As a MAJOR finding it signals a significant risk to the integrity of "
            "the assessment. Further verification and prompt remediation are required."
        )
    else:
        text += (
            "As a MINOR finding it should be addressed as part of continuous "
            "improvement. It is not critical but still lowers the overall score."
        )
    return text


# ──────────────────────────────────────────────────────────────────
# Rule status board
# ──────────────────────────────────────────────────────────────────

def rule_status_board(
    rules: Sequence[Rule],
    findings: Sequence[Finding],
    *,
    status_filter: str = "all",
) -> dict[str, Any]:
    """Detected / clean status for every rule, grouped by rule category.

    Counts always cover the full rule list; ``status_filter`` only limits
    which rules appear in ``groups``.
    """
    if status_filter not in STATUS_FILTERS:
        raise ValueError(f"status_filter must be one of {STATUS_FILTERS}, got {status_filter!r}")

    first_finding: dict[str, Finding] = {}
    for f in findings:
        first_finding.setdefault(f.source_rule_id, f)

    detected_count = sum(1 for r in rules if r.id in first_finding)
    groups: dict[str, list[dict[str, Any]]] = {}
    for rule in rules:
        finding = first_finding.get(rule.id)
        detected = finding is not None
        if status_filter == "detected" and not detected:
            continue
        if status_filter == "clean" and detected:
            continue
        groups.setdefault(rule.category or "Uncategorised", []).append({
            "rule_id": rule.id,
            "name": rule.name,
            "severity": rule.severity.value,
            "status": "detected" if detected else "clean",
            "finding_id": finding.id if finding else None,
            "question_ids": list(finding.question_ids) if finding else [],
        })

    return {
        "total": len(rules),
        "detected": detected_count,
        "clean": len(rules) - detected_count,
        "filter": status_filter,
        "groups": groups,
    }


# ──────────────────────────────────────────────────────────────────
# Terminal display
# ──────────────────────────────────────────────────────────────────

def print_rule_board(board: dict[str, Any]) -> None:
    """Render rule_status_board() output for the terminal."""
    print(f"\n  Rules: {board['total']}  •  {board['detected']} detected  •  {board['clean']} clean")
    if not board["groups"]:
        print("  (no rules match the filter)")
        return
    for category, entries in board["groups"].items():
        print(f"\n  {category}")
        for e in entries:
            icon = "✗" if e["status"] == "detected" else "✓"
            ids = f"  [{', '.join(e['question_ids'])}]" if e["question_ids"] else ""
            print(f"    {icon} {e['rule_id']} – {e['name']} ({e['severity']}){ids}")
