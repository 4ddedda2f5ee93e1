"""Assessment workbook export and multi-organisation comparison.

Writes a fresh ``.xlsx`` with:

- ``Summary``   - title, export date, assessor block, per-aspect table,
                  honesty score, compliance index, overall compliance
- ``Findings``  - one row per engine finding
- ``Aspect A`` … ``Aspect D`` - one row per question of the aspect

``read_exported_summary`` reads the ``Summary`` sheet of a workbook
written here back into a comparison record, so several organisations'
exports can be ranked side by side with ``compare_exports``.

Usage::

    from reporting.workbook import export_workbook, compare_exports
    export_workbook(result, questions, "out/assessment.xlsx", assessor=info)
    ranking = compare_exports(["org1.xlsx", "org2.xlsx"])
"""
from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font

from engine.aggregation import aggregate, overall_compliance
from ingestion.excel_parser import AssessorInfo, QuestionnaireParseError
from schemas.domain import Answer, AssessmentResult, Question
from schemas.taxonomy import ALL_ASPECTS, ASPECT_LABELS

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════
# Sheet constants
# ══════════════════════════════════════════════════════════════════

_SHEET_SUMMARY  = "Summary"
_SHEET_FINDINGS = "Findings"
_TITLE = "IT COMPLIANCE ASSESSMENT - COBIT FRAMEWORK"

# Column-A labels; the reader locates rows by these, not by position
_LBL_EXPORT_DATE   = "Export date"
_LBL_ORGANIZATION  = "Organization"
_LBL_CONTACT       = "Contact name"
_LBL_PHONE         = "Contact phone"
_LBL_ROLE          = "Contact role"
_LBL_SHARIA        = "Sharia unit"
_LBL_ASPECT_HEADER = "Aspect"
_LBL_HONESTY       = "Honesty score"
_LBL_INDEX         = "Compliance index"
_LBL_OVERALL       = "Overall compliance"
_LBL_MAJOR         = "Major findings"
_LBL_MINOR         = "Minor findings"

_ASPECT_COLUMNS = ["Aspect", "Aspect name", "Total", "Answered", "Affirmative", "Negative", "Compliance %"]
_FINDING_COLUMNS = [
    "Finding ID", "Rule", "Rule name", "Source", "Severity", "Category",
    "Questions", "Description", "Recommendation", "Framework ref",
]
_QUESTION_COLUMNS = ["Aspect", "Question ID", "Type", "Framework ref", "Question", "Answer", "Evidence"]

_ANSWER_CELL = {Answer.AFFIRMATIVE: "Y", Answer.NEGATIVE: "T", Answer.UNANSWERED: "-"}
_BOLD = Font(bold=True)


def _sheet_name(aspect: str) -> str:
    return f"Aspect {aspect}"


def _question_type(q: Question) -> str:
    if not q.is_sub_question:
        return "main"
    return "sub-question" if q.sub_level <= 1 else "item"


def _header(ws, values: list[str]) -> None:
    ws.append(values)
    for cell in ws[ws.max_row]:
        cell.font = _BOLD


def _set_widths(ws, widths: list[int]) -> None:
    for idx, width in enumerate(widths):
        ws.column_dimensions[chr(ord("A") + idx)].width = width


# ══════════════════════════════════════════════════════════════════
# Export
# ══════════════════════════════════════════════════════════════════

def _write_summary(ws, result: AssessmentResult, questions: Sequence[Question],
                   assessor: AssessorInfo | None) -> None:
    ws.append([_TITLE])
    ws["A1"].font = Font(bold=True, size=14)
    ws.append([_LBL_EXPORT_DATE, datetime.now().strftime("%Y-%m-%d %H:%M")])
    ws.append([])

    info = assessor or AssessorInfo()
    ws.append(["ASSESSOR"])
    ws.append([_LBL_ORGANIZATION, info.organization])
    ws.append([_LBL_CONTACT, info.contact_name])
    ws.append([_LBL_PHONE, info.contact_phone])
    ws.append([_LBL_ROLE, info.contact_role])
    ws.append([_LBL_SHARIA, "Y" if info.has_sharia_unit else "T"])
    ws.append([])

    # Aspect scores are recomputed when the run skipped aggregation
    aspect_scores = list(result.aspect_scores) or aggregate(questions, result.findings)

    ws.append(["SUMMARY PER ASPECT"])
    _header(ws, _ASPECT_COLUMNS)
    for a in aspect_scores:
        ws.append([
            a.aspect,
            a.aspect_name,
            a.total_questions,
            a.answered_questions,
            a.affirmative_answers,
            a.negative_answers,
            a.compliance_score,
        ])
    ws.append([])

    ws.append([_LBL_HONESTY, result.honesty_score])
    ws.append([_LBL_INDEX, result.compliance_index])
    ws.append([_LBL_OVERALL, overall_compliance(aspect_scores)])
    ws.append([_LBL_MAJOR, result.major_findings])
    ws.append([_LBL_MINOR, result.minor_findings])

    _set_widths(ws, [22, 50, 10, 10, 12, 10, 14])


def _write_findings(ws, result: AssessmentResult) -> None:
    _header(ws, _FINDING_COLUMNS)
    for f in result.findings:
        ws.append([
            f.id,
            f.source_rule_id,
            f.rule_name,
            f.source,
            f.severity.value,
            f.category,
            ", ".join(f.question_ids),
            f.description,
            f.recommendation,
            f.framework_ref or "",
        ])
    _set_widths(ws, [20, 24, 40, 18, 10, 22, 16, 60, 50, 14])


def _write_aspect(ws, aspect: str, questions: Sequence[Question]) -> None:
    _header(ws, _QUESTION_COLUMNS)
    for q in questions:
        if q.category != aspect:
            continue
        ws.append([
            aspect,
            q.id,
            _question_type(q),
            q.framework_ref or "",
            q.text,
            _ANSWER_CELL[q.answer],
            q.evidence or "",
        ])
    _set_widths(ws, [8, 14, 14, 14, 70, 8, 30])


def export_workbook(
    result: AssessmentResult,
    questions: Sequence[Question],
    path: str | Path,
    assessor: AssessorInfo | None = None,
) -> str:
    """Write the assessment workbook.  Returns the output path."""
    wb = Workbook()
    summary = wb.active
    summary.title = _SHEET_SUMMARY
    _write_summary(summary, result, questions, assessor)
    _write_findings(wb.create_sheet(_SHEET_FINDINGS), result)
    for aspect in ALL_ASPECTS:
        _write_aspect(wb.create_sheet(_sheet_name(aspect)), aspect, questions)

    out = str(path)
    parent = os.path.dirname(out)
    if parent:
        os.makedirs(parent, exist_ok=True)
    wb.save(out)
    logger.info("Workbook written to %s (%d findings)", out, len(result.findings))
    return out


# ══════════════════════════════════════════════════════════════════
# Read back + comparison
# ══════════════════════════════════════════════════════════════════

def _as_int(value: Any) -> int:
    if value is None:
        return 0
    text = str(value).strip().rstrip("%")
    try:
        return int(round(float(text)))
    except ValueError:
        return 0


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def read_exported_summary(path: str | Path) -> dict[str, Any]:
    """Comparison record from the ``Summary`` sheet of an exported workbook.

    Raises QuestionnaireParseError when the file is not one of ours.
    """
    name = os.path.basename(str(path))
    try:
        wb = load_workbook(filename=str(path), data_only=True)
    except Exception as exc:
        raise QuestionnaireParseError(f"Could not read workbook {name}: {exc}") from exc

    try:
        if _SHEET_SUMMARY not in wb.sheetnames:
            raise QuestionnaireParseError(
                f'"{name}" is not an exported assessment: sheet "{_SHEET_SUMMARY}" not found'
            )
        rows = [tuple(r) for r in wb[_SHEET_SUMMARY].iter_rows(values_only=True)]
    finally:
        wb.close()

    labelled: dict[str, Any] = {}
    aspect_header_idx = -1
    for idx, row in enumerate(rows):
        label = _as_text(row[0]) if row else ""
        if label == _LBL_ASPECT_HEADER and aspect_header_idx < 0:
            aspect_header_idx = idx
        elif label and len(row) > 1:
            labelled.setdefault(label, row[1])

    if aspect_header_idx < 0:
        raise QuestionnaireParseError(f'"{name}" has no per-aspect summary table')

    aspects = []
    for row in rows[aspect_header_idx + 1: aspect_header_idx + 1 + len(ALL_ASPECTS)]:
        if not row or _as_text(row[0]) not in ALL_ASPECTS:
            break
        cells = list(row) + [None] * len(_ASPECT_COLUMNS)
        aspect = _as_text(cells[0])
        aspects.append({
            "aspect": aspect,
            "aspect_name": _as_text(cells[1]) or ASPECT_LABELS.get(aspect, aspect),
            "total": _as_int(cells[2]),
            "answered": _as_int(cells[3]),
            "affirmative": _as_int(cells[4]),
            "negative": _as_int(cells[5]),
            "compliance": _as_int(cells[6]),
        })

    return {
        "file_name": name,
        "organization": _as_text(labelled.get(_LBL_ORGANIZATION)),
        "contact_name": _as_text(labelled.get(_LBL_CONTACT)),
        "contact_phone": _as_text(labelled.get(_LBL_PHONE)),
        "contact_role": _as_text(labelled.get(_LBL_ROLE)),
        "export_date": _as_text(labelled.get(_LBL_EXPORT_DATE)),
        "aspects": aspects,
        "honesty_score": _as_int(labelled.get(_LBL_HONESTY)),
        "compliance_index": _as_int(labelled.get(_LBL_INDEX)),
        "overall_compliance": _as_int(labelled.get(_LBL_OVERALL)),
    }


def compare_exports(paths: Sequence[str | Path]) -> list[dict[str, Any]]:
    """Read several exports and rank them by overall compliance, best first.

    Unreadable files are skipped with a warning; if none can be read the
    collected errors are raised together.
    """
    records: list[dict[str, Any]] = []
    errors: list[str] = []
    for p in paths:
        try:
            records.append(read_exported_summary(p))
        except QuestionnaireParseError as exc:
            logger.warning("Skipping %s: %s", p, exc)
            errors.append(str(exc))

    if errors and not records:
        raise QuestionnaireParseError("\n".join(errors))
    return sorted(records, key=lambda r: r["overall_compliance"], reverse=True)
