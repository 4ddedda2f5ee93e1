"""Questionnaire spreadsheet parser: filled workbook → Question list.

Normalises the regulator questionnaire layout into the engine's data
model.  Nothing downstream re-normalises, so ids, the answer ternary and
``parent_id`` threading are settled here.

Sheet layout (first worksheet)
──────────────────────────────
  Row 1          title
  Rows 2–6, D    organisation, contact name, contact phone, contact role,
                 sharia unit flag (Y)
  Row 7+         questionnaire body

Body rows (columns A–F):
  A ∈ A..D and B contains ASPEK/ASPECT   → aspect header
  A numeric                              → main question  <cat>.<n>
  A empty, B "a." / "a)"                 → sub-question   <cat>.<n>.<a>
  A empty, B "1)"                        → item           <cat>.<n>.<a>.<1>
  A other non-empty                      → special row    <cat>.<A>
  D answer (Y/T), E evidence, F framework reference

Numbered items are parented to the sub-question above them, not to the
main question.  The parent/child pattern detector therefore sees only
the lettered sub-questions as children of a main question; an item
hangs off the main question only when no sub-question precedes it.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from schemas.domain import Question, parse_answer
from schemas.taxonomy import ALL_ASPECTS

logger = logging.getLogger(__name__)

_ASSESSOR_COL = 4          # D
_BODY_START_ROW = 7

_SUB_QUESTION_RE = re.compile(r"^([a-z])[.)]\s*")
_NUMBERED_ITEM_RE = re.compile(r"^(\d+)\)\s*")
_ASPECT_MARKERS = ("ASPEK", "ASPECT")


class QuestionnaireParseError(Exception):
    """Raised when a workbook cannot be read as a questionnaire."""


@dataclass(frozen=True)
class AssessorInfo:
    organization: str = ""
    contact_name: str = ""
    contact_phone: str = ""
    contact_role: str = ""
    has_sharia_unit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization": self.organization,
            "contact_name": self.contact_name,
            "contact_phone": self.contact_phone,
            "contact_role": self.contact_role,
            "has_sharia_unit": self.has_sharia_unit,
        }


@dataclass(frozen=True)
class ParsedQuestionnaire:
    assessor: AssessorInfo
    questions: list[Question] = field(default_factory=list)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _parse_assessor(ws) -> AssessorInfo:
    def at(row: int) -> str:
        return _cell_text(ws.cell(row=row, column=_ASSESSOR_COL).value)

    return AssessorInfo(
        organization=at(2),
        contact_name=at(3),
        contact_phone=at(4),
        contact_role=at(5),
        has_sharia_unit=at(6).upper() == "Y",
    )


def parse_rows(rows: list[tuple[Any, ...]]) -> list[Question]:
    """Parse body rows (already sliced from row 7) into questions."""
    questions: list[Question] = []
    category = ALL_ASPECTS[0]
    main_no = ""
    sub_letter = ""

    for row in rows:
        cells = [_cell_text(v) for v in (tuple(row) + ("",) * 6)[:6]]
        col_a, col_b, _col_c, col_d, col_e, col_f = cells
        if not col_a and not col_b:
            continue

        if col_a in ALL_ASPECTS and any(m in col_b.upper() for m in _ASPECT_MARKERS):
            category = col_a
            main_no = ""
            continue

        parent_id: str | None = None
        sub_level = 0
        text = col_b

        if col_a.isdigit():
            main_no = col_a
            sub_letter = ""
            qid = f"{category}.{main_no}"
        elif not col_a and _SUB_QUESTION_RE.match(col_b):
            if not main_no:
                logger.debug("Sub-question %r outside a main question skipped", col_b[:40])
                continue
            sub_letter = _SUB_QUESTION_RE.match(col_b).group(1)
            qid = f"{category}.{main_no}.{sub_letter}"
            text = _SUB_QUESTION_RE.sub("", col_b)
            parent_id = f"{category}.{main_no}"
            sub_level = 1
        elif not col_a and _NUMBERED_ITEM_RE.match(col_b):
            if not main_no:
                continue
            item_no = _NUMBERED_ITEM_RE.match(col_b).group(1)
            owner = f"{category}.{main_no}.{sub_letter}" if sub_letter else f"{category}.{main_no}"
            qid = f"{owner}.{item_no}"
            text = _NUMBERED_ITEM_RE.sub("", col_b)
            parent_id = owner
            sub_level = 2 if sub_letter else 1
        elif col_a:
            qid = f"{category}.{col_a}"
        else:
            continue

        if not text:
            continue

        questions.append(Question(
            id=qid,
            category=category,
            text=text,
            parent_id=parent_id,
            is_sub_question=parent_id is not None,
            sub_level=sub_level,
            answer=parse_answer(col_d),
            evidence=col_e or None,
            framework_ref=col_f or None,
        ))
    return questions


def parse_workbook(path: str | Path) -> ParsedQuestionnaire:
    """Read a filled questionnaire workbook.

    Raises QuestionnaireParseError when the file cannot be opened.
    """
    try:
        wb = load_workbook(filename=str(path), data_only=True)
    except Exception as exc:
        raise QuestionnaireParseError(
            f"Could not read questionnaire workbook {path}: {exc}"
        ) from exc

    try:
        ws = wb.worksheets[0]
        assessor = _parse_assessor(ws)
        body = list(ws.iter_rows(min_row=_BODY_START_ROW, max_col=6, values_only=True))
    finally:
        wb.close()

    questions = parse_rows(body)
    logger.info("Parsed %d questions from %s", len(questions), path)
    return ParsedQuestionnaire(assessor=assessor, questions=questions)
