"""JSON input loaders for questions and operator rules.

Accepts either a bare list or an object wrapping the list under
``questions`` / ``rules`` (the run JSON and the rule-pack layout).
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ingestion.excel_parser import QuestionnaireParseError
from rule_packs.loader import load_rules_file
from schemas.domain import Question, Rule, Strictness


def _read(path: str | Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise QuestionnaireParseError(f"Could not read {path}: {exc}") from exc


def load_questions(path: str | Path) -> list[Question]:
    data = _read(path)
    if isinstance(data, dict):
        data = data.get("questions")
    if not isinstance(data, list):
        raise QuestionnaireParseError(f"{path}: expected a list of questions")
    try:
        return [Question.from_dict(item) for item in data]
    except TypeError as exc:
        raise QuestionnaireParseError(f"{path}: {exc}") from exc


def load_rules(path: str | Path) -> tuple[Rule, ...]:
    """Operator rules from a JSON file.  Raises RulePackError on bad content."""
    return load_rules_file(str(path), default_strictness=Strictness.ABSENCE_TOLERANT)
