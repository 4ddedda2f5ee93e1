"""Core domain types: shared contracts used across the entire assessment system.

These are the canonical shapes that cross layer boundaries.  The engine
consumes ``Question`` and ``Rule`` and produces ``Finding``,
``AspectScore`` and ``AssessmentResult``; the remote secondary validator
speaks the ``SecondaryReport`` TypedDict contract.

Every entity is immutable once built.  ``from_dict`` constructors are
tolerant of malformed business data (bad answers become ``unanswered``)
but raise ``TypeError`` for structurally invalid input.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, TypedDict

from schemas.taxonomy import category_of


# ── Enums ─────────────────────────────────────────────────────────
class Answer(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    UNANSWERED = "unanswered"


class Severity(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class EvidenceExpectation(str, Enum):
    MUST_BE_ABSENT_OR_NEGATIVE = "mustBeAbsentOrNegative"
    MUST_BE_NEGATIVE = "mustBeNegative"


class Strictness(str, Enum):
    ABSENCE_TOLERANT = "absence_tolerant"  # operator rules - empty evidence also fires
    EXACT = "exact"                        # static pairs - both answers must match


# Spreadsheet / UI tokens seen in filled questionnaires.
_AFFIRMATIVE_TOKENS = {"affirmative", "y", "ya", "yes", "1", "true"}
_NEGATIVE_TOKENS = {"negative", "t", "tidak", "n", "no", "0", "false"}


def parse_answer(raw: Any) -> Answer:
    """Coerce any raw answer value into the closed ternary.  Never raises."""
    if isinstance(raw, Answer):
        return raw
    if isinstance(raw, bool):
        return Answer.AFFIRMATIVE if raw else Answer.NEGATIVE
    if raw is None:
        return Answer.UNANSWERED
    token = str(raw).strip().lower()
    if token in _AFFIRMATIVE_TOKENS:
        return Answer.AFFIRMATIVE
    if token in _NEGATIVE_TOKENS:
        return Answer.NEGATIVE
    return Answer.UNANSWERED


def _clean_text(raw: Any) -> str | None:
    """Blank or non-string evidence/reference values count as absent."""
    if raw is None:
        return None
    text = str(raw).strip()
    return text or None


def _pick(d: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return default


def _enum_value(enum_cls, raw: Any, field_name: str):
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{field_name}={raw!r} is not one of: {allowed}") from None


def _rule_answer(raw: Any, field_name: str) -> Answer:
    """Strict variant of ``parse_answer`` for rule config: unknown tokens raise."""
    if isinstance(raw, Answer):
        return raw
    token = "" if raw is None else str(raw).strip().lower()
    if token == Answer.UNANSWERED.value:
        return Answer.UNANSWERED
    if token in _AFFIRMATIVE_TOKENS:
        return Answer.AFFIRMATIVE
    if token in _NEGATIVE_TOKENS:
        return Answer.NEGATIVE
    allowed = ", ".join(m.value for m in Answer)
    raise ValueError(f"{field_name}={raw!r} is not one of: {allowed} (or Ya/Tidak)")


# Questionnaire-tool rule files say ``evidenceCondition: "empty" | "Tidak"``
_EVIDENCE_CONDITIONS = {
    "empty": EvidenceExpectation.MUST_BE_ABSENT_OR_NEGATIVE,
    "tidak": EvidenceExpectation.MUST_BE_NEGATIVE,
}


def _evidence_expectation(d: Mapping[str, Any]) -> EvidenceExpectation:
    raw = _pick(d, "evidence_expectation", "evidenceExpectation")
    if raw is not None:
        return _enum_value(EvidenceExpectation, raw, "evidence_expectation")
    condition = _pick(d, "evidence_condition", "evidenceCondition")
    if condition is None:
        return EvidenceExpectation.MUST_BE_ABSENT_OR_NEGATIVE
    try:
        return _EVIDENCE_CONDITIONS[str(condition).strip().lower()]
    except KeyError:
        raise ValueError(f"evidence_condition={condition!r} is not one of: empty, Tidak") from None


_TRUE_FLAGS = {"true", "1", "y", "ya", "yes"}


def _parse_flag(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in _TRUE_FLAGS


# ── Question ──────────────────────────────────────────────────────
@dataclass(frozen=True)
class Question:
    """An answered or unanswered item in the questionnaire taxonomy."""
    id: str
    category: str
    text: str = ""
    parent_id: str | None = None
    is_sub_question: bool = False
    sub_level: int = 0
    answer: Answer = Answer.UNANSWERED
    evidence: str | None = None
    framework_ref: str | None = None

    def __post_init__(self) -> None:
        # Direct construction gets the same normalisation as from_dict
        object.__setattr__(self, "answer", parse_answer(self.answer))
        object.__setattr__(self, "evidence", _clean_text(self.evidence))
        object.__setattr__(self, "framework_ref", _clean_text(self.framework_ref))

    @property
    def is_answered(self) -> bool:
        return self.answer is not Answer.UNANSWERED

    @property
    def has_evidence(self) -> bool:
        return bool(self.evidence)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Question":
        if not isinstance(d, Mapping):
            raise TypeError(f"Question must be a mapping, got {type(d).__name__}")
        qid = str(_pick(d, "id", default="")).strip()
        if not qid:
            raise TypeError("Question mapping has no 'id'")
        parent_id = _clean_text(_pick(d, "parent_id", "parentId"))
        is_sub = _parse_flag(_pick(d, "is_sub_question", "isSubQuestion"), default=parent_id is not None)
        try:
            sub_level = int(_pick(d, "sub_level", "subLevel", default=1 if is_sub else 0))
        except (TypeError, ValueError):
            sub_level = 1 if is_sub else 0
        return cls(
            id=qid,
            category=str(_pick(d, "category", "aspect", default="") or category_of(qid)),
            text=str(_pick(d, "text", default="")),
            parent_id=parent_id,
            is_sub_question=is_sub,
            sub_level=sub_level,
            answer=parse_answer(d.get("answer")),
            evidence=_clean_text(_pick(d, "evidence", "evidence_file", "evidenceFile")),
            framework_ref=_clean_text(_pick(d, "framework_ref", "frameworkRef", "cobitRef", "cobit_ref")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "text": self.text,
            "parent_id": self.parent_id,
            "is_sub_question": self.is_sub_question,
            "sub_level": self.sub_level,
            "answer": self.answer.value,
            "evidence": self.evidence,
            "framework_ref": self.framework_ref,
        }


# ── Rule ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Rule:
    """Declarative condition→evidence check.

    Operator rules use ``Strictness.ABSENCE_TOLERANT`` and an
    ``evidence_expectation``.  Static cross-validation pairs use
    ``Strictness.EXACT`` and an explicit ``evidence_answer``.
    """
    id: str
    name: str
    severity: Severity
    condition_question_id: str
    condition_answer: Answer
    evidence_question_id: str
    evidence_expectation: EvidenceExpectation = EvidenceExpectation.MUST_BE_ABSENT_OR_NEGATIVE
    evidence_answer: Answer | None = None
    strictness: Strictness = Strictness.ABSENCE_TOLERANT
    description: str = ""
    category: str = ""
    recommendation: str = ""
    framework_ref: str | None = None
    framework_domain: str | None = None

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Rule":
        """Build a rule from pack/JSON config.

        Rules are operator configuration, so unknown enum values raise
        ``ValueError`` and missing required keys raise ``KeyError``.
        Answer fields take the questionnaire tokens (``Ya``/``Tidak``) as
        well as the canonical values, and ``evidenceCondition``
        (``empty``/``Tidak``) stands in for ``evidence_expectation``.
        """
        if not isinstance(d, Mapping):
            raise TypeError(f"Rule must be a mapping, got {type(d).__name__}")
        strictness = _enum_value(Strictness, d.get("strictness", Strictness.ABSENCE_TOLERANT.value), "strictness")
        raw_evidence_answer = _pick(d, "evidence_answer", "evidenceAnswer")
        evidence_answer = None
        if raw_evidence_answer is not None:
            evidence_answer = _rule_answer(raw_evidence_answer, "evidence_answer")
        if strictness is Strictness.EXACT and evidence_answer is None:
            raise KeyError(f"rule {d.get('id')!r}: exact rules need 'evidence_answer'")
        return cls(
            id=str(d["id"]),
            name=str(d.get("name", d["id"])),
            severity=_enum_value(Severity, d["severity"], "severity"),
            condition_question_id=str(_pick(d, "condition_question_id", "conditionQuestionId", default="")),
            condition_answer=_rule_answer(_pick(d, "condition_answer", "conditionAnswer"), "condition_answer"),
            evidence_question_id=str(_pick(d, "evidence_question_id", "evidenceQuestionId", default="")),
            evidence_expectation=_evidence_expectation(d),
            evidence_answer=evidence_answer,
            strictness=strictness,
            description=str(d.get("description", "")),
            category=str(_pick(d, "category", "fraud_type", "fraudType", default="")),
            recommendation=str(d.get("recommendation", "")),
            framework_ref=_clean_text(_pick(d, "framework_ref", "frameworkRef", "cobitRef")),
            framework_domain=_clean_text(_pick(d, "framework_domain", "frameworkDomain", "cobitDomain")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "category": self.category,
            "condition_question_id": self.condition_question_id,
            "condition_answer": self.condition_answer.value,
            "evidence_question_id": self.evidence_question_id,
            "evidence_expectation": self.evidence_expectation.value,
            "evidence_answer": self.evidence_answer.value if self.evidence_answer else None,
            "strictness": self.strictness.value,
            "recommendation": self.recommendation,
            "framework_ref": self.framework_ref,
            "framework_domain": self.framework_domain,
        }


# ── Engine output ─────────────────────────────────────────────────
FindingSource = Literal["rule_matcher", "cross_validation", "pattern_detector"]


@dataclass(frozen=True)
class Finding:
    """A single detected inconsistency or evidence gap."""
    id: str
    source_rule_id: str
    rule_name: str
    source: FindingSource
    severity: Severity
    question_ids: tuple[str, ...]
    question_texts: tuple[str, ...] = ()
    description: str = ""
    recommendation: str = ""
    category: str = ""
    framework_ref: str | None = None

    @property
    def question_id(self) -> str:
        """Primary (condition) question id."""
        return self.question_ids[0] if self.question_ids else ""

    @property
    def evidence_id(self) -> str | None:
        return self.question_ids[1] if len(self.question_ids) > 1 else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_rule_id": self.source_rule_id,
            "rule_name": self.rule_name,
            "source": self.source,
            "severity": self.severity.value,
            "category": self.category,
            "question_ids": list(self.question_ids),
            "question_texts": list(self.question_texts),
            "description": self.description,
            "recommendation": self.recommendation,
            "framework_ref": self.framework_ref,
        }


@dataclass(frozen=True)
class AspectScore:
    """Per-category rollup."""
    aspect: str
    aspect_name: str
    total_questions: int = 0
    answered_questions: int = 0
    affirmative_answers: int = 0
    negative_answers: int = 0
    compliance_score: int = 0
    findings: tuple[Finding, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "aspect": self.aspect,
            "aspect_name": self.aspect_name,
            "total_questions": self.total_questions,
            "answered_questions": self.answered_questions,
            "affirmative_answers": self.affirmative_answers,
            "negative_answers": self.negative_answers,
            "compliance_score": self.compliance_score,
            "finding_ids": [f.id for f in self.findings],
        }


@dataclass(frozen=True)
class AssessmentResult:
    """Top-level engine output.

    ``consistent_answers`` is an approximation: every finding counts as
    exactly one inconsistency regardless of how many questions it names.
    """
    total_questions: int
    answered_questions: int
    consistent_answers: int
    inconsistent_answers: int
    honesty_score: int
    compliance_index: int
    major_findings: int
    minor_findings: int
    findings: tuple[Finding, ...] = ()
    aspect_scores: tuple[AspectScore, ...] = ()
    engine_version: str = ""
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "engine_version": self.engine_version,
            "options": dict(self.options),
            "total_questions": self.total_questions,
            "answered_questions": self.answered_questions,
            "consistent_answers": self.consistent_answers,
            "inconsistent_answers": self.inconsistent_answers,
            "honesty_score": self.honesty_score,
            "compliance_index": self.compliance_index,
            "major_findings": self.major_findings,
            "minor_findings": self.minor_findings,
            "findings": [f.to_dict() for f in self.findings],
            "aspect_scores": [a.to_dict() for a in self.aspect_scores],
        }


# ── Remote secondary validator contract ───────────────────────────
FindingType = Literal["logic_inconsistency", "manipulation_pattern", "insufficient_evidence", "framework_violation"]
RiskLevel = Literal["low", "medium", "high", "critical"]


class ValidatorFinding(TypedDict, total=False):
    """Finding as returned by the remote validator.  Never produced locally."""
    finding_type: FindingType
    severity: str
    question_ids: List[str]
    framework_reference: str
    description: str
    recommendation: str
    relationship_explanation: str


class DomainCompliance(TypedDict):
    score: int
    issues: List[str]


class SecondaryReport(TypedDict, total=False):
    """Shape of the remote validator response after normalisation."""
    findings: List[ValidatorFinding]
    overall_risk_level: str
    consistency_score: int
    framework_compliance_summary: Dict[str, DomainCompliance]
    parse_error: bool
    raw_response: Optional[str]
