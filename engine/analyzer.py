# engine/analyzer.py - the single versioned analysis engine
"""Questions + Rules → AssessmentResult.

Data flows one way:

    questions, rules ─► [rule matcher, static pairs, pattern detector]
                     ─► findings ─► [aggregation, scoring] ─► result

The finding passes are read-only over the same immutable inputs, so with
``EngineOptions(parallel=True)`` they run on a thread pool; aggregation
and scoring wait for all of them (a plain join).  Findings are always
concatenated in pass registration order, so both paths return the same
result apart from the generated finding ids.

The engine never raises for business-data problems.  It raises
``TypeError`` only for structurally invalid arguments, including a rule
mapping with a missing key or an unknown enum value.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Sequence

from engine.aggregation import aggregate
from engine.scoring import score
from engine.telemetry import AnalysisTelemetry
from evaluators.registry import PassContext, enabled_passes, run_pass
from schemas.domain import AssessmentResult, Finding, Question, Rule

logger = logging.getLogger(__name__)

ENGINE_VERSION = "2.0.0"


@dataclass(frozen=True)
class EngineOptions:
    """Feature flags for one engine invocation."""
    include_rule_matcher: bool = True
    include_static_pairs: bool = True
    include_pattern_detector: bool = True
    include_aggregation: bool = True
    parallel: bool = False
    max_workers: int = 2
    cross_validation_pairs: tuple[Rule, ...] | None = None  # None → default pack

    def to_dict(self) -> dict[str, Any]:
        return {
            "include_rule_matcher": self.include_rule_matcher,
            "include_static_pairs": self.include_static_pairs,
            "include_pattern_detector": self.include_pattern_detector,
            "include_aggregation": self.include_aggregation,
            "parallel": self.parallel,
        }


def _coerce_sequence(value: Any, name: str, item_type: type, factory) -> tuple:
    """Accept a list/tuple of entities or mappings; anything else is a bug."""
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")
    out = []
    for idx, item in enumerate(value):
        if isinstance(item, item_type):
            out.append(item)
        elif isinstance(item, Mapping):
            try:
                out.append(factory(item))
            except (KeyError, ValueError) as exc:
                raise TypeError(f"{name}[{idx}] is malformed: {exc}") from exc
        else:
            raise TypeError(f"{name}[{idx}] must be a {item_type.__name__} or mapping, got {type(item).__name__}")
    return tuple(out)


def _run_passes(ctx: PassContext, options: EngineOptions, telemetry: AnalysisTelemetry) -> list[Finding]:
    passes = enabled_passes(options)
    if options.parallel and len(passes) > 1:
        with ThreadPoolExecutor(max_workers=max(1, options.max_workers)) as pool:
            futures = [pool.submit(run_pass, p.pass_id, ctx) for p in passes]
            outcomes = [f.result() for f in futures]
    else:
        outcomes = [run_pass(p.pass_id, ctx) for p in passes]

    findings: list[Finding] = []
    for outcome in outcomes:
        telemetry.record_pass(outcome["pass_id"], len(outcome["findings"]), outcome["duration_ms"])
        logger.debug("Pass %s produced %d findings", outcome["pass_id"], len(outcome["findings"]))
        findings.extend(outcome["findings"])
    return findings


def analyze(
    questions: Sequence[Question],
    rules: Sequence[Rule],
    *,
    options: EngineOptions | None = None,
    telemetry: AnalysisTelemetry | None = None,
) -> AssessmentResult:
    """Evaluate a completed questionnaire against the rule table.

    Pure function of *questions*, *rules* and *options*: no input is
    mutated and nothing is retained between calls.
    """
    opts = options or EngineOptions()
    tel = telemetry if telemetry is not None else AnalysisTelemetry()

    question_list = _coerce_sequence(questions, "questions", Question, Question.from_dict)
    rule_list = _coerce_sequence(rules, "rules", Rule, Rule.from_dict)

    pairs: tuple[Rule, ...] = ()
    if opts.include_static_pairs:
        if opts.cross_validation_pairs is not None:
            pairs = tuple(opts.cross_validation_pairs)
        else:
            from rule_packs.loader import default_cross_validation_pairs
            pairs = default_cross_validation_pairs()

    tel.question_count = len(question_list)
    tel.rule_count = len(rule_list)
    tel.pair_count = len(pairs)
    tel.parallel = opts.parallel

    ctx = PassContext(questions=question_list, rules=rule_list, cross_validation_pairs=pairs)

    tel.start_phase("passes")
    findings = _run_passes(ctx, opts, tel)
    tel.end_phase("passes")

    tel.start_phase("aggregation")
    aspect_scores = aggregate(question_list, findings) if opts.include_aggregation else []
    tel.end_phase("aggregation")

    tel.start_phase("scoring")
    summary = score(question_list, findings)
    tel.end_phase("scoring")

    return AssessmentResult(
        total_questions=len(question_list),
        answered_questions=sum(1 for q in question_list if q.is_answered),
        consistent_answers=summary.consistent_count,
        inconsistent_answers=summary.inconsistent_count,
        honesty_score=summary.honesty_score,
        compliance_index=summary.compliance_index,
        major_findings=summary.major_count,
        minor_findings=summary.minor_count,
        findings=tuple(findings),
        aspect_scores=tuple(aspect_scores),
        engine_version=ENGINE_VERSION,
        options=opts.to_dict(),
    )
