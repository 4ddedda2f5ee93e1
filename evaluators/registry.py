"""Finding-pass registry: maps pass ids to FindingPass instances.

Every producer of findings in the local engine is a registered pass.
The analyzer selects passes through its feature flags and concatenates
their output in registration order, so serial and parallel runs return
findings in the same order.

Usage:
    from evaluators.registry import PASSES, run_pass
    findings = run_pass("rule_matcher", ctx)
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Protocol

from engine.cross_validation import detect_parent_child_pattern, static_pair_findings
from engine.rule_matcher import match
from schemas.domain import Finding, Question, Rule


@dataclass(frozen=True)
class PassContext:
    """Read-only inputs shared by every pass of one analysis run."""
    questions: tuple[Question, ...]
    rules: tuple[Rule, ...]
    cross_validation_pairs: tuple[Rule, ...]


# ── Protocol all passes implement ─────────────────────────────────
class FindingPass(Protocol):
    pass_id: str
    option_flag: str   # EngineOptions attribute that enables the pass

    def run(self, ctx: PassContext) -> list[Finding]: ...


# ── Registry ──────────────────────────────────────────────────────
PASSES: dict[str, FindingPass] = {}


def register_pass(finding_pass: FindingPass) -> FindingPass:
    """Register a pass instance by its pass_id."""
    PASSES[finding_pass.pass_id] = finding_pass
    return finding_pass


def enabled_passes(options: Any) -> list[FindingPass]:
    """Passes whose option flag is truthy on *options*, in registration order."""
    return [p for p in PASSES.values() if getattr(options, p.option_flag, False)]


def run_pass(pass_id: str, ctx: PassContext) -> dict[str, Any]:
    """Run one pass and time it.

    Returns ``{"pass_id", "findings", "duration_ms"}``.
    """
    finding_pass = PASSES[pass_id]
    start = time.perf_counter_ns()
    findings = finding_pass.run(ctx)
    ms = (time.perf_counter_ns() - start) // 1_000_000
    return {"pass_id": pass_id, "findings": findings, "duration_ms": ms}


# ── Built-in passes ───────────────────────────────────────────────
class RuleMatcherPass:
    pass_id = "rule_matcher"
    option_flag = "include_rule_matcher"

    def run(self, ctx: PassContext) -> list[Finding]:
        return match(ctx.questions, ctx.rules)


class StaticPairPass:
    pass_id = "static_pairs"
    option_flag = "include_static_pairs"

    def run(self, ctx: PassContext) -> list[Finding]:
        return static_pair_findings(ctx.questions, ctx.cross_validation_pairs)


class PatternDetectorPass:
    pass_id = "pattern_detector"
    option_flag = "include_pattern_detector"

    def run(self, ctx: PassContext) -> list[Finding]:
        return detect_parent_child_pattern(ctx.questions)


register_pass(RuleMatcherPass())
register_pass(StaticPairPass())
register_pass(PatternDetectorPass())
