"""Runtime telemetry for the analysis engine.

Collects per-phase timing and per-pass finding counts that the CLI
prints and embeds in the run JSON for operational visibility.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field, asdict
from typing import Any


@dataclass
class AnalysisTelemetry:
    """Accumulates metrics throughout a single analyze() call."""

    question_count: int = 0
    rule_count: int = 0
    pair_count: int = 0

    # Per pass: finding count and duration
    pass_findings: dict[str, int] = field(default_factory=dict)
    pass_duration_ms: dict[str, int] = field(default_factory=dict)
    parallel: bool = False

    # Phase timing (in seconds)
    phase_passes_sec: float = 0.0
    phase_aggregation_sec: float = 0.0
    phase_scoring_sec: float = 0.0

    # Internal timing helpers (not serialized)
    _phase_starts: dict[str, float] = field(default_factory=dict, repr=False)

    def start_phase(self, name: str) -> None:
        self._phase_starts[name] = time.perf_counter()

    def end_phase(self, name: str) -> None:
        start = self._phase_starts.pop(name, None)
        if start is not None:
            elapsed = round(time.perf_counter() - start, 4)
            attr = f"phase_{name}_sec"
            if hasattr(self, attr):
                setattr(self, attr, elapsed)

    def record_pass(self, pass_id: str, findings: int, duration_ms: int) -> None:
        self.pass_findings[pass_id] = findings
        self.pass_duration_ms[pass_id] = duration_ms

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d.pop("_phase_starts", None)
        return d

    def summary_lines(self) -> list[str]:
        """Human-readable summary for terminal output."""
        passes = ", ".join(
            f"{pid}={count}" for pid, count in self.pass_findings.items()
        ) or "none"
        return [
            f"  Inputs:           {self.question_count} questions,"
            f" {self.rule_count} rules, {self.pair_count} static pairs",
            f"  Passes:           {passes}"
            f"  ({'parallel' if self.parallel else 'serial'})",
            f"  Phases:           passes={self.phase_passes_sec}s"
            f"  aggregation={self.phase_aggregation_sec}s"
            f"  scoring={self.phase_scoring_sec}s",
        ]
