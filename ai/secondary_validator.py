"""Remote secondary validator: independent LLM re-analysis of the answers.

The local engine never calls this module.  The caller triggers it next
to ``engine.analyzer.analyze`` and shows both reports; the two may
disagree and no ordering or consistency is guaranteed between them.

Error signals the caller must special-case:
  RateLimitError        HTTP 429 - retry later
  QuotaExhaustedError   HTTP 402 - credits exhausted
  SecondaryValidatorError  any other failure

Usage:
    from ai.secondary_validator import SecondaryValidator
    report = SecondaryValidator(get_settings()).validate(questions)
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Sequence

import requests

from ai.build_validator_payload import build_validator_payload, framework_reference_text
from config.settings import Settings
from schemas.domain import AssessmentResult, DomainCompliance, Question, SecondaryReport
from schemas.taxonomy import ALL_FRAMEWORK_DOMAINS

logger = logging.getLogger(__name__)

FINDING_TYPES = ("logic_inconsistency", "manipulation_pattern", "insufficient_evidence", "framework_violation")
RISK_LEVELS = ("low", "medium", "high", "critical")

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


class SecondaryValidatorError(Exception):
    """Generic remote validator failure."""


class RateLimitError(SecondaryValidatorError):
    """The remote service is rate limiting requests."""


class QuotaExhaustedError(SecondaryValidatorError):
    """The remote service quota / credits are exhausted."""


class EmptyQuestionnaireError(SecondaryValidatorError):
    """Nothing to validate."""


SYSTEM_PROMPT = """You are a professional IT auditor and an expert in the COBIT 2019 framework for IT governance.

{framework}

Analyse the answers of an IT governance assessment and detect:
1. LOGIC INCONSISTENCY: answers that contradict each other (e.g. a policy is claimed but never reviewed)
2. MANIPULATION PATTERN: suspicious answer patterns (e.g. main questions "affirmative" while their sub-questions are "negative")
3. INSUFFICIENT EVIDENCE: positive claims without logical supporting answers
4. FRAMEWORK VIOLATION: answers that violate COBIT 2019 principles

For every finding provide:
- finding_type: 'logic_inconsistency' | 'manipulation_pattern' | 'insufficient_evidence' | 'framework_violation'
- severity: 'major' | 'minor'
- question_ids: array of related question ids
- framework_reference: the violated framework reference (e.g. "EDM01.01", "APO12.02")
- description: detailed explanation of the inconsistency
- relationship_explanation: how the related questions depend on each other
- recommendation: remediation advice

Focus on cross-validation between related answers."""

USER_PROMPT = """Analyse the following assessment answers and identify every inconsistency and potential fraud:

{payload}

Answer with JSON of this shape:
{{
  "findings": [...],
  "overall_risk_level": "low" | "medium" | "high" | "critical",
  "consistency_score": 0-100,
  "framework_compliance_summary": {{
    "edm": {{ "score": 0-100, "issues": [] }},
    "apo": {{ "score": 0-100, "issues": [] }},
    "bai": {{ "score": 0-100, "issues": [] }},
    "dss": {{ "score": 0-100, "issues": [] }},
    "mea": {{ "score": 0-100, "issues": [] }}
  }}
}}"""


# ── Response normalisation ────────────────────────────────────────

def _clamp_score(raw: Any, default: int = 0) -> int:
    try:
        value = int(round(float(raw)))
    except (TypeError, ValueError):
        return default
    return max(0, min(100, value))


def default_report(raw_content: str | None = None) -> SecondaryReport:
    """Neutral report used when the model's answer cannot be parsed."""
    report: SecondaryReport = {
        "findings": [],
        "overall_risk_level": "low",
        "consistency_score": 100,
        "framework_compliance_summary": {
            d.lower(): {"score": 100, "issues": []} for d in ALL_FRAMEWORK_DOMAINS
        },
    }
    if raw_content is not None:
        report["parse_error"] = True
        report["raw_response"] = raw_content[:500]
    return report


def extract_json(content: str) -> Any:
    """Parse JSON from the model output, unwrapping a fenced block if present."""
    match = _FENCED_JSON_RE.search(content)
    text = match.group(1).strip() if match else content.strip()
    return json.loads(text)


def normalize_report(data: Any) -> SecondaryReport:
    if not isinstance(data, dict):
        raise ValueError("validator response is not a JSON object")

    findings = []
    for f in data.get("findings") or []:
        if not isinstance(f, dict):
            continue
        ids = f.get("question_ids") or []
        findings.append({
            "finding_type": f.get("finding_type") if f.get("finding_type") in FINDING_TYPES else "logic_inconsistency",
            "severity": "major" if str(f.get("severity", "")).lower() == "major" else "minor",
            "question_ids": [str(i) for i in ids] if isinstance(ids, list) else [str(ids)],
            "framework_reference": str(f.get("framework_reference") or f.get("cobit_reference") or ""),
            "description": str(f.get("description", "")),
            "recommendation": str(f.get("recommendation", "")),
            "relationship_explanation": str(f.get("relationship_explanation", "")),
        })

    risk = str(data.get("overall_risk_level", "")).lower()
    raw_summary = data.get("framework_compliance_summary") or data.get("cobit_compliance_summary") or {}
    summary: dict[str, DomainCompliance] = {}
    if isinstance(raw_summary, dict):
        for domain, entry in raw_summary.items():
            entry = entry if isinstance(entry, dict) else {}
            issues = entry.get("issues") or []
            summary[str(domain).lower()] = {
                "score": _clamp_score(entry.get("score")),
                "issues": [str(i) for i in issues] if isinstance(issues, list) else [str(issues)],
            }

    return {
        "findings": findings,
        "overall_risk_level": risk if risk in RISK_LEVELS else "unknown",
        "consistency_score": _clamp_score(data.get("consistency_score")),
        "framework_compliance_summary": summary,
    }


# ── Client ────────────────────────────────────────────────────────

class SecondaryValidator:
    """Thin client for an OpenAI-compatible chat-completions gateway."""

    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def _request_body(self, payload: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "model": self.settings.validator_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT.format(framework=framework_reference_text())},
                {"role": "user", "content": USER_PROMPT.format(payload=json.dumps(payload, indent=2))},
            ],
            "temperature": 0.3,
            "max_tokens": 4000,
        }

    def validate(self, questions: Sequence[Question]) -> SecondaryReport:
        if not questions:
            raise EmptyQuestionnaireError("No questions to validate; answer the questionnaire first")
        if not self.settings.validator_api_key:
            raise SecondaryValidatorError("VALIDATOR_API_KEY is not configured")

        payload = build_validator_payload(questions)
        logger.info("Requesting secondary validation for %d answered questions", len(payload))

        try:
            response = self.session.post(
                self.settings.validator_url,
                headers={
                    "Authorization": f"Bearer {self.settings.validator_api_key}",
                    "Content-Type": "application/json",
                },
                json=self._request_body(payload),
                timeout=self.settings.validator_timeout,
            )
        except requests.RequestException as exc:
            raise SecondaryValidatorError(f"Validator request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded. Please try again in a moment.")
        if response.status_code == 402:
            raise QuotaExhaustedError("Validator credits exhausted. Please add credits to continue.")
        if not response.ok:
            logger.warning("Validator error %s: %s", response.status_code, response.text[:300])
            raise SecondaryValidatorError(f"Validator gateway error: {response.status_code}")

        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SecondaryValidatorError("Malformed response from validator gateway") from exc
        if not content:
            raise SecondaryValidatorError("Empty response from validator")

        try:
            report = normalize_report(extract_json(content))
        except ValueError:
            logger.warning("Could not parse validator answer; returning neutral report")
            return default_report(raw_content=content)

        logger.info("Secondary validation completed: %d findings", len(report["findings"]))
        return report


# ── Display merge ─────────────────────────────────────────────────

def combine_for_display(local: AssessmentResult, remote: SecondaryReport | None) -> dict[str, Any]:
    """Put the local and remote reports side by side.

    No reconciliation: both finding lists are kept in full and tagged
    with their source.
    """
    findings = [{**f.to_dict(), "origin": "local"} for f in local.findings]
    if remote:
        findings.extend({**f, "origin": "remote"} for f in remote.get("findings", []))
    return {
        "local": local.to_dict(),
        "remote": remote,
        "findings": findings,
        "local_finding_count": len(local.findings),
        "remote_finding_count": len(remote.get("findings", [])) if remote else 0,
    }
