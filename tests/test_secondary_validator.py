"""
Tests for the remote secondary validator client and its payload builder.

HTTP is mocked; no network access is needed.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from ai.build_validator_payload import MAX_TEXT_CHARS, build_validator_payload
from ai.secondary_validator import (
    EmptyQuestionnaireError,
    QuotaExhaustedError,
    RateLimitError,
    SecondaryValidator,
    SecondaryValidatorError,
    combine_for_display,
    default_report,
    extract_json,
)
from config.settings import Settings
from engine.analyzer import analyze

SETTINGS = Settings(validator_url="https://validator.test/v1/chat/completions",
                    validator_api_key="secret", validator_timeout=5.0)


def _response(status=200, content=None, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = "error body"
    if body is None:
        body = {"choices": [{"message": {"content": content}}]}
    resp.json.return_value = body
    return resp


def _validator(response=None, side_effect=None):
    session = MagicMock()
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = response
    return SecondaryValidator(SETTINGS, session=session), session


# --- Payload ---


def test_payload_keeps_answered_only(make_question):
    questions = [
        make_question("A.1", "affirmative", text="x" * 500, framework_ref="EDM01.01"),
        make_question("A.2", None),
        make_question("A.1.a", "negative", parent_id="A.1"),
    ]
    payload = build_validator_payload(questions)

    assert [p["id"] for p in payload] == ["A.1", "A.1.a"]
    assert len(payload[0]["text"]) == MAX_TEXT_CHARS
    assert payload[0]["answer"] == "affirmative"
    assert payload[1]["framework_ref"] == "N/A"
    assert payload[1]["parent_id"] == "A.1"


# --- Request / error signals ---


def test_empty_questionnaire_sends_nothing():
    validator, session = _validator(_response())
    with pytest.raises(EmptyQuestionnaireError):
        validator.validate([])
    session.post.assert_not_called()


def test_missing_api_key(committee_scenario):
    validator = SecondaryValidator(Settings(validator_api_key=""), session=MagicMock())
    with pytest.raises(SecondaryValidatorError, match="VALIDATOR_API_KEY"):
        validator.validate(committee_scenario)


def test_request_shape(committee_scenario):
    content = json.dumps({"findings": [], "overall_risk_level": "low", "consistency_score": 95})
    validator, session = _validator(_response(content=content))

    validator.validate(committee_scenario)

    args, kwargs = session.post.call_args
    assert args[0] == SETTINGS.validator_url
    assert kwargs["headers"]["Authorization"] == "Bearer secret"
    assert kwargs["timeout"] == 5.0
    body = kwargs["json"]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 4000
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert '"id": "A.5"' in body["messages"][1]["content"]


@pytest.mark.parametrize(
    "status, error",
    [(429, RateLimitError), (402, QuotaExhaustedError), (500, SecondaryValidatorError)],
)
def test_status_codes_map_to_errors(committee_scenario, status, error):
    validator, _ = _validator(_response(status=status))
    with pytest.raises(error):
        validator.validate(committee_scenario)


def test_rate_limit_is_a_validator_error():
    assert issubclass(RateLimitError, SecondaryValidatorError)
    assert issubclass(QuotaExhaustedError, SecondaryValidatorError)


def test_transport_failure(committee_scenario):
    validator, _ = _validator(side_effect=requests.ConnectionError("refused"))
    with pytest.raises(SecondaryValidatorError, match="refused"):
        validator.validate(committee_scenario)


def test_empty_content(committee_scenario):
    validator, _ = _validator(_response(content=""))
    with pytest.raises(SecondaryValidatorError, match="Empty"):
        validator.validate(committee_scenario)


def test_malformed_gateway_body(committee_scenario):
    validator, _ = _validator(_response(body={"unexpected": True}))
    with pytest.raises(SecondaryValidatorError, match="Malformed"):
        validator.validate(committee_scenario)


# --- Response handling ---


def test_fenced_json_is_normalised(committee_scenario):
    content = "Here you go:\n```json\n" + json.dumps({
        "findings": [{
            "finding_type": "manipulation_pattern",
            "severity": "MAJOR",
            "question_ids": ["A.5", "A.8"],
            "cobit_reference": "EDM01.02",
            "description": "Committee without minutes",
            "relationship_explanation": "A.8 evidences A.5",
        }, {
            "finding_type": "made_up",
            "severity": "low",
            "question_ids": "B.1",
        }],
        "overall_risk_level": "Severe",
        "consistency_score": 140,
        "framework_compliance_summary": {"EDM": {"score": -5, "issues": ["no minutes"]}},
    }) + "\n```"
    validator, _ = _validator(_response(content=content))

    report = validator.validate(committee_scenario)

    first, second = report["findings"]
    assert first["severity"] == "major"
    assert first["framework_reference"] == "EDM01.02"
    assert first["finding_type"] == "manipulation_pattern"
    assert second["finding_type"] == "logic_inconsistency"
    assert second["severity"] == "minor"
    assert second["question_ids"] == ["B.1"]
    assert report["overall_risk_level"] == "unknown"
    assert report["consistency_score"] == 100
    assert report["framework_compliance_summary"]["edm"] == {"score": 0, "issues": ["no minutes"]}


def test_unparsable_content_returns_neutral_report(committee_scenario):
    content = "I could not analyse this questionnaire. " * 30
    validator, _ = _validator(_response(content=content))

    report = validator.validate(committee_scenario)

    assert report["parse_error"] is True
    assert report["raw_response"] == content[:500]
    assert report["overall_risk_level"] == "low"
    assert report["consistency_score"] == 100
    assert set(report["framework_compliance_summary"]) == {"edm", "apo", "bai", "dss", "mea"}


def test_extract_json_plain_and_fenced():
    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('```\n{"a": 2}\n```') == {"a": 2}


def test_default_report_without_raw_content():
    assert "parse_error" not in default_report()


def test_uses_default_session_post(committee_scenario):
    content = json.dumps({"findings": [], "overall_risk_level": "medium", "consistency_score": 80})
    with patch.object(requests.Session, "post", return_value=_response(content=content)) as post:
        report = SecondaryValidator(SETTINGS).validate(committee_scenario)
    assert post.called
    assert report["overall_risk_level"] == "medium"


# --- Display merge ---


def test_combine_for_display_keeps_both_sides(committee_scenario):
    local = analyze(committee_scenario, [])
    remote = {
        "findings": [{"finding_type": "logic_inconsistency", "severity": "minor", "question_ids": ["A.5"]}],
        "overall_risk_level": "low",
        "consistency_score": 90,
        "framework_compliance_summary": {},
    }

    merged = combine_for_display(local, remote)

    assert [f["origin"] for f in merged["findings"]] == ["local", "remote"]
    assert merged["local_finding_count"] == 1
    assert merged["remote_finding_count"] == 1
    assert combine_for_display(local, None)["remote_finding_count"] == 0
