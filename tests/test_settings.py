"""
Tests for environment-driven settings.
"""

from __future__ import annotations

from config.settings import (
    DEFAULT_VALIDATOR_MODEL,
    DEFAULT_VALIDATOR_TIMEOUT,
    DEFAULT_VALIDATOR_URL,
    get_settings,
)

_VARS = ("VALIDATOR_URL", "VALIDATOR_API_KEY", "VALIDATOR_MODEL", "VALIDATOR_TIMEOUT",
         "RULE_PACK", "RULE_PACK_VERSION")


def test_defaults(monkeypatch):
    for name in _VARS:
        monkeypatch.setenv(name, "")
    s = get_settings()
    assert s.validator_url == DEFAULT_VALIDATOR_URL
    assert s.validator_api_key == ""
    assert s.validator_model == DEFAULT_VALIDATOR_MODEL
    assert s.validator_timeout == DEFAULT_VALIDATOR_TIMEOUT
    assert (s.rule_pack, s.rule_pack_version) == ("cobit", "v1.0")


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("VALIDATOR_URL", " https://example.test/chat ")
    monkeypatch.setenv("VALIDATOR_API_KEY", "k-123")
    monkeypatch.setenv("VALIDATOR_MODEL", "custom/model")
    monkeypatch.setenv("VALIDATOR_TIMEOUT", "12.5")
    monkeypatch.setenv("RULE_PACK", "custom")
    monkeypatch.setenv("RULE_PACK_VERSION", "v2.0")

    s = get_settings()

    assert s.validator_url == "https://example.test/chat"
    assert s.validator_api_key == "k-123"
    assert s.validator_model == "custom/model"
    assert s.validator_timeout == 12.5
    assert (s.rule_pack, s.rule_pack_version) == ("custom", "v2.0")


def test_invalid_timeout_falls_back(monkeypatch):
    monkeypatch.setenv("VALIDATOR_TIMEOUT", "soon")
    assert get_settings().validator_timeout == DEFAULT_VALIDATOR_TIMEOUT
