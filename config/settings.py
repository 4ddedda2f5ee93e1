"""
Environment configuration for the CLI and the remote secondary validator.

- VALIDATOR_URL: chat-completions endpoint of the remote validator
- VALIDATOR_API_KEY: bearer token for that endpoint
- VALIDATOR_MODEL: model name (default: google/gemini-2.5-flash)
- VALIDATOR_TIMEOUT: request timeout in seconds (default: 60)
- RULE_PACK / RULE_PACK_VERSION: default rule pack (default: cobit / v1.0)
- Loads .env from project root when available.

The analysis engine reads none of these; its behaviour depends only on
its inputs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is <root>/config/
_ROOT = Path(__file__).resolve().parent.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_VALIDATOR_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"
DEFAULT_VALIDATOR_MODEL = "google/gemini-2.5-flash"
DEFAULT_VALIDATOR_TIMEOUT = 60.0


@dataclass(frozen=True)
class Settings:
    validator_url: str = DEFAULT_VALIDATOR_URL
    validator_api_key: str = ""
    validator_model: str = DEFAULT_VALIDATOR_MODEL
    validator_timeout: float = DEFAULT_VALIDATOR_TIMEOUT
    rule_pack: str = "cobit"
    rule_pack_version: str = "v1.0"


def load_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    load_dotenv(_ENV_PATH)


def _float_env(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_settings() -> Settings:
    """Return settings resolved from the environment (after .env)."""
    load_env()
    return Settings(
        validator_url=(os.getenv("VALIDATOR_URL") or DEFAULT_VALIDATOR_URL).strip(),
        validator_api_key=(os.getenv("VALIDATOR_API_KEY") or "").strip(),
        validator_model=(os.getenv("VALIDATOR_MODEL") or DEFAULT_VALIDATOR_MODEL).strip(),
        validator_timeout=_float_env("VALIDATOR_TIMEOUT", DEFAULT_VALIDATOR_TIMEOUT),
        rule_pack=(os.getenv("RULE_PACK") or "cobit").strip(),
        rule_pack_version=(os.getenv("RULE_PACK_VERSION") or "v1.0").strip(),
    )
