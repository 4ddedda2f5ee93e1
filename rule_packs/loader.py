"""Rule pack loader: versioned, data-driven rule tables.

A pack lives under ``rule_packs/<name>/<version>/`` and holds:

  rules.json             operator condition→evidence rules (absence tolerant)
  cross_validation.json  static semantic pairs (exact match)

Both files share one shape, so both engine passes evaluate through the
same generic evaluator.  Question references are NOT checked here; the
engine resolves them at evaluation time and skips what it cannot find.

Usage:
    from rule_packs.loader import load_pack
    pack = load_pack("cobit", "v1.0")
    pack.rules, pack.cross_validation_pairs
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from schemas.domain import Rule, Strictness

logger = logging.getLogger(__name__)

_PACKS_ROOT = os.path.dirname(os.path.abspath(__file__))

RULES_FILE = "rules.json"
CROSS_VALIDATION_FILE = "cross_validation.json"


class RulePackError(Exception):
    """Raised when a pack file is missing or structurally invalid."""


@dataclass(frozen=True)
class RulePack:
    name: str
    version: str
    path: str
    rules: tuple[Rule, ...] = ()
    cross_validation_pairs: tuple[Rule, ...] = ()
    meta: dict[str, Any] = field(default_factory=dict)


def _read_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        raise RulePackError(f"Rule file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise RulePackError(f"Rule file {path} is not valid JSON: {exc}") from exc


def parse_rules(
    data: Any,
    *,
    source: str = "<memory>",
    default_strictness: Strictness | None = None,
) -> tuple[Rule, ...]:
    """Turn a JSON list (or ``{"rules": [...]}``) into Rule objects.

    ``default_strictness`` is applied to entries that do not declare one.
    """
    if isinstance(data, dict):
        data = data.get("rules", data.get("pairs"))
    if not isinstance(data, list):
        raise RulePackError(f"{source}: expected a list of rules, got {type(data).__name__}")

    rules: list[Rule] = []
    seen: set[str] = set()
    for idx, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise RulePackError(f"{source}[{idx}]: rule must be an object")
        if default_strictness is not None and "strictness" not in entry:
            entry = {**entry, "strictness": default_strictness.value}
        try:
            rule = Rule.from_dict(entry)
        except (KeyError, ValueError, TypeError) as exc:
            raise RulePackError(f"{source}[{idx}]: {exc}") from exc
        if rule.id in seen:
            raise RulePackError(f"{source}[{idx}]: duplicate rule id {rule.id!r}")
        seen.add(rule.id)
        rules.append(rule)
    return tuple(rules)


def load_rules_file(path: str, *, default_strictness: Strictness | None = None) -> tuple[Rule, ...]:
    return parse_rules(_read_json(path), source=path, default_strictness=default_strictness)


def pack_path(name: str, version: str) -> str:
    return os.path.join(_PACKS_ROOT, name, version)


def load_pack(name: str = "cobit", version: str = "v1.0") -> RulePack:
    """Load a rule pack from disk.  Raises RulePackError on bad content."""
    path = pack_path(name, version)
    if not os.path.isdir(path):
        raise RulePackError(f"Unknown rule pack {name}/{version} (looked in {path})")

    rules = load_rules_file(
        os.path.join(path, RULES_FILE),
        default_strictness=Strictness.ABSENCE_TOLERANT,
    )
    pairs = load_rules_file(
        os.path.join(path, CROSS_VALIDATION_FILE),
        default_strictness=Strictness.EXACT,
    )
    logger.debug("Loaded rule pack %s/%s: %d rules, %d pairs", name, version, len(rules), len(pairs))
    return RulePack(
        name=name,
        version=version,
        path=path,
        rules=rules,
        cross_validation_pairs=pairs,
        meta={"rule_count": len(rules), "pair_count": len(pairs)},
    )


# Cached at module level (immutable pack data)
_DEFAULT_PAIRS: tuple[Rule, ...] | None = None


def default_cross_validation_pairs() -> tuple[Rule, ...]:
    """Static pairs of the default pack, loaded once per process."""
    global _DEFAULT_PAIRS
    if _DEFAULT_PAIRS is None:
        _DEFAULT_PAIRS = load_pack().cross_validation_pairs
    return _DEFAULT_PAIRS
