"""Reply content expectations used to decide pass/fail."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Outcome:
    ok: bool
    criteria: dict[str, bool]

    def describe_failure(self) -> str:
        missing = [name for name, hit in self.criteria.items() if not hit]
        return f"expectation not met: {', '.join(missing) or 'predicate returned false'}"


def _matches(pattern: str, text: str) -> bool:
    return re.search(pattern, text, flags=re.IGNORECASE) is not None


@dataclass(frozen=True, slots=True)
class ContainsAll:
    """Every pattern must match the reply text (case-insensitive)."""

    patterns: tuple[str, ...]

    def evaluate(self, text: str) -> Outcome:
        criteria = {p: _matches(p, text) for p in self.patterns}
        return Outcome(ok=all(criteria.values()), criteria=criteria)

    def to_dict(self) -> dict[str, Any]:
        return {"all": list(self.patterns)}


@dataclass(frozen=True, slots=True)
class ContainsAny:
    """At least one pattern must match the reply text (case-insensitive)."""

    patterns: tuple[str, ...]

    def evaluate(self, text: str) -> Outcome:
        criteria = {p: _matches(p, text) for p in self.patterns}
        return Outcome(ok=any(criteria.values()), criteria=criteria)

    def to_dict(self) -> dict[str, Any]:
        return {"any": list(self.patterns)}


@dataclass(frozen=True, slots=True)
class Custom:
    predicate: Callable[[str], bool]
    description: str = field(default="custom predicate")

    def evaluate(self, text: str) -> Outcome:
        ok = bool(self.predicate(text))
        return Outcome(ok=ok, criteria={self.description: ok})

    def to_dict(self) -> dict[str, Any]:
        return {"custom": self.description}


Expectation = ContainsAll | ContainsAny | Custom


def contains_all(*patterns: str) -> ContainsAll:
    return ContainsAll(patterns=tuple(patterns))


def contains_any(*patterns: str) -> ContainsAny:
    return ContainsAny(patterns=tuple(patterns))


def parse_expectation(raw: Any) -> Expectation:
    """Parse ``{"all": [...]}`` / ``{"any": [...]}`` or a bare ``"a|b"`` regex."""
    if isinstance(raw, str) and raw:
        return contains_any(raw)
    if isinstance(raw, dict):
        for key, factory in (("all", contains_all), ("any", contains_any)):
            patterns = raw.get(key)
            if isinstance(patterns, str) and patterns:
                return factory(patterns)
            if isinstance(patterns, list) and patterns:
                return factory(*(str(p) for p in patterns))
    raise ValueError(f"Unsupported expectation: {raw!r}")
