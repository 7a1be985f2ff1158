"""Host capability snapshot and the rules that gate cases on it."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence

from .models import CapabilityRule, TestCase

logger = logging.getLogger(__name__)

# Rules contributed by plugins through register_rule().
_registered_rules: List[CapabilityRule] = []


def register_rule(rule: CapabilityRule) -> None:
    if any(existing.name == rule.name for existing in _registered_rules):
        raise ValueError(f"Capability rule '{rule.name}' already registered")
    _registered_rules.append(rule)


def registered_rules() -> Sequence[CapabilityRule]:
    return tuple(_registered_rules)


def clear_registered_rules() -> None:
    _registered_rules.clear()


@dataclass(frozen=True)
class HostCapabilities:
    """Which of the probed host paths were present when the snapshot was taken."""

    present: FrozenSet[Path] = frozenset()

    @classmethod
    def probe(cls, rules: Iterable[CapabilityRule]) -> "HostCapabilities":
        paths = {path for rule in rules for path in rule.requires}
        present = frozenset(path for path in paths if path.exists())
        logger.debug("Probed %d capability path(s), %d present", len(paths), len(present))
        return cls(present=present)

    def has(self, path: Path) -> bool:
        return path in self.present


class CapabilityGate:
    """Table-driven eligibility check; first unmet rule wins."""

    def __init__(self, rules: Sequence[CapabilityRule], host: HostCapabilities) -> None:
        self._rules = tuple(rules)
        self._host = host

    @classmethod
    def for_host(cls, rules: Sequence[CapabilityRule]) -> "CapabilityGate":
        combined = tuple(rules) + registered_rules()
        return cls(combined, HostCapabilities.probe(combined))

    @property
    def rules(self) -> Sequence[CapabilityRule]:
        return self._rules

    def check(self, case: TestCase) -> Optional[CapabilityRule]:
        """Return the rule ``case`` fails on this host, or None when eligible."""

        for rule in self._rules:
            if not rule.applies_to(case):
                continue
            if not all(self._host.has(path) for path in rule.requires):
                return rule
        return None

    def eligible(self, case: TestCase) -> bool:
        return self.check(case) is None


def skip_reason(rule: CapabilityRule) -> str:
    if rule.reason:
        return rule.reason
    missing = ", ".join(str(path) for path in rule.requires)
    return f"missing host capability {rule.name} ({missing})"
