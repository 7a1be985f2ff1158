"""Core dataclasses shared across ocitest subsystems."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

from .errors import RuntimeTargetError


class CaseStatus(str, Enum):
    """Catalog status of a conformance case."""

    ACTIVE = "active"
    KNOWN_FAILURE = "known-failure"
    ENVIRONMENT_LIMITATION = "environment-limitation"
    FLAKY = "flaky"

    @property
    def excluded(self) -> bool:
        return self is not CaseStatus.ACTIVE


@dataclass(frozen=True)
class TestCase:
    """One conformance scenario, addressed by its executable's relative path."""

    __test__ = False  # keep pytest from collecting this class

    id: str
    status: CaseStatus = CaseStatus.ACTIVE
    reason: str = ""

    @property
    def active(self) -> bool:
        return not self.status.excluded

    @property
    def name(self) -> str:
        return Path(self.id).stem


@dataclass(frozen=True)
class CapabilityRule:
    """Cases whose id matches ``pattern`` need every path in ``requires`` on the host."""

    name: str
    pattern: str
    requires: Tuple[Path, ...]
    reason: str = ""

    def applies_to(self, case: TestCase) -> bool:
        return re.search(self.pattern, case.id) is not None


@dataclass(frozen=True)
class BuildConfig:
    """External command that produces the case executables."""

    command: Tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Suite:
    """A resolved suite file: catalog plus the contracts needed to run it."""

    name: str
    root: Path
    executables_dir: Path
    runtime_env: str
    default_runtime: Optional[Path]
    debug_env: Mapping[str, str]
    failure_marker: str
    build: Optional[BuildConfig]
    rules: Sequence[CapabilityRule]
    cases: Sequence[TestCase]
    settle_delay: float = 1.0
    timeout: Optional[float] = None

    def executable(self, case: TestCase) -> Path:
        return self.executables_dir / case.id

    def active_cases(self) -> Tuple[TestCase, ...]:
        return tuple(case for case in self.cases if case.active)

    def excluded_cases(self) -> Tuple[TestCase, ...]:
        return tuple(case for case in self.cases if not case.active)


@dataclass(frozen=True)
class RuntimeTarget:
    """The container runtime binary under test."""

    path: Path

    @classmethod
    def resolve(cls, path: os.PathLike | str, *, base: Optional[Path] = None) -> "RuntimeTarget":
        candidate = Path(path).expanduser()
        if not candidate.is_absolute() and base is not None:
            candidate = base / candidate
        candidate = candidate.resolve()
        if not candidate.is_file():
            raise RuntimeTargetError(f"Runtime binary not found at {candidate}")
        if not os.access(candidate, os.X_OK):
            raise RuntimeTargetError(f"Runtime binary at {candidate} is not executable")
        return cls(path=candidate)


def default_privilege() -> Tuple[str, ...]:
    """``sudo`` unless the harness already runs as root."""

    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() == 0:
        return tuple()
    return ("sudo",)


@dataclass(frozen=True)
class ExecutionContext:
    """Per-run settings, built once from the invocation and never mutated."""

    log_dir: Path
    pattern: str = "."
    debug: bool = True
    settle_delay: float = 1.0
    timeout: Optional[float] = None
    privilege: Tuple[str, ...] = field(default_factory=default_privilege)

    def log_path(self, case: TestCase) -> Path:
        return self.log_dir / f"{case.id}.log"
