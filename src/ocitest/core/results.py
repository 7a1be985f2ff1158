"""Result data structures produced by the case runner and the run state machine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Verdict(str, Enum):
    PASS = "passed"
    FAIL = "failed"
    SKIPPED = "skipped"


class RunState(str, Enum):
    NOT_STARTED = "not-started"
    BUILDING = "building"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.PASSED, RunState.FAILED)


EXIT_OK = 0
EXIT_CASE_FAILURE = 1
EXIT_BUILD_FAILURE = 3


@dataclass
class CaseResult:
    """Outcome of a single case."""

    case_id: str
    verdict: Verdict
    exit_code: Optional[int] = None
    log_path: Optional[Path] = None
    reason: str = ""
    failures: int = 0
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def failed(self) -> bool:
        return self.verdict is Verdict.FAIL

    @property
    def skipped(self) -> bool:
        return self.verdict is Verdict.SKIPPED


@dataclass
class RunReport:
    """Aggregate outcome of a harness run; partial when the run failed fast."""

    state: RunState = RunState.NOT_STARTED
    results: List[CaseResult] = field(default_factory=list)
    failed_case: Optional[CaseResult] = None
    error: Optional[str] = None
    built: bool = False

    @property
    def passed(self) -> bool:
        return self.state is RunState.PASSED

    @property
    def executed(self) -> List[CaseResult]:
        return [result for result in self.results if not result.skipped]

    @property
    def skipped(self) -> List[CaseResult]:
        return [result for result in self.results if result.skipped]

    @property
    def exit_code(self) -> int:
        if self.state is RunState.PASSED:
            return EXIT_OK
        if self.failed_case is None and self.error is not None:
            return EXIT_BUILD_FAILURE
        return EXIT_CASE_FAILURE
