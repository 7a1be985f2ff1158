"""Pass/fail judgment over a case's exit status and captured log."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .results import Verdict

DEFAULT_FAILURE_MARKER = "not ok"


@dataclass(frozen=True)
class Classification:
    verdict: Verdict
    failures: int
    reason: str = ""


def count_failure_lines(text: str, marker: str = DEFAULT_FAILURE_MARKER) -> int:
    return sum(1 for line in text.splitlines() if marker in line)


def classify(
    exit_code: Optional[int],
    log_text: str,
    *,
    marker: str = DEFAULT_FAILURE_MARKER,
) -> Classification:
    failures = count_failure_lines(log_text, marker)
    if exit_code != 0:
        return Classification(
            verdict=Verdict.FAIL,
            failures=failures,
            reason=f"exited with status {exit_code}",
        )
    if failures:
        return Classification(
            verdict=Verdict.FAIL,
            failures=failures,
            reason=f"{failures} '{marker}' line(s) in output",
        )
    return Classification(verdict=Verdict.PASS, failures=0)


def read_log(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8", errors="replace")
