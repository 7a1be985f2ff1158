"""Reporter interface definitions."""
from __future__ import annotations

from typing import List, Sequence

from ocitest.core.models import Suite, TestCase
from ocitest.core.results import CaseResult, RunReport


class Reporter:
    """Interface for output renderers. Every hook is optional."""

    def on_start(self, suite: Suite, scheduled: Sequence[TestCase]) -> None:
        pass

    def on_build(self, missing: Sequence[TestCase]) -> None:
        pass

    def on_skip(self, result: CaseResult) -> None:
        pass

    def on_case_start(self, case: TestCase, index: int, total: int) -> None:
        pass

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        pass

    def on_failure(self, result: CaseResult, log_text: str) -> None:
        pass

    def on_complete(self, report: RunReport) -> None:
        pass


class ReportManager(Reporter):
    """Dispatches lifecycle callbacks to multiple reporters."""

    def __init__(self, reporters: Sequence[Reporter]) -> None:
        self._reporters = list(reporters)

    def on_start(self, suite: Suite, scheduled: Sequence[TestCase]) -> None:
        for reporter in self._reporters:
            reporter.on_start(suite, scheduled)

    def on_build(self, missing: Sequence[TestCase]) -> None:
        for reporter in self._reporters:
            reporter.on_build(missing)

    def on_skip(self, result: CaseResult) -> None:
        for reporter in self._reporters:
            reporter.on_skip(result)

    def on_case_start(self, case: TestCase, index: int, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_case_start(case, index, total)

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_case_result(result, index, total)

    def on_failure(self, result: CaseResult, log_text: str) -> None:
        for reporter in self._reporters:
            reporter.on_failure(result, log_text)

    def on_complete(self, report: RunReport) -> None:
        for reporter in self._reporters:
            reporter.on_complete(report)

    def reporters(self) -> List[Reporter]:
        return list(self._reporters)
