"""Terminal reporter rendering progress, failing logs and summaries."""
from __future__ import annotations

import time
from typing import Sequence

import click
from colorama import Fore, Style

from ocitest.core.models import Suite, TestCase
from ocitest.core.results import CaseResult, RunReport, RunState

from .base import Reporter


STATUS_COLORS = {
    "passed": Fore.GREEN,
    "failed": Fore.RED,
    "skipped": Fore.YELLOW,
}

STATUS_LABELS = {
    "passed": "PASS",
    "failed": "FAIL",
    "skipped": "SKIP",
}


class TerminalReporter(Reporter):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True) -> None:
        self._use_color = use_color
        self._start_time = 0.0

    def on_start(self, suite: Suite, scheduled: Sequence[TestCase]) -> None:
        self._start_time = time.perf_counter()
        click.echo(
            self._styled(
                f"Starting run: {len(scheduled)} case(s) from suite {suite.name}",
                color=Fore.CYAN,
            )
        )

    def on_build(self, missing: Sequence[TestCase]) -> None:
        click.echo(f"{len(missing)} case executable(s) missing, building the suite")

    def on_skip(self, result: CaseResult) -> None:
        click.echo(self._styled(f"Skip {result.case_id} because {result.reason}", color=Fore.YELLOW))

    def on_case_start(self, case: TestCase, index: int, total: int) -> None:
        click.echo(f"[{index}/{total}] Running {case.id}")

    def on_case_result(self, result: CaseResult, index: int, total: int) -> None:
        line = f"{self._label(result)} {result.case_id} ({result.duration_s:.2f}s)"
        if result.failed and result.reason:
            line += f": {result.reason}"
        click.echo(line)

    def on_failure(self, result: CaseResult, log_text: str) -> None:
        click.echo(self._styled(f"---- {result.log_path} ----", color=Fore.RED))
        click.echo(log_text, nl=not log_text.endswith("\n"))
        click.echo(self._styled(f"---- end of {result.case_id} ----", color=Fore.RED))

    def on_complete(self, report: RunReport) -> None:
        duration = time.perf_counter() - self._start_time
        executed = report.executed
        passed = sum(1 for result in executed if result.passed)
        failed = sum(1 for result in executed if result.failed)
        if report.state is RunState.FAILED and report.failed_case is None and report.error:
            click.echo(self._styled(f"Build failed: {report.error}", color=Fore.RED), err=True)
        color = Fore.GREEN if report.passed else Fore.RED
        click.echo(
            self._styled(
                f"Summary: {report.state.value.upper()} executed={len(executed)} passed={passed} "
                f"failed={failed} skipped={len(report.skipped)} duration={duration:.2f}s",
                color=color,
            )
        )

    def _label(self, result: CaseResult) -> str:
        status = result.verdict.value
        return self._styled(f"{STATUS_LABELS[status]:<4}", color=STATUS_COLORS.get(status, ""))

    def _styled(self, text: str, *, color: str = "") -> str:
        if not self._use_color or not color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"
