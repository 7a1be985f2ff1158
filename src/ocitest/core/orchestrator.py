"""Run state machine: gate, filter, build once, run in order, stop at the first failure."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from .capabilities import CapabilityGate, skip_reason
from .classifier import read_log
from .errors import BuildError
from .materializer import ArtifactMaterializer
from .models import CapabilityRule, ExecutionContext, RuntimeTarget, Suite, TestCase
from .results import CaseResult, RunReport, RunState, Verdict
from .runner import CaseRunner
from .selection import case_filter

if TYPE_CHECKING:
    from ocitest.reporting.base import Reporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedCase:
    case: TestCase
    blocked_by: Optional[CapabilityRule] = None

    @property
    def runnable(self) -> bool:
        return self.blocked_by is None


@dataclass(frozen=True)
class RunPlan:
    """Catalog order, with exclusions and non-matching cases already removed."""

    entries: Tuple[PlannedCase, ...] = field(default_factory=tuple)
    excluded: Tuple[TestCase, ...] = field(default_factory=tuple)

    @property
    def scheduled(self) -> Tuple[TestCase, ...]:
        return tuple(entry.case for entry in self.entries if entry.runnable)

    @property
    def skipped(self) -> Tuple[PlannedCase, ...]:
        return tuple(entry for entry in self.entries if not entry.runnable)


def build_plan(suite: Suite, gate: CapabilityGate, pattern: Optional[str]) -> RunPlan:
    matches = case_filter(pattern)
    entries: List[PlannedCase] = []
    excluded: List[TestCase] = []
    for case in suite.cases:
        if not case.active:
            logger.debug("Excluded %s (%s): %s", case.id, case.status.value, case.reason)
            excluded.append(case)
            continue
        rule = gate.check(case)
        if rule is not None:
            entries.append(PlannedCase(case=case, blocked_by=rule))
            continue
        if not matches(case):
            continue
        entries.append(PlannedCase(case=case))
    return RunPlan(entries=tuple(entries), excluded=tuple(excluded))


class ConformanceRun:
    """One harness invocation: NotStarted -> [Building] -> Running -> Passed | Failed."""

    def __init__(
        self,
        suite: Suite,
        target: RuntimeTarget,
        context: ExecutionContext,
        *,
        project_dir: Path,
        reporter: Optional["Reporter"] = None,
        gate: Optional[CapabilityGate] = None,
        materializer: Optional[ArtifactMaterializer] = None,
        runner: Optional[CaseRunner] = None,
    ) -> None:
        # ocitest.reporting imports ocitest.core
        from ocitest.reporting.base import Reporter

        self._suite = suite
        self._context = context
        self._reporter = reporter or Reporter()
        self._gate = gate or CapabilityGate.for_host(suite.rules)
        self._materializer = materializer or ArtifactMaterializer(suite, project_dir=project_dir)
        self._runner = runner or CaseRunner(suite, target, context)
        self._report = RunReport()

    @property
    def report(self) -> RunReport:
        return self._report

    def plan(self) -> RunPlan:
        return build_plan(self._suite, self._gate, self._context.pattern)

    def execute(self) -> RunReport:
        if self._report.state is not RunState.NOT_STARTED:
            raise RuntimeError("A conformance run can only be executed once")
        plan = self.plan()
        self._reporter.on_start(self._suite, plan.scheduled)

        if self._materializer.needs_build(self._suite.cases):
            self._transition(RunState.BUILDING)
            self._reporter.on_build(self._materializer.missing(self._suite.cases))
            try:
                self._report.built = self._materializer.ensure_built(self._suite.cases)
            except BuildError as exc:
                logger.error("%s", exc)
                self._report.error = _build_error_text(exc)
                self._transition(RunState.FAILED)
                self._reporter.on_complete(self._report)
                return self._report

        self._transition(RunState.RUNNING)
        total = len(plan.scheduled)
        index = 0
        for entry in plan.entries:
            if not entry.runnable:
                result = CaseResult(
                    case_id=entry.case.id,
                    verdict=Verdict.SKIPPED,
                    reason=skip_reason(entry.blocked_by),
                )
                self._report.results.append(result)
                self._reporter.on_skip(result)
                continue
            index += 1
            self._reporter.on_case_start(entry.case, index, total)
            result = self._runner.run(entry.case)
            self._report.results.append(result)
            self._reporter.on_case_result(result, index, total)
            if result.failed:
                self._report.failed_case = result
                self._reporter.on_failure(result, read_log(result.log_path) if result.log_path else "")
                self._transition(RunState.FAILED)
                break
        else:
            self._transition(RunState.PASSED)

        self._reporter.on_complete(self._report)
        return self._report

    def _transition(self, state: RunState) -> None:
        logger.debug("Run state %s -> %s", self._report.state.value, state.value)
        self._report.state = state


def _build_error_text(exc: BuildError) -> str:
    if exc.output:
        return f"{exc}\n{exc.output}"
    return str(exc)
