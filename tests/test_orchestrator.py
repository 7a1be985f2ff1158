from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Tuple

import pytest

from ocitest.core import (
    BuildConfig,
    CapabilityGate,
    CapabilityRule,
    CaseStatus,
    ConformanceRun,
    HostCapabilities,
    RunState,
    TestCase,
    Verdict,
    build_plan,
    select,
)
from ocitest.reporting import Reporter
from conftest import PASSING_CASE

FAILING_CASE = 'echo "1..1"\necho "not ok 1 - kill signal not delivered"\n'


class RecordingReporter(Reporter):
    def __init__(self) -> None:
        self.events: List[Tuple] = []

    def on_start(self, suite, scheduled) -> None:
        self.events.append(("start", tuple(case.id for case in scheduled)))

    def on_build(self, missing) -> None:
        self.events.append(("build", tuple(case.id for case in missing)))

    def on_skip(self, result) -> None:
        self.events.append(("skip", result.case_id))

    def on_case_start(self, case, index, total) -> None:
        self.events.append(("case", case.id, index, total))

    def on_case_result(self, result, index, total) -> None:
        self.events.append(("result", result.case_id, result.verdict))

    def on_failure(self, result, log_text) -> None:
        self.events.append(("failure", result.case_id, log_text))

    def on_complete(self, report) -> None:
        self.events.append(("complete", report.state))


def _memsw_rule(tmp_path: Path) -> CapabilityRule:
    return CapabilityRule(
        name="memsw",
        pattern=r"(memory|hugetlb)\.t$",
        requires=(tmp_path / "memory.memsw.limit_in_bytes",),
        reason="your environment doesn't support this test case",
    )


def _run(suite, runtime_target, context, tmp_path, **kwargs):
    run = ConformanceRun(suite, runtime_target, context, project_dir=tmp_path, **kwargs)
    return run.execute()


def test_all_cases_pass(tmp_path, make_suite, runtime_target, context) -> None:
    cases = ["create/create.t", "delete/delete.t", "state/state.t"]
    suite = make_suite(cases, scripts={case: PASSING_CASE for case in cases})
    report = _run(suite, runtime_target, context, tmp_path)
    assert report.state is RunState.PASSED
    assert report.exit_code == 0
    assert [result.case_id for result in report.executed] == cases
    for case in cases:
        assert (context.log_dir / f"{case}.log").exists()


def test_capability_skip_then_pass(tmp_path, make_suite, runtime_target, context) -> None:
    cases = ["create/create.t", "linux_cgroups_memory/linux_cgroups_memory.t", "state/state.t"]
    suite = make_suite(
        cases,
        scripts={case: PASSING_CASE for case in cases},
        rules=[_memsw_rule(tmp_path)],
    )
    reporter = RecordingReporter()
    report = _run(suite, runtime_target, context, tmp_path, reporter=reporter)
    assert report.state is RunState.PASSED
    assert [result.case_id for result in report.skipped] == ["linux_cgroups_memory/linux_cgroups_memory.t"]
    assert report.skipped[0].reason == "your environment doesn't support this test case"
    assert not (context.log_dir / "linux_cgroups_memory" / "linux_cgroups_memory.t.log").exists()
    assert ("skip", "linux_cgroups_memory/linux_cgroups_memory.t") in reporter.events


def test_first_failure_stops_the_run(tmp_path, make_suite, runtime_target, context) -> None:
    cases = ["create/create.t", "kill/kill.t", "state/state.t"]
    suite = make_suite(
        cases,
        scripts={"create/create.t": PASSING_CASE, "kill/kill.t": FAILING_CASE, "state/state.t": PASSING_CASE},
    )
    reporter = RecordingReporter()
    report = _run(suite, runtime_target, context, tmp_path, reporter=reporter)
    assert report.state is RunState.FAILED
    assert report.exit_code == 1
    assert report.failed_case is not None and report.failed_case.case_id == "kill/kill.t"
    assert [result.case_id for result in report.executed] == ["create/create.t", "kill/kill.t"]
    assert not (context.log_dir / "state" / "state.t.log").exists()
    failure = [event for event in reporter.events if event[0] == "failure"]
    assert failure == [("failure", "kill/kill.t", "1..1\nnot ok 1 - kill signal not delivered\n")]


def test_pattern_runs_only_matching_cases(tmp_path, make_suite, runtime_target, context) -> None:
    cases = ["create/create.t", "kill/kill.t", "delete/delete.t", "kill_no_effect/kill_no_effect.t"]
    suite = make_suite(cases, scripts={case: PASSING_CASE for case in cases})
    report = _run(suite, runtime_target, replace(context, pattern="kill"), tmp_path)
    assert report.state is RunState.PASSED
    assert [result.case_id for result in report.executed] == ["kill/kill.t", "kill_no_effect/kill_no_effect.t"]
    assert not (context.log_dir / "create").exists()


def test_pattern_matching_nothing_passes_vacuously(tmp_path, make_suite, runtime_target, context) -> None:
    suite = make_suite(["create/create.t"], scripts={"create/create.t": PASSING_CASE})
    report = _run(suite, runtime_target, replace(context, pattern="no_such_case"), tmp_path)
    assert report.state is RunState.PASSED
    assert report.executed == []


def test_build_failure_runs_nothing(tmp_path, make_suite, runtime_target, context, script) -> None:
    build_script = script(tmp_path / "build.sh", "echo 'make: *** no rule'\nexit 2\n")
    suite = make_suite(
        ["create/create.t", "state/state.t"],
        scripts={"create/create.t": PASSING_CASE},
        build=BuildConfig(command=("sh", str(build_script))),
    )
    reporter = RecordingReporter()
    report = _run(suite, runtime_target, context, tmp_path, reporter=reporter)
    assert report.state is RunState.FAILED
    assert report.exit_code == 3
    assert report.results == []
    assert "no rule" in report.error
    assert not context.log_dir.exists()
    assert [event[0] for event in reporter.events] == ["start", "build", "complete"]
    assert reporter.events[1] == ("build", ("state/state.t",))


def test_build_runs_once_before_the_first_case(tmp_path, make_suite, runtime_target, context, script) -> None:
    build_script = script(
        tmp_path / "build.sh",
        """
        mkdir -p validation/state
        printf '#!/bin/sh\\necho ok 1\\n' > validation/state/state.t
        chmod +x validation/state/state.t
        """,
    )
    suite = make_suite(
        ["create/create.t", "state/state.t"],
        scripts={"create/create.t": PASSING_CASE},
        build=BuildConfig(command=("sh", str(build_script))),
    )
    report = _run(suite, runtime_target, context, tmp_path)
    assert report.built is True
    assert report.state is RunState.PASSED


def test_excluded_cases_are_never_scheduled(tmp_path, make_suite, runtime_target, context) -> None:
    excluded = TestCase(id="start/start.t", status=CaseStatus.KNOWN_FAILURE, reason="runc fails it too")
    suite = make_suite(["create/create.t", excluded], scripts={"create/create.t": PASSING_CASE})
    gate = CapabilityGate([], HostCapabilities())
    plan = build_plan(suite, gate, "start")
    assert plan.entries == ()
    assert plan.excluded == (excluded,)
    report = _run(suite, runtime_target, context, tmp_path)
    assert all(result.case_id != "start/start.t" for result in report.results)


def test_gate_applies_before_the_pattern(tmp_path, make_suite) -> None:
    suite = make_suite(
        ["create/create.t", "linux_cgroups_memory/linux_cgroups_memory.t"],
        rules=[_memsw_rule(tmp_path)],
    )
    plan = build_plan(suite, CapabilityGate.for_host(suite.rules), "create")
    assert [case.id for case in plan.scheduled] == ["create/create.t"]
    assert [entry.case.id for entry in plan.skipped] == ["linux_cgroups_memory/linux_cgroups_memory.t"]


def test_reporter_event_order(tmp_path, make_suite, runtime_target, context) -> None:
    cases = ["create/create.t", "state/state.t"]
    suite = make_suite(cases, scripts={case: PASSING_CASE for case in cases})
    reporter = RecordingReporter()
    _run(suite, runtime_target, context, tmp_path, reporter=reporter)
    assert reporter.events == [
        ("start", tuple(cases)),
        ("case", "create/create.t", 1, 2),
        ("result", "create/create.t", Verdict.PASS),
        ("case", "state/state.t", 2, 2),
        ("result", "state/state.t", Verdict.PASS),
        ("complete", RunState.PASSED),
    ]


def test_repeated_runs_overwrite_logs(tmp_path, make_suite, runtime_target, context) -> None:
    suite = make_suite(["create/create.t"], scripts={"create/create.t": PASSING_CASE})
    first = _run(suite, runtime_target, context, tmp_path)
    first_log = (context.log_dir / "create" / "create.t.log").read_text(encoding="utf-8")
    second = _run(suite, runtime_target, context, tmp_path)
    assert first.state is second.state is RunState.PASSED
    assert (context.log_dir / "create" / "create.t.log").read_text(encoding="utf-8") == first_log


def test_run_executes_only_once(tmp_path, make_suite, runtime_target, context) -> None:
    suite = make_suite(["create/create.t"], scripts={"create/create.t": PASSING_CASE})
    run = ConformanceRun(suite, runtime_target, context, project_dir=tmp_path)
    run.execute()
    with pytest.raises(RuntimeError, match="only be executed once"):
        run.execute()


@pytest.mark.parametrize("pattern", [".", "kill", "^d", r"_no_effect\.t$", "nothing"])
def test_plan_schedules_exactly_the_selected_cases(tmp_path, make_suite, pattern) -> None:
    excluded = TestCase(id="kill_fail/kill_fail.t", status=CaseStatus.FLAKY, reason="hangs")
    suite = make_suite(["create/create.t", "kill/kill.t", excluded, "delete/delete.t", "kill_no_effect/kill_no_effect.t"])
    plan = build_plan(suite, CapabilityGate([], HostCapabilities()), pattern)
    assert plan.scheduled == select(suite.cases, pattern)
