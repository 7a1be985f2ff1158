"""JSON reporter emitting structured run results."""
from __future__ import annotations

import datetime as dt
import json
import pathlib
import time
from typing import Any, Dict, Optional, Sequence

import click
from jsonschema import validate

from ocitest.core.models import Suite, TestCase
from ocitest.core.results import CaseResult, RunReport

from .base import Reporter
from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION


class JsonReporter(Reporter):
    """Writes the run to a JSON file (or stdout) validated against the schema."""

    def __init__(self, path: Optional[str] = None, *, runtime: Optional[str] = None) -> None:
        self._path = pathlib.Path(path) if path else None
        self._runtime = runtime
        self._suite: Suite | None = None
        self._start_time = 0.0

    def on_start(self, suite: Suite, scheduled: Sequence[TestCase]) -> None:
        self._suite = suite
        self._start_time = time.perf_counter()

    def on_complete(self, report: RunReport) -> None:
        if self._suite is None:
            return
        payload = build_payload(
            report,
            suite=self._suite.name,
            runtime=self._runtime,
            duration=time.perf_counter() - self._start_time,
        )
        validate(instance=payload, schema=JSON_SCHEMA_V1)
        text = json.dumps(payload, indent=2)
        if self._path is None:
            click.echo(text)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise RuntimeError(f"Failed to write JSON report to {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}")


def build_payload(
    report: RunReport, *, suite: str, runtime: Optional[str], duration: float
) -> Dict[str, Any]:
    executed = report.executed
    return {
        "schema_version": SCHEMA_VERSION,
        "generated_at": dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "suite": suite,
        "runtime": runtime,
        "summary": {
            "state": report.state.value,
            "executed": len(executed),
            "passed": sum(1 for result in executed if result.passed),
            "failed": sum(1 for result in executed if result.failed),
            "skipped": len(report.skipped),
            "failed_case": report.failed_case.case_id if report.failed_case else None,
            "error": report.error,
            "duration_s": duration,
        },
        "cases": [_case_to_dict(result) for result in report.results],
    }


def _case_to_dict(result: CaseResult) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "id": result.case_id,
        "verdict": result.verdict.value,
        "exit_code": result.exit_code,
        "log": str(result.log_path) if result.log_path else None,
        "failures": result.failures,
        "duration_ms": result.duration_s * 1000,
    }
    if result.reason:
        record["reason"] = result.reason
    return record
