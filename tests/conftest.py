from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence, Union

import pytest

from ocitest.core import BuildConfig, CapabilityRule, ExecutionContext, RuntimeTarget, Suite, TestCase
from ocitest.core.capabilities import clear_registered_rules

PASSING_CASE = """
echo "1..2"
echo "ok 1 - runtime is $RUNTIME"
echo "ok 2 - backtrace=${RUST_BACKTRACE:-unset}"
"""


def write_script(path: Path, body: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip("\n"), encoding="utf-8")
    path.chmod(path.stat().st_mode | 0o111)
    return path


@pytest.fixture(autouse=True)
def reset_registered_rules():
    """Plugin-registered capability rules are process-global."""

    yield
    clear_registered_rules()


@pytest.fixture(autouse=True)
def isolate_debug_env(monkeypatch):
    """Keep an ambient RUST_BACKTRACE from leaking into case scripts."""

    monkeypatch.delenv("RUST_BACKTRACE", raising=False)


@pytest.fixture
def runtime_target(tmp_path: Path) -> RuntimeTarget:
    binary = write_script(tmp_path / "bin" / "fake-runtime", "exit 0\n")
    return RuntimeTarget.resolve(binary)


@pytest.fixture
def make_suite(tmp_path: Path) -> Callable[..., Suite]:
    def _make(
        cases: Sequence[Union[str, TestCase]],
        *,
        scripts: Optional[Mapping[str, str]] = None,
        rules: Sequence[CapabilityRule] = (),
        build: Optional[BuildConfig] = None,
    ) -> Suite:
        root = tmp_path / "suite"
        executables = root / "validation"
        executables.mkdir(parents=True, exist_ok=True)
        for case_id, body in (scripts or {}).items():
            write_script(executables / case_id, body)
        return Suite(
            name="fake",
            root=root,
            executables_dir=executables,
            runtime_env="RUNTIME",
            default_runtime=None,
            debug_env={"RUST_BACKTRACE": "1"},
            failure_marker="not ok",
            build=build,
            rules=tuple(rules),
            cases=tuple(case if isinstance(case, TestCase) else TestCase(id=case) for case in cases),
            settle_delay=0.0,
        )

    return _make


@pytest.fixture
def context(tmp_path: Path) -> ExecutionContext:
    return ExecutionContext(log_dir=tmp_path / "log", settle_delay=0.0, privilege=())


@pytest.fixture
def script() -> Callable[[Path, str], Path]:
    return write_script
