"""Executes one conformance case against the runtime target."""
from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from typing import Callable, Dict, List

from .classifier import classify, read_log
from .models import ExecutionContext, RuntimeTarget, Suite, TestCase
from .results import CaseResult

logger = logging.getLogger(__name__)

EXIT_LAUNCH_FAILED = 127
EXIT_TIMED_OUT = 124
TERMINATE_GRACE_S = 5.0


class CaseRunner:
    """Runs cases one at a time: combined log per case, settle delay after each."""

    def __init__(
        self,
        suite: Suite,
        target: RuntimeTarget,
        context: ExecutionContext,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._suite = suite
        self._target = target
        self._context = context
        self._sleep = sleep

    def case_env(self) -> Dict[str, str]:
        env = {self._suite.runtime_env: str(self._target.path)}
        if self._context.debug:
            env.update(self._suite.debug_env)
        return env

    def command(self, case: TestCase) -> List[str]:
        executable = str(self._suite.executable(case))
        if not self._context.privilege:
            return [executable]
        # sudo drops the caller's environment; pass assignments as arguments instead.
        assignments = [f"{key}={value}" for key, value in self.case_env().items()]
        return [*self._context.privilege, *assignments, executable]

    def run(self, case: TestCase) -> CaseResult:
        log_path = self._context.log_path(case)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        env = os.environ.copy()
        env.update(self.case_env())
        argv = self.command(case)
        logger.debug("Executing %s", " ".join(argv))
        start = time.perf_counter()
        try:
            with log_path.open("w", encoding="utf-8") as log_file:
                exit_code = self._execute(argv, env, log_file)
        finally:
            self._sleep(self._context.settle_delay)
        duration = time.perf_counter() - start
        outcome = classify(exit_code, read_log(log_path), marker=self._suite.failure_marker)
        logger.debug("%s -> %s (exit %s)", case.id, outcome.verdict.value, exit_code)
        return CaseResult(
            case_id=case.id,
            verdict=outcome.verdict,
            exit_code=exit_code,
            log_path=log_path,
            reason=outcome.reason,
            failures=outcome.failures,
            duration_s=duration,
        )

    def _execute(self, argv: List[str], env: Dict[str, str], log_file) -> int:
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(self._suite.root),
                env=env,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            log_file.write(f"ocitest: unable to launch {argv[0]}: {exc}\n")
            return EXIT_LAUNCH_FAILED
        try:
            return proc.wait(timeout=self._context.timeout)
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %ss, stopping it", argv[-1], self._context.timeout)
            _stop(proc)
            log_file.seek(0, os.SEEK_END)
            log_file.write(f"\nocitest: case timed out after {self._context.timeout}s\n")
            return EXIT_TIMED_OUT


def _stop(proc: subprocess.Popen) -> None:
    """Terminate the case's whole process group, then kill whatever is left."""

    # sudo relays SIGTERM to the case but cannot relay SIGKILL.
    _signal_group(proc, signal.SIGTERM)
    try:
        proc.wait(timeout=TERMINATE_GRACE_S)
    except subprocess.TimeoutExpired:
        _signal_group(proc, signal.SIGKILL)
        proc.wait()
    # Children that outlived the session leader still hold its process group.
    _signal_group(proc, signal.SIGKILL)


def _signal_group(proc: subprocess.Popen, sig: int) -> None:
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        return
    except PermissionError:
        # Root-owned children of sudo; signal the wrapper directly.
        if proc.poll() is None:
            proc.send_signal(sig)
