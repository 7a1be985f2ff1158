"""Build-if-missing step for the case executables."""
from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Sequence

from .errors import BuildError
from .models import Suite, TestCase

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_LINES = 40


class ArtifactMaterializer:
    """Runs the suite's build command at most once when any executable is missing."""

    def __init__(self, suite: Suite, *, project_dir: Path) -> None:
        self._suite = suite
        self._project_dir = project_dir

    def missing(self, cases: Sequence[TestCase]) -> List[TestCase]:
        return [case for case in cases if case.active and not self._suite.executable(case).exists()]

    def needs_build(self, cases: Sequence[TestCase]) -> bool:
        return any(case.active and not self._suite.executable(case).exists() for case in cases)

    def ensure_built(self, cases: Sequence[TestCase]) -> bool:
        """Build when needed; returns True if a build ran. Raises BuildError on failure."""

        if not self.needs_build(cases):
            return False
        build = self._suite.build
        if build is None:
            names = ", ".join(case.id for case in self.missing(cases)[:5])
            raise BuildError(f"Case executables missing ({names}) and the suite defines no build command")
        env = os.environ.copy()
        env.update(self._render_env(build.env))
        argv = list(build.command)
        logger.info("Building case executables: %s (cwd=%s)", " ".join(argv), self._suite.root)
        try:
            proc = subprocess.run(
                argv,
                cwd=str(self._suite.root),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise BuildError(f"Unable to launch build command '{' '.join(argv)}': {exc}") from exc
        if proc.returncode != 0:
            raise BuildError(
                f"Build command '{' '.join(argv)}' failed (exit code {proc.returncode})",
                exit_code=proc.returncode,
                output=_tail(proc.stdout or ""),
            )
        return True

    def _tokens(self) -> Dict[str, str]:
        return {"project": str(self._project_dir), "suite": str(self._suite.root)}

    def _render_env(self, values) -> Dict[str, str]:
        tokens = self._tokens()
        rendered: Dict[str, str] = {}
        for key, value in values.items():
            try:
                rendered[str(key)] = str(value).format(**tokens)
            except KeyError as exc:
                available = ", ".join(sorted(tokens))
                raise BuildError(
                    f"Unknown token {exc} in build env '{key}'. Available tokens: {available}"
                ) from exc
        return rendered


def _tail(text: str) -> str:
    lines = text.splitlines()
    return "\n".join(lines[-_OUTPUT_TAIL_LINES:])
