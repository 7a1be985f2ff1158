"""Exception types raised by the harness."""
from __future__ import annotations

from typing import Optional


class SuiteError(ValueError):
    """Suite file is malformed or semantically invalid."""


class RuntimeTargetError(RuntimeError):
    """Runtime binary is missing or not executable."""


class BuildError(RuntimeError):
    """The external build of the case executables failed."""

    def __init__(self, message: str, *, exit_code: Optional[int] = None, output: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
