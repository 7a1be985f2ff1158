"""Narrowing the catalog to the cases requested on the command line."""
from __future__ import annotations

import re
from typing import Callable, Sequence, Tuple

from .models import TestCase

MATCH_ALL = "."


def compile_pattern(pattern: str | None) -> "re.Pattern[str] | None":
    """Compile a selection pattern; ``None`` means every case matches."""

    if not pattern or pattern == MATCH_ALL:
        return None
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid selection pattern '{pattern}': {exc}") from exc


def case_filter(pattern: str | None) -> Callable[[TestCase], bool]:
    """Predicate matching a case id against ``pattern`` anywhere in the id."""

    compiled = compile_pattern(pattern)
    if compiled is None:
        return lambda case: True
    return lambda case: compiled.search(case.id) is not None


def select(cases: Sequence[TestCase], pattern: str | None) -> Tuple[TestCase, ...]:
    """Active cases matching ``pattern``, in catalog order."""

    matches = case_filter(pattern)
    return tuple(case for case in cases if case.active and matches(case))
