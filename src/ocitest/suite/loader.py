"""YAML loader and validation for suite files."""
from __future__ import annotations

import re
import shlex
from importlib import resources
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from jsonschema import Draft7Validator

from ocitest.core.errors import SuiteError
from ocitest.core.models import BuildConfig, CapabilityRule, CaseStatus, Suite, TestCase

DEFAULT_SUITE = "runtime_tools.yaml"


def default_suite_path() -> Path:
    return Path(str(resources.files("ocitest.suite") / "data" / DEFAULT_SUITE))


def load_suite(path: Optional[str | Path] = None, *, project_dir: Optional[Path] = None) -> Suite:
    """Load and validate a suite file; relative paths resolve against ``project_dir``."""

    suite_path = Path(path).expanduser().resolve() if path else default_suite_path()
    base = (project_dir or Path.cwd()).resolve()
    try:
        raw = yaml.safe_load(suite_path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise SuiteError(f"Unable to read suite file {suite_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SuiteError(f"Suite file {suite_path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise SuiteError("Suite file must contain a mapping at the top level")
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise SuiteError(f"Suite schema validation failed: {messages}")

    root = _resolve(base, _require_str(raw, "root"))
    runtime = raw.get("runtime") or {}
    default_runtime = runtime.get("default")
    timeout = raw.get("timeout")
    return Suite(
        name=str(raw.get("name") or suite_path.stem),
        root=root,
        executables_dir=_resolve(root, str(raw.get("executables", "."))),
        runtime_env=str(runtime.get("env", "RUNTIME")),
        default_runtime=_resolve(base, str(default_runtime)) if default_runtime else None,
        debug_env={str(k): str(v) for k, v in (raw.get("debug_env") or {}).items()},
        failure_marker=str(raw.get("failure_marker", "not ok")),
        build=_parse_build(raw.get("build")),
        rules=_parse_rules(raw.get("capabilities")),
        cases=_parse_cases(raw["cases"]),
        settle_delay=float(raw.get("settle_delay", 1.0)),
        timeout=float(timeout) if timeout is not None else None,
    )


def _resolve(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def _require_str(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str):
        raise SuiteError(f"Missing required string field '{key}'")
    text = value.strip()
    if not text:
        raise SuiteError(f"Field '{key}' cannot be empty")
    return text


def _parse_build(raw: Any) -> Optional[BuildConfig]:
    if raw is None:
        return None
    command = raw["command"]
    try:
        argv = tuple(shlex.split(command)) if isinstance(command, str) else tuple(str(part) for part in command)
    except ValueError as exc:
        raise SuiteError(f"build.command cannot be parsed: {exc}") from exc
    if not argv:
        raise SuiteError("build.command cannot be empty")
    env = {str(k): str(v) for k, v in (raw.get("env") or {}).items()}
    return BuildConfig(command=argv, env=env)


def _parse_rules(raw: Any) -> tuple[CapabilityRule, ...]:
    rules: list[CapabilityRule] = []
    seen: set[str] = set()
    for entry in raw or []:
        name = _require_str(entry, "name")
        if name in seen:
            raise SuiteError(f"Duplicate capability rule '{name}'")
        seen.add(name)
        pattern = _require_str(entry, "pattern")
        try:
            re.compile(pattern)
        except re.error as exc:
            raise SuiteError(f"Capability rule '{name}' has an invalid pattern: {exc}") from exc
        rules.append(
            CapabilityRule(
                name=name,
                pattern=pattern,
                requires=tuple(Path(str(item)) for item in entry["requires"]),
                reason=str(entry.get("reason", "")),
            )
        )
    return tuple(rules)


def _parse_cases(raw: Any) -> tuple[TestCase, ...]:
    cases: list[TestCase] = []
    seen: set[str] = set()
    for entry in raw:
        if isinstance(entry, str):
            entry = {"id": entry}
        case_id = _require_str(entry, "id")
        if case_id in seen:
            raise SuiteError(f"Duplicate case id '{case_id}'")
        seen.add(case_id)
        status_name = entry.get("status", CaseStatus.ACTIVE.value)
        try:
            status = CaseStatus(status_name)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in CaseStatus)
            raise SuiteError(f"Case '{case_id}' has unknown status '{status_name}' (allowed: {allowed})") from exc
        reason = str(entry.get("reason") or "").strip()
        if status.excluded and not reason:
            raise SuiteError(f"Excluded case '{case_id}' must record a reason")
        cases.append(TestCase(id=case_id, status=status, reason=reason))
    return tuple(cases)


_CASE_SCHEMA = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "status": {"type": "string"},
                "reason": {"type": "string"},
            },
            "additionalProperties": False,
        },
    ]
}

SUITE_SCHEMA = {
    "type": "object",
    "required": ["root", "cases"],
    "properties": {
        "name": {"type": "string"},
        "root": {"type": "string", "minLength": 1},
        "executables": {"type": "string"},
        "failure_marker": {"type": "string", "minLength": 1},
        "settle_delay": {"type": "number", "minimum": 0},
        "timeout": {"type": ["number", "null"], "exclusiveMinimum": 0},
        "runtime": {
            "type": "object",
            "properties": {
                "env": {"type": "string", "minLength": 1},
                "default": {"type": "string"},
            },
        },
        "debug_env": {"type": "object", "additionalProperties": {"type": ["string", "number", "boolean"]}},
        "build": {
            "type": "object",
            "required": ["command"],
            "properties": {
                "command": {"type": ["string", "array"], "items": {"type": "string"}},
                "env": {"type": "object"},
            },
        },
        "capabilities": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "pattern", "requires"],
                "properties": {
                    "name": {"type": "string"},
                    "pattern": {"type": "string"},
                    "requires": {"type": "array", "minItems": 1, "items": {"type": "string"}},
                    "reason": {"type": "string"},
                },
            },
        },
        "cases": {"type": "array", "items": _CASE_SCHEMA},
    },
}
_validator = Draft7Validator(SUITE_SCHEMA)
