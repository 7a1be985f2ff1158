"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "ocitest report",
    "type": "object",
    "required": ["schema_version", "generated_at", "suite", "runtime", "summary", "cases"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "suite": {"type": "string"},
        "runtime": {"type": ["string", "null"]},
        "summary": {
            "type": "object",
            "required": ["state", "executed", "passed", "failed", "skipped", "duration_s"],
            "properties": {
                "state": {"type": "string"},
                "executed": {"type": "integer"},
                "passed": {"type": "integer"},
                "failed": {"type": "integer"},
                "skipped": {"type": "integer"},
                "failed_case": {"type": ["string", "null"]},
                "error": {"type": ["string", "null"]},
                "duration_s": {"type": "number"},
            },
        },
        "cases": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "verdict", "duration_ms"],
                "properties": {
                    "id": {"type": "string"},
                    "verdict": {"enum": ["passed", "failed", "skipped"]},
                    "exit_code": {"type": ["integer", "null"]},
                    "log": {"type": ["string", "null"]},
                    "reason": {"type": "string"},
                    "failures": {"type": "integer"},
                    "duration_ms": {"type": "number"},
                },
            },
        },
    },
}
