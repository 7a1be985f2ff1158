"""Suite file loading."""

from .loader import SUITE_SCHEMA, default_suite_path, load_suite

__all__ = [
    "SUITE_SCHEMA",
    "default_suite_path",
    "load_suite",
]
