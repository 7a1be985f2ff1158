"""Core models and helpers exposed at the package level."""
from .capabilities import CapabilityGate, HostCapabilities, register_rule
from .errors import BuildError, RuntimeTargetError, SuiteError
from .materializer import ArtifactMaterializer
from .models import (
    BuildConfig,
    CapabilityRule,
    CaseStatus,
    ExecutionContext,
    RuntimeTarget,
    Suite,
    TestCase,
)
from .orchestrator import ConformanceRun, RunPlan, build_plan
from .results import CaseResult, RunReport, RunState, Verdict
from .runner import CaseRunner
from .selection import select

__all__ = [
    "ArtifactMaterializer",
    "BuildConfig",
    "BuildError",
    "CapabilityGate",
    "CapabilityRule",
    "CaseResult",
    "CaseRunner",
    "CaseStatus",
    "ConformanceRun",
    "ExecutionContext",
    "HostCapabilities",
    "RunPlan",
    "RunReport",
    "RunState",
    "RuntimeTarget",
    "RuntimeTargetError",
    "Suite",
    "SuiteError",
    "TestCase",
    "Verdict",
    "build_plan",
    "register_rule",
    "select",
]
