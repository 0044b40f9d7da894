"""Engine primitives for composing and running build plans."""

from buildkit.engine.orchestrator import (
    BuildOrchestrator,
    BuildReport,
    DefaultStageRecorder,
    NullStageRecorder,
    StageOutcome,
    StageRecorder,
    utc_now_iso8601,
)
from buildkit.engine.plan import BuildPlan, StageGroup, parallel, series

__all__ = [
    "BuildOrchestrator",
    "BuildPlan",
    "BuildReport",
    "DefaultStageRecorder",
    "NullStageRecorder",
    "StageGroup",
    "StageOutcome",
    "StageRecorder",
    "parallel",
    "series",
    "utc_now_iso8601",
]
