"""Reusable build kernel: stages, registry, plans, orchestrator and watch supervision.

This package is intentionally independent of `themekit.*`. Anything that knows
about themes, Sass or browser-sync lives in the consuming application.
"""

from buildkit.engine.orchestrator import (
    BuildOrchestrator,
    BuildReport,
    DefaultStageRecorder,
    NullStageRecorder,
    StageOutcome,
    StageRecorder,
)
from buildkit.engine.plan import BuildPlan, StageGroup, parallel, series
from buildkit.errors import (
    BuildError,
    BuildkitError,
    DuplicateStageError,
    ServerError,
    StageExecutionError,
    UnknownStageError,
    WatchIOError,
)
from buildkit.reload import NullReloadNotifier, ReloadNotifier
from buildkit.stage_registry import StageRegistry
from buildkit.stage_types import Stage
from buildkit.watch import BindingState, WatchBinding, WatchSupervisor

__all__ = [
    "BindingState",
    "BuildError",
    "BuildOrchestrator",
    "BuildPlan",
    "BuildReport",
    "BuildkitError",
    "DefaultStageRecorder",
    "DuplicateStageError",
    "NullReloadNotifier",
    "NullStageRecorder",
    "ReloadNotifier",
    "ServerError",
    "Stage",
    "StageExecutionError",
    "StageGroup",
    "StageOutcome",
    "StageRecorder",
    "StageRegistry",
    "UnknownStageError",
    "WatchBinding",
    "WatchIOError",
    "WatchSupervisor",
    "parallel",
    "series",
]
