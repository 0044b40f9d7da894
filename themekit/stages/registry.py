from __future__ import annotations

from buildkit.stage_registry import StageRegistry
from themekit.framework.config import BuildConfig


def build_stage_registry(config: BuildConfig) -> StageRegistry:
    # Every stage module exposes `stage(config) -> Stage`; this is the single
    # place where the theme stages are collected.
    from themekit.stages import STAGE_MODULES  # noqa: PLC0415

    return StageRegistry.from_stages(module.stage(config) for module in STAGE_MODULES)
