"""The fixed build topologies and the default watch bindings."""

from __future__ import annotations

from buildkit.engine.plan import BuildPlan, parallel, series
from buildkit.stage_registry import StageRegistry
from buildkit.watch import WatchBinding
from themekit.framework.config import BuildConfig
from themekit.stages import archive, clean, copy_assets, images, markup, phpcs, scripts, style

PHP_PATTERNS: tuple[str, ...] = ("**/*.php",)

BUILD_PLAN = series(
    "build",
    parallel(clean.NAME),
    parallel(style.NAME, markup.NAME, scripts.NAME, images.NAME, copy_assets.NAME),
)

PACKAGE_PLAN = BUILD_PLAN.then(archive.NAME, name="package")

LINT_PLAN = series("lint", parallel(phpcs.NAME))

PLANS: dict[str, BuildPlan] = {plan.name: plan for plan in (BUILD_PLAN, PACKAGE_PLAN, LINT_PLAN)}


def get_plan(name: str) -> BuildPlan:
    plan = PLANS.get((name or "").strip())
    if plan is None:
        available = ", ".join(sorted(PLANS)) or "<none>"
        raise ValueError(f"Unknown build plan: {name} (available: {available})")
    return plan


def watch_bindings(registry: StageRegistry, config: BuildConfig) -> tuple[WatchBinding, ...]:
    """Bindings for `default`: each producer stage re-runs on its own sources."""

    bindings: list[WatchBinding] = []
    for name in (copy_assets.NAME, style.NAME, images.NAME, scripts.NAME, markup.NAME):
        stage = registry.get(name)
        if not stage.watch_patterns:
            continue
        bindings.append(
            WatchBinding(
                name=name,
                patterns=stage.watch_patterns,
                stages=(name,),
                notify=True,
                inject=("*.css",) if name == style.NAME else (),
            )
        )
    bindings.append(WatchBinding(name="php", patterns=PHP_PATTERNS, stages=(), notify=True))
    return tuple(bindings)


def html_watch_bindings(registry: StageRegistry, config: BuildConfig) -> tuple[WatchBinding, ...]:
    stage = registry.get(markup.NAME)
    if not stage.watch_patterns:
        return ()
    return (WatchBinding(name=markup.NAME, patterns=stage.watch_patterns, stages=(markup.NAME,)),)
