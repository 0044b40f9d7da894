from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from buildkit.engine.orchestrator import BuildOrchestrator, BuildReport
from buildkit.engine.plan import BuildPlan
from buildkit.errors import BuildError, ServerError
from buildkit.reload import NullReloadNotifier, ReloadNotifier
from buildkit.stage_registry import StageRegistry
from buildkit.watch import WatchBinding, WatchSupervisor
from themekit import plans
from themekit.browser_sync import BrowserSyncNotifier
from themekit.foundation.config_io import load_config
from themekit.framework.config import BuildConfig, BuildMode
from themekit.stages.registry import build_stage_registry
from themekit.watcher import FileWatcher

logger = logging.getLogger("themekit")


@dataclass(frozen=True)
class BuildSession:
    config: BuildConfig
    registry: StageRegistry
    orchestrator: BuildOrchestrator


def load_build_config(project_dir: str | None, *, mode: BuildMode) -> BuildConfig:
    raw, meta = load_config(project_dir)
    config, warnings = BuildConfig.from_dict(raw, project_dir=meta["project_dir"], mode=mode)
    for warning in warnings:
        logger.warning("%s", warning)
    logger.info(
        "Project %s (mode=%s, dist=%s, revisioning=%s)",
        config.project_name,
        config.mode,
        config.relative_destination(),
        config.revisioning,
    )
    return config


def prepare_session(config: BuildConfig) -> BuildSession:
    registry = build_stage_registry(config)
    return BuildSession(
        config=config,
        registry=registry,
        orchestrator=BuildOrchestrator(registry, logger=logging.getLogger("buildkit")),
    )


def report_build_error(exc: BuildError) -> None:
    logger.error("%s", exc)
    for failure in exc.failures:
        logger.error("  %s: %s: %s", failure.stage_name, type(failure.cause).__name__, failure.cause)


def run_plan(session: BuildSession, plan: BuildPlan) -> BuildReport | None:
    """Run a one-shot plan; returns None when a group failed (already reported)."""

    try:
        return session.orchestrator.run_sync(plan, session.config)
    except BuildError as exc:
        report_build_error(exc)
        return None


def start_notifier(
    config: BuildConfig,
    factory: Callable[[BuildConfig], ReloadNotifier] = BrowserSyncNotifier,
) -> ReloadNotifier:
    """Open the live-reload channel; a failed start degrades to no live reload."""

    notifier = factory(config)
    try:
        notifier.init(config.browser_proxy_url)
    except ServerError as exc:
        logger.error("Live reload disabled: %s", exc)
        return NullReloadNotifier()
    return notifier


def _install_stop_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows or non-main thread: fall back to KeyboardInterrupt.
            pass


async def watch_session(
    session: BuildSession,
    bindings: Sequence[WatchBinding],
    *,
    notifier: ReloadNotifier | None = None,
    initial_plan: BuildPlan | None = None,
    stop: asyncio.Event | None = None,
    watcher_factory: Callable[..., Any] = FileWatcher,
) -> int:
    """Optionally build once, then re-run stages on change until stopped.

    Build failures are reported and the session keeps watching.
    """

    loop = asyncio.get_running_loop()
    stop = stop or asyncio.Event()
    _install_stop_handlers(loop, stop)
    notifier = notifier or NullReloadNotifier()

    watcher: Any = None
    supervisor: WatchSupervisor | None = None
    try:
        supervisor = WatchSupervisor(
            bindings,
            registry=session.registry,
            config=session.config,
            notifier=notifier,
            logger=logging.getLogger("themekit.watch"),
        )

        if initial_plan is not None:
            try:
                await session.orchestrator.run(initial_plan, session.config)
            except BuildError as exc:
                report_build_error(exc)
                logger.info("Waiting for changes to retry")

        watcher = watcher_factory(
            supervisor,
            project_root=session.config.project_root,
            ignore=(session.config.relative_destination(),),
        )
        watcher.start(loop)
        await stop.wait()
    finally:
        if watcher is not None:
            watcher.stop()
        if supervisor is not None:
            await supervisor.shutdown()
        notifier.close()
    return 0


def run_watch(
    session: BuildSession,
    bindings: Sequence[WatchBinding],
    *,
    notifier: ReloadNotifier | None = None,
    initial_plan: BuildPlan | None = None,
) -> int:
    try:
        return asyncio.run(
            watch_session(session, bindings, notifier=notifier, initial_plan=initial_plan)
        )
    except KeyboardInterrupt:
        logger.info("Interrupted; stopped watching")
        return 0


def run_default(session: BuildSession) -> int:
    bindings = plans.watch_bindings(session.registry, session.config)
    notifier = start_notifier(session.config)
    return run_watch(session, bindings, notifier=notifier, initial_plan=plans.BUILD_PLAN)


def run_html(session: BuildSession) -> int:
    bindings = plans.html_watch_bindings(session.registry, session.config)
    if not bindings:
        logger.error("PATHS.htmlAssets is empty; nothing to watch")
        return 1
    return run_watch(session, bindings)
