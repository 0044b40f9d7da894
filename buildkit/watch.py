"""Watch supervision.

Each binding runs its own small state machine:

    IDLE -> TRIGGERED -> RUNNING -> IDLE

Events that arrive while a binding is TRIGGERED or RUNNING only set a pending
flag, so any burst of changes during a run costs exactly one more run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Sequence

from buildkit.engine.orchestrator import BuildOrchestrator, NullStageRecorder
from buildkit.errors import WatchIOError
from buildkit.globs import matches
from buildkit.reload import NullReloadNotifier, ReloadNotifier
from buildkit.stage_registry import StageRegistry
from buildkit.stage_types import Stage

CHANGE_KINDS: tuple[str, ...] = ("created", "modified", "deleted", "moved")


class BindingState(str, Enum):
    IDLE = "idle"
    TRIGGERED = "triggered"
    RUNNING = "running"
    DISABLED = "disabled"


@dataclass(frozen=True)
class WatchBinding:
    name: str
    patterns: tuple[str, ...]
    stages: tuple[str, ...] = ()
    notify: bool = True
    inject: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("WatchBinding.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())
        for attr in ("patterns", "stages", "inject"):
            value = getattr(self, attr)
            if isinstance(value, str):
                value = (value,)
            cleaned = tuple(str(item).strip() for item in value if str(item).strip())
            object.__setattr__(self, attr, cleaned)
        if not self.patterns:
            raise ValueError(f"Watch binding {self.name} has no patterns")
        if not self.stages and not self.notify:
            raise ValueError(f"Watch binding {self.name} neither runs stages nor notifies")

    def matches(self, path: str) -> bool:
        return matches(path, self.patterns)


@dataclass
class _BindingRuntime:
    binding: WatchBinding
    stages: tuple[Stage, ...]
    state: BindingState = BindingState.IDLE
    pending: bool = False
    runs: int = 0
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class WatchSupervisor:
    def __init__(
        self,
        bindings: Iterable[WatchBinding],
        *,
        registry: StageRegistry,
        config: Any,
        notifier: ReloadNotifier | None = None,
        orchestrator: BuildOrchestrator | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or logging.getLogger("buildkit.watch")
        self.config = config
        self.notifier: ReloadNotifier = notifier or NullReloadNotifier()
        self.orchestrator = orchestrator or BuildOrchestrator(
            registry, recorder=NullStageRecorder(), logger=self.logger
        )

        self._runtimes: dict[str, _BindingRuntime] = {}
        for binding in bindings:
            if binding.name in self._runtimes:
                raise ValueError(f"Duplicate watch binding name: {binding.name}")
            stages = registry.resolve(binding.stages) if binding.stages else ()
            self._runtimes[binding.name] = _BindingRuntime(binding=binding, stages=stages)

        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def bindings(self) -> tuple[WatchBinding, ...]:
        return tuple(rt.binding for rt in self._runtimes.values())

    @property
    def closed(self) -> bool:
        return self._closed

    def state(self, name: str) -> BindingState:
        return self._runtime(name).state

    def run_count(self, name: str) -> int:
        return self._runtime(name).runs

    def _runtime(self, name: str) -> _BindingRuntime:
        runtime = self._runtimes.get(name)
        if runtime is None:
            raise KeyError(f"Unknown watch binding: {name}")
        return runtime

    def dispatch(self, path: str, kind: str = "modified") -> tuple[str, ...]:
        """Route one file-system event; must be called on the event loop thread."""

        if kind not in CHANGE_KINDS:
            raise ValueError(f"Unknown change kind: {kind!r} (expected one of {', '.join(CHANGE_KINDS)})")
        if self._closed:
            return ()

        if kind == "deleted":
            self.logger.info("File %s was removed.", path)
        elif kind == "created":
            self.logger.info("File %s was added.", path)
        else:
            self.logger.info("File %s changed.", path)

        triggered: list[str] = []
        for runtime in self._runtimes.values():
            if runtime.state is BindingState.DISABLED:
                continue
            if not runtime.binding.matches(path):
                continue
            triggered.append(runtime.binding.name)
            self._trigger(runtime)

        if not triggered:
            self.logger.debug("No watch binding matches %s", path)
        return tuple(triggered)

    def disable(self, name: str, error: WatchIOError | None = None) -> None:
        runtime = self._runtime(name)
        runtime.state = BindingState.DISABLED
        runtime.pending = False
        if error is not None:
            self.logger.error("%s; binding disabled", error)
        else:
            self.logger.warning("Watch binding %s disabled", name)

    def _trigger(self, runtime: _BindingRuntime) -> None:
        if runtime.state is BindingState.IDLE:
            runtime.state = BindingState.TRIGGERED
            task = asyncio.get_running_loop().create_task(self._cycle(runtime))
            runtime.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return
        runtime.pending = True
        self.logger.debug("Queued another run for watch binding %s", runtime.binding.name)

    async def _cycle(self, runtime: _BindingRuntime) -> None:
        binding = runtime.binding
        try:
            while runtime.state is not BindingState.DISABLED:
                runtime.state = BindingState.RUNNING
                runtime.pending = False

                if runtime.stages:
                    outcomes = await self.orchestrator.run_group(runtime.stages, self.config)
                    for outcome in outcomes:
                        if outcome.error is not None:
                            self.logger.error(
                                "Watch binding %s: %s", binding.name, outcome.error
                            )
                        else:
                            self.logger.info(
                                "Rebuilt '%s' after %.2f s",
                                outcome.stage.name,
                                float(outcome.record.get("duration_s") or 0.0),
                            )
                runtime.runs += 1

                if binding.notify:
                    await self._notify(binding.inject)

                if not runtime.pending or self._closed:
                    break
        finally:
            if runtime.state is not BindingState.DISABLED:
                runtime.state = BindingState.IDLE
            runtime.pending = False
            runtime.task = None

    async def _notify(self, files: Sequence[str]) -> None:
        try:
            await asyncio.to_thread(self.notifier.notify_reload, tuple(files))
        except Exception:
            self.logger.warning("Reload notification failed", exc_info=True)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Stop accepting events and let in-flight runs finish."""

        self._closed = True
        for runtime in self._runtimes.values():
            runtime.pending = False
        await self.wait_idle()
        self.logger.info("Watch supervisor stopped")
