"""Execution engine for build plans.

This module is intentionally app-agnostic and must not import `themekit.*`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from buildkit.engine.plan import BuildPlan
from buildkit.errors import BuildError, StageExecutionError
from buildkit.stage_registry import StageRegistry
from buildkit.stage_types import Stage


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class StageOutcome:
    stage: Stage
    record: dict[str, Any]
    error: StageExecutionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    plan_name: str
    records: list[dict[str, Any]] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(str(r.get("name")) for r in self.records)


class StageRecorder(Protocol):
    def on_stage_start(self, stage: Stage, *, group: int | None) -> None:
        ...

    def on_stage_end(self, stage: Stage, record: dict[str, Any]) -> None:
        ...

    def on_stage_error(self, stage: Stage, exc: BaseException) -> None:
        ...


class DefaultStageRecorder:
    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger("buildkit")

    def on_stage_start(self, stage: Stage, *, group: int | None) -> None:
        tokens: list[str] = []
        if group is not None:
            tokens.append(f"group={group + 1}")
        if stage.output_subpath:
            tokens.append(f"output={stage.output_subpath}")
        tokens.append(f"source={stage.source}")
        self.logger.info("Starting '%s' (%s)", stage.name, ", ".join(tokens))

    def on_stage_end(self, stage: Stage, record: dict[str, Any]) -> None:
        duration = float(record.get("duration_s") or 0.0)
        if record.get("status") == "ok":
            self.logger.info("Finished '%s' after %.2f s", stage.name, duration)
        else:
            self.logger.error(
                "Errored '%s' after %.2f s: %s", stage.name, duration, record.get("error")
            )

    def on_stage_error(self, stage: Stage, exc: BaseException) -> None:
        self.logger.debug("Stage %s raised", stage.name, exc_info=exc)


class NullStageRecorder:
    def on_stage_start(self, stage: Stage, *, group: int | None) -> None:
        return

    def on_stage_end(self, stage: Stage, record: dict[str, Any]) -> None:
        return

    def on_stage_error(self, stage: Stage, exc: BaseException) -> None:
        return


class BuildOrchestrator:
    """Runs build plans group by group.

    Stages inside a group start together and the group finishes only when all of
    them have finished. A failing stage never cancels its siblings; every failure
    of the group is gathered into one `BuildError` and later groups are skipped.
    """

    def __init__(
        self,
        registry: StageRegistry,
        *,
        recorder: StageRecorder | None = None,
        logger: logging.Logger | None = None,
    ):
        self.registry = registry
        self.logger = logger or logging.getLogger("buildkit")
        self._recorder = recorder or DefaultStageRecorder(self.logger)
        self._validate_recorder(self._recorder)

    def _validate_recorder(self, recorder: StageRecorder) -> None:
        required = ("on_stage_start", "on_stage_end", "on_stage_error")
        for name in required:
            method = getattr(recorder, name, None)
            if method is None or not callable(method):
                raise TypeError(f"Stage recorder missing required method: {name}")

    def run_sync(self, plan: BuildPlan, config: Any) -> BuildReport:
        return asyncio.run(self.run(plan, config))

    async def run(self, plan: BuildPlan, config: Any) -> BuildReport:
        resolved_groups = self.registry.validate_plan(plan)

        report = BuildReport(plan_name=plan.name)
        started = time.perf_counter()
        self.logger.info(
            "Running plan '%s' (%s)",
            plan.name,
            " -> ".join("{" + ", ".join(g.names) + "}" for g in plan.groups),
        )

        for index, stages in enumerate(resolved_groups):
            outcomes = await self.run_group(stages, config, group=index)
            report.records.extend(outcome.record for outcome in outcomes)
            failures = [outcome.error for outcome in outcomes if outcome.error is not None]
            if failures:
                report.duration_s = time.perf_counter() - started
                raise BuildError(plan.name, index, failures)

        report.duration_s = time.perf_counter() - started
        self.logger.info("Finished plan '%s' after %.2f s", plan.name, report.duration_s)
        return report

    async def run_group(
        self, stages: Sequence[Stage], config: Any, *, group: int | None = None
    ) -> tuple[StageOutcome, ...]:
        if not stages:
            return ()
        outcomes = await asyncio.gather(
            *(self._run_stage(stage, config, group=group) for stage in stages)
        )
        return tuple(outcomes)

    async def _run_stage(self, stage: Stage, config: Any, *, group: int | None) -> StageOutcome:
        record: dict[str, Any] = {
            "name": stage.name,
            "group": group,
            "started_at": utc_now_iso8601(),
        }
        started = time.perf_counter()
        error: StageExecutionError | None = None

        try:
            self._recorder.on_stage_start(stage, group=group)
        except Exception:
            self.logger.exception("Stage recorder failed on start for %s", stage.name)

        try:
            if stage.is_async:
                await stage.run(config)
            else:
                result = await asyncio.to_thread(stage.run, config)
                if asyncio.iscoroutine(result):
                    await result
        except Exception as exc:
            error = StageExecutionError(stage.name, exc)
            error.__cause__ = exc
            try:
                self._recorder.on_stage_error(stage, exc)
            except Exception:
                self.logger.exception(
                    "Stage recorder failed during error handling for %s", stage.name
                )

        record["duration_s"] = round(time.perf_counter() - started, 6)
        record["status"] = "ok" if error is None else "error"
        record["error"] = None if error is None else f"{type(error.cause).__name__}: {error.cause}"

        try:
            self._recorder.on_stage_end(stage, record)
        except Exception:
            self.logger.exception("Stage recorder failed on end for %s", stage.name)

        return StageOutcome(stage=stage, record=record, error=error)
