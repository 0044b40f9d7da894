"""Error taxonomy for the build kernel.

Everything inherits from `BuildkitError` so callers can catch the whole family.
"""

from __future__ import annotations

from typing import Iterable, Sequence


class BuildkitError(Exception):
    """Base exception for build kernel failures."""


class DuplicateStageError(BuildkitError, ValueError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate stage name: {name}")


class UnknownStageError(BuildkitError, ValueError):
    """Raised when a plan or binding references a stage the registry cannot resolve."""

    def __init__(
        self,
        names: Sequence[str],
        *,
        available: Iterable[str] = (),
        suggestions: dict[str, tuple[str, ...]] | None = None,
        conflicted: Iterable[str] = (),
    ):
        self.names = tuple(names)
        self.available = tuple(available)
        self.suggestions = dict(suggestions or {})
        self.conflicted = tuple(conflicted)

        parts: list[str] = []
        for name in self.names:
            if name in self.conflicted:
                parts.append(f"{name} (registered more than once)")
                continue
            hints = self.suggestions.get(name)
            if hints:
                parts.append(f"{name} (did you mean: {', '.join(hints)}?)")
            else:
                parts.append(name)
        available_text = ", ".join(self.available) or "<none>"
        super().__init__(f"Unknown stage name(s): {', '.join(parts)} (available: {available_text})")


class StageExecutionError(BuildkitError):
    """A single stage run failed; `cause` holds the underlying exception."""

    def __init__(self, stage_name: str, cause: BaseException):
        self.stage_name = stage_name
        self.cause = cause
        super().__init__(f"Stage {stage_name} failed: {type(cause).__name__}: {cause}")


class BuildError(BuildkitError):
    """One or more stages of a plan group failed; later groups were not run."""

    def __init__(self, plan_name: str, group_index: int, failures: Sequence[StageExecutionError]):
        self.plan_name = plan_name
        self.group_index = group_index
        self.failures = tuple(failures)
        names = ", ".join(f.stage_name for f in self.failures) or "<none>"
        super().__init__(
            f"Build plan {plan_name} failed in group {group_index + 1}: {names}"
        )

    @property
    def stage_names(self) -> tuple[str, ...]:
        return tuple(f.stage_name for f in self.failures)


class WatchIOError(BuildkitError, OSError):
    def __init__(self, binding: str, reason: str):
        self.binding = binding
        self.reason = reason
        super().__init__(f"Watch binding {binding} failed: {reason}")


class ServerError(BuildkitError):
    """The live-reload server could not be started."""
