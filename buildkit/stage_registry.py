from __future__ import annotations

import difflib
from typing import TYPE_CHECKING, Any, Iterable

from buildkit.errors import DuplicateStageError, UnknownStageError
from buildkit.stage_types import Stage

if TYPE_CHECKING:
    from buildkit.engine.plan import BuildPlan


class StageRegistry:
    """Name -> Stage mapping.

    Append-only while the application wires itself up, read-only once frozen.
    A name registered twice is poisoned: neither registration resolves.
    """

    def __init__(self) -> None:
        self._by_name: dict[str, Stage] = {}
        self._conflicted: set[str] = set()
        self._frozen = False

    @classmethod
    def from_stages(cls, stages: Iterable[Stage]) -> "StageRegistry":
        registry = cls()
        for stage in stages:
            registry.register(stage)
        registry.freeze()
        return registry

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "StageRegistry":
        self._frozen = True
        return self

    def register(self, stage: Stage) -> None:
        if self._frozen:
            raise RuntimeError(f"Stage registry is frozen; cannot register {stage.name!r}")
        if not isinstance(stage, Stage):
            raise TypeError(f"Expected Stage (type={type(stage).__name__})")

        name = stage.name
        if name in self._conflicted:
            raise DuplicateStageError(name)
        if name in self._by_name:
            del self._by_name[name]
            self._conflicted.add(name)
            raise DuplicateStageError(name)
        self._by_name[name] = stage

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_name.keys()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip() in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def describe(self) -> tuple[dict[str, Any], ...]:
        rows: list[dict[str, Any]] = []
        for stage in sorted(self._by_name.values(), key=lambda s: s.name):
            rows.append(
                {
                    "name": stage.name,
                    "doc": stage.doc,
                    "source": stage.source,
                    "tags": list(stage.tags),
                    "inputs": list(stage.inputs),
                    "output_subpath": stage.output_subpath,
                    "watch_patterns": list(stage.watch_patterns),
                }
            )
        return tuple(rows)

    def get(self, name: str) -> Stage:
        return self.resolve([name])[0]

    def resolve(self, names: Iterable[str]) -> tuple[Stage, ...]:
        """Resolve names in order, reporting every unknown name at once."""

        keys: list[str] = []
        for raw in names:
            if not isinstance(raw, str) or not raw.strip():
                raise ValueError("stage names must be non-empty strings")
            keys.append(raw.strip())

        unknown = [key for key in keys if key not in self._by_name]
        if unknown:
            raise UnknownStageError(
                unknown,
                available=self.available(),
                suggestions={key: self.suggest(key) for key in unknown},
                conflicted=[key for key in unknown if key in self._conflicted],
            )
        return tuple(self._by_name[key] for key in keys)

    def validate_plan(self, plan: "BuildPlan") -> tuple[tuple[Stage, ...], ...]:
        """Resolve every group of a plan up front; nothing runs if a name is unknown."""

        unknown = [name for name in plan.stage_names() if name not in self._by_name]
        if unknown:
            raise UnknownStageError(
                unknown,
                available=self.available(),
                suggestions={name: self.suggest(name) for name in unknown},
                conflicted=[name for name in unknown if name in self._conflicted],
            )
        return tuple(self.resolve(group.names) for group in plan.groups)

    def suggest(self, name: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (name or "").strip()
        if not key:
            return ()
        return tuple(difflib.get_close_matches(key, list(self.available()), n=limit))
