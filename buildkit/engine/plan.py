"""Build plan composition.

A plan is an ordered sequence of stage groups. Groups run one after another;
the stages inside a group are independent and may run concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class StageGroup:
    names: tuple[str, ...]

    def __post_init__(self) -> None:
        if isinstance(self.names, str):
            raise TypeError("StageGroup.names must be a sequence of stage names, not a string")
        names: list[str] = []
        for name in self.names:
            if not isinstance(name, str) or not name.strip():
                raise TypeError("StageGroup names must be non-empty strings")
            names.append(name.strip())
        if not names:
            raise ValueError("StageGroup cannot be empty")
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate stage name(s) in group: {', '.join(names)}")
        object.__setattr__(self, "names", tuple(names))

    def __iter__(self):
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)


@dataclass(frozen=True)
class BuildPlan:
    name: str
    groups: tuple[StageGroup, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("BuildPlan.name must be a non-empty string")
        object.__setattr__(self, "name", self.name.strip())

        groups = tuple(
            group if isinstance(group, StageGroup) else StageGroup(tuple(group))
            for group in self.groups
        )
        if not groups:
            raise ValueError(f"Build plan {self.name} has no groups")

        seen: set[str] = set()
        for index, group in enumerate(groups):
            for stage_name in group.names:
                if stage_name in seen:
                    raise ValueError(
                        f"Build plan {self.name} lists stage {stage_name} more than once "
                        f"(again in group {index + 1})"
                    )
                seen.add(stage_name)
        object.__setattr__(self, "groups", groups)

    def stage_names(self) -> tuple[str, ...]:
        return tuple(name for group in self.groups for name in group.names)

    def then(self, *names: str, name: str | None = None) -> "BuildPlan":
        """Return a new plan with one more group appended after the existing ones."""

        return BuildPlan(name=name or self.name, groups=(*self.groups, StageGroup(tuple(names))))


def series(name: str, *groups: Sequence[str] | StageGroup) -> BuildPlan:
    """Pattern: run each group to completion before starting the next one."""

    return BuildPlan(name=name, groups=tuple(_as_group(g) for g in groups))


def parallel(*names: str) -> StageGroup:
    """Pattern: stages with no dependencies between them."""

    return StageGroup(tuple(names))


def _as_group(value: Iterable[str] | StageGroup) -> StageGroup:
    if isinstance(value, StageGroup):
        return value
    if isinstance(value, str):
        return StageGroup((value,))
    return StageGroup(tuple(value))
