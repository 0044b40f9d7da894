from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeAlias

StageRunner: TypeAlias = Callable[[Any], "Awaitable[None] | None"]


def _normalize_patterns(value: Any, *, field_name: str, stage_name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = (value,)
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise TypeError(
            f"Stage {stage_name} {field_name} must be a sequence of strings "
            f"(type={type(value).__name__})"
        )
    out: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise TypeError(f"Stage {stage_name} {field_name} entries must be non-empty strings")
        out.append(item.strip())
    if isinstance(value, (set, frozenset)):
        out.sort()
    return tuple(out)


@dataclass(frozen=True)
class Stage:
    """A named unit of the build.

    `run` receives the immutable build configuration. It may be a plain callable
    (executed in a worker thread) or a coroutine function (awaited on the loop).
    """

    name: str
    run: StageRunner
    inputs: tuple[str, ...] = ()
    output_subpath: str = ""
    watch_patterns: tuple[str, ...] = ()
    doc: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise TypeError("Stage.name must be a non-empty string")
        name = self.name.strip()
        object.__setattr__(self, "name", name)

        if not callable(self.run):
            raise TypeError(f"Stage {name} run must be callable (type={type(self.run).__name__})")

        object.__setattr__(
            self, "inputs", _normalize_patterns(self.inputs, field_name="inputs", stage_name=name)
        )
        object.__setattr__(
            self,
            "watch_patterns",
            _normalize_patterns(self.watch_patterns, field_name="watch_patterns", stage_name=name),
        )

        if not isinstance(self.output_subpath, str):
            raise TypeError(f"Stage {name} output_subpath must be a string")
        object.__setattr__(self, "output_subpath", self.output_subpath.strip().strip("/"))

        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("Stage.doc must be a non-empty string or None")

        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.run)

    @property
    def source(self) -> str:
        module = getattr(self.run, "__module__", None) or "<unknown_module>"
        qualname = (
            getattr(self.run, "__qualname__", None)
            or getattr(self.run, "__name__", None)
            or "<callable>"
        )
        return f"{module}.{qualname}"
