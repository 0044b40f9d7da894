"""File-system events from watchdog, forwarded to the watch supervisor."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from buildkit.errors import WatchIOError
from buildkit.globs import glob_base, split_patterns, to_posix
from buildkit.watch import WatchSupervisor
from themekit.framework.config import PACKAGED_DIR

IGNORED_DIRS: tuple[str, ...] = (".git", "node_modules", "vendor", PACKAGED_DIR)
EVENT_KINDS = {
    "created": "created",
    "modified": "modified",
    "deleted": "deleted",
    "moved": "moved",
}

logger = logging.getLogger(__name__)


class _ForwardingHandler(FileSystemEventHandler):
    def __init__(self, watcher: "FileWatcher"):
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        kind = EVENT_KINDS.get(event.event_type)
        if kind is None:
            return
        self._watcher.forward(os.fsdecode(event.src_path), "deleted" if kind == "moved" else kind)
        dest_path = getattr(event, "dest_path", None)
        if kind == "moved" and dest_path:
            self._watcher.forward(os.fsdecode(dest_path), "created")


class FileWatcher:
    def __init__(
        self,
        supervisor: WatchSupervisor,
        *,
        project_root: str,
        ignore: Iterable[str] = (),
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.supervisor = supervisor
        self.project_root = Path(project_root).resolve()
        self.ignore = tuple(to_posix(item).strip("/") for item in ignore if item)
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def relative(self, path: str) -> str | None:
        """Project-relative POSIX path, or None when the path should be ignored."""

        try:
            rel = Path(path).resolve().relative_to(self.project_root)
        except ValueError:
            return None
        if any(part in IGNORED_DIRS for part in rel.parts[:-1]):
            return None
        rel_text = rel.as_posix()
        for ignored in self.ignore:
            if rel_text == ignored or rel_text.startswith(ignored + "/"):
                return None
        return rel_text

    def forward(self, path: str, kind: str) -> None:
        rel = self.relative(path)
        if rel is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self.supervisor.dispatch, rel, kind)

    def watch_directories(self) -> dict[Path, list[str]]:
        """Map each directory to observe onto the bindings that rely on it.

        Nested directories fold into their closest watched ancestor.
        """

        wanted: dict[Path, list[str]] = {}
        for binding in self.supervisor.bindings:
            positive, _negative = split_patterns(binding.patterns)
            for pattern in positive:
                base = glob_base(pattern)
                directory = (self.project_root / base) if base else self.project_root
                names = wanted.setdefault(directory, [])
                if binding.name not in names:
                    names.append(binding.name)

        folded: dict[Path, list[str]] = {}
        for directory in sorted(wanted, key=lambda p: len(p.parts)):
            ancestor = next((d for d in folded if d == directory or d in directory.parents), None)
            target = folded.setdefault(ancestor or directory, [])
            for name in wanted[directory]:
                if name not in target:
                    target.append(name)
        return folded

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        observer = self._observer_factory()
        handler = _ForwardingHandler(self)
        for directory, names in self.watch_directories().items():
            try:
                if not directory.is_dir():
                    raise FileNotFoundError(f"{directory} does not exist")
                observer.schedule(handler, str(directory), recursive=True)
            except OSError as exc:
                for name in names:
                    self.supervisor.disable(name, WatchIOError(name, str(exc)))
                continue
            logger.debug("Watching %s for %s", directory, ", ".join(names))
        observer.start()
        self._observer = observer
        logger.info("Watching for changes in %s", self.project_root)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
