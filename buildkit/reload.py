from __future__ import annotations

from typing import Protocol, Sequence


class ReloadNotifier(Protocol):
    """Live-preview channel consumed by the watch supervisor.

    `init` is called once before the first build of a watch session and raises
    `buildkit.errors.ServerError` if the channel cannot be opened.
    `notify_reload` is fire-and-forget: implementations log delivery problems
    instead of raising. An empty `files` means a full page reload; otherwise the
    listed file globs are injected in place.
    """

    def init(self, proxy_target: str | None) -> None:
        ...

    def notify_reload(self, files: Sequence[str] = ()) -> None:
        ...

    def close(self) -> None:
        ...


class NullReloadNotifier:
    def init(self, proxy_target: str | None) -> None:
        return

    def notify_reload(self, files: Sequence[str] = ()) -> None:
        return

    def close(self) -> None:
        return
