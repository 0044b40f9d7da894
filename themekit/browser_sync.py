from __future__ import annotations

import logging
import subprocess
import time
from typing import Sequence

import requests

from buildkit.errors import ServerError
from themekit.foundation.tools import find_binary
from themekit.framework.config import BuildConfig

logger = logging.getLogger(__name__)


class BrowserSyncNotifier:
    """Live reload through a browser-sync server running as a child process.

    Reloads are sent to browser-sync's HTTP protocol endpoint
    (`/__browser_sync__?method=reload`), so delivery is best effort.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        host: str = "localhost",
        startup_timeout_s: float = 15.0,
        request_timeout_s: float = 2.0,
        session: requests.Session | None = None,
    ):
        self.config = config
        self.host = host
        self.port = config.browser_port
        self.startup_timeout_s = startup_timeout_s
        self.request_timeout_s = request_timeout_s
        self.session = session or requests.Session()
        self._process: subprocess.Popen[bytes] | None = None

    @property
    def server_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def build_command(self, binary: str, proxy_target: str) -> list[str]:
        return [
            binary,
            "start",
            "--proxy",
            proxy_target,
            "--port",
            str(self.port),
            "--ui-port",
            str(self.config.browser_ui_port),
            "--no-open",
        ]

    def init(self, proxy_target: str | None) -> None:
        if not proxy_target:
            raise ServerError("BROWSERSYNC.url is not configured")
        binary = find_binary(
            "browser-sync",
            explicit_path=self.config.tools.browser_sync,
            project_root=self.config.project_root,
        )
        if binary is None:
            raise ServerError("browser-sync executable not found (install it or set TOOLS.browser_sync)")

        try:
            self._process = subprocess.Popen(
                self.build_command(binary, proxy_target),
                cwd=self.config.project_root,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            raise ServerError(f"Could not start browser-sync: {exc}") from exc

        deadline = time.monotonic() + self.startup_timeout_s
        while time.monotonic() < deadline:
            if self._process.poll() is not None:
                code = self._process.returncode
                self._process = None
                raise ServerError(f"browser-sync exited during startup (exit={code})")
            try:
                self.session.get(self.server_url, timeout=self.request_timeout_s)
            except requests.exceptions.RequestException:
                time.sleep(0.25)
                continue
            logger.info("browser-sync proxying %s at %s", proxy_target, self.server_url)
            return

        self.close()
        raise ServerError(
            f"browser-sync did not answer on {self.server_url} within {self.startup_timeout_s:.0f} s"
        )

    def notify_reload(self, files: Sequence[str] = ()) -> None:
        params: list[tuple[str, str]] = [("method", "reload")]
        params.extend(("args", item) for item in files)
        try:
            response = self.session.get(
                f"{self.server_url}/__browser_sync__",
                params=params,
                timeout=self.request_timeout_s,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as exc:
            logger.warning("browser-sync reload failed: %s", exc)
            return
        if files:
            logger.debug("browser-sync injected %s", ", ".join(files))
        else:
            logger.debug("browser-sync reloaded")

    def close(self) -> None:
        process, self._process = self._process, None
        if process is None:
            return
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
