from __future__ import annotations

import logging
import subprocess

from buildkit.stage_types import Stage
from themekit.foundation.files import expand_sources
from themekit.foundation.tools import ToolNotFoundError, find_binary
from themekit.framework.config import BuildConfig

NAME = "phpcs"

logger = logging.getLogger(__name__)


class PhpcsError(RuntimeError):
    def __init__(self, returncode: int, report: str):
        self.returncode = returncode
        self.report = report
        super().__init__(f"PHP_CodeSniffer reported problems (exit={returncode})")


def build_command(binary: str, files: list[str], config: BuildConfig) -> list[str]:
    return [
        binary,
        f"--standard={config.tools.phpcs_standard}",
        "--warning-severity=0",
        "-s",
        "--report=full",
        *files,
    ]


def run(config: BuildConfig) -> None:
    sources = expand_sources(config.paths.phpcs, config.project_root, label="php")
    if not sources:
        return

    binary = find_binary("phpcs", explicit_path=config.tools.phpcs, project_root=config.project_root)
    if binary is None:
        raise ToolNotFoundError("phpcs", config.tools.phpcs)

    files = [str(src) for src, _rel in sources]
    proc = subprocess.run(
        build_command(binary, files, config),
        check=False,
        capture_output=True,
        text=True,
        cwd=config.project_root,
        timeout=600,
    )
    report = (proc.stdout or "").strip()
    if report:
        for line in report.splitlines():
            logger.info("%s", line)
    if proc.returncode != 0:
        raise PhpcsError(proc.returncode, report or (proc.stderr or "").strip())
    logger.info("PHP_CodeSniffer: %d file(s) clean", len(files))


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.phpcs,
        doc="Validate PHP files with PHP_CodeSniffer.",
        tags=("lint",),
    )
