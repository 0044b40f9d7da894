from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

from buildkit.globs import expand

logger = logging.getLogger(__name__)


def expand_sources(
    patterns: Sequence[str],
    project_root: str,
    *,
    label: str,
) -> list[tuple[Path, str]]:
    """Expand a config path group, logging when nothing matches."""

    if not patterns:
        logger.debug("No %s patterns configured", label)
        return []
    found = expand(patterns, project_root)
    if not found:
        logger.warning("No %s files matched: %s", label, ", ".join(patterns))
    return found


def copy_file(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dst)


def write_bytes(dst: Path, data: bytes) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.write_bytes(data)
