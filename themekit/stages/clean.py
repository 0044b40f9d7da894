from __future__ import annotations

import logging
import os
import shutil

from buildkit.stage_types import Stage
from themekit.framework.config import BuildConfig

NAME = "clean"

logger = logging.getLogger(__name__)


def run(config: BuildConfig) -> None:
    target = os.path.abspath(config.destination_root)
    root = os.path.abspath(config.project_root)
    if target == root or os.path.commonpath([target, root]) != root:
        raise ValueError(f"Refusing to delete {target}: not inside project {root}")

    if os.path.isdir(target):
        shutil.rmtree(target)
    elif os.path.exists(target):
        os.remove(target)
    logger.info("Folder /%s is DELETED...", config.relative_destination())


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        output_subpath="",
        doc="Delete the destination folder; runs before every build.",
        tags=("build",),
    )
