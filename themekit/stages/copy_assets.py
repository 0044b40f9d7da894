from __future__ import annotations

import logging
from pathlib import Path

from buildkit.stage_types import Stage
from themekit.foundation.files import copy_file, expand_sources
from themekit.framework.config import BuildConfig

NAME = "copy"
OUTPUT_SUBPATH = "assets"

logger = logging.getLogger(__name__)


def run(config: BuildConfig) -> None:
    """Copy static assets; images, js and scss are handled by their own stages."""

    out_dir = Path(config.dest(OUTPUT_SUBPATH))
    sources = expand_sources(config.paths.assets, config.project_root, label="asset")
    for src, rel in sources:
        copy_file(src, out_dir / rel)
    logger.debug("Copied %d asset file(s) to %s", len(sources), out_dir)


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.assets,
        output_subpath=OUTPUT_SUBPATH,
        watch_patterns=config.paths.assets,
        doc="Copy static assets into dist/assets.",
        tags=("build",),
    )
