from __future__ import annotations

import logging
import os
import zipfile
from datetime import datetime
from pathlib import Path

from buildkit.stage_types import Stage
from themekit.foundation.files import expand_sources
from themekit.framework.config import PACKAGED_DIR, BuildConfig

NAME = "archive"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M"

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now()


def archive_name(project_name: str, when: datetime) -> str:
    return f"{project_name}_{when.strftime(TIMESTAMP_FORMAT)}.zip"


def collect_files(config: BuildConfig) -> list[tuple[Path, str]]:
    """Package files in sorted archive-name order; the packaged dir is never included."""

    if not config.paths.package:
        raise ValueError("PATHS.package is empty; nothing to archive")

    packaged = Path(config.packaged_dir).resolve()
    files: dict[str, Path] = {}
    for src, rel in expand_sources(config.paths.package, config.project_root, label="package"):
        resolved = src.resolve()
        if resolved == packaged or packaged in resolved.parents:
            continue
        files.setdefault(rel, src)
    return sorted(((src, rel) for rel, src in files.items()), key=lambda item: item[1])


def write_archive(files: list[tuple[Path, str]], zip_path: Path) -> Path:
    zip_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for src, rel in files:
            zf.write(src, rel)
    return zip_path


def run(config: BuildConfig) -> None:
    files = collect_files(config)
    zip_path = Path(config.packaged_dir) / archive_name(config.project_name, _now())
    write_archive(files, zip_path)
    logger.info(
        "Packaged %d file(s) into %s",
        len(files),
        os.path.relpath(zip_path, config.project_root),
    )


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.package,
        output_subpath="",
        doc=f"Zip the theme into {PACKAGED_DIR}/<name>_<YYYY-MM-DD_HH-mm>.zip.",
        tags=("package",),
    )
