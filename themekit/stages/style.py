from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

import sass

from buildkit.globs import glob_base
from buildkit.stage_types import Stage
from themekit.foundation.files import expand_sources
from themekit.foundation.revisioning import RevisionedWriter
from themekit.foundation.tools import find_binary
from themekit.framework.config import BuildConfig

NAME = "style"
OUTPUT_SUBPATH = "assets/css"

logger = logging.getLogger(__name__)


class AutoprefixError(RuntimeError):
    pass


def _include_paths(config: BuildConfig) -> list[str]:
    return [os.path.join(config.project_root, path) for path in config.paths.sass]


def compile_entry(entry: Path, config: BuildConfig, *, output_path: Path) -> str:
    """Compile one Sass entry; compressed in production, with an inline map otherwise."""

    include_paths = _include_paths(config)
    if config.production:
        return sass.compile(
            filename=str(entry),
            output_style="compressed",
            include_paths=include_paths,
        )

    css, _source_map = sass.compile(
        filename=str(entry),
        output_style="expanded",
        include_paths=include_paths,
        source_map_filename=str(output_path) + ".map",
        output_filename_hint=str(output_path),
        source_map_embed=True,
        source_map_contents=True,
    )
    return css


def autoprefix(css: str, config: BuildConfig) -> str:
    """Run the postcss CLI with autoprefixer when it is installed; otherwise pass through."""

    if not config.compatibility:
        return css
    binary = find_binary("postcss", explicit_path=config.tools.postcss, project_root=config.project_root)
    if binary is None:
        logger.debug("postcss not found; skipping autoprefixer")
        return css

    cmd = [binary, "--use", "autoprefixer"]
    if config.production:
        cmd.append("--no-map")
    env = dict(os.environ)
    env["BROWSERSLIST"] = ", ".join(config.compatibility)

    proc = subprocess.run(
        cmd,
        input=css,
        check=False,
        capture_output=True,
        text=True,
        cwd=config.project_root,
        env=env,
        timeout=120,
    )
    if proc.returncode != 0:
        stderr = (proc.stderr or "").strip()
        raise AutoprefixError(
            f"postcss failed. returncode={proc.returncode}. stderr={stderr[-2000:]!r}"
        )
    return proc.stdout


def run(config: BuildConfig) -> None:
    out_dir = Path(config.dest(OUTPUT_SUBPATH))
    writer = RevisionedWriter(out_dir, enabled=config.revisioning)

    entries = expand_sources(config.paths.styles, config.project_root, label="style entry")
    for entry, _rel in entries:
        if entry.name.startswith("_"):
            continue
        name = entry.stem + ".css"
        css = compile_entry(entry, config, output_path=out_dir / name)
        css = autoprefix(css, config)
        target = writer.write(name, css.encode("utf-8"))
        logger.debug("Compiled %s -> %s", entry, target)

    manifest = writer.write_manifest()
    if manifest is not None:
        logger.debug("Wrote %s", manifest)


def watch_patterns(config: BuildConfig) -> tuple[str, ...]:
    bases: list[str] = []
    for pattern in config.paths.styles:
        if pattern.startswith("!"):
            continue
        base = glob_base(pattern)
        candidate = f"{base}/**/*.scss" if base else "**/*.scss"
        if candidate not in bases:
            bases.append(candidate)
    return tuple(bases)


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.styles,
        output_subpath=OUTPUT_SUBPATH,
        watch_patterns=watch_patterns(config),
        doc="Compile Sass into dist/assets/css; compressed in production.",
        tags=("build", "css"),
    )
