from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import rjsmin

from buildkit.globs import glob_base
from buildkit.stage_types import Stage
from themekit.foundation.files import expand_sources
from themekit.foundation.revisioning import RevisionedWriter
from themekit.foundation.tools import find_binary
from themekit.framework.config import BuildConfig

NAME = "scripts"
OUTPUT_SUBPATH = "assets/js"

logger = logging.getLogger(__name__)


class ScriptBundleError(RuntimeError):
    pass


# Modules the page already provides as globals (WordPress ships jQuery).
GLOBAL_MODULES: dict[str, str] = {"jquery": "jQuery"}
SHIM_DIR = "node_modules/.cache/themekit"


def write_global_shims(config: BuildConfig) -> dict[str, str]:
    """Write one CommonJS shim per global module; returns module -> shim path relative to the project."""

    aliases: dict[str, str] = {}
    for module, global_name in sorted(GLOBAL_MODULES.items()):
        rel = f"{SHIM_DIR}/{module}.js"
        shim = Path(config.project_root) / rel
        content = f"module.exports = window.{global_name};\n"
        if not shim.is_file() or shim.read_text(encoding="utf-8") != content:
            shim.parent.mkdir(parents=True, exist_ok=True)
            shim.write_text(content, encoding="utf-8")
        aliases[module] = f"./{rel}"
    return aliases


def bundle_with_esbuild(binary: str, entry: Path, config: BuildConfig, *, timeout_s: int = 300) -> bytes:
    """Bundle one entry with the esbuild CLI, reading the result from stdout."""

    cmd: list[str] = [binary, str(entry), "--bundle", "--charset=utf8", "--log-level=warning"]
    for module, shim in write_global_shims(config).items():
        cmd.append(f"--alias:{module}={shim}")
    if config.production:
        cmd.append("--minify")
    elif config.development:
        cmd.append("--sourcemap=inline")

    proc = subprocess.run(
        cmd,
        check=False,
        capture_output=True,
        cwd=config.project_root,
        timeout=timeout_s,
    )
    if proc.returncode != 0:
        stderr = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
        raise ScriptBundleError(
            f"esbuild failed for {entry}. returncode={proc.returncode}. stderr={stderr[-2000:]!r}"
        )
    return proc.stdout


def passthrough(entry: Path, config: BuildConfig) -> bytes:
    source = entry.read_text(encoding="utf-8")
    if config.production:
        source = rjsmin.jsmin(source)
    return source.encode("utf-8")


def run(config: BuildConfig) -> None:
    out_dir = Path(config.dest(OUTPUT_SUBPATH))
    writer = RevisionedWriter(out_dir, enabled=config.revisioning)

    entries = expand_sources(config.paths.scripts, config.project_root, label="script entry")
    if not entries:
        return

    binary = find_binary("esbuild", explicit_path=config.tools.esbuild, project_root=config.project_root)
    if binary is None:
        logger.warning("esbuild not found; emitting script entries without bundling")

    for entry, _rel in entries:
        if binary is not None:
            data = bundle_with_esbuild(binary, entry, config)
        else:
            data = passthrough(entry, config)
        target = writer.write(entry.stem + ".js", data)
        logger.debug("Bundled %s -> %s", entry, target)

    writer.write_manifest()


def watch_patterns(config: BuildConfig) -> tuple[str, ...]:
    patterns: list[str] = []
    for pattern in config.paths.scripts:
        if pattern.startswith("!"):
            continue
        base = glob_base(pattern)
        candidate = f"{base}/**/*.{{js,jsx,mjs}}" if base else "**/*.{js,jsx,mjs}"
        if candidate not in patterns:
            patterns.append(candidate)
    return tuple(patterns)


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.scripts,
        output_subpath=OUTPUT_SUBPATH,
        watch_patterns=watch_patterns(config),
        doc="Bundle JavaScript entries into dist/assets/js; minified in production.",
        tags=("build", "js"),
    )
