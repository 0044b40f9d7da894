from __future__ import annotations

import io
import logging
import re
from pathlib import Path

from PIL import Image

from buildkit.stage_types import Stage
from themekit.foundation.files import copy_file, expand_sources, write_bytes
from themekit.framework.config import BuildConfig

NAME = "images"
OUTPUT_SUBPATH = "assets/images"
JPEG_QUALITY = 75

logger = logging.getLogger(__name__)

_SVG_COMMENT = re.compile(rb"<!--.*?-->", re.S)
_SVG_ATTR = re.compile(rb'(\s[\w:.-]+)\s*=\s*"([^"]*)"')


def minify_svg(data: bytes) -> bytes:
    """Drop comments and squeeze whitespace inside attribute values."""

    data = _SVG_COMMENT.sub(b"", data)
    data = _SVG_ATTR.sub(lambda m: m.group(1) + b'="' + b" ".join(m.group(2).split()) + b'"', data)
    return data.strip() + b"\n"


def compress(src: Path) -> bytes | None:
    """Return compressed bytes for supported formats, or None to copy as-is."""

    suffix = src.suffix.lower()
    if suffix == ".svg":
        return minify_svg(src.read_bytes())
    if suffix not in (".png", ".jpg", ".jpeg", ".gif"):
        return None

    buf = io.BytesIO()
    with Image.open(src) as im:
        # Multi-frame PNG (APNG) and GIF would be flattened to their first frame.
        if getattr(im, "n_frames", 1) > 1:
            return None
        if suffix == ".png":
            im.save(buf, format="PNG", optimize=True)
        elif suffix == ".gif":
            im.save(buf, format="GIF", optimize=True)
        else:
            rgb = im if im.mode in ("RGB", "L", "CMYK") else im.convert("RGB")
            rgb.save(
                buf,
                format="JPEG",
                quality=JPEG_QUALITY,
                progressive=True,
                optimize=True,
                icc_profile=im.info.get("icc_profile"),
            )
    return buf.getvalue()


def run(config: BuildConfig) -> None:
    out_dir = Path(config.dest(OUTPUT_SUBPATH))
    sources = expand_sources(config.paths.images, config.project_root, label="image")

    saved = 0
    for src, rel in sources:
        target = out_dir / rel
        if not config.production:
            copy_file(src, target)
            continue

        original_size = src.stat().st_size
        data = compress(src)
        if data is None or len(data) >= original_size:
            copy_file(src, target)
            continue
        write_bytes(target, data)
        saved += original_size - len(data)
        logger.debug("Compressed %s (%d -> %d bytes)", rel, original_size, len(data))

    if config.production and sources:
        logger.info("Minified %d image(s), saved %d bytes", len(sources), saved)


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.images,
        output_subpath=OUTPUT_SUBPATH,
        watch_patterns=config.paths.images,
        doc="Copy images into dist/assets/images; compressed in production.",
        tags=("build", "images"),
    )
