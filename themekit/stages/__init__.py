from __future__ import annotations

from themekit.stages import archive, clean, copy_assets, images, markup, phpcs, scripts, style

STAGE_MODULES = (clean, style, markup, scripts, images, copy_assets, archive, phpcs)

__all__ = [
    "STAGE_MODULES",
    "archive",
    "clean",
    "copy_assets",
    "images",
    "markup",
    "phpcs",
    "scripts",
    "style",
]
