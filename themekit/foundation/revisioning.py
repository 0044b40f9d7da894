"""Content-hash file naming for cache busting.

`main.css` becomes `main-<hash>.css` where hash is the first 10 hex digits of
the MD5 of the file content; a `rev-manifest.json` next to the outputs maps
original names to revisioned ones.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Mapping

MANIFEST_NAME = "rev-manifest.json"
HASH_LENGTH = 10


def content_hash(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()[:HASH_LENGTH]


def revisioned_name(name: str, data: bytes) -> str:
    """Insert the content hash before the last suffix: `app.min.js` -> `app.min-<hash>.js`."""

    directory, base = os.path.split(name.replace("\\", "/"))
    stem, suffix = os.path.splitext(base)
    revised = f"{stem}-{content_hash(data)}{suffix}"
    return f"{directory}/{revised}" if directory else revised


class RevisionedWriter:
    """Writes outputs into one directory, optionally revisioning their names."""

    def __init__(self, out_dir: str | os.PathLike[str], *, enabled: bool):
        self.out_dir = Path(out_dir)
        self.enabled = enabled
        self.manifest: dict[str, str] = {}

    def write(self, name: str, data: bytes) -> Path:
        final_name = revisioned_name(name, data) if self.enabled else name
        target = self.out_dir / final_name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        if self.enabled:
            self.manifest[name.replace("\\", "/")] = final_name
        return target

    def write_manifest(self) -> Path | None:
        if not self.enabled:
            return None
        return write_manifest(self.out_dir, self.manifest)


def write_manifest(out_dir: str | os.PathLike[str], entries: Mapping[str, str]) -> Path:
    path = Path(out_dir) / MANIFEST_NAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dict(entries), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    return path
