from __future__ import annotations

import os
import shutil
from pathlib import Path


def find_binary(
    name: str,
    *,
    explicit_path: str | None = None,
    project_root: str | None = None,
) -> str | None:
    """Locate an external tool executable.

    Search order:
      1) explicit_path (relative paths resolve against project_root)
      2) <project_root>/node_modules/.bin/<name>
      3) PATH lookup
    """

    candidates: list[str] = []

    if explicit_path:
        path = Path(os.path.expanduser(explicit_path))
        if not path.is_absolute() and project_root:
            path = Path(project_root) / path
        candidates.append(str(path))

    if project_root:
        for suffix in ("", ".cmd"):
            candidates.append(str(Path(project_root) / "node_modules" / ".bin" / f"{name}{suffix}"))

    found = shutil.which(name)
    if found:
        candidates.append(found)

    for candidate in candidates:
        p = Path(candidate)
        if p.exists() and p.is_file():
            return str(p)
    return None


class ToolNotFoundError(FileNotFoundError):
    def __init__(self, name: str, explicit_path: str | None = None):
        self.name = name
        self.explicit_path = explicit_path
        hint = f" (configured: {explicit_path})" if explicit_path else ""
        super().__init__(f"Required tool not found: {name}{hint}")
