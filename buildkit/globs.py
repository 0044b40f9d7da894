"""Glob helpers shared by stages and watch bindings.

Patterns are POSIX-style and relative to a project root. `**` crosses
directories, `{a,b}` expands, and a leading `!` excludes.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Sequence

from wcmatch import glob

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.NEGATE

_MAGIC = ("*", "?", "[", "{")


def to_posix(path: str | os.PathLike[str]) -> str:
    text = str(path).replace(os.sep, "/")
    while text.startswith("./"):
        text = text[2:]
    return text


def split_patterns(patterns: Iterable[str]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    positive: list[str] = []
    negative: list[str] = []
    for pattern in patterns:
        (negative if pattern.startswith("!") else positive).append(pattern)
    return tuple(positive), tuple(negative)


def glob_base(pattern: str) -> str:
    """Return the literal directory prefix of a pattern ("" for the root)."""

    raw = pattern[1:] if pattern.startswith("!") else pattern
    parts = [p for p in raw.split("/") if p not in ("", ".")]
    literal: list[str] = []
    for part in parts:
        if any(ch in part for ch in _MAGIC):
            return "/".join(literal)
        literal.append(part)
    return "/".join(literal[:-1])


def matches(path: str, patterns: Sequence[str]) -> bool:
    positive, negative = split_patterns(patterns)
    if not positive:
        return False
    return glob.globmatch(to_posix(path), [*positive, *negative], flags=GLOB_FLAGS)


def expand(patterns: Sequence[str], root: str | os.PathLike[str]) -> list[tuple[Path, str]]:
    """Expand patterns under root into (absolute file, path relative to its glob base).

    Results are sorted per pattern and de-duplicated, first pattern wins.
    """

    root_path = Path(root)
    positive, negative = split_patterns(patterns)
    seen: set[str] = set()
    out: list[tuple[Path, str]] = []
    for pattern in positive:
        base = glob_base(pattern)
        found = glob.glob([pattern, *negative], flags=GLOB_FLAGS, root_dir=str(root_path))
        for rel in sorted(to_posix(item) for item in found):
            if rel in seen:
                continue
            full = root_path / rel
            if not full.is_file():
                continue
            seen.add(rel)
            relative_to_base = rel[len(base) + 1 :] if base and rel.startswith(base + "/") else rel
            out.append((full, relative_to_base))
    return out
