"""HTML partial assembly.

Directives look like `@@include('partials/header.html')` or
`@@include("card.html", {"title": "Hello"})`. Paths resolve relative to the
file containing the directive. Inside an included file, `@@title` is replaced
by the matching context value; nested includes inherit the context.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from buildkit.globs import glob_base
from buildkit.stage_types import Stage
from themekit.foundation.files import expand_sources, write_bytes
from themekit.framework.config import BuildConfig

NAME = "markup"
DIRECTIVE = "@@include("
PREFIX = "@@"

logger = logging.getLogger(__name__)
_decoder = json.JSONDecoder()


class MarkupIncludeError(ValueError):
    def __init__(self, path: str | os.PathLike[str], message: str):
        self.path = str(path)
        super().__init__(f"{self.path}: {message}")


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _parse_directive(text: str, start: int, *, source: Path) -> tuple[str, dict[str, Any], int]:
    """Parse one directive starting at `start`; returns (path, context, end offset)."""

    pos = _skip_ws(text, start + len(DIRECTIVE))
    if pos >= len(text) or text[pos] not in ("'", '"'):
        raise MarkupIncludeError(source, f"expected a quoted path at offset {pos}")
    quote = text[pos]
    close = text.find(quote, pos + 1)
    if close == -1:
        raise MarkupIncludeError(source, f"unterminated include path at offset {pos}")
    include_path = text[pos + 1 : close]

    pos = _skip_ws(text, close + 1)
    context: dict[str, Any] = {}
    if pos < len(text) and text[pos] == ",":
        pos = _skip_ws(text, pos + 1)
        try:
            value, pos = _decoder.raw_decode(text, pos)
        except ValueError as exc:
            raise MarkupIncludeError(source, f"invalid include context: {exc}") from exc
        if not isinstance(value, dict):
            raise MarkupIncludeError(source, "include context must be a JSON object")
        context = value
        pos = _skip_ws(text, pos)

    if pos >= len(text) or text[pos] != ")":
        raise MarkupIncludeError(source, f"expected ')' to close include at offset {pos}")
    return include_path, context, pos + 1


def _substitute(text: str, context: Mapping[str, Any]) -> str:
    for key in sorted(context, key=len, reverse=True):
        value = context[key]
        rendered = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        text = text.replace(f"{PREFIX}{key}", rendered)
    return text


def render(
    path: Path,
    *,
    context: Mapping[str, Any] | None = None,
    _stack: tuple[Path, ...] = (),
) -> str:
    resolved = path.resolve()
    if resolved in _stack:
        chain = " -> ".join(str(p) for p in (*_stack, resolved))
        raise MarkupIncludeError(path, f"include cycle detected ({chain})")
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MarkupIncludeError(path, "included file does not exist") from exc

    ctx = dict(context or {})
    stack = (*_stack, resolved)

    out: list[str] = []
    pos = 0
    while True:
        start = text.find(DIRECTIVE, pos)
        if start == -1:
            out.append(_substitute(text[pos:], ctx) if ctx else text[pos:])
            break
        chunk = text[pos:start]
        out.append(_substitute(chunk, ctx) if ctx else chunk)
        include_path, include_ctx, end = _parse_directive(text, start, source=resolved)
        child = resolved.parent / include_path
        out.append(render(child, context={**ctx, **include_ctx}, _stack=stack))
        pos = end
    return "".join(out)


def run(config: BuildConfig) -> None:
    out_dir = Path(config.destination_root)
    sources = expand_sources(config.paths.html, config.project_root, label="html")
    for src, rel in sources:
        html = render(src)
        write_bytes(out_dir / rel, html.encode("utf-8"))
    logger.debug("Assembled %d html file(s)", len(sources))


def watch_patterns(config: BuildConfig) -> tuple[str, ...]:
    patterns: list[str] = []
    for pattern in config.paths.html:
        if pattern.startswith("!"):
            patterns.append(pattern)
            continue
        base = glob_base(pattern)
        candidate = f"{base}/**/*.html" if base else "**/*.html"
        if candidate not in patterns:
            patterns.append(candidate)
    return tuple(patterns)


def stage(config: BuildConfig) -> Stage:
    return Stage(
        name=NAME,
        run=run,
        inputs=config.paths.html,
        output_subpath="",
        watch_patterns=watch_patterns(config),
        doc="Assemble HTML partials (@@include) into dist.",
        tags=("build", "html"),
    )
