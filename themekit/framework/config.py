from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

BuildMode = Literal["production", "development", "default"]

logger = logging.getLogger(__name__)

DEFAULT_STYLE_ENTRIES: tuple[str, ...] = ("src/assets/scss/main.scss",)
DEFAULT_IMAGE_PATTERNS: tuple[str, ...] = ("src/assets/images/**/*",)
DEFAULT_PHPCS_BINARY = "vendor/bin/phpcs"
DEFAULT_PHPCS_STANDARD = "./codesniffer.ruleset.xml"
DEFAULT_BROWSERSYNC_PORT = 3000
DEFAULT_BROWSERSYNC_UI_PORT = 8080
PACKAGED_DIR = "packaged"


def resolve_mode(*, production: bool, development: bool) -> BuildMode:
    """Pick the build mode from CLI flags; production wins when both are set."""

    if production:
        return "production"
    if development:
        return "development"
    return "default"


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts:
      - True/False
      - 0/1 (ints)
      - strings: true/false/1/0/yes/no (case-insensitive, surrounding whitespace ignored)

    Raises:
      ValueError for anything else, with the provided config key path.
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
        raise ValueError(f"Invalid boolean for {path}: {value!r}")

    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def parse_int(value: Any, path: str) -> int:
    if value is None:
        raise ValueError(f"Invalid config value for {path}: None")
    if isinstance(value, bool):
        raise ValueError(f"Invalid config type for {path}: expected int, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        if not value.strip():
            raise ValueError(f"Invalid config value for {path}: must be an int")
        try:
            return int(value.strip())
        except Exception as exc:  # noqa: BLE001
            raise ValueError(f"Invalid config value for {path}: must be an int") from exc
    raise ValueError(f"Invalid config type for {path}: expected int")


def parse_string_list(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Invalid config type for {path}: expected list of strings")
    out: list[str] = []
    for idx, item in enumerate(value):
        if not isinstance(item, str):
            raise ValueError(f"Invalid config type for {path}[{idx}]: expected string")
        if item.strip():
            out.append(item.strip())
    return tuple(out)


@dataclass(frozen=True)
class PathGroups:
    assets: tuple[str, ...] = ()
    styles: tuple[str, ...] = DEFAULT_STYLE_ENTRIES
    sass: tuple[str, ...] = ()
    scripts: tuple[str, ...] = ()
    images: tuple[str, ...] = DEFAULT_IMAGE_PATTERNS
    html: tuple[str, ...] = ()
    package: tuple[str, ...] = ()
    phpcs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolPaths:
    esbuild: str | None = None
    postcss: str | None = None
    phpcs: str = DEFAULT_PHPCS_BINARY
    phpcs_standard: str = DEFAULT_PHPCS_STANDARD
    browser_sync: str | None = None


@dataclass(frozen=True)
class BuildConfig:
    project_root: str
    project_name: str
    destination_root: str
    paths: PathGroups = field(default_factory=PathGroups)
    browser_proxy_url: str | None = None
    browser_port: int = DEFAULT_BROWSERSYNC_PORT
    browser_ui_port: int = DEFAULT_BROWSERSYNC_UI_PORT
    revisioning: bool = False
    compatibility: tuple[str, ...] = ()
    mode: BuildMode = "default"
    tools: ToolPaths = field(default_factory=ToolPaths)
    log_path: str | None = None

    @property
    def production(self) -> bool:
        return self.mode == "production"

    @property
    def development(self) -> bool:
        return self.mode == "development"

    @property
    def packaged_dir(self) -> str:
        return os.path.join(self.project_root, PACKAGED_DIR)

    def dest(self, *parts: str) -> str:
        return os.path.join(self.destination_root, *parts)

    def relative_destination(self) -> str:
        return os.path.relpath(self.destination_root, self.project_root).replace(os.sep, "/")

    @staticmethod
    def from_dict(
        cfg: Mapping[str, Any],
        *,
        project_dir: str,
        mode: BuildMode = "default",
    ) -> tuple["BuildConfig", list[str]]:
        """
        Parse and validate the settings document, returning (BuildConfig, warnings).

        Raises:
            ValueError: if required keys are missing or invalid.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")
        if mode not in ("production", "development", "default"):
            raise ValueError(f"Unknown build mode: {mode!r}")

        warnings: list[str] = []
        project_root = os.path.abspath(project_dir)

        strict_unknown_keys = False
        if "STRICT" in cfg:
            strict_unknown_keys = parse_bool(cfg.get("STRICT"), "STRICT")

        schema: Mapping[str, Any] = {
            "BROWSERSYNC": {"url": None, "port": None, "ui_port": None},
            "COMPATIBILITY": None,
            "REVISIONING": None,
            "NAME": None,
            "LOG_PATH": None,
            "STRICT": None,
            "TOOLS": {
                "esbuild": None,
                "postcss": None,
                "phpcs": None,
                "phpcs_standard": None,
                "browser_sync": None,
            },
            "PATHS": {
                "dist": None,
                "assets": None,
                "styles": None,
                "sass": None,
                "entries": None,
                "images": None,
                "htmlAssets": None,
                "package": None,
                "phpcs": None,
            },
        }

        def collect_unknown_keys(mapping: Any, schema: Mapping[str, Any], *, prefix: str) -> list[str]:
            if not isinstance(mapping, Mapping):
                return []
            unknown: list[str] = []
            for key, value in mapping.items():
                if not isinstance(key, str):
                    continue
                if key not in schema:
                    unknown.append(f"{prefix}.{key}" if prefix else key)
                    continue
                subschema = schema.get(key)
                if isinstance(subschema, Mapping):
                    unknown.extend(
                        collect_unknown_keys(
                            value, subschema, prefix=f"{prefix}.{key}" if prefix else key
                        )
                    )
            return unknown

        unknown_keys = sorted(set(collect_unknown_keys(cfg, schema, prefix="")))
        if unknown_keys:
            if strict_unknown_keys:
                raise ValueError("Unknown config keys: " + ", ".join(unknown_keys))
            warnings.extend(f"Unknown config key: {key}" for key in unknown_keys)

        def lookup(path: str) -> tuple[bool, Any]:
            cur: Any = cfg
            for part in path.split("."):
                if not isinstance(cur, Mapping) or part not in cur:
                    return False, None
                cur = cur[part]
            return True, cur

        def require_str(path: str) -> str:
            present, value = lookup(path)
            if not present or value is None:
                raise ValueError(f"Missing required config: {path}")
            if not isinstance(value, str):
                raise ValueError(f"Invalid config type for {path}: expected string")
            if not value.strip():
                raise ValueError(f"Missing required config: {path}")
            return value.strip()

        def optional_str(path: str) -> str | None:
            present, value = lookup(path)
            if not present or value is None:
                return None
            if not isinstance(value, str):
                raise ValueError(f"Invalid config type for {path}: expected string")
            return value.strip() or None

        def optional_int(path: str, *, default: int) -> int:
            present, value = lookup(path)
            if not present or value is None:
                return default
            parsed = parse_int(value, path)
            if parsed <= 0:
                raise ValueError(f"Invalid config value for {path}: must be > 0")
            return parsed

        def optional_bool(path: str, *, default: bool) -> bool:
            present, value = lookup(path)
            if not present:
                return default
            if value is None:
                raise ValueError(f"Invalid boolean for {path}: None")
            return parse_bool(value, path)

        def optional_list(path: str, *, default: tuple[str, ...] = ()) -> tuple[str, ...]:
            present, value = lookup(path)
            if not present or value is None:
                return default
            return parse_string_list(value, path)

        def normalize_path(value: str) -> str:
            expanded = os.path.expandvars(os.path.expanduser(value.strip()))
            if not os.path.isabs(expanded):
                expanded = os.path.join(project_root, expanded)
            return os.path.abspath(expanded)

        present, paths_section = lookup("PATHS")
        if present and paths_section is not None and not isinstance(paths_section, Mapping):
            raise ValueError("Invalid config type for PATHS: expected mapping")

        destination_root = normalize_path(require_str("PATHS.dist"))
        if destination_root == project_root:
            raise ValueError("PATHS.dist must not be the project directory itself")
        if os.path.commonpath([destination_root, project_root]) != project_root:
            raise ValueError(f"PATHS.dist must live inside the project directory: {destination_root}")

        paths = PathGroups(
            assets=optional_list("PATHS.assets"),
            styles=optional_list("PATHS.styles", default=DEFAULT_STYLE_ENTRIES),
            sass=optional_list("PATHS.sass"),
            scripts=optional_list("PATHS.entries"),
            images=optional_list("PATHS.images", default=DEFAULT_IMAGE_PATTERNS),
            html=optional_list("PATHS.htmlAssets"),
            package=optional_list("PATHS.package"),
            phpcs=optional_list("PATHS.phpcs"),
        )

        proxy_url = optional_str("BROWSERSYNC.url")
        if proxy_url is not None and "://" not in proxy_url:
            raise ValueError(f"Invalid config value for BROWSERSYNC.url: not a URL ({proxy_url!r})")

        tools = ToolPaths(
            esbuild=optional_str("TOOLS.esbuild"),
            postcss=optional_str("TOOLS.postcss"),
            phpcs=optional_str("TOOLS.phpcs") or DEFAULT_PHPCS_BINARY,
            phpcs_standard=optional_str("TOOLS.phpcs_standard") or DEFAULT_PHPCS_STANDARD,
            browser_sync=optional_str("TOOLS.browser_sync"),
        )

        log_path_raw = optional_str("LOG_PATH")

        config = BuildConfig(
            project_root=project_root,
            project_name=optional_str("NAME") or _project_name(project_root, warnings),
            destination_root=destination_root,
            paths=paths,
            browser_proxy_url=proxy_url,
            browser_port=optional_int("BROWSERSYNC.port", default=DEFAULT_BROWSERSYNC_PORT),
            browser_ui_port=optional_int("BROWSERSYNC.ui_port", default=DEFAULT_BROWSERSYNC_UI_PORT),
            revisioning=optional_bool("REVISIONING", default=False),
            compatibility=optional_list("COMPATIBILITY"),
            mode=mode,
            tools=tools,
            log_path=normalize_path(log_path_raw) if log_path_raw else None,
        )
        return config, warnings


def _project_name(project_root: str, warnings: list[str]) -> str:
    package_json = os.path.join(project_root, "package.json")
    if os.path.isfile(package_json):
        try:
            with open(package_json, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            warnings.append(f"Could not read project name from package.json: {exc}")
        else:
            name = payload.get("name") if isinstance(payload, dict) else None
            if isinstance(name, str) and name.strip():
                return name.strip()
    return os.path.basename(project_root.rstrip(os.sep)) or "theme"
