from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAMES: tuple[str, ...] = ("config.yml", "config-default.yml")

logger = logging.getLogger(__name__)


class ConfigMissingError(FileNotFoundError):
    def __init__(self, project_dir: str, candidates: tuple[str, ...] = CONFIG_FILENAMES):
        self.project_dir = project_dir
        self.candidates = candidates
        super().__init__(
            f"No config file exists in {project_dir} (looked for {', '.join(candidates)})"
        )


def _load_yaml_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except FileNotFoundError:
        raise
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Config file must contain a YAML mapping: {path}")
    return dict(payload)


def find_config_file(project_dir: str | os.PathLike[str] | None = None) -> str:
    """Return the project-specific config if present, else the shipped default."""

    root = Path(project_dir or os.getcwd()).resolve()
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return str(candidate)
    raise ConfigMissingError(str(root))


def load_config(project_dir: str | os.PathLike[str] | None = None) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Load the settings document for a project.

    Returns (raw mapping, meta) where meta records which file was read.

    Raises:
        ConfigMissingError: neither config.yml nor config-default.yml exists.
        ValueError: the file is not a valid YAML mapping.
    """

    logger.info("Loading config file...")
    path = find_config_file(project_dir)
    name = os.path.basename(path)
    if name == CONFIG_FILENAMES[0]:
        logger.info("%s exists, loading %s", CONFIG_FILENAMES[0], name)
    else:
        logger.info("%s does not exist, loading %s", CONFIG_FILENAMES[0], name)

    cfg = _load_yaml_mapping(path)
    meta = {
        "path": path,
        "name": name,
        "project_dir": os.path.dirname(path),
        "default": name != CONFIG_FILENAMES[0],
    }
    return cfg, meta
