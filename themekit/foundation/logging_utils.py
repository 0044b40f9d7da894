"""Operational logging setup for command-line runs."""

from __future__ import annotations

import logging
import os
from datetime import datetime

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOGGER_NAMES: tuple[str, ...] = ("themekit", "buildkit")


def setup_operational_logger(
    log_dir: str | None = None, *, verbose: bool = False
) -> tuple[logging.Logger, str | None]:
    """
    Configure the `themekit` and `buildkit` loggers.

    Logs go to stderr and, when log_dir is given, to a UTF-8 file under it.
    Returns the application logger and the log file path (or None).
    """

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler.setFormatter(formatter)

    file_handler: logging.Handler | None = None
    log_file: str | None = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(log_dir, f"build_{stamp}.log")
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)

    for name in LOGGER_NAMES:
        named = logging.getLogger(name)
        named.setLevel(logging.DEBUG)
        named.handlers.clear()
        named.addHandler(stream_handler)
        if file_handler is not None:
            named.addHandler(file_handler)
        named.propagate = False

    logger = logging.getLogger(LOGGER_NAMES[0])
    if log_file:
        logger.debug("Operational log file: %s", log_file)
    return logger, log_file
