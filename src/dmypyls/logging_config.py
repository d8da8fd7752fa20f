"""Logging setup for the language server.

stdout carries the protocol stream, so records always go to a file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dmypyls.config import APP_NAME, user_state_dir

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DETAILED_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
LOG_LEVEL_ENV = "DMYPYLS_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"
HANDLER_NAME = f"{APP_NAME}-file"


def resolve_level(level: str | None = None) -> int:
    name = (level or os.environ.get(LOG_LEVEL_ENV, "") or DEFAULT_LOG_LEVEL).strip().upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def default_log_file() -> Path:
    return user_state_dir() / f"{APP_NAME}.log"


def setup_logging(level: str | None = None, log_file: Path | None = None) -> Path:
    """Configure the root logger to write to ``log_file``.

    Raises ``OSError`` when the log file cannot be opened.
    """
    log_level = resolve_level(level)
    path = log_file if log_file is not None else default_log_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    fmt = DETAILED_FORMAT if log_level == logging.DEBUG else LOG_FORMAT
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.set_name(HANDLER_NAME)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
            existing.close()
    root.addHandler(handler)
    root.setLevel(log_level)
    logging.getLogger("pygls").setLevel(max(log_level, logging.WARNING))
    return path
