from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from .config import ServerConfig

_LEVELS: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}

_FALLBACK_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_level(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    text = str(value).strip().upper()
    if text in _LEVELS:
        return _LEVELS[text]
    try:
        return int(text)
    except ValueError:
        return default


def _blank_to_none(value: Any) -> str | None:
    if value is None or not str(value).strip():
        return None
    return str(value)


def _file_handler(log_file: str) -> logging.Handler:
    p = Path(os.path.expanduser(log_file))
    p.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(p, encoding="utf-8")
    try:
        os.chmod(p, 0o600)
    except OSError:
        pass
    return handler


def configure_logging(
    cfg: ServerConfig,
    *,
    override_level: str | None = None,
    override_file: str | None = None,
) -> None:
    """Install console and/or file handlers on the root logger.

    An ``override_file`` of "" disables file logging even when the config
    names a file. Safe to call more than once.
    """
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())

    log_file = _blank_to_none(cfg.log_file if override_file is None else override_file)
    if log_file:
        handlers.append(_file_handler(log_file))

    formatter = logging.Formatter(
        fmt=_blank_to_none(cfg.log_format) or _FALLBACK_FORMAT,
        datefmt=_blank_to_none(cfg.log_datefmt),
    )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)

    root.setLevel(_parse_level(override_level or cfg.log_level, logging.INFO))
    logging.captureWarnings(True)
