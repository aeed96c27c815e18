"""Process-wide logging for ioc_intel.

Everything logs through the ``IOC-Intel`` logger. ``init_logging`` attaches a
DEBUG file handler under the data directory and a console handler whose level
comes from config. Calling it again with another data directory or filename
(a ``--data-dir`` override, a second CLI run in the same process) moves the
file handler instead of stacking a new one.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .config import AppConfig
from .errors import ConfigError

_LOGGER_NAME = "IOC-Intel"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_file_handler: Optional[logging.FileHandler] = None
_console_handler: Optional[logging.StreamHandler] = None


def parse_level(level: int | str) -> int:
    """``"debug"`` / ``"INFO"`` / ``30`` -> a logging level number."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown log level: {level!r}")
    return value


def _retarget_file(logger: logging.Logger, log_path: Path, fmt: logging.Formatter) -> None:
    global _file_handler

    if _file_handler is not None and _file_handler.baseFilename == os.path.abspath(log_path):
        return

    log_path.parent.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)

    if _file_handler is not None:
        logger.removeHandler(_file_handler)
        _file_handler.close()
    logger.addHandler(fh)
    _file_handler = fh


def init_logging(
    data_dir: str | Path,
    filename: str = "ioc_intel_debug.log",
    console_level: int | str = logging.INFO,
) -> logging.Logger:
    """Point file logging at ``<data_dir>/<filename>`` and set the console level."""
    global _console_handler
    level = parse_level(console_level)

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    fmt = logging.Formatter(_FORMAT)

    _retarget_file(logger, Path(data_dir) / filename, fmt)

    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(fmt)
        logger.addHandler(_console_handler)
    _console_handler.setLevel(level)

    logger.debug("Logging to %s (console level %s)", _file_handler.baseFilename, logging.getLevelName(level))
    return logger


def init_logging_from_config(cfg: AppConfig) -> logging.Logger:
    return init_logging(cfg.data_dir, cfg.log_filename, cfg.log_level)


def close_logging() -> None:
    """Detach and close the handlers ``init_logging`` added."""
    global _file_handler, _console_handler
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in (_file_handler, _console_handler):
        if handler is not None:
            logger.removeHandler(handler)
            handler.close()
    _file_handler = None
    _console_handler = None


def get_logger() -> logging.Logger:
    return logging.getLogger(_LOGGER_NAME)
