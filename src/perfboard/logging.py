"""The ``perfboard`` logger.

Every module logs through ``logging.getLogger(__name__)``; those loggers
sit under ``perfboard`` and inherit the stderr handler attached here.
``--log-file`` adds a second, timestamped handler via
:func:`configure_file_logging` so a run can be inspected afterwards.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = "data/logs"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _formatter() -> logging.Formatter:
    return logging.Formatter(_FORMAT, datefmt=_DATEFMT)


logger = logging.getLogger("perfboard")
logger.setLevel(logging.INFO)

_stderr = logging.StreamHandler(sys.stderr)
_stderr.setLevel(logging.INFO)
_stderr.setFormatter(_formatter())
logger.addHandler(_stderr)


def configure_file_logging(
    log_dir: str = DEFAULT_LOG_DIR,
    *,
    level: int = logging.INFO,
) -> logging.FileHandler:
    """Also write log records to ``<log_dir>/perfboard_<timestamp>.log``.

    The directory is created when missing.  The handler is returned so the
    caller can detach it with ``logger.removeHandler``.
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")

    file_handler = logging.FileHandler(directory / f"perfboard_{stamp}.log", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(_formatter())

    # a DEBUG file handler is useless behind an INFO logger
    logger.setLevel(min(logger.level, level))
    logger.addHandler(file_handler)
    return file_handler


__all__ = ["configure_file_logging", "logger"]
