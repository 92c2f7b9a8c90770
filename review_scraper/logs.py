"""Logging setup shared by the app and the `/api/logs` endpoint."""

import logging
import os
from pathlib import Path
from typing import Optional

from .config import LOG_FILE, LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("app")


def configure_logging(log_file: Optional[Path] = None, level: str = LOG_LEVEL) -> None:
    """Log to the console and to a flat file that `/api/logs` serves back.

    Safe to call more than once; the file handler is attached to the
    `app` logger only if one for the same path is not already there.
    """
    path = Path(log_file or LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)

    target = os.path.abspath(path)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)


def read_log_file(log_file: Optional[Path] = None) -> str:
    return Path(log_file or LOG_FILE).read_text(encoding="utf-8")
