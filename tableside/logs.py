"""Debug log setup."""

from __future__ import annotations

import logging
from pathlib import Path

from tableside.config import DEBUG_LOG_PATH

LOG_FORMAT = "%(asctime)s %(name)s %(message)s"


def setup_debug_log(path: str | Path = DEBUG_LOG_PATH, level: int = logging.DEBUG) -> logging.Handler:
    """Append every ``tableside`` log record to ``path``.

    Returns the handler so callers can remove it again.
    """
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)

    logger = logging.getLogger("tableside")
    logger.setLevel(level)
    logger.addHandler(handler)
    return handler
