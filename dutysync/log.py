from __future__ import annotations

import logging
import sys

from dutysync.config import get_log_level

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    logger = logging.getLogger("dutysync")
    logger.setLevel(getattr(logging, (level or get_log_level()), logging.INFO))
    # Re-importing the app (tests, reloaders) must not stack handlers.
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
    return logger
