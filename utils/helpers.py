"""
Helpers & Utilities
===================
Shared utility functions used across the application.
"""

import logging
import re
import sys

from config.settings import settings


# ── Logging ───────────────────────────────────────────────
def setup_logger(name: str = "bill_analyzer", level: int | str = logging.INFO) -> logging.Logger:
    """
    Create and configure a logger with console output.

    Module loggers named ``bill_analyzer.<module>`` propagate to it.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


logger = setup_logger(level=settings.LOG_LEVEL)


def get_logger(module: str) -> logging.Logger:
    """Return a child of the application logger."""
    return logger.getChild(module)


# ── Filenames ─────────────────────────────────────────────
_NON_ASCII = re.compile(r"[^\x00-\x7F]")


def sanitize_filename(filename: str | None, default: str = "unnamed.pdf") -> str:
    """Drop non-ASCII characters so the name is safe as a storage key."""
    cleaned = _NON_ASCII.sub("", filename or "").strip()
    return cleaned or default

