"""Root logger setup for the CLI: console output plus an optional rotating file."""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
LOG_FILENAME = "catalog_feed.log"
MAX_BYTES = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 5
LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_level(name: str) -> int:
    """Map a level name such as ``debug`` to its numeric logging level."""
    normalized = str(name).strip().upper()
    if normalized not in LEVEL_NAMES:
        raise ValueError(f"Invalid log level: {name}")
    return getattr(logging, normalized)


def setup_logging(level: str | None = None, log_dir: str | None = None) -> None:
    """Configure the root logger from scratch.

    Args:
        level: Level name. Falls back to the LOG_LEVEL env var, then INFO;
               unknown names also mean INFO.
        log_dir: If given, also write to ``<log_dir>/catalog_feed.log``.
    """
    try:
        numeric_level = parse_level(level or os.environ.get("LOG_LEVEL", "INFO"))
    except ValueError:
        numeric_level = logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path / LOG_FILENAME,
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root.addHandler(handler)


def set_log_level(level: str) -> None:
    """Switch the root logger and its handlers to ``level``; rejects unknown names."""
    numeric_level = parse_level(level)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for handler in root.handlers:
        handler.setLevel(numeric_level)
