"""Central Loguru configuration."""

from __future__ import annotations

import os
import shutil
import sys
import threading
from pathlib import Path

from loguru import logger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_PATH = Path(os.getenv("LOG_PATH", "logs/app.log"))
LOG_ROTATION = os.getenv("LOG_ROTATION", "10 MB")
LOG_RETENTION = os.getenv("LOG_RETENTION", "7 days")
# Bytes required to enable file logging (default 50 MB)
MIN_FREE_SPACE = 50 * 1024 * 1024
# Set to a truthy value to disable file logging entirely
DISABLE_FILE_LOGGING = os.getenv("DISABLE_FILE_LOGGING", "").lower() in {
    "1",
    "true",
    "yes",
}
LOG_JSON = os.getenv("LOG_JSON", "").lower() in {"1", "true", "yes"}

_lock = threading.Lock()
_sink_ids: list[int] = []


def _configure(level: str = LOG_LEVEL) -> None:
    """Replace the sinks owned by this module with fresh ones at ``level``."""
    global _sink_ids
    with _lock:
        for sink_id in _sink_ids:
            try:
                logger.remove(sink_id)
            except ValueError:
                continue
        _sink_ids = [
            logger.add(
                sys.stdout,
                level=level,
                enqueue=True,
                serialize=LOG_JSON,
            )
        ]

    if DISABLE_FILE_LOGGING:
        logger.debug("File logging disabled via DISABLE_FILE_LOGGING")
        return

    try:
        LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        free_space = shutil.disk_usage(LOG_PATH.parent).free
    except OSError as exc:
        logger.warning("Log directory {} unavailable; skipping file logging: {}", LOG_PATH.parent, exc)
        return
    if free_space < MIN_FREE_SPACE:
        logger.warning(
            "Insufficient disk space for {}; skipping file logging ({:.2f} MB free)",
            LOG_PATH,
            free_space / (1024 * 1024),
        )
        return

    with _lock:
        _sink_ids.append(
            logger.add(
                LOG_PATH,
                rotation=LOG_ROTATION,
                retention=LOG_RETENTION,
                level=level,
                enqueue=True,
                serialize=True,
            )
        )


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Initialise logging sinks."""
    logger.remove()
    _configure(level)


def set_log_level(level: str) -> None:
    """Update logger level at runtime."""
    _configure(level.upper())


__all__ = ["LOG_LEVEL", "logger", "setup_logging", "set_log_level"]
