"""Lightweight structured logging helpers.

Thin wrappers around :mod:`loguru` so capture code can emit events as JSON
payloads with a stable shape and credentials stripped from URLs.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict

from loguru import logger

from .url import mask_credentials

# in-memory state for throttling helpers
_last_times: Dict[str, float] = {}

# required field map for known events
_REQUIRED: dict[str, list[str]] = {
    "CAPTURE_START": ["profile", "url", "attempt", "timeout_s"],
    "CAPTURE_OK": ["profile", "attempt", "elapsed_s"],
    "CAPTURE_FAILED": ["profile", "attempt", "kind", "rc"],
    "CAPTURE_RETRY": ["attempt", "max_retries", "backoff_s"],
    "CAPTURE_GIVE_UP": ["attempts", "max_retries"],
}


def _validate(event: str, fields: Dict[str, Any]) -> None:
    required = _REQUIRED.get(event)
    if not required:
        return
    missing = [k for k in required if k not in fields]
    if missing:
        raise KeyError(f"missing fields for {event}: {', '.join(missing)}")


def build_payload(level: str, event: str, **fields: Any) -> Dict[str, Any]:
    """Return the structured payload for *event* after masking and validation."""

    for key in ("url", "cmd"):
        if key in fields:
            fields[key] = mask_credentials(str(fields[key]))
    _validate(event, fields)
    return {
        "ts": time.time(),
        "level": level,
        "event": event,
        **fields,
    }


def _log(level: str, event: str, **fields: Any) -> None:
    payload = build_payload(level, event, **fields)
    logger.log(level.upper(), json.dumps(payload, default=str))


def event(event: str, **fields: Any) -> None:
    """Log an informational *event* with structured *fields*."""

    _log("info", event, **fields)


def warn(event: str, **fields: Any) -> None:
    """Log a warning *event*."""

    _log("warning", event, **fields)


def error(event: str, **fields: Any) -> None:
    """Log an error *event*."""

    _log("error", event, **fields)


def debug(event: str, **fields: Any) -> None:
    """Log a debug *event*."""

    _log("debug", event, **fields)


def every(seconds: float, key: str) -> bool:
    """Return ``True`` if ``seconds`` elapsed since last call with *key*."""

    now = time.time()
    last = _last_times.get(key)
    if last is None or now - last >= seconds:
        _last_times[key] = now
        return True
    return False


__all__ = ["event", "warn", "error", "debug", "every", "build_payload"]
