"""Expose router modules and blueprint helpers."""

__all__ = [
    "blueprints",
    "capture",
    "config_api",
    "health",
    "snapshot",
    "viewer",
]
