"""Helper to register all router modules."""

from __future__ import annotations

from fastapi import FastAPI

from . import capture, config_api, health, snapshot, viewer

# Ordered registry of router modules; viewer has a catch-all path and goes last
MODULES = [
    health,
    snapshot,
    config_api,
    capture,
    viewer,
]


# register_blueprints routine
def register_blueprints(app: FastAPI) -> None:
    """Attach all routers to the given FastAPI app."""
    for mod in MODULES:
        app.include_router(mod.router)
