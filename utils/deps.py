"""Dependency providers for shared application state."""

from __future__ import annotations

from fastapi import HTTPException
from starlette.requests import HTTPConnection
from starlette.staticfiles import StaticFiles

from core.capture_controller import CaptureController
from core.config import Settings


def get_settings(request: HTTPConnection) -> Settings:
    return request.app.state.settings


def get_controller(request: HTTPConnection) -> CaptureController:
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise HTTPException(status_code=503, detail="Capture controller not running")
    return controller


def get_static_files(request: HTTPConnection) -> StaticFiles:
    return request.app.state.static_files
