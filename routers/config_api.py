"""Expose runtime configuration details to the viewer."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.config import Settings
from modules.utils import require_credentials
from utils.deps import get_settings

router = APIRouter(dependencies=[Depends(require_credentials)])


@router.get("/config")
async def config_endpoint(settings: Settings = Depends(get_settings)) -> dict:
    """Return the capture interval so the viewer refreshes in step."""
    return {"captureIntervalMs": settings.capture_interval_ms}
