"""Serve the most recent captured frame."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from core.config import Settings
from modules.utils import require_credentials
from utils.deps import get_settings

router = APIRouter(dependencies=[Depends(require_credentials)])

NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/current-image")
async def current_image(settings: Settings = Depends(get_settings)) -> FileResponse:
    """Return the last good frame, or 404 until the first capture succeeds.

    Never waits on an in-flight capture; frames are published by rename so
    the file on disk is always complete.
    """
    path = settings.image_path
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Image not available")
    return FileResponse(path, media_type="image/jpeg", headers=NO_CACHE)
