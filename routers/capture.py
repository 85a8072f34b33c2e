"""Capture state and counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from core.capture_controller import CaptureController
from modules.utils import require_credentials
from utils.deps import get_controller

router = APIRouter(prefix="/capture", dependencies=[Depends(require_credentials)])


@router.get("/status")
async def capture_status(
    request: Request, controller: CaptureController = Depends(get_controller)
) -> dict:
    data = controller.status()
    probe = getattr(request.app.state, "probe_result", None)
    data["probe"] = probe.as_dict() if probe is not None else None
    return data
