"""Health check endpoints for liveness and readiness."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


def _workers_ready(app) -> bool:
    """Return True once the capture scheduler is ticking."""
    scheduler = getattr(app.state, "scheduler", None)
    return scheduler is not None and scheduler.running


@router.get("/health/live")
async def live() -> dict:
    """Liveness probe that always succeeds."""
    return {"ok": True, "message": "live", "data": None}


@router.get("/health/ready")
async def ready(request: Request):
    """Readiness probe that verifies the capture scheduler is running."""
    app = request.app
    if getattr(app.state, "ready", False) and _workers_ready(app):
        return {"ok": True, "message": "ready", "data": None}
    return JSONResponse(
        status_code=503,
        content={"ok": False, "message": "not ready", "data": None},
    )
