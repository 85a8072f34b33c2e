from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.capture_controller import CaptureController
from core.config import Settings
from core.scheduler import CaptureScheduler
from logging_config import setup_logging
from modules.connectivity_probe import probe_source
from utils.preflight import remove_frames, run_preflight
from utils.url import mask_credentials

logger = logger.bind(module="startup")


async def handle_unexpected_error(request: Request, exc: Exception):
    """Catch-all handler that logs the error and returns a JSON 500."""
    if isinstance(exc, StarletteHTTPException):
        return await http_exception_handler(request, exc)

    logger.exception("Unhandled application error: {}", exc)
    return JSONResponse({"detail": "Internal Server Error"}, status_code=500)


def _log_banner(settings: Settings) -> None:
    logger.info("Server running at http://{}:{}", settings.host, settings.port)
    logger.info("Capturing from RTSP: {}", mask_credentials(settings.source_url))
    logger.info("Images will be captured every {:g} seconds", settings.capture_interval_s)
    logger.info("Basic Authentication: {}", "ENABLED" if settings.auth_enabled else "DISABLED")
    if settings.auth_enabled:
        logger.info("Auth Username: {}", settings.auth_username)
        logger.info("Auth Password: [PROTECTED]")


async def _run_probe(app: FastAPI, settings: Settings) -> None:
    try:
        app.state.probe_result = await probe_source(settings)
    except Exception:
        logger.exception("RTSP connection test crashed")


def init_app(app: FastAPI) -> dict[str, bool]:
    """Create the capture controller and scheduler on ``app.state``."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)
    report = run_preflight(settings)

    controller = CaptureController(settings)
    scheduler = CaptureScheduler(
        controller,
        interval_s=settings.capture_interval_s,
        startup_delay_s=settings.startup_delay_s,
    )
    app.state.preflight = report
    app.state.controller = controller
    app.state.scheduler = scheduler
    app.state.probe_result = None
    return report


async def stop_all(app: FastAPI) -> None:
    """Stop background work and delete the served frame."""
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        await scheduler.stop()

    probe_task = getattr(app.state, "probe_task", None)
    if probe_task is not None:
        probe_task.cancel()
        with suppress(asyncio.CancelledError):
            await probe_task

    logger.info("Cleaning up...")
    remove_frames(app.state.settings)
    app.state.ready = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_time = time.time()
    settings: Settings = app.state.settings
    init_app(app)
    _log_banner(settings)

    app.state.probe_task = asyncio.create_task(_run_probe(app, settings), name="rtsp-probe")
    app.state.scheduler.start()
    app.state.ready = True
    logger.info("Startup complete in {:.2f}s", time.time() - start_time)

    try:
        yield
    finally:
        await stop_all(app)
