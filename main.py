"""Application entry point instantiating the FastAPI app."""

from __future__ import annotations

from fastapi import FastAPI
from loguru import logger
from starlette.staticfiles import StaticFiles

from core.config import Settings, get_settings
from logging_config import setup_logging
from routers import blueprints
from server.startup import handle_unexpected_error, lifespan

logger = logger.bind(module="app")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app; background capture starts with the lifespan."""
    settings = settings or get_settings()
    app = FastAPI(
        title="RTSP Snapshot",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.ready = False
    app.state.controller = None
    app.state.scheduler = None
    app.state.static_files = StaticFiles(
        directory=str(settings.static_dir), html=True, check_dir=False
    )
    app.add_exception_handler(Exception, handle_unexpected_error)
    blueprints.register_blueprints(app)
    return app


def run() -> None:
    """Console entry point: serve on ``HOST:PORT``."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


app = create_app()

if __name__ == "__main__":
    run()
