"""FastAPI app entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from focustube.core.config import settings
from focustube.core.errors import install_error_handlers
from focustube.routers import billing, categories, channels, extension, profile, videos, watch_time

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build FastAPI application."""

    app = FastAPI(title="FocusTube", version="0.1.0")
    # Dashboard origins plus the browser extension's chrome-/moz-extension:// origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.extension_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(channels.router)
    app.include_router(categories.router)
    app.include_router(videos.router)
    app.include_router(watch_time.router)
    app.include_router(profile.router)
    app.include_router(billing.router)
    app.include_router(extension.router)

    @app.get("/healthz", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    logger.debug("Application created", extra={"routes": len(app.routes)})
    return app


app = create_app()
