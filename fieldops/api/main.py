"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fieldops.api.middleware.logging import LoggingMiddleware
from fieldops.api.routes import bookings, health, partners
from fieldops.core.config import Settings, get_settings
from fieldops.core.container import build_services
from fieldops.core.database import DatabaseManager
from fieldops.core.exceptions import ApplicationError, RateLimitedError
from fieldops.core.observability import setup_tracing

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize shared resources on startup and tear them down on shutdown."""

        database = DatabaseManager(settings)
        await database.initialize()
        app.state.database = database
        app.state.services = build_services(
            settings,
            bookings=database.bookings,
            partners=database.partners,
            coordination=database.coordination,
        )
        try:
            yield
        finally:
            await database.close()

    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_tracing(settings, app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.include_router(bookings.router, prefix="/api")
    app.include_router(partners.router, prefix="/api")
    app.include_router(health.router, prefix="/api")

    @app.exception_handler(ApplicationError)
    async def handle_application_error(_: Request, exc: ApplicationError):
        """Return standardized responses for application layer exceptions."""

        if exc.status_code >= 500:
            logger.warning("Request failed: %s", exc)
        headers = exc.headers() if isinstance(exc, RateLimitedError) else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "detail": exc.message, "code": exc.code, **exc.details},
            headers=headers,
        )

    return app


app = create_app()
