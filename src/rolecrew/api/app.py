"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from rolecrew.api.routes import health, pipelines
from rolecrew.core.config import AppSettings
from rolecrew.core.logging import configure_logging
from rolecrew.orchestration.service import PipelineService, create_service


def create_app(
    settings: AppSettings | None = None, service: PipelineService | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``service`` lets tests inject a PipelineService wired to in-memory fakes.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize and tear down application resources."""
        app_settings = settings or AppSettings()
        configure_logging(app_settings.log_level, app_settings.log_format)
        app.state.settings = app_settings
        app.state.service = service or create_service(app_settings)
        yield
        await app.state.service.aclose()

    app = FastAPI(
        title="RoleCrew Pipeline Orchestrator",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    app.include_router(pipelines.router)
    return app
