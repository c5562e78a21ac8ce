"""FastAPI application exposing liveness and readiness of the core."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from photoflow.api.routes import health
from photoflow.bootstrap import build
from photoflow.core.config import AppSettings
from photoflow.core.logging import configure_logging
from photoflow.workflow.engine import WorkflowEngine


def create_app(engine: WorkflowEngine | None = None) -> FastAPI:
    """Create the FastAPI application.

    With no ``engine`` the lifespan builds one from ``AppSettings`` and runs
    its worker pool for the lifetime of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if engine is not None:
            app.state.engine = engine
            yield
            return
        settings = AppSettings()
        configure_logging(settings.log_level)
        app.state.settings = settings
        app.state.engine, pool = build(settings)
        pool.start()
        try:
            yield
        finally:
            pool.stop()

    app = FastAPI(
        title="PhotoFlow Processing Core",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(health.router)
    return app
