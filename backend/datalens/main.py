from __future__ import annotations
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from datalens.config import Settings, settings as default_settings
from datalens.core.registry import ConnectorRegistry, build_registry
from datalens.db import create_db_engine, init_db, make_session_factory
from datalens.errors import DataLensError
from datalens.log import setup_logging

from datalens.routers.dashboards import router as dashboards_router
from datalens.routers.data_sources import router as data_sources_router
from datalens.routers.health import router as health_router
from datalens.routers.widgets import router as widgets_router

log = logging.getLogger("datalens.main")


def create_app(app_settings: Settings | None = None, registry: ConnectorRegistry | None = None) -> FastAPI:
    """
    Build the FastAPI app.
    Nothing touches the database or the network until the lifespan starts,
    so importing this module is cheap. Tests pass their own settings and registry.
    """
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(app_settings.log_level)
        # Now, we initialize the database schema (create tables if missing).
        engine = create_db_engine(app_settings.database_url)
        init_db(engine)
        app.state.engine = engine
        app.state.session_factory = make_session_factory(engine)
        log.info("DB initialized.")

        # Now, we open one shared HTTP client for all connectors (connection pooling).
        client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)
        app.state.registry = registry if registry is not None else build_registry(app_settings, client)
        try:
            yield
        finally:
            await client.aclose()
            engine.dispose()
            log.info("Shut down cleanly.")

    app = FastAPI(title="DataLens", version="0.1.0", lifespan=lifespan)
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app_settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DataLensError)
    async def _datalens_error(request: Request, exc: DataLensError):
        if exc.status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request: {where} {first.get('msg', '')}".strip() if where else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(health_router)
    app.include_router(dashboards_router)
    app.include_router(widgets_router)
    app.include_router(data_sources_router)
    return app


app = create_app()
