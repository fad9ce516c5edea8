# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/main.py — FastAPI Application Entry Point
# =================================================================================================
#   1. LIFESPAN MANAGEMENT: Engine load (fatal on failure), manager start, orderly shutdown.
#   2. MIDDLEWARE STACK: Request ID, timing, logging, CORS.
#   3. EXCEPTION HANDLERS: Consistent error responses across all endpoints.
#   4. DOCUMENTATION: OpenAPI/Swagger at /docs.
#
# Running the Server:
# -------------------
#   python -m auxilium
#   auxilium-server
#   uvicorn auxilium.api.main:create_app --factory --host 0.0.0.0 --port 3000
#
# =================================================================================================

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request

from auxilium import __version__
from auxilium.api.exceptions import RouteNotFoundError, register_exception_handlers
from auxilium.api.middleware import register_middleware
from auxilium.api.routers import chat, health
from auxilium.config import Settings, get_settings
from auxilium.engine import InferenceEngine, create_engine, model_reference
from auxilium.manager import ChatManager

# -----------------------------------------------------------------------------
# Logging Configuration
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
_LOG = logging.getLogger("auxilium.api.main")


# =============================================================================
# Application Lifespan (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
    --------
    - Initialize the inference engine. Any failure aborts startup.
    - Build the ChatManager and start the execution lane and reaper.

    Shutdown:
    ---------
    - Stop the reaper and the lane (queued requests fail with SchedulerStopped).
    - Delete every session, releasing its context.
    - Dispose of the engine.
    """
    settings: Settings = app.state.settings
    startup_time = time.time()
    _LOG.info("=" * 60)
    _LOG.info("Starting %s...", settings.app_name)
    _LOG.info("=" * 60)

    engine: InferenceEngine = app.state.engine or create_engine(settings)
    try:
        if not engine.is_initialized:
            await engine.initialize(model_reference(settings))
    except Exception as e:
        _LOG.error("Startup failed: %s", e, exc_info=True)
        raise

    manager = ChatManager.from_settings(settings, engine)
    await manager.start()
    app.state.manager = manager
    app.state.started_at = startup_time

    _LOG.info("Engine backend: %s", settings.engine_backend)
    _LOG.info("API prefix: %s", settings.api_prefix)
    _LOG.info("Max concurrent sessions: %d", settings.max_concurrent_sessions)
    _LOG.info("Startup complete in %.2f seconds", time.time() - startup_time)
    _LOG.info("=" * 60)

    yield

    _LOG.info("=" * 60)
    _LOG.info("Shutting down %s...", settings.app_name)
    app.state.manager = None
    await manager.shutdown()
    _LOG.info("Goodbye!")
    _LOG.info("=" * 60)


# =============================================================================
# FastAPI Application Factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[InferenceEngine] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Defaults to get_settings()
        engine: Pre-built engine (tests); otherwise built from settings at startup
    """
    settings = settings or get_settings()
    api_prefix = settings.api_prefix

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Multi-session chat over one serial inference engine. "
            "All messages from all sessions are processed one at a time, in arrival order."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.manager = None
    app.state.started_at = None

    register_exception_handlers(app)
    register_middleware(app, settings)

    app.include_router(health.router)
    app.include_router(chat.router, prefix=api_prefix)

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        """API root - returns basic info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "sessions": f"{api_prefix}/sessions",
                "status": f"{api_prefix}/status",
                "cleanup": f"{api_prefix}/cleanup",
                "system_role": f"{api_prefix}/system-role",
            },
        }

    @app.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        include_in_schema=False,
    )
    async def catch_all(path: str, request: Request) -> None:
        """Handle unmatched routes with 404."""
        raise RouteNotFoundError(request.method, f"/{path}")

    _LOG.debug("FastAPI application created")
    return app


# =============================================================================
# Direct Execution
# =============================================================================

def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    _LOG.info("Starting Uvicorn server...")
    _LOG.info("  Host: %s", settings.uvicorn_host)
    _LOG.info("  Port: %d", settings.uvicorn_port)

    uvicorn.run(
        "auxilium.api.main:create_app",
        factory=True,
        host=settings.uvicorn_host,
        port=settings.uvicorn_port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
