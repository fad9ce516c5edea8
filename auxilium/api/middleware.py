# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/middleware.py — Middleware Stack
# =================================================================================================
#   1. REQUEST ID: Unique ID per request for log correlation (X-Request-ID).
#   2. TIMING HEADERS: X-Response-Time header for client-side metrics.
#   3. REQUEST LOGGING: One log line per request with status and duration.
#   4. CORS: Allowed origins from settings (the chat widget runs on another origin).
#
# Middleware Execution Order:
# ---------------------------
#   1. RequestIDMiddleware (adds request ID for tracing)
#   2. TimingMiddleware (measures response time)
#   3. RequestLoggingMiddleware (logs request/response)
#
# =================================================================================================

from __future__ import annotations

import logging
import time
import uuid
from typing import List, Set

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from auxilium.config import Settings

_LOG = logging.getLogger("auxilium.api.middleware")


# =============================================================================
# Request ID Middleware
# =============================================================================

class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Adds a request ID to each request.

    Uses the client's X-Request-ID header when present, otherwise a UUID4.
    Stored in request.state.request_id and echoed in the response headers.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# =============================================================================
# Timing Middleware
# =============================================================================

class TimingMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time (milliseconds) to every response."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start_time = time.perf_counter()
        request.state.start_time = start_time

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


# =============================================================================
# Request Logging Middleware
# =============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request/response logging.

    Log Levels:
    -----------
    - INFO: Successful requests (2xx/3xx)
    - WARNING: Client errors (4xx)
    - ERROR: Server errors (5xx)
    """

    SKIP_PATHS: Set[str] = {
        "/health",
        "/favicon.ico",
    }

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path
        request_id = getattr(request.state, "request_id", "unknown")

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            if status_code >= 500:
                log = _LOG.error
            elif status_code >= 400:
                log = _LOG.warning
            else:
                log = _LOG.info
            log(
                "%s %s -> %d (%.2fms) [%s]",
                method, path, status_code, duration_ms, request_id,
            )

        return response


# =============================================================================
# CORS Configuration
# =============================================================================

def configure_cors(app: FastAPI, origins: List[str]) -> None:
    """Configure CORS for the chat widget origins."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )
    _LOG.info("CORS configured: origins=%s", origins)


# =============================================================================
# Middleware Registration
# =============================================================================

def register_middleware(app: FastAPI, settings: Settings) -> None:
    """
    Register all middleware in correct order.

    Middleware is executed in reverse order of registration:
    last registered = first to process the request.
    """
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    configure_cors(app, origins=settings.cors_origins)
