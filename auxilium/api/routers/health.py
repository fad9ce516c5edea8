# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/routers/health.py — Health Check
# =================================================================================================
# GET /health is mounted at the root (no API prefix) so load balancers can probe it directly.
# =================================================================================================

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from auxilium.api.schemas import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
)
async def health(request: Request) -> HealthResponse:
    """Returns 200 while the process is up; engine_ready reports the model state."""
    started_at = getattr(request.app.state, "started_at", None) or time.time()
    manager = getattr(request.app.state, "manager", None)
    return HealthResponse(
        status="healthy",
        timestamp=time.time(),
        uptime=time.time() - started_at,
        engine_ready=manager is not None and manager.engine.is_initialized,
    )
