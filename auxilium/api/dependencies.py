# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/api/dependencies.py — FastAPI Dependency Injection
# =================================================================================================
# The ChatManager is created by the application lifespan and stored on app.state; routes receive
# it through get_manager instead of a module-level singleton.
# =================================================================================================

from __future__ import annotations

from fastapi import Request

from auxilium.errors import SchedulerStopped
from auxilium.manager import ChatManager


def get_manager(request: Request) -> ChatManager:
    """Chat manager for the running app. 503 until the lifespan has started it."""
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise SchedulerStopped("Chat service is not ready")
    return manager

