# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/manager.py — Chat Manager
# =================================================================================================
# The single object constructed at startup that owns the engine, the session store, the request
# scheduler, the inactivity reaper and the process-wide system role. The HTTP layer receives it
# through a FastAPI dependency; nothing reaches it through module globals.
# =================================================================================================

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from auxilium.config import DEFAULT_SYSTEM_ROLE, Settings
from auxilium.engine import InferenceEngine
from auxilium.errors import InvalidInput
from auxilium.reaper import InactivityReaper
from auxilium.scheduler import RequestScheduler
from auxilium.sessions import SessionStore

_LOG = logging.getLogger("auxilium.manager")


class ChatManager:
    """
    Session lifecycle plus serialized inference over one shared engine.

    Lifecycle:
        manager = ChatManager(engine)
        await manager.start()      # execution lane + reaper
        ...
        await manager.shutdown()   # stop lane, delete sessions, close engine
    """

    def __init__(
        self,
        engine: InferenceEngine,
        max_sessions: int = 10,
        system_role: str = DEFAULT_SYSTEM_ROLE,
        max_queue_size: int = 0,
        cleanup_interval_minutes: float = 30.0,
        max_session_age_minutes: float = 60.0,
    ):
        if not isinstance(system_role, str) or not system_role:
            raise InvalidInput("System role cannot be empty", field="system_role")

        self.engine = engine
        self._system_role = system_role
        self.store = SessionStore(engine, max_sessions=max_sessions)
        self.scheduler = RequestScheduler(
            self.store,
            role_provider=self.get_system_role,
            max_queue_size=max_queue_size,
        )
        self.reaper = InactivityReaper(
            self.store,
            interval_minutes=cleanup_interval_minutes,
            max_age_minutes=max_session_age_minutes,
        )

    @classmethod
    def from_settings(cls, settings: Settings, engine: InferenceEngine) -> "ChatManager":
        return cls(
            engine,
            max_sessions=settings.max_concurrent_sessions,
            system_role=settings.system_role,
            max_queue_size=settings.max_queue_size,
            cleanup_interval_minutes=settings.cleanup_interval_minutes,
            max_session_age_minutes=settings.max_session_age_minutes,
        )

    @property
    def max_sessions(self) -> int:
        return self.store.max_sessions

    async def start(self) -> None:
        await self.scheduler.start()
        await self.reaper.start()

    async def shutdown(self) -> None:
        _LOG.info("Shutting down chat manager...")
        await self.reaper.stop()
        await self.scheduler.stop()

        deleted = await self.store.clear()
        if deleted:
            _LOG.info("Deleted %d sessions", deleted)

        try:
            await self.engine.close()
        except Exception:
            _LOG.error("Error disposing engine", exc_info=True)
        _LOG.info("Chat manager shutdown complete")

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(self, session_id: Optional[str] = None) -> str:
        return await self.store.create(session_id, system_prompt=self._system_role)

    async def send_message(self, session_id: str, message: str) -> Dict[str, Any]:
        """Run one turn. Returns {"response", "timestamp"}."""
        response = await self.scheduler.submit(session_id, message)
        return {"response": response, "timestamp": time.time()}

    def get_history(self, session_id: str) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.store.history(session_id)]

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete(session_id)

    def get_active_sessions(self) -> List[Dict[str, Any]]:
        return self.store.list_sessions()

    def get_status(self) -> Dict[str, Any]:
        return {
            "queue_length": self.scheduler.queue_length,
            "is_processing": self.scheduler.is_processing,
            "active_sessions": self.store.count,
            "max_sessions": self.store.max_sessions,
        }

    async def cleanup_inactive_sessions(self, max_age_minutes: float = 60.0) -> int:
        return await self.reaper.sweep(max_age_minutes)

    # -------------------------------------------------------------------------
    # System role
    # -------------------------------------------------------------------------

    def get_system_role(self) -> str:
        return self._system_role

    def update_system_role(self, system_role: str) -> None:
        """Replace the role for every subsequent turn across all sessions."""
        if not isinstance(system_role, str) or not system_role:
            raise InvalidInput("System role cannot be empty", field="system_role")
        self._system_role = system_role
        _LOG.info("System role updated")
