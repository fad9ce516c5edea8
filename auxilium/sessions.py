# =============================================================================
# SESSIONS - Session Store
# =============================================================================
# Owns the mapping from session id to conversation state, enforces the
# live-session ceiling and owns per-session history. Every session holds one
# engine context, allocated at creation and released exactly once at deletion.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from auxilium.engine import EngineContext, InferenceEngine
from auxilium.errors import CapacityExceeded, DuplicateId, EngineFailure, NotFound

_LOG = logging.getLogger("auxilium.sessions")


@dataclass
class HistoryEntry:
    """One history message. Timestamps are Unix epoch seconds."""
    role: str
    content: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }


@dataclass
class Session:
    """
    One isolated conversation.

    Attributes:
        session_id: Unique id among live sessions
        context: Engine context owned by this session
        history: Ordered user/assistant entries
        created_at: Creation timestamp
        last_activity: Updated on every completed turn
        tombstoned: Set by delete before the context is released
        turn_lock: Held by the execution lane for the duration of a turn
    """
    session_id: str
    context: EngineContext = field(repr=False)
    history: List[HistoryEntry] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)
    last_activity: float = 0.0
    tombstoned: bool = False
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self):
        if not self.last_activity:
            self.last_activity = self.created_at

    @property
    def message_count(self) -> int:
        return len(self.history)

    def touch(self, now: Optional[float] = None) -> None:
        self.last_activity = now if now is not None else time.time()

    def to_summary(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "created_at": self.created_at,
            "last_activity": self.last_activity,
            "message_count": self.message_count,
        }


class SessionStore:
    """
    Live-session map guarded by an asyncio lock.

    create() and the map-removal part of delete() are serialized by the
    store lock. delete() then waits on the session's turn lock, so a context
    is never released while the execution lane is prompting it.
    """

    def __init__(self, engine: InferenceEngine, max_sessions: int = 10):
        if max_sessions < 1:
            raise ValueError("max_sessions must be >= 1")
        self._engine = engine
        self.max_sessions = max_sessions
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def count(self) -> int:
        return len(self._sessions)

    async def create(
        self,
        session_id: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        Create a session and allocate its engine context.

        A caller-supplied id is used as is; otherwise a UUID4 is generated.

        Raises:
            CapacityExceeded: live-session ceiling reached
            DuplicateId: session_id is already live
            EngineFailure: the engine could not allocate a context
        """
        async with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise CapacityExceeded(self.max_sessions)

            if session_id and session_id in self._sessions:
                raise DuplicateId(session_id)

            session_id = session_id or str(uuid.uuid4())

            try:
                context = await self._engine.create_context(system_prompt)
            except Exception as e:
                _LOG.error("Failed to create context for session %s: %s", session_id, e)
                raise EngineFailure(
                    f"Failed to create engine context: {e}", session_id=session_id
                ) from e

            self._sessions[session_id] = Session(session_id=session_id, context=context)

        _LOG.info("Session created: %s (%d/%d)", session_id, len(self._sessions), self.max_sessions)
        return session_id

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFound(session_id)
        return session

    async def delete(self, session_id: str) -> None:
        """
        Remove a session and release its context exactly once.

        Release failures are logged; the session is gone from the map either way.
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                raise NotFound(session_id)
            session.tombstoned = True

        await self._release(session)

    async def delete_if_stale(
        self,
        session_id: str,
        max_age_seconds: float,
        now: Optional[float] = None,
    ) -> bool:
        """
        Delete a session only if it is still idle for longer than max_age_seconds.

        The age is re-tested under the store lock, so a session that completed a
        turn after it was picked as stale survives. Returns True if deleted.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            now = now if now is not None else time.time()
            if now - session.last_activity <= max_age_seconds:
                _LOG.debug("Session %s active again, not reaping", session_id)
                return False
            del self._sessions[session_id]
            session.tombstoned = True

        await self._release(session)
        return True

    async def _release(self, session: Session) -> None:
        # Wait for an in-flight turn on this session to finish
        async with session.turn_lock:
            try:
                await session.context.release()
            except Exception as e:
                _LOG.warning(
                    "Failed to release context for session %s: %s", session.session_id, e,
                    exc_info=True,
                )

        _LOG.info("Session deleted: %s", session.session_id)

    def list_sessions(self) -> List[Dict[str, Any]]:
        return [s.to_summary() for s in list(self._sessions.values())]

    def append_turn(self, session_id: str, user_message: str, assistant_message: str) -> None:
        """Append one user/assistant pair and update last_activity."""
        session = self._sessions.get(session_id)
        if session is None or session.tombstoned:
            raise NotFound(session_id)

        now = time.time()
        session.history.append(HistoryEntry("user", user_message, now))
        session.history.append(HistoryEntry("assistant", assistant_message, now))
        session.touch(now)

    def history(self, session_id: str) -> List[HistoryEntry]:
        return list(self.get(session_id).history)

    def stale(self, max_age_seconds: float, now: Optional[float] = None) -> List[str]:
        """Ids of sessions idle for strictly longer than max_age_seconds."""
        now = now if now is not None else time.time()
        return [
            sid for sid, s in list(self._sessions.items())
            if now - s.last_activity > max_age_seconds
        ]

    async def clear(self) -> int:
        """Delete every live session. Returns the number deleted."""
        deleted = 0
        for session_id in list(self._sessions.keys()):
            try:
                await self.delete(session_id)
                deleted += 1
            except NotFound:
                continue
            except Exception as e:
                _LOG.warning("Failed to delete session %s: %s", session_id, e)
        return deleted
