# =============================================================================
# REAPER - Inactivity Sweep
# =============================================================================
# Periodically deletes sessions whose last activity is older than the
# configured maximum age. Each candidate is re-tested at deletion time, and a
# deletion that races an in-flight turn waits for that turn before releasing.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from auxilium.errors import InvalidInput
from auxilium.sessions import SessionStore

_LOG = logging.getLogger("auxilium.reaper")


class InactivityReaper:
    """Periodic stale-session sweep over a SessionStore."""

    def __init__(
        self,
        store: SessionStore,
        interval_minutes: float = 30.0,
        max_age_minutes: float = 60.0,
    ):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be > 0")
        if max_age_minutes <= 0:
            raise ValueError("max_age_minutes must be > 0")
        self._store = store
        self.interval_minutes = interval_minutes
        self.max_age_minutes = max_age_minutes
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, max_age_minutes: Optional[float] = None) -> int:
        """
        Delete every session idle longer than max_age_minutes.

        Returns the number of sessions actually deleted. Individual failures
        are logged and do not stop the sweep.
        """
        max_age = self.max_age_minutes if max_age_minutes is None else max_age_minutes
        if max_age < 0:
            raise InvalidInput("max_age_minutes cannot be negative", field="max_age_minutes")

        cleaned = 0
        for session_id in self._store.stale(max_age * 60):
            try:
                if await self._store.delete_if_stale(session_id, max_age * 60):
                    cleaned += 1
            except Exception as e:
                _LOG.warning("Failed to reap session %s: %s", session_id, e)

        if cleaned:
            _LOG.info("Cleaned up %d inactive sessions", cleaned)
        return cleaned

    async def start(self) -> None:
        if self.is_running:
            _LOG.warning("Reaper already running")
            return
        self._task = asyncio.create_task(self._run(), name="auxilium_reaper")
        _LOG.info(
            "Reaper started: interval=%.1fmin, max_age=%.1fmin",
            self.interval_minutes, self.max_age_minutes,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        _LOG.info("Reaper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_minutes * 60)
            try:
                await self.sweep()
            except Exception:
                _LOG.error("Reaper sweep failed", exc_info=True)
