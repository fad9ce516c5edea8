# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/scheduler.py — Request Scheduler (single execution lane)
# =================================================================================================
# Serializes every inference call through one worker task:
#
#   1. GLOBAL FIFO: Requests from all sessions share one asyncio.Queue, served in submission order.
#   2. SINGLE LANE: Exactly one worker task drains the queue, so at most one engine call is active.
#   3. FUTURES: Each submission carries its own asyncio.Future, resolved exactly once.
#   4. ERROR ISOLATION: A failing request rejects only its own future; the lane keeps draining.
#   5. SHUTDOWN: stop() fails everything still queued and lets the in-flight turn finish.
#
# Usage:
# ------
#   scheduler = RequestScheduler(store, role_provider=lambda: "You are helpful.")
#   await scheduler.start()
#   response = await scheduler.submit(session_id, "hello")
#
# =================================================================================================

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from auxilium.errors import (
    AuxiliumError,
    EngineFailure,
    InvalidInput,
    NotFound,
    QueueFull,
    SchedulerStopped,
)
from auxilium.sessions import SessionStore

_LOG = logging.getLogger("auxilium.scheduler")


def compose_prompt(system_role: str, message: str) -> str:
    """Turn text sent to the engine; the role is restated on every turn."""
    return f"System: {system_role}\n\nUser: {message}"


@dataclass
class QueuedRequest:
    """One pending turn. Consumed exactly once by the execution lane."""
    session_id: str
    message: str
    future: asyncio.Future = field(repr=False)
    enqueued_at: float = field(default_factory=time.time)


class RequestScheduler:
    """
    Multi-producer, single-consumer request queue.

    Thread Safety:
    --------------
    All state lives on one event loop. submit() only appends to the queue;
    the worker task is the only code that prompts an engine context.
    """

    def __init__(
        self,
        store: SessionStore,
        role_provider: Callable[[], str],
        max_queue_size: int = 0,
    ):
        """
        Args:
            store: Session store used to resolve each request
            role_provider: Returns the current system role at turn time
            max_queue_size: Pending-request bound (0 = unbounded)
        """
        if max_queue_size < 0:
            raise ValueError("max_queue_size must be >= 0")
        self._store = store
        self._role_provider = role_provider
        self.max_queue_size = max_queue_size

        self._queue: "asyncio.Queue[QueuedRequest]" = asyncio.Queue(maxsize=max_queue_size)
        self._worker_task: Optional[asyncio.Task] = None
        self._current: Optional[QueuedRequest] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._running = False

    @property
    def queue_length(self) -> int:
        return self._queue.qsize()

    @property
    def is_processing(self) -> bool:
        return self._current is not None

    @property
    def is_running(self) -> bool:
        return self._running

    def status(self) -> Dict[str, Any]:
        return {
            "queue_length": self.queue_length,
            "is_processing": self.is_processing,
            "is_running": self.is_running,
        }

    async def start(self) -> None:
        if self._running:
            _LOG.warning("Scheduler already running")
            return

        self._running = True
        self._worker_task = asyncio.create_task(self._worker(), name="auxilium_execution_lane")
        _LOG.info(
            "Scheduler started: max_queue_size=%s",
            self.max_queue_size or "unbounded",
        )

    async def stop(self) -> None:
        """
        Fail every queued request, let the in-flight turn finish, then stop the lane.

        The in-flight turn is never cancelled; its engine call may still be
        running in a worker thread.
        """
        if not self._running:
            return

        _LOG.info("Scheduler shutting down...")
        self._running = False

        failed = 0
        while not self._queue.empty():
            try:
                request = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._reject(request, SchedulerStopped("Request scheduler stopped"))
            self._queue.task_done()
            failed += 1
        if failed:
            _LOG.info("Failed %d pending requests", failed)

        if self._current is not None:
            _LOG.info("Waiting for in-flight turn: session=%s", self._current.session_id)
            await self._idle.wait()

        # The lane is now parked on an empty queue
        if self._worker_task is not None:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None

        _LOG.info("Scheduler shutdown complete")

    async def submit(self, session_id: str, message: str) -> str:
        """
        Queue one turn and wait for its response.

        Raises:
            InvalidInput: message is empty
            SchedulerStopped: the lane is not running
            NotFound: session is unknown, or deleted before the turn completed
            QueueFull: bounded queue is at capacity
            EngineFailure: inference failed
        """
        if not isinstance(message, str) or not message:
            raise InvalidInput("Message cannot be empty", field="message")
        if not self._running:
            raise SchedulerStopped()

        # Fail fast for unknown sessions; the lane re-checks at turn time
        self._store.get(session_id)

        loop = asyncio.get_running_loop()
        request = QueuedRequest(session_id=session_id, message=message, future=loop.create_future())

        try:
            self._queue.put_nowait(request)
        except asyncio.QueueFull:
            raise QueueFull(self.max_queue_size) from None

        _LOG.debug("Request queued: session=%s, queue_length=%d", session_id, self.queue_length)
        return await request.future

    # -------------------------------------------------------------------------
    # Execution lane
    # -------------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            request = await self._queue.get()
            self._current = request
            self._idle.clear()
            try:
                response = await self._process(request)
            except AuxiliumError as e:
                _LOG.warning("Request failed: session=%s, error=%s", request.session_id, e.code)
                self._reject(request, e)
            except Exception as e:
                _LOG.error("Unexpected error processing session %s", request.session_id, exc_info=True)
                self._reject(request, EngineFailure(str(e), session_id=request.session_id))
            else:
                self._resolve(request, response)
            finally:
                self._current = None
                self._idle.set()
                self._queue.task_done()

    async def _process(self, request: QueuedRequest) -> str:
        session = self._store.get(request.session_id)

        async with session.turn_lock:
            if session.tombstoned:
                raise NotFound(request.session_id)

            waited = time.time() - request.enqueued_at
            started = time.perf_counter()
            prompt = compose_prompt(self._role_provider(), request.message)
            try:
                raw = await session.context.prompt(prompt)
            except Exception as e:
                raise EngineFailure(
                    f"Failed to process message: {e}", session_id=request.session_id
                ) from e

            # Deleted while the engine was running
            if session.tombstoned:
                raise NotFound(request.session_id)

            response = (raw or "").strip()
            self._store.append_turn(request.session_id, request.message, response)

        _LOG.debug(
            "Turn complete: session=%s, waited=%.3fs, took=%.3fs",
            request.session_id, waited,
            time.perf_counter() - started,
        )
        return response

    @staticmethod
    def _resolve(request: QueuedRequest, response: str) -> None:
        if not request.future.done():
            request.future.set_result(response)

    @staticmethod
    def _reject(request: QueuedRequest, error: BaseException) -> None:
        if not request.future.done():
            request.future.set_exception(error)
