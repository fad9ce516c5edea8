# -*- coding: utf-8 -*-
"""
Pytest Fixtures for Auxilium Tests

Provides:
- FakeEngine: in-memory engine that records concurrency, prompts and releases
- Async fixtures: session store, scheduler and chat manager on the test loop
- HTTP fixtures: FastAPI app with a FakeEngine and a TestClient
"""

from __future__ import annotations

import asyncio
from typing import AsyncGenerator, Generator, List, Optional, Set

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from auxilium.config import Settings
from auxilium.engine import EngineContext, InferenceEngine
from auxilium.errors import EngineInitializationError
from auxilium.manager import ChatManager
from auxilium.scheduler import RequestScheduler
from auxilium.sessions import SessionStore


# -----------------------------------------------------------------------------
# Fake Engine
# -----------------------------------------------------------------------------

class FakeContext(EngineContext):
    """Context that echoes the user part of each prompt."""

    def __init__(self, engine: "FakeEngine", system_prompt: Optional[str]):
        self.engine = engine
        self.system_prompt = system_prompt
        self.prompts: List[str] = []
        self.release_count = 0

    async def prompt(self, text: str) -> str:
        self.prompts.append(text)
        return await self.engine.run_turn(text)

    async def release(self) -> None:
        self.release_count += 1
        if self.engine.fail_release:
            raise RuntimeError("release failed")


class FakeEngine(InferenceEngine):
    """
    Engine double for scheduler and API tests.

    - active / max_active: concurrent prompt() invocations
    - calls: every prompt text, in execution order
    - gate: when set to an Event, every turn blocks until it is set
    - turn_started: set whenever a turn enters the engine
    - fail_on: prompts containing any of these substrings raise
    """

    def __init__(
        self,
        delay: float = 0.0,
        fail_on: Optional[Set[str]] = None,
        fail_init: bool = False,
        initialized: bool = True,
    ):
        self.delay = delay
        self.fail_on = fail_on or set()
        self.fail_init = fail_init
        self.fail_release = False
        self.fail_create = False
        self.gate: Optional[asyncio.Event] = None
        self.turn_started: Optional[asyncio.Event] = None

        self.active = 0
        self.max_active = 0
        self.calls: List[str] = []
        self.contexts: List[FakeContext] = []
        self.initialized_with = None
        self.closed = False
        self._initialized = initialized

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self, model) -> None:
        if self.fail_init:
            raise EngineInitializationError("model could not load", model=str(model))
        self.initialized_with = model
        self._initialized = True

    async def create_context(self, system_prompt: Optional[str] = None) -> EngineContext:
        if self.fail_create:
            raise RuntimeError("out of memory")
        context = FakeContext(self, system_prompt)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True

    async def run_turn(self, text: str) -> str:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.calls.append(text)
        try:
            if self.turn_started is not None:
                self.turn_started.set()
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(marker in text for marker in self.fail_on):
                raise RuntimeError("engine exploded")
            return f"  echo: {user_part(text)}  "
        finally:
            self.active -= 1


def user_part(prompt: str) -> str:
    return prompt.split("User: ", 1)[-1]


# -----------------------------------------------------------------------------
# Core Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest_asyncio.fixture
async def store(engine) -> SessionStore:
    return SessionStore(engine, max_sessions=3)


@pytest_asyncio.fixture
async def scheduler(store) -> AsyncGenerator[RequestScheduler, None]:
    scheduler = RequestScheduler(store, role_provider=lambda: "Be brief.")
    await scheduler.start()
    yield scheduler
    await scheduler.stop()


@pytest_asyncio.fixture
async def manager(engine) -> AsyncGenerator[ChatManager, None]:
    manager = ChatManager(engine, max_sessions=3, system_role="Be brief.")
    await manager.start()
    yield manager
    await manager.shutdown()


# -----------------------------------------------------------------------------
# HTTP Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        max_concurrent_sessions=2,
        system_role="You are a test assistant.",
        cors_origins=["http://localhost:3000"],
    )


@pytest.fixture
def api_engine() -> FakeEngine:
    return FakeEngine(fail_on={"boom"})


@pytest.fixture
def app(settings, api_engine):
    from auxilium.api.main import create_app
    return create_app(settings=settings, engine=api_engine)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """TestClient with the lifespan running (engine loaded, lane started)."""
    with TestClient(app) as c:
        yield c
