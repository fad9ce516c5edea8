# =============================================================================
# ENGINE - Inference Engine Handle and Backends
# =============================================================================
# The engine is the single shared resource that produces one response at a
# time. It is created and initialized once at startup; every session owns one
# context allocated from it. Two backends are provided:
#
#   - LlamaCppEngine: local GGUF model through llama-cpp-python
#   - OpenAICompatibleEngine: remote vLLM / llama.cpp server via AsyncOpenAI
#
# The engine itself does not serialize calls. The request scheduler is the
# only caller of EngineContext.prompt and runs one turn at a time.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from openai import AsyncOpenAI

from auxilium.config import Settings
from auxilium.errors import EngineInitializationError

_LOG = logging.getLogger("auxilium.engine")

Message = Dict[str, str]


class EngineContext(ABC):
    """Per-session resource allocated from an engine. Must be released once."""

    @abstractmethod
    async def prompt(self, text: str) -> str:
        """Run one turn and return the raw response text."""

    @abstractmethod
    async def release(self) -> None:
        """Free the resources held by this context."""


class InferenceEngine(ABC):
    """
    Shared inference resource.

    Lifecycle:
        engine = SomeEngine(...)
        await engine.initialize(model)       # fatal on failure
        ctx = await engine.create_context(system_prompt)
        text = await ctx.prompt("...")
        await ctx.release()
        await engine.close()
    """

    @property
    @abstractmethod
    def is_initialized(self) -> bool:
        ...

    @abstractmethod
    async def initialize(self, model: Union[str, Path]) -> None:
        """Load the model. Raises EngineInitializationError."""

    @abstractmethod
    async def create_context(self, system_prompt: Optional[str] = None) -> EngineContext:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


# =============================================================================
# CHAT CONTEXT - message-list context shared by both backends
# =============================================================================

class ChatContext(EngineContext):
    """
    Context that keeps the conversation as a chat message list.

    A failed completion rolls back the pending user message so the
    context stays consistent with the session history.
    """

    def __init__(self, system_prompt: Optional[str] = None):
        self._messages: List[Message] = []
        self._released = False
        if system_prompt:
            self._messages.append({"role": "system", "content": system_prompt})

    @property
    def released(self) -> bool:
        return self._released

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    async def prompt(self, text: str) -> str:
        if self._released:
            raise RuntimeError("Context has already been released")

        self._messages.append({"role": "user", "content": text})
        try:
            content = await self._complete(list(self._messages))
        except BaseException:
            self._messages.pop()
            raise

        self._messages.append({"role": "assistant", "content": content})
        return content

    async def release(self) -> None:
        if self._released:
            raise RuntimeError("Context has already been released")
        self._released = True
        self._messages.clear()

    @abstractmethod
    async def _complete(self, messages: List[Message]) -> str:
        ...


# =============================================================================
# LLAMA.CPP BACKEND
# =============================================================================

class LlamaCppContext(ChatContext):

    def __init__(self, engine: "LlamaCppEngine", system_prompt: Optional[str] = None):
        super().__init__(system_prompt)
        self._engine = engine

    async def _complete(self, messages: List[Message]) -> str:
        model = self._engine.model
        kwargs: Dict[str, Any] = {"messages": messages, "temperature": self._engine.temperature}
        if self._engine.max_tokens is not None:
            kwargs["max_tokens"] = self._engine.max_tokens

        # llama.cpp inference is blocking; keep the event loop free
        raw = await asyncio.to_thread(model.create_chat_completion, **kwargs)
        return raw["choices"][0]["message"].get("content") or ""


class LlamaCppEngine(InferenceEngine):
    """
    Local GGUF model loaded with llama-cpp-python.

    All contexts share one loaded model; each keeps its own message list.
    """

    def __init__(
        self,
        context_size: int = 4096,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ):
        self.context_size = context_size
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._model: Any = None

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Any:
        if self._model is None:
            raise RuntimeError("Model not initialized. Call initialize() first.")
        return self._model

    async def initialize(self, model: Union[str, Path]) -> None:
        model_path = Path(model)
        _LOG.info("Loading model: %s", model_path)

        if not model_path.is_file():
            raise EngineInitializationError(
                f"Model file not found: {model_path}", model=str(model_path)
            )

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise EngineInitializationError(
                "llama-cpp-python is not installed (pip install 'auxilium[llama]')",
                model=str(model_path),
            ) from e

        try:
            self._model = await asyncio.to_thread(
                Llama,
                model_path=str(model_path),
                n_ctx=self.context_size,
                verbose=False,
            )
        except Exception as e:
            _LOG.error("Failed to initialize model: %s", e)
            raise EngineInitializationError(
                f"Failed to initialize LLaMA model: {e}", model=str(model_path)
            ) from e

        _LOG.info("Model initialized successfully")

    async def create_context(self, system_prompt: Optional[str] = None) -> EngineContext:
        if self._model is None:
            raise RuntimeError("Model not initialized. Call initialize() first.")
        return LlamaCppContext(self, system_prompt)

    async def close(self) -> None:
        if self._model is not None:
            await asyncio.to_thread(self._model.close)
            self._model = None


# =============================================================================
# OPENAI-COMPATIBLE BACKEND
# =============================================================================

class OpenAICompatibleContext(ChatContext):

    def __init__(self, engine: "OpenAICompatibleEngine", system_prompt: Optional[str] = None):
        super().__init__(system_prompt)
        self._engine = engine

    async def _complete(self, messages: List[Message]) -> str:
        engine = self._engine
        raw = await engine.client.chat.completions.create(
            model=engine.model_name,
            messages=messages,
            temperature=engine.temperature,
            **({"max_tokens": engine.max_tokens} if engine.max_tokens is not None else {}),
        )
        content = raw.choices[0].message.content or ""
        if not content:
            _LOG.warning(
                "Server returned empty content, finish_reason=%s",
                raw.choices[0].finish_reason,
            )
        return content


class OpenAICompatibleEngine(InferenceEngine):
    """
    Remote model served over the OpenAI chat completions API
    (vLLM, llama.cpp server, or anything speaking the same routes).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "EMPTY",
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        timeout_s: float = 120.0,
    ):
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._client: Optional[AsyncOpenAI] = None
        self.model_name: Optional[str] = None

    @property
    def is_initialized(self) -> bool:
        return self._client is not None and self.model_name is not None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            raise RuntimeError("Engine not initialized. Call initialize() first.")
        return self._client

    async def initialize(self, model: Union[str, Path]) -> None:
        model_name = str(model)
        _LOG.info("Connecting to %s for model %s", self.base_url, model_name)

        client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self.base_url,
            timeout=self._timeout_s,
        )
        try:
            page = await client.models.list()
        except Exception as e:
            await client.close()
            raise EngineInitializationError(
                f"Inference server at {self.base_url} is unreachable: {e}",
                model=model_name,
            ) from e

        served = {m.id for m in page.data}
        if served and model_name not in served:
            await client.close()
            raise EngineInitializationError(
                f"Model {model_name} is not served by {self.base_url} "
                f"(available: {', '.join(sorted(served))})",
                model=model_name,
            )

        self._client = client
        self.model_name = model_name
        _LOG.info("Model initialized successfully")

    async def create_context(self, system_prompt: Optional[str] = None) -> EngineContext:
        if not self.is_initialized:
            raise RuntimeError("Engine not initialized. Call initialize() first.")
        return OpenAICompatibleContext(self, system_prompt)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


# =============================================================================
# FACTORY
# =============================================================================

def create_engine(settings: Settings) -> InferenceEngine:
    """Build the backend named by settings.engine_backend (not yet initialized)."""
    if settings.engine_backend == "openai":
        return OpenAICompatibleEngine(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_s=settings.llm_timeout_s,
        )
    return LlamaCppEngine(
        context_size=settings.context_size,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )


def model_reference(settings: Settings) -> Union[str, Path]:
    """What initialize() receives: a served model name or a local GGUF path."""
    if settings.engine_backend == "openai":
        return settings.llm_model
    return settings.model_path
