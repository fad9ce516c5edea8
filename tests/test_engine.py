# -*- coding: utf-8 -*-
"""
Tests for Engine Adapters

Covers:
- ChatContext message bookkeeping and release semantics
- OpenAICompatibleEngine with a mocked AsyncOpenAI client
- LlamaCppEngine with a mocked llama_cpp module
- create_engine / model_reference
"""

from __future__ import annotations

import types
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from auxilium.config import Settings
from auxilium.engine import (
    LlamaCppEngine,
    OpenAICompatibleEngine,
    create_engine,
    model_reference,
)
from auxilium.errors import EngineInitializationError


def _completion(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")]
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.models.list = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(id="served-model")]))
    client.chat.completions.create = AsyncMock(return_value=_completion("Hello there"))
    client.close = AsyncMock()
    with patch("auxilium.engine.AsyncOpenAI", return_value=client):
        yield client


# =============================================================================
# OpenAI-compatible backend
# =============================================================================

class TestOpenAICompatibleEngine:
    """Tests for the AsyncOpenAI adapter."""

    @pytest.mark.asyncio
    async def test_initialize_and_prompt(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1", temperature=0.2, max_tokens=64)
        await engine.initialize("served-model")
        context = await engine.create_context("Be brief.")

        assert await context.prompt("hi") == "Hello there"

        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "served-model"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 64
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]
        assert context.messages[-1] == {"role": "assistant", "content": "Hello there"}

    @pytest.mark.asyncio
    async def test_max_tokens_omitted_when_unset(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")
        await engine.initialize("served-model")
        context = await engine.create_context()

        await context.prompt("hi")

        assert "max_tokens" not in openai_client.chat.completions.create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_unserved_model_rejected(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")

        with pytest.raises(EngineInitializationError):
            await engine.initialize("other-model")
        assert engine.is_initialized is False
        openai_client.close.assert_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_server(self, openai_client):
        openai_client.models.list.side_effect = ConnectionError("refused")
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")

        with pytest.raises(EngineInitializationError):
            await engine.initialize("served-model")

    @pytest.mark.asyncio
    async def test_failed_completion_rolls_back_context(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")
        await engine.initialize("served-model")
        context = await engine.create_context("sys")
        openai_client.chat.completions.create.side_effect = RuntimeError("server error")

        with pytest.raises(RuntimeError):
            await context.prompt("hi")
        assert context.messages == [{"role": "system", "content": "sys"}]

    @pytest.mark.asyncio
    async def test_release_once(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")
        await engine.initialize("served-model")
        context = await engine.create_context()

        await context.release()
        assert context.released is True
        with pytest.raises(RuntimeError):
            await context.release()
        with pytest.raises(RuntimeError):
            await context.prompt("hi")

    @pytest.mark.asyncio
    async def test_close(self, openai_client):
        engine = OpenAICompatibleEngine(base_url="http://llm:8000/v1")
        await engine.initialize("served-model")

        await engine.close()

        openai_client.close.assert_awaited_once()
        with pytest.raises(RuntimeError):
            await engine.create_context()


# =============================================================================
# llama.cpp backend
# =============================================================================

class TestLlamaCppEngine:
    """Tests for the llama-cpp-python adapter."""

    @pytest.mark.asyncio
    async def test_missing_model_file(self, tmp_path):
        engine = LlamaCppEngine()

        with pytest.raises(EngineInitializationError) as exc_info:
            await engine.initialize(tmp_path / "nope.gguf")
        assert exc_info.value.code == "ENGINE_INITIALIZATION_ERROR"

    @pytest.mark.asyncio
    async def test_load_and_prompt(self, tmp_path):
        model_file = tmp_path / "model.gguf"
        model_file.write_bytes(b"GGUF")
        model = MagicMock()
        model.create_chat_completion.return_value = {
            "choices": [{"message": {"role": "assistant", "content": "Hi!"}}]
        }
        fake_llama_cpp = types.ModuleType("llama_cpp")
        fake_llama_cpp.Llama = MagicMock(return_value=model)

        with patch.dict("sys.modules", {"llama_cpp": fake_llama_cpp}):
            engine = LlamaCppEngine(context_size=2048, temperature=0.1)
            await engine.initialize(model_file)

        fake_llama_cpp.Llama.assert_called_once_with(
            model_path=str(model_file), n_ctx=2048, verbose=False
        )
        context = await engine.create_context("Be brief.")
        assert await context.prompt("hello") == "Hi!"
        call = model.create_chat_completion.call_args.kwargs
        assert call["temperature"] == 0.1
        assert call["messages"][0] == {"role": "system", "content": "Be brief."}

        await engine.close()
        model.close.assert_called_once()
        assert engine.is_initialized is False

    @pytest.mark.asyncio
    async def test_load_failure_wrapped(self, tmp_path):
        model_file = tmp_path / "model.gguf"
        model_file.write_bytes(b"not a model")
        fake_llama_cpp = types.ModuleType("llama_cpp")
        fake_llama_cpp.Llama = MagicMock(side_effect=ValueError("bad magic"))

        with patch.dict("sys.modules", {"llama_cpp": fake_llama_cpp}):
            with pytest.raises(EngineInitializationError):
                await LlamaCppEngine().initialize(model_file)


# =============================================================================
# Factory
# =============================================================================

class TestFactory:
    """Tests for create_engine and model_reference."""

    def test_llama_cpp_backend(self):
        settings = Settings(engine_backend="llama_cpp", model_path=Path("m/x.gguf"), context_size=1024)

        engine = create_engine(settings)

        assert isinstance(engine, LlamaCppEngine)
        assert engine.context_size == 1024
        assert model_reference(settings) == Path("m/x.gguf")

    def test_openai_backend(self):
        settings = Settings(engine_backend="openai", llm_base_url="http://x/v1", llm_model="qwen")

        engine = create_engine(settings)

        assert isinstance(engine, OpenAICompatibleEngine)
        assert engine.base_url == "http://x/v1"
        assert model_reference(settings) == "qwen"
