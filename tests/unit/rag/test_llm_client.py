"""Tests for the LiteLLM / Ollama client wrapper."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import respx

from ragdesk.errors import BackendError
from ragdesk.rag.llm_client import (
    EMPTY_PAYLOAD,
    ChatMessage,
    LlmClient,
    chat_model_name,
    embedding_model_name,
    validate_api_key,
)

BASE = "http://localhost:11434"


def _chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def _embedding_response(vector: list[float]) -> MagicMock:
    response = MagicMock()
    response.data = [{"embedding": vector}] if vector is not None else []
    return response


# ------------------------------------------------------------------
# Model names / API keys
# ------------------------------------------------------------------


def test_bare_names_route_to_ollama() -> None:
    assert chat_model_name("llama3.1") == "ollama_chat/llama3.1"
    assert embedding_model_name("nomic-embed-text") == "ollama/nomic-embed-text"


def test_provider_prefixed_names_pass_through() -> None:
    assert chat_model_name("openai/gpt-4o-mini") == "openai/gpt-4o-mini"
    assert embedding_model_name("openai/text-embedding-3-small") == "openai/text-embedding-3-small"


def test_validate_api_key_raises_if_missing(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(BackendError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o")


def test_validate_api_key_passes_if_set(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o")


def test_validate_api_key_ollama_no_key_required() -> None:
    validate_api_key("ollama_chat/llama3.1")
    validate_api_key("llama3.1")


# ------------------------------------------------------------------
# chat()
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_chat_returns_content_and_passes_params() -> None:
    messages = [ChatMessage("system", "sys"), ChatMessage("user", "hi")]
    mock = AsyncMock(return_value=_chat_response("Hello!"))

    with patch("ragdesk.rag.llm_client.litellm.acompletion", mock):
        result = await LlmClient(num_retries=1).chat(BASE, "llama3.1", messages)

    assert result == "Hello!"
    kwargs = mock.call_args.kwargs
    assert kwargs["model"] == "ollama_chat/llama3.1"
    assert kwargs["api_base"] == BASE
    assert kwargs["num_retries"] == 1
    assert kwargs["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "", "   "])
async def test_chat_blank_content_becomes_placeholder(content) -> None:
    mock = AsyncMock(return_value=_chat_response(content))

    with patch("ragdesk.rag.llm_client.litellm.acompletion", mock):
        result = await LlmClient().chat(BASE, "llama3.1", [ChatMessage("user", "hi")])

    assert result == EMPTY_PAYLOAD


@pytest.mark.asyncio
async def test_chat_failure_wrapped_in_backend_error() -> None:
    mock = AsyncMock(side_effect=RuntimeError("connection refused"))

    with patch("ragdesk.rag.llm_client.litellm.acompletion", mock):
        with pytest.raises(BackendError, match="connection refused"):
            await LlmClient().chat(BASE, "llama3.1", [ChatMessage("user", "hi")])


@pytest.mark.asyncio
async def test_chat_hosted_model_has_no_api_base(monkeypatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    mock = AsyncMock(return_value=_chat_response("ok"))

    with patch("ragdesk.rag.llm_client.litellm.acompletion", mock):
        await LlmClient().chat(BASE, "openai/gpt-4o-mini", [ChatMessage("user", "hi")])

    assert mock.call_args.kwargs["api_base"] is None


# ------------------------------------------------------------------
# embed()
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_embed_returns_float_vector() -> None:
    mock = AsyncMock(return_value=_embedding_response([1, 2, 3]))

    with patch("ragdesk.rag.llm_client.litellm.aembedding", mock):
        vector = await LlmClient().embed(BASE, "nomic-embed-text", "hello")

    assert vector == [1.0, 2.0, 3.0]
    assert mock.call_args.kwargs["model"] == "ollama/nomic-embed-text"
    assert mock.call_args.kwargs["input"] == ["hello"]


@pytest.mark.asyncio
async def test_embed_empty_vector_raises() -> None:
    mock = AsyncMock(return_value=_embedding_response([]))

    with patch("ragdesk.rag.llm_client.litellm.aembedding", mock):
        with pytest.raises(BackendError, match="empty"):
            await LlmClient().embed(BASE, "nomic-embed-text", "hello")


@pytest.mark.asyncio
async def test_embed_failure_wrapped() -> None:
    mock = AsyncMock(side_effect=TimeoutError("slow"))

    with patch("ragdesk.rag.llm_client.litellm.aembedding", mock):
        with pytest.raises(BackendError, match="Embedding request"):
            await LlmClient().embed(BASE, "nomic-embed-text", "hello")


# ------------------------------------------------------------------
# list_models()
# ------------------------------------------------------------------


@pytest.mark.asyncio
@respx.mock
async def test_list_models_sorted_names() -> None:
    respx.get(f"{BASE}/api/tags").mock(
        return_value=httpx.Response(
            200, json={"models": [{"name": "mistral:7b"}, {"name": "llama3.1:8b"}, {"size": 1}]}
        )
    )

    models = await LlmClient().list_models(BASE + "/")

    assert models == ["llama3.1:8b", "mistral:7b"]


@pytest.mark.asyncio
@respx.mock
async def test_list_models_http_error_raises() -> None:
    respx.get(f"{BASE}/api/tags").mock(return_value=httpx.Response(500))

    with pytest.raises(BackendError, match="Cannot list models"):
        await LlmClient().list_models(BASE)
