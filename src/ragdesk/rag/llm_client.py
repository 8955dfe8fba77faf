"""Chat / embedding / model-list client for an Ollama-compatible backend.

Chat and embedding calls route through LiteLLM's async API; bare model names
are sent to the Ollama provider at the configured base URL:

  chat       litellm.acompletion(model="ollama_chat/<model>", api_base=<base_url>)
  embedding  litellm.aembedding(model="ollama/<model>", api_base=<base_url>)
  models     GET <base_url>/api/tags  (httpx)

A model that already carries a hosted provider prefix (``openai/gpt-4o-mini``)
is passed through unchanged and needs its API key in the environment.
LiteLLM's built-in retry (num_retries) is the only retry layer; every failure
that survives it is raised as BackendError.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass

import httpx
import litellm

from ragdesk.errors import BackendError

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

CHAT_TIMEOUT = 120.0
LIST_TIMEOUT = 30.0
EMPTY_PAYLOAD = "Model returned an empty payload."


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


@dataclass(frozen=True)
class ChatMessage:
    role: str  # system | user | assistant
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def _provider(model: str) -> str | None:
    if "/" not in model:
        return None
    prefix = model.split("/", 1)[0].lower()
    return prefix if prefix in _PROVIDER_ENV else None


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Bare Ollama model names never need a key.

    Raises:
        BackendError: If the provider's key is missing from the environment.
    """
    provider = _provider(model)
    env_var = _PROVIDER_ENV.get(provider) if provider else None
    if env_var is None:
        return
    if not os.getenv(env_var):
        raise BackendError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def chat_model_name(model: str) -> str:
    """LiteLLM model string for a chat *model*."""
    return model if _provider(model) else f"ollama_chat/{model}"


def embedding_model_name(model: str) -> str:
    """LiteLLM model string for an embedding *model*."""
    return model if _provider(model) else f"ollama/{model}"


class LlmClient:
    """Async facade over LiteLLM + the Ollama tags endpoint.

    Args:
        num_retries: LiteLLM retry count for transient errors.
    """

    def __init__(self, num_retries: int = 2) -> None:
        self.num_retries = num_retries

    async def chat(
        self,
        base_url: str,
        model: str,
        messages: Sequence[ChatMessage],
    ) -> str:
        """Send *messages* in order and return the assistant text.

        Raises:
            BackendError: On transport failure or a backend-reported error.
        """
        litellm_model = chat_model_name(model)
        validate_api_key(litellm_model)
        logger.debug("chat model=%s messages=%d", litellm_model, len(messages))
        try:
            response = await litellm.acompletion(
                model=litellm_model,
                messages=[m.as_dict() for m in messages],
                api_base=base_url if litellm_model.startswith("ollama") else None,
                timeout=CHAT_TIMEOUT,
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise BackendError(f"Chat request to {model} failed: {exc}") from exc
        content = response.choices[0].message.content
        return content if content and content.strip() else EMPTY_PAYLOAD

    async def embed(self, base_url: str, model: str, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Raises:
            BackendError: On transport failure or an empty embedding.
        """
        litellm_model = embedding_model_name(model)
        validate_api_key(litellm_model)
        try:
            response = await litellm.aembedding(
                model=litellm_model,
                input=[text],
                api_base=base_url if litellm_model.startswith("ollama") else None,
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise BackendError(f"Embedding request to {model} failed: {exc}") from exc
        if not response.data:
            raise BackendError("Embedding response was empty")
        vector = response.data[0]["embedding"]
        if not vector:
            raise BackendError("Embedding response was empty")
        return [float(v) for v in vector]

    async def list_models(self, base_url: str) -> list[str]:
        """Return the model names installed on the backend, sorted."""
        url = f"{base_url.rstrip('/')}/api/tags"
        try:
            async with httpx.AsyncClient(timeout=LIST_TIMEOUT) as client:
                response = await client.get(url)
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise BackendError(f"Cannot list models at {base_url}: {exc}") from exc
        models = payload.get("models") or [] if isinstance(payload, dict) else []
        return sorted(m["name"] for m in models if isinstance(m, dict) and m.get("name"))
