"""Embedding model clients.

``LiteLLMEmbeddingClient`` routes through ``litellm.aembedding()`` and maps
provider failures onto the vaultindex error taxonomy: rate limits become
``RateLimitExceededError`` (retried by the pipeline), missing or rejected
credentials and missing base URLs become provider configuration errors
(fatal to an indexing run). Retries are owned by the pipeline, so LiteLLM's
own retry is disabled here.
"""

from __future__ import annotations

import logging
import os
from typing import Protocol, runtime_checkable

import litellm

from vaultindex.embedding.decode import extract_embedding_vector
from vaultindex.exceptions import (
    ApiKeyInvalidError,
    ApiKeyNotSetError,
    BaseUrlNotSetError,
    InvalidEmbeddingResponseError,
    RateLimitExceededError,
)

logger = logging.getLogger(__name__)

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "hosted_vllm": None,
    "lm_studio": None,
}

# Self-hosted, OpenAI-compatible providers have no default endpoint.
_BASE_URL_REQUIRED: frozenset[str] = frozenset({"hosted_vllm", "lm_studio"})

_KNOWN_DIMENSIONS: dict[str, int] = {
    "openai/text-embedding-3-small": 1536,
    "openai/text-embedding-3-large": 3072,
    "openai/text-embedding-ada-002": 1536,
    "cohere/embed-english-v3.0": 1024,
    "mistral/mistral-embed": 1024,
    "ollama/nomic-embed-text": 768,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string (default openai)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def default_dimension(model: str) -> int | None:
    """Return the known output dimension of *model*, or None if unknown."""
    return _KNOWN_DIMENSIONS.get(model)


@runtime_checkable
class EmbeddingModelClient(Protocol):
    """What the indexing pipeline needs from an embedding model."""

    @property
    def id(self) -> str: ...

    @property
    def dimension(self) -> int: ...

    async def get_embedding(self, text: str) -> list[float]: ...


class LiteLLMEmbeddingClient:
    """Embed text with any LiteLLM-supported provider.

    Args:
        model: LiteLLM model string in 'provider/model' format.
        dimension: Expected vector length; responses of another length are
            rejected.
        api_base: Provider endpoint, required for self-hosted providers.
    """

    def __init__(self, model: str, dimension: int, api_base: str | None = None) -> None:
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")
        self._model = model
        self._dimension = dimension
        self.api_base = api_base

    @property
    def id(self) -> str:
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def provider(self) -> str:
        return provider_of(self._model)

    def validate(self) -> None:
        """Raise a provider configuration error if the client cannot be used.

        Raises:
            ApiKeyNotSetError: If the provider's key env var is unset.
            BaseUrlNotSetError: If a self-hosted provider has no api_base.
        """
        provider = self.provider
        if provider in _BASE_URL_REQUIRED and not self.api_base:
            raise BaseUrlNotSetError(provider)
        env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")
        if env_var is not None and not os.getenv(env_var):
            raise ApiKeyNotSetError(provider, env_var)

    async def get_embedding(self, text: str) -> list[float]:
        """Embed *text* and return its vector.

        Raises:
            RateLimitExceededError: Provider answered HTTP 429.
            ApiKeyNotSetError / ApiKeyInvalidError / BaseUrlNotSetError:
                Provider misconfiguration.
            InvalidEmbeddingResponseError: Unknown response shape or wrong length.
        """
        self.validate()
        kwargs: dict = {"model": self._model, "input": [text], "num_retries": 0}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        try:
            response = await litellm.aembedding(**kwargs)
        except litellm.RateLimitError as exc:
            raise RateLimitExceededError(self.provider, str(exc)) from exc
        except litellm.AuthenticationError as exc:
            raise ApiKeyInvalidError(self.provider, str(exc)) from exc

        vector = extract_embedding_vector(response)
        if len(vector) != self._dimension:
            raise InvalidEmbeddingResponseError(
                f"Model '{self._model}' returned {len(vector)} dimensions, "
                f"expected {self._dimension}"
            )
        return vector
