"""OpenAI embedding provider."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import openai

from schemagraph.embeddings.provider import EmbeddingProvider
from schemagraph.exceptions import EmbeddingProviderError, ExternalTimeoutError

if TYPE_CHECKING:
    from openai import OpenAI


class OpenAIProvider(EmbeddingProvider):
    """OpenAI API embedding provider.

    Uses text-embedding-3-small by default with 384 dimensions
    to match the local fastembed model for seamless dev→prod transition.

    Example:
        >>> provider = OpenAIProvider()  # Uses OPENAI_API_KEY env var
        >>> embedding = provider.embed("Hello world")
        >>> len(embedding)
        384
    """

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_DIMENSIONS = 384  # Match fastembed for dev→prod compatibility

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        api_key: str | None = None,
        timeout: float = 30.0,
        base_url: str | None = None,
    ) -> None:
        """Initialize OpenAI provider.

        Args:
            model: Model name. Defaults to text-embedding-3-small.
            dimensions: Vector dimensions. Defaults to 384.
            api_key: OpenAI API key. Falls back to OPENAI_API_KEY env var.
            timeout: Per-request deadline in seconds.
            base_url: OpenAI-compatible endpoint, for self-hosted gateways.
        """
        api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        # Retries are handled by the embedding pipeline
        self._client: OpenAI = openai.OpenAI(
            api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0
        )
        self._model = model
        self._dimensions = dimensions
        self._timeout = timeout

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = self._client.embeddings.create(
                model=self._model,
                input=texts,
                dimensions=self._dimensions,
            )
        except openai.APITimeoutError as e:
            raise ExternalTimeoutError("OpenAI embeddings", self._timeout) from e
        except (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError) as e:
            raise EmbeddingProviderError(f"OpenAI embeddings unavailable: {e}") from e
        except openai.OpenAIError as e:
            raise EmbeddingProviderError(
                f"OpenAI embeddings request rejected: {e}", retryable=False
            ) from e

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        return [item.embedding for item in sorted_data]

    @property
    def dimensions(self) -> int:
        """Vector dimensions."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Model identifier for storage."""
        return self._model
