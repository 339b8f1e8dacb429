"""FastEmbed provider for local embeddings (no API key required)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from schemagraph.embeddings.provider import EmbeddingProvider
from schemagraph.exceptions import EmbeddingProviderError

if TYPE_CHECKING:
    from fastembed import TextEmbedding


class FastEmbedProvider(EmbeddingProvider):
    """Local embedding provider using fastembed (ONNX).

    Uses BAAI/bge-small-en-v1.5 by default (384 dimensions).
    No API key required - runs entirely locally.

    Example:
        >>> provider = FastEmbedProvider("mixedbread-ai/mxbai-embed-large-v1")
        >>> len(provider.embed("Table: orders"))
        1024
    """

    # Default model - small, fast, good quality
    DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"

    # Model dimensions mapping
    MODEL_DIMENSIONS = {
        "BAAI/bge-small-en-v1.5": 384,
        "BAAI/bge-base-en-v1.5": 768,
        "sentence-transformers/all-MiniLM-L6-v2": 384,
        "mixedbread-ai/mxbai-embed-large-v1": 1024,
    }

    def __init__(self, model: str = DEFAULT_MODEL) -> None:
        """Initialize FastEmbed provider.

        Args:
            model: Model name. Defaults to BAAI/bge-small-en-v1.5.
        """
        try:
            from fastembed import TextEmbedding
        except ImportError as e:
            raise ImportError(
                "fastembed is required for local embeddings. "
                "Install it with: pip install schemagraph[fastembed]"
            ) from e

        self._model_name = model
        self._model: TextEmbedding = TextEmbedding(model_name=model)
        self._dimensions = self.MODEL_DIMENSIONS.get(model, 384)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            embeddings = list(self._model.embed(texts))
        except Exception as e:
            # Local inference failures are deterministic, retrying won't help
            raise EmbeddingProviderError(
                f"FastEmbed model {self._model_name} failed: {e}", retryable=False
            ) from e
        return [emb.tolist() for emb in embeddings]

    @property
    def dimensions(self) -> int:
        """Vector dimensions."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Model identifier for storage."""
        return self._model_name
