"""Embedding provider interface."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Interface for embedding providers.

    The same provider (model and dimensions) must be used to index
    documentation and to embed queries; vectors of another size are
    rejected by the vector store.
    """

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed.

        Returns:
            Vector embedding as list of floats.

        Raises:
            EmbeddingProviderError: If the provider failed for this text.
            ExternalTimeoutError: If the provider exceeded its deadline.
        """
        ...

    @abstractmethod
    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts efficiently.

        Args:
            texts: List of texts to embed.

        Returns:
            List of vector embeddings.
        """
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Vector dimensions."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier for storage."""
        ...
