"""Embedding providers for documentation and query vectors.

By default, uses FastEmbed (local, no API key required).

Example:
    >>> from schemagraph.embeddings import get_provider
    >>>
    >>> # Local embeddings (default)
    >>> provider = get_provider("fastembed")
    >>> embedding = provider.embed("Table: orders")
    >>>
    >>> # OpenAI embeddings
    >>> provider = get_provider("openai", api_key="sk-...")
"""

from schemagraph.embeddings.provider import EmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "get_provider",
]


def get_provider(
    provider: str | EmbeddingProvider = "fastembed",
    **kwargs: object,
) -> EmbeddingProvider:
    """Get an embedding provider by name or return the provider if already instantiated.

    Args:
        provider: Provider name ("fastembed", "openai") or EmbeddingProvider instance.
        **kwargs: Additional arguments passed to the provider constructor.

    Returns:
        EmbeddingProvider instance.

    Raises:
        ValueError: If provider name is unknown.
        ImportError: If required dependencies are not installed.
    """
    if isinstance(provider, EmbeddingProvider):
        return provider

    if provider == "fastembed":
        from schemagraph.embeddings.fastembed import FastEmbedProvider

        return FastEmbedProvider(**kwargs)  # type: ignore[arg-type]
    elif provider == "openai":
        from schemagraph.embeddings.openai import OpenAIProvider

        return OpenAIProvider(**kwargs)  # type: ignore[arg-type]
    else:
        raise ValueError(
            f"Unknown embedding provider: {provider}. Available: 'fastembed', 'openai'"
        )
