"""Chat model providers for answer generation.

Example:
    >>> from schemagraph.llm import get_llm_provider
    >>> llm = get_llm_provider("groq")  # Uses GROQ_API_KEY env var
"""

from schemagraph.llm.provider import LLMProvider

__all__ = [
    "LLMProvider",
    "get_llm_provider",
]

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"


def get_llm_provider(
    provider: str | LLMProvider = "groq",
    **kwargs: object,
) -> LLMProvider:
    """Get a chat provider by name or return the provider if already instantiated.

    Args:
        provider: Provider name ("groq", "openai") or LLMProvider instance.
        **kwargs: Additional arguments passed to the provider constructor.

    Raises:
        ValueError: If provider name is unknown.
    """
    if isinstance(provider, LLMProvider):
        return provider

    from schemagraph.llm.openai import OpenAIChatProvider

    if provider == "openai":
        return OpenAIChatProvider(**kwargs)  # type: ignore[arg-type]
    elif provider == "groq":
        kwargs.setdefault("model", GROQ_DEFAULT_MODEL)
        kwargs.setdefault("base_url", GROQ_BASE_URL)
        kwargs.setdefault("api_key_env", "GROQ_API_KEY")
        return OpenAIChatProvider(**kwargs)  # type: ignore[arg-type]
    else:
        raise ValueError(f"Unknown LLM provider: {provider}. Available: 'groq', 'openai'")
