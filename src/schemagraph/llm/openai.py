"""OpenAI-compatible chat provider (OpenAI, Groq)."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence

import openai

from schemagraph.core.types import ChatTurn
from schemagraph.exceptions import ExternalTimeoutError, LLMGenerationError
from schemagraph.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIChatProvider(LLMProvider):
    """Chat completions over the OpenAI API or any compatible endpoint.

    Example:
        >>> llm = OpenAIChatProvider(model="gpt-4o-mini")
        >>> llm.generate("Answer briefly.", "Table: users", [], "What is users?")
    """

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 1500,
        timeout: float = 60.0,
        api_key_env: str = "OPENAI_API_KEY",
    ) -> None:
        """Initialize the provider.

        Args:
            model: Chat model name
            api_key: API key. Falls back to the ``api_key_env`` environment variable.
            base_url: Endpoint of an OpenAI-compatible API
            temperature: Sampling temperature; kept low for factual answers
            max_tokens: Maximum tokens in the reply
            timeout: Per-request deadline in seconds
            api_key_env: Environment variable holding the key
        """
        api_key = api_key or os.environ.get(api_key_env)
        if not api_key:
            raise ValueError(
                f"API key required for chat model {model}. Set {api_key_env} environment "
                "variable or pass api_key parameter."
            )
        self._client = openai.OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout

    @property
    def model_name(self) -> str:
        return self._model

    def generate(
        self,
        system_instruction: str,
        context: str,
        history: Sequence[ChatTurn],
        query: str,
    ) -> str:
        messages = self.build_messages(system_instruction, context, history, query)
        logger.debug(f"Requesting completion from {self._model} ({len(messages)} messages)")
        try:
            completion = self._client.chat.completions.create(
                model=self._model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except openai.APITimeoutError as e:
            raise ExternalTimeoutError(f"Chat model {self._model}", self._timeout) from e
        except (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError) as e:
            raise LLMGenerationError(
                f"Chat model {self._model} is unavailable: {e}. Retry shortly.", retryable=True
            ) from e
        except openai.OpenAIError as e:
            raise LLMGenerationError(f"Chat model {self._model} rejected the request: {e}") from e

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise LLMGenerationError(f"Chat model {self._model} returned an empty response.")
        return content
