"""Chat model interface used by the hybrid retriever."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from schemagraph.core.types import ChatTurn


class LLMProvider(ABC):
    """Interface for chat-completion providers."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
        ...

    @abstractmethod
    def generate(
        self,
        system_instruction: str,
        context: str,
        history: Sequence[ChatTurn],
        query: str,
    ) -> str:
        """Answer ``query`` from ``context``.

        Args:
            system_instruction: Behavioural instruction for the model
            context: Retrieved schema context
            history: Earlier turns, oldest first (already trimmed)
            query: The user's question

        Returns:
            The model's text reply

        Raises:
            LLMGenerationError: If the model failed to answer
            ExternalTimeoutError: If the call exceeded its deadline
        """
        ...

    @staticmethod
    def build_messages(
        system_instruction: str,
        context: str,
        history: Sequence[ChatTurn],
        query: str,
    ) -> list[dict[str, str]]:
        """Chat messages in the OpenAI role/content format."""
        messages = [{"role": "system", "content": f"{system_instruction}\n\n{context}"}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        messages.append({"role": "user", "content": query})
        return messages
