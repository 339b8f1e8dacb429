"""Tests for embedding and chat provider factories and error mapping."""

from unittest.mock import MagicMock, patch

import httpx
import openai
import pytest

from schemagraph.core.types import ChatTurn
from schemagraph.embeddings import get_provider
from schemagraph.embeddings.openai import OpenAIProvider
from schemagraph.exceptions import (
    EmbeddingProviderError,
    ExternalTimeoutError,
    LLMGenerationError,
)
from schemagraph.llm import GROQ_BASE_URL, GROQ_DEFAULT_MODEL, get_llm_provider
from schemagraph.llm.openai import OpenAIChatProvider
from schemagraph.llm.provider import LLMProvider
from tests.fakes import KeywordEmbedder, ScriptedLLM

REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _bad_request() -> openai.BadRequestError:
    return openai.BadRequestError(
        "bad input", response=httpx.Response(400, request=REQUEST), body=None
    )


class TestEmbeddingFactory:
    """Test get_provider."""

    def test_instance_passthrough(self) -> None:
        """Test that an instance is returned as-is."""
        embedder = KeywordEmbedder()
        assert get_provider(embedder) is embedder

    def test_unknown_provider(self) -> None:
        """Test that an unknown name is rejected."""
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            get_provider("word2vec")

    def test_openai_requires_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the OpenAI provider needs a key."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            get_provider("openai")


class TestOpenAIEmbeddings:
    """Test OpenAI embedding error mapping."""

    @pytest.fixture
    def provider(self) -> OpenAIProvider:
        return OpenAIProvider(api_key="sk-test", dimensions=3, timeout=7.0)

    def test_embed_orders_by_index(self, provider: OpenAIProvider) -> None:
        """Test that results are returned in input order."""
        response = MagicMock()
        response.data = [
            MagicMock(index=1, embedding=[0.0, 1.0, 0.0]),
            MagicMock(index=0, embedding=[1.0, 0.0, 0.0]),
        ]
        with patch.object(provider._client.embeddings, "create", return_value=response):
            assert provider.embed_batch(["a", "b"]) == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]

    def test_timeout(self, provider: OpenAIProvider) -> None:
        """Test that a client timeout becomes a retryable timeout."""
        error = openai.APITimeoutError(request=REQUEST)
        with patch.object(provider._client.embeddings, "create", side_effect=error):
            with pytest.raises(ExternalTimeoutError) as exc_info:
                provider.embed("a")
        assert exc_info.value.timeout == 7.0

    def test_connection_error_retryable(self, provider: OpenAIProvider) -> None:
        """Test that transport errors are retryable."""
        error = openai.APIConnectionError(request=REQUEST)
        with patch.object(provider._client.embeddings, "create", side_effect=error):
            with pytest.raises(EmbeddingProviderError) as exc_info:
                provider.embed("a")
        assert exc_info.value.retryable is True

    def test_bad_request_not_retryable(self, provider: OpenAIProvider) -> None:
        """Test that rejected requests are not retried."""
        with patch.object(provider._client.embeddings, "create", side_effect=_bad_request()):
            with pytest.raises(EmbeddingProviderError) as exc_info:
                provider.embed("a")
        assert exc_info.value.retryable is False


class TestChatFactory:
    """Test get_llm_provider."""

    def test_instance_passthrough(self) -> None:
        """Test that an instance is returned as-is."""
        llm = ScriptedLLM()
        assert get_llm_provider(llm) is llm

    def test_groq_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that Groq uses its endpoint, model and key variable."""
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
        llm = get_llm_provider("groq")

        assert llm.model_name == GROQ_DEFAULT_MODEL
        assert str(llm._client.base_url).rstrip("/") == GROQ_BASE_URL  # type: ignore[attr-defined]

    def test_groq_requires_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the error names the Groq variable."""
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        with pytest.raises(ValueError, match="GROQ_API_KEY"):
            get_llm_provider("groq")

    def test_unknown_provider(self) -> None:
        """Test that an unknown name is rejected."""
        with pytest.raises(ValueError, match="Unknown LLM provider"):
            get_llm_provider("parrot")


class TestOpenAIChat:
    """Test chat message building and error mapping."""

    @pytest.fixture
    def llm(self) -> OpenAIChatProvider:
        return OpenAIChatProvider(api_key="sk-test", timeout=9.0)

    def test_build_messages(self) -> None:
        """Test system context, history and query ordering."""
        messages = LLMProvider.build_messages(
            "Be precise.",
            "Table: orders",
            [ChatTurn(role="user", content="hi"), ChatTurn(role="assistant", content="hello")],
            "What is orders?",
        )

        assert messages[0] == {"role": "system", "content": "Be precise.\n\nTable: orders"}
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"] == "What is orders?"

    def test_generate(self, llm: OpenAIChatProvider) -> None:
        """Test that the reply text is returned with the configured sampling."""
        completion = MagicMock()
        completion.choices = [MagicMock()]
        completion.choices[0].message.content = "orders holds orders"
        with patch.object(
            llm._client.chat.completions, "create", return_value=completion
        ) as create:
            reply = llm.generate("sys", "ctx", [], "q")

        assert reply == "orders holds orders"
        assert create.call_args.kwargs["temperature"] == 0.2
        assert create.call_args.kwargs["max_tokens"] == 1500

    def test_empty_reply(self, llm: OpenAIChatProvider) -> None:
        """Test that an empty completion is an error."""
        completion = MagicMock()
        completion.choices = []
        with patch.object(llm._client.chat.completions, "create", return_value=completion):
            with pytest.raises(LLMGenerationError):
                llm.generate("sys", "ctx", [], "q")

    def test_timeout(self, llm: OpenAIChatProvider) -> None:
        """Test that a client timeout becomes a timeout error."""
        error = openai.APITimeoutError(request=REQUEST)
        with patch.object(llm._client.chat.completions, "create", side_effect=error):
            with pytest.raises(ExternalTimeoutError) as exc_info:
                llm.generate("sys", "ctx", [], "q")
        assert exc_info.value.timeout == 9.0

    def test_rejected(self, llm: OpenAIChatProvider) -> None:
        """Test that a rejected request is not retryable."""
        with patch.object(llm._client.chat.completions, "create", side_effect=_bad_request()):
            with pytest.raises(LLMGenerationError) as exc_info:
                llm.generate("sys", "ctx", [], "q")
        assert exc_info.value.retryable is False
