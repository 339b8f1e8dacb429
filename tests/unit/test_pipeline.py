"""Tests for the documentation embedding pipeline."""

import warnings

import pytest
from qdrant_client import QdrantClient

from schemagraph.core.types import PipelinePolicy
from schemagraph.exceptions import (
    DimensionMismatchError,
    EmbeddingProviderError,
    NoDocumentationError,
)
from schemagraph.ledger.store import MetadataLedger
from schemagraph.pipeline import EmbeddingPipeline, document_text, point_id_for
from schemagraph.vectors import VectorStore
from tests.fakes import KeywordEmbedder


class FlakyEmbedder(KeywordEmbedder):
    """Fails with a retryable error a fixed number of times, then succeeds."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures

    def embed(self, text: str) -> list[float]:
        if self.failures > 0:
            self.failures -= 1
            raise EmbeddingProviderError("rate limited", retryable=True)
        return super().embed(text)


class ShortEmbedder(KeywordEmbedder):
    """Claims the usual dimensions but returns shorter vectors."""

    def embed(self, text: str) -> list[float]:
        return super().embed(text)[:-1]


@pytest.fixture
def documented(ledger: MetadataLedger, shop_docs: dict[str, str]) -> MetadataLedger:
    for entity, markdown in shop_docs.items():
        ledger.upsert_doc_chunk("shop", entity, markdown)
    return ledger


def _pipeline(
    ledger: MetadataLedger,
    embedder: KeywordEmbedder,
    store: VectorStore,
    policy: PipelinePolicy,
) -> EmbeddingPipeline:
    return EmbeddingPipeline(ledger, embedder, store, policy)


class TestPointIds:
    """Test deterministic point identity."""

    def test_point_id_is_stable(self) -> None:
        """Test that the same connection and entity give the same id."""
        assert point_id_for("shop", "orders") == point_id_for("shop", "orders")

    def test_point_id_differs_per_connection(self) -> None:
        """Test that the same table in two connections gets two ids."""
        assert point_id_for("shop", "orders") != point_id_for("other", "orders")

    def test_document_text(self) -> None:
        """Test the embedded text layout."""
        assert document_text("orders", "# Orders") == "Table: orders\n\n# Orders"


class TestEmbedConnection:
    """Test embedding a connection's documentation."""

    def test_embeds_every_chunk(
        self,
        documented: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test that every chunk becomes one point and is marked embedded."""
        result = _pipeline(documented, embedder, vector_store, policy).embed_connection("shop")

        assert result.complete
        assert sorted(result.succeeded) == sorted(
            ["audit_log", "customers", "order_items", "orders", "products"]
        )
        assert vector_store.count("shop") == 5
        status = documented.embedding_status("shop")
        assert status.embedded

    def test_re_embedding_keeps_one_point(
        self,
        documented: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test that re-running the pipeline overwrites points instead of adding more."""
        pipeline = _pipeline(documented, embedder, vector_store, policy)
        pipeline.embed_connection("shop")
        documented.upsert_doc_chunk("shop", "orders", "Orders changed.")

        pipeline.embed_connection("shop", ["orders"])

        assert vector_store.count("shop") == 5
        hit = vector_store.search(embedder.embed("Table: orders"), "shop", limit=1)[0]
        assert hit.point_id == point_id_for("shop", "orders")

    def test_payload(
        self,
        documented: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test that each point carries the connection and entity in its payload."""
        _pipeline(documented, embedder, vector_store, policy).embed_connection("shop", ["orders"])

        hit = vector_store.search(embedder.embed("order"), "shop", limit=1)[0]
        assert hit.connection_id == "shop"
        assert hit.entity_name == "orders"
        assert hit.type == "documentation"
        assert hit.content.startswith("Table: orders\n\n")

    def test_partial_failure(
        self,
        documented: MetadataLedger,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test that one failing entity is reported and the rest are embedded."""
        embedder = KeywordEmbedder(fail_for=["Table: audit_log"])

        result = _pipeline(documented, embedder, vector_store, policy).embed_connection("shop")

        assert not result.complete
        assert [f.entity_name for f in result.failed] == ["audit_log"]
        assert len(result.succeeded) == 4
        status = documented.embedding_status("shop")
        assert status.embedded_count == 4
        assert vector_store.count("shop") == 4

    def test_retryable_errors_are_retried(
        self, documented: MetadataLedger, vector_store: VectorStore, policy: PipelinePolicy
    ) -> None:
        """Test that transient provider errors are retried within the budget."""
        embedder = FlakyEmbedder(failures=2)
        pipeline = _pipeline(documented, embedder, vector_store, policy)

        result = pipeline.embed_connection("shop", ["orders"])

        assert result.succeeded == ["orders"]

    def test_retry_budget_exhausted(
        self, documented: MetadataLedger, vector_store: VectorStore
    ) -> None:
        """Test that an entity failing past the retry budget is reported as retryable."""
        policy = PipelinePolicy(max_retries=2, backoff_initial=0.0, backoff_max=0.0)
        embedder = FlakyEmbedder(failures=5)

        result = _pipeline(documented, embedder, vector_store, policy).embed_connection(
            "shop", ["orders"]
        )

        assert result.succeeded == []
        assert result.failed[0].retryable is True

    def test_retry_policy_backoff(
        self, documented: MetadataLedger, vector_store: VectorStore
    ) -> None:
        """Test that the backoff is configured without deprecated tenacity options."""
        policy = PipelinePolicy(backoff_initial=0.25, backoff_max=4.0)
        pipeline = _pipeline(documented, KeywordEmbedder(), vector_store, policy)

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            retrying = pipeline.retry_policy()

        assert retrying.wait.multiplier == 0.25
        assert retrying.wait.max == 4.0

    def test_no_documentation(
        self,
        ledger: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test embedding a connection that has no documentation."""
        with pytest.raises(NoDocumentationError):
            _pipeline(ledger, embedder, vector_store, policy).embed_connection("shop")

    def test_provider_collection_mismatch(
        self, documented: MetadataLedger, embedder: KeywordEmbedder, policy: PipelinePolicy
    ) -> None:
        """Test that a provider of another size never writes."""
        store = VectorStore(QdrantClient(":memory:"), "docs", dimensions=4)

        with pytest.raises(DimensionMismatchError):
            _pipeline(documented, embedder, store, policy).embed_connection("shop")
        assert documented.embedding_status("shop").embedded_count == 0

    def test_short_vectors_abort(
        self, documented: MetadataLedger, vector_store: VectorStore, policy: PipelinePolicy
    ) -> None:
        """Test that a provider returning vectors of the wrong size aborts the run."""
        with pytest.raises(DimensionMismatchError):
            _pipeline(documented, ShortEmbedder(), vector_store, policy).embed_connection("shop")
        assert documented.embedding_status("shop").embedded_count == 0


class TestFlush:
    """Test dropping the collection."""

    def test_flush_resets_ledger(
        self,
        documented: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test that flushing deletes the collection and clears embedding ids."""
        pipeline = _pipeline(documented, embedder, vector_store, policy)
        pipeline.embed_connection("shop")

        cleared = pipeline.flush_collection()

        assert cleared == 5
        assert vector_store.collection_exists() is False
        assert pipeline.status("shop").embedded_count == 0

    def test_provision_collection(
        self,
        documented: MetadataLedger,
        embedder: KeywordEmbedder,
        vector_store: VectorStore,
        policy: PipelinePolicy,
    ) -> None:
        """Test explicit provisioning."""
        pipeline = _pipeline(documented, embedder, vector_store, policy)
        assert pipeline.provision_collection() is True
        assert pipeline.provision_collection() is False
