"""Shared test fixtures for SchemaGraph."""

import os
from collections.abc import Generator

import pytest
from qdrant_client import QdrantClient

from schemagraph import SchemaGraph
from schemagraph.core.connection import DatabaseConnection
from schemagraph.core.types import PipelinePolicy, TableSpec
from schemagraph.ledger.store import MetadataLedger
from schemagraph.vectors import VectorStore
from tests.fakes import SHOP_DOCS, SHOP_TABLES, InMemoryGraphStore, KeywordEmbedder, ScriptedLLM


@pytest.fixture
def shop_tables() -> list[TableSpec]:
    """Five tables: a customer/order/product chain plus an isolated audit log."""
    return [t.model_copy(deep=True) for t in SHOP_TABLES]


@pytest.fixture
def shop_docs() -> dict[str, str]:
    return dict(SHOP_DOCS)


@pytest.fixture
def connection() -> Generator[DatabaseConnection, None, None]:
    """SQLite in-memory ledger connection."""
    conn = DatabaseConnection("sqlite:///:memory:")
    yield conn
    conn.close()


@pytest.fixture
def ledger(connection: DatabaseConnection) -> MetadataLedger:
    ledger = MetadataLedger(connection)
    ledger.initialize()
    return ledger


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def policy() -> PipelinePolicy:
    """Fast retries so failure tests don't sleep."""
    return PipelinePolicy(backoff_initial=0.0, backoff_max=0.0, hub_threshold=2)


@pytest.fixture
def vector_store(embedder: KeywordEmbedder) -> VectorStore:
    """In-process Qdrant collection sized for the keyword embedder."""
    return VectorStore(QdrantClient(":memory:"), "test_docs", embedder.dimensions)


@pytest.fixture
def sg(
    graph_store: InMemoryGraphStore,
    vector_store: VectorStore,
    embedder: KeywordEmbedder,
    llm: ScriptedLLM,
    policy: PipelinePolicy,
) -> Generator[SchemaGraph, None, None]:
    """SchemaGraph wired to in-memory ledger, graph, vectors and models."""
    database = SchemaGraph(
        "sqlite:///:memory:",
        graph=graph_store,
        vectors=vector_store,
        embedding_provider=embedder,
        llm=llm,
        policy=policy,
    )
    yield database
    database.close()


@pytest.fixture
def neo4j_settings() -> dict[str, str]:
    """Neo4j settings for integration tests; skips when TEST_NEO4J_URI is unset."""
    uri = os.environ.get("TEST_NEO4J_URI")
    if not uri:
        pytest.skip("TEST_NEO4J_URI not set")
    return {
        "uri": uri,
        "user": os.environ.get("TEST_NEO4J_USER", "neo4j"),
        "password": os.environ.get("TEST_NEO4J_PASSWORD", "password"),
    }
