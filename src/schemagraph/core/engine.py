"""Main SchemaGraph engine."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from schemagraph.core.connection import DatabaseConnection
from schemagraph.core.types import (
    ChatAnswer,
    ChatTurn,
    DocChunkInfo,
    EmbeddingStatus,
    EmbeddingSyncResult,
    GraphSyncResult,
    ImpactAnalysis,
    MetadataSyncResult,
    PipelinePolicy,
    StructuralReport,
    TableContext,
    TableSpec,
)
from schemagraph.ledger.store import MetadataLedger

if TYPE_CHECKING:
    from schemagraph.embeddings.provider import EmbeddingProvider
    from schemagraph.graph.analytics import StructuralAnalytics
    from schemagraph.graph.store import GraphStore, Neo4jConfig
    from schemagraph.llm.provider import LLMProvider
    from schemagraph.pipeline import EmbeddingPipeline
    from schemagraph.retrieval import HybridRetriever, RetrievedContext
    from schemagraph.vectors import VectorStore

logger = logging.getLogger(__name__)


class SchemaGraph:
    """Metadata graph sync and hybrid retrieval over connected databases.

    Owns the ledger connection and the long-lived graph, vector and model
    clients. External clients are created on first use, so commands that
    only touch the ledger never connect to Neo4j or Qdrant.

    Example:
        sg = SchemaGraph(
            "sqlite:///schemagraph.db",
            graph=Neo4jConfig("bolt://localhost:7687", "neo4j", "secret"),
            qdrant_url="http://localhost:6333",
            llm="groq",
        )
        sg.sync_metadata("shop", tables)
        sg.build_graph("shop")
        sg.seed_documentation("shop")
        sg.embed_documentation("shop")
        print(sg.ask("How are orders linked to customers?", "shop").answer)
    """

    def __init__(
        self,
        url: str,
        graph: GraphStore | Neo4jConfig | None = None,
        vectors: VectorStore | None = None,
        qdrant_url: str = ":memory:",
        qdrant_api_key: str | None = None,
        collection: str | None = None,
        embedding_provider: str | EmbeddingProvider = "fastembed",
        embedding_model: str | None = None,
        embedding_dimensions: int | None = None,
        llm: str | LLMProvider | None = None,
        policy: PipelinePolicy | None = None,
        echo: bool = False,
    ) -> None:
        """Initialize SchemaGraph.

        Args:
            url: Ledger database URL (PostgreSQL or SQLite)
            graph: Graph store instance, or Neo4j settings to build one
            vectors: Vector store instance (overrides the qdrant_* options)
            qdrant_url: Qdrant URL, or ":memory:" for an in-process store
            qdrant_api_key: Qdrant API key
            collection: Vector collection name
            embedding_provider: Provider name ("fastembed", "openai") or instance
            embedding_model: Model name (provider-specific)
            embedding_dimensions: Vector dimensions (OpenAI only)
            llm: Chat provider name ("groq", "openai") or instance
            policy: Thresholds, limits and deadlines
            echo: Whether to echo ledger SQL statements (for debugging)
        """
        self._policy = policy or PipelinePolicy()
        self._connection = DatabaseConnection(url, echo=echo)
        self._ledger = MetadataLedger(self._connection)
        self._ledger.initialize()

        self._graph_spec = graph
        self._graph: GraphStore | None = None
        self._vectors = vectors
        self._qdrant_url = qdrant_url
        self._qdrant_api_key = qdrant_api_key
        self._collection = collection
        self._provider_spec = embedding_provider
        self._embedding_model = embedding_model
        self._embedding_dimensions = embedding_dimensions
        self._provider: EmbeddingProvider | None = None
        self._llm_spec = llm
        self._llm: LLMProvider | None = None

    # === Components ===

    @property
    def ledger(self) -> MetadataLedger:
        return self._ledger

    @property
    def policy(self) -> PipelinePolicy:
        return self._policy

    @property
    def graph_store(self) -> GraphStore:
        """The graph store, connecting on first use."""
        if self._graph is None:
            from schemagraph.graph.store import GraphStore, Neo4jConfig, Neo4jGraphStore

            spec = self._graph_spec
            if isinstance(spec, GraphStore):
                self._graph = spec
            elif isinstance(spec, Neo4jConfig):
                self._graph = Neo4jGraphStore(spec)
                self._graph.ensure_schema()
            else:
                raise ValueError(
                    "No graph store configured. Pass graph=Neo4jConfig(...) or set NEO4J_URI."
                )
        return self._graph

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        if self._provider is None:
            from schemagraph.embeddings import get_provider

            kwargs: dict[str, Any] = {}
            if self._embedding_model:
                kwargs["model"] = self._embedding_model
            if self._provider_spec == "openai":
                kwargs["timeout"] = self._policy.embedding_timeout
                if self._embedding_dimensions:
                    kwargs["dimensions"] = self._embedding_dimensions
            self._provider = get_provider(self._provider_spec, **kwargs)
        return self._provider

    @property
    def vector_store(self) -> VectorStore:
        if self._vectors is None:
            from schemagraph.vectors import DEFAULT_COLLECTION, VectorStore

            self._vectors = VectorStore.from_url(
                self._qdrant_url,
                api_key=self._qdrant_api_key,
                collection=self._collection or DEFAULT_COLLECTION,
                dimensions=self.embedding_provider.dimensions,
                timeout=self._policy.vector_timeout,
            )
        return self._vectors

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            from schemagraph.llm import get_llm_provider

            if self._llm_spec is None:
                raise ValueError("No chat model configured. Pass llm='groq' or llm='openai'.")
            if isinstance(self._llm_spec, str):
                self._llm = get_llm_provider(self._llm_spec, timeout=self._policy.llm_timeout)
            else:
                self._llm = get_llm_provider(self._llm_spec)
        return self._llm

    @property
    def analytics(self) -> StructuralAnalytics:
        from schemagraph.graph.analytics import StructuralAnalytics

        return StructuralAnalytics(self.graph_store, self._policy)

    @property
    def pipeline(self) -> EmbeddingPipeline:
        from schemagraph.pipeline import EmbeddingPipeline

        return EmbeddingPipeline(
            self._ledger, self.embedding_provider, self.vector_store, self._policy
        )

    def retriever(self, with_llm: bool = True) -> HybridRetriever:
        from schemagraph.retrieval import HybridRetriever

        return HybridRetriever(
            self.embedding_provider,
            self.vector_store,
            self.graph_store,
            llm=self.llm if with_llm else None,
            policy=self._policy,
            analytics=self.analytics,
        )

    def close(self) -> None:
        """Close the graph driver, the vector client and the ledger connection."""
        if self._graph is not None:
            self._graph.close()
            self._graph = None
        if self._vectors is not None:
            self._vectors.close()
            self._vectors = None
        self._connection.close()

    def __enter__(self) -> SchemaGraph:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()

    # === Ledger ===

    def register_connection(
        self,
        connection_id: str,
        name: str | None = None,
        provider: str = "postgresql",
        description: str | None = None,
    ) -> None:
        self._ledger.register_connection(connection_id, name, provider, description)

    def list_connections(self) -> list[dict[str, Any]]:
        return self._ledger.list_connections()

    def list_entities(self, connection_id: str) -> list[str]:
        return self._ledger.list_entities(connection_id)

    def sync_metadata(
        self, connection_id: str, tables: Iterable[TableSpec | Mapping[str, Any]]
    ) -> MetadataSyncResult:
        """Write introspected tables (with FK hints) into the ledger.

        Example:
            sg.sync_metadata("shop", [
                {"name": "customers", "columns": [{"name": "id", "primary_key": True}]},
                {"name": "orders", "columns": [
                    {"name": "id", "primary_key": True},
                    {"name": "customer_id", "references_table": "customers",
                     "references_column": "id"},
                ]},
            ])
        """
        specs = [t if isinstance(t, TableSpec) else TableSpec.model_validate(t) for t in tables]
        return self._ledger.sync_tables(connection_id, specs)

    def load_documentation(
        self, connection_id: str, docs: Mapping[str, str]
    ) -> list[DocChunkInfo]:
        """Store generated markdown documentation, one chunk per entity."""
        return [
            self._ledger.upsert_doc_chunk(connection_id, entity, markdown)
            for entity, markdown in docs.items()
        ]

    def seed_documentation(self, connection_id: str, overwrite: bool = False) -> list[str]:
        """Write column-summary docs for entities without documentation."""
        return self._ledger.seed_column_docs(connection_id, overwrite=overwrite)

    # === Graph ===

    def build_graph(self, connection_id: str) -> GraphSyncResult:
        """Rebuild the property graph of a connection from the ledger."""
        from schemagraph.graph.synchronizer import GraphSynchronizer

        return GraphSynchronizer(self._ledger, self.graph_store).sync(connection_id)

    def graph_counts(self, connection_id: str) -> dict[str, int]:
        return self.graph_store.count_graph(connection_id)

    def related_tables(self, connection_id: str, entity_name: str) -> list[str]:
        return self.analytics.related_tables(connection_id, entity_name)

    def find_join_path(self, connection_id: str, source: str, target: str) -> list[str] | None:
        return self.analytics.find_join_path(connection_id, source, target)

    def describe_entity(self, connection_id: str, entity_name: str) -> TableContext:
        return self.analytics.entity_schema_context(connection_id, entity_name)

    def structural_report(self, connection_id: str) -> StructuralReport:
        return self.analytics.structural_report(connection_id)

    def impact_analysis(self, connection_id: str, entity_names: Iterable[str]) -> ImpactAnalysis:
        return self.analytics.impact_analysis(connection_id, entity_names)

    # === Embeddings ===

    def embed_documentation(
        self, connection_id: str, entity_names: Iterable[str] | None = None
    ) -> EmbeddingSyncResult:
        """Embed the connection's documentation into the vector collection."""
        return self.pipeline.embed_connection(connection_id, entity_names)

    def embedding_status(self, connection_id: str) -> EmbeddingStatus:
        return self._ledger.embedding_status(connection_id)

    def provision_collection(self) -> bool:
        return self.pipeline.provision_collection()

    def flush_collection(self) -> int:
        return self.pipeline.flush_collection()

    # === Retrieval ===

    def retrieve(self, query: str, connection_id: str) -> RetrievedContext:
        """Vector hits and graph relations for ``query``, without calling the chat model."""
        return self.retriever(with_llm=False).retrieve(query, connection_id)

    def ask(
        self,
        query: str,
        connection_id: str,
        history: Sequence[ChatTurn | dict[str, Any]] | None = None,
    ) -> ChatAnswer:
        """Answer a question about a connection's schema."""
        return self.retriever().ask(query, connection_id, history)
