"""SchemaGraph - metadata graph sync and hybrid retrieval for relational schemas.

Turns table metadata (tables, columns, foreign keys) into a connection-scoped
property graph, keeps one vector embedding per table's documentation, and
answers questions by merging vector search with one-hop graph expansion.

Example:
    from schemagraph import Neo4jConfig, SchemaGraph

    sg = SchemaGraph(
        "sqlite:///schemagraph.db",
        graph=Neo4jConfig("bolt://localhost:7687", "neo4j", "secret"),
        qdrant_url="http://localhost:6333",
        llm="groq",
    )

    # Ledger first, then derived state
    sg.sync_metadata("shop", tables)
    sg.build_graph("shop")
    sg.seed_documentation("shop")
    sg.embed_documentation("shop")

    answer = sg.ask("Which table stores the customer of an order?", "shop")
    print(answer.answer, answer.relations)

    # Structural health
    report = sg.structural_report("shop")
"""

from schemagraph.core.engine import SchemaGraph
from schemagraph.core.types import (
    ChatAnswer,
    ChatTurn,
    ColumnSpec,
    EmbeddingStatus,
    EmbeddingSyncResult,
    GraphRelation,
    GraphSyncResult,
    ImpactAnalysis,
    MetadataSyncResult,
    PipelinePolicy,
    StructuralReport,
    TableContext,
    TableSpec,
    VectorHit,
)
from schemagraph.exceptions import (
    CollectionMissingError,
    ConnectionIsolationError,
    DimensionMismatchError,
    EmbeddingProviderError,
    EntityNotFoundError,
    ExternalTimeoutError,
    GraphStoreError,
    LedgerConnectionError,
    LLMGenerationError,
    NoDocumentationError,
    NoMetadataSyncedError,
    NoRelevantContextError,
    SchemaGraphError,
)
from schemagraph.graph.store import GraphStore, Neo4jConfig, Neo4jGraphStore

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "SchemaGraph",
    "GraphStore",
    "Neo4jConfig",
    "Neo4jGraphStore",
    # Types
    "TableSpec",
    "ColumnSpec",
    "MetadataSyncResult",
    "GraphSyncResult",
    "GraphRelation",
    "TableContext",
    "EmbeddingSyncResult",
    "EmbeddingStatus",
    "VectorHit",
    "ChatTurn",
    "ChatAnswer",
    "StructuralReport",
    "ImpactAnalysis",
    "PipelinePolicy",
    # Exceptions
    "SchemaGraphError",
    "LedgerConnectionError",
    "NoMetadataSyncedError",
    "NoDocumentationError",
    "EntityNotFoundError",
    "ConnectionIsolationError",
    "GraphStoreError",
    "ExternalTimeoutError",
    "EmbeddingProviderError",
    "CollectionMissingError",
    "DimensionMismatchError",
    "NoRelevantContextError",
    "LLMGenerationError",
]
