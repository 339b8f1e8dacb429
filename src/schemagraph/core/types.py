"""Core types and specifications for SchemaGraph.

All types are designed to be JSON-serializable so results can be returned
from the CLI (``--json``) or an API layer without further conversion.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

# Sentinel the chat model is instructed to emit when the context is not enough.
INSUFFICIENT_CONTEXT = "INSUFFICIENT_CONTEXT"


# === Ledger input (introspection output) ===


class ColumnSpec(BaseModel):
    """One introspected column.

    Accepts both our own keys and the information_schema style keys produced
    by the introspection layer (``column_name``, ``data_type``, ``is_nullable``
    as ``"YES"``/``"NO"``, ``foreign_table_name``, ``foreign_column_name``).
    """

    name: str = Field(..., validation_alias=AliasChoices("name", "column_name"))
    type: str = Field(default="text", validation_alias=AliasChoices("type", "data_type"))
    nullable: bool = Field(default=True, validation_alias=AliasChoices("nullable", "is_nullable"))
    primary_key: bool = Field(
        default=False, validation_alias=AliasChoices("primary_key", "is_primary_key", "pk")
    )
    references_table: str | None = Field(
        default=None, validation_alias=AliasChoices("references_table", "foreign_table_name")
    )
    references_column: str | None = Field(
        default=None, validation_alias=AliasChoices("references_column", "foreign_column_name")
    )

    model_config = {"populate_by_name": True}

    @field_validator("nullable", mode="before")
    @classmethod
    def _parse_yes_no(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper() in ("YES", "Y", "TRUE", "1")
        return value

    @property
    def is_foreign_key(self) -> bool:
        """Whether the column carries a foreign key hint."""
        return bool(self.references_table and self.references_column)


class TableSpec(BaseModel):
    """One introspected table with its columns."""

    name: str = Field(..., validation_alias=AliasChoices("name", "table_name"))
    columns: list[ColumnSpec] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class MetadataSyncResult(BaseModel):
    """Outcome of writing introspected tables into the ledger."""

    connection_id: str
    entities: int
    fields: int
    relationships: int
    removed_entities: list[str] = Field(default_factory=list)
    skipped_foreign_keys: list[str] = Field(default_factory=list)


# === Ledger records (typed snapshot) ===


class EntityRecord(BaseModel):
    """A table as recorded in the ledger."""

    id: str
    connection_id: str
    name: str


class FieldRecord(BaseModel):
    """A column as recorded in the ledger."""

    id: str
    entity_id: str
    name: str
    type: str
    is_nullable: bool = True
    is_primary_key: bool = False


class RelationshipRecord(BaseModel):
    """A foreign key edge between two ledger fields."""

    id: str
    source_field_id: str
    target_field_id: str


class LedgerSnapshot(BaseModel):
    """Everything the graph synchronizer needs for one connection."""

    connection_id: str
    entities: list[EntityRecord] = Field(default_factory=list)
    fields: list[FieldRecord] = Field(default_factory=list)
    relationships: list[RelationshipRecord] = Field(default_factory=list)


class DocChunkInfo(BaseModel):
    """Generated documentation for one entity."""

    id: str
    connection_id: str
    entity_name: str
    markdown_content: str
    embedding_id: str | None = None


class EmbeddingStatus(BaseModel):
    """How much of a connection's documentation is embedded."""

    connection_id: str
    total: int
    embedded_count: int

    @property
    def embedded(self) -> bool:
        """True when every chunk has a vector point."""
        return self.total > 0 and self.embedded_count == self.total


# === Graph synchronizer ===


class SkippedRelationship(BaseModel):
    """A relationship that could not be written (orphaned endpoint)."""

    relationship_id: str
    source_field_id: str
    target_field_id: str
    reason: str


class GraphSyncResult(BaseModel):
    """Outcome of rebuilding one connection's graph."""

    connection_id: str
    entities: int
    fields: int
    has_field_edges: int
    field_references: int
    entity_references: int
    skipped_relationships: list[SkippedRelationship] = Field(default_factory=list)


class GraphRelation(BaseModel):
    """One foreign key edge as read back from the graph."""

    source_entity: str
    source_field: str
    target_entity: str
    target_field: str

    def render(self) -> str:
        """Render as ``"orders.customer_id references customers.id"``."""
        return (
            f"{self.source_entity}.{self.source_field} references "
            f"{self.target_entity}.{self.target_field}"
        )


class EntityGraph(BaseModel):
    """Entity names, HAS_FIELD counts and REFERENCES pairs for one connection."""

    connection_id: str
    entities: list[str] = Field(default_factory=list)
    references: list[tuple[str, str]] = Field(default_factory=list)
    field_counts: dict[str, int] = Field(default_factory=dict)


class ColumnContext(BaseModel):
    """A column as seen from the graph, with its foreign key target."""

    name: str
    type: str | None = None
    is_nullable: bool | None = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    references: str | None = None  # "table.column"


class TableContext(BaseModel):
    """Schema context for a single table, suitable for prompt injection."""

    table_name: str
    columns: list[ColumnContext] = Field(default_factory=list)


# === Structural analytics ===


class HubInfo(BaseModel):
    """A highly connected entity.

    ``connections`` is the total degree of the entity node, the sum of
    ``fields`` (HAS_FIELD edges) and ``references`` (REFERENCES edges in
    both directions).
    """

    name: str
    connections: int
    fields: int = 0
    references: int = 0


class StructuralReport(BaseModel):
    """Graph-level integrity and health summary for one connection."""

    connection_id: str
    entity_count: int
    reference_count: int
    isolated: list[str] = Field(default_factory=list)
    max_depth: int = 0
    hubs: list[HubInfo] = Field(default_factory=list)


class ImpactAnalysis(BaseModel):
    """How much of the relational structure a set of entities spans."""

    entities: list[str] = Field(default_factory=list)
    hops: int = 0
    disconnected: list[tuple[str, str]] = Field(default_factory=list)
    hubs_touched: list[str] = Field(default_factory=list)


# === Retrieval ===


class VectorHit(BaseModel):
    """A documentation point returned by vector search."""

    point_id: str
    score: float
    connection_id: str
    entity_name: str
    content: str
    type: str = "documentation"


class ChatTurn(BaseModel):
    """One turn of conversation history."""

    role: Literal["user", "assistant"]
    content: str


class ChatAnswer(BaseModel):
    """Answer from the hybrid retriever."""

    status: Literal["answered", "insufficient_context"]
    answer: str
    entities: list[str] = Field(default_factory=list)
    relations: list[str] = Field(default_factory=list)
    hits: list[VectorHit] = Field(default_factory=list)
    impact: ImpactAnalysis | None = None


# === Embedding pipeline ===


class EmbeddingFailure(BaseModel):
    """An entity whose documentation could not be embedded."""

    entity_name: str
    error: str
    retryable: bool = False


class EmbeddingSyncResult(BaseModel):
    """Aggregate result of an embedding run."""

    connection_id: str
    collection: str
    succeeded: list[str] = Field(default_factory=list)
    failed: list[EmbeddingFailure] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when no entity failed."""
        return not self.failed


# === Configuration ===


class PipelinePolicy(BaseModel):
    """Thresholds, limits and deadlines for sync, embedding and retrieval."""

    # Retrieval
    top_k: int = Field(default=5, ge=1, le=50)
    history_turns: int = Field(default=5, ge=0)
    max_context_chars: int = Field(default=12000, ge=500)

    # Structural analytics
    hub_threshold: int = 5

    # Embedding worker pool
    max_workers: int = Field(default=4, ge=1)
    max_retries: int = Field(default=3, ge=1)
    backoff_initial: float = 0.5
    backoff_max: float = 8.0

    # Deadlines (seconds) for external calls
    embedding_timeout: float = 30.0
    graph_timeout: float = 30.0
    vector_timeout: float = 10.0
    llm_timeout: float = 60.0
