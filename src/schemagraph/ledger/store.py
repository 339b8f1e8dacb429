"""Metadata ledger: the relational source of truth for SchemaGraph.

The ledger holds tables (entities), columns (fields), foreign keys
(relationships) and generated documentation per connection. The graph and
the vector collection are derived from it and can always be rebuilt.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from schemagraph.core.types import (
    DocChunkInfo,
    EmbeddingStatus,
    EntityRecord,
    FieldRecord,
    LedgerSnapshot,
    MetadataSyncResult,
    RelationshipRecord,
    TableSpec,
)
from schemagraph.ledger.models import (
    Base,
    ConnectionDefinition,
    EntityDefinition,
    FieldDefinition,
    RelationshipDefinition,
    SchemaKnowledge,
)

if TYPE_CHECKING:
    from schemagraph.core.connection import DatabaseConnection

logger = logging.getLogger(__name__)


def describe_columns(table_name: str, columns: Iterable[tuple[str, str]]) -> str:
    """Plain-text description of a table used when no generated docs exist."""
    parts = [f"{name} ({col_type})" for name, col_type in columns]
    return f'Database table "{table_name}" contains columns: {", ".join(parts)}.'


class MetadataLedger:
    """Reads and writes connection metadata stored in the ``sg_`` tables."""

    def __init__(self, connection: DatabaseConnection) -> None:
        """Initialize the ledger.

        Args:
            connection: Database connection to use
        """
        self._connection = connection
        self._initialized = False

    def initialize(self) -> None:
        """Create ledger tables if they don't exist."""
        if not self._initialized:
            Base.metadata.create_all(self._connection.engine)
            self._initialized = True

    def _get_session(self) -> Session:
        return self._connection.get_session()

    # === Connections ===

    def register_connection(
        self,
        connection_id: str,
        name: str | None = None,
        provider: str = "postgresql",
        description: str | None = None,
    ) -> None:
        """Register a connection (idempotent).

        Args:
            connection_id: Opaque connection identifier
            name: Display name (defaults to the id)
            provider: Database vendor of the connected database
            description: Free-text description
        """
        self.initialize()
        with self._get_session() as session:
            self._ensure_connection(session, connection_id, name, provider, description)
            session.commit()

    def _ensure_connection(
        self,
        session: Session,
        connection_id: str,
        name: str | None = None,
        provider: str = "postgresql",
        description: str | None = None,
    ) -> ConnectionDefinition:
        existing = session.get(ConnectionDefinition, connection_id)
        if existing:
            if name:
                existing.name = name
            if description is not None:
                existing.description = description
            return existing
        conn = ConnectionDefinition(
            id=connection_id,
            name=name or connection_id,
            provider=provider,
            description=description,
        )
        session.add(conn)
        session.flush()
        return conn

    def list_connections(self) -> list[dict[str, Any]]:
        """List registered connections."""
        self.initialize()
        with self._get_session() as session:
            return [c.to_dict() for c in session.query(ConnectionDefinition).all()]

    # === Table metadata ===

    def sync_tables(self, connection_id: str, tables: Iterable[TableSpec]) -> MetadataSyncResult:
        """Write introspected tables into the ledger for one connection.

        Entities are matched by name and fields by (entity, name) so existing
        ids stay stable across syncs. Tables and columns that disappeared are
        removed. Relationships are rebuilt from the column foreign key hints;
        a hint whose target column cannot be resolved is skipped and reported.

        Args:
            connection_id: Connection the tables belong to
            tables: Introspected tables

        Returns:
            MetadataSyncResult with counts and skipped foreign keys
        """
        self.initialize()
        specs: dict[str, TableSpec] = {}
        for table in tables:
            if table.name:
                specs[table.name] = table

        with self._get_session() as session:
            self._ensure_connection(session, connection_id)

            existing = {
                e.name: e
                for e in session.query(EntityDefinition).filter_by(connection_id=connection_id)
            }

            # Relationships are rebuilt from scratch below
            old_field_ids = [
                f.id
                for e in existing.values()
                for f in e.fields
            ]
            if old_field_ids:
                session.query(RelationshipDefinition).filter(
                    or_(
                        RelationshipDefinition.source_field_id.in_(old_field_ids),
                        RelationshipDefinition.target_field_id.in_(old_field_ids),
                    )
                ).delete(synchronize_session=False)

            removed = sorted(name for name in existing if name not in specs)
            for name in removed:
                session.delete(existing.pop(name))

            field_ids: dict[str, str] = {}
            field_count = 0
            for table_name, spec in specs.items():
                entity = existing.get(table_name)
                if entity is None:
                    entity = EntityDefinition(connection_id=connection_id, name=table_name)
                    session.add(entity)
                    session.flush()

                current = {f.name: f for f in entity.fields}
                wanted = {c.name: c for c in spec.columns if c.name}
                for stale in [n for n in current if n not in wanted]:
                    session.delete(current.pop(stale))

                for col_name, col in wanted.items():
                    field = current.get(col_name)
                    if field is None:
                        field = FieldDefinition(entity_id=entity.id, name=col_name, type=col.type)
                        session.add(field)
                    field.type = col.type
                    field.is_nullable = col.nullable
                    field.is_primary_key = col.primary_key
                    session.flush()
                    field_ids[f"{table_name}.{col_name}"] = field.id
                    field_count += 1

            skipped: list[str] = []
            pairs: set[tuple[str, str]] = set()
            for table_name, spec in specs.items():
                for col in spec.columns:
                    if not col.is_foreign_key:
                        continue
                    source_key = f"{table_name}.{col.name}"
                    target_key = f"{col.references_table}.{col.references_column}"
                    target_id = field_ids.get(target_key)
                    if target_id is None:
                        logger.warning(
                            f"Foreign key skipped: could not resolve target field "
                            f"{source_key} -> {target_key}"
                        )
                        skipped.append(f"{source_key} -> {target_key}")
                        continue
                    pairs.add((field_ids[source_key], target_id))

            for source_id, target_id in sorted(pairs):
                session.add(
                    RelationshipDefinition(source_field_id=source_id, target_field_id=target_id)
                )

            session.commit()

        logger.info(
            f"Synced metadata for connection {connection_id}: {len(specs)} entities, "
            f"{field_count} fields, {len(pairs)} relationships"
        )
        return MetadataSyncResult(
            connection_id=connection_id,
            entities=len(specs),
            fields=field_count,
            relationships=len(pairs),
            removed_entities=removed,
            skipped_foreign_keys=skipped,
        )

    def list_entities(self, connection_id: str) -> list[str]:
        """List entity names for a connection."""
        self.initialize()
        with self._get_session() as session:
            rows = (
                session.query(EntityDefinition.name)
                .filter_by(connection_id=connection_id)
                .order_by(EntityDefinition.name)
                .all()
            )
            return [r[0] for r in rows]

    def load_snapshot(self, connection_id: str) -> LedgerSnapshot:
        """Load entities, fields and relationships for one connection.

        Relationships are selected by source field, so only foreign keys
        declared by this connection's tables are returned.
        """
        self.initialize()
        with self._get_session() as session:
            entities = (
                session.query(EntityDefinition)
                .filter_by(connection_id=connection_id)
                .order_by(EntityDefinition.name)
                .all()
            )
            entity_ids = [e.id for e in entities]
            fields: list[FieldDefinition] = []
            if entity_ids:
                fields = (
                    session.query(FieldDefinition)
                    .filter(FieldDefinition.entity_id.in_(entity_ids))
                    .order_by(FieldDefinition.entity_id, FieldDefinition.name)
                    .all()
                )
            field_ids = [f.id for f in fields]
            relationships: list[RelationshipDefinition] = []
            if field_ids:
                relationships = (
                    session.query(RelationshipDefinition)
                    .filter(RelationshipDefinition.source_field_id.in_(field_ids))
                    .order_by(RelationshipDefinition.id)
                    .all()
                )

            return LedgerSnapshot(
                connection_id=connection_id,
                entities=[
                    EntityRecord(id=e.id, connection_id=e.connection_id, name=e.name)
                    for e in entities
                ],
                fields=[
                    FieldRecord(
                        id=f.id,
                        entity_id=f.entity_id,
                        name=f.name,
                        type=f.type,
                        is_nullable=f.is_nullable,
                        is_primary_key=f.is_primary_key,
                    )
                    for f in fields
                ],
                relationships=[
                    RelationshipRecord(
                        id=r.id,
                        source_field_id=r.source_field_id,
                        target_field_id=r.target_field_id,
                    )
                    for r in relationships
                ],
            )

    # === Documentation chunks ===

    def upsert_doc_chunk(self, connection_id: str, entity_name: str, markdown: str) -> DocChunkInfo:
        """Insert or replace the documentation for one entity.

        Changing the text clears ``embedding_id`` so the entity shows up as
        pending in ``embedding_status`` until it is re-embedded.
        """
        self.initialize()
        with self._get_session() as session:
            self._ensure_connection(session, connection_id)
            chunk = (
                session.query(SchemaKnowledge)
                .filter_by(connection_id=connection_id, entity_name=entity_name)
                .first()
            )
            if chunk is None:
                chunk = SchemaKnowledge(
                    connection_id=connection_id,
                    entity_name=entity_name,
                    markdown_content=markdown,
                )
                session.add(chunk)
            elif chunk.markdown_content != markdown:
                chunk.markdown_content = markdown
                chunk.embedding_id = None
            session.commit()
            return self._chunk_info(chunk)

    def list_doc_chunks(self, connection_id: str) -> list[DocChunkInfo]:
        """List documentation chunks for a connection, ordered by entity name."""
        self.initialize()
        with self._get_session() as session:
            chunks = (
                session.query(SchemaKnowledge)
                .filter_by(connection_id=connection_id)
                .order_by(SchemaKnowledge.entity_name)
                .all()
            )
            return [self._chunk_info(c) for c in chunks]

    @staticmethod
    def _chunk_info(chunk: SchemaKnowledge) -> DocChunkInfo:
        return DocChunkInfo(
            id=chunk.id,
            connection_id=chunk.connection_id,
            entity_name=chunk.entity_name,
            markdown_content=chunk.markdown_content,
            embedding_id=chunk.embedding_id,
        )

    def record_embedding_ids(self, connection_id: str, point_ids: Mapping[str, str]) -> int:
        """Store the vector point id for each embedded entity.

        Args:
            connection_id: Connection the chunks belong to
            point_ids: entity_name -> point id

        Returns:
            Number of chunks updated
        """
        if not point_ids:
            return 0
        self.initialize()
        with self._get_session() as session:
            chunks = (
                session.query(SchemaKnowledge)
                .filter(
                    SchemaKnowledge.connection_id == connection_id,
                    SchemaKnowledge.entity_name.in_(list(point_ids)),
                )
                .all()
            )
            for chunk in chunks:
                chunk.embedding_id = point_ids[chunk.entity_name]
            session.commit()
            return len(chunks)

    def clear_embedding_ids(self, connection_id: str | None = None) -> int:
        """Forget embedding ids (after the collection was flushed)."""
        self.initialize()
        with self._get_session() as session:
            query = session.query(SchemaKnowledge).filter(SchemaKnowledge.embedding_id.isnot(None))
            if connection_id is not None:
                query = query.filter(SchemaKnowledge.connection_id == connection_id)
            count = query.update({SchemaKnowledge.embedding_id: None}, synchronize_session=False)
            session.commit()
            return count

    def embedding_status(self, connection_id: str) -> EmbeddingStatus:
        """Count documentation chunks and how many have been embedded."""
        chunks = self.list_doc_chunks(connection_id)
        return EmbeddingStatus(
            connection_id=connection_id,
            total=len(chunks),
            embedded_count=sum(1 for c in chunks if c.embedding_id),
        )

    def seed_column_docs(self, connection_id: str, overwrite: bool = False) -> list[str]:
        """Write column-summary documentation for entities that have none.

        Args:
            connection_id: Connection to seed
            overwrite: Replace existing documentation as well

        Returns:
            Names of the entities that received documentation
        """
        snapshot = self.load_snapshot(connection_id)
        documented = {c.entity_name for c in self.list_doc_chunks(connection_id)}

        columns: dict[str, list[tuple[str, str]]] = {e.id: [] for e in snapshot.entities}
        for field in snapshot.fields:
            columns[field.entity_id].append((field.name, field.type))

        written = []
        for entity in snapshot.entities:
            if entity.name in documented and not overwrite:
                continue
            self.upsert_doc_chunk(
                connection_id, entity.name, describe_columns(entity.name, columns[entity.id])
            )
            written.append(entity.name)
        return written
