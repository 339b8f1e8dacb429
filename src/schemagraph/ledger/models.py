"""SQLAlchemy ORM models for the SchemaGraph metadata ledger.

These tables are the source of truth for everything derived by SchemaGraph:
the property graph and the vector points can always be rebuilt from them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def generate_uuid() -> str:
    """Generate a new UUID as string."""
    return str(uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SchemaGraph ledger models."""

    pass


class ConnectionDefinition(Base):
    """A tenant-scoped external database link.

    Credentials are deliberately absent; this core only needs the identity.
    """

    __tablename__ = "sg_connections"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), default="postgresql", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    entities: Mapped[list[EntityDefinition]] = relationship(
        "EntityDefinition", back_populates="connection", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class EntityDefinition(Base):
    """One table of a connected database."""

    __tablename__ = "sg_entities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    connection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sg_connections.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    connection: Mapped[ConnectionDefinition] = relationship(
        "ConnectionDefinition", back_populates="entities"
    )
    fields: Mapped[list[FieldDefinition]] = relationship(
        "FieldDefinition", back_populates="entity", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_sg_entity_connection_name", "connection_id", "name", unique=True),)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "connection_id": self.connection_id,
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields] if self.fields else [],
        }


class FieldDefinition(Base):
    """One column, exclusively owned by an entity.

    ``is_foreign_key`` is not stored: it is derived from the relationship set.
    """

    __tablename__ = "sg_fields"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    entity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sg_entities.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    is_nullable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    entity: Mapped[EntityDefinition] = relationship("EntityDefinition", back_populates="fields")

    __table_args__ = (Index("ix_sg_field_entity_name", "entity_id", "name", unique=True),)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "name": self.name,
            "type": self.type,
            "is_nullable": self.is_nullable,
            "is_primary_key": self.is_primary_key,
        }


class RelationshipDefinition(Base):
    """A foreign key: source field references target field."""

    __tablename__ = "sg_relationships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    source_field_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sg_fields.id", ondelete="CASCADE"), nullable=False
    )
    target_field_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("sg_fields.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index("ix_sg_rel_source_target", "source_field_id", "target_field_id", unique=True),
        Index("ix_sg_rel_target", "target_field_id"),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "source_field_id": self.source_field_id,
            "target_field_id": self.target_field_id,
        }


class SchemaKnowledge(Base):
    """Generated markdown documentation for one entity (a DocChunk).

    At most one row per (connection_id, entity_name). ``embedding_id`` points
    at the vector point built from this text, once it has been embedded.
    """

    __tablename__ = "sg_schema_knowledge"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    connection_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("sg_connections.id", ondelete="CASCADE"), nullable=False
    )
    entity_name: Mapped[str] = mapped_column(String(255), nullable=False)
    markdown_content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_sg_knowledge_connection_entity", "connection_id", "entity_name", unique=True),
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "connection_id": self.connection_id,
            "entity_name": self.entity_name,
            "markdown_content": self.markdown_content,
            "embedding_id": self.embedding_id,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
