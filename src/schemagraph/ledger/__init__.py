"""Metadata ledger for SchemaGraph."""

from schemagraph.ledger.models import (
    ConnectionDefinition,
    EntityDefinition,
    FieldDefinition,
    RelationshipDefinition,
    SchemaKnowledge,
)
from schemagraph.ledger.store import MetadataLedger

__all__ = [
    "MetadataLedger",
    "ConnectionDefinition",
    "EntityDefinition",
    "FieldDefinition",
    "RelationshipDefinition",
    "SchemaKnowledge",
]
