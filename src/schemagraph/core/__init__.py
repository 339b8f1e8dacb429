"""Core components for SchemaGraph."""

from schemagraph.core.connection import DatabaseConnection
from schemagraph.core.types import (
    ChatAnswer,
    ColumnSpec,
    GraphRelation,
    GraphSyncResult,
    PipelinePolicy,
    StructuralReport,
    TableSpec,
)

__all__ = [
    "DatabaseConnection",
    "ColumnSpec",
    "TableSpec",
    "GraphRelation",
    "GraphSyncResult",
    "StructuralReport",
    "ChatAnswer",
    "PipelinePolicy",
]
