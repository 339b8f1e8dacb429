"""Custom exceptions for SchemaGraph.

All exceptions are designed to be surfaced to callers as-is:
- Actionable error messages that tell what went wrong AND how to fix it
- Include context about the connection, entity or collection involved
"""

from __future__ import annotations

from typing import Any


class SchemaGraphError(Exception):
    """Base exception for all SchemaGraph errors."""

    retryable: bool = False

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }


class LedgerConnectionError(SchemaGraphError):
    """Failed to connect to the metadata ledger database."""

    pass


class EntityNotFoundError(SchemaGraphError):
    """Entity does not exist for the connection."""

    def __init__(
        self, entity_name: str, connection_id: str, available_entities: list[str] | None = None
    ) -> None:
        available = available_entities or []
        if available:
            message = (
                f"Entity '{entity_name}' not found in connection '{connection_id}'. "
                f"Available entities: {', '.join(available)}"
            )
        else:
            message = (
                f"Entity '{entity_name}' not found in connection '{connection_id}'. "
                "Run 'metadata sync' and 'graph build' first."
            )
        super().__init__(
            message,
            {
                "entity_name": entity_name,
                "connection_id": connection_id,
                "available_entities": available,
            },
        )
        self.entity_name = entity_name
        self.connection_id = connection_id
        self.available_entities = available


class NoMetadataSyncedError(SchemaGraphError):
    """The ledger holds no entities for the connection."""

    def __init__(self, connection_id: str) -> None:
        message = (
            f"No table metadata synced for connection '{connection_id}'. "
            "Sync table metadata first, then rebuild the graph."
        )
        super().__init__(message, {"connection_id": connection_id})
        self.connection_id = connection_id


class NoDocumentationError(SchemaGraphError):
    """The ledger holds no documentation chunks for the connection."""

    def __init__(self, connection_id: str) -> None:
        message = (
            f"No documentation found to embed for connection '{connection_id}'. "
            "Generate or load documentation first (or run 'docs seed')."
        )
        super().__init__(message, {"connection_id": connection_id})
        self.connection_id = connection_id


class ConnectionIsolationError(SchemaGraphError):
    """A row or hit tagged with another connection crossed the isolation boundary.

    This should never happen; it is raised instead of silently mixing tenants.
    """

    def __init__(self, expected: str, found: str | None, where: str) -> None:
        message = (
            f"Connection isolation violated in {where}: expected '{expected}', "
            f"found '{found}'. Aborted without writing or returning mixed data."
        )
        super().__init__(message, {"expected": expected, "found": found, "where": where})
        self.expected = expected
        self.found = found


class GraphStoreError(SchemaGraphError):
    """A graph store operation failed (the transaction was rolled back)."""

    pass


class ExternalTimeoutError(SchemaGraphError):
    """An external call exceeded its deadline. Safe to retry."""

    retryable = True

    def __init__(self, service: str, timeout: float, detail: str | None = None) -> None:
        message = f"{service} call exceeded its {timeout:g}s deadline. Retry the request."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, {"service": service, "timeout": timeout})
        self.service = service
        self.timeout = timeout


class EmbeddingProviderError(SchemaGraphError):
    """The embedding provider failed for one text."""

    def __init__(
        self,
        message: str,
        entity_name: str | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message, {"entity_name": entity_name})
        self.entity_name = entity_name
        self.retryable = retryable


class CollectionMissingError(SchemaGraphError):
    """The vector collection (or its connection index) does not exist."""

    def __init__(self, collection: str, reason: str | None = None) -> None:
        message = (
            f"Vector collection '{collection}' is missing. "
            "Re-run the embedding sync ('embeddings sync') to rebuild it."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"collection": collection, "reason": reason})
        self.collection = collection


class DimensionMismatchError(SchemaGraphError):
    """Vector dimensions differ between the provider and the collection."""

    def __init__(self, expected: int, actual: int, where: str) -> None:
        message = (
            f"Embedding dimension mismatch in {where}: expected {expected}, got {actual}. "
            "Flush the collection and re-embed everything with a single model."
        )
        super().__init__(message, {"expected": expected, "actual": actual, "where": where})
        self.expected = expected
        self.actual = actual


class NoRelevantContextError(SchemaGraphError):
    """Vector search returned nothing for the connection."""

    def __init__(self, connection_id: str, query: str) -> None:
        message = (
            f"Could not find relevant schema context for connection '{connection_id}'. "
            "Check that documentation was embedded for this connection or rephrase the question."
        )
        super().__init__(message, {"connection_id": connection_id, "query": query})
        self.connection_id = connection_id


class LLMGenerationError(SchemaGraphError):
    """The chat model failed to produce an answer."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable
