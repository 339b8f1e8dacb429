"""Vector store for documentation embeddings, backed by Qdrant.

One collection holds the documentation points of every connection; each
point carries ``connection_id`` in its payload and every search filters on
it, so the collection needs a keyword index on that key.

On the write path a missing collection is provisioned on demand and the
write is retried exactly once. On the read path a missing collection is
reported, never created.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    UpdateStatus,
    VectorParams,
)

from schemagraph.core.types import VectorHit
from schemagraph.exceptions import (
    CollectionMissingError,
    DimensionMismatchError,
    ExternalTimeoutError,
    SchemaGraphError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_COLLECTION = "schema_documentation"
CONNECTION_KEY = "connection_id"


def is_not_found(error: Exception) -> bool:
    """Whether a client error means the collection does not exist."""
    if isinstance(error, UnexpectedResponse):
        return error.status_code == 404
    # Local mode (":memory:" / path) raises ValueError("Collection x not found")
    return isinstance(error, ValueError) and "not found" in str(error).lower()


class VectorStore:
    """Documentation points in a single Qdrant collection.

    Example:
        >>> store = VectorStore(QdrantClient(":memory:"), "schema_documentation", 384)
        >>> store.provision()
        >>> store.upsert([PointStruct(id=pid, vector=vec, payload=payload)])
        >>> store.search(query_vec, "conn-1", limit=5)
    """

    def __init__(
        self,
        client: QdrantClient,
        collection: str = DEFAULT_COLLECTION,
        dimensions: int = 384,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the store.

        Args:
            client: Long-lived Qdrant client (shared across requests)
            collection: Collection name
            dimensions: Vector size of the embedding provider
            timeout: Deadline the client was configured with, for error reporting
        """
        self.client = client
        self.collection = collection
        self.dimensions = dimensions
        self._timeout = timeout
        self._verified = False

    @classmethod
    def from_url(
        cls,
        url: str,
        api_key: str | None = None,
        collection: str = DEFAULT_COLLECTION,
        dimensions: int = 384,
        timeout: float = 10.0,
    ) -> VectorStore:
        """Create a store with its own client.

        ``url`` may also be ``":memory:"`` for an in-process store.
        """
        if url == ":memory:":
            client = QdrantClient(":memory:")
        elif api_key:
            client = QdrantClient(url=url, api_key=api_key, timeout=int(timeout))
        else:
            client = QdrantClient(url=url, timeout=int(timeout))
        return cls(client, collection, dimensions, timeout)

    def close(self) -> None:
        self.client.close()

    # === Provisioning ===

    def collection_exists(self) -> bool:
        return self._call(lambda: self.client.collection_exists(self.collection))

    def collection_size(self) -> int | None:
        """Vector size of the collection, or None if it does not exist."""
        try:
            info = self._call(lambda: self.client.get_collection(self.collection))
        except CollectionMissingError:
            return None
        vectors = info.config.params.vectors
        if isinstance(vectors, VectorParams):
            return vectors.size
        if isinstance(vectors, dict) and vectors:
            return next(iter(vectors.values())).size
        return None

    def provision(self) -> bool:
        """Create the collection and its ``connection_id`` index if missing.

        Returns:
            True if the collection was created
        """
        created = False
        if not self.collection_exists():
            logger.info(
                f"Creating vector collection {self.collection} "
                f"({self.dimensions} dimensions, cosine)"
            )
            self._call(
                lambda: self.client.create_collection(
                    collection_name=self.collection,
                    vectors_config=VectorParams(size=self.dimensions, distance=Distance.COSINE),
                )
            )
            created = True
        self._ensure_index()
        self._verified = True
        return created

    def _ensure_index(self) -> None:
        info = self._call(lambda: self.client.get_collection(self.collection))
        if CONNECTION_KEY in (info.payload_schema or {}):
            return
        logger.info(f"Applying '{CONNECTION_KEY}' keyword payload index on {self.collection}")
        self._call(
            lambda: self.client.create_payload_index(
                collection_name=self.collection,
                field_name=CONNECTION_KEY,
                field_schema=PayloadSchemaType.KEYWORD,
                wait=True,
            )
        )

    def verify(self) -> None:
        """Check the collection before the first write, provisioning it if missing.

        Raises:
            DimensionMismatchError: If the collection has another vector size
        """
        if self._verified:
            return
        size = self.collection_size()
        if size is None:
            self.provision()
            return
        if size != self.dimensions:
            raise DimensionMismatchError(size, self.dimensions, f"collection '{self.collection}'")
        self._ensure_index()
        self._verified = True

    def delete_collection(self) -> bool:
        """Drop the whole collection. Returns False if it did not exist."""
        self._verified = False
        try:
            return bool(self._call(lambda: self.client.delete_collection(self.collection)))
        except CollectionMissingError:
            return False

    # === Points ===

    def upsert(self, points: list[PointStruct]) -> None:
        """Write points and wait for the write to be applied.

        A missing collection is created and the write retried once.

        Raises:
            CollectionMissingError: If the write still fails after provisioning
            DimensionMismatchError: If a vector has the wrong size
        """
        if not points:
            return
        for point in points:
            size = len(point.vector)  # type: ignore[arg-type]
            if size != self.dimensions:
                raise DimensionMismatchError(self.dimensions, size, f"point {point.id}")

        self.verify()
        try:
            self._upsert(points)
        except CollectionMissingError:
            logger.warning(
                f"Vector collection {self.collection} disappeared; provisioning and retrying once"
            )
            self._verified = False
            self.provision()
            try:
                self._upsert(points)
            except CollectionMissingError as e:
                raise CollectionMissingError(
                    self.collection, "still missing after provisioning"
                ) from e

    def _upsert(self, points: list[PointStruct]) -> None:
        result = self._call(
            lambda: self.client.upsert(collection_name=self.collection, points=points, wait=True)
        )
        if result.status != UpdateStatus.COMPLETED:
            raise SchemaGraphError(
                f"Upsert into {self.collection} was not acknowledged ({result.status}). Retry the sync.",
                {"collection": self.collection},
            )

    def search(self, vector: list[float], connection_id: str, limit: int = 5) -> list[VectorHit]:
        """Nearest documentation points of one connection.

        Raises:
            CollectionMissingError: If the collection does not exist
            DimensionMismatchError: If ``vector`` does not fit the collection
        """
        size = self.collection_size()
        if size is None:
            raise CollectionMissingError(self.collection)
        if len(vector) != size:
            raise DimensionMismatchError(size, len(vector), f"search on '{self.collection}'")

        response = self._call(
            lambda: self.client.query_points(
                collection_name=self.collection,
                query=vector,
                query_filter=self.connection_filter(connection_id),
                limit=limit,
                with_payload=True,
            )
        )
        hits = []
        for point in response.points:
            payload: dict[str, Any] = point.payload or {}
            hits.append(
                VectorHit(
                    point_id=str(point.id),
                    score=float(point.score),
                    connection_id=str(payload.get(CONNECTION_KEY, "")),
                    entity_name=str(payload.get("entity_name", "")),
                    content=str(payload.get("content", "")),
                    type=str(payload.get("type", "documentation")),
                )
            )
        return hits

    def count(self, connection_id: str | None = None) -> int:
        """Number of points, optionally restricted to one connection."""
        count_filter = self.connection_filter(connection_id) if connection_id else None
        result = self._call(
            lambda: self.client.count(
                collection_name=self.collection, count_filter=count_filter, exact=True
            )
        )
        return result.count

    @staticmethod
    def connection_filter(connection_id: str) -> Filter:
        return Filter(must=[FieldCondition(key=CONNECTION_KEY, match=MatchValue(value=connection_id))])

    def _call(self, fn: Callable[[], T]) -> T:
        """Run a client call, mapping not-found and transport timeouts."""
        try:
            return fn()
        except ResponseHandlingException as e:
            raise ExternalTimeoutError("Vector store", self._timeout, str(e)) from e
        except (UnexpectedResponse, ValueError) as e:
            if is_not_found(e):
                raise CollectionMissingError(self.collection) from e
            raise
