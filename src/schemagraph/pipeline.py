"""Documentation embedding pipeline.

Turns each entity's documentation into one vector point whose id is a
stable hash of (connection, entity), so re-embedding overwrites the point
instead of adding another.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING
from uuid import UUID, uuid5

from qdrant_client.models import PointStruct
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from schemagraph.core.types import (
    DocChunkInfo,
    EmbeddingFailure,
    EmbeddingStatus,
    EmbeddingSyncResult,
    PipelinePolicy,
)
from schemagraph.exceptions import (
    ConnectionIsolationError,
    DimensionMismatchError,
    NoDocumentationError,
)

if TYPE_CHECKING:
    from schemagraph.embeddings.provider import EmbeddingProvider
    from schemagraph.ledger.store import MetadataLedger
    from schemagraph.vectors import VectorStore

logger = logging.getLogger(__name__)

POINT_NAMESPACE = UUID("0ea2b2f2-67a0-4d67-95f0-9b8a99c9605c")
DOCUMENTATION_TYPE = "documentation"
UPSERT_BATCH_SIZE = 100


def point_id_for(connection_id: str, entity_name: str) -> str:
    """Deterministic vector point id for one entity of one connection."""
    return str(uuid5(POINT_NAMESPACE, f"{connection_id}-{entity_name}"))


def document_text(entity_name: str, markdown: str) -> str:
    """The text that is embedded and stored as the point's content."""
    return f"Table: {entity_name}\n\n{markdown}"


def _is_retryable(error: BaseException) -> bool:
    return bool(getattr(error, "retryable", False))


class EmbeddingPipeline:
    """Embeds a connection's documentation chunks into the vector store.

    Provider calls run on a bounded thread pool with per-item retries; an
    entity that still fails is reported in the result and does not stop the
    others. Points are written with ``wait=True`` and the ledger records
    their ids only after the write was acknowledged.
    """

    def __init__(
        self,
        ledger: MetadataLedger,
        provider: EmbeddingProvider,
        vectors: VectorStore,
        policy: PipelinePolicy | None = None,
    ) -> None:
        self._ledger = ledger
        self._provider = provider
        self._vectors = vectors
        self._policy = policy or PipelinePolicy()

    def embed_connection(
        self, connection_id: str, entity_names: Iterable[str] | None = None
    ) -> EmbeddingSyncResult:
        """Embed documentation for a connection.

        Args:
            connection_id: Connection whose documentation to embed
            entity_names: Restrict to these entities (default: all)

        Returns:
            EmbeddingSyncResult listing succeeded and failed entities

        Raises:
            NoDocumentationError: If there is nothing to embed
            DimensionMismatchError: If provider and collection sizes differ
            CollectionMissingError: If the collection could not be provisioned
        """
        chunks = self._ledger.list_doc_chunks(connection_id)
        if entity_names is not None:
            wanted = set(entity_names)
            chunks = [c for c in chunks if c.entity_name in wanted]
        if not chunks:
            raise NoDocumentationError(connection_id)
        for chunk in chunks:
            if chunk.connection_id != connection_id:
                raise ConnectionIsolationError(
                    connection_id, chunk.connection_id, f"embedding of '{chunk.entity_name}'"
                )

        if self._provider.dimensions != self._vectors.dimensions:
            raise DimensionMismatchError(
                self._vectors.dimensions, self._provider.dimensions, "embedding provider"
            )
        self._vectors.verify()

        logger.info(
            f"Embedding {len(chunks)} documentation chunks for connection {connection_id} "
            f"with {self._provider.model_name}"
        )
        result = EmbeddingSyncResult(connection_id=connection_id, collection=self._vectors.collection)
        points: list[PointStruct] = []

        with ThreadPoolExecutor(max_workers=self._policy.max_workers) as pool:
            futures = [(chunk, pool.submit(self._embed_chunk, chunk)) for chunk in chunks]
            for chunk, future in futures:
                try:
                    points.append(future.result())
                except DimensionMismatchError:
                    raise
                except Exception as e:
                    logger.warning(f"Embedding failed for {chunk.entity_name}: {e}")
                    result.failed.append(
                        EmbeddingFailure(
                            entity_name=chunk.entity_name,
                            error=str(e),
                            retryable=_is_retryable(e),
                        )
                    )

        for start in range(0, len(points), UPSERT_BATCH_SIZE):
            batch = points[start : start + UPSERT_BATCH_SIZE]
            self._vectors.upsert(batch)
            acknowledged = {str(p.payload["entity_name"]): str(p.id) for p in batch}  # type: ignore[index]
            self._ledger.record_embedding_ids(connection_id, acknowledged)
            result.succeeded.extend(acknowledged)

        logger.info(
            f"Embedded {len(result.succeeded)} of {len(chunks)} chunks for connection "
            f"{connection_id} ({len(result.failed)} failed)"
        )
        return result

    def retry_policy(self) -> Retrying:
        """Exponential backoff with jitter for retryable provider errors."""
        return Retrying(
            stop=stop_after_attempt(self._policy.max_retries),
            wait=wait_exponential_jitter(
                multiplier=self._policy.backoff_initial, max=self._policy.backoff_max
            ),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )

    def _embed_chunk(self, chunk: DocChunkInfo) -> PointStruct:
        text = document_text(chunk.entity_name, chunk.markdown_content)
        vector = self.retry_policy()(self._provider.embed, text)
        if len(vector) != self._provider.dimensions:
            raise DimensionMismatchError(
                self._provider.dimensions, len(vector), f"embedding of '{chunk.entity_name}'"
            )
        return PointStruct(
            id=point_id_for(chunk.connection_id, chunk.entity_name),
            vector=vector,
            payload={
                "connection_id": chunk.connection_id,
                "entity_name": chunk.entity_name,
                "content": text,
                "type": DOCUMENTATION_TYPE,
            },
        )

    def status(self, connection_id: str) -> EmbeddingStatus:
        return self._ledger.embedding_status(connection_id)

    def provision_collection(self) -> bool:
        """Create the collection and its index (administrative)."""
        return self._vectors.provision()

    def flush_collection(self) -> int:
        """Delete the whole collection and forget every recorded embedding id.

        Returns:
            Number of ledger chunks whose embedding id was cleared
        """
        dropped = self._vectors.delete_collection()
        cleared = self._ledger.clear_embedding_ids()
        logger.info(
            f"Flushed vector collection {self._vectors.collection} "
            f"(existed: {dropped}); cleared {cleared} embedding ids"
        )
        return cleared
