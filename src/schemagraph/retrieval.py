"""Hybrid retrieval: vector search plus one-hop graph expansion.

Vector search finds the documentation closest to the question; the graph
then adds every foreign key touching those entities, including joins the
documentation never spells out. Both are scoped to a single connection.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from schemagraph.core.types import (
    INSUFFICIENT_CONTEXT,
    ChatAnswer,
    ChatTurn,
    GraphRelation,
    PipelinePolicy,
    VectorHit,
)
from schemagraph.exceptions import (
    ConnectionIsolationError,
    DimensionMismatchError,
    NoRelevantContextError,
)

if TYPE_CHECKING:
    from schemagraph.embeddings.provider import EmbeddingProvider
    from schemagraph.graph.analytics import StructuralAnalytics
    from schemagraph.graph.store import GraphStore
    from schemagraph.llm.provider import LLMProvider
    from schemagraph.vectors import VectorStore

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = f"""You are a database intelligence assistant.

Answer only from the schema context below. Do not hallucinate: never mention a
table, column or relationship that is not in the context.
If the context does not contain enough information to answer, reply with
exactly {INSUFFICIENT_CONTEXT} and nothing else."""

INSUFFICIENT_ANSWER = (
    "The indexed schema documentation does not contain enough information to answer "
    "this question. Try rephrasing it or re-run the embedding sync after updating docs."
)

BLOCK_SEPARATOR = "\n\n---\n\n"


@dataclass
class RetrievedContext:
    """Vector hits and graph relations gathered for one question."""

    connection_id: str
    hits: list[VectorHit] = field(default_factory=list)
    relations: list[GraphRelation] = field(default_factory=list)

    @property
    def entities(self) -> list[str]:
        """Distinct entity names of the hits, best match first."""
        return list(dict.fromkeys(hit.entity_name for hit in self.hits))

    @property
    def rendered_relations(self) -> list[str]:
        return list(dict.fromkeys(rel.render() for rel in self.relations))

    def render(self, max_chars: int) -> str:
        """Relations first, then documentation blocks, cut at ``max_chars``."""
        parts = []
        if self.rendered_relations:
            lines = "\n".join(f"- {r}" for r in self.rendered_relations)
            parts.append(f"GRAPH RELATIONSHIPS:\n{lines}")
        header = "VECTOR DOCUMENTATION CONTEXT:\n"
        text = "\n\n".join(parts)
        budget = max_chars - len(text) - len(header) - 2
        blocks: list[str] = []
        for hit in self.hits:
            cost = len(hit.content) + (len(BLOCK_SEPARATOR) if blocks else 0)
            if cost > budget:
                if not blocks and budget > 0:
                    blocks.append(hit.content[:budget])
                break
            blocks.append(hit.content)
            budget -= cost
        if blocks:
            parts.append(header + BLOCK_SEPARATOR.join(blocks))
        return "\n\n".join(parts)[:max_chars]


class HybridRetriever:
    """Answers questions about one connection's schema."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        vectors: VectorStore,
        graph: GraphStore,
        llm: LLMProvider | None = None,
        policy: PipelinePolicy | None = None,
        analytics: StructuralAnalytics | None = None,
    ) -> None:
        self._provider = provider
        self._vectors = vectors
        self._graph = graph
        self._llm = llm
        self._policy = policy or PipelinePolicy()
        self._analytics = analytics

    def retrieve(self, query: str, connection_id: str) -> RetrievedContext:
        """Vector search and graph expansion, without calling the chat model.

        Raises:
            DimensionMismatchError: If the query vector does not fit the index
            CollectionMissingError: If the collection does not exist
            NoRelevantContextError: If nothing matched for the connection
            ConnectionIsolationError: If a hit belongs to another connection
        """
        vector = self._provider.embed(query)
        if len(vector) != self._provider.dimensions:
            raise DimensionMismatchError(self._provider.dimensions, len(vector), "query embedding")

        hits = self._vectors.search(vector, connection_id, limit=self._policy.top_k)
        for hit in hits:
            if hit.connection_id != connection_id:
                raise ConnectionIsolationError(connection_id, hit.connection_id, "vector search")
        if not hits:
            raise NoRelevantContextError(connection_id, query)

        context = RetrievedContext(connection_id=connection_id, hits=hits)
        logger.info(
            f"Vector search for {connection_id} matched entities: {', '.join(context.entities)}"
        )
        context.relations = self._graph.fetch_relations(connection_id, context.entities)
        logger.info(f"Expanded {len(context.relations)} relations from the graph")
        return context

    def ask(
        self,
        query: str,
        connection_id: str,
        history: Sequence[ChatTurn | dict[str, Any]] | None = None,
    ) -> ChatAnswer:
        """Answer ``query`` from retrieved context.

        Args:
            query: Natural-language question
            connection_id: Connection to answer about
            history: Earlier turns, oldest first; only the last few are sent

        Returns:
            ChatAnswer, with status "insufficient_context" if the model could not answer
        """
        if self._llm is None:
            raise ValueError("A chat model is required to answer questions. Pass llm=...")

        context = self.retrieve(query, connection_id)
        turns = [ChatTurn.model_validate(t) for t in (history or [])]
        limit = self._policy.history_turns
        turns = turns[-limit:] if limit else []

        reply = self._llm.generate(
            SYSTEM_INSTRUCTION,
            context.render(self._policy.max_context_chars),
            turns,
            query,
        )

        impact = None
        if self._analytics is not None:
            impact = self._analytics.impact_analysis(connection_id, context.entities)

        if reply.strip().startswith(INSUFFICIENT_CONTEXT):
            logger.info(f"Chat model reported insufficient context for {connection_id}")
            status, answer = "insufficient_context", INSUFFICIENT_ANSWER
        else:
            status, answer = "answered", reply.strip()

        return ChatAnswer(
            status=status,  # type: ignore[arg-type]
            answer=answer,
            entities=context.entities,
            relations=context.rendered_relations,
            hits=context.hits,
            impact=impact,
        )
