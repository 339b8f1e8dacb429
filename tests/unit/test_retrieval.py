"""Tests for hybrid retrieval and answer generation."""

import pytest

from schemagraph import SchemaGraph
from schemagraph.core.types import INSUFFICIENT_CONTEXT, GraphRelation, TableSpec, VectorHit
from schemagraph.exceptions import (
    CollectionMissingError,
    DimensionMismatchError,
    NoRelevantContextError,
)
from schemagraph.retrieval import INSUFFICIENT_ANSWER, HybridRetriever, RetrievedContext
from tests.fakes import KeywordEmbedder, ScriptedLLM


@pytest.fixture
def indexed(sg: SchemaGraph, shop_tables: list[TableSpec], shop_docs: dict[str, str]) -> SchemaGraph:
    """Shop schema synced, graphed and embedded."""
    sg.sync_metadata("shop", shop_tables)
    sg.build_graph("shop")
    sg.load_documentation("shop", shop_docs)
    sg.embed_documentation("shop")
    return sg


def _hit(entity: str, content: str) -> VectorHit:
    return VectorHit(point_id=entity, score=1.0, connection_id="c1", entity_name=entity, content=content)


class TestRetrieve:
    """Test vector search plus graph expansion."""

    def test_graph_adds_undocumented_join(self, indexed: SchemaGraph) -> None:
        """Test that the FK between orders and customers is found from the graph."""
        context = indexed.retrieve("Which customer placed an order?", "shop")

        assert "orders" in context.entities
        assert (
            "orders.customer_id references customers.id" in context.rendered_relations
        )

    def test_relations_come_from_graph_only(self, indexed: SchemaGraph) -> None:
        """Test that every rendered relation exists in the graph."""
        context = indexed.retrieve("Which products are in an order?", "shop")
        graph_relations = {
            r.render()
            for r in indexed.graph_store.fetch_relations("shop", indexed.list_entities("shop"))
        }

        assert context.rendered_relations
        assert set(context.rendered_relations) <= graph_relations

    def test_other_connection_never_returned(
        self, indexed: SchemaGraph, shop_tables: list[TableSpec]
    ) -> None:
        """Test that hits and relations stay inside the asked connection."""
        indexed.sync_metadata("other", shop_tables[:2])
        indexed.build_graph("other")
        indexed.load_documentation("other", {"orders": "Orders of the other customer base."})
        indexed.embed_documentation("other")

        context = indexed.retrieve("customer order", "other")

        assert {h.connection_id for h in context.hits} == {"other"}
        assert context.entities == ["orders"]

    def test_no_hits(self, indexed: SchemaGraph) -> None:
        """Test a connection with nothing embedded."""
        with pytest.raises(NoRelevantContextError) as exc_info:
            indexed.retrieve("anything", "unknown")
        assert exc_info.value.connection_id == "unknown"

    def test_missing_collection(self, sg: SchemaGraph) -> None:
        """Test asking before anything was embedded."""
        with pytest.raises(CollectionMissingError):
            sg.retrieve("orders?", "shop")

    def test_query_dimension_mismatch(self, indexed: SchemaGraph) -> None:
        """Test a query embedded with another model."""

        class WrongSize(KeywordEmbedder):
            @property
            def dimensions(self) -> int:
                return 3

        retriever = HybridRetriever(WrongSize(), indexed.vector_store, indexed.graph_store)
        with pytest.raises(DimensionMismatchError):
            retriever.retrieve("orders", "shop")


class TestAsk:
    """Test answer generation."""

    def test_answer(self, indexed: SchemaGraph, llm: ScriptedLLM) -> None:
        """Test an answered question carries its context."""
        answer = indexed.ask("How are orders linked to customers?", "shop")

        assert answer.status == "answered"
        assert answer.answer == llm.reply
        assert "orders.customer_id references customers.id" in answer.relations
        assert answer.impact is not None
        context = llm.calls[0]["context"]
        assert "GRAPH RELATIONSHIPS:" in context
        assert "VECTOR DOCUMENTATION CONTEXT:" in context

    def test_insufficient_context(self, indexed: SchemaGraph, llm: ScriptedLLM) -> None:
        """Test that the sentinel reply becomes an insufficient_context answer."""
        llm.reply = INSUFFICIENT_CONTEXT

        answer = indexed.ask("What is the weather?", "shop")

        assert answer.status == "insufficient_context"
        assert answer.answer == INSUFFICIENT_ANSWER

    def test_history_trimmed(self, indexed: SchemaGraph, llm: ScriptedLLM) -> None:
        """Test that only the most recent turns are sent."""
        history = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"}
            for i in range(8)
        ]

        indexed.ask("And the products?", "shop", history)

        sent = llm.calls[0]["history"]
        assert [t.content for t in sent] == [f"turn {i}" for i in range(3, 8)]

    def test_ask_without_llm(self, indexed: SchemaGraph) -> None:
        """Test that a retriever without a chat model refuses to answer."""
        retriever = indexed.retriever(with_llm=False)
        with pytest.raises(ValueError):
            retriever.ask("orders?", "shop")


class TestRetrievedContext:
    """Test rendering of the prompt context."""

    def test_render_order(self) -> None:
        """Test relations come before documentation."""
        context = RetrievedContext(
            connection_id="c1",
            hits=[_hit("orders", "Orders doc")],
            relations=[GraphRelation(
                source_entity="orders",
                source_field="customer_id",
                target_entity="customers",
                target_field="id",
            )],
        )

        text = context.render(2000)

        assert text.index("GRAPH RELATIONSHIPS:") < text.index("VECTOR DOCUMENTATION CONTEXT:")
        assert "- orders.customer_id references customers.id" in text

    def test_render_bounded(self) -> None:
        """Test that the rendered context never exceeds its budget."""
        context = RetrievedContext(
            connection_id="c1",
            hits=[_hit(f"t{i}", "x" * 400) for i in range(10)],
        )

        text = context.render(1000)

        assert len(text) <= 1000
        assert text.count("x" * 400) == 2

    def test_entities_deduplicated(self) -> None:
        """Test that entities keep hit order without repeats."""
        context = RetrievedContext(
            connection_id="c1",
            hits=[_hit("b", ""), _hit("a", ""), _hit("b", "")],
        )
        assert context.entities == ["b", "a"]
