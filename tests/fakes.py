"""In-memory stand-ins for the graph store and model providers used in tests."""

import copy
from collections.abc import Sequence

from schemagraph.core.types import (
    ChatTurn,
    ColumnContext,
    EntityGraph,
    GraphRelation,
    TableContext,
    TableSpec,
)
from schemagraph.embeddings.provider import EmbeddingProvider
from schemagraph.exceptions import GraphStoreError
from schemagraph.graph.store import GRAPH_COUNT_KEYS, GraphStore
from schemagraph.llm.provider import LLMProvider

VOCABULARY = [
    "customer",
    "order",
    "product",
    "invoice",
    "payment",
    "shipment",
    "employee",
    "department",
]


class KeywordEmbedder(EmbeddingProvider):
    """Deterministic embedder: one dimension per vocabulary word plus a bias.

    Texts that mention the same words end up close to each other, which is
    enough to make vector search results predictable in tests.
    """

    def __init__(self, vocabulary: Sequence[str] = VOCABULARY, fail_for: Sequence[str] = ()):
        self.vocabulary = list(vocabulary)
        self.fail_for = set(fail_for)
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        for marker in self.fail_for:
            if marker in text:
                raise RuntimeError(f"provider refused '{marker}'")
        lowered = text.lower()
        return [float(lowered.count(word)) for word in self.vocabulary] + [0.1]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(t) for t in texts]

    @property
    def dimensions(self) -> int:
        return len(self.vocabulary) + 1

    @property
    def model_name(self) -> str:
        return "keyword-test"


class ScriptedLLM(LLMProvider):
    """Chat model that returns a canned reply and records what it was sent."""

    def __init__(self, reply: str = "Orders reference customers through customer_id.") -> None:
        self.reply = reply
        self.calls: list[dict[str, object]] = []

    @property
    def model_name(self) -> str:
        return "scripted"

    def generate(
        self,
        system_instruction: str,
        context: str,
        history: Sequence[ChatTurn],
        query: str,
    ) -> str:
        self.calls.append(
            {
                "system_instruction": system_instruction,
                "context": context,
                "history": list(history),
                "query": query,
            }
        )
        return self.reply


class InMemoryGraphStore(GraphStore):
    """GraphStore with the same merge and scoping rules as the Neo4j store.

    ``fail_after`` makes ``replace_connection_graph`` raise after that many
    write steps, to exercise rollback.
    """

    def __init__(self) -> None:
        self.entities: dict[str, dict[str, object]] = {}
        self.fields: dict[str, dict[str, object]] = {}
        self.has_field: set[tuple[str, str]] = set()
        self.references_field: set[tuple[str, str]] = set()
        self.references: set[tuple[str, str]] = set()
        self.fail_after: int | None = None
        self.writes = 0
        self.closed = False

    def _snapshot(self) -> tuple:
        return copy.deepcopy(
            (self.entities, self.fields, self.has_field, self.references_field, self.references)
        )

    def _restore(self, state: tuple) -> None:
        (
            self.entities,
            self.fields,
            self.has_field,
            self.references_field,
            self.references,
        ) = state

    def _step(self) -> None:
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise GraphStoreError("injected failure", {"operation": "replace"})
        self.writes += 1

    def replace_connection_graph(self, plan) -> None:  # type: ignore[no-untyped-def]
        state = self._snapshot()
        self.writes = 0
        cid = plan.connection_id
        try:
            self._step()
            doomed = {k for k, v in self.entities.items() if v["connectionId"] == cid}
            doomed |= {k for k, v in self.fields.items() if v["connectionId"] == cid}
            self.entities = {k: v for k, v in self.entities.items() if k not in doomed}
            self.fields = {k: v for k, v in self.fields.items() if k not in doomed}
            for edges in ("has_field", "references_field", "references"):
                kept = {e for e in getattr(self, edges) if not (set(e) & doomed)}
                setattr(self, edges, kept)

            for row in plan.entities:
                self._step()
                self.entities[row["id"]] = dict(row)
            for row in plan.fields:
                self._step()
                owner = self.entities.get(row["entityId"])
                if owner is None or owner["connectionId"] != row["connectionId"]:
                    continue
                self.fields[row["id"]] = dict(row)
                self.has_field.add((row["entityId"], row["id"]))
            for row in plan.field_references:
                self._step()
                s, t = self.fields.get(row["source"]), self.fields.get(row["target"])
                if s and t and s["connectionId"] == cid and t["connectionId"] == cid:
                    self.references_field.add((row["source"], row["target"]))
            for row in plan.entity_references:
                self._step()
                s, t = self.entities.get(row["source"]), self.entities.get(row["target"])
                if s and t and s["connectionId"] == cid and t["connectionId"] == cid:
                    self.references.add((row["source"], row["target"]))
        except Exception:
            self._restore(state)
            raise

    def _entity_of_field(self, field_id: str) -> dict[str, object]:
        entity_id = next(e for e, f in self.has_field if f == field_id)
        return self.entities[entity_id]

    def fetch_relations(self, connection_id: str, entity_names: list[str]) -> list[GraphRelation]:
        wanted = set(entity_names)
        relations = set()
        for source_id, target_id in self.references_field:
            source, target = self.fields[source_id], self.fields[target_id]
            if source["connectionId"] != connection_id or target["connectionId"] != connection_id:
                continue
            source_entity = self._entity_of_field(source_id)["name"]
            target_entity = self._entity_of_field(target_id)["name"]
            if source_entity in wanted or target_entity in wanted:
                relations.add((source_entity, source["name"], target_entity, target["name"]))
        return [
            GraphRelation(
                source_entity=r[0], source_field=r[1], target_entity=r[2], target_field=r[3]
            )
            for r in sorted(relations)
        ]

    def fetch_entity_graph(self, connection_id: str) -> EntityGraph:
        names = sorted(
            str(e["name"]) for e in self.entities.values() if e["connectionId"] == connection_id
        )
        pairs = sorted(
            {
                (str(self.entities[s]["name"]), str(self.entities[t]["name"]))
                for s, t in self.references
                if self.entities[s]["connectionId"] == connection_id
            }
        )
        field_counts = dict.fromkeys(names, 0)
        for entity_id, _ in self.has_field:
            entity = self.entities.get(entity_id)
            if entity and entity["connectionId"] == connection_id:
                field_counts[str(entity["name"])] += 1
        return EntityGraph(
            connection_id=connection_id,
            entities=names,
            references=pairs,
            field_counts=field_counts,
        )

    def entity_schema(self, connection_id: str, entity_name: str) -> TableContext | None:
        entity_id = next(
            (
                k
                for k, v in self.entities.items()
                if v["connectionId"] == connection_id and v["name"] == entity_name
            ),
            None,
        )
        if entity_id is None:
            return None
        columns = []
        for owner, field_id in sorted(self.has_field):
            if owner != entity_id:
                continue
            f = self.fields[field_id]
            target = next((t for s, t in self.references_field if s == field_id), None)
            references = None
            if target:
                references = f"{self._entity_of_field(target)['name']}.{self.fields[target]['name']}"
            columns.append(
                ColumnContext(
                    name=str(f["name"]),
                    type=str(f["type"]),
                    is_nullable=bool(f["isNullable"]),
                    is_primary_key=bool(f["isPrimaryKey"]),
                    is_foreign_key=bool(f["isForeignKey"]),
                    references=references,
                )
            )
        return TableContext(
            table_name=entity_name, columns=sorted(columns, key=lambda c: c.name)
        )

    def count_graph(self, connection_id: str) -> dict[str, int]:
        entity_ids = {k for k, v in self.entities.items() if v["connectionId"] == connection_id}
        field_ids = {k for k, v in self.fields.items() if v["connectionId"] == connection_id}
        counts = (
            len(entity_ids),
            len(field_ids),
            sum(1 for e, _ in self.has_field if e in entity_ids),
            sum(1 for s, _ in self.references_field if s in field_ids),
            sum(1 for s, _ in self.references if s in entity_ids),
        )
        return dict(zip(GRAPH_COUNT_KEYS, counts, strict=True))

    def close(self) -> None:
        self.closed = True


SHOP_TABLES = [
    TableSpec.model_validate(t)
    for t in [
        {
            "name": "customers",
            "columns": [
                {"name": "id", "type": "uuid", "primary_key": True, "nullable": False},
                {"name": "email", "type": "text"},
            ],
        },
        {
            "name": "orders",
            "columns": [
                {"name": "id", "type": "uuid", "primary_key": True, "nullable": False},
                {
                    "name": "customer_id",
                    "type": "uuid",
                    "references_table": "customers",
                    "references_column": "id",
                },
                {"name": "total", "type": "numeric"},
            ],
        },
        {
            "name": "products",
            "columns": [
                {"name": "id", "type": "uuid", "primary_key": True, "nullable": False},
                {"name": "title", "type": "text"},
            ],
        },
        {
            "name": "order_items",
            "columns": [
                {"name": "id", "type": "uuid", "primary_key": True, "nullable": False},
                {
                    "name": "order_id",
                    "type": "uuid",
                    "references_table": "orders",
                    "references_column": "id",
                },
                {
                    "name": "product_id",
                    "type": "uuid",
                    "references_table": "products",
                    "references_column": "id",
                },
            ],
        },
        {
            "name": "audit_log",
            "columns": [{"name": "id", "type": "bigint", "primary_key": True}],
        },
    ]
]

SHOP_DOCS = {
    "customers": "Stores every customer account with a unique email.",
    "orders": "Each order is placed by a customer and has a total amount.",
    "products": "Catalog of product titles available for sale.",
    "order_items": "Line items linking an order to each product it contains.",
    "audit_log": "Append-only log of administrative changes.",
}

