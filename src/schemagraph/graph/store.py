"""Graph store interface and the Neo4j implementation.

The graph is derived state: every node carries the ``connectionId`` of the
connection it was built from, and a sync for one connection only ever
touches nodes with that tag.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from neo4j import GraphDatabase, unit_of_work

from schemagraph.core.types import ColumnContext, EntityGraph, GraphRelation, TableContext
from schemagraph.exceptions import ExternalTimeoutError, GraphStoreError

if TYPE_CHECKING:
    from neo4j import Driver, ManagedTransaction

    from schemagraph.graph.synchronizer import GraphPlan

logger = logging.getLogger(__name__)

T = TypeVar("T")

GRAPH_COUNT_KEYS = ("entities", "fields", "has_field", "references_field", "entity_references")


class GraphStore(ABC):
    """Interface for the property graph holding Entity and Field nodes."""

    @abstractmethod
    def replace_connection_graph(self, plan: GraphPlan) -> None:
        """Atomically replace the graph of one connection with ``plan``.

        Scoped delete and all merges run in a single transaction. On any
        failure nothing is written.
        """
        ...

    @abstractmethod
    def fetch_relations(self, connection_id: str, entity_names: list[str]) -> list[GraphRelation]:
        """Foreign key edges touching any of ``entity_names``, in either direction."""
        ...

    @abstractmethod
    def fetch_entity_graph(self, connection_id: str) -> EntityGraph:
        """All entity names, HAS_FIELD counts and REFERENCES pairs for one connection."""
        ...

    @abstractmethod
    def entity_schema(self, connection_id: str, entity_name: str) -> TableContext | None:
        """Columns of one entity with their key flags, or None if not in the graph."""
        ...

    @abstractmethod
    def count_graph(self, connection_id: str) -> dict[str, int]:
        """Node and edge counts for one connection."""
        ...

    def ensure_schema(self) -> None:  # noqa: B027
        """Create constraints and indexes. Optional for stores without a schema."""

    def close(self) -> None:  # noqa: B027
        """Release client resources."""


@dataclass(slots=True)
class Neo4jConfig:
    uri: str
    user: str
    password: str
    database: str = "neo4j"
    # Deadline for a single transaction, seconds
    timeout: float = 30.0
    connection_timeout: float = 10.0


_SCHEMA_STATEMENTS = [
    "CREATE CONSTRAINT entity_id IF NOT EXISTS FOR (n:Entity) REQUIRE n.id IS UNIQUE",
    "CREATE CONSTRAINT field_id IF NOT EXISTS FOR (n:Field) REQUIRE n.id IS UNIQUE",
    "CREATE INDEX entity_connection IF NOT EXISTS FOR (n:Entity) ON (n.connectionId)",
    "CREATE INDEX field_connection IF NOT EXISTS FOR (n:Field) ON (n.connectionId)",
    "CREATE INDEX entity_name IF NOT EXISTS FOR (n:Entity) ON (n.name)",
]

DELETE_CONNECTION = """
MATCH (n)
WHERE (n:Entity OR n:Field) AND n.connectionId = $connectionId
DETACH DELETE n
"""

MERGE_ENTITIES = """
UNWIND $rows AS row
MERGE (e:Entity {id: row.id})
SET e.name = row.name, e.connectionId = row.connectionId
"""

MERGE_FIELDS = """
UNWIND $rows AS row
MATCH (e:Entity {id: row.entityId, connectionId: row.connectionId})
MERGE (f:Field {id: row.id})
SET f.name = row.name,
    f.type = row.type,
    f.isNullable = row.isNullable,
    f.isPrimaryKey = row.isPrimaryKey,
    f.isForeignKey = row.isForeignKey,
    f.connectionId = row.connectionId
MERGE (e)-[:HAS_FIELD]->(f)
"""

MERGE_FIELD_REFERENCES = """
UNWIND $rows AS row
MATCH (s:Field {id: row.source, connectionId: $connectionId})
MATCH (t:Field {id: row.target, connectionId: $connectionId})
MERGE (s)-[:REFERENCES_FIELD]->(t)
"""

MERGE_ENTITY_REFERENCES = """
UNWIND $rows AS row
MATCH (s:Entity {id: row.source, connectionId: $connectionId})
MATCH (t:Entity {id: row.target, connectionId: $connectionId})
MERGE (s)-[:REFERENCES]->(t)
"""

FETCH_RELATIONS = """
MATCH (e:Entity {connectionId: $connectionId})-[:HAS_FIELD]->(f:Field)
      -[:REFERENCES_FIELD]->(fk:Field)<-[:HAS_FIELD]-(ref:Entity {connectionId: $connectionId})
WHERE e.name IN $entities OR ref.name IN $entities
RETURN DISTINCT e.name AS source_entity, f.name AS source_field,
       ref.name AS target_entity, fk.name AS target_field
ORDER BY source_entity, source_field, target_entity, target_field
"""

FETCH_ENTITY_GRAPH = """
MATCH (e:Entity {connectionId: $connectionId})
OPTIONAL MATCH (e)-[:REFERENCES]->(t:Entity {connectionId: $connectionId})
WITH e, collect(DISTINCT t.name) AS targets
RETURN e.name AS name, targets, size([(e)-[:HAS_FIELD]->(:Field) | 1]) AS fields
ORDER BY name
"""

FETCH_ENTITY_SCHEMA = """
MATCH (e:Entity {connectionId: $connectionId, name: $name})
OPTIONAL MATCH (e)-[:HAS_FIELD]->(f:Field)
OPTIONAL MATCH (f)-[:REFERENCES_FIELD]->(fk:Field)<-[:HAS_FIELD]-(ref:Entity)
RETURN e.name AS table_name, f.name AS name, f.type AS type,
       f.isNullable AS is_nullable, f.isPrimaryKey AS is_primary_key,
       f.isForeignKey AS is_foreign_key, ref.name AS ref_table, fk.name AS ref_column
ORDER BY name
"""

COUNT_GRAPH = """
CALL { MATCH (e:Entity {connectionId: $connectionId}) RETURN count(e) AS entities }
CALL { MATCH (f:Field {connectionId: $connectionId}) RETURN count(f) AS fields }
CALL {
  MATCH (:Entity {connectionId: $connectionId})-[r:HAS_FIELD]->() RETURN count(r) AS has_field
}
CALL {
  MATCH (:Field {connectionId: $connectionId})-[r:REFERENCES_FIELD]->()
  RETURN count(r) AS references_field
}
CALL {
  MATCH (:Entity {connectionId: $connectionId})-[r:REFERENCES]->()
  RETURN count(r) AS entity_references
}
RETURN entities, fields, has_field, references_field, entity_references
"""


class Neo4jGraphStore(GraphStore):
    """Neo4j-backed graph store.

    The driver is long-lived and thread-safe; sessions are opened per call
    and closed on every exit path. Writes use UNWIND + MERGE so re-running a
    plan never creates parallel nodes or edges.

    Example:
        >>> store = Neo4jGraphStore(Neo4jConfig("bolt://localhost:7687", "neo4j", "secret"))
        >>> store.ensure_schema()
        >>> store.fetch_relations("conn-1", ["orders"])
    """

    def __init__(self, cfg: Neo4jConfig, driver: Driver | None = None) -> None:
        """Initialize the store.

        Args:
            cfg: Connection settings and deadlines
            driver: Pre-built driver (tests inject a mock here)
        """
        self.cfg = cfg
        if driver is None:
            driver = GraphDatabase.driver(
                cfg.uri,
                auth=(cfg.user, cfg.password),
                connection_timeout=cfg.connection_timeout,
            )
        self._driver = driver

    def close(self) -> None:
        self._driver.close()

    def ensure_schema(self) -> None:
        # Schema changes cannot share a transaction with data writes
        with self._driver.session(database=self.cfg.database) as session:
            try:
                for stmt in _SCHEMA_STATEMENTS:
                    session.run(stmt).consume()
            except Exception as e:
                raise self._translate(e, "ensure_schema") from e

    # === Writes ===

    def replace_connection_graph(self, plan: GraphPlan) -> None:
        params = {"connectionId": plan.connection_id}

        def work(tx: ManagedTransaction) -> None:
            tx.run(DELETE_CONNECTION, **params)
            if plan.entities:
                tx.run(MERGE_ENTITIES, rows=plan.entities, **params)
            if plan.fields:
                tx.run(MERGE_FIELDS, rows=plan.fields, **params)
            if plan.field_references:
                tx.run(MERGE_FIELD_REFERENCES, rows=plan.field_references, **params)
            if plan.entity_references:
                tx.run(MERGE_ENTITY_REFERENCES, rows=plan.entity_references, **params)

        self._write(work, f"replace graph for connection {plan.connection_id}")

    # === Reads ===

    def fetch_relations(self, connection_id: str, entity_names: list[str]) -> list[GraphRelation]:
        if not entity_names:
            return []
        rows = self._read(
            FETCH_RELATIONS, "fetch_relations", connectionId=connection_id, entities=entity_names
        )
        return [GraphRelation(**row) for row in rows]

    def fetch_entity_graph(self, connection_id: str) -> EntityGraph:
        rows = self._read(FETCH_ENTITY_GRAPH, "fetch_entity_graph", connectionId=connection_id)
        references = [(row["name"], target) for row in rows for target in row["targets"] if target]
        return EntityGraph(
            connection_id=connection_id,
            entities=[row["name"] for row in rows],
            references=sorted(set(references)),
            field_counts={row["name"]: int(row["fields"]) for row in rows},
        )

    def entity_schema(self, connection_id: str, entity_name: str) -> TableContext | None:
        rows = self._read(
            FETCH_ENTITY_SCHEMA, "entity_schema", connectionId=connection_id, name=entity_name
        )
        if not rows:
            return None
        columns = []
        for row in rows:
            if row["name"] is None:
                continue
            references = None
            if row["ref_table"] and row["ref_column"]:
                references = f"{row['ref_table']}.{row['ref_column']}"
            columns.append(
                ColumnContext(
                    name=row["name"],
                    type=row["type"],
                    is_nullable=row["is_nullable"],
                    is_primary_key=bool(row["is_primary_key"]),
                    is_foreign_key=bool(row["is_foreign_key"]),
                    references=references,
                )
            )
        return TableContext(table_name=rows[0]["table_name"], columns=columns)

    def count_graph(self, connection_id: str) -> dict[str, int]:
        rows = self._read(COUNT_GRAPH, "count_graph", connectionId=connection_id)
        if not rows:
            return dict.fromkeys(GRAPH_COUNT_KEYS, 0)
        return {key: int(rows[0][key]) for key in GRAPH_COUNT_KEYS}

    # === Session helpers ===

    def _write(self, work: Callable[[ManagedTransaction], T], what: str) -> T:
        with self._driver.session(database=self.cfg.database) as session:
            try:
                return session.execute_write(unit_of_work(timeout=self.cfg.timeout)(work))
            except Exception as e:
                raise self._translate(e, what) from e

    def _read(self, query: str, what: str, **params: Any) -> list[dict[str, Any]]:
        def work(tx: ManagedTransaction) -> list[dict[str, Any]]:
            return [record.data() for record in tx.run(query, **params)]

        with self._driver.session(database=self.cfg.database) as session:
            try:
                return session.execute_read(unit_of_work(timeout=self.cfg.timeout)(work))
            except Exception as e:
                raise self._translate(e, what) from e

    def _translate(self, error: Exception, what: str) -> Exception:
        """Map driver errors onto the SchemaGraph taxonomy."""
        code = getattr(error, "code", None) or ""
        if "TransactionTimedOut" in code or isinstance(error, TimeoutError):
            logger.error(f"Graph store timed out during {what}")
            return ExternalTimeoutError("Graph store", self.cfg.timeout, what)
        logger.error(f"Graph store failed during {what}: {error}")
        return GraphStoreError(
            f"Graph store operation failed ({what}): {error}. "
            "The transaction was rolled back; retry once the graph database is reachable.",
            {"operation": what},
        )
