"""Graph synchronizer: rebuilds one connection's property graph from the ledger.

A run is split in two steps:

1. ``build_graph_plan`` turns a ledger snapshot into de-duplicated node and
   edge rows. It is pure and does all validation up front, so isolation
   violations and orphaned relationships are found before any write.
2. ``GraphStore.replace_connection_graph`` applies the plan in a single
   transaction (scoped delete, then merge by id).

Runs for the same connection are serialized with a per-connection lock.
"""

from __future__ import annotations

import logging
import threading
import weakref
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from schemagraph.core.types import GraphSyncResult, LedgerSnapshot, SkippedRelationship
from schemagraph.exceptions import ConnectionIsolationError, NoMetadataSyncedError

if TYPE_CHECKING:
    from schemagraph.graph.store import GraphStore
    from schemagraph.ledger.store import MetadataLedger

logger = logging.getLogger(__name__)


@dataclass
class GraphPlan:
    """Node and edge rows for one connection, ready to be merged."""

    connection_id: str
    entities: list[dict[str, Any]] = field(default_factory=list)
    fields: list[dict[str, Any]] = field(default_factory=list)
    field_references: list[dict[str, str]] = field(default_factory=list)
    entity_references: list[dict[str, str]] = field(default_factory=list)
    skipped: list[SkippedRelationship] = field(default_factory=list)

    def to_result(self) -> GraphSyncResult:
        """Summarize the plan as a sync result."""
        return GraphSyncResult(
            connection_id=self.connection_id,
            entities=len(self.entities),
            fields=len(self.fields),
            has_field_edges=len(self.fields),
            field_references=len(self.field_references),
            entity_references=len(self.entity_references),
            skipped_relationships=list(self.skipped),
        )


def build_graph_plan(snapshot: LedgerSnapshot) -> GraphPlan:
    """Build the rows that mirror ``snapshot`` in the graph.

    Args:
        snapshot: Ledger entities, fields and relationships of one connection

    Returns:
        GraphPlan with every row tagged with the snapshot's connection id

    Raises:
        ConnectionIsolationError: If an entity or field belongs elsewhere
    """
    connection_id = snapshot.connection_id
    plan = GraphPlan(connection_id=connection_id)

    entity_ids: set[str] = set()
    for entity in sorted(snapshot.entities, key=lambda e: e.id):
        if entity.connection_id != connection_id:
            raise ConnectionIsolationError(
                connection_id, entity.connection_id, f"graph sync (entity '{entity.name}')"
            )
        if entity.id in entity_ids:
            continue
        entity_ids.add(entity.id)
        plan.entities.append(
            {"id": entity.id, "name": entity.name, "connectionId": connection_id}
        )

    field_owner: dict[str, str] = {}
    for f in snapshot.fields:
        if f.entity_id not in entity_ids:
            raise ConnectionIsolationError(
                connection_id, None, f"graph sync (field '{f.name}' of an unknown entity)"
            )
        field_owner[f.id] = f.entity_id

    valid = []
    for rel in sorted(snapshot.relationships, key=lambda r: r.id):
        reason = None
        if rel.source_field_id not in field_owner:
            reason = "source field not found in connection"
        elif rel.target_field_id not in field_owner:
            reason = "target field not found in connection"
        if reason:
            plan.skipped.append(
                SkippedRelationship(
                    relationship_id=rel.id,
                    source_field_id=rel.source_field_id,
                    target_field_id=rel.target_field_id,
                    reason=reason,
                )
            )
            continue
        valid.append(rel)

    fk_sources = {rel.source_field_id for rel in valid}
    seen_fields: set[str] = set()
    for f in sorted(snapshot.fields, key=lambda f: f.id):
        if f.id in seen_fields:
            continue
        seen_fields.add(f.id)
        plan.fields.append(
            {
                "id": f.id,
                "entityId": f.entity_id,
                "name": f.name,
                "type": f.type,
                "isNullable": f.is_nullable,
                "isPrimaryKey": f.is_primary_key,
                "isForeignKey": f.id in fk_sources,
                "connectionId": connection_id,
            }
        )

    field_pairs = sorted({(rel.source_field_id, rel.target_field_id) for rel in valid})
    plan.field_references = [{"source": s, "target": t} for s, t in field_pairs]

    entity_pairs = sorted({(field_owner[s], field_owner[t]) for s, t in field_pairs})
    plan.entity_references = [{"source": s, "target": t} for s, t in entity_pairs]

    return plan


class GraphSynchronizer:
    """Rebuilds the graph of a connection from the metadata ledger."""

    # Entries drop out once no sync holds the lock
    _locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
    _locks_guard = threading.Lock()

    def __init__(self, ledger: MetadataLedger, store: GraphStore) -> None:
        self._ledger = ledger
        self._store = store

    @classmethod
    def lock_for(cls, connection_id: str) -> threading.Lock:
        """The lock serializing graph rebuilds of ``connection_id`` in this process."""
        with cls._locks_guard:
            lock = cls._locks.get(connection_id)
            if lock is None:
                lock = cls._locks[connection_id] = threading.Lock()
            return lock

    def sync(self, connection_id: str) -> GraphSyncResult:
        """Replace the graph of ``connection_id`` with the ledger's current state.

        Args:
            connection_id: Connection to rebuild

        Returns:
            GraphSyncResult with node/edge counts and skipped relationships

        Raises:
            NoMetadataSyncedError: If the ledger has no entities for the connection
            ConnectionIsolationError: If ledger rows carry another connection id
            GraphStoreError: If the graph transaction failed (nothing was written)
        """
        with self.lock_for(connection_id):
            snapshot = self._ledger.load_snapshot(connection_id)
            if not snapshot.entities:
                raise NoMetadataSyncedError(connection_id)

            plan = build_graph_plan(snapshot)
            for skipped in plan.skipped:
                logger.warning(
                    f"Skipping orphaned relationship {skipped.relationship_id} "
                    f"({skipped.source_field_id} -> {skipped.target_field_id}): {skipped.reason}"
                )

            logger.info(
                f"Rebuilding graph for connection {connection_id}: {len(plan.entities)} entities, "
                f"{len(plan.fields)} fields, {len(plan.field_references)} foreign keys"
            )
            try:
                self._store.replace_connection_graph(plan)
            except Exception:
                logger.error(f"Graph sync for connection {connection_id} rolled back")
                raise

        return plan.to_result()
