"""Structural analytics over the REFERENCES graph of a connection.

One read of the entity graph (names, field counts and REFERENCES pairs)
feeds every metric here, so a report costs a single graph round trip. The
functions build a ``networkx.DiGraph`` from ``EntityGraph`` and can be used
without a store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

import networkx as nx

from schemagraph.core.types import (
    EntityGraph,
    HubInfo,
    ImpactAnalysis,
    PipelinePolicy,
    StructuralReport,
    TableContext,
)
from schemagraph.exceptions import EntityNotFoundError

if TYPE_CHECKING:
    from schemagraph.graph.store import GraphStore

logger = logging.getLogger(__name__)


def to_digraph(graph: EntityGraph) -> nx.DiGraph:
    """Entities as nodes (with their field count), REFERENCES as edges."""
    G = nx.DiGraph()
    for name in graph.entities:
        G.add_node(name, fields=graph.field_counts.get(name, 0))
    G.add_edges_from(graph.references)
    return G


def isolated_entities(graph: EntityGraph) -> list[str]:
    """Entities without a REFERENCES edge in either direction."""
    return sorted(nx.isolates(to_digraph(graph)))


def _reference_degree(G: nx.DiGraph, name: str) -> int:
    # networkx counts a self loop twice; the graph stores it as one edge
    return G.degree(name) - (1 if G.has_edge(name, name) else 0)


def degrees(graph: EntityGraph) -> dict[str, int]:
    """REFERENCES degree of every entity, both directions."""
    G = to_digraph(graph)
    return {name: _reference_degree(G, name) for name in G.nodes}


def find_hubs(graph: EntityGraph, threshold: int) -> list[HubInfo]:
    """Entities whose total degree exceeds ``threshold``, most connected first.

    The total degree counts every edge of the entity node: one HAS_FIELD per
    column plus its REFERENCES in both directions.
    """
    G = to_digraph(graph)
    hubs = []
    for name, data in G.nodes(data=True):
        fields = data.get("fields", 0)
        references = _reference_degree(G, name)
        if fields + references > threshold:
            hubs.append(
                HubInfo(
                    name=name,
                    connections=fields + references,
                    fields=fields,
                    references=references,
                )
            )
    return sorted(hubs, key=lambda h: (-h.connections, h.name))


def max_depth(graph: EntityGraph) -> int:
    """Length of the longest simple directed REFERENCES path.

    Acyclic schemas take the linear DAG algorithm. Schemas with cycles fall
    back to enumerating simple paths, which is exact but exponential in the
    worst case.
    """
    G = to_digraph(graph)
    G.remove_edges_from(list(nx.selfloop_edges(G)))
    if G.number_of_edges() == 0:
        return 0
    if nx.is_directed_acyclic_graph(G):
        return nx.dag_longest_path_length(G)

    best = 0
    for source in G.nodes:
        if G.out_degree(source) == 0:
            continue
        targets = set(G.nodes) - {source}
        for path in nx.all_simple_paths(G, source, targets):
            best = max(best, len(path) - 1)
    return best


def shortest_path(graph: EntityGraph, source: str, target: str) -> list[str] | None:
    """Shortest undirected REFERENCES path between two entities, as entity names."""
    try:
        return nx.shortest_path(to_digraph(graph).to_undirected(), source, target)
    except (nx.NetworkXNoPath, nx.NodeNotFound):
        return None


def impact(graph: EntityGraph, entity_names: Iterable[str], hub_threshold: int) -> ImpactAnalysis:
    """How many relational hops the given entities span.

    ``hops`` is the largest undirected distance between any two of the
    entities; pairs with no path at all are listed in ``disconnected``.
    Names missing from the graph are ignored.
    """
    known = set(graph.entities)
    names = sorted({n for n in entity_names if n in known})
    undirected = to_digraph(graph).to_undirected()

    hops = 0
    disconnected: list[tuple[str, str]] = []
    for i, name in enumerate(names):
        dist = nx.single_source_shortest_path_length(undirected, name)
        for other in names[i + 1 :]:
            if other in dist:
                hops = max(hops, dist[other])
            else:
                disconnected.append((name, other))

    hub_names = {h.name for h in find_hubs(graph, hub_threshold)}
    return ImpactAnalysis(
        entities=names,
        hops=hops,
        disconnected=disconnected,
        hubs_touched=[n for n in names if n in hub_names],
    )


class StructuralAnalytics:
    """Integrity and health queries for the graph of one connection."""

    def __init__(self, store: GraphStore, policy: PipelinePolicy | None = None) -> None:
        self._store = store
        self._policy = policy or PipelinePolicy()

    def entity_graph(self, connection_id: str) -> EntityGraph:
        return self._store.fetch_entity_graph(connection_id)

    def structural_report(self, connection_id: str) -> StructuralReport:
        """Isolated entities, max REFERENCES depth and hubs for a connection."""
        graph = self.entity_graph(connection_id)
        report = StructuralReport(
            connection_id=connection_id,
            entity_count=len(graph.entities),
            reference_count=len(set(graph.references)),
            isolated=isolated_entities(graph),
            max_depth=max_depth(graph),
            hubs=find_hubs(graph, self._policy.hub_threshold),
        )
        logger.info(
            f"Structural report for {connection_id}: {report.entity_count} entities, "
            f"{len(report.isolated)} isolated, depth {report.max_depth}, {len(report.hubs)} hubs"
        )
        return report

    def impact_analysis(
        self, connection_id: str, entity_names: Iterable[str], graph: EntityGraph | None = None
    ) -> ImpactAnalysis:
        """Relational span of ``entity_names`` within the connection."""
        graph = graph or self.entity_graph(connection_id)
        return impact(graph, entity_names, self._policy.hub_threshold)

    def related_tables(self, connection_id: str, entity_name: str) -> list[str]:
        """Entities one REFERENCES hop away, in either direction.

        Raises:
            EntityNotFoundError: If the entity is not in the graph
        """
        graph = self.entity_graph(connection_id)
        self._require(graph, entity_name)
        return sorted(set(nx.all_neighbors(to_digraph(graph), entity_name)) - {entity_name})

    def find_join_path(self, connection_id: str, source: str, target: str) -> list[str] | None:
        """Shortest chain of tables joining ``source`` to ``target``, or None.

        Raises:
            EntityNotFoundError: If either entity is not in the graph
        """
        graph = self.entity_graph(connection_id)
        self._require(graph, source)
        self._require(graph, target)
        return shortest_path(graph, source, target)

    def entity_schema_context(self, connection_id: str, entity_name: str) -> TableContext:
        """Columns of one entity with key flags and foreign key targets.

        Raises:
            EntityNotFoundError: If the entity is not in the graph
        """
        context = self._store.entity_schema(connection_id, entity_name)
        if context is None:
            graph = self.entity_graph(connection_id)
            raise EntityNotFoundError(entity_name, connection_id, graph.entities)
        return context

    @staticmethod
    def _require(graph: EntityGraph, entity_name: str) -> None:
        if entity_name not in graph.entities:
            raise EntityNotFoundError(entity_name, graph.connection_id, graph.entities)
