"""Property graph sync and structural analytics for SchemaGraph."""

from schemagraph.graph.analytics import StructuralAnalytics
from schemagraph.graph.store import GraphStore, Neo4jConfig, Neo4jGraphStore
from schemagraph.graph.synchronizer import GraphPlan, GraphSynchronizer, build_graph_plan

__all__ = [
    "GraphStore",
    "Neo4jConfig",
    "Neo4jGraphStore",
    "GraphPlan",
    "GraphSynchronizer",
    "build_graph_plan",
    "StructuralAnalytics",
]
