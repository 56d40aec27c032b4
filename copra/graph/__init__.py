"""Graph construction and batch-update utilities."""

from .batch import EdgeBatch, apply_batch, generate_batch, make_undirected_batch
from .builder import (
    WeightedGraph,
    build_graph_from_edges,
    build_graph_from_frame,
    build_graph_from_networkx,
    read_graph,
)

__all__ = [
    "EdgeBatch",
    "apply_batch",
    "generate_batch",
    "make_undirected_batch",
    "WeightedGraph",
    "build_graph_from_edges",
    "build_graph_from_frame",
    "build_graph_from_networkx",
    "read_graph",
]
