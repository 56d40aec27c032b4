"""Utilities to build weighted graphs for community propagation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, Iterable, Iterator, List, Optional, Tuple, Union

import networkx as nx
import numpy as np
import pandas as pd
import scipy.io
import scipy.sparse as sp

logger = logging.getLogger(__name__)

EdgeLike = Union[Tuple[int, int], Tuple[int, int, float]]

_EDGE_COLUMNS = ["source", "target", "weight"]


@dataclass
class WeightedGraph:
    """Sparse weighted graph keyed by integers in ``[0, span)``.

    ``present`` marks which keys are actual vertices; absent keys still
    occupy a slot so that community ids can reuse vertex ids directly.
    """

    adjacency: sp.csr_matrix
    present: np.ndarray

    def span(self) -> int:
        return int(self.adjacency.shape[0])

    def order(self) -> int:
        return int(np.count_nonzero(self.present))

    def size(self) -> int:
        return int(self.adjacency.nnz)

    def vertex_keys(self) -> Iterator[int]:
        return iter(np.flatnonzero(self.present).tolist())

    def edges(self, u: int) -> Iterator[Tuple[int, float]]:
        start, end = self.adjacency.indptr[u], self.adjacency.indptr[u + 1]
        targets = self.adjacency.indices[start:end].tolist()
        weights = self.adjacency.data[start:end].tolist()
        return zip(targets, weights)

    def edge_keys(self, u: int) -> Iterator[int]:
        start, end = self.adjacency.indptr[u], self.adjacency.indptr[u + 1]
        return iter(self.adjacency.indices[start:end].tolist())

    def degree(self, u: int) -> int:
        return int(self.adjacency.indptr[u + 1] - self.adjacency.indptr[u])

    def has_edge(self, u: int, v: int) -> bool:
        start, end = self.adjacency.indptr[u], self.adjacency.indptr[u + 1]
        return bool(np.any(self.adjacency.indices[start:end] == v))

    def to_frame(self) -> pd.DataFrame:
        coo = self.adjacency.tocoo()
        return pd.DataFrame({
            "source": coo.row.astype(np.int64),
            "target": coo.col.astype(np.int64),
            "weight": coo.data.astype(np.float64),
        })

    def to_networkx(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        graph.add_nodes_from(self.vertex_keys())
        frame = self.to_frame()
        graph.add_weighted_edges_from(frame.itertuples(index=False, name=None))
        return graph


def build_graph_from_frame(
    frame: pd.DataFrame,
    *,
    source: str = "source",
    target: str = "target",
    weight: Optional[str] = "weight",
    span: Optional[int] = None,
    symmetric: bool = True,
    vertices: Optional[Iterable[int]] = None,
) -> WeightedGraph:
    """Construct a graph from an edge table.

    Duplicate rows keep the last weight. With ``symmetric`` each row is an
    undirected edge stored in both orientations, so ``(u, v)`` and ``(v, u)``
    count as duplicates of each other. Negative weights are rejected.
    """

    sources = frame[source].to_numpy(dtype=np.int64)
    targets = frame[target].to_numpy(dtype=np.int64)
    if weight is not None and weight in frame.columns:
        weights = frame[weight].to_numpy(dtype=np.float64)
    else:
        weights = np.ones(len(frame), dtype=np.float64)

    if symmetric:
        sources, targets = np.minimum(sources, targets), np.maximum(sources, targets)
    edges = pd.DataFrame({"source": sources, "target": targets, "weight": weights})
    edges = edges.drop_duplicates(["source", "target"], keep="last")
    if symmetric:
        mirrored = edges[edges["source"] != edges["target"]].rename(
            columns={"source": "target", "target": "source"}
        )
        edges = pd.concat([edges, mirrored[_EDGE_COLUMNS]], ignore_index=True)

    keys = list(vertices) if vertices is not None else []
    if len(edges) and (edges["source"].min() < 0 or edges["target"].min() < 0):
        raise ValueError("vertex keys must be non-negative integers")
    if keys and min(keys) < 0:
        raise ValueError("vertex keys must be non-negative integers")
    if (edges["weight"] < 0).any():
        raise ValueError("edge weights must be non-negative")

    largest = max(
        int(edges[["source", "target"]].to_numpy().max()) if len(edges) else -1,
        max(keys) if keys else -1,
    )
    if span is None:
        span = largest + 1
    elif largest >= span:
        raise ValueError(f"vertex key {largest} is outside span {span}")

    adjacency = sp.csr_matrix(
        (
            edges["weight"].to_numpy(dtype=np.float64),
            (edges["source"].to_numpy(), edges["target"].to_numpy()),
        ),
        shape=(span, span),
    )
    adjacency.sort_indices()

    if vertices is None:
        present = np.ones(span, dtype=bool)
    else:
        present = np.zeros(span, dtype=bool)
        present[keys] = True
        present[edges["source"].to_numpy()] = True
        present[edges["target"].to_numpy()] = True

    return WeightedGraph(adjacency=adjacency, present=present)


def build_graph_from_edges(
    edges: Iterable[EdgeLike],
    *,
    span: Optional[int] = None,
    symmetric: bool = True,
    vertices: Optional[Iterable[int]] = None,
) -> WeightedGraph:
    """Construct a graph from ``(u, v)`` or ``(u, v, w)`` tuples."""

    rows = [(e[0], e[1], e[2] if len(e) > 2 else 1.0) for e in edges]
    frame = pd.DataFrame(rows, columns=_EDGE_COLUMNS)
    return build_graph_from_frame(frame, span=span, symmetric=symmetric, vertices=vertices)


def build_graph_from_networkx(
    graph: nx.Graph,
    *,
    weight: str = "weight",
) -> Tuple[WeightedGraph, List[Hashable]]:
    """Convert a networkx graph, mapping node labels to consecutive keys.

    Returns the graph together with the label of each key.
    """

    labels = list(graph.nodes())
    index = {label: key for key, label in enumerate(labels)}
    rows = [
        (index[u], index[v], float(data.get(weight, 1.0)))
        for u, v, data in graph.edges(data=True)
    ]
    frame = pd.DataFrame(rows, columns=_EDGE_COLUMNS)
    result = build_graph_from_frame(
        frame,
        span=len(labels),
        symmetric=not graph.is_directed(),
        vertices=range(len(labels)),
    )
    return result, labels


def _read_matrix_market(path: Path, symmetric: bool) -> WeightedGraph:
    matrix = scipy.io.mmread(str(path))
    if matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"{path} holds a non-square matrix {matrix.shape}")
    coo = sp.coo_matrix(matrix)
    frame = pd.DataFrame({
        "source": coo.row,
        "target": coo.col,
        "weight": coo.data.astype(np.float64),
    })
    return build_graph_from_frame(frame, span=coo.shape[0], symmetric=symmetric)


def _read_edge_list(path: Path, symmetric: bool) -> WeightedGraph:
    frame = pd.read_csv(
        path,
        sep=r"[\s,]+",
        engine="python",
        header=None,
        comment="#",
    )
    if frame.shape[1] < 2:
        raise ValueError(f"{path} must have at least two columns (source, target)")
    frame = frame.iloc[:, :3]
    frame.columns = _EDGE_COLUMNS[: frame.shape[1]]
    return build_graph_from_frame(frame, symmetric=symmetric)


def read_graph(path: Union[str, Path], *, symmetric: bool = True) -> WeightedGraph:
    """Load a Matrix Market (``.mtx``) file or a plain edge list."""

    path = Path(path)
    if path.suffix.lower() == ".mtx":
        graph = _read_matrix_market(path, symmetric)
    else:
        graph = _read_edge_list(path, symmetric)
    logger.info(
        "Loaded %s: %d vertices, %d directed edges", path.name, graph.order(), graph.size()
    )
    return graph
