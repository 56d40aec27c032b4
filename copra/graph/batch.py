"""Batches of undirected edge deletions and insertions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from copra.graph.builder import WeightedGraph, build_graph_from_frame

logger = logging.getLogger(__name__)

Deletion = Tuple[int, int]
Insertion = Tuple[int, int, float]


@dataclass(frozen=True)
class EdgeBatch:
    """Oriented edge updates, each undirected edge listed once per direction.

    Both lists are sorted by source vertex; insertion grouping relies on it.
    """

    deletions: List[Deletion] = field(default_factory=list)
    insertions: List[Insertion] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.deletions) + len(self.insertions)

    def span(self) -> int:
        """One past the largest key referenced by the batch."""
        keys = [k for u, v in self.deletions for k in (u, v)]
        keys.extend(k for u, v, _ in self.insertions for k in (u, v))
        return max(keys) + 1 if keys else 0


def make_undirected_batch(
    deletions: Iterable[Tuple[int, int]] = (),
    insertions: Iterable[Tuple[int, int, float]] = (),
) -> EdgeBatch:
    """Orient both ways, drop duplicates and sort by ``(source, target)``.

    A repeated insertion keeps its last weight.
    """

    oriented_deletions = set()
    for u, v in deletions:
        oriented_deletions.add((int(u), int(v)))
        oriented_deletions.add((int(v), int(u)))

    oriented_insertions = {}
    for u, v, w in insertions:
        oriented_insertions[(int(u), int(v))] = float(w)
        oriented_insertions[(int(v), int(u))] = float(w)

    return EdgeBatch(
        deletions=sorted(oriented_deletions),
        insertions=[(u, v, w) for (u, v), w in sorted(oriented_insertions.items())],
    )


def generate_batch(
    graph: WeightedGraph,
    size: int,
    *,
    insertion_fraction: float = 0.8,
    weight: float = 1.0,
    seed: Optional[int] = None,
) -> EdgeBatch:
    """Draw a random undirected batch of ``size`` edge updates.

    Deletions are sampled from existing non-loop edges; insertions connect
    present, currently non-adjacent vertex pairs.
    """

    if size < 0:
        raise ValueError("batch size must be non-negative")
    if not 0.0 <= insertion_fraction <= 1.0:
        raise ValueError("insertion_fraction must be within [0, 1]")

    rng = np.random.default_rng(seed)
    n_insertions = int(round(size * insertion_fraction))
    n_deletions = size - n_insertions

    frame = graph.to_frame()
    existing = frame[frame["source"] < frame["target"]]
    n_deletions = min(n_deletions, len(existing))
    picked = rng.choice(len(existing), size=n_deletions, replace=False) if n_deletions else []
    deletions = [
        (int(u), int(v))
        for u, v in existing.iloc[picked][["source", "target"]].itertuples(index=False, name=None)
    ]

    keys = np.flatnonzero(graph.present)
    insertions = []
    chosen = set()
    # Sparse graphs leave plenty of free pairs; bail out when they are exhausted.
    attempts = 0
    while len(insertions) < n_insertions and keys.size > 1 and attempts < 100 * max(n_insertions, 1):
        attempts += 1
        u, v = (int(k) for k in rng.choice(keys, size=2, replace=False))
        u, v = min(u, v), max(u, v)
        if (u, v) in chosen or graph.has_edge(u, v):
            continue
        chosen.add((u, v))
        insertions.append((u, v, weight))

    if len(insertions) < n_insertions:
        logger.warning(
            "Only generated %d of %d requested insertions", len(insertions), n_insertions
        )
    return make_undirected_batch(deletions, insertions)


def apply_batch(graph: WeightedGraph, batch: EdgeBatch) -> WeightedGraph:
    """Return a new graph with ``batch`` applied.

    Inserting an existing edge overwrites its weight. The span grows to
    cover keys introduced by insertions.
    """

    frame = graph.to_frame()
    if batch.deletions:
        removed = pd.MultiIndex.from_tuples(batch.deletions)
        keyed = pd.MultiIndex.from_frame(frame[["source", "target"]])
        frame = frame[~keyed.isin(removed)]
    if batch.insertions:
        added = pd.DataFrame(batch.insertions, columns=["source", "target", "weight"])
        frame = pd.concat([frame, added], ignore_index=True)

    span = max(graph.span(), batch.span())
    present = np.zeros(span, dtype=bool)
    present[: graph.span()] = graph.present
    for u, v, _ in batch.insertions:
        present[u] = present[v] = True

    return build_graph_from_frame(
        frame,
        span=span,
        symmetric=False,
        vertices=np.flatnonzero(present).tolist(),
    )
