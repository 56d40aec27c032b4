"""Find vertices to reprocess after a batch of edge deletions and insertions.

Both batches are undirected (each edge appears once per direction) and
sorted by source vertex. Flags are computed against the dominant community
(label set index 0) of each endpoint in the previous membership table.
"""
from __future__ import annotations

import logging
from itertools import groupby
from operator import itemgetter
from typing import Sequence, Tuple

import numpy as np

from copra.community.labelset import LabelSet, MembershipTable
from copra.community.propagation import (
    Graph,
    ScanScratch,
    choose_community,
    clear_scan,
    scan_community,
    sort_scan,
)

logger = logging.getLogger(__name__)


def affected_vertices_delta_screening(
    graph: Graph,
    deletions: Sequence[Tuple[int, int]],
    insertions: Sequence[Tuple[int, int, float]],
    vcom: MembershipTable,
    vtot: np.ndarray,
    belonging_threshold: float,
    *,
    strict: bool = False,
) -> np.ndarray:
    """Flag vertices whose membership could change, using delta-screening.

    - A deletion inside a community marks its source, the source's
      neighbours and that community.
    - Insertions are grouped by source ``u``. Cross-community insertions are
      scanned and a tentative label set chosen for ``u``, its own singleton
      when nothing was scanned. If the tentative dominant community differs
      from ``u``'s current one, ``u``, its neighbours and the tentative
      community are marked.
    - One closing pass flags neighbours of marked sources and every vertex
      whose dominant community was marked.

    Args:
        graph: Updated graph.
        deletions: Oriented ``(source, target)`` pairs, sorted by source.
        insertions: Oriented ``(source, target, weight)`` triples, sorted by source.
        vcom: Label sets from the previous run.
        vtot: Total edge weight of each vertex in ``graph``.
        belonging_threshold: Fraction of ``vtot[u]`` a community must reach.

    Returns:
        Boolean flag per vertex key.
    """
    span = graph.span()
    scratch = ScanScratch.allocate(span)
    tentative = LabelSet(vcom.capacity)
    vertices = np.zeros(span, dtype=bool)
    neighbors = np.zeros(span, dtype=bool)
    communities = np.zeros(span, dtype=bool)

    for u, v in deletions:
        cv = vcom.dominant(v)
        if vcom.dominant(u) != cv:
            continue
        vertices[u] = True
        neighbors[u] = True
        communities[cv] = True

    for u, group in groupby(insertions, key=itemgetter(0)):
        cu = vcom.dominant(u)
        clear_scan(scratch)
        for _, v, w in group:
            if vcom.dominant(v) == cu:
                continue
            scan_community(scratch, u, v, w, vcom)
        sort_scan(scratch, strict)
        choose_community(tentative, u, scratch, belonging_threshold * vtot[u])
        cl = tentative.dominant
        if cl == cu:
            continue
        vertices[u] = True
        neighbors[u] = True
        communities[cl] = True
    clear_scan(scratch)

    for u in graph.vertex_keys():
        if neighbors[u]:
            for v in graph.edge_keys(u):
                vertices[v] = True
        if communities[vcom.dominant(u)]:
            vertices[u] = True

    logger.debug(
        "Delta-screening marked %d vertices (%d sources, %d communities)",
        int(vertices.sum()), int(neighbors.sum()), int(communities.sum()),
    )
    return vertices


def affected_vertices_frontier(
    graph: Graph,
    deletions: Sequence[Tuple[int, int]],
    insertions: Sequence[Tuple[int, int, float]],
    vcom: MembershipTable,
) -> np.ndarray:
    """Flag only the source of each within-community deletion and cross-community insertion."""
    vertices = np.zeros(graph.span(), dtype=bool)
    for u, v in deletions:
        if vcom.dominant(u) == vcom.dominant(v):
            vertices[u] = True
    for u, v, _ in insertions:
        if vcom.dominant(u) != vcom.dominant(v):
            vertices[u] = True
    logger.debug("Frontier marked %d vertices", int(vertices.sum()))
    return vertices
