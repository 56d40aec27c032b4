"""Overlapping community label propagation primitives.

A single vertex update is ``scan_communities`` -> ``sort_scan`` ->
``choose_community`` -> ``clear_scan``. The scan scratch is allocated once
by the caller and reused for every vertex; clearing only touches the
communities recorded in ``vcs``, never the whole accumulator.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Protocol, Tuple

import numpy as np

from copra.community.labelset import LabelSet, MembershipTable


class Graph(Protocol):
    def span(self) -> int: ...

    def vertex_keys(self) -> Iterator[int]: ...

    def edges(self, u: int) -> Iterator[Tuple[int, float]]: ...

    def edge_keys(self, u: int) -> Iterator[int]: ...


@dataclass
class ScanScratch:
    """Communities touched by the current vertex and their accumulated weight.

    ``vcout`` is indexed by community id and sized to the vertex span.
    """

    vcout: np.ndarray
    vcs: List[int] = field(default_factory=list)

    @classmethod
    def allocate(cls, span: int) -> "ScanScratch":
        return cls(vcout=np.zeros(span, dtype=np.float64))

    def weights(self) -> List[float]:
        """Accumulated weight of each touched community, in ``vcs`` order."""
        return self.vcout[self.vcs].tolist() if self.vcs else []


def vertex_weights(graph: Graph, out: Optional[np.ndarray] = None) -> np.ndarray:
    """Find the total edge weight of each vertex; absent keys get zero."""
    if out is None:
        vtot = np.zeros(graph.span(), dtype=np.float64)
    else:
        vtot = out
        vtot.fill(0.0)
    for u in graph.vertex_keys():
        vtot[u] = sum(w for _, w in graph.edges(u))
    return vtot


def initialize(vcom: MembershipTable, graph: Graph) -> None:
    """Make every vertex the sole member of its own community."""
    for u in graph.vertex_keys():
        vcom[u].set_singleton(u)


def scan_community(
    scratch: ScanScratch,
    u: int,
    v: int,
    w: float,
    vcom: MembershipTable,
    self_loops: bool = False,
) -> None:
    """Add the weight edge ``u -> v`` contributes to each of ``v``'s communities.

    Edge weights are non-negative, so an accumulator slot only becomes
    non-zero once and each community is appended to ``vcs`` at most once.
    """
    if not self_loops and u == v:
        return
    vcout = scratch.vcout
    for c, b in vcom[v]:
        before = vcout[c]
        vcout[c] = before + w * b
        if not before and vcout[c]:
            scratch.vcs.append(c)


def scan_communities(
    scratch: ScanScratch,
    graph: Graph,
    u: int,
    vcom: MembershipTable,
    self_loops: bool = False,
) -> None:
    """Scan the communities of every out-neighbour of ``u``."""
    for v, w in graph.edges(u):
        scan_community(scratch, u, v, w, vcom, self_loops)


def sort_scan(scratch: ScanScratch, strict: bool = False) -> None:
    """Order touched communities by ascending weight; the best comes last.

    Equal weights are split only when the XOR of two ids has bit 2 set, the
    id carrying that bit sorting last. This stands in for a random
    tie-break without favouring low or high ids. ``strict`` keeps ties in
    scan order.
    """
    weights = dict(zip(scratch.vcs, scratch.weights()))
    if strict:
        scratch.vcs.sort(key=weights.__getitem__)
    else:
        scratch.vcs.sort(key=lambda c: (weights[c], (c >> 1) & 1))


def clear_scan(scratch: ScanScratch) -> None:
    """Reset the accumulator entries of touched communities and empty the list."""
    if scratch.vcs:
        scratch.vcout[scratch.vcs] = 0.0
    scratch.vcs.clear()


def choose_community(
    labels: LabelSet,
    u: int,
    scratch: ScanScratch,
    threshold: float,
) -> None:
    """Write the new normalized label set of ``u`` into ``labels``.

    Expects ``scratch.vcs`` ordered by :func:`sort_scan`. Communities are
    taken heaviest first, so index 0 is the dominant one and capacity
    overflow drops the lightest. With nothing above ``threshold`` the single
    best community is kept; with nothing scanned ``u`` joins itself.
    """
    vcout = scratch.vcout
    chosen = []
    total = 0.0
    for c in reversed(scratch.vcs):
        if len(chosen) >= labels.capacity:
            break
        wc = float(vcout[c])
        if wc < threshold:
            continue
        chosen.append((c, wc))
        total += wc
    if not chosen and scratch.vcs:
        c = scratch.vcs[-1]
        chosen.append((c, float(vcout[c])))
        total = chosen[0][1]
    if not chosen:
        labels.set_singleton(u)
        return
    labels.assign((c, wc / total) for c, wc in chosen)


def best_communities(vcom: MembershipTable) -> np.ndarray:
    """Dominant community of every vertex."""
    return vcom.communities[:, 0].copy()


def update_vertex(
    scratch: ScanScratch,
    graph: Graph,
    u: int,
    vcom: MembershipTable,
    threshold: float,
    *,
    strict: bool = False,
    self_loops: bool = False,
) -> bool:
    """Recompute the label set of ``u`` in place; True if its dominant community changed."""
    previous = vcom.dominant(u)
    scan_communities(scratch, graph, u, vcom, self_loops)
    sort_scan(scratch, strict)
    choose_community(vcom[u], u, scratch, threshold)
    clear_scan(scratch)
    return vcom.dominant(u) != previous
