"""Convergence loop for static and incremental overlapping propagation.

Vertices are updated in place, in key order, so a vertex processed earlier
in a pass is already seen with its new label set by later ones.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from copra.community.affected import (
    affected_vertices_delta_screening,
    affected_vertices_frontier,
)
from copra.community.labelset import MembershipTable
from copra.community.propagation import (
    Graph,
    ScanScratch,
    best_communities,
    initialize,
    update_vertex,
    vertex_weights,
)
from copra.config import CopraOptions
from copra.graph.batch import EdgeBatch
from copra.performance_profiler import RunReport, measure_duration, profile_phase

logger = logging.getLogger(__name__)


@dataclass
class CopraResult:
    """Outcome of one propagation run.

    ``time`` is the mean wall time in milliseconds over ``options.repeat``
    runs. ``affected`` counts the vertices initially marked for processing.
    """

    membership: np.ndarray
    labels: MembershipTable
    iterations: int
    time: float
    converged: bool
    affected: int

    def community_count(self) -> int:
        return int(np.unique(self.membership).size)


def _copra_loop(
    graph: Graph,
    vcom: MembershipTable,
    vtot: np.ndarray,
    options: CopraOptions,
    affected: Optional[np.ndarray] = None,
    *,
    frontier: bool = False,
) -> Tuple[int, bool]:
    """Run passes until few enough dominant communities change.

    With ``affected`` only flagged vertices are processed. With ``frontier``
    a processed vertex is unflagged and a vertex whose dominant community
    changes flags all its neighbours.
    """
    scratch = ScanScratch.allocate(graph.span())
    order = max(sum(1 for _ in graph.vertex_keys()), 1)
    for iteration in range(1, options.max_iterations + 1):
        changed = 0
        for u in graph.vertex_keys():
            if affected is not None and not affected[u]:
                continue
            if frontier:
                affected[u] = False
            moved = update_vertex(
                scratch, graph, u, vcom, options.belonging_threshold * vtot[u]
            )
            if not moved:
                continue
            changed += 1
            if frontier:
                for v in graph.edge_keys(u):
                    affected[v] = True
        logger.debug("Pass %d: %d of %d vertices changed community", iteration, changed, order)
        if changed / order <= options.tolerance:
            return iteration, True
    return options.max_iterations, False


def _run(
    operation: str,
    graph: Graph,
    options: CopraOptions,
    prepare,
    *,
    frontier: bool = False,
) -> CopraResult:
    """Time ``options.repeat`` runs; ``prepare`` builds the starting state."""
    options = options.validated()

    def run_once(report: RunReport):
        with profile_phase("prepare", report):
            vcom, vtot, affected = prepare(report)
        if affected is None:
            marked = sum(1 for _ in graph.vertex_keys())
        else:
            marked = int(np.count_nonzero(affected))
        with profile_phase("propagate", report):
            iterations, converged = _copra_loop(
                graph, vcom, vtot, options, affected, frontier=frontier
            )
        return vcom, iterations, converged, marked

    (vcom, iterations, converged, marked), report = measure_duration(
        run_once,
        repeat=options.repeat,
        operation=operation,
        metadata={"span": graph.span()},
    )
    result = CopraResult(
        membership=best_communities(vcom),
        labels=vcom,
        iterations=iterations,
        time=report.mean_ms,
        converged=converged,
        affected=marked,
    )
    if not converged:
        logger.warning(
            "%s reached the iteration cap (%d) without meeting tolerance %.4f",
            operation, options.max_iterations, options.tolerance,
        )
    logger.info(
        "COPRA %s: %d iterations, %.2fms, %d communities, %d vertices marked",
        operation, iterations, result.time, result.community_count(), marked,
    )
    return result


def _warm_start(graph: Graph, previous: MembershipTable, options: CopraOptions) -> MembershipTable:
    if previous.capacity != options.max_membership:
        raise ValueError(
            f"previous labels hold {previous.capacity} memberships per vertex; "
            f"options expect {options.max_membership}"
        )
    return previous.extended(graph.span())


def copra_static(
    graph: Graph,
    options: CopraOptions,
    initial: Optional[MembershipTable] = None,
) -> CopraResult:
    """Detect overlapping communities, from singletons or from ``initial``."""

    def prepare(report: RunReport):
        vtot = vertex_weights(graph)
        if initial is None:
            vcom = MembershipTable(graph.span(), options.max_membership)
            initialize(vcom, graph)
        else:
            vcom = _warm_start(graph, initial, options)
        return vcom, vtot, None

    return _run("static" if initial is None else "naive-dynamic", graph, options, prepare)


def copra_naive_dynamic(
    graph: Graph,
    previous: MembershipTable,
    options: CopraOptions,
) -> CopraResult:
    """Reprocess every vertex of the updated graph, starting from ``previous``."""
    return copra_static(graph, options, initial=previous)


def copra_dynamic_delta_screening(
    graph: Graph,
    batch: EdgeBatch,
    previous: MembershipTable,
    options: CopraOptions,
    *,
    strict: bool = False,
) -> CopraResult:
    """Reprocess only the vertices delta-screening marks on the updated graph."""

    def prepare(report: RunReport):
        vtot = vertex_weights(graph)
        vcom = _warm_start(graph, previous, options)
        with profile_phase("affected_vertices", report):
            affected = affected_vertices_delta_screening(
                graph,
                batch.deletions,
                batch.insertions,
                vcom,
                vtot,
                options.belonging_threshold,
                strict=strict,
            )
        logger.debug("Affected by delta-screening: %d", int(affected.sum()))
        return vcom, vtot, affected

    return _run("delta-screening", graph, options, prepare)


def copra_dynamic_frontier(
    graph: Graph,
    batch: EdgeBatch,
    previous: MembershipTable,
    options: CopraOptions,
) -> CopraResult:
    """Reprocess from the batch frontier, spreading to neighbours of changed vertices."""

    def prepare(report: RunReport):
        vtot = vertex_weights(graph)
        vcom = _warm_start(graph, previous, options)
        with profile_phase("affected_vertices", report):
            affected = affected_vertices_frontier(
                graph, batch.deletions, batch.insertions, vcom
            )
        logger.debug("Affected by frontier: %d", int(affected.sum()))
        return vcom, vtot, affected

    return _run("frontier", graph, options, prepare, frontier=True)
