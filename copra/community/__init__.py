"""Overlapping label propagation and affected-vertex screening."""

from .affected import affected_vertices_delta_screening, affected_vertices_frontier
from .driver import (
    CopraResult,
    copra_dynamic_delta_screening,
    copra_dynamic_frontier,
    copra_naive_dynamic,
    copra_static,
)
from .labelset import LabelSet, MembershipTable
from .propagation import (
    ScanScratch,
    best_communities,
    choose_community,
    clear_scan,
    initialize,
    scan_communities,
    scan_community,
    sort_scan,
    update_vertex,
    vertex_weights,
)

__all__ = [
    "affected_vertices_delta_screening",
    "affected_vertices_frontier",
    "CopraResult",
    "copra_dynamic_delta_screening",
    "copra_dynamic_frontier",
    "copra_naive_dynamic",
    "copra_static",
    "LabelSet",
    "MembershipTable",
    "ScanScratch",
    "best_communities",
    "choose_community",
    "clear_scan",
    "initialize",
    "scan_communities",
    "scan_community",
    "sort_scan",
    "update_vertex",
    "vertex_weights",
]
