from __future__ import annotations

import numpy as np
import pytest

from copra.community.affected import (
    affected_vertices_delta_screening,
    affected_vertices_frontier,
)
from copra.community.propagation import vertex_weights
from copra.graph.batch import apply_batch, make_undirected_batch
from copra.graph.builder import build_graph_from_edges


def flagged(flags: np.ndarray) -> set:
    return set(np.flatnonzero(flags).tolist())


def screen(graph, batch, vcom, belonging_threshold=0.5):
    updated = apply_batch(graph, batch)
    vtot = vertex_weights(updated)
    delta = affected_vertices_delta_screening(
        updated, batch.deletions, batch.insertions, vcom, vtot, belonging_threshold
    )
    frontier = affected_vertices_frontier(updated, batch.deletions, batch.insertions, vcom)
    return updated, delta, frontier


# ==============================================================================
# Empty batches
# ==============================================================================

@pytest.mark.unit
def test_empty_batch_flags_nothing(path_graph, path_labels):
    vtot = vertex_weights(path_graph)

    delta = affected_vertices_delta_screening(path_graph, [], [], path_labels, vtot, 0.5)
    frontier = affected_vertices_frontier(path_graph, [], [], path_labels)

    assert delta.dtype == bool
    assert delta.shape == (path_graph.span(),)
    assert not delta.any()
    assert not frontier.any()


# ==============================================================================
# Cross-community insertion at the path midpoint
# ==============================================================================

@pytest.mark.unit
def test_delta_screening_cross_community_insertion(path_graph, path_labels):
    batch = make_undirected_batch(insertions=[(2, 4, 1.0)])

    _, delta, _ = screen(path_graph, batch, path_labels)

    # Both endpoints switch tentatively, so both communities {0,1,2} and {3,4}
    # are marked; the detached edge 5-6 is untouched.
    assert flagged(delta) == {0, 1, 2, 3, 4}


@pytest.mark.unit
def test_delta_screening_flags_every_neighbour_of_a_source(path_graph, path_labels):
    batch = make_undirected_batch(insertions=[(2, 4, 1.0)])

    updated, delta, _ = screen(path_graph, batch, path_labels)

    for source in (2, 4):
        assert delta[source]
        for v in updated.edge_keys(source):
            assert delta[v], f"neighbour {v} of source {source} not flagged"


@pytest.mark.unit
def test_frontier_cross_community_insertion_flags_sources_only(path_graph, path_labels):
    batch = make_undirected_batch(insertions=[(2, 4, 1.0)])

    _, _, frontier = screen(path_graph, batch, path_labels)

    assert flagged(frontier) == {2, 4}


# ==============================================================================
# Deletions
# ==============================================================================

@pytest.mark.unit
def test_delta_screening_within_community_deletion(path_graph, path_labels):
    batch = make_undirected_batch(deletions=[(0, 1)])

    _, delta, frontier = screen(path_graph, batch, path_labels)

    # Community anchored at 1 is marked, plus the neighbours of 0 and 1.
    assert flagged(delta) == {0, 1, 2}
    assert flagged(frontier) == {0, 1}


@pytest.mark.unit
def test_cross_community_deletion_flags_nothing(path_graph, path_labels):
    batch = make_undirected_batch(deletions=[(2, 3)])

    _, delta, frontier = screen(path_graph, batch, path_labels)

    assert not delta.any()
    assert not frontier.any()


@pytest.mark.unit
def test_same_community_insertion_tentatively_isolates_sources(path_graph, path_labels):
    batch = make_undirected_batch(insertions=[(0, 2, 1.0)])

    _, delta, frontier = screen(path_graph, batch, path_labels)

    # Nothing is scanned for 0 or 2, so each tentatively joins itself, which
    # differs from community 1; both sources and their neighbours are marked.
    assert delta[0] and delta[2]
    assert flagged(delta) == {0, 1, 2, 3}
    assert not frontier.any()


@pytest.mark.unit
def test_same_community_insertion_marks_only_sources_outside_own_community(make_labels):
    # 0 and 1 both sit in community 0; the tentative singleton of 0 matches it.
    graph = build_graph_from_edges([(0, 1)])
    vcom = make_labels(2, {1: [(0, 1.0)]})
    batch = make_undirected_batch(insertions=[(0, 1, 1.0)])

    delta = affected_vertices_delta_screening(
        graph, batch.deletions, batch.insertions, vcom, vertex_weights(graph), 0.5
    )

    # Only 1 tentatively moves (to itself); 0 is marked as its neighbour.
    assert flagged(delta) == {0, 1}


# ==============================================================================
# Relationship between the two heuristics
# ==============================================================================

@pytest.mark.unit
@pytest.mark.parametrize(
    "deletions, insertions",
    [
        ([(0, 1)], []),
        ([], [(2, 4, 1.0)]),
        ([(2, 3)], [(1, 5, 2.0)]),
        ([(3, 4), (5, 6)], [(0, 6, 1.0), (2, 4, 0.5)]),
    ],
)
def test_frontier_is_subset_of_delta_screening(path_graph, path_labels, deletions, insertions):
    batch = make_undirected_batch(deletions, insertions)

    _, delta, frontier = screen(path_graph, batch, path_labels)

    assert flagged(frontier) <= flagged(delta)


@pytest.mark.unit
def test_insertion_above_threshold_selects_heaviest_new_community(make_labels):
    # Vertex 0 sits in community 0; heavy insertions pull it toward 2.
    graph = build_graph_from_edges([(0, 1, 1.0), (0, 2, 3.0), (0, 3, 1.0)])
    vcom = make_labels(4, {1: [(0, 1.0)], 2: [(2, 1.0)], 3: [(3, 1.0)]})
    batch = make_undirected_batch(insertions=[(0, 2, 3.0), (0, 3, 1.0)])
    vtot = vertex_weights(graph)

    delta = affected_vertices_delta_screening(
        graph, batch.deletions, batch.insertions, vcom, vtot, 0.5
    )

    # 0 moves toward 2 and its neighbours are marked; 2 and 3 switch toward 0.
    assert flagged(delta) == {0, 1, 2, 3}
