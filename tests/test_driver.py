"""Tests for the static and incremental propagation drivers.

Expected outcomes were traced by hand on the two-clique fixture with
``B = 0.5`` and default options.
"""
from __future__ import annotations

import logging

import numpy as np
import pytest

from copra.community import (
    copra_dynamic_delta_screening,
    copra_dynamic_frontier,
    copra_naive_dynamic,
    copra_static,
)
from copra.config import CopraOptions
from copra.graph.batch import apply_batch, make_undirected_batch
from copra.performance_profiler import get_profiler

CLIQUE_MEMBERSHIP = [3, 3, 3, 3, 7, 7, 7, 7]


@pytest.fixture
def options() -> CopraOptions:
    return CopraOptions(belonging_threshold=0.5)


@pytest.fixture
def static_result(two_cliques_graph, options):
    return copra_static(two_cliques_graph, options)


# ==============================================================================
# copra_static
# ==============================================================================

@pytest.mark.unit
def test_static_finds_both_cliques(static_result):
    assert static_result.membership.tolist() == CLIQUE_MEMBERSHIP
    assert static_result.iterations == 2
    assert static_result.converged is True
    assert static_result.community_count() == 2
    assert static_result.affected == 8
    assert static_result.time >= 0.0


@pytest.mark.unit
def test_static_label_sets_are_normalized(static_result):
    for labels in static_result.labels:
        coefficients = [b for _, b in labels]
        assert sum(coefficients) == pytest.approx(1.0)
        assert coefficients[0] == max(coefficients)


@pytest.mark.unit
def test_static_iteration_cap_warns_and_reports_not_converged(two_cliques_graph, caplog):
    options = CopraOptions(belonging_threshold=0.5, max_iterations=1, tolerance=0.0)

    with caplog.at_level(logging.WARNING, logger="copra.community.driver"):
        result = copra_static(two_cliques_graph, options)

    assert result.converged is False
    assert result.iterations == 1
    assert "iteration cap" in caplog.text


@pytest.mark.unit
def test_static_rejects_invalid_options(two_cliques_graph):
    with pytest.raises(ValueError, match="belonging_threshold"):
        copra_static(two_cliques_graph, CopraOptions(belonging_threshold=1.5))


@pytest.mark.unit
def test_static_membership_never_exceeds_capacity(two_cliques_graph):
    options = CopraOptions(belonging_threshold=0.0, max_membership=2)

    result = copra_static(two_cliques_graph, options)

    assert result.labels.capacity == 2
    for labels in result.labels:
        assert 1 <= len(labels) <= 2


@pytest.mark.unit
def test_static_repeat_records_every_run(two_cliques_graph):
    profiler = get_profiler()
    profiler.clear_reports()

    copra_static(two_cliques_graph, CopraOptions(belonging_threshold=0.5, repeat=3))

    reports = profiler.get_all_reports()
    assert len(reports) == 1
    assert reports[0].operation == "static"
    assert len(reports[0].durations_ms) == 3
    assert {"prepare", "propagate"} <= set(reports[0].phase_totals())
    profiler.clear_reports()


# ==============================================================================
# Incremental approaches
# ==============================================================================

@pytest.mark.unit
def test_delta_screening_marks_both_touched_communities(two_cliques_graph, static_result, options):
    batch = make_undirected_batch(insertions=[(0, 5, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)

    result = copra_dynamic_delta_screening(updated, batch, static_result.labels, options)

    assert result.affected == 8
    assert result.iterations == 1
    assert result.converged is True
    assert result.membership.tolist() == CLIQUE_MEMBERSHIP


@pytest.mark.unit
def test_frontier_starts_from_batch_sources(two_cliques_graph, static_result, options):
    batch = make_undirected_batch(insertions=[(0, 5, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)

    result = copra_dynamic_frontier(updated, batch, static_result.labels, options)

    assert result.affected == 2
    assert result.iterations == 1
    assert result.membership.tolist() == CLIQUE_MEMBERSHIP


@pytest.mark.unit
def test_naive_dynamic_reprocesses_every_vertex(two_cliques_graph, static_result, options):
    batch = make_undirected_batch(insertions=[(0, 5, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)

    result = copra_naive_dynamic(updated, static_result.labels, options)

    assert result.affected == 8
    assert result.iterations == 1
    assert result.membership.tolist() == CLIQUE_MEMBERSHIP


@pytest.mark.unit
def test_incremental_runs_do_not_modify_previous_labels(two_cliques_graph, static_result, options):
    before = static_result.labels.communities.copy()
    batch = make_undirected_batch(insertions=[(7, 8, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)

    copra_dynamic_delta_screening(updated, batch, static_result.labels, options)

    np.testing.assert_array_equal(static_result.labels.communities, before)


@pytest.mark.unit
@pytest.mark.parametrize(
    "approach",
    [
        lambda graph, batch, previous, options: copra_naive_dynamic(graph, previous, options),
        copra_dynamic_delta_screening,
        copra_dynamic_frontier,
    ],
)
def test_new_vertex_joins_its_neighbour_community(two_cliques_graph, static_result, options, approach):
    batch = make_undirected_batch(insertions=[(7, 8, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)

    result = approach(updated, batch, static_result.labels, options)

    assert result.membership.shape == (9,)
    assert result.membership.tolist() == CLIQUE_MEMBERSHIP + [7]


@pytest.mark.unit
def test_previous_labels_must_match_membership_capacity(two_cliques_graph, static_result):
    batch = make_undirected_batch(insertions=[(0, 5, 1.0)])
    updated = apply_batch(two_cliques_graph, batch)
    options = CopraOptions(belonging_threshold=0.5, max_membership=4)

    with pytest.raises(ValueError, match="memberships per vertex"):
        copra_dynamic_delta_screening(updated, batch, static_result.labels, options)
