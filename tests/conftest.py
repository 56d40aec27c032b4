"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (eliminates sys.path hacks in individual test files)
- Pytest markers for test categorization (unit, integration)
- Small graph fixtures shared by propagation and screening tests
"""
from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

import pytest


# ==============================================================================
# Path Setup - Ensures copra/ and scripts/ are importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from copra.community.labelset import MembershipTable  # noqa: E402
from copra.graph.builder import WeightedGraph, build_graph_from_edges  # noqa: E402
from copra.logging_utils import ConsoleFilter  # noqa: E402


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "unit: Fast tests with no I/O",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests touching the file system or running full propagation",
    )
    config.addinivalue_line(
        "markers",
        "property: Hypothesis property-based tests over random graphs",
    )


# ==============================================================================
# Graph Fixtures
# ==============================================================================

@pytest.fixture
def triangle_graph() -> WeightedGraph:
    """Three vertices, unit weights, every pair connected."""
    return build_graph_from_edges([(0, 1), (1, 2), (0, 2)])


@pytest.fixture
def path_graph() -> WeightedGraph:
    """Path 0-1-2-3-4 plus a detached edge 5-6."""
    return build_graph_from_edges([(0, 1), (1, 2), (2, 3), (3, 4), (5, 6)])


@pytest.fixture
def path_labels() -> MembershipTable:
    """Path communities: {0, 1, 2} anchored at 1, {3, 4} at 3, {5, 6} at 5."""
    vcom = MembershipTable(7)
    for u, c in enumerate([1, 1, 1, 3, 3, 5, 5]):
        vcom[u].set_singleton(c)
    return vcom


@pytest.fixture
def two_cliques_graph() -> WeightedGraph:
    """Two 4-cliques {0..3} and {4..7} joined by the bridge 3-4."""
    left = [(u, v) for u in range(4) for v in range(u + 1, 4)]
    right = [(u, v) for u in range(4, 8) for v in range(u + 1, 8)]
    return build_graph_from_edges(left + right + [(3, 4)])


@pytest.fixture
def make_labels():
    """Factory building a table from ``{vertex: [(community, coefficient), ...]}``.

    Vertices missing from ``rows`` are singletons.
    """

    def _make(span: int, rows: dict, capacity: int = 8) -> MembershipTable:
        vcom = MembershipTable(span, capacity)
        for u in range(span):
            vcom[u].assign(rows.get(u, [(u, 1.0)]))
        return vcom

    return _make


# ==============================================================================
# Logging Fixtures
# ==============================================================================

@pytest.fixture
def restore_root_logger():
    """Drop handlers installed by ``setup_logging`` once the test is done."""
    root_logger = logging.getLogger()
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        installed = isinstance(handler, logging.handlers.RotatingFileHandler) or any(
            isinstance(f, ConsoleFilter) for f in handler.filters
        )
        if installed:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
