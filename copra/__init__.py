"""Overlapping community detection by multi-label propagation, with incremental updates."""

__version__ = "0.1.0"
