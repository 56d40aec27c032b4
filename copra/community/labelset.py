"""Fixed-capacity community label sets and the per-vertex membership table.

A label set is an ordered list of at most ``L`` ``(community, coefficient)``
pairs. Entries in use have a non-zero coefficient; the first zero coefficient
marks the end of the list. Index 0 always holds the dominant community.
"""
from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from copra.config import COPRA_LABELS


class LabelSet:
    """Community memberships of a single vertex.

    The backing arrays may be views into a :class:`MembershipTable` row, in
    which case every write goes straight to the table.
    """

    __slots__ = ("communities", "coefficients")

    def __init__(
        self,
        capacity: int = COPRA_LABELS,
        *,
        communities: Optional[np.ndarray] = None,
        coefficients: Optional[np.ndarray] = None,
    ) -> None:
        if communities is None or coefficients is None:
            communities = np.zeros(capacity, dtype=np.int64)
            coefficients = np.zeros(capacity, dtype=np.float64)
        self.communities = communities
        self.coefficients = coefficients

    @property
    def capacity(self) -> int:
        return int(self.coefficients.shape[0])

    @property
    def dominant(self) -> int:
        return int(self.communities[0])

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        for c, b in zip(self.communities.tolist(), self.coefficients.tolist()):
            if not b:
                break
            yield c, b

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __repr__(self) -> str:
        return f"LabelSet({self.to_list()!r})"

    def to_list(self) -> List[Tuple[int, float]]:
        return list(self)

    def clear(self) -> None:
        self.communities[:] = 0
        self.coefficients[:] = 0.0

    def assign(self, entries: Iterable[Tuple[int, float]]) -> None:
        """Overwrite with ``entries`` in order, truncated to capacity."""
        self.clear()
        for i, (c, b) in enumerate(entries):
            if i >= self.capacity:
                break
            self.communities[i] = c
            self.coefficients[i] = b

    def set_singleton(self, community: int) -> None:
        self.clear()
        self.communities[0] = community
        self.coefficients[0] = 1.0

    def copy(self) -> "LabelSet":
        return LabelSet(
            communities=self.communities.copy(),
            coefficients=self.coefficients.copy(),
        )


class MembershipTable:
    """One label set per vertex key, stored as two ``(span, L)`` arrays."""

    def __init__(self, span: int, capacity: int = COPRA_LABELS) -> None:
        self.communities = np.zeros((span, capacity), dtype=np.int64)
        self.coefficients = np.zeros((span, capacity), dtype=np.float64)

    @property
    def span(self) -> int:
        return int(self.communities.shape[0])

    @property
    def capacity(self) -> int:
        return int(self.communities.shape[1])

    def __len__(self) -> int:
        return self.span

    def __getitem__(self, u: int) -> LabelSet:
        return LabelSet(communities=self.communities[u], coefficients=self.coefficients[u])

    def __iter__(self) -> Iterator[LabelSet]:
        for u in range(self.span):
            yield self[u]

    def dominant(self, u: int) -> int:
        return int(self.communities[u, 0])

    def copy(self) -> "MembershipTable":
        table = MembershipTable(0, self.capacity)
        table.communities = self.communities.copy()
        table.coefficients = self.coefficients.copy()
        return table

    def extended(self, span: int) -> "MembershipTable":
        """Copy of this table grown to ``span``; new keys join their own community."""
        if span <= self.span:
            return self.copy()
        table = MembershipTable(span, self.capacity)
        table.communities[: self.span] = self.communities
        table.coefficients[: self.span] = self.coefficients
        new_keys = np.arange(self.span, span, dtype=np.int64)
        table.communities[self.span :, 0] = new_keys
        table.coefficients[self.span :, 0] = 1.0
        return table
