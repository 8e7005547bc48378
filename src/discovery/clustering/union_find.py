"""
Disjoint-set forest over dense integer ids.

Parents and sizes live in flat arrays indexed by element id. Used twice: over
sequence indices for clustering and over state ids for model merging.
"""

import numpy as np


class UnionFind:
    """
    Union by size with path compression.

    Ties in size keep the smaller id as root, so the resulting roots only
    depend on the sequence of unions, never on memory layout.
    """

    def __init__(self, n: int = 0):
        self._parent = np.arange(n, dtype=np.int64)
        self._size = np.ones(n, dtype=np.int64)

    def __len__(self) -> int:
        return len(self._parent)

    def add(self, count: int = 1) -> int:
        """Append ``count`` singleton elements; returns the first new id."""
        first = len(self._parent)
        self._parent = np.concatenate([self._parent, np.arange(first, first + count, dtype=np.int64)])
        self._size = np.concatenate([self._size, np.ones(count, dtype=np.int64)])
        return first

    def find(self, x: int) -> int:
        parent = self._parent
        root = int(x)
        while parent[root] != root:
            root = int(parent[root])
        # Path compression
        while parent[x] != root:
            parent[x], x = root, int(parent[x])
        return root

    def union(self, a: int, b: int) -> int:
        """Merge the sets of ``a`` and ``b``; returns the surviving root."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return ra
        if self._size[ra] < self._size[rb] or (self._size[ra] == self._size[rb] and rb < ra):
            ra, rb = rb, ra
        self._parent[rb] = ra
        self._size[ra] += self._size[rb]
        return ra

    def connected(self, a: int, b: int) -> bool:
        return self.find(a) == self.find(b)

    def size(self, x: int) -> int:
        """Number of elements in the set containing ``x``."""
        return int(self._size[self.find(x)])

    def roots(self) -> list[int]:
        return [x for x in range(len(self._parent)) if self._parent[x] == x]

    def groups(self) -> dict[int, list[int]]:
        """Root -> sorted members, roots in ascending order."""
        groups: dict[int, list[int]] = {}
        for x in range(len(self._parent)):
            groups.setdefault(self.find(x), []).append(x)
        return dict(sorted(groups.items()))
