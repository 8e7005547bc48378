"""
Average-linkage (UPGMA) agglomerative clustering driven by union-find.

The stopping threshold is fixed once, before the first merge, as a
percentile of all pairwise distances: with ``clustering_percentile=0.05``
only pairs as close as the closest 5% of the corpus may ever merge. Merges
then proceed greedily, closest pair first, with the weighted update

    d(new, k) = (size_a * d(a, k) + size_b * d(b, k)) / (size_a + size_b)

The loop is strictly sequential: every merge changes the linkage table the
next decision reads.
"""

import heapq
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from ..alignment.matrix import DistanceMatrix
from ..errors import InvalidConfiguration
from ..utils.logging import get_logger
from .union_find import UnionFind


def percentile_threshold(values, q: float) -> float:
    """
    Nearest-rank percentile of the finite ``values``.

    Sorts ascending and returns the element at ``min(floor(len * q), len - 1)``;
    q=0 is the minimum, q=1 the maximum.
    """
    values = np.asarray(values, dtype=np.float64).ravel()
    values = np.sort(values[np.isfinite(values)])
    if len(values) == 0:
        raise ValueError("No finite values to take a percentile of")
    idx = min(int(len(values) * q), len(values) - 1)
    return float(values[idx])


@dataclass(frozen=True)
class MergeEvent:
    """One dendrogram step: clusters a and b merged at ``distance``."""

    cluster_a: int
    cluster_b: int
    distance: float
    into: int
    size: int

    def to_dict(self) -> dict:
        return {
            "cluster_a": self.cluster_a,
            "cluster_b": self.cluster_b,
            "distance": self.distance,
            "into": self.into,
            "size": self.size,
        }


@dataclass
class ClusteringResult:
    """Final partition plus the merge order that produced it."""

    assignment: dict[int, int]  # seq_id -> cluster id (seq_id of the root)
    merges: list[MergeEvent] = field(default_factory=list)
    threshold: float = -math.inf

    def clusters(self, min_size: int = 1) -> dict[int, list[int]]:
        """Cluster id -> sorted member ids, clusters in ascending id order."""
        groups: dict[int, list[int]] = {}
        for seq_id, cluster_id in self.assignment.items():
            groups.setdefault(cluster_id, []).append(seq_id)
        return {
            c: sorted(members)
            for c, members in sorted(groups.items())
            if len(members) >= min_size
        }

    @property
    def n_clusters(self) -> int:
        return len(set(self.assignment.values()))

    def to_dict(self) -> dict:
        return {
            "threshold": self.threshold if math.isfinite(self.threshold) else None,
            "n_clusters": self.n_clusters,
            "merges": [m.to_dict() for m in self.merges],
            "clusters": {str(c): members for c, members in self.clusters().items()},
        }


def _key(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def upgma(
    distances: DistanceMatrix | np.ndarray,
    clustering_percentile: float,
    ids: Optional[list[int]] = None,
) -> ClusteringResult:
    """
    Cluster sequences by average linkage until the closest pair is above the
    percentile threshold.

    Args:
        distances: DistanceMatrix (must be complete) or an [N, N] array;
            asymmetric input is symmetrised as (D + D^T) / 2
        clustering_percentile: Percentile in [0, 1] of pairwise distances
            used as the stopping threshold
        ids: Sequence ids for the rows of a raw array (default 0..N-1)

    Returns:
        ClusteringResult

    Raises:
        IncompleteMatrix: if a DistanceMatrix has unset cells
        InvalidConfiguration: if the percentile is outside [0, 1]
    """
    logger = get_logger()
    if not (0.0 <= clustering_percentile <= 1.0):
        raise InvalidConfiguration("clustering_percentile", clustering_percentile, "must be in [0, 1]")

    if isinstance(distances, DistanceMatrix):
        distances.require_complete()
        ids = list(distances.ids)
        dist = distances.symmetrized()
    else:
        dist = np.asarray(distances, dtype=np.float64)
        dist = (dist + dist.T) / 2.0
        ids = list(ids) if ids is not None else list(range(len(dist)))
    n = len(ids)
    if dist.shape != (n, n):
        raise ValueError(f"Distance matrix shape {dist.shape} does not match {n} ids")
    if np.isnan(dist).any():
        raise ValueError("Distance matrix contains NaN cells")

    # Rows in ascending id order: heap ties and union-find ties then both
    # resolve to the lowest cluster id
    order = sorted(range(n), key=lambda k: ids[k])
    ids = [ids[k] for k in order]
    dist = dist[np.ix_(order, order)]

    # Working linkage table over unordered pairs of live roots
    table = {(a, b): float(dist[a, b]) for a in range(n) for b in range(a + 1, n)}
    finite = [d for d in table.values() if math.isfinite(d)]
    if not finite:
        logger.info(f"Clustering {n} sequences: no finite pairwise distance, nothing to merge")
        return ClusteringResult(assignment={s: s for s in ids})

    threshold = percentile_threshold(finite, clustering_percentile)
    logger.info(
        f"Clustering {n} sequences with threshold {threshold:.4f} "
        f"(percentile={clustering_percentile})"
    )

    uf = UnionFind(n)
    sizes = [1] * n
    alive = set(range(n))
    heap = [(d, a, b) for (a, b), d in table.items() if math.isfinite(d)]
    heapq.heapify(heap)
    merges = []

    while heap and len(alive) > 1:
        d, a, b = heapq.heappop(heap)
        # Skip entries made stale by earlier merges
        if a not in alive or b not in alive or table.get((a, b)) != d:
            continue
        if d > threshold:
            break

        size_a, size_b = sizes[a], sizes[b]
        root = uf.union(a, b)
        absorbed = b if root == a else a
        del table[(a, b)]

        for k in sorted(alive - {a, b}):
            d_ak = table.pop(_key(a, k))
            d_bk = table.pop(_key(b, k))
            linkage = (size_a * d_ak + size_b * d_bk) / (size_a + size_b)
            table[_key(root, k)] = linkage
            if math.isfinite(linkage):
                heapq.heappush(heap, (linkage, *_key(root, k)))

        alive.discard(absorbed)
        sizes[root] = size_a + size_b
        merges.append(MergeEvent(
            cluster_a=ids[a],
            cluster_b=ids[b],
            distance=d,
            into=ids[root],
            size=size_a + size_b,
        ))
        logger.debug(f"Merged {ids[a]} + {ids[b]} -> {ids[root]} at {d:.4f}")

    assignment = {ids[x]: ids[uf.find(x)] for x in range(n)}
    result = ClusteringResult(assignment=assignment, merges=merges, threshold=threshold)
    logger.info(f"Clustering done: {len(merges)} merges, {result.n_clusters} clusters")
    return result
