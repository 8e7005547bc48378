"""Agglomerative clustering of aligned sequences."""

from .union_find import UnionFind
from .upgma import ClusteringResult, MergeEvent, percentile_threshold, upgma

__all__ = [
    "UnionFind",
    "ClusteringResult",
    "MergeEvent",
    "percentile_threshold",
    "upgma",
]
