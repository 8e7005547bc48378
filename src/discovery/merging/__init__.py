"""Merging of clustered sequences into state-chain models."""

from .model import MergedModel, State
from .merger import (
    ModelMerger,
    derive_merge_threshold,
    merge_cluster,
    merge_clusters,
    smooth_distances,
)
from .decoding import classify_sequences, score_sequence

__all__ = [
    "MergedModel",
    "State",
    "ModelMerger",
    "derive_merge_threshold",
    "merge_cluster",
    "merge_clusters",
    "smooth_distances",
    "classify_sequences",
    "score_sequence",
]
