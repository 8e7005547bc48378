"""Sequence alignment: banded weighted DTW and the pairwise distance matrix."""

from .dtw import (
    Alignment,
    AlignmentParams,
    AlignmentPath,
    AlignmentStep,
    StepKind,
    align,
    band_range,
    euclidean,
    frame_distances,
    in_band,
)
from .matrix import DistanceMatrix, build_distance_matrix, paths_for_cluster

__all__ = [
    "Alignment",
    "AlignmentParams",
    "AlignmentPath",
    "AlignmentStep",
    "StepKind",
    "align",
    "band_range",
    "euclidean",
    "frame_distances",
    "in_band",
    "DistanceMatrix",
    "build_distance_matrix",
    "paths_for_cluster",
]
