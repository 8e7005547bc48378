"""
Error taxonomy for the discovery pipeline.

AlignmentInfeasible and DegenerateCluster are recoverable per pair / per
cluster. InvalidConfiguration and IncompleteMatrix abort the run.
"""

from typing import Any, Sequence


class DiscoveryError(RuntimeError):
    """Base class for all pipeline errors."""


class InvalidConfiguration(DiscoveryError, ValueError):
    """Raised at startup when a configuration value is out of range."""

    def __init__(self, parameter: str, value: Any, reason: str = ""):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        message = f"Invalid configuration: {parameter}={value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class AlignmentInfeasible(DiscoveryError):
    """Raised when the warping band leaves the terminal cell unreachable."""

    def __init__(
        self,
        seq_a: Any,
        seq_b: Any,
        len_a: int,
        len_b: int,
        band_percentage: float,
    ):
        self.seq_a = seq_a
        self.seq_b = seq_b
        self.len_a = len_a
        self.len_b = len_b
        self.band_percentage = band_percentage
        super().__init__(
            f"No alignment between {seq_a} (len={len_a}) and {seq_b} (len={len_b}) "
            f"within warping_band_percentage={band_percentage}"
        )


class IncompleteMatrix(DiscoveryError):
    """Raised when clustering starts on a distance matrix with unset cells."""

    def __init__(self, missing: Sequence[tuple]):
        self.missing = list(missing)
        preview = ", ".join(f"({a}, {b})" for a, b in self.missing[:5])
        if len(self.missing) > 5:
            preview += ", ..."
        super().__init__(f"Distance matrix has {len(self.missing)} unset cells: {preview}")


class DegenerateCluster(DiscoveryError):
    """Raised when model merging leaves a cluster without any state."""

    def __init__(self, cluster_id: Any, members: Sequence[Any], threshold: float):
        self.cluster_id = cluster_id
        self.members = list(members)
        self.threshold = threshold
        super().__init__(
            f"Cluster {cluster_id} (members={self.members}) has no states left "
            f"after merging with threshold={threshold:.4f}"
        )
