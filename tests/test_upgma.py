"""
Tests for threshold-limited average-linkage clustering.
"""

import math

import numpy as np
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery.alignment.matrix import DistanceMatrix
from discovery.clustering.upgma import percentile_threshold, upgma
from discovery.errors import IncompleteMatrix, InvalidConfiguration

def _distinct_matrix(n: int, seed: int = 0) -> np.ndarray:
    """Symmetric matrix with all off-diagonal distances distinct."""
    rng = np.random.default_rng(seed)
    values = rng.permutation(np.arange(1, n * (n - 1) // 2 + 1)).astype(np.float64)
    d = np.zeros((n, n))
    d[np.triu_indices(n, 1)] = values
    return d + d.T

class TestPercentileThreshold:

    def test_nearest_rank(self):
        values = [5.0, 1.0, 4.0, 2.0, 3.0]
        assert percentile_threshold(values, 0.0) == 1.0
        assert percentile_threshold(values, 0.5) == 3.0
        assert percentile_threshold(values, 1.0) == 5.0

    def test_ignores_infinite(self):
        assert percentile_threshold([1.0, np.inf, 2.0], 1.0) == 2.0

    def test_no_finite_values(self):
        with pytest.raises(ValueError):
            percentile_threshold([np.inf], 0.5)

class TestUpgma:
    """Merge order and stopping rule."""

    def test_five_sequences_low_percentile_single_merge(self):
        """The 5% percentile of 10 distances is the minimum: one merge."""
        d = _distinct_matrix(5)
        result = upgma(d, 0.05)

        assert len(result.merges) == 1
        assert result.n_clusters == 4
        i, j = np.unravel_index(np.argmin(d + np.eye(5) * 1e9), d.shape)
        assert {result.merges[0].cluster_a, result.merges[0].cluster_b} == {int(i), int(j)}

    def test_never_merges_above_threshold(self):
        d = _distinct_matrix(8, seed=3)
        result = upgma(d, 0.3)
        assert all(m.distance <= result.threshold for m in result.merges)

    def test_full_percentile_single_cluster(self):
        d = _distinct_matrix(6, seed=1)
        result = upgma(d, 1.0)
        assert result.n_clusters == 1
        assert len(result.merges) == 5

    def test_weighted_linkage(self):
        """A 2-member cluster counts twice as much as a singleton."""
        d = np.array([
            [0.0, 1.0, 2.0, 10.0],
            [1.0, 0.0, 2.0, 20.0],
            [2.0, 2.0, 0.0, 30.0],
            [10.0, 20.0, 30.0, 0.0],
        ])
        result = upgma(d, 1.0)
        distances = [m.distance for m in result.merges]
        # d({0,1}, 3) = 15; d({0,1,2}, 3) = (2 * 15 + 30) / 3
        assert distances == pytest.approx([1.0, 2.0, 20.0])

    def test_cluster_ids_are_roots(self):
        d = np.array([
            [0.0, 1.0, 9.0],
            [1.0, 0.0, 9.0],
            [9.0, 9.0, 0.0],
        ])
        result = upgma(d, 0.0, ids=[10, 11, 12])
        assert result.assignment == {10: 10, 11: 10, 12: 12}
        assert result.clusters() == {10: [10, 11], 12: [12]}
        assert result.clusters(min_size=2) == {10: [10, 11]}

    def test_deterministic(self):
        d = _distinct_matrix(9, seed=7)
        r1 = upgma(d, 0.4)
        r2 = upgma(d, 0.4)
        assert r1.merges == r2.merges
        assert r1.assignment == r2.assignment

    def test_asymmetric_input_symmetrised(self):
        d = np.array([
            [0.0, 1.0, 5.0],
            [3.0, 0.0, 7.0],
            [5.0, 7.0, 0.0],
        ])
        result = upgma(d, 0.0)
        assert result.merges[0].distance == pytest.approx(2.0)

    def test_infinite_pairs_never_merge(self):
        d = np.array([
            [0.0, np.inf, 1.0],
            [np.inf, 0.0, np.inf],
            [1.0, np.inf, 0.0],
        ])
        result = upgma(d, 1.0)
        assert result.clusters() == {0: [0, 2], 1: [1]}

    def test_all_infinite_stays_singletons(self):
        d = np.full((3, 3), np.inf)
        np.fill_diagonal(d, 0.0)
        result = upgma(d, 0.5)
        assert result.n_clusters == 3
        assert result.merges == []
        assert result.to_dict()["threshold"] is None

    def test_single_sequence(self):
        result = upgma(np.zeros((1, 1)), 0.5)
        assert result.assignment == {0: 0}

    def test_incomplete_matrix_rejected(self):
        costs = np.array([[0.0, np.nan], [np.nan, 0.0]])
        with pytest.raises(IncompleteMatrix):
            upgma(DistanceMatrix(ids=[0, 1], costs=costs), 0.5)

    def test_percentile_validated(self):
        with pytest.raises(InvalidConfiguration):
            upgma(np.zeros((2, 2)), 1.5)

    def test_distance_matrix_input_uses_ids(self):
        costs = np.array([[0.0, 1.0], [1.0, 0.0]])
        result = upgma(DistanceMatrix(ids=[7, 3], costs=costs), 1.0)
        assert result.assignment == {7: 3, 3: 3}

    def test_equal_distances_merge_lowest_ids(self):
        """Ties go to the lowest cluster-id pair, whatever the row order."""
        costs = np.ones((3, 3))
        np.fill_diagonal(costs, 0.0)
        result = upgma(DistanceMatrix(ids=[2, 1, 0], costs=costs), 0.0)

        first = result.merges[0]
        assert (first.cluster_a, first.cluster_b, first.into) == (0, 1, 0)
        assert (result.merges[1].cluster_a, result.merges[1].cluster_b) == (0, 2)
        assert result.assignment == {0: 0, 1: 0, 2: 0}

    def test_equal_distances_raw_array_ids(self):
        d = np.array([
            [0.0, 1.0, 1.0, 9.0],
            [1.0, 0.0, 1.0, 9.0],
            [1.0, 1.0, 0.0, 9.0],
            [9.0, 9.0, 9.0, 0.0],
        ])
        result = upgma(d, 0.0, ids=[5, 9, 1, 4])
        first = result.merges[0]
        assert (first.cluster_a, first.cluster_b, first.into) == (1, 5, 1)
        assert result.clusters(min_size=2) == {1: [1, 5, 9]}

    def test_to_dict(self):
        d = _distinct_matrix(4)
        out = upgma(d, 0.5).to_dict()
        assert set(out) == {"threshold", "n_clusters", "merges", "clusters"}
        assert math.isfinite(out["threshold"])
