"""
End-to-end smoke test: synthetic motifs in, clusters and models out.
"""

import json

import numpy as np
import pytest

# Output tables are written with pandas
pytest.importorskip("pandas")

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pandas as pd

from discovery.analysis.run_discovery import run_discovery
from discovery.config import DiscoveryConfig
from discovery.data.store import SequenceStore
from discovery.data.synthetic import make_synthetic_corpus
from discovery.errors import IncompleteMatrix, InvalidConfiguration


def _config(**overrides) -> dict:
    config = {
        "seed": 0,
        "alignment": {"warping_band_percentage": 1.0, "alignment_workers": 2},
        # 2 motifs x 3 instances: 6 of the 15 pairs are within-motif
        "clustering": {"clustering_percentile": 0.35, "min_cluster_size": 2},
        "merging": {"merge_threshold": 1.0},
    }
    config.update(overrides)
    return config


@pytest.fixture
def corpus():
    return make_synthetic_corpus(
        n_motifs=2, instances_per_motif=3, n_units=3, dim=4, seed=0, noise=0.05
    )


def _partition(groups) -> set:
    return {frozenset(g) for g in groups}


class TestSyntheticPipeline:

    def test_recovers_motifs(self, corpus):
        store, labels = corpus
        result = run_discovery(_config(), store)

        by_label: dict = {}
        for seq_id, label in labels.items():
            by_label.setdefault(label, []).append(seq_id)
        assert _partition(result.clustering.clusters().values()) == _partition(by_label.values())

    def test_one_state_per_unit(self, corpus):
        store, _ = corpus
        result = run_discovery(_config(), store)

        assert len(result.models) == 2
        assert result.degenerate == []
        for model in result.models.values():
            assert model.n_states == 3
            assert all(s.self_transition for s in model.states)
            assert model.transitions == {(0, 1): 3, (1, 2): 3}

    def test_decoding_agrees_with_clusters(self, corpus):
        store, _ = corpus
        result = run_discovery(_config(), store)
        assert result.accuracy == 1.0

    def test_derived_merge_threshold(self, corpus):
        store, _ = corpus
        result = run_discovery(
            _config(merging={"merge_threshold": None, "merge_percentile": 0.5}), store
        )
        assert result.merge_threshold > 0.0
        assert result.merge_threshold < 1.0

    def test_identical_sequences_with_derived_threshold(self):
        """Zero MATCH distances still merge when the threshold is derived."""
        store = SequenceStore()
        frames = np.array([[0.0], [10.0], [20.0]])
        store.add(0, frames)
        store.add(1, frames.copy())
        result = run_discovery(
            _config(
                clustering={"clustering_percentile": 1.0, "min_cluster_size": 2},
                merging={"merge_threshold": None},
            ),
            store,
        )

        assert result.merge_threshold > 0.0
        assert result.degenerate == []
        assert list(result.models) == [0]
        model = result.models[0]
        assert model.n_states == 3
        assert [s.n_frames for s in model.states] == [2, 2, 2]

    def test_outputs_written(self, corpus, tmp_path):
        store, labels = corpus
        result = run_discovery(_config(), store, tmp_path, labels=labels)

        for name in (
            "dendrogram.json",
            "clusters.json",
            "models.json",
            "distance_matrix.npy",
            "clusters.csv",
            "decoding.csv",
            "summary.json",
            "report.txt",
        ):
            assert (tmp_path / name).exists(), name

        with open(tmp_path / "summary.json") as f:
            summary = json.load(f)
        assert summary["n_clusters"] == 2
        assert summary == json.loads(json.dumps(result.summary, default=str))

        clusters = pd.read_csv(tmp_path / "clusters.csv")
        assert len(clusters) == len(store)
        assert clusters.groupby("cluster")["label"].nunique().max() == 1

        assert np.load(tmp_path / "distance_matrix.npy").shape == (6, 6)

    def test_config_object_accepted(self, corpus):
        store, _ = corpus
        config = DiscoveryConfig.from_dict(_config())
        result = run_discovery(config, store)
        assert result.clustering.n_clusters == 2

    def test_invalid_config_before_any_work(self, corpus):
        store, _ = corpus
        with pytest.raises(InvalidConfiguration):
            run_discovery(_config(alignment={"warping_band_percentage": 2.0}), store)

    def test_cancelled_alignment_aborts(self, corpus):
        import threading

        store, _ = corpus
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(IncompleteMatrix):
            run_discovery(_config(), store, cancel=cancel)
