"""
Tests for the sequence store and its zarr/parquet persistence.
"""

import numpy as np
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery.data.store import SequenceStore


class TestSequenceStore:

    def test_add_and_get(self):
        store = SequenceStore()
        seq = store.add(5, np.ones((3, 2)), source_file="a.wav", start_sec=1.0, stop_sec=2.0)
        assert store[5] is seq
        assert len(seq) == 3
        assert seq.dim == 2
        assert store.dim == 2
        assert 5 in store

    def test_frames_are_read_only(self):
        store = SequenceStore()
        seq = store.add(0, np.zeros((2, 2)))
        with pytest.raises(ValueError):
            seq.frames[0, 0] = 1.0

    def test_duplicate_id_rejected(self):
        store = SequenceStore()
        store.add(0, np.zeros((2, 2)))
        with pytest.raises(ValueError):
            store.add(0, np.zeros((2, 2)))

    def test_dim_mismatch_rejected(self):
        store = SequenceStore()
        store.add(0, np.zeros((2, 2)))
        with pytest.raises(ValueError):
            store.add(1, np.zeros((2, 3)))

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            SequenceStore().add(0, np.zeros((0, 2)))

    def test_subset_keeps_order(self):
        store = SequenceStore.from_arrays([np.zeros((2, 1)), np.ones((3, 1)), np.ones((1, 1))])
        sub = store.subset([2, 0])
        assert sub.ids() == [2, 0]

    def test_index_records(self):
        store = SequenceStore()
        store.add(3, np.zeros((4, 2)), source_file="x.wav", start_sec=0.5, stop_sec=0.9)
        assert store.index_records() == [{
            "seq_id": 3,
            "source_file": "x.wav",
            "start_sec": 0.5,
            "stop_sec": 0.9,
            "n_frames": 4,
        }]


class TestPersistence:
    """Round trip through zarr groups and a parquet index."""

    @pytest.fixture(autouse=True)
    def _deps(self):
        pytest.importorskip("zarr")
        pytest.importorskip("pandas")
        pytest.importorskip("pyarrow")

    def _store(self) -> SequenceStore:
        rng = np.random.default_rng(0)
        store = SequenceStore()
        store.add(4, rng.normal(size=(5, 3)), source_file="a.wav", start_sec=0.0, stop_sec=0.5)
        store.add(1, rng.normal(size=(7, 3)), source_file="b.wav", start_sec=1.0, stop_sec=1.7)
        return store

    def test_save_load_with_index(self, tmp_path):
        from discovery.data.io import load_store, save_store

        store = self._store()
        zarr_path = tmp_path / "segments.zarr"
        index_path = tmp_path / "segments_index.parquet"
        save_store(store, zarr_path, index_path)

        loaded = load_store(zarr_path, index_path)
        assert loaded.ids() == [4, 1]
        assert np.allclose(loaded[1].frames, store[1].frames)
        assert loaded[4].source_file == "a.wav"
        assert loaded[1].stop_sec == pytest.approx(1.7)

    def test_load_without_index_sorted_ids(self, tmp_path):
        from discovery.data.io import load_store, save_store

        zarr_path = tmp_path / "segments.zarr"
        save_store(self._store(), zarr_path, tmp_path / "index.parquet")
        assert load_store(zarr_path).ids() == [1, 4]

    def test_index_columns_checked(self, tmp_path):
        import pandas as pd
        from discovery.data.io import load_segments_index

        path = tmp_path / "bad.parquet"
        pd.DataFrame({"seq_id": [0]}).to_parquet(path, index=False)
        with pytest.raises(ValueError):
            load_segments_index(path)

    def test_single_sequence_attrs(self, tmp_path):
        from discovery.data.io import load_sequence_zarr, save_sequence_zarr

        zarr_path = tmp_path / "one.zarr"
        save_sequence_zarr(np.ones((3, 2)), 9, zarr_path, source_file="c.wav")
        frames, attrs = load_sequence_zarr(9, zarr_path)
        assert frames.shape == (3, 2)
        assert attrs["n_frames"] == 3
        assert attrs["source_file"] == "c.wav"
