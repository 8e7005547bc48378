"""
I/O utilities for zarr and parquet storage.

Sequences are stored one zarr group per segment (group key = sequence id),
segment metadata in a parquet index table.
"""

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import zarr

from .store import SequenceStore

INDEX_COLUMNS = ["seq_id", "source_file", "start_sec", "stop_sec", "n_frames"]


def save_sequence_zarr(
    frames: np.ndarray,
    seq_id: int,
    zarr_path: str | Path,
    source_file: str = "",
    start_sec: float = 0.0,
    stop_sec: float = 0.0,
) -> None:
    """
    Save the frames of a single segment to a zarr store.

    Args:
        frames: Feature frames [T, D]
        seq_id: Sequence ID (used as group key)
        zarr_path: Path to zarr store
        source_file: Recording the segment was cut from
        start_sec: Segment start within the recording
        stop_sec: Segment stop within the recording
    """
    store = zarr.open(str(zarr_path), mode="a")
    grp = store.create_group(str(int(seq_id)), overwrite=True)
    grp.array("frames", np.asarray(frames, dtype=np.float32), dtype="float32")

    grp.attrs["source_file"] = str(source_file)
    grp.attrs["start_sec"] = float(start_sec)
    grp.attrs["stop_sec"] = float(stop_sec)
    grp.attrs["n_frames"] = int(frames.shape[0])
    grp.attrs["frame_dim"] = int(frames.shape[1])


def load_sequence_zarr(
    seq_id: int,
    zarr_path: str | Path,
) -> tuple[np.ndarray, dict]:
    """
    Load the frames of a single segment from a zarr store.

    Returns:
        Tuple of (frames [T, D], attributes dict)
    """
    store = zarr.open(str(zarr_path), mode="r")
    grp = store[str(int(seq_id))]
    return np.array(grp["frames"]), dict(grp.attrs)


def get_zarr_sequence_ids(zarr_path: str | Path) -> list[int]:
    """Get all sequence IDs stored in a zarr store, sorted."""
    store = zarr.open(str(zarr_path), mode="r")
    return sorted(int(k) for k in store.group_keys())


def save_segments_index(
    segments: list[dict] | pd.DataFrame,
    output_path: str | Path,
) -> None:
    """
    Save the segment index to parquet.

    Args:
        segments: Rows with keys seq_id, source_file, start_sec, stop_sec, n_frames
        output_path: Path to output parquet file
    """
    df = segments if isinstance(segments, pd.DataFrame) else pd.DataFrame(segments, columns=INDEX_COLUMNS)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(str(output_path), index=False)


def load_segments_index(index_path: str | Path) -> pd.DataFrame:
    """Load the segment index from parquet."""
    df = pd.read_parquet(str(index_path))
    missing = [c for c in INDEX_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Segment index {index_path} lacks columns: {missing}")
    return df


def save_store(
    store: SequenceStore,
    zarr_path: str | Path,
    index_path: str | Path,
) -> None:
    """Persist every sequence of ``store`` plus its segment index."""
    Path(zarr_path).parent.mkdir(parents=True, exist_ok=True)
    for s in store:
        save_sequence_zarr(s.frames, s.seq_id, zarr_path, s.source_file, s.start_sec, s.stop_sec)
    save_segments_index(store.index_records(), index_path)


def load_store(
    zarr_path: str | Path,
    index_path: Optional[str | Path] = None,
) -> SequenceStore:
    """
    Load a SequenceStore.

    With an index, sequences are loaded in index order (and only those listed);
    without one, every group in the zarr store is loaded in id order.
    """
    if index_path is not None:
        index = load_segments_index(index_path)
        seq_ids = [int(x) for x in index["seq_id"]]
    else:
        seq_ids = get_zarr_sequence_ids(zarr_path)

    store = SequenceStore()
    for seq_id in seq_ids:
        frames, attrs = load_sequence_zarr(seq_id, zarr_path)
        store.add(
            seq_id,
            frames,
            source_file=attrs.get("source_file", ""),
            start_sec=attrs.get("start_sec", 0.0),
            stop_sec=attrs.get("stop_sec", 0.0),
        )
    return store
