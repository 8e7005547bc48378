"""
In-memory store of segmented feature sequences.

Each interesting segment found by the upstream detector becomes one
``Sequence``: a [T, D] float32 frame array with a stable integer id and the
location of the segment in its source recording. Frame order is load-bearing
(alignment depends on it), so frame arrays are frozen on insertion.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np


@dataclass(frozen=True, eq=False)
class Sequence:
    """One segment's feature frames plus provenance."""

    seq_id: int
    frames: np.ndarray  # [T, D] float32, read-only
    source_file: str = ""
    start_sec: float = 0.0
    stop_sec: float = 0.0

    def __len__(self) -> int:
        return int(self.frames.shape[0])

    @property
    def dim(self) -> int:
        return int(self.frames.shape[1])

    def frame(self, t: int) -> np.ndarray:
        """Get single frame [D]."""
        return self.frames[t]


def _freeze_frames(frames: np.ndarray) -> np.ndarray:
    frames = np.array(frames, dtype=np.float32, copy=True)
    if frames.ndim == 1:
        frames = frames[:, None]
    if frames.ndim != 2:
        raise ValueError(f"Frames must be [T, D], got shape {frames.shape}")
    frames.setflags(write=False)
    return frames


class SequenceStore:
    """
    Ordered collection of sequences keyed by id.

    All sequences must share one frame dimension and contain at least one
    frame. Insertion order defines the row/column order of the distance
    matrix built from the store.
    """

    def __init__(self) -> None:
        self._sequences: dict[int, Sequence] = {}
        self._dim: Optional[int] = None

    def add(
        self,
        seq_id: int,
        frames: np.ndarray,
        source_file: str = "",
        start_sec: float = 0.0,
        stop_sec: float = 0.0,
    ) -> Sequence:
        """Add a sequence; ids must be unique."""
        seq_id = int(seq_id)
        if seq_id in self._sequences:
            raise ValueError(f"Duplicate sequence id: {seq_id}")

        frames = _freeze_frames(frames)
        if frames.shape[0] == 0:
            raise ValueError(f"Sequence {seq_id} has no frames")
        if self._dim is None:
            self._dim = int(frames.shape[1])
        elif frames.shape[1] != self._dim:
            raise ValueError(
                f"Sequence {seq_id} has frame dim {frames.shape[1]}, store uses {self._dim}"
            )

        sequence = Sequence(
            seq_id=seq_id,
            frames=frames,
            source_file=str(source_file),
            start_sec=float(start_sec),
            stop_sec=float(stop_sec),
        )
        self._sequences[seq_id] = sequence
        return sequence

    @classmethod
    def from_arrays(cls, arrays: list[np.ndarray]) -> "SequenceStore":
        """Build a store from bare frame arrays, numbering them 0..N-1."""
        store = cls()
        for i, frames in enumerate(arrays):
            store.add(i, frames)
        return store

    @property
    def dim(self) -> Optional[int]:
        return self._dim

    def ids(self) -> list[int]:
        return list(self._sequences)

    def get(self, seq_id: int) -> Sequence:
        return self._sequences[seq_id]

    def __getitem__(self, seq_id: int) -> Sequence:
        return self._sequences[seq_id]

    def __contains__(self, seq_id: object) -> bool:
        return seq_id in self._sequences

    def __len__(self) -> int:
        return len(self._sequences)

    def __iter__(self) -> Iterator[Sequence]:
        return iter(self._sequences.values())

    def subset(self, seq_ids: list[int]) -> "SequenceStore":
        """Return a new store with only ``seq_ids`` (in the given order)."""
        store = SequenceStore()
        for seq_id in seq_ids:
            s = self._sequences[seq_id]
            store.add(s.seq_id, s.frames, s.source_file, s.start_sec, s.stop_sec)
        return store

    def index_records(self) -> list[dict]:
        """Segment metadata rows, one per sequence, in store order."""
        return [
            {
                "seq_id": s.seq_id,
                "source_file": s.source_file,
                "start_sec": s.start_sec,
                "stop_sec": s.stop_sec,
                "n_frames": len(s),
            }
            for s in self._sequences.values()
        ]
