"""
Synthetic motif corpus.

Builds sequences whose ground truth is known: each motif is a short chain of
"acoustic units" (fixed centre vectors); every instance of a motif holds each
unit for a random number of frames and adds Gaussian noise. Instances of the
same motif are therefore DTW-close, instances of different motifs are not.
"""

from typing import Optional

import numpy as np

from ..utils.seed import get_rng
from .store import SequenceStore


def make_motif(
    n_units: int,
    dim: int,
    seed: int,
    motif_id: int,
    separation: float = 5.0,
) -> np.ndarray:
    """Unit centres [n_units, D] of one motif."""
    rng = get_rng(seed, motif_id)
    return (rng.normal(0.0, 1.0, size=(n_units, dim)) * separation).astype(np.float32)


def render_instance(
    units: np.ndarray,
    rng: np.random.Generator,
    min_duration: int = 2,
    max_duration: int = 5,
    noise: float = 0.1,
) -> np.ndarray:
    """
    Render one instance of a motif.

    Args:
        units: Unit centres [K, D]
        rng: Generator for durations and noise
        min_duration: Minimum frames per unit
        max_duration: Maximum frames per unit (inclusive)
        noise: Std of additive Gaussian noise

    Returns:
        Frames [T, D] with T = sum of unit durations
    """
    durations = rng.integers(min_duration, max_duration + 1, size=len(units))
    frames = np.repeat(units, durations, axis=0)
    frames = frames + rng.normal(0.0, noise, size=frames.shape)
    return frames.astype(np.float32)


def make_synthetic_corpus(
    n_motifs: int = 3,
    instances_per_motif: int = 4,
    n_units: int = 4,
    dim: int = 8,
    seed: int = 42,
    noise: float = 0.1,
    min_duration: int = 2,
    max_duration: int = 5,
    separation: float = 5.0,
    shuffle: bool = True,
    source_file: Optional[str] = None,
) -> tuple[SequenceStore, dict[int, int]]:
    """
    Create a corpus of motif instances.

    Args:
        n_motifs: Number of distinct motifs
        instances_per_motif: Instances rendered per motif
        n_units: Units per motif
        dim: Frame dimension
        seed: Random seed
        noise: Std of additive frame noise
        min_duration: Minimum frames per unit
        max_duration: Maximum frames per unit
        separation: Scale of the unit centres (larger = easier)
        shuffle: Interleave motifs in the id order
        source_file: Source label stored on every sequence

    Returns:
        Tuple of (store, labels) where labels maps seq_id -> motif id
    """
    items = []
    for motif_id in range(n_motifs):
        units = make_motif(n_units, dim, seed, motif_id, separation)
        for instance in range(instances_per_motif):
            rng = get_rng(seed, motif_id, instance + 1)
            frames = render_instance(units, rng, min_duration, max_duration, noise)
            items.append((motif_id, frames))

    if shuffle:
        order = get_rng(seed, n_motifs + 1000).permutation(len(items))
        items = [items[i] for i in order]

    store = SequenceStore()
    labels = {}
    offset = 0.0
    for seq_id, (motif_id, frames) in enumerate(items):
        duration = float(len(frames))
        store.add(
            seq_id,
            frames,
            source_file=source_file or f"synthetic_motif{motif_id}.wav",
            start_sec=offset,
            stop_sec=offset + duration,
        )
        labels[seq_id] = motif_id
        offset += duration

    return store, labels
