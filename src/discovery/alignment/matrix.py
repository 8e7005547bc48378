"""
Pairwise distance matrix over a SequenceStore.

Every (a, b) pair is an independent DTW alignment, so the matrix is filled by
a fixed-size worker pool. Workers only produce results; the collecting thread
is the single writer of the matrix, and the matrix is handed to clustering
only after the pool has been joined.

Cell conventions:
    0.0   diagonal
    +inf  alignment infeasible under the warping band (never mergeable)
    NaN   never computed (e.g. cancelled); the matrix is then incomplete
"""

import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
from tqdm import tqdm

from ..data.store import SequenceStore
from ..errors import AlignmentInfeasible, IncompleteMatrix, InvalidConfiguration
from ..utils.logging import get_logger
from .dtw import Alignment, AlignmentParams, AlignmentPath, FrameMetric, align


@dataclass
class DistanceMatrix:
    """N x N alignment costs plus the retained alignments."""

    ids: list[int]
    costs: np.ndarray  # [N, N]
    normalized: bool = True
    alignments: dict[tuple[int, int], Alignment] = field(default_factory=dict, repr=False)
    infeasible: list[tuple[int, int]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._index = {seq_id: k for k, seq_id in enumerate(self.ids)}

    def __len__(self) -> int:
        return len(self.ids)

    def index_of(self, seq_id: int) -> int:
        return self._index[seq_id]

    def cost(self, seq_a: int, seq_b: int) -> float:
        return float(self.costs[self._index[seq_a], self._index[seq_b]])

    def missing_pairs(self) -> list[tuple[int, int]]:
        """Off-diagonal cells that were never set, as (id_a, id_b)."""
        rows, cols = np.nonzero(np.isnan(self.costs))
        return [(self.ids[r], self.ids[c]) for r, c in zip(rows, cols) if r != c]

    def is_complete(self) -> bool:
        return not self.missing_pairs()

    def require_complete(self) -> None:
        missing = self.missing_pairs()
        if missing:
            raise IncompleteMatrix(missing)

    def symmetrized(self) -> np.ndarray:
        """(C + C^T) / 2, the unordered pair distances used for clustering."""
        return (self.costs + self.costs.T) / 2.0

    def path(self, seq_a: int, seq_b: int) -> Optional[AlignmentPath]:
        """Retained path from A to B (swapping a stored B-to-A path if needed)."""
        alignment = self.alignments.get((seq_a, seq_b))
        if alignment is not None:
            return alignment.path
        alignment = self.alignments.get((seq_b, seq_a))
        if alignment is not None:
            return alignment.path.swapped()
        return None

    def is_infeasible(self, seq_a: int, seq_b: int) -> bool:
        return (seq_a, seq_b) in self.infeasible or (seq_b, seq_a) in self.infeasible

    def save(self, path: str | Path) -> None:
        """Save the cost matrix to .npy (ids to a sibling _ids.npy)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        np.save(path, self.costs)
        np.save(path.with_name(path.stem + "_ids.npy"), np.asarray(self.ids, dtype=np.int64))


def _align_task(
    seq_a: int,
    seq_b: int,
    frames_a: np.ndarray,
    frames_b: np.ndarray,
    params: AlignmentParams,
    metric: Optional[FrameMetric],
) -> tuple[int, int, Optional[Alignment]]:
    # Infeasibility is returned, not raised, so results survive process pools.
    try:
        return seq_a, seq_b, align(frames_a, frames_b, params, metric, seq_a, seq_b)
    except AlignmentInfeasible:
        return seq_a, seq_b, None


def _make_executor(executor: str, workers: int):
    if executor == "thread":
        return ThreadPoolExecutor(max_workers=workers)
    if executor == "process":
        return ProcessPoolExecutor(max_workers=workers)
    raise InvalidConfiguration("executor", executor, "must be 'thread' or 'process'")


def alignment_pairs(ids: list[int], symmetric: bool) -> list[tuple[int, int]]:
    """Ordered pairs to align: a < b only when the cost is symmetric."""
    if symmetric:
        return [(a, b) for k, a in enumerate(ids) for b in ids[k + 1 :]]
    return [(a, b) for a in ids for b in ids if a != b]


def build_distance_matrix(
    store: SequenceStore,
    params: Optional[AlignmentParams] = None,
    workers: int = 1,
    executor: str = "thread",
    normalize: bool = True,
    retain_paths: bool = True,
    metric: Optional[FrameMetric] = None,
    cancel: Optional[threading.Event] = None,
    show_progress: bool = False,
) -> DistanceMatrix:
    """
    Align all sequence pairs of ``store`` in parallel.

    Args:
        store: Sequences to align
        params: Band and penalty weights
        workers: Size of the worker pool
        executor: "thread" or "process"
        normalize: Store cost / (m + n) instead of the raw cost
        retain_paths: Keep every Alignment (paths are needed for model merging)
        metric: Optional frame distance (must be picklable for "process")
        cancel: When set, pending alignments are cancelled and their cells
            stay NaN
        show_progress: Show a tqdm progress bar

    Returns:
        DistanceMatrix (check ``is_complete()`` when ``cancel`` is used)
    """
    logger = get_logger()
    params = params or AlignmentParams()
    params.validate()
    if workers < 1:
        raise InvalidConfiguration("alignment_workers", workers, "must be >= 1")

    ids = store.ids()
    n = len(ids)
    costs = np.full((n, n), np.nan)
    np.fill_diagonal(costs, 0.0)
    matrix = DistanceMatrix(ids=ids, costs=costs, normalized=normalize)

    pairs = alignment_pairs(ids, params.symmetric)
    logger.info(
        f"Aligning {len(pairs)} pairs of {n} sequences with {workers} {executor} workers "
        f"(band={params.band_percentage})"
    )

    cancelled = 0
    with _make_executor(executor, workers) as pool:
        futures = [
            pool.submit(_align_task, a, b, store[a].frames, store[b].frames, params, metric)
            for a, b in pairs
        ]
        iterator = as_completed(futures)
        if show_progress:
            iterator = tqdm(iterator, total=len(futures), desc="Aligning")

        for future in iterator:
            if cancel is not None and cancel.is_set():
                cancelled = sum(f.cancel() for f in futures)
                break
            a, b, alignment = future.result()
            ia, ib = matrix.index_of(a), matrix.index_of(b)

            if alignment is None:
                value = np.inf
                matrix.infeasible.append((a, b))
                logger.warning(
                    f"Alignment infeasible for pair ({a}, {b}) "
                    f"with warping_band_percentage={params.band_percentage}; skipping"
                )
            else:
                value = alignment.normalized_cost if normalize else alignment.cost
                if retain_paths:
                    matrix.alignments[(a, b)] = alignment

            costs[ia, ib] = value
            if params.symmetric:
                costs[ib, ia] = value

    if cancelled:
        logger.warning(f"Alignment cancelled: {cancelled} pairs left unset")
    logger.info(
        f"Alignment done: {len(pairs) - len(matrix.infeasible)} feasible, "
        f"{len(matrix.infeasible)} infeasible"
    )
    return matrix


def paths_for_cluster(
    matrix: DistanceMatrix,
    store: SequenceStore,
    members: list[int],
    params: Optional[AlignmentParams] = None,
    metric: Optional[FrameMetric] = None,
) -> dict[tuple[int, int], AlignmentPath]:
    """
    Alignment paths for every member pair (a before b in ``members`` order).

    Paths not retained in the matrix are aligned on demand; infeasible pairs
    are left out.
    """
    logger = get_logger()
    params = params or AlignmentParams()
    paths = {}
    for k, a in enumerate(members):
        for b in members[k + 1 :]:
            path = matrix.path(a, b)
            if path is None:
                if matrix.is_infeasible(a, b):
                    continue
                try:
                    path = align(store[a].frames, store[b].frames, params, metric, a, b).path
                except AlignmentInfeasible as e:
                    logger.warning(f"{e}; pair left out of model merging")
                    continue
            paths[(a, b)] = path
    return paths
