"""
Banded, weighted dynamic time warping with backtracking.

Cost recurrence over the (m+1) x (n+1) matrix D, with d(i, j) the base frame
distance between A[i-1] and B[j-1] (indices clamped to 0 on the boundary):

    D[0, 0] = 0
    D[i, j] = min(
        D[i-1, j-1] + match_penalty    * d(i, j),   # MATCH
        D[i-1, j]   + deletion_penalty  * d(i, j),   # DELETION: consumes A[i-1]
        D[i, j-1]   + insertion_penalty * d(i, j),   # INSERTION: consumes B[j-1]
    )

Only cells inside the Sakoe-Chiba band |i*n/m - j| <= band_percentage*max(m, n)
are computed; everything else is unreachable. Ties prefer MATCH, then
DELETION, then INSERTION, so paths are reproducible.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional

import numpy as np

from ..errors import AlignmentInfeasible, InvalidConfiguration

FrameMetric = Callable[[np.ndarray, np.ndarray], float]

# Backpointer codes
_NONE = 0
_MATCH = 1
_DELETION = 2
_INSERTION = 3

_BAND_EPS = 1e-9


class StepKind(str, Enum):
    MATCH = "match"
    DELETION = "deletion"
    INSERTION = "insertion"


_KIND_BY_CODE = {
    _MATCH: StepKind.MATCH,
    _DELETION: StepKind.DELETION,
    _INSERTION: StepKind.INSERTION,
}


@dataclass(frozen=True)
class AlignmentParams:
    """Warping band and per-operation weights, all in [0, 1]."""

    band_percentage: float = 1.0
    insertion_penalty: float = 1.0
    deletion_penalty: float = 1.0
    match_penalty: float = 1.0

    def validate(self) -> None:
        for name in ("band_percentage", "insertion_penalty", "deletion_penalty", "match_penalty"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise InvalidConfiguration(name, value, "must be in [0, 1]")

    @property
    def symmetric(self) -> bool:
        """True when align(a, b) and align(b, a) have the same cost."""
        return self.insertion_penalty == self.deletion_penalty


@dataclass(frozen=True)
class AlignmentStep:
    """
    One correspondence step.

    ``i`` and ``j`` are the frames of A and B the step touches; ``distance``
    is the base distance between exactly those two frames.
    """

    kind: StepKind
    i: int
    j: int
    distance: float


@dataclass
class AlignmentPath:
    """Ordered correspondence steps between sequences A and B."""

    steps: list[AlignmentStep] = field(default_factory=list)
    seq_a: Any = None
    seq_b: Any = None

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[AlignmentStep]:
        return iter(self.steps)

    def __getitem__(self, idx: int) -> AlignmentStep:
        return self.steps[idx]

    def matches(self) -> list[AlignmentStep]:
        return [s for s in self.steps if s.kind is StepKind.MATCH]

    def cells(self) -> list[tuple[int, int]]:
        """DP cell reached after each step, starting from (0, 0)."""
        i = j = 0
        cells = []
        for step in self.steps:
            if step.kind is not StepKind.INSERTION:
                i += 1
            if step.kind is not StepKind.DELETION:
                j += 1
            cells.append((i, j))
        return cells

    def swapped(self) -> "AlignmentPath":
        """The same correspondence seen from B to A."""
        flip = {
            StepKind.MATCH: StepKind.MATCH,
            StepKind.DELETION: StepKind.INSERTION,
            StepKind.INSERTION: StepKind.DELETION,
        }
        steps = [AlignmentStep(flip[s.kind], s.j, s.i, s.distance) for s in self.steps]
        return AlignmentPath(steps=steps, seq_a=self.seq_b, seq_b=self.seq_a)

    def to_dict(self) -> dict:
        return {
            "seq_a": self.seq_a,
            "seq_b": self.seq_b,
            "steps": [[s.kind.value, s.i, s.j, s.distance] for s in self.steps],
        }


@dataclass
class Alignment:
    """Result of aligning A (length m) against B (length n)."""

    seq_a: Any
    seq_b: Any
    len_a: int
    len_b: int
    cost: float
    path: AlignmentPath

    @property
    def normalized_cost(self) -> float:
        """Cost divided by m + n, comparable across sequence lengths."""
        return self.cost / (self.len_a + self.len_b)


def euclidean(x: np.ndarray, y: np.ndarray) -> float:
    """Euclidean distance between two frames."""
    return float(np.sqrt(np.sum((np.asarray(x) - np.asarray(y)) ** 2)))


def frame_distances(
    a: np.ndarray,
    b: np.ndarray,
    metric: Optional[FrameMetric] = None,
    batch_size: int = 256,
) -> np.ndarray:
    """
    All pairwise frame distances between A and B.

    Args:
        a: Frames [m, D]
        b: Frames [n, D]
        metric: Optional frame distance; Euclidean (vectorised) when None
        batch_size: Rows of A processed at once, bounds the [batch, n, D] buffer

    Returns:
        Distances [m, n] as float64
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    m, n = len(a), len(b)

    if metric is not None:
        out = np.empty((m, n), dtype=np.float64)
        for i in range(m):
            for j in range(n):
                out[i, j] = metric(a[i], b[j])
        return out

    out = np.empty((m, n), dtype=np.float64)
    for start in range(0, m, batch_size):
        end = min(start + batch_size, m)
        diff = a[start:end, None, :] - b[None, :, :]  # [batch, n, D]
        out[start:end] = np.sqrt(np.sum(diff**2, axis=2))
    return out


def band_width(m: int, n: int, band_percentage: float) -> float:
    """Half-width of the Sakoe-Chiba band, in frames."""
    return band_percentage * max(m, n)


def band_range(i: int, m: int, n: int, band_percentage: float) -> tuple[int, int]:
    """
    Inclusive range of columns j computed in row i.

    Uses |i*n - j*m| <= width*m so that the band follows the slope n/m and the
    corner cells (0, 0) and (m, n) always lie on its centre line. The range may
    be empty (lo > hi).
    """
    slack = band_width(m, n, band_percentage) * m
    lo = math.ceil((i * n - slack) / m - _BAND_EPS)
    hi = math.floor((i * n + slack) / m + _BAND_EPS)
    return max(lo, 0), min(hi, n)


def in_band(i: int, j: int, m: int, n: int, band_percentage: float) -> bool:
    lo, hi = band_range(i, m, n, band_percentage)
    return lo <= j <= hi


def _fill_cost_matrix(
    dist: np.ndarray,
    params: AlignmentParams,
) -> tuple[np.ndarray, np.ndarray]:
    """Forward pass: cost matrix D [m+1, n+1] and backpointers."""
    m, n = dist.shape
    cost = np.full((m + 1, n + 1), np.inf)
    back = np.zeros((m + 1, n + 1), dtype=np.int8)
    cost[0, 0] = 0.0

    mp = params.match_penalty
    dp = params.deletion_penalty
    ip = params.insertion_penalty

    # Row 0: only insertions reach it
    lo, hi = band_range(0, m, n, params.band_percentage)
    for j in range(max(lo, 1), hi + 1):
        if np.isfinite(cost[0, j - 1]):
            cost[0, j] = cost[0, j - 1] + ip * dist[0, j - 1]
            back[0, j] = _INSERTION

    for i in range(1, m + 1):
        lo, hi = band_range(i, m, n, params.band_percentage)
        if lo > hi:
            continue
        js = np.arange(lo, hi + 1)
        d = dist[i - 1, np.maximum(js - 1, 0)]
        prev = cost[i - 1]

        # MATCH and DELETION only depend on the previous row
        match = np.where(js > 0, prev[np.maximum(js - 1, 0)] + mp * d, np.inf)
        delete = prev[js] + dp * d
        use_match = match <= delete
        row_cost = np.where(use_match, match, delete)
        row_back = np.where(use_match, _MATCH, _DELETION)

        # INSERTION depends on the cell to the left, so it runs sequentially
        row_cost = row_cost.tolist()
        row_back = row_back.tolist()
        d = d.tolist()
        for k in range(1, len(row_cost)):
            inserted = row_cost[k - 1] + ip * d[k]
            if inserted < row_cost[k]:
                row_cost[k] = inserted
                row_back[k] = _INSERTION

        row_cost = np.asarray(row_cost)
        row_back = np.asarray(row_back, dtype=np.int8)
        row_back[~np.isfinite(row_cost)] = _NONE
        cost[i, lo : hi + 1] = row_cost
        back[i, lo : hi + 1] = row_back

    return cost, back


def _backtrack(back: np.ndarray, dist: np.ndarray) -> list[AlignmentStep]:
    i, j = back.shape[0] - 1, back.shape[1] - 1
    steps = []
    while i > 0 or j > 0:
        code = int(back[i, j])
        if code == _NONE:
            raise RuntimeError(f"Broken backpointer chain at cell ({i}, {j})")
        fi, fj = max(i - 1, 0), max(j - 1, 0)
        steps.append(AlignmentStep(_KIND_BY_CODE[code], fi, fj, float(dist[fi, fj])))
        if code == _MATCH:
            i, j = i - 1, j - 1
        elif code == _DELETION:
            i -= 1
        else:
            j -= 1
    steps.reverse()
    return steps


def align(
    a: np.ndarray,
    b: np.ndarray,
    params: Optional[AlignmentParams] = None,
    metric: Optional[FrameMetric] = None,
    seq_a: Any = None,
    seq_b: Any = None,
) -> Alignment:
    """
    Align sequence A against sequence B.

    Args:
        a: Frames of A [m, D]
        b: Frames of B [n, D]
        params: Band and penalty weights (defaults: unrestricted, all 1.0)
        metric: Optional frame distance; Euclidean when None
        seq_a: Identifier of A, carried into errors and the path
        seq_b: Identifier of B

    Returns:
        Alignment with the total cost and the backtracked path

    Raises:
        AlignmentInfeasible: if either sequence is empty or the band leaves
            the terminal cell (m, n) unreachable
    """
    params = params or AlignmentParams()
    a = np.asarray(a)
    b = np.asarray(b)
    if a.ndim == 1:
        a = a[:, None]
    if b.ndim == 1:
        b = b[:, None]
    m, n = len(a), len(b)
    if m == 0 or n == 0:
        raise AlignmentInfeasible(seq_a, seq_b, m, n, params.band_percentage)

    dist = frame_distances(a, b, metric)
    cost, back = _fill_cost_matrix(dist, params)
    if not np.isfinite(cost[m, n]):
        raise AlignmentInfeasible(seq_a, seq_b, m, n, params.band_percentage)

    path = AlignmentPath(steps=_backtrack(back, dist), seq_a=seq_a, seq_b=seq_b)
    return Alignment(
        seq_a=seq_a,
        seq_b=seq_b,
        len_a=m,
        len_b=n,
        cost=float(cost[m, n]),
        path=path,
    )
