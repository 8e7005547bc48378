"""
Fold a cluster of aligned sequences into one merged state-chain model.

Every frame of every member starts as its own state; member sequence s owns
the contiguous state ids offset[s] .. offset[s] + len(s) - 1. Two passes of
union-find then decide which frames are the same underlying unit:

    1. cross-sequence: frames paired by a MATCH step of an alignment path
       whose (optionally smoothed) distance is below the merge threshold
    2. within-sequence: consecutive frames closer than the threshold

Each equivalence class becomes one state. Classes that hold a single frame
and never loop on themselves are removed afterwards, their predecessors
rewired to their successors.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import numpy as np

from ..alignment.dtw import AlignmentPath, StepKind
from ..clustering.union_find import UnionFind
from ..clustering.upgma import percentile_threshold
from ..data.store import SequenceStore
from ..errors import DegenerateCluster, InvalidConfiguration
from ..utils.logging import get_logger
from .model import MergedModel, State


def smooth_distances(distances: np.ndarray, window: int) -> np.ndarray:
    """
    Trailing moving average over ``window`` steps (window <= 1 is a no-op).

    The caller passes the MATCH-step distances of one path, so non-MATCH
    steps never enter the average. Position k averages steps
    k - window + 1 .. k, including k itself; the first positions average
    over however many steps exist so far.
    """
    distances = np.asarray(distances, dtype=np.float64)
    if window <= 1 or len(distances) == 0:
        return distances
    csum = np.concatenate([[0.0], np.cumsum(distances)])
    idx = np.arange(len(distances))
    lo = np.maximum(0, idx - window + 1)
    return (csum[idx + 1] - csum[lo]) / (idx + 1 - lo)


def derive_merge_threshold(paths, percentile: float) -> float:
    """
    Merge threshold as a percentile of all MATCH-step distances.

    Merging compares strictly (``distance < threshold``), so the sampled
    distance is nudged up by one ulp: a MATCH at exactly the percentile
    value still merges, and identical members (all distances 0.0) collapse.

    Args:
        paths: Iterable of AlignmentPath
        percentile: Value in [0, 1]

    Returns:
        Threshold, or 0.0 when no path has a MATCH step (nothing merges)
    """
    if not (0.0 <= percentile <= 1.0):
        raise InvalidConfiguration("merge_percentile", percentile, "must be in [0, 1]")
    values = [s.distance for p in paths for s in p if s.kind is StepKind.MATCH]
    try:
        value = percentile_threshold(values, percentile)
    except ValueError:
        return 0.0
    return float(np.nextafter(value, np.inf))


class ModelMerger:
    """
    Builds the merged model of one cluster.

    Args:
        sequences: seq_id -> frames [T, D] for every cluster member, in the
            order that fixes state offsets
        threshold: Distances strictly below this merge
        smoothing_window: Moving-average window over MATCH distances along
            each path (0 disables)
        cluster_id: Identifier reported on the model and in errors
    """

    def __init__(
        self,
        sequences: dict[int, np.ndarray],
        threshold: float,
        smoothing_window: int = 0,
        cluster_id: Any = None,
    ):
        if not sequences:
            raise ValueError("Cannot merge an empty cluster")
        self.members = list(sequences)
        self.frames = [np.asarray(sequences[s], dtype=np.float64) for s in self.members]
        self.threshold = float(threshold)
        self.smoothing_window = smoothing_window
        self.cluster_id = cluster_id
        self.logger = get_logger()

        self.offsets = {}
        total = 0
        for seq_id, frames in zip(self.members, self.frames):
            self.offsets[seq_id] = total
            total += len(frames)
        self.n_frames = total
        self.all_frames = np.concatenate(self.frames, axis=0)
        self.uf = UnionFind(total)

    def _state(self, seq_id: int, frame: int) -> int:
        return self.offsets[seq_id] + frame

    def _owner(self, state: int) -> tuple[int, int]:
        seq_id = self.members[0]
        for s in self.members:
            if self.offsets[s] > state:
                break
            seq_id = s
        return seq_id, state - self.offsets[seq_id]

    def merge_matches(self, paths: dict[tuple[int, int], AlignmentPath]) -> int:
        """Union MATCH-paired frames below the threshold; returns the union count."""
        unions = 0
        for (a, b), path in paths.items():
            if a not in self.offsets or b not in self.offsets:
                raise KeyError(f"Path ({a}, {b}) refers to a sequence outside cluster {self.cluster_id}")
            matches = path.matches()
            if not matches:
                continue
            dists = smooth_distances([s.distance for s in matches], self.smoothing_window)
            for step, dist in zip(matches, dists):
                if dist < self.threshold:
                    self.uf.union(self._state(a, step.i), self._state(b, step.j))
                    unions += 1
        return unions

    def merge_consecutive(self) -> int:
        """Union adjacent frames of one sequence below the threshold."""
        unions = 0
        for seq_id, frames in zip(self.members, self.frames):
            if len(frames) < 2:
                continue
            steps = np.linalg.norm(np.diff(frames, axis=0), axis=1)
            for k in np.nonzero(steps < self.threshold)[0]:
                self.uf.union(self._state(seq_id, int(k)), self._state(seq_id, int(k) + 1))
                unions += 1
        return unions

    def _classes(self) -> np.ndarray:
        """Dense class index per frame, numbered by first occurrence."""
        labels = np.empty(self.n_frames, dtype=np.int64)
        dense: dict[int, int] = {}
        for x in range(self.n_frames):
            root = self.uf.find(x)
            labels[x] = dense.setdefault(root, len(dense))
        return labels

    def materialize(self) -> MergedModel:
        """
        Turn the current equivalence classes into states and transitions.

        A state gets a self-transition when any consecutive frame pair of a
        member chain lands in its class. That covers every within-sequence
        union, and also classes made self-adjacent only by cross-sequence
        MATCH unions (frames t and t+1 of one member both matched to the
        same frame of another).
        """
        labels = self._classes()
        n_classes = int(labels.max()) + 1

        states = []
        for c in range(n_classes):
            idx = np.nonzero(labels == c)[0]
            frames = self.all_frames[idx]
            states.append(State(
                state_id=c,
                mean=frames.mean(axis=0),
                variance=frames.var(axis=0),
                n_frames=len(idx),
                members=[self._owner(int(x)) for x in idx],
            ))

        transitions: Counter = Counter()
        for seq_id, frames in zip(self.members, self.frames):
            chain = labels[self.offsets[seq_id]: self.offsets[seq_id] + len(frames)]
            states[chain[0]].initial = True
            states[chain[-1]].final = True
            for src, dst in zip(chain[:-1], chain[1:]):
                if src == dst:
                    states[src].self_transition = True
                    states[src].self_count += 1
                else:
                    transitions[(int(src), int(dst))] += 1

        return MergedModel(
            cluster_id=self.cluster_id,
            members=list(self.members),
            threshold=self.threshold,
            states=states,
            transitions=dict(transitions),
        )

    def cleanup(self, model: MergedModel) -> MergedModel:
        """
        Remove single-frame states without a self loop and renumber.

        A removed state's predecessors are linked to its successors (with
        the smaller of the two edge counts); its initial flag moves to its
        successors and its final flag to its predecessors.

        Raises:
            DegenerateCluster: if no state survives
        """
        transitions = dict(model.transitions)
        states = {s.state_id: s for s in model.states}
        removed = [
            s.state_id for s in model.states
            if not s.self_transition and s.n_frames == 1
        ]

        for d in removed:
            incoming = {src: c for (src, dst), c in transitions.items() if dst == d}
            outgoing = {dst: c for (src, dst), c in transitions.items() if src == d}
            for key in [k for k in transitions if d in k]:
                del transitions[key]
            for p, c_in in incoming.items():
                for s, c_out in outgoing.items():
                    if p != s:
                        transitions[(p, s)] = transitions.get((p, s), 0) + min(c_in, c_out)
            if states[d].initial:
                for s in outgoing:
                    states[s].initial = True
            if states[d].final:
                for p in incoming:
                    states[p].final = True
            del states[d]

        if not states:
            raise DegenerateCluster(self.cluster_id, self.members, self.threshold)

        renumber = {old: new for new, old in enumerate(sorted(states))}
        kept = []
        for old in sorted(states):
            state = states[old]
            state.state_id = renumber[old]
            kept.append(state)

        if removed:
            self.logger.debug(
                f"Cluster {self.cluster_id}: removed {len(removed)} transient states, "
                f"{len(kept)} remain"
            )
        return MergedModel(
            cluster_id=model.cluster_id,
            members=model.members,
            threshold=model.threshold,
            states=kept,
            transitions={
                (renumber[a], renumber[b]): c for (a, b), c in sorted(transitions.items())
            },
        )

    def merge(self, paths: dict[tuple[int, int], AlignmentPath]) -> MergedModel:
        """Run both merge passes, materialise, clean up."""
        n_match = self.merge_matches(paths)
        n_consecutive = self.merge_consecutive()
        model = self.cleanup(self.materialize())
        self.logger.debug(
            f"Cluster {self.cluster_id}: {self.n_frames} frames, {n_match} match unions, "
            f"{n_consecutive} consecutive unions -> {model.n_states} states"
        )
        return model


def merge_cluster(
    sequences: dict[int, np.ndarray],
    paths: dict[tuple[int, int], AlignmentPath],
    threshold: float,
    smoothing_window: int = 0,
    cluster_id: Any = None,
) -> MergedModel:
    """
    Merge one cluster's members into a MergedModel.

    Args:
        sequences: seq_id -> frames [T, D]
        paths: (a, b) -> AlignmentPath from a to b, for member pairs
        threshold: Merge threshold (strictly below merges)
        smoothing_window: Moving-average window over MATCH distances
        cluster_id: Identifier for the model

    Returns:
        MergedModel

    Raises:
        DegenerateCluster: if cleanup removes every state
    """
    merger = ModelMerger(sequences, threshold, smoothing_window, cluster_id)
    return merger.merge(paths)


def merge_clusters(
    store: SequenceStore,
    clusters: dict[int, list[int]],
    paths: dict[int, dict[tuple[int, int], AlignmentPath]],
    threshold: float,
    smoothing_window: int = 0,
    workers: int = 1,
) -> tuple[dict[int, MergedModel], list[int]]:
    """
    Merge every cluster independently with a thread pool.

    Args:
        store: SequenceStore with every member
        clusters: cluster id -> member seq ids
        paths: cluster id -> member-pair alignment paths
        threshold: Merge threshold shared by all clusters
        smoothing_window: Moving-average window over MATCH distances
        workers: Number of threads

    Returns:
        (cluster id -> MergedModel, cluster ids that degenerated)
    """
    logger = get_logger()
    if workers < 1:
        raise InvalidConfiguration("alignment_workers", workers, "must be >= 1")

    def _one(cluster_id: int) -> Optional[MergedModel]:
        sequences = {s: store[s].frames for s in clusters[cluster_id]}
        try:
            return merge_cluster(
                sequences,
                paths.get(cluster_id, {}),
                threshold,
                smoothing_window,
                cluster_id,
            )
        except DegenerateCluster as e:
            logger.warning(f"{e}; no model for this cluster")
            return None

    order = sorted(clusters)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_one, order))

    models = {c: m for c, m in zip(order, results) if m is not None}
    degenerate = [c for c, m in zip(order, results) if m is None]
    logger.info(
        f"Merged {len(models)} cluster models (threshold={threshold:.4f}), "
        f"{len(degenerate)} degenerate"
    )
    return models, degenerate
