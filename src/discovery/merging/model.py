"""
Merged state-chain model of one cluster.

A simplified HMM: every state summarises a class of original frames by a
diagonal Gaussian (mean, variance), may loop on itself (a sustained unit) and
points at the states that followed it in the member sequences.
"""

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from scipy.stats import norm


@dataclass
class State:
    state_id: int
    mean: np.ndarray  # [D]
    variance: np.ndarray  # [D]
    n_frames: int
    members: list[tuple[int, int]] = field(default_factory=list)  # (seq_id, frame)
    self_transition: bool = False
    self_count: int = 0
    initial: bool = False
    final: bool = False

    def to_dict(self) -> dict:
        return {
            "state_id": self.state_id,
            "mean": self.mean.tolist(),
            "variance": self.variance.tolist(),
            "n_frames": self.n_frames,
            "members": [list(m) for m in self.members],
            "self_transition": self.self_transition,
            "self_count": self.self_count,
            "initial": self.initial,
            "final": self.final,
        }


@dataclass
class MergedModel:
    """States plus directed transitions (src != dst) with chain counts."""

    cluster_id: Any
    members: list[int]
    threshold: float
    states: list[State]
    transitions: dict[tuple[int, int], int] = field(default_factory=dict)

    @property
    def n_states(self) -> int:
        return len(self.states)

    @property
    def dim(self) -> int:
        return int(self.states[0].mean.shape[0]) if self.states else 0

    def successors(self, state_id: int) -> list[int]:
        return sorted(dst for (src, dst) in self.transitions if src == state_id)

    def predecessors(self, state_id: int) -> list[int]:
        return sorted(src for (src, dst) in self.transitions if dst == state_id)

    def log_transitions(self) -> np.ndarray:
        """
        Log transition probabilities [K, K] from chain counts.

        Self loops sit on the diagonal; a state without outgoing counts has
        an all -inf row (it can only end a path).
        """
        k = self.n_states
        counts = np.zeros((k, k), dtype=np.float64)
        for (src, dst), c in self.transitions.items():
            counts[src, dst] = c
        for s in self.states:
            counts[s.state_id, s.state_id] = s.self_count
        totals = counts.sum(axis=1, keepdims=True)
        with np.errstate(divide="ignore", invalid="ignore"):
            probs = np.where(totals > 0, counts / np.where(totals > 0, totals, 1.0), 0.0)
            return np.log(probs)

    def log_emissions(self, frames: np.ndarray, min_variance: float = 1e-4) -> np.ndarray:
        """Diagonal Gaussian log-likelihood of every frame under every state [T, K]."""
        frames = np.asarray(frames, dtype=np.float64)
        means = np.stack([s.mean for s in self.states]).astype(np.float64)  # [K, D]
        stds = np.sqrt(np.maximum(np.stack([s.variance for s in self.states]), min_variance))
        return norm.logpdf(frames[:, None, :], means[None, :, :], stds[None, :, :]).sum(axis=2)

    def log_likelihood(self, frames: np.ndarray, min_variance: float = 1e-4) -> float:
        """
        Viterbi (best path) log-likelihood of ``frames``.

        Paths start uniformly in an initial state and, when any final state
        is reachable, end in a final state.
        """
        if not self.states or len(frames) == 0:
            return -math.inf
        emissions = self.log_emissions(frames, min_variance)
        log_a = self.log_transitions()

        initial = np.array([s.initial for s in self.states])
        if not initial.any():
            initial[:] = True
        with np.errstate(divide="ignore"):
            start = np.where(initial, -np.log(initial.sum()), -np.inf)

        delta = start + emissions[0]
        for t in range(1, len(emissions)):
            delta = np.max(delta[:, None] + log_a, axis=0) + emissions[t]

        final = np.array([s.final for s in self.states])
        if final.any() and np.isfinite(delta[final]).any():
            return float(np.max(delta[final]))
        return float(np.max(delta))

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "members": list(self.members),
            "threshold": self.threshold,
            "n_states": self.n_states,
            "states": [s.to_dict() for s in self.states],
            "transitions": [
                {"src": src, "dst": dst, "count": c}
                for (src, dst), c in sorted(self.transitions.items())
            ],
        }
