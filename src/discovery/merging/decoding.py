"""Score sequences against the merged models and label them by best fit."""

import math
from typing import Optional

from ..data.store import SequenceStore
from ..utils.logging import get_logger
from .model import MergedModel


def score_sequence(
    frames,
    models: dict[int, MergedModel],
    min_variance: float = 1e-4,
) -> dict[int, float]:
    """Viterbi log-likelihood of ``frames`` under every model."""
    return {c: m.log_likelihood(frames, min_variance) for c, m in models.items()}


def classify_sequences(
    store: SequenceStore,
    models: dict[int, MergedModel],
    assignment: Optional[dict[int, int]] = None,
    min_variance: float = 1e-4,
) -> tuple[list[dict], Optional[float]]:
    """
    Assign each sequence to the model with the highest log-likelihood.

    Args:
        store: Sequences to classify
        models: cluster id -> MergedModel
        assignment: seq_id -> cluster id from clustering, used to report
            agreement
        min_variance: Variance floor for the Gaussian emissions

    Returns:
        (rows, accuracy) where rows hold seq_id, cluster, predicted,
        log_likelihood and correct; accuracy is the agreement rate over
        sequences whose cluster has a model (None when there are none)
    """
    logger = get_logger()
    rows = []
    if not models:
        logger.warning("No merged models to decode against")
        return rows, None

    for seq in store:
        scores = score_sequence(seq.frames, models, min_variance)
        best = max(sorted(scores), key=lambda c: scores[c])
        ll = scores[best]
        # No model can emit the sequence: nothing is predicted
        predicted = best if math.isfinite(ll) else None
        cluster = assignment.get(seq.seq_id) if assignment is not None else None
        rows.append({
            "seq_id": seq.seq_id,
            "cluster": cluster,
            "predicted": predicted,
            "log_likelihood": ll,
            "correct": (cluster == predicted) if cluster in models else None,
        })

    scored = [r["correct"] for r in rows if r["correct"] is not None]
    accuracy = sum(scored) / len(scored) if scored else None
    if accuracy is not None:
        logger.info(f"Decoding accuracy: {accuracy:.3f} over {len(scored)} sequences")
    return rows, accuracy
