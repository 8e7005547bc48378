"""
Main orchestrator for unit discovery.

Phases run strictly in order:

    validate -> align (parallel) -> completeness check -> cluster
    -> gather paths -> merge threshold -> merge (parallel per cluster)
    -> decode -> write outputs

Clustering only starts after the alignment pool has been joined and the
distance matrix checked complete, and merging only reads the finished
clustering.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..alignment.matrix import DistanceMatrix, build_distance_matrix, paths_for_cluster
from ..clustering.upgma import ClusteringResult, upgma
from ..config import DiscoveryConfig
from ..data.store import SequenceStore
from ..merging.decoding import classify_sequences
from ..merging.merger import derive_merge_threshold, merge_clusters
from ..merging.model import MergedModel
from ..utils.logging import get_logger
from .report import summarize, write_outputs


@dataclass
class DiscoveryResult:
    matrix: DistanceMatrix
    clustering: ClusteringResult
    merge_threshold: float
    models: dict[int, MergedModel] = field(default_factory=dict)
    degenerate: list[int] = field(default_factory=list)
    decoding: list[dict] = field(default_factory=list)
    accuracy: Optional[float] = None
    labels: Optional[dict[int, int]] = None
    summary: dict = field(default_factory=dict)


def run_discovery(
    config: DiscoveryConfig | dict,
    store: SequenceStore,
    output_dir: Optional[str | Path] = None,
    cancel: Optional[threading.Event] = None,
    show_progress: bool = False,
    labels: Optional[dict[int, int]] = None,
) -> DiscoveryResult:
    """
    Run the full discovery pipeline on ``store``.

    Args:
        config: DiscoveryConfig or a raw config dict
        store: Sequences to analyse
        output_dir: Where to write outputs (nothing is written if None)
        cancel: Cancels pending alignments; the run then fails with
            IncompleteMatrix before clustering
        show_progress: Show tqdm progress bars
        labels: Optional ground-truth seq_id -> label, copied into clusters.csv

    Returns:
        DiscoveryResult
    """
    logger = get_logger()
    if not isinstance(config, DiscoveryConfig):
        config = DiscoveryConfig.from_dict(config)
    config.validate()
    params = config.alignment_params

    logger.info("=" * 60)
    logger.info(f"Unit discovery on {len(store)} sequences (dim={store.dim})")
    logger.info("=" * 60)

    # Phase 1: pairwise alignment
    logger.info("\n[1/4] Aligning sequence pairs")
    matrix = build_distance_matrix(
        store,
        params,
        workers=config.alignment_workers,
        executor=config.executor,
        normalize=config.normalize_costs,
        retain_paths=config.retain_paths,
        cancel=cancel,
        show_progress=show_progress,
    )
    matrix.require_complete()

    # Phase 2: clustering
    logger.info("\n[2/4] Clustering")
    clustering = upgma(matrix, config.clustering_percentile)
    clusters = clustering.clusters(min_size=config.min_cluster_size)
    logger.info(
        f"{len(clusters)} clusters with >= {config.min_cluster_size} members "
        f"out of {clustering.n_clusters}"
    )

    # Phase 3: model merging
    logger.info("\n[3/4] Merging cluster models")
    paths = {
        c: paths_for_cluster(matrix, store, members, params)
        for c, members in clusters.items()
    }
    if config.merge_threshold is not None:
        merge_threshold = float(config.merge_threshold)
    else:
        merge_threshold = derive_merge_threshold(
            [p for cluster_paths in paths.values() for p in cluster_paths.values()],
            config.merge_percentile,
        )
    logger.info(f"Merge threshold: {merge_threshold:.4f}")
    models, degenerate = merge_clusters(
        store,
        clusters,
        paths,
        merge_threshold,
        smoothing_window=config.smoothing_window,
        workers=config.alignment_workers,
    )

    # Phase 4: decoding
    logger.info("\n[4/4] Decoding sequences against cluster models")
    decoding, accuracy = classify_sequences(
        store, models, clustering.assignment, config.min_variance
    )

    result = DiscoveryResult(
        matrix=matrix,
        clustering=clustering,
        merge_threshold=merge_threshold,
        models=models,
        degenerate=degenerate,
        decoding=decoding,
        accuracy=accuracy,
        labels=labels,
    )
    if output_dir is not None:
        result.summary = write_outputs(result, output_dir)
    else:
        result.summary = summarize(result)
    return result
