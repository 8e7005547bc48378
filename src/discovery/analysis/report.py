"""
Write the outputs of a discovery run.

All outputs are snapshots of finished results: JSON for the dendrogram,
clusters and models, .npy for the distance matrix, CSV tables via pandas and
a plain-text report.
"""

import json
import math
from pathlib import Path

import pandas as pd

from ..utils.logging import get_logger


def _dump_json(obj, path: Path) -> None:
    with open(path, "w") as f:
        json.dump(obj, f, indent=2, default=str)


def clusters_table(result) -> pd.DataFrame:
    """One row per sequence: its cluster, cluster size and whether a model exists."""
    clusters = result.clustering.clusters()
    rows = []
    for cluster_id, members in clusters.items():
        for seq_id in members:
            rows.append({
                "seq_id": seq_id,
                "cluster": cluster_id,
                "cluster_size": len(members),
                "has_model": cluster_id in result.models,
                "label": result.labels.get(seq_id) if result.labels else None,
            })
    return pd.DataFrame(rows, columns=["seq_id", "cluster", "cluster_size", "has_model", "label"])


def summarize(result) -> dict:
    """Key numbers of a run."""
    sizes = [len(m) for m in result.clustering.clusters().values()]
    matrix = result.matrix
    threshold = result.clustering.threshold
    return {
        "n_sequences": len(matrix),
        "n_infeasible_pairs": len(matrix.infeasible),
        "clustering_threshold": threshold if math.isfinite(threshold) else None,
        "n_merges": len(result.clustering.merges),
        "n_clusters": result.clustering.n_clusters,
        "n_modelled_clusters": len(result.models),
        "n_degenerate_clusters": len(result.degenerate),
        "largest_cluster": max(sizes) if sizes else 0,
        "merge_threshold": result.merge_threshold,
        "n_states": {str(c): m.n_states for c, m in result.models.items()},
        "decoding_accuracy": result.accuracy,
    }


def generate_report(summary: dict) -> str:
    """Plain-text report from a run summary."""
    lines = [
        "=" * 70,
        "UNIT DISCOVERY REPORT",
        "=" * 70,
        "",
        f"Sequences:            {summary['n_sequences']}",
        f"Infeasible pairs:     {summary['n_infeasible_pairs']}",
        f"Clustering threshold: {summary['clustering_threshold']}",
        f"Merges:               {summary['n_merges']}",
        f"Clusters:             {summary['n_clusters']} (largest {summary['largest_cluster']})",
        f"Modelled clusters:    {summary['n_modelled_clusters']}",
        f"Degenerate clusters:  {summary['n_degenerate_clusters']}",
        f"Merge threshold:      {summary['merge_threshold']}",
    ]
    if summary["decoding_accuracy"] is not None:
        lines.append(f"Decoding accuracy:    {summary['decoding_accuracy']:.3f}")

    if summary["n_states"]:
        lines.extend(["", "-" * 70, "MODEL SIZES", "-" * 70, ""])
        df = pd.DataFrame(
            [{"cluster": c, "n_states": k} for c, k in summary["n_states"].items()]
        )
        lines.append(df.to_string(index=False))
    lines.append("")
    return "\n".join(lines)


def write_outputs(result, output_dir: str | Path) -> dict:
    """
    Write every output file of a run.

    Args:
        result: DiscoveryResult
        output_dir: Destination directory (created if needed)

    Returns:
        The run summary dict (also written to summary.json)
    """
    logger = get_logger()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    result.matrix.save(output_dir / "distance_matrix.npy")
    _dump_json(
        {
            "ids": result.matrix.ids,
            "threshold": result.clustering.to_dict()["threshold"],
            "merges": [m.to_dict() for m in result.clustering.merges],
        },
        output_dir / "dendrogram.json",
    )
    _dump_json(result.clustering.to_dict(), output_dir / "clusters.json")
    _dump_json(
        {
            "merge_threshold": result.merge_threshold,
            "degenerate": result.degenerate,
            "models": {str(c): m.to_dict() for c, m in result.models.items()},
        },
        output_dir / "models.json",
    )

    clusters_table(result).to_csv(output_dir / "clusters.csv", index=False)
    pd.DataFrame(
        result.decoding,
        columns=["seq_id", "cluster", "predicted", "log_likelihood", "correct"],
    ).to_csv(output_dir / "decoding.csv", index=False)

    summary = summarize(result)
    _dump_json(summary, output_dir / "summary.json")
    with open(output_dir / "report.txt", "w") as f:
        f.write(generate_report(summary))

    logger.info(f"Results saved to {output_dir}")
    return summary
