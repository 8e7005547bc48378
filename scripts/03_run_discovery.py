#!/usr/bin/env python3
"""
Run unit discovery on the segment store.

Usage:
    uv run python scripts/03_run_discovery.py [--config configs/discovery.yaml] [--labels labels.csv]
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pandas as pd

from discovery.analysis.run_discovery import run_discovery
from discovery.config import DiscoveryConfig, load_config
from discovery.data.io import load_store
from discovery.utils.logging import setup_logging
from discovery.utils.seed import set_seed
from discovery.utils.tracking import finalize_run, register_run


def _default_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run unit discovery")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/discovery.yaml",
        help="Path to config file",
    )
    parser.add_argument("--run-id", type=str, default=None)
    parser.add_argument("--labels", type=str, default=None, help="CSV with seq_id,label ground truth")
    parser.add_argument("--progress", action="store_true", help="Show progress bars")
    args = parser.parse_args()

    logger = setup_logging()
    config = DiscoveryConfig.from_dict(load_config(args.config)).validate()
    set_seed(config.seed)

    run_id = args.run_id or _default_run_id()
    out_dir = Path(config.out_dir) / run_id
    run = register_run(
        run_id=run_id,
        config_path=args.config,
        config=config.to_dict(),
        cli_args=sys.argv[1:],
        out_dir=out_dir,
    )

    try:
        store = load_store(config.zarr_path, config.index_path)
        logger.info(f"Loaded {len(store)} sequences from {config.zarr_path}")

        labels = None
        if args.labels:
            df = pd.read_csv(args.labels)
            labels = {int(s): int(l) for s, l in zip(df["seq_id"], df["label"])}

        result = run_discovery(
            config, store, out_dir, show_progress=args.progress, labels=labels
        )
    except Exception:
        finalize_run(run, status="failed")
        raise

    finalize_run(run, key_metrics={
        "n_clusters": result.summary["n_clusters"],
        "n_modelled_clusters": result.summary["n_modelled_clusters"],
        "decoding_accuracy": result.summary["decoding_accuracy"],
    })
    logger.info(f"Discovery complete. Output: {out_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
