#!/usr/bin/env python3
"""
Import segmented feature sequences into the zarr/parquet segment store.

Segments come either from a directory of <seq_id>.npy files or from a single
.npz archive keyed by seq_id. An optional CSV index (seq_id, source_file,
start_sec, stop_sec) supplies segment provenance.

Usage:
    uv run python scripts/01_import_segments.py --segments data/segments/ [--index data/segments.csv]
"""

import argparse
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd

from discovery.config import DiscoveryConfig
from discovery.data.io import save_store
from discovery.data.store import SequenceStore
from discovery.utils.logging import setup_logging


def _iter_segments(path: Path):
    if path.is_dir():
        for f in sorted(path.glob("*.npy"), key=lambda p: int(p.stem)):
            yield int(f.stem), np.load(f)
    elif path.suffix == ".npz":
        with np.load(path) as archive:
            for key in sorted(archive.files, key=int):
                yield int(key), archive[key]
    else:
        raise ValueError(f"Expected a directory of .npy files or an .npz archive, got {path}")


def main():
    parser = argparse.ArgumentParser(description="Import segments into the segment store")
    parser.add_argument("--segments", type=str, required=True, help="Directory of .npy files or .npz archive")
    parser.add_argument("--index", type=str, default=None, help="CSV with seq_id,source_file,start_sec,stop_sec")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/discovery.yaml",
        help="Path to config file (for output paths)",
    )
    args = parser.parse_args()

    logger = setup_logging()
    config = DiscoveryConfig.from_yaml(args.config)

    provenance = {}
    if args.index:
        index = pd.read_csv(args.index)
        for row in index.itertuples(index=False):
            provenance[int(row.seq_id)] = {
                "source_file": str(getattr(row, "source_file", "")),
                "start_sec": float(getattr(row, "start_sec", 0.0)),
                "stop_sec": float(getattr(row, "stop_sec", 0.0)),
            }
        logger.info(f"Loaded provenance for {len(provenance)} segments from {args.index}")

    store = SequenceStore()
    skipped = 0
    for seq_id, frames in _iter_segments(Path(args.segments)):
        if frames.ndim == 1:
            frames = frames[:, None]
        if len(frames) == 0:
            logger.warning(f"Segment {seq_id} is empty; skipping")
            skipped += 1
            continue
        store.add(seq_id, frames, **provenance.get(seq_id, {}))

    logger.info(f"Imported {len(store)} segments (dim={store.dim}), skipped {skipped}")
    save_store(store, config.zarr_path, config.index_path)
    logger.info(f"Saved zarr store to {config.zarr_path}")
    logger.info(f"Saved segment index to {config.index_path}")


if __name__ == "__main__":
    main()
