"""
Run tracking for discovery runs.

A run directory holds the resolved config (config.yaml), a provenance record
(run_info.json) and the run's log (run.log). Every start and end of a run is
also appended to a shared JSONL manifest next to the run directories, so
runs over different corpora or parameter settings can be compared.

    run = register_run(run_id=run_id, config_path=args.config, config=cfg,
                       cli_args=sys.argv[1:], out_dir=out_dir)
    ...
    finalize_run(run, key_metrics={"n_clusters": 12})
"""

from __future__ import annotations

import json
import logging
import platform
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import numpy as np
import yaml

from .logging import add_file_handler

RUN_INFO = "run_info.json"
MANIFEST = "manifest.jsonl"


def get_git_commit() -> str:
    """Short hash of HEAD, or 'unknown' when git is unavailable."""
    try:
        out = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    return out.stdout.strip() if out.returncode == 0 else "unknown"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _environment() -> dict:
    return {
        "python": platform.python_version(),
        "numpy": np.__version__,
        "platform": platform.platform(),
    }


@dataclass
class RunInfo:
    """Handle returned by register_run; pass it to finalize_run."""

    run_id: str
    out_dir: Path
    manifest_path: Path
    record: dict[str, Any]
    log_name: str = "discovery"
    log_handler: Optional[logging.FileHandler] = field(default=None, repr=False)

    @property
    def git_commit(self) -> str:
        return self.record["git_commit"]

    @property
    def start_time(self) -> str:
        return self.record["start_time"]

    def write_record(self) -> None:
        with open(self.out_dir / RUN_INFO, "w") as f:
            json.dump(self.record, f, indent=2, default=str)

    def append_manifest(self, **fields: Any) -> None:
        line = {"run_id": self.run_id, "git_commit": self.git_commit,
                "output_dir": str(self.out_dir), **fields}
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.manifest_path, "a") as f:
            f.write(json.dumps(line, default=str) + "\n")


def register_run(
    *,
    run_id: str,
    config_path: str,
    config: dict,
    cli_args: list[str],
    out_dir: str | Path,
    manifest_path: Optional[str | Path] = None,
    log_name: str = "discovery",
) -> RunInfo:
    """
    Start tracking a run.

    Args:
        run_id: Unique run name (also the run directory name by convention)
        config_path: Config file the run was started with
        config: Resolved config, snapshotted to out_dir/config.yaml
        cli_args: Command line arguments
        out_dir: Run directory (created if needed)
        manifest_path: Shared manifest (default: out_dir/../manifest.jsonl)
        log_name: Logger that gets a file handler writing out_dir/run.log

    Returns:
        RunInfo
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    with open(out_dir / "config.yaml", "w") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)

    run = RunInfo(
        run_id=run_id,
        out_dir=out_dir,
        manifest_path=Path(manifest_path) if manifest_path else out_dir.parent / MANIFEST,
        record={
            "run_id": run_id,
            "status": "started",
            "config_path": str(config_path),
            "cli_args": list(cli_args),
            "git_commit": get_git_commit(),
            "start_time": _timestamp(),
            "environment": _environment(),
            "output_dir": str(out_dir),
        },
        log_name=log_name,
    )
    run.write_record()

    logger = logging.getLogger(log_name)
    run.log_handler = add_file_handler(logger, out_dir / "run.log")
    run.append_manifest(status="started", timestamp=run.start_time, config_path=str(config_path))

    logger.info(f"[tracking] Run {run_id} started (git={run.git_commit}, out={out_dir})")
    return run


def finalize_run(
    run: RunInfo,
    *,
    status: str = "completed",
    key_metrics: Optional[dict] = None,
) -> None:
    """
    Close a run: update run_info.json, append to the manifest and detach the
    run.log handler. Call with ``status="failed"`` from error paths too.
    """
    end_time = _timestamp()
    duration = (
        datetime.fromisoformat(end_time) - datetime.fromisoformat(run.start_time)
    ).total_seconds()

    run.record.update(status=status, end_time=end_time, duration_sec=duration, key_metrics=key_metrics)
    run.write_record()

    manifest_fields = {"status": status, "timestamp": end_time, "duration_sec": duration}
    if key_metrics:
        manifest_fields["key_metrics"] = key_metrics
    run.append_manifest(**manifest_fields)

    logger = logging.getLogger(run.log_name)
    metrics = " ".join(f"{k}={v}" for k, v in (key_metrics or {}).items())
    logger.info(f"[tracking] Run {run.run_id} {status} after {duration:.0f}s {metrics}".rstrip())

    if run.log_handler is not None:
        logger.removeHandler(run.log_handler)
        run.log_handler.close()
        run.log_handler = None
