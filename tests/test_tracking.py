"""
Tests for run tracking (config snapshot, run_info.json, manifest).
"""

import json
import logging

import yaml

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery.utils.logging import get_logger, setup_logging
from discovery.utils.tracking import finalize_run, register_run


class TestRunTracking:

    def test_register_and_finalize(self, tmp_path):
        setup_logging(level="INFO")
        out_dir = tmp_path / "runs" / "r1"
        run = register_run(
            run_id="r1",
            config_path="configs/discovery.yaml",
            config={"seed": 1},
            cli_args=["--config", "configs/discovery.yaml"],
            out_dir=out_dir,
        )
        get_logger().info("hello from the run")
        finalize_run(run, key_metrics={"n_clusters": 4})

        with open(out_dir / "config.yaml") as f:
            assert yaml.safe_load(f) == {"seed": 1}
        with open(out_dir / "run_info.json") as f:
            info = json.load(f)
        assert info["status"] == "completed"
        assert info["key_metrics"] == {"n_clusters": 4}

        lines = (tmp_path / "runs" / "manifest.jsonl").read_text().strip().splitlines()
        records = [json.loads(line) for line in lines]
        assert [r["status"] for r in records] == ["started", "completed"]

        assert "hello from the run" in (out_dir / "run.log").read_text()
        assert run.log_handler not in get_logger().handlers

    def test_failed_status(self, tmp_path):
        run = register_run(
            run_id="r2",
            config_path="x.yaml",
            config={},
            cli_args=[],
            out_dir=tmp_path / "r2",
            manifest_path=tmp_path / "m.jsonl",
        )
        finalize_run(run, status="failed")
        with open(tmp_path / "r2" / "run_info.json") as f:
            assert json.load(f)["status"] == "failed"


class TestLogging:

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging(level=logging.DEBUG)
        logger = setup_logging(level="WARNING")
        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1
