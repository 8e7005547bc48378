"""
Run configuration.

YAML is loaded into a plain dict and lifted into a frozen DiscoveryConfig.
Keys are looked up in their section (alignment / clustering / merging /
output) first, then at the top level, so flat files work too.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .alignment.dtw import AlignmentParams
from .errors import InvalidConfiguration

EXECUTORS = ("thread", "process")

_SECTIONS = {
    "warping_band_percentage": "alignment",
    "insertion_penalty": "alignment",
    "deletion_penalty": "alignment",
    "match_penalty": "alignment",
    "alignment_workers": "alignment",
    "executor": "alignment",
    "normalize_costs": "alignment",
    "retain_paths": "alignment",
    "clustering_percentile": "clustering",
    "min_cluster_size": "clustering",
    "merge_threshold": "merging",
    "merge_percentile": "merging",
    "smoothing_window": "merging",
    "min_variance": "merging",
    "zarr_path": "output",
    "index_path": "output",
    "out_dir": "output",
}


def load_config(config_path: str | Path) -> dict:
    """Load configuration from YAML file."""
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


@dataclass(frozen=True)
class DiscoveryConfig:
    # alignment
    warping_band_percentage: float = 1.0
    insertion_penalty: float = 1.0
    deletion_penalty: float = 1.0
    match_penalty: float = 1.0
    alignment_workers: int = 1
    executor: str = "thread"
    normalize_costs: bool = True
    retain_paths: bool = True
    # clustering
    clustering_percentile: float = 0.05
    min_cluster_size: int = 2
    # merging
    merge_threshold: Optional[float] = None
    merge_percentile: float = 0.2
    smoothing_window: int = 0
    min_variance: float = 1e-4
    # output
    zarr_path: str = "outputs/discovery/segments.zarr"
    index_path: str = "outputs/discovery/segments_index.parquet"
    out_dir: str = "outputs/discovery"
    seed: int = 42

    @classmethod
    def from_dict(cls, config: Optional[dict]) -> "DiscoveryConfig":
        """
        Build a config from a (sectioned or flat) mapping.

        Unknown keys are ignored; missing keys take their defaults.
        """
        config = config or {}
        values: dict[str, Any] = {}
        for name, section in _SECTIONS.items():
            sub = config.get(section)
            if isinstance(sub, dict) and name in sub:
                values[name] = sub[name]
            elif name in config:
                values[name] = config[name]
        if "seed" in config:
            values["seed"] = config["seed"]
        return cls(**values)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "DiscoveryConfig":
        return cls.from_dict(load_config(config_path))

    @property
    def alignment_params(self) -> AlignmentParams:
        return AlignmentParams(
            band_percentage=self.warping_band_percentage,
            insertion_penalty=self.insertion_penalty,
            deletion_penalty=self.deletion_penalty,
            match_penalty=self.match_penalty,
        )

    def validate(self) -> "DiscoveryConfig":
        """Check every parameter; raises InvalidConfiguration on the first bad one."""
        for name in (
            "warping_band_percentage",
            "insertion_penalty",
            "deletion_penalty",
            "match_penalty",
            "clustering_percentile",
            "merge_percentile",
        ):
            value = getattr(self, name)
            # bool is an int subclass; True must not pass as 1.0
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidConfiguration(name, value, "must be a number in [0, 1]")
            if not (0.0 <= value <= 1.0):
                raise InvalidConfiguration(name, value, "must be in [0, 1]")
        workers = self.alignment_workers
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise InvalidConfiguration("alignment_workers", self.alignment_workers, "must be >= 1")
        if self.executor not in EXECUTORS:
            raise InvalidConfiguration("executor", self.executor, f"must be one of {EXECUTORS}")
        if self.merge_threshold is not None and self.merge_threshold < 0:
            raise InvalidConfiguration("merge_threshold", self.merge_threshold, "must be >= 0")
        if self.smoothing_window < 0:
            raise InvalidConfiguration("smoothing_window", self.smoothing_window, "must be >= 0")
        if self.min_cluster_size < 1:
            raise InvalidConfiguration("min_cluster_size", self.min_cluster_size, "must be >= 1")
        if self.min_variance <= 0:
            raise InvalidConfiguration("min_variance", self.min_variance, "must be > 0")
        return self

    def to_dict(self) -> dict:
        """Sectioned dict, the layout written back as the run's config.yaml."""
        flat = asdict(self)
        out: dict[str, Any] = {"seed": flat.pop("seed")}
        for name, value in flat.items():
            out.setdefault(_SECTIONS[name], {})[name] = value
        return out
