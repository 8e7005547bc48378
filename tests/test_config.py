"""
Tests for configuration loading and validation.
"""

import pytest
import yaml

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery.config import DiscoveryConfig, load_config
from discovery.errors import InvalidConfiguration


class TestFromDict:

    def test_defaults(self):
        config = DiscoveryConfig.from_dict({})
        assert config.warping_band_percentage == 1.0
        assert config.merge_threshold is None
        assert config.executor == "thread"
        config.validate()

    def test_sectioned(self):
        config = DiscoveryConfig.from_dict({
            "seed": 7,
            "alignment": {"warping_band_percentage": 0.2, "alignment_workers": 3},
            "clustering": {"clustering_percentile": 0.1},
            "merging": {"merge_threshold": 0.5},
        })
        assert config.seed == 7
        assert config.warping_band_percentage == 0.2
        assert config.alignment_workers == 3
        assert config.clustering_percentile == 0.1
        assert config.merge_threshold == 0.5

    def test_flat(self):
        config = DiscoveryConfig.from_dict({
            "insertion_penalty": 0.4,
            "deletion_penalty": 0.6,
            "clustering_percentile": 0.2,
        })
        params = config.alignment_params
        assert params.insertion_penalty == 0.4
        assert params.deletion_penalty == 0.6
        assert not params.symmetric

    def test_section_wins_over_top_level(self):
        config = DiscoveryConfig.from_dict({
            "match_penalty": 0.1,
            "alignment": {"match_penalty": 0.9},
        })
        assert config.match_penalty == 0.9

    def test_to_dict_round_trip(self):
        config = DiscoveryConfig(alignment_workers=2, smoothing_window=3)
        again = DiscoveryConfig.from_dict(config.to_dict())
        assert again == config
        assert config.to_dict()["merging"]["smoothing_window"] == 3


class TestValidate:

    @pytest.mark.parametrize("name,value", [
        ("warping_band_percentage", 1.5),
        ("insertion_penalty", -0.1),
        ("clustering_percentile", 2.0),
        ("merge_percentile", -1.0),
        ("alignment_workers", 0),
        ("alignment_workers", True),
        ("match_penalty", True),
        ("clustering_percentile", False),
        ("executor", "gpu"),
        ("merge_threshold", -0.5),
        ("smoothing_window", -1),
        ("min_cluster_size", 0),
        ("min_variance", 0.0),
    ])
    def test_rejects(self, name, value):
        config = DiscoveryConfig.from_dict({name: value})
        with pytest.raises(InvalidConfiguration) as exc:
            config.validate()
        assert exc.value.parameter == name
        assert exc.value.value == value

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            DiscoveryConfig(match_penalty=3.0).validate()


class TestLoadConfig:

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "discovery.yaml"
        with open(path, "w") as f:
            yaml.safe_dump({"seed": 3, "merging": {"smoothing_window": 2}}, f)

        assert load_config(path)["seed"] == 3
        config = DiscoveryConfig.from_yaml(path)
        assert config.smoothing_window == 2

    def test_repository_config_is_valid(self):
        path = Path(__file__).parent.parent / "configs" / "discovery.yaml"
        DiscoveryConfig.from_yaml(path).validate()

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert DiscoveryConfig.from_yaml(path) == DiscoveryConfig()
