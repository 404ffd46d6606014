# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import pytest
import yaml

from rubyprint.config import Config, ConfigurationError
from rubyprint.fingerprint_diff import Severity


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nonexistent.yml"
        config = Config(config_path=config_path)

        # Check all defaults
        assert config.parser_backend == "tree_sitter"
        assert config.source_extension == ".rb"
        assert config.ignore_patterns == []
        assert config.deep_kin_depth == 3
        assert config.cache_max_entries == 1000
        assert config.max_file_size_bytes == 10 * 1024 * 1024
        assert config.max_tree_depth == 200
        assert config.doc_marker == "@"
        assert config.magnitude_weights == {}
        assert config.severity_thresholds == {}


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "parser_backend": "strict",
            "deep_kin_depth": 0,
            "cache_max_entries": 50,
            "ignore_patterns": ["spec/fixtures/*"],
            "doc_marker": "@api",
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.parser_backend == "strict"
        assert config.deep_kin_depth == 0
        assert config.cache_max_entries == 50
        assert config.ignore_patterns == ["spec/fixtures/*"]
        assert config.doc_marker == "@api"
        # Defaults for unspecified values
        assert config.max_tree_depth == 200


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "parser_backend": "regex",  # Invalid: unknown backend
            "source_extension": "rb",  # Invalid: needs leading dot
            "deep_kin_depth": -1,  # Invalid: must be >= 0
            "cache_max_entries": 0,  # Invalid: must be > 0
            "max_tree_depth": True,  # Invalid: bool is not an int here
            "doc_marker": "",  # Invalid: must be non-empty
            "ignore_patterns": ["ok", 3],  # Invalid: non-string pattern
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.parser_backend == "tree_sitter"
        assert config.source_extension == ".rb"
        assert config.deep_kin_depth == 3
        assert config.cache_max_entries == 1000
        assert config.max_tree_depth == 200
        assert config.doc_marker == "@"
        assert config.ignore_patterns == []


def test_unknown_parameters_ignored():
    """Test that unknown parameters are ignored with a warning."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "deep_kin_depth": 5,
            "watch_files": True,  # Unknown parameter
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.deep_kin_depth == 5
        assert not hasattr(config, "watch_files")


def test_malformed_yaml():
    """Test handling of malformed YAML file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"

        with open(config_path, "w") as f:
            f.write("deep_kin_depth: [unclosed\n")

        config = Config(config_path=config_path)

        assert config.deep_kin_depth == 3


def test_non_dict_config():
    """Test handling of YAML that is not a dictionary."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"

        with open(config_path, "w") as f:
            yaml.dump(["item1", "item2"], f)

        config = Config(config_path=config_path)

        assert config.parser_backend == "tree_sitter"


def test_empty_config_file():
    """Test handling of empty config file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.cache_max_entries == 1000


def test_instances_do_not_share_defaults():
    """Test mutable defaults are copied per instance."""
    with tempfile.TemporaryDirectory() as tmpdir:
        first = Config(config_path=Path(tmpdir) / "missing.yml")
        second = Config(config_path=Path(tmpdir) / "missing.yml")

        first.ignore_patterns.append("tmp/*")

        assert second.ignore_patterns == []
        assert Config.DEFAULTS["ignore_patterns"] == []


def test_diff_weight_overrides():
    """Test magnitude weights and severity thresholds reach DiffWeights."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "magnitude_weights": {"methods_added": 5, "mixins_removed": 1},
            "severity_thresholds": {"minor_max": 5},
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        weights = Config(config_path=config_path).diff_weights()

        assert weights.methods_added == 5
        assert weights.mixins_removed == 1
        assert weights.methods_removed == 3
        assert weights.severity(5) == Severity.MINOR


def test_invalid_diff_weight_overrides():
    """Test unknown, negative or misplaced weights fall back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "magnitude_weights": {"classes_added": 1},
            "severity_thresholds": {"methods_added": 2},
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.magnitude_weights == {}
        assert config.severity_thresholds == {}

        config_path.write_text("magnitude_weights:\n  minor_max: 1\n")
        assert Config(config_path=config_path).magnitude_weights == {}


def test_inverted_severity_bands():
    """Test minor_max above significant_max is a configuration error."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {"severity_thresholds": {"minor_max": 10, "significant_max": 4}}

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        with pytest.raises(ConfigurationError, match="Inconsistent diff weights"):
            config.diff_weights()
