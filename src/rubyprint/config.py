# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for rubyprint."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from rubyprint.analyzers.parse_adapter import ADAPTERS
from rubyprint.fingerprint_diff import DiffWeights

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".rubyprint.yml"

_SEVERITY_KEYS = ("minor_max", "significant_max")


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the analysis engine.

    Loads configuration from .rubyprint.yml with validation and defaults.
    """

    DEFAULTS = {
        "parser_backend": "tree_sitter",
        "source_extension": ".rb",
        "ignore_patterns": [],
        "deep_kin_depth": 3,
        "cache_max_entries": 1000,
        "max_file_size_bytes": 10 * 1024 * 1024,
        "max_tree_depth": 200,
        "doc_marker": "@",
        # Partial overrides of DiffWeights fields
        "magnitude_weights": {},
        "severity_thresholds": {},
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses
                .rubyprint.yml in the current directory.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        # Copy mutable defaults so instances never share them
        return {
            key: (value.copy() if isinstance(value, (list, dict)) else value)
            for key, value in self.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Could not read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type) or isinstance(value, bool):
            return False

        if key == "parser_backend":
            return value in ADAPTERS
        elif key == "source_extension":
            return value.startswith(".") and len(value) > 1
        elif key == "deep_kin_depth":
            return value >= 0
        elif key in ("cache_max_entries", "max_file_size_bytes", "max_tree_depth"):
            return value > 0
        elif key == "doc_marker":
            return bool(value)
        elif key == "ignore_patterns":
            return all(isinstance(p, str) for p in value)
        elif key == "magnitude_weights":
            if any(k in _SEVERITY_KEYS for k in value):
                return False
            return self._valid_weights(value)
        elif key == "severity_thresholds":
            # Band ordering is checked by diff_weights()
            return all(
                k in _SEVERITY_KEYS and isinstance(v, int) and not isinstance(v, bool) and v >= 0
                for k, v in value.items()
            )

        return True

    def _valid_weights(self, overrides: Dict[str, Any]) -> bool:
        try:
            DiffWeights.from_overrides(overrides)
        except (TypeError, ValueError) as e:
            logger.debug(f"Rejected diff weight overrides {overrides}: {e}")
            return False
        return True

    def diff_weights(self) -> DiffWeights:
        """Build the DiffWeights in effect.

        Raises:
            ConfigurationError: If minor_max exceeds significant_max.
        """
        overrides: Dict[str, Any] = dict(self.magnitude_weights)
        overrides.update(self.severity_thresholds)
        try:
            return DiffWeights.from_overrides(overrides)
        except ValueError as e:
            raise ConfigurationError(f"Inconsistent diff weights in {self.config_path}: {e}") from e

    # Property accessors for all configuration values
    @property
    def parser_backend(self) -> str:
        """Parse adapter name ("tree_sitter" or "strict")."""
        value = self._config["parser_backend"]
        assert isinstance(value, str)
        return value

    @property
    def source_extension(self) -> str:
        value = self._config["source_extension"]
        assert isinstance(value, str)
        return value

    @property
    def ignore_patterns(self) -> List[str]:
        """Additional file patterns to ignore beyond .gitignore."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def deep_kin_depth(self) -> int:
        """Default number of levels for deep kin traversal."""
        value = self._config["deep_kin_depth"]
        assert isinstance(value, int)
        return value

    @property
    def cache_max_entries(self) -> int:
        """Maximum number of Fingerprints to cache.

        When the cache reaches this limit, least recently used entries
        are evicted to make room for new entries.
        """
        value = self._config["cache_max_entries"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_size_bytes(self) -> int:
        value = self._config["max_file_size_bytes"]
        assert isinstance(value, int)
        return value

    @property
    def max_tree_depth(self) -> int:
        value = self._config["max_tree_depth"]
        assert isinstance(value, int)
        return value

    @property
    def doc_marker(self) -> str:
        """Comment prefix marking documentation annotations."""
        value = self._config["doc_marker"]
        assert isinstance(value, str)
        return value

    @property
    def magnitude_weights(self) -> Dict[str, int]:
        value = self._config["magnitude_weights"]
        assert isinstance(value, dict)
        return value

    @property
    def severity_thresholds(self) -> Dict[str, int]:
        value = self._config["severity_thresholds"]
        assert isinstance(value, dict)
        return value
