# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for Relation Explorer."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".relation_explorer.yml"


class ConfigurationError(Exception):
    """Raised when configuration or component wiring is unusable."""

    pass


class Config:
    """Configuration for Relation Explorer.

    Loads configuration from .relation_explorer.yml with validation and defaults.
    Unknown keys and invalid values are logged and replaced by defaults.
    """

    DEFAULTS = {
        # Fields whose values declare parent links; one graph per field
        "relationship_fields": ["parent"],
        "default_relationship_field": "parent",
        "max_traversal_depth": 5,
        "detect_cycles": True,
        # Glob patterns (relative to the vault root) excluded from scanning
        "ignore_patterns": [],
        # Run validation after every build and log the full report
        "diagnostic_mode": False,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILE_NAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        # Copy list values so callers cannot mutate DEFAULTS through a Config
        return {
            key: list(value) if isinstance(value, list) else value
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
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
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

        fields = self._config["relationship_fields"]
        if self._config["default_relationship_field"] not in fields:
            logger.warning(
                f"Default relationship field '{self._config['default_relationship_field']}' "
                f"is not in relationship_fields {fields}, using '{fields[0]}'"
            )
            self._config["default_relationship_field"] = fields[0]

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type):
            return False

        if key == "max_traversal_depth":
            # bool is an int subclass; "max_traversal_depth: yes" is not a depth
            return bool(not isinstance(value, bool) and value > 0)
        elif key == "relationship_fields":
            return bool(value) and all(isinstance(name, str) and name for name in value)
        elif key == "default_relationship_field":
            return bool(value)
        elif key == "ignore_patterns":
            return all(isinstance(pattern, str) for pattern in value)

        return True

    @property
    def relationship_fields(self) -> List[str]:
        """Relationship fields to build graphs for."""
        value = self._config["relationship_fields"]
        assert isinstance(value, list)
        return value

    @property
    def default_relationship_field(self) -> str:
        """Field used when a query does not name one."""
        value = self._config["default_relationship_field"]
        assert isinstance(value, str)
        return value

    @property
    def relationship_field_name(self) -> str:
        """Alias of default_relationship_field."""
        return self.default_relationship_field

    @property
    def max_traversal_depth(self) -> int:
        """Default number of generations walked by traversal queries."""
        value = self._config["max_traversal_depth"]
        assert isinstance(value, int)
        return value

    @property
    def detect_cycles(self) -> bool:
        """Whether tree builders mark cycle nodes."""
        value = self._config["detect_cycles"]
        assert isinstance(value, bool)
        return value

    @property
    def ignore_patterns(self) -> List[str]:
        """Glob patterns of documents excluded from the vault scan."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def diagnostic_mode(self) -> bool:
        """Whether to validate graphs after each build and log the report."""
        value = self._config["diagnostic_mode"]
        assert isinstance(value, bool)
        return value
