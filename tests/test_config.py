# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import logging
import tempfile
from pathlib import Path

import yaml

from relation_explorer.config import Config


def write_config(tmpdir: str, data) -> Path:
    config_path = Path(tmpdir) / "config.yml"
    with open(config_path, "w") as f:
        yaml.dump(data, f)
    return config_path


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "nonexistent.yml")

        assert config.relationship_fields == ["parent"]
        assert config.default_relationship_field == "parent"
        assert config.relationship_field_name == "parent"
        assert config.max_traversal_depth == 5
        assert config.detect_cycles is True
        assert config.ignore_patterns == []
        assert config.diagnostic_mode is False


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = write_config(
            tmpdir,
            {
                "relationship_fields": ["parent", "project"],
                "default_relationship_field": "project",
                "max_traversal_depth": 8,
                "detect_cycles": False,
                "ignore_patterns": ["Templates/*"],
            },
        )

        config = Config(config_path=config_path)

        assert config.relationship_fields == ["parent", "project"]
        assert config.default_relationship_field == "project"
        assert config.max_traversal_depth == 8
        assert config.detect_cycles is False
        assert config.ignore_patterns == ["Templates/*"]
        # Defaults for unspecified values
        assert config.diagnostic_mode is False


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = write_config(
            tmpdir,
            {
                "max_traversal_depth": 0,  # Invalid: must be > 0
                "relationship_fields": [],  # Invalid: must be non-empty
                "default_relationship_field": "",  # Invalid: must be non-empty
                "ignore_patterns": [1, 2],  # Invalid: must be strings
                "detect_cycles": "yes",  # Invalid: must be bool
            },
        )

        config = Config(config_path=config_path)

        assert config.max_traversal_depth == 5
        assert config.relationship_fields == ["parent"]
        assert config.default_relationship_field == "parent"
        assert config.ignore_patterns == []
        assert config.detect_cycles is True


def test_bool_is_not_a_depth():
    """Test that a boolean is rejected for max_traversal_depth."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=write_config(tmpdir, {"max_traversal_depth": True}))
        assert config.max_traversal_depth == 5


def test_default_field_outside_field_list(caplog):
    """Test that the default field falls back to the first configured field."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = write_config(
            tmpdir,
            {"relationship_fields": ["up", "project"], "default_relationship_field": "parent"},
        )

        with caplog.at_level(logging.WARNING):
            config = Config(config_path=config_path)

        assert config.default_relationship_field == "up"
        assert "is not in relationship_fields" in caplog.text


def test_unknown_parameter_ignored(caplog):
    """Test that unknown parameters are logged and ignored."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = write_config(tmpdir, {"max_traversal_depth": 3, "colour": "blue"})

        with caplog.at_level(logging.WARNING):
            config = Config(config_path=config_path)

        assert config.max_traversal_depth == 3
        assert "Unknown configuration parameter 'colour'" in caplog.text


def test_empty_config_file():
    """Test that an empty file uses defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.max_traversal_depth == 5


def test_non_dict_config_file():
    """Test that a YAML list uses defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=write_config(tmpdir, ["parent"]))
        assert config.relationship_fields == ["parent"]


def test_malformed_yaml(caplog):
    """Test that malformed YAML is logged and defaults are used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("relationship_fields: [parent\n")

        with caplog.at_level(logging.WARNING):
            config = Config(config_path=config_path)

        assert config.relationship_fields == ["parent"]
        assert "Error parsing configuration file" in caplog.text


def test_defaults_are_not_shared():
    """Test that mutating a Config's lists does not leak into DEFAULTS."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "missing.yml")
        config.relationship_fields.append("project")

        assert Config.DEFAULTS["relationship_fields"] == ["parent"]
