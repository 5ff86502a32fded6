"""Tests for configuration file handling."""

import json

import pytest

from openflow.config import EngineConfig, get_config_path, get_openflow_config
from openflow.graph.edge import SourceFallback


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setenv("OPENFLOW_CONFIG", str(path))
    return path


def test_missing_file_gives_defaults(config_file):
    assert get_config_path() == config_file
    assert get_openflow_config() == {}

    config = EngineConfig()

    assert config.timeout_per_node is None
    assert config.continue_on_error is True
    assert config.source_fallback == SourceFallback.FIRST_NODE
    assert config.log_level == "INFO"


def test_values_are_read_from_file(config_file, tmp_path):
    config_file.write_text(
        json.dumps(
            {
                "engine": {
                    "timeout_per_node": 5,
                    "continue_on_error": False,
                    "source_fallback": "none",
                },
                "logging": {"level": "DEBUG", "format": "json"},
                "store_path": str(tmp_path / "store"),
            }
        )
    )

    config = EngineConfig()
    options = config.to_options(initial_memory={"k": 1})

    assert config.timeout_per_node == 5.0
    assert config.log_format == "json"
    assert config.store_path == tmp_path / "store"
    assert options.continue_on_error is False
    assert options.source_fallback == SourceFallback.NONE
    assert options.initial_memory == {"k": 1}


def test_unreadable_or_odd_values_fall_back(config_file):
    config_file.write_text("{broken")
    assert get_openflow_config() == {}

    config_file.write_text(json.dumps({"engine": {"source_fallback": "sideways"}}))
    assert EngineConfig().source_fallback == SourceFallback.FIRST_NODE

    config_file.write_text(json.dumps(["not", "a", "mapping"]))
    assert get_openflow_config() == {}
