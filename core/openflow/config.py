"""Shared OpenFlow configuration utilities.

Centralises reading of ~/.openflow/configuration.json so the CLI and any
embedding application derive engine defaults from one place.

Example file:
    {
        "engine": {"timeout_per_node": 30, "continue_on_error": true},
        "logging": {"level": "INFO", "format": "auto"},
        "store_path": "~/.openflow"
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from openflow.graph.edge import SourceFallback
from openflow.graph.executor import ExecutionOptions

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_FILE = Path.home() / ".openflow" / "configuration.json"


def get_config_path() -> Path:
    """Config file location; OPENFLOW_CONFIG overrides the default."""
    override = os.environ.get("OPENFLOW_CONFIG")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_FILE


def get_openflow_config() -> dict[str, Any]:
    """Load configuration, or {} when the file is missing or unreadable."""
    path = get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_timeout_per_node() -> float | None:
    value = get_openflow_config().get("engine", {}).get("timeout_per_node")
    return float(value) if value is not None else None


def get_continue_on_error() -> bool:
    return bool(get_openflow_config().get("engine", {}).get("continue_on_error", True))


def get_source_fallback() -> SourceFallback:
    value = get_openflow_config().get("engine", {}).get("source_fallback", "first_node")
    try:
        return SourceFallback(value)
    except ValueError:
        return SourceFallback.FIRST_NODE


def get_log_level() -> str:
    return get_openflow_config().get("logging", {}).get("level", "INFO")


def get_log_format() -> str:
    return get_openflow_config().get("logging", {}).get("format", "auto")


def get_store_path() -> Path:
    value = get_openflow_config().get("store_path")
    return Path(value).expanduser() if value else Path.home() / ".openflow"


# ---------------------------------------------------------------------------
# EngineConfig
# ---------------------------------------------------------------------------


@dataclass
class EngineConfig:
    """Engine defaults loaded from the configuration file."""

    timeout_per_node: float | None = field(default_factory=get_timeout_per_node)
    continue_on_error: bool = field(default_factory=get_continue_on_error)
    source_fallback: SourceFallback = field(default_factory=get_source_fallback)
    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
    store_path: Path = field(default_factory=get_store_path)

    def to_options(self, initial_memory: dict[str, Any] | None = None) -> ExecutionOptions:
        return ExecutionOptions(
            continue_on_error=self.continue_on_error,
            initial_memory=dict(initial_memory or {}),
            timeout_per_node=self.timeout_per_node,
            source_fallback=self.source_fallback,
        )
