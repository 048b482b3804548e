"""Configuration loading.

Settings come from a YAML file located in priority order:

1. an explicitly provided path
2. the ``LINEAGE_GRAPH_CONFIG`` environment variable
3. ``lineage_graph.yaml`` in the current directory
4. built-in defaults

``OPENMETADATA_URL`` and ``OPENMETADATA_AUTH_TOKEN`` override the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from lineage_graph.errors import ConfigError

CONFIG_ENV = "LINEAGE_GRAPH_CONFIG"
DEFAULT_CONFIG_NAME = "lineage_graph.yaml"


@dataclass(frozen=True)
class LayoutSettings:
    node_width: int = 200
    node_height: int = 120
    center_extra_height: int = 20
    layer_spacing: int = 100
    node_spacing: int = 80
    direction: str = "RIGHT"

    def __post_init__(self) -> None:
        if self.direction not in ("RIGHT", "DOWN"):
            raise ConfigError(f"layout.direction must be RIGHT or DOWN, got {self.direction!r}")
        for name in ("node_width", "node_height", "layer_spacing", "node_spacing"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"layout.{name} must be positive")


@dataclass(frozen=True)
class Settings:
    openmetadata_url: str = "http://localhost:8585"
    auth_token: str | None = None
    lineage_depth: int = 2
    expand_depth: int = 2
    nodes_per_layer: int = 50
    include_deleted: bool = False
    fetch_timeout: float | None = 30.0
    layout: LayoutSettings = field(default_factory=LayoutSettings)

    def __post_init__(self) -> None:
        object.__setattr__(self, "openmetadata_url", self.openmetadata_url.rstrip("/"))
        if self.lineage_depth < 0 or self.expand_depth < 0:
            raise ConfigError("lineage depths must not be negative")
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            raise ConfigError("fetch_timeout must be positive (or null to disable)")

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> Settings:
        """Build settings from a parsed config mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)} - {"layout"}
        values = {k: v for k, v in data.items() if k in known}
        layout_data = data.get("layout") or {}
        if not isinstance(layout_data, dict):
            raise ConfigError("layout must be a mapping")
        layout_known = {f.name for f in fields(LayoutSettings)}
        try:
            layout = LayoutSettings(**{k: v for k, v in layout_data.items() if k in layout_known})
            return cls(layout=layout, **values)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a mapping")
    return data


def load_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load the raw configuration mapping (empty when no file is found)."""
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        return _read_yaml(config_path)

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        env_config = Path(env_path)
        if env_config.exists():
            return _read_yaml(env_config)

    cwd_config = Path.cwd() / DEFAULT_CONFIG_NAME
    if cwd_config.exists():
        return _read_yaml(cwd_config)

    return {}


def load_settings(config_path: Path | None = None) -> Settings:
    data = load_config(config_path)
    url = os.environ.get("OPENMETADATA_URL")
    if url:
        data["openmetadata_url"] = url
    token = os.environ.get("OPENMETADATA_AUTH_TOKEN")
    if token:
        data["auth_token"] = token
    return Settings.from_mapping(data)
