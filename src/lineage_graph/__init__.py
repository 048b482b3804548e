"""Incremental lineage-graph engine for OpenMetadata."""

from lineage_graph.client import LineageDataSource, OpenMetadataClient
from lineage_graph.config import LayoutSettings, Settings, load_settings
from lineage_graph.errors import (
    CenterNotFound,
    ConfigError,
    FetchFailure,
    LayoutError,
    LineageError,
    SessionClosed,
)
from lineage_graph.expansion import ExpansionController, ExpansionOutcome
from lineage_graph.explorer import LineageExplorer
from lineage_graph.merge import MergeEngine, MergeResult
from lineage_graph.model import (
    CollapseAck,
    Direction,
    DirectionState,
    Edge,
    EdgeRef,
    Entity,
    EntityKey,
    EntityRef,
    ExpansionStatus,
    FetchResult,
    GraphSnapshot,
    NodeRole,
)
from lineage_graph.registry import EdgeStore, EntityRegistry
from lineage_graph.session import LineageSession

__version__ = "0.1.0"

__all__ = [
    "CenterNotFound",
    "CollapseAck",
    "ConfigError",
    "Direction",
    "DirectionState",
    "Edge",
    "EdgeRef",
    "EdgeStore",
    "Entity",
    "EntityKey",
    "EntityRef",
    "EntityRegistry",
    "ExpansionController",
    "ExpansionOutcome",
    "ExpansionStatus",
    "FetchFailure",
    "FetchResult",
    "GraphSnapshot",
    "LayoutError",
    "LayoutSettings",
    "LineageDataSource",
    "LineageError",
    "LineageExplorer",
    "LineageSession",
    "MergeEngine",
    "MergeResult",
    "NodeRole",
    "OpenMetadataClient",
    "SessionClosed",
    "Settings",
    "load_settings",
]
