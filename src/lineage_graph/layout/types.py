"""Layout boundary types.

The layout engine sees only sized boxes and directed edges:
``layout(nodes: [{id, width, height}], edges: [{id, source, target}]) -> [{id, x, y}]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from lineage_graph.model import EntityKey, GraphSnapshot

# Prefix for the synthetic nodes the layered layout inserts along long edges.
DUMMY_PREFIX = "__dummy_"


@dataclass(frozen=True)
class LayoutNodeSpec:
    id: str
    width: float
    height: float


@dataclass(frozen=True)
class LayoutEdgeSpec:
    id: str
    source: str
    target: str


@dataclass(frozen=True)
class NodePosition:
    id: str
    x: float
    y: float


class LayoutEngine(Protocol):
    """Anything that can place boxes. Failures must be raised as ``LayoutError``."""

    async def layout(self, nodes: list[LayoutNodeSpec], edges: list[LayoutEdgeSpec]) -> list[NodePosition]: ...


@dataclass(frozen=True)
class NodeBox:
    """A placed node: top-left corner plus size."""

    id: EntityKey
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


@dataclass(frozen=True)
class Bounds:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PositionedSnapshot:
    """A graph snapshot together with the positions computed for it."""

    seq: int
    snapshot: GraphSnapshot
    boxes: dict[EntityKey, NodeBox] = field(default_factory=dict)
    fallback: bool = False

    def position(self, key: EntityKey) -> tuple[float, float] | None:
        box = self.boxes.get(key)
        return (box.x, box.y) if box is not None else None
