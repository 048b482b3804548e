"""Layout request sequencing.

Every snapshot handed to the coordinator becomes a ``LayoutRequest`` with a
monotonically increasing sequence number. Layout runs asynchronously, so an
older request can resolve after a newer one; such results are discarded and
only the latest request's positions are ever applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from lineage_graph.config import LayoutSettings
from lineage_graph.errors import LayoutError
from lineage_graph.layout.types import (
    LayoutEdgeSpec,
    LayoutEngine,
    LayoutNodeSpec,
    NodeBox,
    NodePosition,
    PositionedSnapshot,
)
from lineage_graph.model import GraphSnapshot, NodeRole

logger = logging.getLogger(__name__)

FALLBACK_CENTER = (400.0, 200.0)
FALLBACK_UPSTREAM_X = 50.0
FALLBACK_DOWNSTREAM_X = 750.0
FALLBACK_TOP = 50.0
FALLBACK_GAP = 50.0

LayoutListener = Callable[[PositionedSnapshot], None]


@dataclass(frozen=True)
class LayoutRequest:
    seq: int
    snapshot: GraphSnapshot


def layout_input(
    snapshot: GraphSnapshot, settings: LayoutSettings
) -> tuple[list[LayoutNodeSpec], list[LayoutEdgeSpec]]:
    """Turn a snapshot into the boxes and edges the layout engine sees.

    The center node is drawn taller than the rest.
    """
    nodes = []
    for entity in snapshot.entities:
        height = settings.node_height
        if entity.key == snapshot.center_key:
            height += settings.center_extra_height
        nodes.append(LayoutNodeSpec(id=entity.key, width=settings.node_width, height=height))
    edges = [LayoutEdgeSpec(id=edge.id, source=edge.from_key, target=edge.to_key) for edge in snapshot.edges]
    return nodes, edges


def fallback_layout(snapshot: GraphSnapshot, settings: LayoutSettings) -> list[NodePosition]:
    """Three fixed columns: upstream on the left, the center, downstream on the right.

    Entities upstream and downstream at once go in the downstream column;
    unclassified entities stack below the center.
    """
    step = settings.node_height + FALLBACK_GAP
    left = 0
    right = 0
    below = 0
    positions: list[NodePosition] = []
    for entity in sorted(snapshot.entities, key=lambda e: e.key):
        role = snapshot.role(entity.key)
        if role is NodeRole.CENTER:
            x, y = FALLBACK_CENTER
        elif role is NodeRole.UPSTREAM:
            x, y = FALLBACK_UPSTREAM_X, FALLBACK_TOP + left * step
            left += 1
        elif role in (NodeRole.DOWNSTREAM, NodeRole.BOTH):
            x, y = FALLBACK_DOWNSTREAM_X, FALLBACK_TOP + right * step
            right += 1
        else:
            below += 1
            x = FALLBACK_CENTER[0]
            y = FALLBACK_CENTER[1] + settings.center_extra_height + below * step
        positions.append(NodePosition(id=entity.key, x=x, y=y))
    return positions


class LayoutRequestCoordinator:
    """Runs layout for the latest snapshot and drops superseded results."""

    def __init__(self, engine: LayoutEngine, settings: LayoutSettings | None = None) -> None:
        self.engine = engine
        self.settings = settings or LayoutSettings()
        self.current: PositionedSnapshot | None = None
        self._seq = 0
        self._listeners: list[LayoutListener] = []

    def subscribe(self, listener: LayoutListener) -> None:
        self._listeners.append(listener)

    @property
    def latest_seq(self) -> int:
        return self._seq

    def issue(self, snapshot: GraphSnapshot) -> LayoutRequest:
        self._seq += 1
        return LayoutRequest(seq=self._seq, snapshot=snapshot)

    def reset(self) -> None:
        """Forget the applied layout and supersede every request in flight."""
        self._seq += 1
        self.current = None

    def is_stale(self, request: LayoutRequest) -> bool:
        return request.seq != self._seq

    async def run(self, request: LayoutRequest) -> PositionedSnapshot | None:
        """Lay out ``request`` and apply the result unless a newer request exists."""
        if self.is_stale(request):
            logger.debug("Skipping layout request %d: superseded by %d", request.seq, self._seq)
            return None

        nodes, edges = layout_input(request.snapshot, self.settings)
        fallback = False
        try:
            positions = await self.engine.layout(nodes, edges)
            missing = {n.id for n in nodes} - {p.id for p in positions}
            if missing:
                raise LayoutError(f"Layout engine returned no position for {sorted(missing)}")
        except LayoutError as exc:
            logger.warning("Layout failed (%s); using column layout", exc)
            positions = fallback_layout(request.snapshot, self.settings)
            fallback = True

        if self.is_stale(request):
            logger.warning("Discarding stale layout result %d (latest is %d)", request.seq, self._seq)
            return None

        sizes = {n.id: n for n in nodes}
        boxes = {
            p.id: NodeBox(id=p.id, x=p.x, y=p.y, width=sizes[p.id].width, height=sizes[p.id].height)
            for p in positions
            if p.id in sizes
        }
        positioned = PositionedSnapshot(seq=request.seq, snapshot=request.snapshot, boxes=boxes, fallback=fallback)
        self.current = positioned
        for listener in self._listeners:
            listener(positioned)
        return positioned

    async def request_layout(self, snapshot: GraphSnapshot) -> PositionedSnapshot | None:
        return await self.run(self.issue(snapshot))
