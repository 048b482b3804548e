from lineage_graph.layout.coordinator import (
    LayoutRequest,
    LayoutRequestCoordinator,
    fallback_layout,
    layout_input,
)
from lineage_graph.layout.layered import LayeredLayoutEngine, compute_layout
from lineage_graph.layout.types import (
    Bounds,
    LayoutEdgeSpec,
    LayoutEngine,
    LayoutNodeSpec,
    NodeBox,
    NodePosition,
    PositionedSnapshot,
)
from lineage_graph.layout.viewport import fit_view_zoom, nodes_bounds

__all__ = [
    "Bounds",
    "LayeredLayoutEngine",
    "LayoutEdgeSpec",
    "LayoutEngine",
    "LayoutNodeSpec",
    "LayoutRequest",
    "LayoutRequestCoordinator",
    "NodeBox",
    "NodePosition",
    "PositionedSnapshot",
    "compute_layout",
    "fallback_layout",
    "fit_view_zoom",
    "layout_input",
    "nodes_bounds",
]
