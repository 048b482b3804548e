"""Viewport helpers for fitting a positioned graph into a view."""

from __future__ import annotations

from collections.abc import Iterable

from lineage_graph.layout.types import Bounds, NodeBox


def nodes_bounds(boxes: Iterable[NodeBox]) -> Bounds:
    """Smallest rectangle containing every box (all zeros when there are none)."""
    boxes = list(boxes)
    if not boxes:
        return Bounds(0, 0, 0, 0)
    min_x = min(b.x for b in boxes)
    min_y = min(b.y for b in boxes)
    max_x = max(b.x + b.width for b in boxes)
    max_y = max(b.y + b.height for b in boxes)
    return Bounds(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


def fit_view_zoom(bounds: Bounds, container: tuple[float, float], padding: float = 50) -> float:
    """Zoom factor that fits ``bounds`` inside ``container`` with ``padding`` on each side.

    Never zooms in beyond 1.0.
    """
    if bounds.width <= 0 or bounds.height <= 0:
        return 1.0
    available_w = container[0] - padding * 2
    available_h = container[1] - padding * 2
    scale_x = available_w / bounds.width
    scale_y = available_h / bounds.height
    return max(0.0, min(scale_x, scale_y, 1.0))
