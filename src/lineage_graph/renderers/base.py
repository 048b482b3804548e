"""Base renderer protocol."""

from __future__ import annotations

from typing import Protocol

from lineage_graph.layout.types import PositionedSnapshot


class Renderer(Protocol):
    """Protocol that all renderers must implement."""

    def render(self, positioned: PositionedSnapshot) -> str:
        """Render a positioned lineage graph to an output string."""
        ...
