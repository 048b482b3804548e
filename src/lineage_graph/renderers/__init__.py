from lineage_graph.renderers.base import Renderer
from lineage_graph.renderers.svg import SvgRenderer

__all__ = ["Renderer", "SvgRenderer"]
