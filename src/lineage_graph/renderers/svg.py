"""SVG renderer: draws a positioned lineage snapshot."""

from __future__ import annotations

from lineage_graph.layout.types import NodeBox, PositionedSnapshot
from lineage_graph.model import Edge, Entity, NodeRole

# ─── Constants ──────────────────────────────────────────────────────────────

FONT_SIZE = 14
SMALL_FONT_SIZE = 11
FONT_FAMILY = "sans-serif"
PADDING = 20  # canvas padding in pixels
MIN_CURVE = 40  # minimum control-point offset for edge curves

# (fill, stroke) per role
_ROLE_COLOURS: dict[NodeRole, tuple[str, str]] = {
    NodeRole.CENTER: ("#e3f2fd", "#1565c0"),
    NodeRole.UPSTREAM: ("#e8f5e9", "#2e7d32"),
    NodeRole.DOWNSTREAM: ("#fff3e0", "#ef6c00"),
    NodeRole.BOTH: ("#f3e5f5", "#6a1b9a"),
    NodeRole.OTHER: ("#fafafa", "#757575"),
}

_EDGE_STROKE = 'fill="none" stroke="#90a4ae" stroke-width="1.5"'


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _font(size: int = FONT_SIZE) -> str:
    return f'font-family="{FONT_FAMILY}" font-size="{size}"'


def _num(v: float) -> str:
    return f"{v:.1f}".rstrip("0").rstrip(".")


# ─── Node Rendering ─────────────────────────────────────────────────────────


def _render_node(entity: Entity, box: NodeBox, role: NodeRole, dx: float, dy: float) -> str:
    x, y = box.x + dx, box.y + dy
    w, h = box.width, box.height
    cx = x + w / 2
    fill, stroke = _ROLE_COLOURS[role]
    width = "3" if role is NodeRole.CENTER else "1.5"
    dash = ' stroke-dasharray="6 4"' if entity.deleted else ""

    parts = [
        f'<g class="node {role.value}" data-key="{_escape(entity.key)}">',
        f'<rect x="{_num(x)}" y="{_num(y)}" width="{_num(w)}" height="{_num(h)}" rx="8" '
        f'fill="{fill}" stroke="{stroke}" stroke-width="{width}"{dash}/>',
    ]
    if entity.breadcrumb:
        parts.append(
            f'<text x="{_num(cx)}" y="{_num(y + 22)}" text-anchor="middle" {_font(SMALL_FONT_SIZE)} '
            f'fill="#616161">{_escape(entity.breadcrumb)}</text>'
        )
    parts.append(
        f'<text x="{_num(cx)}" y="{_num(y + h / 2)}" dominant-baseline="central" text-anchor="middle" '
        f'{_font()} font-weight="bold">{_escape(entity.label)}</text>'
    )
    parts.append(
        f'<text x="{_num(cx)}" y="{_num(y + h - 14)}" text-anchor="middle" {_font(SMALL_FONT_SIZE)} '
        f'fill="#9e9e9e">{_escape(entity.type)}</text>'
    )
    parts.append("</g>")
    return "\n".join(parts)


# ─── Edge Rendering ─────────────────────────────────────────────────────────


def _render_edge(edge: Edge, src: NodeBox, tgt: NodeBox, horizontal: bool, dx: float, dy: float) -> str:
    """Cubic curve from the source's outgoing side to the target's incoming side."""
    if horizontal:
        sx, sy = src.x + src.width + dx, src.y + src.height / 2 + dy
        tx, ty = tgt.x + dx, tgt.y + tgt.height / 2 + dy
        bend = max(abs(tx - sx) / 2, MIN_CURVE)
        c1, c2 = (sx + bend, sy), (tx - bend, ty)
    else:
        sx, sy = src.x + src.width / 2 + dx, src.y + src.height + dy
        tx, ty = tgt.x + tgt.width / 2 + dx, tgt.y + dy
        bend = max(abs(ty - sy) / 2, MIN_CURVE)
        c1, c2 = (sx, sy + bend), (tx, ty - bend)

    d = (
        f"M {_num(sx)} {_num(sy)} "
        f"C {_num(c1[0])} {_num(c1[1])}, {_num(c2[0])} {_num(c2[1])}, {_num(tx)} {_num(ty)}"
    )
    return f'<path id="{_escape(edge.id)}" d="{d}" {_EDGE_STROKE} marker-end="url(#arrowhead)"/>'


# ─── Public Renderer ────────────────────────────────────────────────────────


class SvgRenderer:
    """SVG renderer: consumes a positioned snapshot, produces an SVG string.

    ``direction`` must match the layout direction (``RIGHT`` or ``DOWN``) so
    edges leave and enter nodes on the right sides.
    """

    def __init__(self, direction: str = "RIGHT") -> None:
        self.direction = direction

    def render(self, positioned: PositionedSnapshot) -> str:
        snapshot = positioned.snapshot
        boxes = positioned.boxes
        placed = [e for e in snapshot.entities if e.key in boxes]
        if not placed:
            return ""

        min_x = min(boxes[e.key].x for e in placed)
        min_y = min(boxes[e.key].y for e in placed)
        max_x = max(boxes[e.key].x + boxes[e.key].width for e in placed)
        max_y = max(boxes[e.key].y + boxes[e.key].height for e in placed)
        dx, dy = PADDING - min_x, PADDING - min_y
        svg_w = max_x - min_x + PADDING * 2
        svg_h = max_y - min_y + PADDING * 2

        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{_num(svg_w)}" height="{_num(svg_h)}" '
            f'viewBox="0 0 {_num(svg_w)} {_num(svg_h)}">',
            "<defs>",
            '  <marker id="arrowhead" markerWidth="10" markerHeight="7" refX="10" refY="3.5" orient="auto">',
            '    <polygon points="0 0, 10 3.5, 0 7" fill="#90a4ae"/>',
            "  </marker>",
            "</defs>",
            f'<rect width="{_num(svg_w)}" height="{_num(svg_h)}" fill="white"/>',
        ]

        # Edges (behind nodes), sorted for deterministic output
        horizontal = self.direction == "RIGHT"
        for edge in sorted(snapshot.edges, key=lambda e: (e.from_key, e.to_key)):
            src, tgt = boxes.get(edge.from_key), boxes.get(edge.to_key)
            if src is None or tgt is None:
                continue
            parts.append(_render_edge(edge, src, tgt, horizontal, dx, dy))

        # Nodes (on top)
        for entity in placed:
            parts.append(_render_node(entity, boxes[entity.key], snapshot.role(entity.key), dx, dy))

        parts.append("</svg>")
        return "\n".join(parts)
