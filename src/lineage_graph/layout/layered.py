"""Layered (Sugiyama-style) layout for lineage graphs.

Phases:
  1. Cycle removal       (greedy feedback-arc-set ordering)
  2. Layer assignment    (longest path from the sources)
  3. Dummy insertion     (one synthetic node per skipped layer on long edges)
  4. Crossing reduction  (barycenter sweeps)
  5. Coordinates         (real node sizes, layer and node spacing)

With direction ``RIGHT`` layers run left to right, so upstream sources end up
on the left and downstream consumers on the right. ``DOWN`` runs top to bottom.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import networkx as nx

from lineage_graph.config import LayoutSettings
from lineage_graph.errors import LayoutError
from lineage_graph.layout.types import (
    DUMMY_PREFIX,
    LayoutEdgeSpec,
    LayoutNodeSpec,
    NodeBox,
    NodePosition,
)

MAX_SWEEPS = 24

# ─── Cycle Removal ────────────────────────────────────────────────────────────


def greedy_fas_ordering(graph: nx.DiGraph) -> list[str]:
    """Order nodes so that as few edges as possible point backwards.

    Eades–Lin–Smyth heuristic: repeatedly peel sinks onto the tail and sources
    onto the head; when only cycles remain, move the node with the largest
    out-degree surplus to the head. Ties break on node id so the result is
    deterministic.
    """
    active: set[str] = set(graph.nodes)
    out_deg: dict[str, int] = {n: graph.out_degree(n) for n in graph.nodes}
    in_deg: dict[str, int] = {n: graph.in_degree(n) for n in graph.nodes}
    head: list[str] = []
    tail: list[str] = []

    def detach(node: str) -> None:
        active.discard(node)
        for succ in graph.successors(node):
            if succ in active:
                in_deg[succ] -= 1
        for pred in graph.predecessors(node):
            if pred in active:
                out_deg[pred] -= 1

    while active:
        peeled = True
        while peeled:
            peeled = False
            for sink in sorted(n for n in active if out_deg[n] == 0):
                detach(sink)
                tail.append(sink)
                peeled = True
            for source in sorted(n for n in active if in_deg[n] == 0):
                detach(source)
                head.append(source)
                peeled = True

        if active:
            best = max(sorted(active), key=lambda n: out_deg[n] - in_deg[n])
            detach(best)
            head.append(best)

    return head + tail[::-1]


def remove_cycles(graph: nx.DiGraph) -> tuple[nx.DiGraph, set[tuple[str, str]]]:
    """Return an acyclic copy of ``graph`` and the edges that had to be reversed.

    Self-loops count as reversed and are dropped from the copy.
    """
    if graph.number_of_nodes() == 0:
        return graph.copy(), set()

    rank = {node: pos for pos, node in enumerate(greedy_fas_ordering(graph))}
    reversed_edges = {(src, tgt) for src, tgt in graph.edges() if src == tgt or rank[src] > rank[tgt]}

    dag: nx.DiGraph = nx.DiGraph()
    dag.add_nodes_from(graph.nodes(data=True))
    for src, tgt in graph.edges():
        if src == tgt:
            continue
        if (src, tgt) in reversed_edges:
            dag.add_edge(tgt, src)
        else:
            dag.add_edge(src, tgt)
    return dag, reversed_edges


# ─── Layer Assignment ─────────────────────────────────────────────────────────


def assign_layers(dag: nx.DiGraph) -> dict[str, int]:
    """Longest-path layering: every edge goes from a lower to a higher layer."""
    layers: dict[str, int] = {node: 0 for node in dag.nodes}
    for node in nx.topological_sort(dag):
        for succ in dag.successors(node):
            if layers[succ] < layers[node] + 1:
                layers[succ] = layers[node] + 1
    return layers


# ─── Dummy Nodes ──────────────────────────────────────────────────────────────


@dataclass
class AugmentedGraph:
    """Layered graph in which every edge joins adjacent layers."""

    graph: nx.DiGraph
    layers: dict[str, int]
    layer_count: int
    dummy_chains: dict[tuple[str, str], list[str]] = field(default_factory=dict)


def insert_dummy_nodes(dag: nx.DiGraph, layers: dict[str, int]) -> AugmentedGraph:
    """Replace each edge spanning k > 1 layers with a chain of k - 1 dummy nodes."""
    g: nx.DiGraph = nx.DiGraph()
    g.add_nodes_from(dag.nodes)
    layer_of = dict(layers)
    chains: dict[tuple[str, str], list[str]] = {}

    for index, (src, tgt) in enumerate(sorted(dag.edges())):
        span = layer_of[tgt] - layer_of[src]
        if span <= 1:
            g.add_edge(src, tgt)
            continue
        chain: list[str] = []
        prev = src
        for step in range(1, span):
            dummy = f"{DUMMY_PREFIX}{index}_{step}"
            layer_of[dummy] = layer_of[src] + step
            g.add_edge(prev, dummy)
            chain.append(dummy)
            prev = dummy
        g.add_edge(prev, tgt)
        chains[(src, tgt)] = chain

    layer_count = (max(layer_of.values()) + 1) if layer_of else 0
    return AugmentedGraph(graph=g, layers=layer_of, layer_count=layer_count, dummy_chains=chains)


# ─── Crossing Reduction ───────────────────────────────────────────────────────


def count_crossings(ordering: list[list[str]], graph: nx.DiGraph) -> int:
    """Number of pairwise edge crossings between consecutive layers."""
    total = 0
    for upper, lower in zip(ordering, ordering[1:]):
        lower_pos = {node: i for i, node in enumerate(lower)}
        segments = [
            (i, lower_pos[succ])
            for i, node in enumerate(upper)
            if node in graph
            for succ in graph.successors(node)
            if succ in lower_pos
        ]
        for a in range(len(segments)):
            for b in range(a + 1, len(segments)):
                (s1, t1), (s2, t2) = segments[a], segments[b]
                if (s1 - s2) * (t1 - t2) < 0:
                    total += 1
    return total


def _barycenter(node: str, neighbours: list[str], positions: dict[str, int], fallback: float) -> float:
    placed = [positions[n] for n in neighbours if n in positions]
    if not placed:
        return fallback
    return sum(placed) / len(placed)


def order_layers(aug: AugmentedGraph, max_sweeps: int = MAX_SWEEPS) -> list[list[str]]:
    """Order nodes within each layer to reduce crossings.

    Alternates downward sweeps (predecessor barycenters) and upward sweeps
    (successor barycenters), keeping the best ordering seen. A node with no
    neighbours in the reference layer keeps its current position.
    """
    ordering: list[list[str]] = [[] for _ in range(aug.layer_count)]
    for node in sorted(aug.layers):
        ordering[aug.layers[node]].append(node)

    graph = aug.graph
    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(best, graph)

    for _ in range(max_sweeps):
        if best_crossings == 0:
            break
        for idx in range(1, len(ordering)):
            ref = {n: i for i, n in enumerate(ordering[idx - 1])}
            current = ordering[idx]
            ordering[idx] = sorted(
                current,
                key=lambda n: _barycenter(n, list(graph.predecessors(n)), ref, float(current.index(n))),
            )
        for idx in range(len(ordering) - 2, -1, -1):
            ref = {n: i for i, n in enumerate(ordering[idx + 1])}
            current = ordering[idx]
            ordering[idx] = sorted(
                current,
                key=lambda n: _barycenter(n, list(graph.successors(n)), ref, float(current.index(n))),
            )

        crossings = count_crossings(ordering, graph)
        if crossings >= best_crossings:
            break
        best = [list(layer) for layer in ordering]
        best_crossings = crossings

    return best


# ─── Coordinates ──────────────────────────────────────────────────────────────


def assign_coordinates(
    ordering: list[list[str]],
    aug: AugmentedGraph,
    sizes: dict[str, tuple[float, float]],
    settings: LayoutSettings,
) -> dict[str, NodeBox]:
    """Place every node (dummies included) using its real (width, height).

    The layer axis is x for ``RIGHT`` and y for ``DOWN``. Each layer is a band
    as thick as its largest node; nodes are centred in their band and stacked
    along the cross axis with ``node_spacing`` between them. Each layer is
    then shifted so its nodes line up with their predecessors on average.
    """
    horizontal = settings.direction == "RIGHT"

    def extents(node: str) -> tuple[float, float]:
        """(along layer axis, across layer axis)."""
        w, h = sizes.get(node, (0.0, 0.0))
        return (w, h) if horizontal else (h, w)

    thickness = [max((extents(n)[0] for n in layer), default=0.0) for layer in ordering]
    band_start: list[float] = []
    offset = 0.0
    for t in thickness:
        band_start.append(offset)
        offset += t + settings.layer_spacing

    spans = [
        sum(extents(n)[1] for n in layer) + settings.node_spacing * max(0, len(layer) - 1) for layer in ordering
    ]
    widest = max(spans, default=0.0)

    # Cross-axis start of every node, centred on the widest layer.
    cross: dict[str, float] = {}
    for idx, layer in enumerate(ordering):
        pos = (widest - spans[idx]) / 2
        for node in layer:
            cross[node] = pos
            pos += extents(node)[1] + settings.node_spacing

    def mid(node: str) -> float:
        return cross[node] + extents(node)[1] / 2

    for idx in range(1, len(ordering)):
        own: list[float] = []
        parents: list[float] = []
        for node in ordering[idx]:
            for pred in aug.graph.predecessors(node):
                if aug.layers.get(pred) == idx - 1:
                    own.append(mid(node))
                    parents.append(mid(pred))
        if not own:
            continue
        shift = sum(parents) / len(parents) - sum(own) / len(own)
        for node in ordering[idx]:
            cross[node] += shift

    low = min(cross.values(), default=0.0)
    boxes: dict[str, NodeBox] = {}
    for idx, layer in enumerate(ordering):
        for node in layer:
            w, h = sizes.get(node, (0.0, 0.0))
            along = band_start[idx] + (thickness[idx] - extents(node)[0]) / 2
            across = cross[node] - low
            x, y = (along, across) if horizontal else (across, along)
            boxes[node] = NodeBox(id=node, x=x, y=y, width=w, height=h)
    return boxes


# ─── Full Pipeline ────────────────────────────────────────────────────────────


def compute_layout(
    nodes: list[LayoutNodeSpec],
    edges: list[LayoutEdgeSpec],
    settings: LayoutSettings,
) -> list[NodePosition]:
    """Run all phases and return the top-left position of every input node."""
    sizes: dict[str, tuple[float, float]] = {}
    graph: nx.DiGraph = nx.DiGraph()
    for spec in nodes:
        if spec.id in sizes:
            raise LayoutError(f"Duplicate layout node {spec.id!r}")
        sizes[spec.id] = (spec.width, spec.height)
        graph.add_node(spec.id)
    for edge in edges:
        if edge.source not in sizes or edge.target not in sizes:
            raise LayoutError(f"Edge {edge.id!r} references a node that is not in the layout")
        graph.add_edge(edge.source, edge.target)

    if not sizes:
        return []

    dag, _ = remove_cycles(graph)
    aug = insert_dummy_nodes(dag, assign_layers(dag))
    ordering = order_layers(aug)
    boxes = assign_coordinates(ordering, aug, sizes, settings)
    return [NodePosition(id=spec.id, x=boxes[spec.id].x, y=boxes[spec.id].y) for spec in nodes]


class LayeredLayoutEngine:
    """Async layout engine running ``compute_layout`` off the event loop."""

    def __init__(self, settings: LayoutSettings | None = None) -> None:
        self.settings = settings or LayoutSettings()

    async def layout(self, nodes: list[LayoutNodeSpec], edges: list[LayoutEdgeSpec]) -> list[NodePosition]:
        return await asyncio.to_thread(compute_layout, list(nodes), list(edges), self.settings)
