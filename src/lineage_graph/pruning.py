"""Reachability-based visibility for collapsed lineage.

Collapsing ``(N, upstream)`` cuts every edge ``u → N`` whose source is not on
the center's own side of ``N``; collapsing ``(N, downstream)`` cuts every edge
``N → v`` whose target is not. An entity stays visible while some path from
the center (edge direction ignored) reaches it without crossing a cut edge,
so an entity shared by two branches survives until both branches are
collapsed.

Visibility is always recomputed over the session's sighting cache, not just
the current graph. That makes collapse and re-expand exact inverses: lifting
a boundary brings back precisely what that boundary hid, while every other
collapsed boundary stays in force.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

import networkx as nx

from lineage_graph.model import Direction, EntityKey
from lineage_graph.session import LineageSession

logger = logging.getLogger(__name__)

CutEdge = tuple[EntityKey, EntityKey]


@dataclass
class VisibilityChange:
    """What a visibility recomputation removed from or restored to the graph."""

    removed_entities: list[EntityKey] = field(default_factory=list)
    removed_edges: list[CutEdge] = field(default_factory=list)
    restored_entities: list[EntityKey] = field(default_factory=list)
    restored_edges: list[CutEdge] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed_entities or self.removed_edges or self.restored_entities or self.restored_edges)


def _centerward(graph: nx.DiGraph, center: EntityKey, key: EntityKey, direction: Direction) -> set[EntityKey]:
    """Neighbours of ``key`` that lie on the center's side for a collapse in ``direction``."""
    if center not in graph:
        return {center}
    ancestors = nx.ancestors(graph, center)
    descendants = nx.descendants(graph, center)
    side = {center} | (descendants if direction is Direction.UPSTREAM else ancestors)
    if key == center or key in ancestors or key in descendants:
        return side
    # A sideways node reaches the center only through a shared neighbour; keep that route.
    rest = graph.subgraph(n for n in graph if n != key).to_undirected(as_view=True)
    return side | nx.node_connected_component(rest, center)


def boundary_edges(
    graph: nx.DiGraph,
    center: EntityKey,
    key: EntityKey,
    direction: Direction,
) -> set[CutEdge]:
    """Edges hidden by collapsing ``(key, direction)``.

    Edges leading back toward the center (the center itself, or nodes on the
    center's side in the opposite direction) are never cut, so the collapsed
    node keeps its own route to the center. For a node that is neither
    upstream nor downstream of the center, any neighbour still connected to
    the center without passing through ``key`` counts as the center's side.
    """
    if key not in graph:
        return set()
    centerward = _centerward(graph, center, key, direction)
    if direction is Direction.UPSTREAM:
        return {(src, key) for src in graph.predecessors(key) if src not in centerward}
    return {(key, tgt) for tgt in graph.successors(key) if tgt not in centerward}


def cut_edges(
    graph: nx.DiGraph,
    center: EntityKey,
    boundaries: Iterable[tuple[EntityKey, Direction]],
) -> set[CutEdge]:
    cut: set[CutEdge] = set()
    for key, direction in boundaries:
        cut |= boundary_edges(graph, center, key, direction)
    return cut


def visible_keys(
    graph: nx.DiGraph,
    center: EntityKey,
    cut: set[CutEdge],
    anchors: Iterable[EntityKey] = (),
) -> set[EntityKey]:
    """Entities reachable from ``center`` ignoring direction, without using cut edges.

    ``anchors`` are kept regardless of reachability (a node being collapsed is
    never removed by its own collapse).
    """
    seen: set[EntityKey] = set()
    if center in graph:
        seen.add(center)
        queue: deque[EntityKey] = deque([center])
        while queue:
            node = queue.popleft()
            for succ in graph.successors(node):
                if succ not in seen and (node, succ) not in cut:
                    seen.add(succ)
                    queue.append(succ)
            for pred in graph.predecessors(node):
                if pred not in seen and (pred, node) not in cut:
                    seen.add(pred)
                    queue.append(pred)
    seen.update(a for a in anchors if a in graph)
    return seen


def reconcile(session: LineageSession, anchors: Iterable[EntityKey] = ()) -> VisibilityChange:
    """Bring the session's registry and edge store in line with current visibility.

    Removes entities and edges that the active collapsed boundaries hide and
    restores cached ones that are reachable again. Never removes the center.
    """
    cache = session.cache
    center = session.center_key
    cut = cut_edges(cache.graph, center, session.collapsed_boundaries())
    # Only a currently visible anchor is pinned; collapsing a hidden node does not reveal it.
    pinned = [a for a in anchors if a in session.registry]
    visible = visible_keys(cache.graph, center, cut, pinned)
    if center in session.registry:
        visible.add(center)
    wanted_edges = {
        (src, tgt) for src, tgt in cache.graph.edges() if src in visible and tgt in visible and (src, tgt) not in cut
    }

    change = VisibilityChange()

    for edge in session.edges.edges():
        pair = (edge.from_key, edge.to_key)
        if pair not in wanted_edges:
            session.edges.remove_edge(*pair)
            change.removed_edges.append(pair)

    for key in session.registry.keys():
        if key not in visible:
            session.registry.remove_entity(key)
            change.removed_entities.append(key)

    for key in sorted(visible):
        if key not in session.registry and key in cache.entities:
            session.registry.upsert_entity(cache.entities[key])
            change.restored_entities.append(key)

    for src, tgt in sorted(wanted_edges):
        if not session.edges.has_edge(src, tgt) and session.edges.upsert_edge(src, tgt):
            change.restored_edges.append((src, tgt))

    if change.changed:
        logger.debug(
            "Visibility: -%d entities -%d edges, +%d entities +%d edges",
            len(change.removed_entities),
            len(change.removed_edges),
            len(change.restored_entities),
            len(change.restored_edges),
        )
    return change
