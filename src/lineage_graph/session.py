"""Lineage session: the explicit owner of all per-session graph state.

A session is opened for one center entity. It owns the entity registry, the
edge store, a local cache of every sighting (used to restore a collapsed
subgraph without refetching), the per-(entity, direction) expansion states
and the upstream/downstream classification. Every component receives the
session by reference; nothing lives at module level, so several sessions can
coexist.
"""

from __future__ import annotations

import logging

import networkx as nx

from lineage_graph.errors import SessionClosed
from lineage_graph.model import (
    Direction,
    DirectionState,
    Entity,
    EntityKey,
    ExpansionStatus,
    GraphSnapshot,
)
from lineage_graph.registry import EdgeStore, EntityRegistry

logger = logging.getLogger(__name__)


class SightingCache:
    """Everything ever merged into the session, whether currently visible or not."""

    def __init__(self) -> None:
        self.entities: dict[EntityKey, Entity] = {}
        self.graph: nx.DiGraph = nx.DiGraph()

    def record_entity(self, entity: Entity) -> None:
        self.entities[entity.key] = entity
        self.graph.add_node(entity.key)

    def record_edge(self, from_key: EntityKey, to_key: EntityKey) -> None:
        self.graph.add_edge(from_key, to_key)

    def clear(self) -> None:
        self.entities.clear()
        self.graph.clear()


class LineageSession:
    """All mutable state of one lineage view."""

    def __init__(self, center_fqn: str, entity_type: str = "table") -> None:
        self.center_fqn = center_fqn
        self.entity_type = entity_type
        self.registry = EntityRegistry()
        self.edges = EdgeStore(self.registry)
        self.cache = SightingCache()
        self.states: dict[tuple[EntityKey, Direction], DirectionState] = {}
        self.upstream: frozenset[EntityKey] = frozenset()
        self.downstream: frozenset[EntityKey] = frozenset()
        self.version = 0
        self.loaded = False
        self.error: str | None = None
        self.closed = False

    @property
    def center_key(self) -> EntityKey:
        # The center is located by fqn, so its key is always that fqn.
        return self.center_fqn

    def ensure_open(self) -> None:
        if self.closed:
            raise SessionClosed(f"Lineage session for {self.center_fqn} is closed")

    # ── Direction state ──

    def state(self, key: EntityKey, direction: Direction) -> DirectionState:
        """Return (creating on first access) the state of ``(key, direction)``."""
        return self.states.setdefault((key, direction), DirectionState())

    def collapsed_boundaries(self) -> set[tuple[EntityKey, Direction]]:
        return {pair for pair, st in self.states.items() if st.status is ExpansionStatus.COLLAPSED}

    def is_collapsed(self, key: EntityKey, direction: Direction) -> bool:
        st = self.states.get((key, direction))
        return st is not None and st.status is ExpansionStatus.COLLAPSED

    def note_connections(self) -> None:
        """Mark every (entity, direction) with a visible edge as having connections."""
        graph = self.edges.graph
        for key in graph.nodes:
            if graph.in_degree(key) > 0:
                self.state(key, Direction.UPSTREAM).has_known_connections = True
            if graph.out_degree(key) > 0:
                self.state(key, Direction.DOWNSTREAM).has_known_connections = True

    # ── Classification ──

    def reclassify(self) -> None:
        """Recompute upstream/downstream membership from the full edge set."""
        center = self.center_key
        graph = self.edges.graph
        if center not in graph:
            self.upstream = frozenset()
            self.downstream = frozenset()
            return
        self.upstream = frozenset(nx.ancestors(graph, center))
        self.downstream = frozenset(nx.descendants(graph, center))

    def bump(self) -> int:
        self.version += 1
        return self.version

    # ── Snapshot / lifecycle ──

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            version=self.version,
            center_key=self.center_key,
            entities=tuple(self.registry),
            edges=tuple(self.edges),
            upstream=self.upstream,
            downstream=self.downstream,
        )

    def close(self) -> None:
        """Destroy the graph: clear every store and refuse further work."""
        if self.closed:
            return
        self.registry.clear()
        self.edges.clear()
        self.cache.clear()
        self.states.clear()
        self.upstream = frozenset()
        self.downstream = frozenset()
        self.closed = True
        logger.info("Closed lineage session for %s", self.center_fqn)
