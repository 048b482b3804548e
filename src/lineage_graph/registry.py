"""Canonical entity and edge stores for one lineage session.

``EntityRegistry`` deduplicates entities by key (fqn, falling back to id) and
keeps an id index so edge endpoints that carry only an id still resolve.
``EdgeStore`` keeps the deduplicated directed relationships in a
``networkx.DiGraph`` whose node set mirrors the registry, so an edge can never
outlive one of its endpoints.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol

import networkx as nx

from lineage_graph.model import Edge, Entity, EntityKey, EntityRef

logger = logging.getLogger(__name__)


class RegistryListener(Protocol):
    def entity_added(self, key: EntityKey) -> None: ...

    def entity_removed(self, key: EntityKey) -> None: ...


# ─── Entity Registry ──────────────────────────────────────────────────────────


class EntityRegistry:
    """Identity store for entities."""

    def __init__(self) -> None:
        self._entities: dict[EntityKey, Entity] = {}
        self._id_index: dict[str, EntityKey] = {}
        self._listeners: list[RegistryListener] = []

    def subscribe(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    def upsert_entity(self, entity: Entity) -> Entity:
        """Insert ``entity`` or merge its displayable fields into the stored record.

        Returns the canonical stored instance. A re-sighting under a known id
        merges into the existing record even if the key would differ, so an
        entity's identity never changes once registered.
        """
        key = self._lookup(entity.key, entity.id)
        if key is None:
            stored = entity
            key = entity.key
            self._entities[key] = stored
            if entity.id:
                self._id_index[entity.id] = key
            for listener in self._listeners:
                listener.entity_added(key)
            return stored

        stored = self._entities[key].merged_with(entity)
        self._entities[key] = stored
        if entity.id and entity.id not in self._id_index:
            self._id_index[entity.id] = key
        return stored

    def remove_entity(self, key: EntityKey) -> Entity | None:
        """Remove an entity and, through listeners, every edge touching it."""
        entity = self._entities.pop(key, None)
        if entity is None:
            return None
        for ent_id, indexed_key in list(self._id_index.items()):
            if indexed_key == key:
                del self._id_index[ent_id]
        for listener in self._listeners:
            listener.entity_removed(key)
        return entity

    def resolve(self, ref: EntityRef) -> EntityKey | None:
        """Map a wire-level reference to a registered key (fqn first, then id)."""
        return self._lookup(ref.fqn, ref.id)

    def get(self, key: EntityKey) -> Entity | None:
        return self._entities.get(key)

    def keys(self) -> list[EntityKey]:
        return list(self._entities)

    def clear(self) -> None:
        for key in list(self._entities):
            self.remove_entity(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def _lookup(self, key: str, ent_id: str) -> EntityKey | None:
        if key and key in self._entities:
            return key
        if ent_id and ent_id in self._id_index:
            return self._id_index[ent_id]
        if ent_id and ent_id in self._entities:
            return ent_id
        return None


# ─── Edge Store ───────────────────────────────────────────────────────────────


class EdgeStore:
    """Deduplicated directed edges between registered entities."""

    def __init__(self, registry: EntityRegistry) -> None:
        self._registry = registry
        self._graph: nx.DiGraph = nx.DiGraph()
        for key in registry.keys():
            self._graph.add_node(key)
        registry.subscribe(self)

    # RegistryListener

    def entity_added(self, key: EntityKey) -> None:
        self._graph.add_node(key)

    def entity_removed(self, key: EntityKey) -> None:
        if key in self._graph:
            self._graph.remove_node(key)

    # Edges

    def upsert_edge(self, from_key: EntityKey, to_key: EntityKey) -> bool:
        """Add ``from_key → to_key``. Returns ``True`` only if the edge is new.

        An edge whose endpoints are not both registered is rejected.
        """
        if from_key not in self._registry or to_key not in self._registry:
            logger.warning("Rejecting edge %s -> %s: endpoint not registered", from_key, to_key)
            return False
        if self._graph.has_edge(from_key, to_key):
            return False
        self._graph.add_edge(from_key, to_key)
        return True

    def remove_edge(self, from_key: EntityKey, to_key: EntityKey) -> bool:
        if not self._graph.has_edge(from_key, to_key):
            return False
        self._graph.remove_edge(from_key, to_key)
        return True

    def has_edge(self, from_key: EntityKey, to_key: EntityKey) -> bool:
        return self._graph.has_edge(from_key, to_key)

    def predecessors(self, key: EntityKey) -> list[EntityKey]:
        return list(self._graph.predecessors(key)) if key in self._graph else []

    def successors(self, key: EntityKey) -> list[EntityKey]:
        return list(self._graph.successors(key)) if key in self._graph else []

    @property
    def graph(self) -> nx.DiGraph:
        """Read-only view: one node per registered entity, one edge per relationship."""
        return self._graph.copy(as_view=True)

    def edges(self) -> list[Edge]:
        return [Edge(src, tgt) for src, tgt in self._graph.edges()]

    def clear(self) -> None:
        self._graph.remove_edges_from(list(self._graph.edges()))

    def __contains__(self, edge: object) -> bool:
        if not isinstance(edge, Edge):
            return False
        return self._graph.has_edge(edge.from_key, edge.to_key)

    def __len__(self) -> int:
        return self._graph.number_of_edges()

    def __iter__(self) -> Iterator[Edge]:
        return iter(self.edges())
