"""Merge engine: reconciles a directional fetch into the session graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lineage_graph.errors import CenterNotFound
from lineage_graph.model import EdgeRef, EntityKey, EntityRef, FetchResult
from lineage_graph.pruning import cut_edges
from lineage_graph.session import LineageSession

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Diff produced by one merge.

    ``added_entities`` / ``added_edges`` list only what was new to the
    graph; ``refreshed_entities`` were already present and had their
    displayable fields updated. ``upstream`` / ``downstream`` are the
    session-wide classification after the merge.
    """

    added_entities: list[EntityKey] = field(default_factory=list)
    added_edges: list[tuple[EntityKey, EntityKey]] = field(default_factory=list)
    refreshed_entities: list[EntityKey] = field(default_factory=list)
    upstream: frozenset[EntityKey] = frozenset()
    downstream: frozenset[EntityKey] = frozenset()

    @property
    def changed(self) -> bool:
        return bool(self.added_entities or self.added_edges)


class MergeEngine:
    """Applies fetch results to a ``LineageSession`` without duplicating anything."""

    def __init__(self, session: LineageSession) -> None:
        self.session = session

    def merge(self, fetch: FetchResult) -> MergeResult:
        """Upsert the fetched entities and edges, then reclassify every entity.

        Raises ``CenterNotFound`` before touching any store when the entity
        the fetch was anchored on is neither in the response nor already
        registered. Merging the same fetch twice yields an empty diff.
        """
        session = self.session
        session.ensure_open()
        self._check_anchor(fetch)

        result = MergeResult()
        registry = session.registry

        # 1. Entities.
        for node in fetch.nodes:
            existed = registry.resolve(EntityRef(id=node.id, fqn=node.fqn)) is not None
            stored = registry.upsert_entity(node)
            session.cache.record_entity(stored)
            if existed:
                result.refreshed_entities.append(stored.key)
            else:
                result.added_entities.append(stored.key)

        # 2. Edges. Everything goes into the sighting cache; only edges not
        # hidden by a collapsed boundary reach the edge store.
        pending: list[tuple[EntityKey, EntityKey]] = []
        for edge in fetch.edges:
            endpoints = self._resolve_edge(edge)
            if endpoints is None:
                continue
            session.cache.record_edge(*endpoints)
            pending.append(endpoints)

        boundaries = session.collapsed_boundaries()
        cut = cut_edges(session.cache.graph, session.center_key, boundaries) if boundaries else set()
        for src, tgt in pending:
            if (src, tgt) in cut:
                continue
            if src not in registry or tgt not in registry:
                # Endpoint known from an earlier sighting but currently hidden.
                continue
            if session.edges.upsert_edge(src, tgt):
                result.added_edges.append((src, tgt))

        # 3. Classification over the full edge set.
        session.reclassify()
        session.note_connections()
        result.upstream = session.upstream
        result.downstream = session.downstream

        if result.changed:
            session.bump()
        logger.debug(
            "Merged %s fetch for %s: +%d entities, +%d edges, %d refreshed",
            fetch.direction.value if fetch.direction else "full",
            fetch.center_fqn,
            len(result.added_entities),
            len(result.added_edges),
            len(result.refreshed_entities),
        )
        return result

    def _check_anchor(self, fetch: FetchResult) -> None:
        anchor = fetch.center_fqn
        if any(node.fqn == anchor or (not node.fqn and node.id == anchor) for node in fetch.nodes):
            return
        if fetch.direction is None:
            # A full fetch opens the session: the center must be in the response.
            raise CenterNotFound(anchor)
        if fetch.is_empty:
            return
        if self.session.registry.resolve(EntityRef(id=anchor, fqn=anchor)) is None:
            raise CenterNotFound(anchor)

    def _resolve_edge(self, edge: EdgeRef) -> tuple[EntityKey, EntityKey] | None:
        src = self._resolve_ref(edge.from_entity)
        tgt = self._resolve_ref(edge.to_entity)
        if src is None or tgt is None:
            # Let the edge store reject and log it.
            self.session.edges.upsert_edge(edge.from_entity.key, edge.to_entity.key)
            return None
        return src, tgt

    def _resolve_ref(self, ref: EntityRef) -> EntityKey | None:
        key = self.session.registry.resolve(ref)
        if key is not None:
            return key
        cached = self.session.cache.entities
        if ref.fqn and ref.fqn in cached:
            return ref.fqn
        if ref.id:
            for cached_key, entity in cached.items():
                if entity.id == ref.id:
                    return cached_key
        return None
