"""Per-node, per-direction expand/collapse state machine.

States for each ``(entity, direction)`` pair::

    IDLE ──expand──▶ LOADING ──ok──▶ EXPANDED ──collapse──▶ COLLAPSED
                        │                                      │
                        └──fail──▶ ERROR          expand ◀─────┘

Expanding a COLLAPSED pair restores the hidden subgraph from the session's
sighting cache without a network round trip unless a refresh is requested.
At most one fetch is in flight per pair; fetches on different pairs run
concurrently and each merges on its own once it resolves. Fetch failures and
timeouts stop here: they become ERROR state and never reach the merge engine.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from lineage_graph.client import LineageDataSource
from lineage_graph.errors import CenterNotFound, FetchFailure
from lineage_graph.merge import MergeEngine, MergeResult
from lineage_graph.model import (
    CollapseAck,
    Direction,
    DirectionState,
    EntityKey,
    ExpansionStatus,
    FetchResult,
)
from lineage_graph.pruning import VisibilityChange, reconcile
from lineage_graph.session import LineageSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ExpansionOutcome:
    """Result of one expand, collapse or initial load."""

    key: EntityKey
    direction: Direction | None
    state: DirectionState | None = None
    merge: MergeResult | None = None
    visibility: VisibilityChange | None = None
    ack: CollapseAck | None = None
    from_cache: bool = False
    error: str | None = None

    @property
    def changed(self) -> bool:
        """Whether the graph itself changed (and therefore needs a new layout)."""
        merged = self.merge is not None and self.merge.changed
        shown = self.visibility is not None and self.visibility.changed
        return merged or shown

    @property
    def ok(self) -> bool:
        return self.error is None


class ExpansionController:
    def __init__(
        self,
        session: LineageSession,
        source: LineageDataSource,
        merge_engine: MergeEngine | None = None,
        fetch_timeout: float | None = 30.0,
    ) -> None:
        self.session = session
        self.source = source
        self.merge_engine = merge_engine or MergeEngine(session)
        self.fetch_timeout = fetch_timeout

    async def _fetch(self, request: Awaitable[T]) -> T:
        return await asyncio.wait_for(request, timeout=self.fetch_timeout)

    # ── Initial load ──

    async def load(self, entity_type: str | None = None) -> ExpansionOutcome:
        """Fetch and merge the symmetric lineage around the session center.

        On failure the session records the error and the graph stays empty.
        """
        session = self.session
        session.ensure_open()
        if entity_type:
            session.entity_type = entity_type
        outcome = ExpansionOutcome(key=session.center_key, direction=None)
        try:
            fetch = await self._fetch(self.source.get_lineage(session.center_fqn, session.entity_type))
            if session.closed:
                outcome.error = "session closed"
                return outcome
            outcome.merge = self.merge_engine.merge(fetch)
        except (FetchFailure, CenterNotFound, asyncio.TimeoutError) as exc:
            message = _describe(exc)
            if not session.closed:
                session.error = message
            outcome.error = message
            logger.error("Lineage load for %s failed: %s", session.center_fqn, message)
            return outcome

        session.loaded = True
        session.error = None
        center = session.center_key
        # Both directions of the center were just fetched.
        for direction in Direction:
            state = session.state(center, direction)
            state.status = ExpansionStatus.EXPANDED
            if direction is Direction.UPSTREAM:
                state.has_known_connections = bool(session.edges.predecessors(center))
            else:
                state.has_known_connections = bool(session.edges.successors(center))
        logger.info(
            "Loaded lineage for %s: %d entities, %d edges",
            session.center_fqn,
            len(session.registry),
            len(session.edges),
        )
        return outcome

    # ── Expand ──

    async def request_expand(
        self,
        key: EntityKey,
        direction: Direction,
        refresh: bool = False,
    ) -> ExpansionOutcome | None:
        """Expand ``(key, direction)``.

        Returns ``None`` when a fetch for that pair is already in flight, or
        when the session closed while the fetch was pending.
        """
        session = self.session
        session.ensure_open()
        state = session.state(key, direction)
        if state.loading:
            logger.debug("Expand %s %s ignored: already loading", key, direction.value)
            return None

        if state.status is ExpansionStatus.COLLAPSED and not refresh:
            return self._restore(key, direction, state)

        entity = session.registry.get(key)
        if entity is None:
            raise KeyError(f"Cannot expand {key!r}: entity is not in the graph")

        was_collapsed = state.status is ExpansionStatus.COLLAPSED
        state.status = ExpansionStatus.LOADING
        state.error = None
        outcome = ExpansionOutcome(key=key, direction=direction, state=state)
        try:
            fetch: FetchResult = await self._fetch(
                self.source.expand_lineage(session.center_fqn, key, direction, entity.type)
            )
            if session.closed:
                return None
            outcome.merge = self.merge_engine.merge(fetch)
        except (FetchFailure, CenterNotFound, asyncio.TimeoutError) as exc:
            if session.closed:
                return None
            message = _describe(exc)
            if state.loading:
                state.status = ExpansionStatus.ERROR
                state.error = message
            outcome.error = message
            logger.warning("Expand %s %s failed: %s", key, direction.value, message)
            return outcome

        if state.loading:
            state.status = ExpansionStatus.EXPANDED
        # else: collapsed while in flight; the new data stays hidden behind the boundary.
        state.has_known_connections = bool(outcome.merge.added_entities) or bool(fetch.edges)

        if was_collapsed or session.collapsed_boundaries():
            outcome.visibility = self._apply_visibility()
        return outcome

    def _restore(self, key: EntityKey, direction: Direction, state: DirectionState) -> ExpansionOutcome:
        state.status = ExpansionStatus.EXPANDED
        state.error = None
        visibility = self._apply_visibility()
        logger.debug(
            "Restored %s %s from cache (+%d entities)", key, direction.value, len(visibility.restored_entities)
        )
        return ExpansionOutcome(key=key, direction=direction, state=state, visibility=visibility, from_cache=True)

    # ── Collapse ──

    def request_collapse(self, key: EntityKey, direction: Direction) -> ExpansionOutcome:
        """Hide everything reachable only through ``(key, direction)``. Never fails."""
        session = self.session
        session.ensure_open()
        state = session.state(key, direction)
        state.status = ExpansionStatus.COLLAPSED
        state.error = None
        visibility = self._apply_visibility(anchors=(key,))
        ack = self.source.collapse_lineage(key, direction)
        logger.debug(
            "Collapsed %s %s: -%d entities, -%d edges",
            key,
            direction.value,
            len(visibility.removed_entities),
            len(visibility.removed_edges),
        )
        return ExpansionOutcome(key=key, direction=direction, state=state, visibility=visibility, ack=ack)

    def _apply_visibility(self, anchors: tuple[EntityKey, ...] = ()) -> VisibilityChange:
        session = self.session
        change = reconcile(session, anchors=anchors)
        if change.changed:
            session.reclassify()
            session.bump()
        return change


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "Lineage request timed out"
    return str(exc) or exc.__class__.__name__
