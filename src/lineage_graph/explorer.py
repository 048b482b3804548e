"""High-level entry point wiring a session, its controller and layout together."""

from __future__ import annotations

import logging

from lineage_graph.client import LineageDataSource
from lineage_graph.config import Settings
from lineage_graph.errors import SessionClosed
from lineage_graph.expansion import ExpansionController, ExpansionOutcome
from lineage_graph.layout.coordinator import LayoutRequestCoordinator
from lineage_graph.layout.layered import LayeredLayoutEngine
from lineage_graph.layout.types import LayoutEngine, PositionedSnapshot
from lineage_graph.model import Direction, EntityKey
from lineage_graph.session import LineageSession

logger = logging.getLogger(__name__)


class LineageExplorer:
    """One lineage view: open a center entity, expand and collapse around it.

    A new layout is requested only after an operation that changed the graph.
    """

    def __init__(
        self,
        source: LineageDataSource,
        settings: Settings | None = None,
        engine: LayoutEngine | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.source = source
        self.coordinator = LayoutRequestCoordinator(
            engine or LayeredLayoutEngine(self.settings.layout),
            self.settings.layout,
        )
        self.session: LineageSession | None = None
        self.controller: ExpansionController | None = None

    @property
    def positioned(self) -> PositionedSnapshot | None:
        """The most recently applied layout."""
        return self.coordinator.current

    def _require(self) -> tuple[LineageSession, ExpansionController]:
        if self.session is None or self.controller is None:
            raise SessionClosed("No lineage session is open")
        return self.session, self.controller

    async def open(self, fqn: str, entity_type: str = "table") -> ExpansionOutcome:
        """Start a new session centred on ``fqn``, replacing any open one."""
        if self.session is not None:
            self.close()
        session = LineageSession(fqn, entity_type)
        self.session = session
        self.controller = ExpansionController(session, self.source, fetch_timeout=self.settings.fetch_timeout)
        outcome = await self.controller.load()
        if outcome.ok and not session.closed:
            await self.coordinator.request_layout(session.snapshot())
        return outcome

    async def expand(self, key: EntityKey, direction: Direction, refresh: bool = False) -> ExpansionOutcome | None:
        session, controller = self._require()
        outcome = await controller.request_expand(key, direction, refresh=refresh)
        if outcome is not None and outcome.changed and not session.closed:
            await self.coordinator.request_layout(session.snapshot())
        return outcome

    async def collapse(self, key: EntityKey, direction: Direction) -> ExpansionOutcome:
        session, controller = self._require()
        outcome = controller.request_collapse(key, direction)
        if outcome.changed:
            await self.coordinator.request_layout(session.snapshot())
        return outcome

    def close(self) -> None:
        if self.session is not None:
            self.session.close()
        self.session = None
        self.coordinator.reset()
        self.controller = None
