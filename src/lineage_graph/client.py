"""Lineage data sources.

``LineageDataSource`` is the boundary the expansion controller fetches
through. ``OpenMetadataClient`` implements it against the OpenMetadata REST
API with an ``httpx.AsyncClient``.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from lineage_graph.config import Settings
from lineage_graph.errors import CenterNotFound, FetchFailure
from lineage_graph.model import CollapseAck, Direction, FetchResult
from lineage_graph.wire import LineageResponse

logger = logging.getLogger(__name__)

LINEAGE_PATH = "/api/v1/lineage/getLineage"
VERSION_PATH = "/api/v1/system/version"


class LineageDataSource(Protocol):
    async def get_lineage(self, fqn: str, entity_type: str = "table") -> FetchResult:
        """Symmetric fetch around ``fqn``; must contain ``fqn`` itself."""
        ...

    async def expand_lineage(
        self,
        fqn: str,
        node_id: str,
        direction: Direction,
        entity_type: str = "table",
    ) -> FetchResult:
        """Single-direction fetch rooted at ``node_id``; empty means no further lineage."""
        ...

    def collapse_lineage(self, node_id: str, direction: Direction) -> CollapseAck: ...


def _api_upstream_depth(levels: int) -> int:
    # The lineage API counts upstream depth from zero: n levels are sent as n - 1.
    return 0 if levels == 0 else levels - 1


class OpenMetadataClient:
    """Async client for the OpenMetadata lineage API."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        headers = {"Content-Type": "application/json"}
        if settings.auth_token:
            headers["Authorization"] = f"Bearer {settings.auth_token}"
        self._http = httpx.AsyncClient(
            base_url=settings.openmetadata_url,
            headers=headers,
            timeout=settings.fetch_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> OpenMetadataClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_lineage_data(
        self,
        fqn: str,
        entity_type: str,
        upstream_depth: int,
        downstream_depth: int,
    ) -> LineageResponse:
        """Raw lineage query. ``upstream_depth`` / ``downstream_depth`` are level counts."""
        params = {
            "fqn": fqn,
            "type": entity_type,
            "upstreamDepth": str(_api_upstream_depth(upstream_depth)),
            "downstreamDepth": str(downstream_depth),
            "includeDeleted": "true" if self.settings.include_deleted else "false",
            "size": str(self.settings.nodes_per_layer),
        }
        try:
            response = await self._http.get(LINEAGE_PATH, params=params)
        except httpx.HTTPError as exc:
            raise FetchFailure(f"Failed to fetch lineage data: {exc}") from exc

        if response.is_error:
            raise FetchFailure(
                f"Failed to fetch lineage data: HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        try:
            return LineageResponse.model_validate(response.json())
        except ValueError as exc:
            raise FetchFailure(f"Malformed lineage response for {fqn}: {exc}") from exc

    async def get_lineage(self, fqn: str, entity_type: str = "table") -> FetchResult:
        depth = self.settings.lineage_depth
        data = await self.get_lineage_data(fqn, entity_type, depth, depth)
        result = data.to_fetch_result(fqn, None, entity_type)
        if result.center is None:
            raise CenterNotFound(fqn)
        logger.info("Fetched lineage for %s: %d nodes, %d edges", fqn, len(result.nodes), len(result.edges))
        return result

    async def expand_lineage(
        self,
        fqn: str,
        node_id: str,
        direction: Direction,
        entity_type: str = "table",
    ) -> FetchResult:
        depth = self.settings.expand_depth
        upstream = depth if direction is Direction.UPSTREAM else 0
        downstream = depth if direction is Direction.DOWNSTREAM else 0
        logger.debug("Expanding %s %s (session %s)", node_id, direction.value, fqn)
        data = await self.get_lineage_data(node_id, entity_type, upstream, downstream)
        return data.to_fetch_result(node_id, direction, entity_type)

    def collapse_lineage(self, node_id: str, direction: Direction) -> CollapseAck:
        return CollapseAck(node_id=node_id, direction=direction)

    async def has_lineage(self, fqn: str, entity_type: str = "table") -> bool:
        """Whether ``fqn`` has any one-level lineage. ``False`` when the probe fails."""
        try:
            data = await self.get_lineage_data(fqn, entity_type, 1, 1)
        except FetchFailure as exc:
            logger.warning("Lineage probe for %s failed: %s", fqn, exc)
            return False
        return bool(data.upstream_edges or data.downstream_edges)

    async def test_connection(self) -> bool:
        try:
            response = await self._http.get(VERSION_PATH)
        except httpx.HTTPError as exc:
            logger.warning("Connection test failed: %s", exc)
            return False
        return response.is_success
