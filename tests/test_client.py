"""Tests for client.py: OpenMetadataClient over httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from lineage_graph.client import OpenMetadataClient
from lineage_graph.config import Settings
from lineage_graph.errors import CenterNotFound, FetchFailure
from lineage_graph.model import Direction

ORDERS_FQN = "svc.db.schema.orders"

PAYLOAD = {
    "entity": {"id": "1", "fullyQualifiedName": ORDERS_FQN, "name": "orders", "type": "table"},
    "nodes": [
        {"id": "2", "fullyQualifiedName": "svc.db.schema.customers", "name": "customers", "type": "table"},
        {"id": "3", "fullyQualifiedName": "svc.dash.report", "name": "report", "type": "dashboard"},
    ],
    "upstreamEdges": [{"fromEntity": {"id": "2"}, "toEntity": {"id": "1"}}],
    "downstreamEdges": [{"fromEntity": {"id": "1"}, "toEntity": {"id": "3"}}],
}


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, response: httpx.Response | Exception) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    @property
    def params(self) -> dict[str, str]:
        return dict(self.requests[-1].url.params)


def make_client(handler: Recorder, **overrides) -> OpenMetadataClient:
    settings = Settings(openmetadata_url="http://om.test/", **overrides)
    return OpenMetadataClient(settings, transport=httpx.MockTransport(handler))


class TestGetLineage:
    async def test_request_shape(self):
        handler = Recorder(httpx.Response(200, json=PAYLOAD))
        async with make_client(handler, auth_token="secret") as client:
            await client.get_lineage(ORDERS_FQN)
        request = handler.requests[0]
        assert request.url.host == "om.test"
        assert request.url.path == "/api/v1/lineage/getLineage"
        assert request.headers["Authorization"] == "Bearer secret"
        assert handler.params == {
            "fqn": ORDERS_FQN,
            "type": "table",
            "upstreamDepth": "1",
            "downstreamDepth": "2",
            "includeDeleted": "false",
            "size": "50",
        }

    async def test_no_auth_header_without_token(self):
        handler = Recorder(httpx.Response(200, json=PAYLOAD))
        async with make_client(handler) as client:
            await client.get_lineage(ORDERS_FQN)
        assert "Authorization" not in handler.requests[0].headers

    async def test_combines_both_directions(self):
        async with make_client(Recorder(httpx.Response(200, json=PAYLOAD))) as client:
            result = await client.get_lineage(ORDERS_FQN)
        assert result.direction is None
        assert result.center.fqn == ORDERS_FQN
        assert len(result.nodes) == 3
        assert len(result.edges) == 2

    async def test_center_missing(self):
        payload = {"nodes": PAYLOAD["nodes"]}
        async with make_client(Recorder(httpx.Response(200, json=payload))) as client:
            with pytest.raises(CenterNotFound):
                await client.get_lineage(ORDERS_FQN)

    async def test_http_error_status(self):
        async with make_client(Recorder(httpx.Response(500))) as client:
            with pytest.raises(FetchFailure, match="HTTP 500: Internal Server Error") as info:
                await client.get_lineage(ORDERS_FQN)
        assert info.value.status_code == 500

    async def test_network_error(self):
        handler = Recorder(httpx.ConnectError("connection refused"))
        async with make_client(handler) as client:
            with pytest.raises(FetchFailure, match="connection refused"):
                await client.get_lineage(ORDERS_FQN)

    async def test_malformed_body(self):
        async with make_client(Recorder(httpx.Response(200, text="<html>"))) as client:
            with pytest.raises(FetchFailure, match="Malformed"):
                await client.get_lineage(ORDERS_FQN)

    async def test_zero_depth_stays_zero(self):
        handler = Recorder(httpx.Response(200, json=PAYLOAD))
        async with make_client(handler, lineage_depth=0) as client:
            await client.get_lineage(ORDERS_FQN)
        assert handler.params["upstreamDepth"] == "0"
        assert handler.params["downstreamDepth"] == "0"


class TestExpandLineage:
    async def test_upstream_only(self):
        handler = Recorder(httpx.Response(200, json=PAYLOAD))
        async with make_client(handler, expand_depth=3) as client:
            result = await client.expand_lineage(ORDERS_FQN, ORDERS_FQN, Direction.UPSTREAM)
        assert handler.params["upstreamDepth"] == "2"
        assert handler.params["downstreamDepth"] == "0"
        assert [e.from_entity.id for e in result.edges] == ["2"]

    async def test_downstream_only(self):
        handler = Recorder(httpx.Response(200, json=PAYLOAD))
        async with make_client(handler) as client:
            result = await client.expand_lineage(ORDERS_FQN, "svc.db.schema.customers", Direction.DOWNSTREAM)
        assert handler.params["fqn"] == "svc.db.schema.customers"
        assert handler.params["upstreamDepth"] == "0"
        assert handler.params["downstreamDepth"] == "2"
        assert result.center_fqn == "svc.db.schema.customers"
        assert [e.to_entity.id for e in result.edges] == ["3"]

    async def test_empty_response_is_valid(self):
        async with make_client(Recorder(httpx.Response(200, json={}))) as client:
            result = await client.expand_lineage(ORDERS_FQN, ORDERS_FQN, Direction.DOWNSTREAM)
        assert result.is_empty

    def test_collapse_is_local_ack(self):
        handler = Recorder(httpx.Response(200, json={}))
        client = make_client(handler)
        ack = client.collapse_lineage("x", Direction.UPSTREAM)
        assert ack.node_id == "x"
        assert handler.requests == []


class TestProbes:
    async def test_has_lineage(self):
        async with make_client(Recorder(httpx.Response(200, json=PAYLOAD))) as client:
            assert await client.has_lineage(ORDERS_FQN) is True

    async def test_has_lineage_without_edges(self):
        async with make_client(Recorder(httpx.Response(200, json={"entity": PAYLOAD["entity"]}))) as client:
            assert await client.has_lineage(ORDERS_FQN) is False

    async def test_has_lineage_on_failure(self):
        async with make_client(Recorder(httpx.Response(404))) as client:
            assert await client.has_lineage(ORDERS_FQN) is False

    async def test_connection(self):
        handler = Recorder(httpx.Response(200, json={"version": "1.3.0"}))
        async with make_client(handler) as client:
            assert await client.test_connection() is True
        assert handler.requests[0].url.path == "/api/v1/system/version"

    async def test_connection_refused(self):
        async with make_client(Recorder(httpx.ConnectError("refused"))) as client:
            assert await client.test_connection() is False
