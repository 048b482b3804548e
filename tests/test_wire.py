"""Tests for wire.py: decoding lineage payloads."""

from __future__ import annotations

from lineage_graph.model import Direction
from lineage_graph.wire import LineageResponse, WireEdge, WireEntity

ORDERS = {"id": "1", "fullyQualifiedName": "svc.db.schema.orders", "name": "orders", "type": "table"}
CUSTOMERS = {"id": "2", "fullyQualifiedName": "svc.db.schema.customers", "name": "customers", "type": "table"}
REPORT = {"id": "3", "fullyQualifiedName": "svc.dash.report", "name": "report", "type": "dashboard"}


def list_payload() -> dict:
    return {
        "entity": ORDERS,
        "nodes": [CUSTOMERS, REPORT],
        "upstreamEdges": [{"fromEntity": {"id": "2", "fqn": CUSTOMERS["fullyQualifiedName"]}, "toEntity": {"id": "1"}}],
        "downstreamEdges": [{"fromEntity": "1", "toEntity": "3"}],
    }


class TestWireEntity:
    def test_camel_case_fields(self):
        entity = WireEntity.model_validate(
            {"id": "9", "fullyQualifiedName": "a.b", "displayName": "B", "deleted": None}
        ).to_entity()
        assert entity.fqn == "a.b"
        assert entity.display_name == "B"
        assert entity.type == "table"
        assert entity.deleted is False

    def test_extra_fields_ignored(self):
        entity = WireEntity.model_validate({**REPORT, "owners": [], "href": "x"}).to_entity()
        assert entity.type == "dashboard"


class TestWireEdge:
    def test_bare_id_endpoints(self):
        ref = WireEdge.model_validate({"fromEntity": "1", "toEntity": "3"}).to_edge_ref()
        assert ref.from_entity.id == "1"
        assert ref.from_entity.key == "1"
        assert ref.to_entity.fqn == ""


class TestLineageResponse:
    def test_list_form(self):
        result = LineageResponse.model_validate(list_payload()).to_fetch_result("svc.db.schema.orders", None)
        assert [e.key for e in result.nodes] == [
            "svc.db.schema.orders",
            "svc.db.schema.customers",
            "svc.dash.report",
        ]
        assert len(result.edges) == 2
        assert result.center is not None
        assert result.center.name == "orders"

    def test_keyed_form_with_wrappers(self):
        payload = {
            "entity": ORDERS,
            "nodes": {
                CUSTOMERS["fullyQualifiedName"]: {"entity": CUSTOMERS, "paging": {"entityUpstreamCount": 0}},
                ORDERS["fullyQualifiedName"]: {"entity": ORDERS},
            },
            "upstreamEdges": {"2->1": {"fromEntity": {"id": "2"}, "toEntity": {"id": "1"}}},
            "downstreamEdges": {},
        }
        result = LineageResponse.model_validate(payload).to_fetch_result("svc.db.schema.orders", None)
        assert sorted(e.key for e in result.nodes) == ["svc.db.schema.customers", "svc.db.schema.orders"]
        assert len(result.edges) == 1

    def test_directional_filtering(self):
        response = LineageResponse.model_validate(list_payload())
        upstream = response.to_fetch_result("svc.db.schema.orders", Direction.UPSTREAM)
        downstream = response.to_fetch_result("svc.db.schema.orders", Direction.DOWNSTREAM)
        assert [e.from_entity.id for e in upstream.edges] == ["2"]
        assert [e.to_entity.id for e in downstream.edges] == ["3"]
        assert upstream.direction is Direction.UPSTREAM

    def test_missing_sections(self):
        result = LineageResponse.model_validate({}).to_fetch_result("x", Direction.UPSTREAM)
        assert result.is_empty
        assert result.center is None

    def test_default_type_applied(self):
        payload = {"entity": {"id": "1", "fullyQualifiedName": "p.q"}}
        result = LineageResponse.model_validate(payload).to_fetch_result("p.q", None, "pipeline")
        assert result.center.type == "pipeline"
