"""Tests for merge.py: reconciling fetches into the session graph."""

from __future__ import annotations

import pytest
from conftest import CUSTOMERS, ORDERS, RAW_ORDERS, ent, fetch, orders_fetch

from lineage_graph.errors import CenterNotFound, SessionClosed
from lineage_graph.merge import MergeEngine
from lineage_graph.model import Direction, EdgeRef, EntityRef, FetchResult
from lineage_graph.session import LineageSession


@pytest.fixture
def session() -> LineageSession:
    return LineageSession(ORDERS)


@pytest.fixture
def engine(session) -> MergeEngine:
    return MergeEngine(session)


class TestInitialMerge:
    def test_orders_scenario(self, session, engine):
        result = engine.merge(orders_fetch())
        assert sorted(result.added_entities) == sorted([ORDERS, CUSTOMERS, RAW_ORDERS])
        assert sorted(result.added_edges) == sorted([(CUSTOMERS, ORDERS), (RAW_ORDERS, ORDERS)])
        assert result.upstream == frozenset({CUSTOMERS, RAW_ORDERS})
        assert result.downstream == frozenset()
        assert session.version == 1

    def test_center_missing_from_full_fetch(self, session, engine):
        bad = fetch(ORDERS, None, [CUSTOMERS], [])
        with pytest.raises(CenterNotFound, match="Center node not found for FQN: db.schema.orders"):
            engine.merge(bad)
        assert len(session.registry) == 0
        assert session.version == 0

    def test_closed_session_refuses_merge(self, session, engine):
        session.close()
        with pytest.raises(SessionClosed):
            engine.merge(orders_fetch())


class TestIdempotence:
    def test_remerge_is_noop(self, session, engine):
        engine.merge(orders_fetch())
        again = engine.merge(orders_fetch())
        assert again.added_entities == []
        assert again.added_edges == []
        assert not again.changed
        assert len(session.registry) == 3
        assert len(session.edges) == 2
        assert session.version == 1

    def test_refreshed_entities_reported(self, engine):
        engine.merge(orders_fetch())
        again = engine.merge(orders_fetch())
        assert sorted(again.refreshed_entities) == sorted([ORDERS, CUSTOMERS, RAW_ORDERS])

    def test_latest_description_wins(self, session, engine):
        engine.merge(fetch(ORDERS, None, [ent(ORDERS, description="v1")]))
        engine.merge(fetch(ORDERS, Direction.UPSTREAM, [ent(ORDERS, description="v2")]))
        assert session.registry.get(ORDERS).description == "v2"
        assert len(session.registry) == 1


class TestEdgeResolution:
    def test_id_only_endpoints_resolve(self, session, engine):
        engine.merge(orders_fetch())
        loaded = FetchResult(
            center_fqn=ORDERS,
            direction=Direction.DOWNSTREAM,
            nodes=[ent(ORDERS), ent("db.schema.report")],
            edges=[EdgeRef(EntityRef(id=f"id-{ORDERS}"), EntityRef(id="id-db.schema.report"))],
        )
        result = engine.merge(loaded)
        assert result.added_edges == [(ORDERS, "db.schema.report")]
        assert session.downstream == frozenset({"db.schema.report"})

    def test_unresolvable_edge_is_dropped(self, session, engine):
        bad_edge = fetch(ORDERS, None, [ORDERS], [(ORDERS, "db.schema.ghost")])
        result = engine.merge(bad_edge)
        assert result.added_edges == []
        assert len(session.edges) == 0

    def test_no_dangling_edges(self, session, engine):
        engine.merge(orders_fetch())
        engine.merge(
            fetch(
                CUSTOMERS,
                Direction.UPSTREAM,
                [CUSTOMERS, "db.schema.crm"],
                [("db.schema.crm", CUSTOMERS), ("db.schema.nowhere", CUSTOMERS)],
            )
        )
        for e in session.edges:
            assert e.from_key in session.registry
            assert e.to_key in session.registry


class TestDirectionalMerge:
    def test_expand_anchor_already_registered(self, session, engine):
        engine.merge(orders_fetch())
        # Response omits the anchor node but the anchor is known.
        result = engine.merge(fetch(CUSTOMERS, Direction.UPSTREAM, ["db.schema.crm"], [("db.schema.crm", CUSTOMERS)]))
        assert result.added_entities == ["db.schema.crm"]
        assert "db.schema.crm" in session.upstream

    def test_unknown_anchor_rejected_before_mutation(self, session, engine):
        engine.merge(orders_fetch())
        before = (len(session.registry), len(session.edges), session.version)
        with pytest.raises(CenterNotFound):
            engine.merge(fetch("db.schema.elsewhere", Direction.UPSTREAM, ["db.schema.x"], []))
        assert (len(session.registry), len(session.edges), session.version) == before

    def test_empty_result_is_not_an_error(self, session, engine):
        engine.merge(orders_fetch())
        result = engine.merge(FetchResult(center_fqn="db.schema.unknown", direction=Direction.UPSTREAM))
        assert not result.changed

    def test_entity_can_be_upstream_and_downstream(self, session, engine):
        engine.merge(orders_fetch())
        engine.merge(
            fetch(ORDERS, Direction.DOWNSTREAM, [ORDERS, "db.schema.loop"], [(ORDERS, "db.schema.loop")])
        )
        engine.merge(
            fetch("db.schema.loop", Direction.DOWNSTREAM, ["db.schema.loop", CUSTOMERS], [("db.schema.loop", CUSTOMERS)])
        )
        snapshot = session.snapshot()
        assert snapshot.role(CUSTOMERS).value == "both"
        assert snapshot.role("db.schema.loop").value == "both"
        assert snapshot.role(RAW_ORDERS).value == "upstream"
        assert snapshot.role(ORDERS).value == "center"
