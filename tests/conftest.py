"""Shared fixtures: in-memory lineage sources and small graph builders."""

from __future__ import annotations

import asyncio

import pytest

from lineage_graph.errors import CenterNotFound
from lineage_graph.model import CollapseAck, Direction, EdgeRef, Entity, EntityRef, FetchResult
from lineage_graph.session import LineageSession

ORDERS = "db.schema.orders"
CUSTOMERS = "db.schema.customers"
RAW_ORDERS = "db.schema.raw_orders"

# ─── Builders ─────────────────────────────────────────────────────────────────


def ent(fqn: str, **kwargs) -> Entity:
    """Entity with a predictable id (``id-<fqn>``) and name (last fqn segment)."""
    kwargs.setdefault("name", fqn.split(".")[-1])
    return Entity(id=f"id-{fqn}", fqn=fqn, **kwargs)


def ref(fqn: str) -> EntityRef:
    return EntityRef(id=f"id-{fqn}", fqn=fqn)


def edge(src: str, tgt: str) -> EdgeRef:
    return EdgeRef(from_entity=ref(src), to_entity=ref(tgt))


def fetch(
    anchor: str,
    direction: Direction | None,
    nodes: list[str | Entity],
    edges: list[tuple[str, str]] = (),
) -> FetchResult:
    entities = [n if isinstance(n, Entity) else ent(n) for n in nodes]
    center = next((e for e in entities if e.fqn == anchor), None)
    return FetchResult(
        center_fqn=anchor,
        direction=direction,
        nodes=entities,
        edges=[edge(a, b) for a, b in edges],
        center=center,
    )


def orders_fetch() -> FetchResult:
    """orders with two upstream tables: customers → orders ← raw_orders."""
    return fetch(ORDERS, None, [ORDERS, CUSTOMERS, RAW_ORDERS], [(CUSTOMERS, ORDERS), (RAW_ORDERS, ORDERS)])


# ─── Fake data source ─────────────────────────────────────────────────────────


class FakeLineageSource:
    """Scripted ``LineageDataSource``.

    ``initial`` answers ``get_lineage`` (an exception instance is raised).
    ``expansions[(node_id, direction)]`` answers ``expand_lineage``; a missing
    entry answers with an empty result. ``hold(...)`` returns an event the
    matching call waits on before answering.
    """

    def __init__(self, initial: FetchResult | Exception | None = None) -> None:
        self.initial = initial
        self.expansions: dict[tuple[str, Direction], FetchResult | Exception] = {}
        self.gates: dict[tuple[str, Direction | None], asyncio.Event] = {}
        self.calls: list[tuple[str, str, Direction | None]] = []
        self.collapses: list[tuple[str, Direction]] = []

    def on_expand(self, node_id: str, direction: Direction, result: FetchResult | Exception) -> None:
        self.expansions[(node_id, direction)] = result

    def hold(self, node_id: str, direction: Direction | None) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[(node_id, direction)] = gate
        return gate

    @property
    def expand_calls(self) -> list[tuple[str, Direction | None]]:
        return [(key, direction) for kind, key, direction in self.calls if kind == "expand"]

    async def get_lineage(self, fqn: str, entity_type: str = "table") -> FetchResult:
        self.calls.append(("get", fqn, None))
        gate = self.gates.get((fqn, None))
        if gate is not None:
            await gate.wait()
        if isinstance(self.initial, Exception):
            raise self.initial
        if self.initial is None:
            raise CenterNotFound(fqn)
        return self.initial

    async def expand_lineage(
        self, fqn: str, node_id: str, direction: Direction, entity_type: str = "table"
    ) -> FetchResult:
        self.calls.append(("expand", node_id, direction))
        gate = self.gates.get((node_id, direction))
        if gate is not None:
            await gate.wait()
        result = self.expansions.get((node_id, direction))
        if isinstance(result, Exception):
            raise result
        if result is None:
            return FetchResult(center_fqn=node_id, direction=direction)
        return result

    def collapse_lineage(self, node_id: str, direction: Direction) -> CollapseAck:
        self.collapses.append((node_id, direction))
        return CollapseAck(node_id=node_id, direction=direction)


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def orders_source() -> FakeLineageSource:
    return FakeLineageSource(orders_fetch())


@pytest.fixture
def orders_session() -> LineageSession:
    return LineageSession(ORDERS)
