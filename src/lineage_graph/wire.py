"""Pydantic models for the metadata service's lineage payloads.

The service has answered in two shapes over time: ``nodes`` / ``*Edges`` as
lists, or as objects keyed by fqn / edge id whose values wrap the entity.
Edge endpoints are either entity references or bare id strings. The models
accept all of these and convert to the engine's value types.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from lineage_graph.model import Direction, EdgeRef, Entity, EntityRef, FetchResult


def _values(raw: Any) -> Any:
    if raw is None:
        return []
    if isinstance(raw, dict):
        return list(raw.values())
    return raw


class WireEntityRef(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = ""
    fqn: str | None = Field("", validation_alias=AliasChoices("fullyQualifiedName", "fqn"))

    def to_ref(self) -> EntityRef:
        return EntityRef(id=self.id or "", fqn=self.fqn or "")


class WireEntity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = ""
    fqn: str | None = Field(None, validation_alias=AliasChoices("fullyQualifiedName", "fqn"))
    name: str | None = None
    display_name: str | None = Field(None, validation_alias=AliasChoices("displayName", "display_name"))
    type: str | None = Field(None, validation_alias=AliasChoices("type", "entityType"))
    description: str | None = None
    deleted: bool | None = False

    def to_entity(self, default_type: str = "table") -> Entity:
        return Entity(
            id=self.id or "",
            fqn=self.fqn or "",
            type=self.type or default_type,
            name=self.name,
            display_name=self.display_name,
            description=self.description,
            deleted=bool(self.deleted),
        )


class WireEdge(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_entity: WireEntityRef = Field(validation_alias=AliasChoices("fromEntity", "from_entity"))
    to_entity: WireEntityRef = Field(validation_alias=AliasChoices("toEntity", "to_entity"))

    @field_validator("from_entity", "to_entity", mode="before")
    @classmethod
    def bare_id_endpoint(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"id": value}
        return value

    def to_edge_ref(self) -> EdgeRef:
        return EdgeRef(from_entity=self.from_entity.to_ref(), to_entity=self.to_entity.to_ref())


class LineageResponse(BaseModel):
    """Body of ``GET /api/v1/lineage/getLineage``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entity: WireEntity | None = None
    nodes: list[WireEntity] = Field(default_factory=list)
    upstream_edges: list[WireEdge] = Field(
        default_factory=list, validation_alias=AliasChoices("upstreamEdges", "upstream_edges")
    )
    downstream_edges: list[WireEdge] = Field(
        default_factory=list, validation_alias=AliasChoices("downstreamEdges", "downstream_edges")
    )

    @field_validator("nodes", mode="before")
    @classmethod
    def unwrap_nodes(cls, raw: Any) -> Any:
        # Keyed form wraps each entity as {"entity": {...}, "paging": ...}.
        return [item["entity"] if isinstance(item, dict) and "entity" in item else item for item in _values(raw)]

    @field_validator("upstream_edges", "downstream_edges", mode="before")
    @classmethod
    def unwrap_edges(cls, raw: Any) -> Any:
        return _values(raw)

    def to_fetch_result(self, anchor_fqn: str, direction: Direction | None, default_type: str = "table") -> FetchResult:
        """Convert to a ``FetchResult`` anchored on ``anchor_fqn``.

        For a directional fetch only that direction's edges are kept.
        """
        entities: list[Entity] = []
        seen: set[str] = set()
        wire_nodes = ([self.entity] if self.entity is not None else []) + list(self.nodes)
        for wire in wire_nodes:
            entity = wire.to_entity(default_type)
            if entity.key in seen:
                continue
            seen.add(entity.key)
            entities.append(entity)

        wire_edges: list[WireEdge] = []
        if direction in (None, Direction.UPSTREAM):
            wire_edges.extend(self.upstream_edges)
        if direction in (None, Direction.DOWNSTREAM):
            wire_edges.extend(self.downstream_edges)

        center = next((e for e in entities if e.fqn == anchor_fqn), None)
        return FetchResult(
            center_fqn=anchor_fqn,
            direction=direction,
            nodes=entities,
            edges=[edge.to_edge_ref() for edge in wire_edges],
            center=center,
        )
