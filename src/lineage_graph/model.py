"""Core value types shared by every component of the lineage engine.

Entities and edges are frozen dataclasses. An entity's identity is its
``key``: the fully-qualified name, or the opaque id when the service returned
no fqn. Everything else on an entity is displayable data that a later
sighting may overwrite.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

EntityKey = str


class Direction(str, Enum):
    """Lineage direction relative to an entity."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"

    @property
    def opposite(self) -> Direction:
        return Direction.DOWNSTREAM if self is Direction.UPSTREAM else Direction.UPSTREAM


class NodeRole(str, Enum):
    CENTER = "center"
    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    BOTH = "both"
    OTHER = "other"


# ─── Entities ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Entity:
    """A data asset (table, pipeline, dashboard, …) as reported by the service."""

    id: str
    fqn: str
    type: str = "table"
    name: str | None = None
    display_name: str | None = None
    description: str | None = None
    deleted: bool = False

    @property
    def key(self) -> EntityKey:
        return self.fqn or self.id

    @property
    def label(self) -> str:
        """Display label: display name, then name, then the last fqn segment."""
        if self.display_name:
            return self.display_name
        if self.name:
            return self.name
        if self.fqn:
            return self.fqn.split(".")[-1] or "Unknown"
        return "Unknown"

    @property
    def breadcrumb(self) -> str:
        """Parent path of the fqn, e.g. ``service / db / schema``."""
        parts = self.fqn.split(".") if self.fqn else []
        if len(parts) <= 1:
            return ""
        return " / ".join(parts[:-1])

    def merged_with(self, newer: Entity) -> Entity:
        """Return a copy refreshed with ``newer``'s displayable fields.

        Identity (``fqn``) never changes. Fields ``newer`` leaves empty keep
        their current value; ``deleted`` always follows the latest sighting.
        """
        return replace(
            self,
            id=self.id or newer.id,
            type=newer.type or self.type,
            name=newer.name if newer.name is not None else self.name,
            display_name=newer.display_name if newer.display_name is not None else self.display_name,
            description=newer.description if newer.description is not None else self.description,
            deleted=newer.deleted,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fullyQualifiedName": self.fqn,
            "name": self.name,
            "displayName": self.display_name,
            "type": self.type,
            "description": self.description,
            "deleted": self.deleted,
        }


@dataclass(frozen=True)
class EntityRef:
    """Edge endpoint as sent on the wire: an id and/or a fully-qualified name."""

    id: str = ""
    fqn: str = ""

    @property
    def key(self) -> EntityKey:
        return self.fqn or self.id


# ─── Edges ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Edge:
    """A directed lineage relationship: data flows ``from_key`` → ``to_key``."""

    from_key: EntityKey
    to_key: EntityKey

    @property
    def id(self) -> str:
        return f"{self.from_key}->{self.to_key}"


@dataclass(frozen=True)
class EdgeRef:
    """An edge as received from the service, before endpoint resolution."""

    from_entity: EntityRef
    to_entity: EntityRef


# ─── Fetch results ────────────────────────────────────────────────────────────


@dataclass
class FetchResult:
    """One lineage response, already decoded from the wire.

    ``direction`` is ``None`` for a symmetric (initial) fetch. ``center_fqn``
    is the entity the fetch was anchored on; ``center`` is that entity when
    the response included it.
    """

    center_fqn: str
    direction: Direction | None
    nodes: list[Entity] = field(default_factory=list)
    edges: list[EdgeRef] = field(default_factory=list)
    center: Entity | None = None

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


@dataclass(frozen=True)
class CollapseAck:
    """Acknowledgement for a purely local collapse."""

    node_id: str
    direction: Direction


# ─── Per-node direction state ─────────────────────────────────────────────────


class ExpansionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EXPANDED = "expanded"
    COLLAPSED = "collapsed"
    ERROR = "error"


@dataclass
class DirectionState:
    """Expand/collapse state of one (entity, direction) pair.

    ``has_known_connections`` is ``None`` while nothing is known, ``True``
    once an edge in this direction has been seen and ``False`` after a fetch
    came back empty.
    """

    status: ExpansionStatus = ExpansionStatus.IDLE
    error: str | None = None
    has_known_connections: bool | None = None

    @property
    def loading(self) -> bool:
        return self.status is ExpansionStatus.LOADING

    @property
    def collapsed(self) -> bool:
        # A failed expansion renders as collapsed.
        return self.status in (ExpansionStatus.COLLAPSED, ExpansionStatus.ERROR)


# ─── Snapshots ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable view of the session graph handed to layout and rendering."""

    version: int
    center_key: EntityKey
    entities: tuple[Entity, ...]
    edges: tuple[Edge, ...]
    upstream: frozenset[EntityKey] = frozenset()
    downstream: frozenset[EntityKey] = frozenset()

    def role(self, key: EntityKey) -> NodeRole:
        if key == self.center_key:
            return NodeRole.CENTER
        up = key in self.upstream
        down = key in self.downstream
        if up and down:
            return NodeRole.BOTH
        if up:
            return NodeRole.UPSTREAM
        if down:
            return NodeRole.DOWNSTREAM
        return NodeRole.OTHER

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "centerNode": self.center_key,
            "nodes": [dict(e.to_dict(), role=self.role(e.key).value) for e in self.entities],
            "edges": [{"id": e.id, "source": e.from_key, "target": e.to_key} for e in self.edges],
        }
