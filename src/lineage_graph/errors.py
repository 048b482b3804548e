"""Exception hierarchy for the lineage engine."""

from __future__ import annotations


class LineageError(Exception):
    """Base class for every error raised by lineage_graph."""


class FetchFailure(LineageError):
    """A lineage fetch failed (network, HTTP status, or undecodable payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CenterNotFound(LineageError):
    """The response does not contain the entity the fetch was anchored on."""

    def __init__(self, fqn: str) -> None:
        super().__init__(f"Center node not found for FQN: {fqn}")
        self.fqn = fqn


class SessionClosed(LineageError):
    """An operation was attempted on a lineage session that has been closed."""


class ConfigError(LineageError):
    """The configuration file could not be read or holds invalid values."""


class LayoutError(LineageError):
    """The layout engine could not place the given graph."""
