"""Graph store collaborator interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class GraphStoreError(Exception):
    """Raised when a single store request fails."""


class GraphStoreUnavailableError(GraphStoreError):
    """Raised when the store cannot be reached at all."""


@dataclass(frozen=True)
class PurgeResult:
    """What a path purge removed, so per-run caches can drop stale ids."""

    removed_nodes: int = 0
    symbols: tuple[str, ...] = field(default_factory=tuple)
    modules: tuple[str, ...] = field(default_factory=tuple)


@runtime_checkable
class GraphStore(Protocol):
    """Primitive graph operations plus the two queries the sync engine needs.

    ``merge_node`` must be safe to call repeatedly with the same match
    properties; uniqueness under concurrent callers is the store's job.
    """

    def merge_node(
        self,
        labels: list[str],
        match: dict[str, Any],
        properties: dict[str, Any],
    ) -> str: ...

    def create_node(self, labels: list[str], properties: dict[str, Any]) -> str: ...

    def create_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: dict[str, Any] | None = None,
    ) -> str: ...

    def execute_query(
        self, text: str, parameters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]: ...

    def file_hashes(self, service: str) -> dict[str, str]:
        """Return ``path -> content hash`` for every File of ``service``."""
        ...

    def purge_file(self, service: str, path: str, *, drop_file: bool) -> PurgeResult:
        """Remove the subgraph persisted for ``path``.

        Definitions and references owned by the file are deleted, as are
        Symbols left without any DEFINES or REFERENCES edge. With
        ``drop_file`` the File node goes too, along with Modules no longer
        contained by any File; otherwise only the File's relationships are
        removed so its node identity survives re-indexing.
        """
        ...


__all__ = [
    "GraphStore",
    "GraphStoreError",
    "GraphStoreUnavailableError",
    "PurgeResult",
]
