"""In-memory graph store.

Mirrors the merge and purge semantics of the Neo4j store without a database,
for dry runs and JSONL export. Every mutating call bumps ``write_count``.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import orjson

from graph.models import FILE_OWNED_LABELS, NodeLabel, RelType
from graph.store import GraphStoreError, PurgeResult

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@dataclass
class MemoryNode:
    id: str
    labels: frozenset[str]
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass
class MemoryRelationship:
    id: str
    type: str
    start: str
    end: str
    properties: dict[str, Any] = field(default_factory=dict)


class InMemoryGraphStore:
    """Graph store held in process memory."""

    def __init__(self) -> None:
        self.nodes: dict[str, MemoryNode] = {}
        self.relationships: dict[str, MemoryRelationship] = {}
        self.write_count = 0
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}:{next(self._ids)}"

    def _find(self, labels: list[str], match: dict[str, Any]) -> MemoryNode | None:
        wanted = set(labels)
        for node in self.nodes.values():
            if not wanted.issubset(node.labels):
                continue
            if all(node.properties.get(k) == v for k, v in match.items()):
                return node
        return None

    def merge_node(
        self,
        labels: list[str],
        match: dict[str, Any],
        properties: dict[str, Any],
    ) -> str:
        self.write_count += 1
        node = self._find(labels, match)
        if node is None:
            node = MemoryNode(self._next_id("n"), frozenset(labels), dict(match))
            self.nodes[node.id] = node
        node.properties.update(properties)
        return node.id

    def create_node(self, labels: list[str], properties: dict[str, Any]) -> str:
        self.write_count += 1
        node = MemoryNode(self._next_id("n"), frozenset(labels), dict(properties))
        self.nodes[node.id] = node
        return node.id

    def create_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: dict[str, Any] | None = None,
    ) -> str:
        if from_id not in self.nodes or to_id not in self.nodes:
            msg = f"cannot link {from_id} -> {to_id}: node not found"
            raise GraphStoreError(msg)
        self.write_count += 1
        rel = MemoryRelationship(
            self._next_id("r"), rel_type, from_id, to_id, dict(properties or {})
        )
        self.relationships[rel.id] = rel
        return rel.id

    def execute_query(
        self, text: str, parameters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        msg = "the in-memory store does not execute Cypher"
        raise GraphStoreError(msg)

    # Queries used by the sync engine

    def file_hashes(self, service: str) -> dict[str, str]:
        hashes: dict[str, str] = {}
        for file_node in self.find_nodes(NodeLabel.FILE.value, service=service):
            path = file_node.properties.get("path")
            digest = file_node.properties.get("hash")
            if isinstance(path, str) and isinstance(digest, str):
                hashes[path] = digest
        return hashes

    def purge_file(self, service: str, path: str, *, drop_file: bool) -> PurgeResult:
        owned = [
            node.id
            for node in self.nodes.values()
            if node.labels & set(FILE_OWNED_LABELS)
            and node.properties.get("service") == service
            and node.properties.get("filePath") == path
        ]
        touched = {
            rel.end
            for node_id in owned
            for rel in self._outgoing(node_id)
            if rel.type in (RelType.DEFINES.value, RelType.REFERENCES.value)
        }
        for node_id in owned:
            self._detach_delete(node_id)

        symbols: list[str] = []
        for symbol_id in sorted(touched):
            if not self._incoming(
                symbol_id, RelType.DEFINES.value, RelType.REFERENCES.value
            ):
                symbols.append(self.nodes[symbol_id].properties.get("symbol", ""))
                self._detach_delete(symbol_id)

        modules: list[str] = []
        removed = len(owned) + len(symbols)
        for file_node in self.find_nodes(
            NodeLabel.FILE.value, service=service, path=path
        ):
            if not drop_file:
                for rel in [*self._outgoing(file_node.id), *self._incoming(file_node.id)]:
                    self._delete_relationship(rel.id)
                continue

            module_ids = [
                rel.end
                for rel in self._outgoing(file_node.id, RelType.CONTAINS.value)
                if NodeLabel.MODULE.value in self.nodes[rel.end].labels
            ]
            self._detach_delete(file_node.id)
            removed += 1
            for module_id in module_ids:
                still_contained = any(
                    NodeLabel.FILE.value in self.nodes[rel.start].labels
                    for rel in self._incoming(module_id, RelType.CONTAINS.value)
                )
                if not still_contained:
                    modules.append(self.nodes[module_id].properties.get("fqn", ""))
                    self._detach_delete(module_id)
                    removed += 1

        return PurgeResult(
            removed_nodes=removed, symbols=tuple(symbols), modules=tuple(modules)
        )

    # Inspection helpers

    def find_nodes(self, label: str | None = None, **properties: Any) -> list[MemoryNode]:
        return [
            node
            for node in self.nodes.values()
            if (label is None or label in node.labels)
            and all(node.properties.get(k) == v for k, v in properties.items())
        ]

    def count_nodes(self, label: str | None = None) -> int:
        return len(self.find_nodes(label))

    def count_relationships(self, rel_type: str | None = None) -> int:
        return sum(
            1
            for rel in self.relationships.values()
            if rel_type is None or rel.type == rel_type
        )

    def neighbors(self, node_id: str, rel_type: str | None = None) -> list[MemoryNode]:
        return [self.nodes[rel.end] for rel in self._outgoing(node_id, *_types(rel_type))]

    def parents(self, node_id: str, rel_type: str | None = None) -> list[MemoryNode]:
        return [
            self.nodes[rel.start] for rel in self._incoming(node_id, *_types(rel_type))
        ]

    def iter_records(self) -> Iterator[dict[str, Any]]:
        for node in sorted(self.nodes.values(), key=lambda n: _id_order(n.id)):
            yield {
                "type": "node",
                "id": node.id,
                "labels": sorted(node.labels),
                "properties": node.properties,
            }
        for rel in sorted(self.relationships.values(), key=lambda r: _id_order(r.id)):
            yield {
                "type": "relationship",
                "id": rel.id,
                "label": rel.type,
                "start": rel.start,
                "end": rel.end,
                "properties": rel.properties,
            }

    def dump_jsonl(self, path: Path) -> int:
        """Write every node and relationship as one JSON object per line."""
        count = 0
        with path.open("wb") as handle:
            for record in self.iter_records():
                handle.write(orjson.dumps(record, option=orjson.OPT_SORT_KEYS))
                handle.write(b"\n")
                count += 1
        return count

    # Internal graph surgery

    def _outgoing(self, node_id: str, *types: str) -> list[MemoryRelationship]:
        return [
            rel
            for rel in self.relationships.values()
            if rel.start == node_id and (not types or rel.type in types)
        ]

    def _incoming(self, node_id: str, *types: str) -> list[MemoryRelationship]:
        return [
            rel
            for rel in self.relationships.values()
            if rel.end == node_id and (not types or rel.type in types)
        ]

    def _delete_relationship(self, rel_id: str) -> None:
        if self.relationships.pop(rel_id, None) is not None:
            self.write_count += 1

    def _detach_delete(self, node_id: str) -> None:
        for rel in [*self._outgoing(node_id), *self._incoming(node_id)]:
            self._delete_relationship(rel.id)
        if self.nodes.pop(node_id, None) is not None:
            self.write_count += 1


def _types(rel_type: str | None) -> tuple[str, ...]:
    return () if rel_type is None else (rel_type,)


def _id_order(identifier: str) -> int:
    return int(identifier.split(":", 1)[1])


__all__ = ["InMemoryGraphStore", "MemoryNode", "MemoryRelationship"]
