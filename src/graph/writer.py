"""Apply one file's extraction to a graph store.

Writes happen in a fixed order: the File node, its Module, definitions
parents-first, extra Symbol data, then usage references. A failure to merge
the File node fails the whole file; any later failure affects only the
entity being written and is logged and counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from graph.models import NodeLabel, RelType
from graph.store import GraphStoreError, GraphStoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

    from graph.models import (
        DefinitionRecord,
        FileExtraction,
        ReferenceRecord,
        ServiceRecord,
        SymbolRecord,
    )
    from graph.store import GraphStore
    from sync.context import RunContext

logger = logging.getLogger(__name__)


@dataclass
class WriteStats:
    nodes: int = 0
    relationships: int = 0
    entity_failures: int = 0


class GraphWriter:
    """Turns extraction records into store calls, reusing the run caches."""

    def __init__(self, store: GraphStore, context: RunContext) -> None:
        self.store = store
        self.context = context

    def ensure_service(self, service: ServiceRecord) -> str:
        """Merge the Service node once per run and return its id."""
        if self.context.service_id is None:
            self.context.service_id = self.store.merge_node(
                [NodeLabel.SERVICE.value],
                {"name": service.name},
                service.properties(),
            )
        return self.context.service_id

    def write_file(self, service: ServiceRecord, extraction: FileExtraction) -> WriteStats:
        """Persist ``extraction``.

        Raises:
            GraphStoreError: If the File node itself cannot be merged.
        """
        stats = WriteStats()
        service_id = self.ensure_service(service)
        file_id = self.store.merge_node(
            [NodeLabel.FILE.value],
            {"service": service.name, "path": extraction.path},
            extraction.file_properties(service.name),
        )
        stats.nodes += 1
        self._link(stats, service_id, file_id, RelType.CONTAINS)

        module_id = self._module_id(stats, extraction)
        if module_id is not None:
            self._link(stats, file_id, module_id, RelType.CONTAINS)

        node_ids: dict[str, str] = {}
        for definition in extraction.definitions:
            node_id = self._write_definition(stats, service.name, definition)
            if node_id is None:
                continue
            node_ids[definition.key] = node_id

            parent_id = module_id
            if definition.parent_key is not None:
                parent_id = node_ids.get(definition.parent_key, module_id)
            if parent_id is not None:
                self._link(stats, parent_id, node_id, RelType.CONTAINS)

            symbol_id = self._symbol_id(
                stats,
                definition.symbol,
                {
                    "kind": definition.symbol_kind,
                    "displayName": definition.name,
                    "documentation": definition.docstring,
                },
            )
            if symbol_id is not None:
                self._link(
                    stats,
                    node_id,
                    symbol_id,
                    RelType.DEFINES,
                    {"isExported": definition.is_exported},
                )

        for record in extraction.symbols:
            self._write_symbol(stats, record)

        for reference in extraction.references:
            self._write_reference(stats, service.name, file_id, reference)

        return stats

    def _module_id(self, stats: WriteStats, extraction: FileExtraction) -> str | None:
        module = extraction.module
        cached = self.context.module_ids.get(module.fqn)
        if cached is not None:
            return cached
        node_id = self._guarded(
            stats,
            f"module {module.fqn}",
            lambda: self.store.merge_node(
                [NodeLabel.MODULE.value], {"fqn": module.fqn}, module.properties()
            ),
        )
        if node_id is not None:
            stats.nodes += 1
            self.context.module_ids[module.fqn] = node_id
        return node_id

    def _write_definition(
        self, stats: WriteStats, service: str, definition: DefinitionRecord
    ) -> str | None:
        props = definition.properties()
        props["service"] = service
        node_id = self._guarded(
            stats,
            f"{definition.kind} {definition.name}",
            lambda: self.store.merge_node(
                [definition.kind],
                {
                    "service": service,
                    "signature": definition.signature,
                    "filePath": definition.file_path,
                },
                props,
            ),
        )
        if node_id is not None:
            stats.nodes += 1
        return node_id

    def _symbol_id(
        self, stats: WriteStats, symbol: str, properties: dict[str, Any]
    ) -> str | None:
        cached = self.context.symbol_ids.get(symbol)
        if cached is not None:
            return cached
        props = {key: value for key, value in properties.items() if value}
        node_id = self._guarded(
            stats,
            f"symbol {symbol}",
            lambda: self.store.merge_node(
                [NodeLabel.SYMBOL.value], {"symbol": symbol}, props
            ),
        )
        if node_id is not None:
            stats.nodes += 1
            self.context.symbol_ids[symbol] = node_id
        return node_id

    def _write_symbol(self, stats: WriteStats, record: SymbolRecord) -> None:
        self._symbol_id(
            stats,
            record.symbol,
            {
                "kind": record.kind,
                "displayName": record.display_name,
                "documentation": record.documentation,
            },
        )

    def _write_reference(
        self,
        stats: WriteStats,
        service: str,
        file_id: str,
        reference: ReferenceRecord,
    ) -> None:
        symbol_id = self._symbol_id(
            stats,
            reference.symbol,
            {"kind": reference.symbol_kind, "displayName": reference.display_name},
        )
        if symbol_id is None:
            return

        props = reference.properties()
        props["service"] = service
        props["symbol"] = reference.symbol
        reference_id = self._guarded(
            stats,
            f"reference to {reference.symbol}",
            lambda: self.store.create_node([NodeLabel.REFERENCE.value], props),
        )
        if reference_id is None:
            return
        stats.nodes += 1
        self._link(
            stats,
            reference_id,
            symbol_id,
            RelType.REFERENCES,
            {
                "isDefinition": False,
                "line": reference.start_line,
                "column": reference.start_col,
            },
        )
        self._link(stats, file_id, reference_id, RelType.CONTAINS)

    def _link(
        self,
        stats: WriteStats,
        from_id: str,
        to_id: str,
        rel_type: RelType,
        properties: dict[str, Any] | None = None,
    ) -> None:
        rel_id = self._guarded(
            stats,
            f"{rel_type.value} {from_id} -> {to_id}",
            lambda: self.store.create_relationship(
                from_id, to_id, rel_type.value, properties
            ),
        )
        if rel_id is not None:
            stats.relationships += 1

    def _guarded(
        self, stats: WriteStats, what: str, call: Callable[[], str]
    ) -> str | None:
        try:
            return str(call())
        except GraphStoreUnavailableError:
            raise
        except GraphStoreError as exc:
            stats.entity_failures += 1
            logger.warning("Failed to write %s: %s", what, exc)
            return None


__all__ = ["GraphWriter", "WriteStats"]
