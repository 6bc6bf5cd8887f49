"""Per-run state shared by the engine, the strategies and the writer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from graph.models import ServiceRecord
    from graph.store import PurgeResult
    from settings.config import CodegraphConfig


@dataclass
class RunContext:
    """Configuration and caches for one indexing run.

    The caches map natural keys to store node ids. They only save round
    trips; the store's merge semantics remain the source of truth, so a
    missing entry is simply re-merged.
    """

    root: Path
    config: CodegraphConfig
    service: ServiceRecord
    module_path: str
    service_id: str | None = None
    module_ids: dict[str, str] = field(default_factory=dict)
    symbol_ids: dict[str, str] = field(default_factory=dict)

    @property
    def version(self) -> str:
        return self.service.version

    def evict(self, purge: PurgeResult) -> None:
        """Drop cache entries for nodes a purge deleted."""
        for symbol in purge.symbols:
            self.symbol_ids.pop(symbol, None)
        for fqn in purge.modules:
            self.module_ids.pop(fqn, None)


__all__ = ["RunContext"]
