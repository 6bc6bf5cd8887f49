"""Incremental synchronization engine.

A run compares the content hash of every Go file under the project root with
the hashes persisted on File nodes, re-extracts only the files that changed,
and purges files that disappeared since the previous run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from graph.models import ServiceRecord
from graph.store import GraphStoreError, GraphStoreUnavailableError
from graph.writer import GraphWriter
from indexers.base import SourceFile, StrategyUnavailableError
from scan.files import find_go_files, relative_posix
from settings.config import CodegraphConfig
from sync.context import RunContext
from utils import content_hash, read_go_module_path

if TYPE_CHECKING:
    import threading
    from pathlib import Path

    from graph.store import GraphStore
    from indexers.base import ExtractionStrategy

logger = logging.getLogger(__name__)


class FatalSyncError(RuntimeError):
    """Raised when a run must stop before (or instead of) writing anything else."""


@dataclass
class SyncResult:
    """Outcome of one run: what was written, skipped, removed and what failed."""

    service: str
    strategy: str
    indexed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    cancelled: bool = False
    entity_failures: int = 0
    nodes_written: int = 0
    relationships_written: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SyncPlan:
    """What a run would do, computed without extraction or writes."""

    service: str
    added: tuple[str, ...] = ()
    changed: tuple[str, ...] = ()
    unchanged: tuple[str, ...] = ()
    deleted: tuple[str, ...] = ()

    @property
    def dirty(self) -> tuple[str, ...]:
        return tuple(sorted((*self.added, *self.changed)))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["dirty"] = list(self.dirty)
        return data


class SyncEngine:
    """Keeps one service's subgraph in step with the files on disk.

    Runs are sequential; the caches live in a ``RunContext`` created per run,
    so one engine may be reused for several runs.
    """

    def __init__(
        self,
        store: GraphStore,
        strategy: ExtractionStrategy,
        config: CodegraphConfig | None = None,
    ) -> None:
        self.store = store
        self.strategy = strategy
        self.config = config or CodegraphConfig()

    def _check_root(self, root: Path) -> Path:
        if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
            msg = f"project root is not a readable directory: {root}"
            raise FatalSyncError(msg)
        return root.resolve()

    def _context(self, root: Path) -> RunContext:
        service = ServiceRecord(
            name=self.config.service_name(root),
            version=self.config.service.version,
            repository_url=self.config.service.repository_url,
        )
        module_path = (
            self.config.service.module_path
            or read_go_module_path(root)
            or service.name
        )
        return RunContext(
            root=root, config=self.config, service=service, module_path=module_path
        )

    def _previous_hashes(self, service: str) -> dict[str, str]:
        try:
            return self.store.file_hashes(service)
        except GraphStoreError as exc:
            msg = f"cannot read persisted file hashes: {exc}"
            raise FatalSyncError(msg) from exc

    def _walk(self, root: Path) -> list[Path]:
        index = self.config.index
        return list(
            find_go_files(
                root,
                skip_dirs=index.skip_dirs,
                include_tests=index.include_tests,
                exclude_patterns=index.exclude,
                respect_gitignore=index.respect_gitignore,
                nested_gitignore=index.nested_gitignore,
            )
        )

    def plan(self, root: Path) -> SyncPlan:
        """Classify files as added, changed, unchanged or deleted."""
        root = self._check_root(root)
        context = self._context(root)
        previous = self._previous_hashes(context.service.name)

        added: list[str] = []
        changed: list[str] = []
        unchanged: list[str] = []
        seen: set[str] = set()
        for path in self._walk(root):
            rel = relative_posix(path, root)
            seen.add(rel)
            try:
                digest = content_hash(path.read_bytes())
            except OSError as exc:
                logger.warning("Cannot read %s: %s", rel, exc)
                continue
            if rel not in previous:
                added.append(rel)
            elif previous[rel] != digest:
                changed.append(rel)
            else:
                unchanged.append(rel)

        return SyncPlan(
            service=context.service.name,
            added=tuple(added),
            changed=tuple(changed),
            unchanged=tuple(unchanged),
            deleted=tuple(sorted(set(previous) - seen)),
        )

    def run(
        self,
        root: Path,
        cancel: threading.Event | None = None,
        *,
        full: bool = False,
    ) -> SyncResult:
        """Index ``root`` incrementally.

        Args:
            root: Project root
            cancel: Checked between files; once set the run stops and the
                deletion pass is skipped
            full: Re-extract every file regardless of its stored hash

        Raises:
            FatalSyncError: If the root is unreadable, the strategy cannot
                prepare, or the store cannot be reached.
        """
        root = self._check_root(root)
        context = self._context(root)
        service = context.service
        result = SyncResult(service=service.name, strategy=self.strategy.name)

        previous = self._previous_hashes(service.name)
        try:
            self.strategy.prepare(context)
        except StrategyUnavailableError as exc:
            msg = f"{self.strategy.name} strategy cannot start: {exc}"
            raise FatalSyncError(msg) from exc

        writer = GraphWriter(self.store, context)
        logger.info(
            "Indexing %s (%s) with the %s strategy, %d files known",
            service.name,
            context.module_path,
            self.strategy.name,
            len(previous),
        )

        seen: set[str] = set()
        for path in self._walk(root):
            if cancel is not None and cancel.is_set():
                break
            rel = relative_posix(path, root)
            seen.add(rel)
            self._sync_file(path, rel, previous, full, writer, result)

        if cancel is not None and cancel.is_set():
            result.cancelled = True
            logger.warning("Run cancelled; skipping the deletion pass")
        else:
            for rel in sorted(set(previous) - seen):
                self._remove_file(rel, writer, result)

        logger.info(
            "Indexed %d, unchanged %d, removed %d, failed %d (%d entity failures)",
            len(result.indexed),
            len(result.unchanged),
            len(result.removed),
            len(result.failed),
            result.entity_failures,
        )
        return result

    def _ensure_service(self, writer: GraphWriter) -> None:
        try:
            writer.ensure_service(writer.context.service)
        except GraphStoreError as exc:
            msg = f"cannot merge Service node: {exc}"
            raise FatalSyncError(msg) from exc

    def _sync_file(
        self,
        path: Path,
        rel: str,
        previous: dict[str, str],
        full: bool,
        writer: GraphWriter,
        result: SyncResult,
    ) -> None:
        context = writer.context
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("Cannot read %s: %s", rel, exc)
            result.failed.append((rel, f"read failed: {exc}"))
            return

        digest = content_hash(data)
        if not full and previous.get(rel) == digest:
            logger.debug("Unchanged: %s", rel)
            result.unchanged.append(rel)
            return

        source = SourceFile(path=path, relative_path=rel, data=data, content_hash=digest)
        try:
            extraction = self.strategy.extract(source, context)
        except ValueError as exc:
            logger.warning("Skipping %s: %s", rel, exc)
            result.failed.append((rel, str(exc)))
            return

        self._ensure_service(writer)
        try:
            # Purging a path the store does not know is a no-op.
            context.evict(
                self.store.purge_file(context.service.name, rel, drop_file=False)
            )
            stats = writer.write_file(context.service, extraction)
        except GraphStoreUnavailableError as exc:
            msg = f"graph store became unavailable while writing {rel}: {exc}"
            raise FatalSyncError(msg) from exc
        except GraphStoreError as exc:
            logger.warning("Failed to write %s: %s", rel, exc)
            result.failed.append((rel, f"write failed: {exc}"))
            return

        result.indexed.append(rel)
        result.nodes_written += stats.nodes
        result.relationships_written += stats.relationships
        result.entity_failures += stats.entity_failures

    def _remove_file(self, rel: str, writer: GraphWriter, result: SyncResult) -> None:
        try:
            purge = self.store.purge_file(
                writer.context.service.name, rel, drop_file=True
            )
        except GraphStoreUnavailableError as exc:
            msg = f"graph store became unavailable while removing {rel}: {exc}"
            raise FatalSyncError(msg) from exc
        except GraphStoreError as exc:
            logger.warning("Failed to remove %s: %s", rel, exc)
            result.failed.append((rel, f"remove failed: {exc}"))
            return
        writer.context.evict(purge)
        result.removed.append(rel)
        logger.info("Removed %s (%d nodes)", rel, purge.removed_nodes)


__all__ = ["FatalSyncError", "SyncEngine", "SyncPlan", "SyncResult"]
