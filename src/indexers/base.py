"""Extraction strategy protocol and shared helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from graph.models import FileExtraction, ModuleRecord
from utils import count_lines, package_import_path

if TYPE_CHECKING:
    from pathlib import Path

    from sync.context import RunContext


class StrategyUnavailableError(RuntimeError):
    """Raised by ``prepare`` when a strategy cannot run at all."""


@dataclass(frozen=True)
class SourceFile:
    """One Go file as read by the engine, before extraction."""

    path: Path
    relative_path: str
    data: bytes
    content_hash: str


class ExtractionStrategy(Protocol):
    """Turns one source file into entity records.

    ``prepare`` runs once per run before any store write and signals that
    the strategy cannot run by raising ``StrategyUnavailableError``, which
    is fatal. ``extract`` raises ``ValueError`` subclasses, which only fail
    the file being extracted.
    """

    @property
    def name(self) -> str: ...

    def prepare(self, context: RunContext) -> None: ...

    def extract(self, source: SourceFile, context: RunContext) -> FileExtraction: ...


def new_extraction(
    source: SourceFile, context: RunContext, package_name: str
) -> FileExtraction:
    """An extraction with file metadata and Module filled in, no entities yet."""
    import_path = package_import_path(context.module_path, source.relative_path)
    return FileExtraction(
        path=source.relative_path,
        absolute_path=str(source.path.resolve()),
        content_hash=source.content_hash,
        line_count=count_lines(source.data),
        size=len(source.data),
        module=ModuleRecord(name=package_name, fqn=import_path),
    )


__all__ = [
    "ExtractionStrategy",
    "SourceFile",
    "StrategyUnavailableError",
    "new_extraction",
]
