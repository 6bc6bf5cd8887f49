"""Native extraction strategy backed by the tree-sitter Go grammar."""

from __future__ import annotations

from typing import TYPE_CHECKING

from indexers.base import new_extraction
from parse.treesitter_go import extract_go_definitions
from utils import package_import_path

if TYPE_CHECKING:
    from graph.models import FileExtraction
    from indexers.base import SourceFile
    from sync.context import RunContext


class NativeIndexer:
    """Extracts definitions with exact positions straight from the syntax tree."""

    @property
    def name(self) -> str:
        """Strategy name for logging and identification."""
        return "native"

    def prepare(self, context: RunContext) -> None:
        """Nothing to set up; the parser is created lazily."""

    def extract(self, source: SourceFile, context: RunContext) -> FileExtraction:
        """Parse ``source`` and project its declarations.

        Raises:
            GoParseError: If the file does not parse cleanly.
        """
        outline = extract_go_definitions(
            source.data,
            source.relative_path,
            symbol_package=context.module_path,
            version=context.version,
            import_path=package_import_path(context.module_path, source.relative_path),
        )
        extraction = new_extraction(source, context, outline.package_name)
        extraction.definitions.extend(outline.definitions)
        return extraction


__all__ = ["NativeIndexer"]
