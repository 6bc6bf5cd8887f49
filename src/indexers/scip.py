"""External-tool extraction strategy over a scip-go index."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING

from graph.models import (
    SYMBOL_KIND_TO_DEFINITION,
    DefinitionRecord,
    ReferenceRecord,
    SymbolRecord,
)
from indexers.base import StrategyUnavailableError, new_extraction
from parse.scip_index import ScipIndexError, load_scip_index, to_symbol_kind
from parse.treesitter_go import is_exported
from symbols.scheme import (
    MalformedSymbolError,
    display_name,
    infer_symbol_kind,
    owner_descriptor,
    parse_symbol,
)
from utils import byte_offset, package_import_path, source_line

if TYPE_CHECKING:
    from graph.models import FileExtraction
    from indexers.base import SourceFile
    from parse.scip_index import (
        ScipDocument,
        ScipIndex,
        ScipOccurrence,
        ScipSymbolInformation,
    )
    from symbols.scheme import Symbol, SymbolKind
    from sync.context import RunContext

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.scip"

# Output kept in error messages when the tool fails.
_OUTPUT_TAIL = 2000


class ToolNotFoundError(StrategyUnavailableError):
    """Raised when the external indexer binary cannot be resolved."""


class ScipToolError(StrategyUnavailableError):
    """Raised when the external indexer fails or its artifact is unusable."""


class ScipIndexer:
    """Projects a SCIP index produced by ``scip-go`` onto the entity model.

    Position data is best effort: the tool reports line and column only, so
    byte offsets are recomputed from the file content and are ``-1`` when a
    position falls outside it.
    """

    def __init__(
        self,
        binary: str = "scip-go",
        *,
        index_path: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self.binary = binary
        self.index_path = index_path
        self.timeout = timeout
        self.skipped_symbols = 0
        self._index: ScipIndex | None = None

    @property
    def name(self) -> str:
        """Strategy name for logging and identification."""
        return "scip"

    def prepare(self, context: RunContext) -> None:
        """Produce and decode the index for ``context.root``.

        Raises:
            ToolNotFoundError: If the indexer binary is not on PATH.
            ScipToolError: If the indexer exits non-zero or writes nothing.
                An artifact that cannot be decoded raises it too.
        """
        self.skipped_symbols = 0
        if self.index_path is not None:
            path = self.index_path
            if not path.is_absolute():
                path = context.root / path
            self._index = _load(path)
            return

        executable = shutil.which(self.binary)
        if executable is None:
            msg = (
                f"{self.binary} not found in PATH. Install with: "
                "go install github.com/sourcegraph/scip-go/cmd/scip-go@latest"
            )
            raise ToolNotFoundError(msg)

        with tempfile.TemporaryDirectory(prefix="codegraph-scip-") as tmp:
            output = Path(tmp) / INDEX_FILENAME
            self._run_tool(executable, context, output)
            self._index = _load(output)

    def _run_tool(self, executable: str, context: RunContext, output: Path) -> None:
        command = [
            executable,
            "--module-name",
            context.module_path,
            "--module-version",
            context.version,
            "--output",
            str(output),
        ]
        logger.info("Running %s in %s", " ".join(command), context.root)
        try:
            completed = subprocess.run(
                command,
                cwd=context.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            msg = f"{self.binary} timed out after {self.timeout}s"
            raise ScipToolError(msg) from exc
        except OSError as exc:
            msg = f"cannot run {self.binary}: {exc}"
            raise ScipToolError(msg) from exc

        text = completed.stdout.decode("utf-8", errors="replace")
        if completed.returncode != 0:
            msg = (
                f"{self.binary} exited with status {completed.returncode}\n"
                f"Output: {text[-_OUTPUT_TAIL:]}"
            )
            raise ScipToolError(msg)
        if not output.is_file():
            msg = f"{self.binary} did not write {output}"
            raise ScipToolError(msg)
        logger.debug("%s output: %s", self.binary, text)

    def extract(self, source: SourceFile, context: RunContext) -> FileExtraction:
        """Project the index document for ``source``.

        A file the tool did not index yields only its File and Module.
        """
        if self._index is None:
            msg = "prepare() must run before extract()"
            raise ScipToolError(msg)

        import_path = package_import_path(context.module_path, source.relative_path)
        document = self._index.document(source.relative_path)
        if document is None:
            logger.warning(
                "No SCIP document for %s; storing it without definitions",
                source.relative_path,
            )
            return new_extraction(source, context, import_path.rsplit("/", 1)[-1])

        infos = {info.symbol: info for info in document.symbols}
        extraction = new_extraction(
            source, context, _package_name(document, infos, import_path)
        )
        lines = source.data.split(b"\n")
        seen_external: set[str] = set()

        for occurrence in document.occurrences:
            try:
                symbol = parse_symbol(occurrence.symbol)
            except MalformedSymbolError:
                self.skipped_symbols += 1
                continue

            info = infos.get(occurrence.symbol) or self._index.external_symbols.get(
                occurrence.symbol
            )
            kind = _kind(symbol, info)

            if occurrence.is_definition:
                record = _definition(
                    source, occurrence, symbol, kind, info, lines, extraction
                )
                if record is not None:
                    extraction.definitions.append(record)
                continue

            extraction.references.append(
                ReferenceRecord(
                    symbol=occurrence.symbol,
                    symbol_kind=kind,
                    display_name=_display_name(symbol, info),
                    file_path=source.relative_path,
                    start_line=occurrence.range.start_line,
                    end_line=occurrence.range.end_line,
                    start_col=occurrence.range.start_col,
                    end_col=occurrence.range.end_col,
                    context=source_line(lines, occurrence.range.start_line),
                )
            )
            external = self._index.external_symbols.get(occurrence.symbol)
            if external is not None and occurrence.symbol not in seen_external:
                seen_external.add(occurrence.symbol)
                extraction.symbols.append(
                    SymbolRecord(
                        symbol=external.symbol,
                        kind=kind,
                        display_name=external.display_name
                        or display_name(symbol.descriptor),
                        documentation="\n".join(external.documentation),
                    )
                )

        return extraction


def _load(path: Path) -> ScipIndex:
    try:
        return load_scip_index(path)
    except ScipIndexError as exc:
        raise ScipToolError(str(exc)) from exc


def _kind(symbol: Symbol, info: ScipSymbolInformation | None) -> SymbolKind:
    kind = to_symbol_kind(info.kind) if info is not None else None
    return kind or infer_symbol_kind(symbol.descriptor)


def _display_name(symbol: Symbol, info: ScipSymbolInformation | None) -> str:
    if info is not None and info.display_name:
        return info.display_name
    return display_name(symbol.descriptor)


def _package_name(
    document: ScipDocument,
    infos: dict[str, ScipSymbolInformation],
    import_path: str,
) -> str:
    for occurrence in document.occurrences:
        info = infos.get(occurrence.symbol)
        if (
            occurrence.is_definition
            and info is not None
            and info.display_name
            and to_symbol_kind(info.kind) == "Package"
        ):
            return info.display_name
    return import_path.rsplit("/", 1)[-1]


def _definition(
    source: SourceFile,
    occurrence: ScipOccurrence,
    symbol: Symbol,
    kind: SymbolKind,
    info: ScipSymbolInformation | None,
    lines: list[bytes],
    extraction: FileExtraction,
) -> DefinitionRecord | None:
    if kind in ("Package", "Local"):
        return None
    if any(d.key == occurrence.symbol for d in extraction.definitions):
        logger.info("Skipping duplicate definition %s", occurrence.symbol)
        return None

    name = _display_name(symbol, info)
    extent = occurrence.enclosing_range or occurrence.range

    parent_key: str | None = None
    owner = owner_descriptor(symbol.descriptor)
    if owner is not None:
        owner_symbol = replace(symbol, descriptor=owner).format()
        if any(d.key == owner_symbol for d in extraction.definitions):
            parent_key = owner_symbol

    extra: dict[str, object] = {}
    if info is not None and info.signature_text:
        extra["signatureText"] = info.signature_text
    if kind in ("Field", "Variable", "Constant"):
        extra["isConstant"] = kind == "Constant"
        extra["scope"] = "instance" if kind == "Field" else "package"

    return DefinitionRecord(
        key=occurrence.symbol,
        parent_key=parent_key,
        kind=SYMBOL_KIND_TO_DEFINITION.get(kind, "Variable"),
        symbol_kind=kind,
        name=name,
        signature=occurrence.symbol,
        file_path=source.relative_path,
        start_line=extent.start_line,
        end_line=extent.end_line,
        start_col=extent.start_col,
        end_col=extent.end_col,
        start_byte=byte_offset(lines, extent.start_line, extent.start_col),
        end_byte=byte_offset(lines, extent.end_line, extent.end_col),
        is_exported=is_exported(name),
        docstring="\n".join(info.documentation) if info is not None else "",
        extra=extra,
    )


__all__ = ["INDEX_FILENAME", "ScipIndexer", "ScipToolError", "ToolNotFoundError"]
