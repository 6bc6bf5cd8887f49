"""Entity model for the code property graph.

Extraction strategies produce these records; ``graph.writer`` turns them into
store calls. Records carry no store identifiers: containment between
definitions is expressed with ``key``/``parent_key`` (symbol strings) and
resolved to node ids at write time.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from symbols.scheme import SymbolKind

UNKNOWN_OFFSET = -1


class NodeLabel(str, Enum):
    SERVICE = "Service"
    FILE = "File"
    MODULE = "Module"
    FUNCTION = "Function"
    METHOD = "Method"
    CLASS = "Class"
    INTERFACE = "Interface"
    VARIABLE = "Variable"
    PARAMETER = "Parameter"
    SYMBOL = "Symbol"
    REFERENCE = "Reference"


class RelType(str, Enum):
    CONTAINS = "CONTAINS"
    DEFINES = "DEFINES"
    REFERENCES = "REFERENCES"


DefinitionKind = Literal[
    "Function", "Method", "Class", "Interface", "Variable", "Parameter"
]

DEFINITION_LABELS: tuple[str, ...] = (
    NodeLabel.FUNCTION.value,
    NodeLabel.METHOD.value,
    NodeLabel.CLASS.value,
    NodeLabel.INTERFACE.value,
    NodeLabel.VARIABLE.value,
    NodeLabel.PARAMETER.value,
)

# Labels of nodes owned by exactly one file; purged by (service, filePath).
FILE_OWNED_LABELS: tuple[str, ...] = (*DEFINITION_LABELS, NodeLabel.REFERENCE.value)

SYMBOL_KIND_TO_DEFINITION: dict[str, DefinitionKind] = {
    "Function": "Function",
    "Method": "Method",
    "Type": "Class",
    "Interface": "Interface",
    "Variable": "Variable",
    "Constant": "Variable",
    "Field": "Variable",
    "Parameter": "Parameter",
}


class ServiceRecord(BaseModel):
    """The indexed project as a whole."""

    name: str
    language: str = "Go"
    version: str = ""
    repository_url: str = ""

    def properties(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "language": self.language,
            "version": self.version,
            "repositoryUrl": self.repository_url,
        }


class ModuleRecord(BaseModel):
    """A Go package: the logical grouping of the files in one directory."""

    name: str
    fqn: str

    def properties(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "fqn": self.fqn,
            "type": "package",
            "isExported": True,
        }


class DefinitionRecord(BaseModel):
    """A declared entity with its position metadata."""

    key: str = Field(description="Symbol string; unique within one file")
    parent_key: str | None = Field(
        default=None, description="Key of the containing definition (None = module)"
    )
    kind: DefinitionKind
    symbol_kind: SymbolKind
    name: str
    signature: str
    file_path: str
    start_line: int
    end_line: int
    start_col: int
    end_col: int
    start_byte: int = UNKNOWN_OFFSET
    end_byte: int = UNKNOWN_OFFSET
    is_exported: bool
    docstring: str = ""
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def symbol(self) -> str:
        return self.key

    def properties(self) -> dict[str, Any]:
        props: dict[str, Any] = {
            "name": self.name,
            "signature": self.signature,
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "startColumn": self.start_col,
            "endColumn": self.end_col,
            "startByte": self.start_byte,
            "endByte": self.end_byte,
            "linesOfCode": max(self.end_line - self.start_line + 1, 1),
            "isExported": self.is_exported,
            "docstring": self.docstring,
        }
        props.update(self.extra)
        return props


class ReferenceRecord(BaseModel):
    """A usage site of a symbol."""

    symbol: str
    symbol_kind: SymbolKind
    display_name: str
    file_path: str
    start_line: int
    end_line: int
    start_col: int
    end_col: int
    context: str = ""

    def properties(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "startColumn": self.start_col,
            "endColumn": self.end_col,
            "context": self.context,
        }


class SymbolRecord(BaseModel):
    """Descriptive data for a Symbol node that is not tied to a definition."""

    symbol: str
    kind: SymbolKind
    display_name: str
    documentation: str = ""


class FileExtraction(BaseModel):
    """Everything one strategy extracted from one source file."""

    path: str
    absolute_path: str
    language: str = "Go"
    content_hash: str
    line_count: int
    size: int
    module: ModuleRecord
    definitions: list[DefinitionRecord] = Field(default_factory=list)
    references: list[ReferenceRecord] = Field(default_factory=list)
    symbols: list[SymbolRecord] = Field(
        default_factory=list,
        description="Extra Symbol data (kind, documentation) keyed by symbol string",
    )

    def file_properties(self, service: str) -> dict[str, Any]:
        return {
            "service": service,
            "path": self.path,
            "absolutePath": self.absolute_path,
            "language": self.language,
            "hash": self.content_hash,
            "lineCount": self.line_count,
            "size": self.size,
        }


__all__ = [
    "DEFINITION_LABELS",
    "FILE_OWNED_LABELS",
    "SYMBOL_KIND_TO_DEFINITION",
    "UNKNOWN_OFFSET",
    "DefinitionKind",
    "DefinitionRecord",
    "FileExtraction",
    "ModuleRecord",
    "NodeLabel",
    "ReferenceRecord",
    "RelType",
    "ServiceRecord",
    "SymbolRecord",
]
