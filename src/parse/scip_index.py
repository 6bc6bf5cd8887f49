"""Decoder for SCIP index artifacts.

Only the subset of the SCIP schema that indexing needs is described here.
The message descriptors are assembled in code and registered in a private
descriptor pool, so no generated ``_pb2`` module is required. Enum-typed
fields are declared as ``int32``; the wire encoding is the same varint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum, IntFlag
from typing import TYPE_CHECKING, Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError

if TYPE_CHECKING:
    from pathlib import Path

    from symbols.scheme import SymbolKind

logger = logging.getLogger(__name__)

_PACKAGE = "scip"
_F = descriptor_pb2.FieldDescriptorProto

# message -> [(field name, number, type, repeated, message type name)]
_SCHEMA: dict[str, list[tuple[str, int, int, bool, str | None]]] = {
    "Index": [
        ("metadata", 1, _F.TYPE_MESSAGE, False, "Metadata"),
        ("documents", 2, _F.TYPE_MESSAGE, True, "Document"),
        ("external_symbols", 3, _F.TYPE_MESSAGE, True, "SymbolInformation"),
    ],
    "Metadata": [
        ("version", 1, _F.TYPE_INT32, False, None),
        ("tool_info", 2, _F.TYPE_MESSAGE, False, "ToolInfo"),
        ("project_root", 3, _F.TYPE_STRING, False, None),
        ("text_document_encoding", 4, _F.TYPE_INT32, False, None),
    ],
    "ToolInfo": [
        ("name", 1, _F.TYPE_STRING, False, None),
        ("version", 2, _F.TYPE_STRING, False, None),
        ("arguments", 3, _F.TYPE_STRING, True, None),
    ],
    "Document": [
        ("relative_path", 1, _F.TYPE_STRING, False, None),
        ("occurrences", 2, _F.TYPE_MESSAGE, True, "Occurrence"),
        ("symbols", 3, _F.TYPE_MESSAGE, True, "SymbolInformation"),
        ("language", 4, _F.TYPE_STRING, False, None),
        ("text", 5, _F.TYPE_STRING, False, None),
        ("position_encoding", 6, _F.TYPE_INT32, False, None),
    ],
    "Occurrence": [
        ("range", 1, _F.TYPE_INT32, True, None),
        ("symbol", 2, _F.TYPE_STRING, False, None),
        ("symbol_roles", 3, _F.TYPE_INT32, False, None),
        ("override_documentation", 4, _F.TYPE_STRING, True, None),
        ("syntax_kind", 5, _F.TYPE_INT32, False, None),
        ("enclosing_range", 7, _F.TYPE_INT32, True, None),
    ],
    "SymbolInformation": [
        ("symbol", 1, _F.TYPE_STRING, False, None),
        ("documentation", 3, _F.TYPE_STRING, True, None),
        ("relationships", 4, _F.TYPE_MESSAGE, True, "Relationship"),
        ("kind", 5, _F.TYPE_INT32, False, None),
        ("display_name", 6, _F.TYPE_STRING, False, None),
        ("signature_documentation", 7, _F.TYPE_MESSAGE, False, "Document"),
        ("enclosing_symbol", 8, _F.TYPE_STRING, False, None),
    ],
    "Relationship": [
        ("symbol", 1, _F.TYPE_STRING, False, None),
        ("is_reference", 2, _F.TYPE_BOOL, False, None),
        ("is_implementation", 3, _F.TYPE_BOOL, False, None),
        ("is_type_definition", 4, _F.TYPE_BOOL, False, None),
        ("is_definition", 5, _F.TYPE_BOOL, False, None),
    ],
}

_POOL: descriptor_pool.DescriptorPool | None = None
_CLASSES: dict[str, Any] = {}


class ScipIndexError(ValueError):
    """Raised when an index artifact cannot be read or decoded."""


class ScipSymbolKind(IntEnum):
    UNSPECIFIED = 0
    CLASS = 7
    CONSTANT = 8
    CONSTRUCTOR = 9
    ENUM = 11
    FIELD = 15
    FUNCTION = 17
    INTERFACE = 21
    METHOD = 26
    MODULE = 29
    NAMESPACE = 30
    PACKAGE = 35
    PARAMETER = 37
    STRUCT = 49
    TYPE = 54
    TYPE_ALIAS = 55
    TYPE_PARAMETER = 58
    VARIABLE = 61
    ABSTRACT_METHOD = 66
    METHOD_SPECIFICATION = 67


class SymbolRole(IntFlag):
    DEFINITION = 1
    IMPORT = 2
    WRITE_ACCESS = 4
    READ_ACCESS = 8
    GENERATED = 16
    TEST = 32
    FORWARD_DEFINITION = 64


_KIND_MAP: dict[int, SymbolKind] = {
    ScipSymbolKind.CLASS: "Type",
    ScipSymbolKind.STRUCT: "Type",
    ScipSymbolKind.TYPE: "Type",
    ScipSymbolKind.TYPE_ALIAS: "Type",
    ScipSymbolKind.ENUM: "Type",
    ScipSymbolKind.INTERFACE: "Interface",
    ScipSymbolKind.FUNCTION: "Function",
    ScipSymbolKind.CONSTRUCTOR: "Function",
    ScipSymbolKind.METHOD: "Method",
    ScipSymbolKind.ABSTRACT_METHOD: "Method",
    ScipSymbolKind.METHOD_SPECIFICATION: "Method",
    ScipSymbolKind.FIELD: "Field",
    ScipSymbolKind.VARIABLE: "Variable",
    ScipSymbolKind.CONSTANT: "Constant",
    ScipSymbolKind.PARAMETER: "Parameter",
    ScipSymbolKind.TYPE_PARAMETER: "Parameter",
    ScipSymbolKind.NAMESPACE: "Package",
    ScipSymbolKind.PACKAGE: "Package",
    ScipSymbolKind.MODULE: "Package",
}


def to_symbol_kind(kind: int) -> SymbolKind | None:
    """Map a SCIP kind to ours; None for unspecified, Variable when unknown."""
    if kind == ScipSymbolKind.UNSPECIFIED:
        return None
    return _KIND_MAP.get(kind, "Variable")


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto(
        name="codegraph/scip_subset.proto", package=_PACKAGE, syntax="proto3"
    )
    for message_name, fields in _SCHEMA.items():
        message = proto.message_type.add(name=message_name)
        for name, number, type_, repeated, type_name in fields:
            entry = message.field.add(
                name=name,
                number=number,
                type=type_,
                label=_F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL,
            )
            if type_name is not None:
                entry.type_name = f".{_PACKAGE}.{type_name}"
    return proto


def message_class(name: str) -> Any:
    """Return the generated message class for one of the subset's messages."""
    global _POOL
    if name not in _SCHEMA:
        msg = f"unknown SCIP message: {name}"
        raise KeyError(msg)
    if _POOL is None:
        _POOL = descriptor_pool.DescriptorPool()
        _POOL.AddSerializedFile(_build_file_descriptor().SerializeToString())
    if name not in _CLASSES:
        descriptor = _POOL.FindMessageTypeByName(f"{_PACKAGE}.{name}")
        _CLASSES[name] = message_factory.GetMessageClass(descriptor)
    return _CLASSES[name]


@dataclass(frozen=True)
class ScipRange:
    """A 1-based, end-exclusive source range."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int


def convert_range(values: list[int] | tuple[int, ...]) -> ScipRange | None:
    """Convert a 0-based SCIP range (3 or 4 ints) to a 1-based ScipRange."""
    if len(values) == 3:
        line, start, end = values
        return ScipRange(line + 1, start + 1, line + 1, end + 1)
    if len(values) == 4:
        start_line, start_col, end_line, end_col = values
        return ScipRange(start_line + 1, start_col + 1, end_line + 1, end_col + 1)
    return None


@dataclass(frozen=True)
class ScipOccurrence:
    symbol: str
    range: ScipRange
    roles: int = 0
    enclosing_range: ScipRange | None = None

    @property
    def is_definition(self) -> bool:
        return bool(self.roles & SymbolRole.DEFINITION)


@dataclass(frozen=True)
class ScipRelationship:
    symbol: str
    is_reference: bool = False
    is_implementation: bool = False
    is_type_definition: bool = False
    is_definition: bool = False


@dataclass(frozen=True)
class ScipSymbolInformation:
    symbol: str
    kind: int = ScipSymbolKind.UNSPECIFIED
    display_name: str = ""
    documentation: tuple[str, ...] = ()
    signature_text: str = ""
    enclosing_symbol: str = ""
    relationships: tuple[ScipRelationship, ...] = ()


@dataclass(frozen=True)
class ScipDocument:
    relative_path: str
    language: str = ""
    occurrences: tuple[ScipOccurrence, ...] = ()
    symbols: tuple[ScipSymbolInformation, ...] = ()


@dataclass
class ScipIndex:
    tool_name: str = ""
    tool_version: str = ""
    project_root: str = ""
    documents: dict[str, ScipDocument] = field(default_factory=dict)
    external_symbols: dict[str, ScipSymbolInformation] = field(default_factory=dict)

    def document(self, relative_path: str) -> ScipDocument | None:
        return self.documents.get(relative_path)


def _symbol_information(message: Any) -> ScipSymbolInformation:
    return ScipSymbolInformation(
        symbol=message.symbol,
        kind=message.kind,
        display_name=message.display_name,
        documentation=tuple(message.documentation),
        signature_text=message.signature_documentation.text,
        enclosing_symbol=message.enclosing_symbol,
        relationships=tuple(
            ScipRelationship(
                symbol=rel.symbol,
                is_reference=rel.is_reference,
                is_implementation=rel.is_implementation,
                is_type_definition=rel.is_type_definition,
                is_definition=rel.is_definition,
            )
            for rel in message.relationships
        ),
    )


def _document(message: Any) -> ScipDocument:
    occurrences: list[ScipOccurrence] = []
    for occ in message.occurrences:
        occurrence_range = convert_range(list(occ.range))
        if occurrence_range is None:
            logger.warning(
                "Skipping occurrence of %s in %s: bad range %s",
                occ.symbol,
                message.relative_path,
                list(occ.range),
            )
            continue
        occurrences.append(
            ScipOccurrence(
                symbol=occ.symbol,
                range=occurrence_range,
                roles=occ.symbol_roles,
                enclosing_range=convert_range(list(occ.enclosing_range)),
            )
        )
    return ScipDocument(
        relative_path=message.relative_path,
        language=message.language,
        occurrences=tuple(occurrences),
        symbols=tuple(_symbol_information(info) for info in message.symbols),
    )


def decode_scip_index(data: bytes) -> ScipIndex:
    """Decode a serialized SCIP ``Index`` message.

    Raises:
        ScipIndexError: If the bytes are not a valid index.
    """
    message = message_class("Index")()
    try:
        message.ParseFromString(data)
    except DecodeError as exc:
        msg = f"cannot decode SCIP index: {exc}"
        raise ScipIndexError(msg) from exc

    index = ScipIndex(
        tool_name=message.metadata.tool_info.name,
        tool_version=message.metadata.tool_info.version,
        project_root=message.metadata.project_root,
    )
    for doc in message.documents:
        document = _document(doc)
        index.documents[document.relative_path] = document
    for info in message.external_symbols:
        index.external_symbols[info.symbol] = _symbol_information(info)
    return index


def load_scip_index(path: Path) -> ScipIndex:
    """Read and decode an index artifact from disk."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        msg = f"cannot read SCIP index {path}: {exc}"
        raise ScipIndexError(msg) from exc
    index = decode_scip_index(data)
    logger.info(
        "Loaded SCIP index from %s (%s %s, %d documents)",
        path,
        index.tool_name or "unknown tool",
        index.tool_version,
        len(index.documents),
    )
    return index


__all__ = [
    "ScipDocument",
    "ScipIndex",
    "ScipIndexError",
    "ScipOccurrence",
    "ScipRange",
    "ScipRelationship",
    "ScipSymbolInformation",
    "ScipSymbolKind",
    "SymbolRole",
    "convert_range",
    "decode_scip_index",
    "load_scip_index",
    "message_class",
    "to_symbol_kind",
]
