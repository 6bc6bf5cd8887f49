from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from parse.scip_index import (
    ScipIndexError,
    ScipRange,
    ScipSymbolKind,
    SymbolRole,
    convert_range,
    decode_scip_index,
    load_scip_index,
    message_class,
    to_symbol_kind,
)

if TYPE_CHECKING:
    from pathlib import Path

FUNC = "scip-go gomod example.com/demo v1 `example.com/demo`/F()."
FMT = "scip-go gomod github.com/golang/go/src go1.22 fmt/Println()."


def _index_bytes() -> bytes:
    index = message_class("Index")()
    index.metadata.version = 0
    index.metadata.tool_info.name = "scip-go"
    index.metadata.tool_info.version = "0.1.0"
    index.metadata.project_root = "file:///work/demo"

    doc = index.documents.add()
    doc.relative_path = "a.go"
    doc.language = "go"
    occ = doc.occurrences.add()
    occ.symbol = FUNC
    occ.range.extend([2, 5, 6])
    occ.symbol_roles = int(SymbolRole.DEFINITION)
    occ.enclosing_range.extend([2, 0, 4, 1])
    call = doc.occurrences.add()
    call.symbol = FMT
    call.range.extend([3, 5, 3, 12])
    broken = doc.occurrences.add()
    broken.symbol = FUNC
    broken.range.extend([1])

    info = doc.symbols.add()
    info.symbol = FUNC
    info.kind = int(ScipSymbolKind.FUNCTION)
    info.display_name = "F"
    info.documentation.append("F does things.")
    info.signature_documentation.text = "func F()"

    external = index.external_symbols.add()
    external.symbol = FMT
    external.kind = int(ScipSymbolKind.FUNCTION)
    external.display_name = "Println"
    rel = external.relationships.add()
    rel.symbol = "scip-go gomod github.com/golang/go/src go1.22 fmt/Stringer#"
    rel.is_reference = True
    return index.SerializeToString()


def test_decode_index_metadata_documents_and_externals() -> None:
    index = decode_scip_index(_index_bytes())

    assert index.tool_name == "scip-go"
    assert index.tool_version == "0.1.0"
    assert index.project_root == "file:///work/demo"
    assert set(index.documents) == {"a.go"}
    assert index.external_symbols[FMT].display_name == "Println"
    assert index.external_symbols[FMT].relationships[0].is_reference is True


def test_decode_occurrences_converts_ranges() -> None:
    document = decode_scip_index(_index_bytes()).document("a.go")
    assert document is not None

    # the occurrence with a one-element range is dropped
    assert len(document.occurrences) == 2
    definition, call = document.occurrences
    assert definition.is_definition
    assert definition.range == ScipRange(3, 6, 3, 7)
    assert definition.enclosing_range == ScipRange(3, 1, 5, 2)
    assert not call.is_definition
    assert call.range == ScipRange(4, 6, 4, 13)
    assert call.enclosing_range is None


def test_decode_symbol_information() -> None:
    document = decode_scip_index(_index_bytes()).document("a.go")
    assert document is not None

    info = document.symbols[0]
    assert info.kind == ScipSymbolKind.FUNCTION
    assert info.documentation == ("F does things.",)
    assert info.signature_text == "func F()"


def test_decode_garbage_raises() -> None:
    with pytest.raises(ScipIndexError):
        decode_scip_index(b"\xff\xff\xff\xff")


def test_load_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ScipIndexError):
        load_scip_index(tmp_path / "index.scip")


def test_load_from_disk(tmp_path: Path) -> None:
    path = tmp_path / "index.scip"
    path.write_bytes(_index_bytes())

    assert load_scip_index(path).document("a.go") is not None


def test_convert_range() -> None:
    assert convert_range([0, 0, 4]) == ScipRange(1, 1, 1, 5)
    assert convert_range([0, 0, 2, 1]) == ScipRange(1, 1, 3, 2)
    assert convert_range([]) is None


def test_to_symbol_kind() -> None:
    assert to_symbol_kind(ScipSymbolKind.UNSPECIFIED) is None
    assert to_symbol_kind(ScipSymbolKind.STRUCT) == "Type"
    assert to_symbol_kind(ScipSymbolKind.METHOD) == "Method"
    assert to_symbol_kind(ScipSymbolKind.CONSTANT) == "Constant"
    assert to_symbol_kind(9999) == "Variable"
