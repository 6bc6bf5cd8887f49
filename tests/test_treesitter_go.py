from __future__ import annotations

import logging

import pytest

from graph.models import DefinitionRecord
from parse.treesitter_go import GoParseError, extract_go_definitions

SOURCE = b"""package demo

import "fmt"

// Greeter says hello.
// It is friendly.
type Greeter struct {
	Name   string
	prefix string
	fmt.Stringer
}

// Greet returns a greeting.
func (g *Greeter) Greet(target string, times int) string {
	return fmt.Sprintf("%s %s", g.prefix, target)
}

type Speaker interface {
	Speak(words ...string) error
}

const Answer int = 42

var (
	counter int
	_       = 1
)

func helper(a, b int, _ string) (int, error) {
	return a + b, nil
}

func (o *Orphan) Lost() {}
"""

PREFIX = "scip-go gomod example.com/demo v1 `example.com/demo/pkg`/"


def _extract(source: bytes = SOURCE) -> list[DefinitionRecord]:
    outline = extract_go_definitions(
        source,
        "pkg/demo.go",
        symbol_package="example.com/demo",
        version="v1",
        import_path="example.com/demo/pkg",
    )
    return outline.definitions


def _by_name(definitions: list[DefinitionRecord]) -> dict[str, DefinitionRecord]:
    return {d.name: d for d in definitions}


def test_package_name_and_declaration_order() -> None:
    outline = extract_go_definitions(
        SOURCE,
        "pkg/demo.go",
        symbol_package="example.com/demo",
        version="v1",
        import_path="example.com/demo/pkg",
    )

    assert outline.package_name == "demo"
    assert [d.name for d in outline.definitions] == [
        "Greeter",
        "Name",
        "prefix",
        "Stringer",
        "Greet",
        "target",
        "times",
        "Speaker",
        "Speak",
        "Answer",
        "counter",
        "helper",
        "a",
        "b",
        "Lost",
    ]


def test_parents_precede_children() -> None:
    definitions = _extract()
    seen: set[str] = set()
    for definition in definitions:
        if definition.parent_key is not None:
            assert definition.parent_key in seen
        seen.add(definition.key)


def test_kinds_symbols_and_signatures() -> None:
    defs = _by_name(_extract())

    greeter = defs["Greeter"]
    assert greeter.kind == "Class"
    assert greeter.key == f"{PREFIX}Greeter#"
    assert greeter.signature == "type Greeter struct"
    assert greeter.docstring == "Greeter says hello. It is friendly."

    greet = defs["Greet"]
    assert greet.kind == "Method"
    assert greet.key == f"{PREFIX}Greeter#Greet()."
    assert greet.signature == "(*Greeter) Greet(target string, times int) string"
    assert greet.parent_key == greeter.key
    assert greet.docstring == "Greet returns a greeting."
    assert greet.extra["receiver"] == "*Greeter"
    assert greet.extra["returnType"] == "string"

    helper = defs["helper"]
    assert helper.kind == "Function"
    assert helper.key == f"{PREFIX}helper()."
    assert helper.signature == "helper(a int, b int, _ string) (int, error)"
    assert helper.is_exported is False

    speaker = defs["Speaker"]
    assert speaker.kind == "Interface"
    assert speaker.signature == "type Speaker interface"
    speak = defs["Speak"]
    assert speak.kind == "Method"
    assert speak.parent_key == speaker.key
    assert speak.signature == "(Speaker) Speak(words ...string) error"

    assert defs["Answer"].signature == "const Answer int"
    assert defs["Answer"].symbol_kind == "Constant"
    assert defs["Answer"].extra["isConstant"] is True
    assert defs["counter"].signature == "var counter int"
    assert defs["counter"].key == f"{PREFIX}counter."


def test_fields_and_parameters() -> None:
    defs = _by_name(_extract())

    name = defs["Name"]
    assert name.kind == "Variable"
    assert name.symbol_kind == "Field"
    assert name.key == f"{PREFIX}Greeter#Name."
    assert name.signature == "field Greeter.Name string"
    assert name.extra["scope"] == "instance"
    assert defs["Stringer"].extra["embedded"] is True
    assert defs["prefix"].is_exported is False

    target = defs["target"]
    assert target.kind == "Parameter"
    assert target.parent_key == defs["Greet"].key
    assert target.key == f"{PREFIX}Greeter#Greet().param target"
    assert target.signature == (
        "(*Greeter) Greet(target string, times int) string param 0 target"
    )
    assert defs["b"].extra == {"type": "int", "index": 1}


def test_positions_come_from_the_tree() -> None:
    defs = _by_name(_extract())
    greet = defs["Greet"]
    start = SOURCE.index(b"func (g *Greeter)")

    assert greet.start_byte == start
    assert greet.start_line == SOURCE[:start].count(b"\n") + 1
    assert greet.start_col == 1
    assert SOURCE[greet.start_byte : greet.end_byte].endswith(b"}")
    assert greet.end_line > greet.start_line


def test_method_without_earlier_owner_goes_to_module() -> None:
    defs = _by_name(_extract())
    assert defs["Lost"].parent_key is None
    assert defs["Lost"].key == f"{PREFIX}Orphan#Lost()."

    late = _by_name(_extract(b"package demo\n\nfunc (s *S) M() {}\n\ntype S struct{}\n"))
    assert late["M"].parent_key is None


def test_duplicate_symbols_are_dropped(caplog: pytest.LogCaptureFixture) -> None:
    source = b"package demo\n\nfunc init() {}\n\nfunc init() {}\n"
    caplog.set_level(logging.INFO, logger="parse.treesitter_go")

    definitions = _extract(source)

    assert [d.name for d in definitions] == ["init"]
    assert any(
        record.levelno == logging.INFO
        and "Skipping duplicate definition" in record.getMessage()
        for record in caplog.records
    )


def test_syntax_error_raises() -> None:
    with pytest.raises(GoParseError):
        _extract(b"package demo\n\nfunc broken( {\n")


def test_missing_package_clause_raises() -> None:
    with pytest.raises(GoParseError):
        _extract(b"func F() {}\n")
