"""Tree-sitter based definition extraction for Go source files.

Top-level declarations are routed through ``_HANDLERS``, a table keyed on the
tree-sitter node type. Type specs are routed a second time on the kind of
their underlying type, so interfaces and everything else get separate
handlers. Each handler appends ``DefinitionRecord`` objects parents-first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tree_sitter import Language, Node, Parser
from tree_sitter_go import language as get_go_language

from graph.models import DefinitionRecord
from symbols.scheme import (
    build_symbol,
    method_descriptor,
    namespace,
    parameter_descriptor,
    term_descriptor,
    type_descriptor,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from graph.models import DefinitionKind
    from symbols.scheme import SymbolKind

logger = logging.getLogger(__name__)

_PARSER: Parser | None = None

_PARAMETER_TYPES = ("parameter_declaration", "variadic_parameter_declaration")
_INTERFACE_METHOD_TYPES = ("method_elem", "method_spec")


class GoParseError(ValueError):
    """Raised when a Go file cannot be parsed cleanly."""


def _get_parser() -> Parser:
    """Initialize and return the Tree-sitter parser with Go language."""
    global _PARSER
    if _PARSER is None:
        lang = Language(get_go_language())
        _PARSER = Parser(lang)

    return _PARSER


@dataclass
class GoFileOutline:
    """Result of walking one Go file."""

    package_name: str
    definitions: list[DefinitionRecord] = field(default_factory=list)


@dataclass
class _FileScope:
    relative_path: str
    symbol_package: str
    version: str
    namespace: str
    outline: GoFileOutline
    owners: dict[str, DefinitionRecord] = field(default_factory=dict)
    seen: set[str] = field(default_factory=set)


def _text(node: Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf8")


def _type_text(node: Node | None) -> str:
    """Source text of a type expression with whitespace collapsed."""
    return " ".join(_text(node).split())


def is_exported(name: str) -> bool:
    """Go visibility rule: exported names start with an upper-case letter."""
    return bool(name) and name[0].isupper()


def _comment_text(raw: str) -> str:
    if raw.startswith("//"):
        return raw[2:].strip()
    if raw.startswith("/*"):
        return raw[2:].removesuffix("*/").strip()
    return raw.strip()


def _leading_comments(node: Node) -> list[str]:
    comments: list[str] = []
    row = node.start_point[0]
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        if sibling.end_point[0] + 1 < row:
            break
        before = sibling.prev_named_sibling
        if before is not None and before.end_point[0] == sibling.start_point[0]:
            # trailing comment of the previous declaration
            break
        comments.append(_comment_text(_text(sibling)))
        row = sibling.start_point[0]
        sibling = before
    comments.reverse()
    return [comment for comment in comments if comment]


def _docstring(node: Node) -> str:
    """Join the comment lines that directly precede a declaration."""
    comments = _leading_comments(node)
    parent = node.parent
    if (
        not comments
        and parent is not None
        and parent.type in _HANDLERS
        and parent.named_child_count == 1
    ):
        comments = _leading_comments(parent)
    return " ".join(comments)


def _parameter_type(param: Node) -> str:
    type_text = _type_text(param.child_by_field_name("type"))
    if param.type == "variadic_parameter_declaration":
        return f"...{type_text}"
    return type_text


def _iter_parameters(params: Node | None) -> list[tuple[str, str]]:
    """Return ``(name, type)`` pairs; unnamed parameters get an empty name."""
    if params is None:
        return []
    pairs: list[tuple[str, str]] = []
    for child in params.named_children:
        if child.type not in _PARAMETER_TYPES:
            continue
        type_text = _parameter_type(child)
        names = child.children_by_field_name("name")
        if names:
            pairs.extend((_text(name), type_text) for name in names)
        else:
            pairs.append(("", type_text))
    return pairs


def _first_parameter(params: Node | None) -> Node | None:
    if params is None:
        return None
    for child in params.named_children:
        if child.type in _PARAMETER_TYPES:
            return child
    return None


def _callable_signature(name: str, params: Node | None, result: Node | None) -> str:
    rendered = ", ".join(
        f"{param_name} {param_type}" if param_name else param_type
        for param_name, param_type in _iter_parameters(params)
    )
    signature = f"{name}({rendered})"
    result_text = _type_text(result)
    if result_text:
        signature = f"{signature} {result_text}"
    return signature


def _base_type_name(type_node: Node | None) -> str:
    """Reduce ``*pkg.Server[T]`` style type text to ``Server``."""
    text = _type_text(type_node).lstrip("*")
    text = text.split("[", 1)[0]
    return text.rsplit(".", 1)[-1].strip()


def _define(
    scope: _FileScope,
    node: Node,
    *,
    kind: DefinitionKind,
    symbol_kind: SymbolKind,
    name: str,
    signature: str,
    descriptor: str,
    parent: DefinitionRecord | None = None,
    docstring: str = "",
    extra: dict[str, object] | None = None,
) -> DefinitionRecord | None:
    key = build_symbol(scope.symbol_package, scope.version, descriptor).format()
    if key in scope.seen:
        logger.info("Skipping duplicate definition %s in %s", key, scope.relative_path)
        return None
    scope.seen.add(key)

    record = DefinitionRecord(
        key=key,
        parent_key=parent.key if parent is not None else None,
        kind=kind,
        symbol_kind=symbol_kind,
        name=name,
        signature=signature,
        file_path=scope.relative_path,
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
        start_col=node.start_point[1] + 1,
        end_col=node.end_point[1] + 1,
        start_byte=node.start_byte,
        end_byte=node.end_byte,
        is_exported=is_exported(name),
        docstring=docstring,
        extra=dict(extra or {}),
    )
    scope.outline.definitions.append(record)
    return record


def _define_parameters(
    scope: _FileScope, owner: DefinitionRecord, params: Node | None
) -> None:
    if params is None:
        return
    index = 0
    for child in params.named_children:
        if child.type not in _PARAMETER_TYPES:
            continue
        type_text = _parameter_type(child)
        for name_node in child.children_by_field_name("name"):
            name = _text(name_node)
            if name and name != "_":
                _define(
                    scope,
                    name_node,
                    kind="Parameter",
                    symbol_kind="Parameter",
                    name=name,
                    signature=f"{owner.signature} param {index} {name}",
                    descriptor=parameter_descriptor(_descriptor_of(owner), name),
                    parent=owner,
                    extra={"type": type_text, "index": index},
                )
            index += 1


def _descriptor_of(record: DefinitionRecord) -> str:
    return record.key.split(" ", 4)[4]


def _handle_function(node: Node, scope: _FileScope) -> None:
    name = _text(node.child_by_field_name("name"))
    if not name:
        return
    params = node.child_by_field_name("parameters")
    result = node.child_by_field_name("result")
    record = _define(
        scope,
        node,
        kind="Function",
        symbol_kind="Function",
        name=name,
        signature=_callable_signature(name, params, result),
        descriptor=method_descriptor(scope.namespace, name),
        docstring=_docstring(node),
        extra={"returnType": _type_text(result)},
    )
    if record is not None:
        _define_parameters(scope, record, params)


def _handle_method(node: Node, scope: _FileScope) -> None:
    name = _text(node.child_by_field_name("name"))
    receiver = _first_parameter(node.child_by_field_name("receiver"))
    if not name or receiver is None:
        return

    receiver_type = _parameter_type(receiver)
    owner_name = _base_type_name(receiver.child_by_field_name("type"))
    # Linked under the owner only when its type was declared earlier in this file.
    owner = scope.owners.get(owner_name)

    params = node.child_by_field_name("parameters")
    result = node.child_by_field_name("result")
    signature = f"({receiver_type}) {_callable_signature(name, params, result)}"
    record = _define(
        scope,
        node,
        kind="Method",
        symbol_kind="Method",
        name=name,
        signature=signature,
        descriptor=method_descriptor(
            type_descriptor(scope.namespace, owner_name), name
        ),
        parent=owner,
        docstring=_docstring(node),
        extra={
            "returnType": _type_text(result),
            "receiver": receiver_type,
            "isPointerReceiver": receiver_type.startswith("*"),
        },
    )
    if record is not None:
        _define_parameters(scope, record, params)


def _define_struct_fields(
    scope: _FileScope, owner: DefinitionRecord, struct: Node
) -> None:
    field_list = next(
        (c for c in struct.named_children if c.type == "field_declaration_list"),
        None,
    )
    if field_list is None:
        return

    owner_descriptor = _descriptor_of(owner)
    for decl in field_list.named_children:
        if decl.type != "field_declaration":
            continue
        type_node = decl.child_by_field_name("type")
        type_text = _type_text(type_node)
        names = [_text(n) for n in decl.children_by_field_name("name")]
        embedded = not names
        if embedded:
            names = [_base_type_name(type_node)]
        for name in names:
            if not name or name == "_":
                continue
            _define(
                scope,
                decl,
                kind="Variable",
                symbol_kind="Field",
                name=name,
                signature=f"field {owner.name}.{name} {type_text}",
                descriptor=term_descriptor(owner_descriptor, name),
                parent=owner,
                docstring=_docstring(decl),
                extra={
                    "type": type_text,
                    "isConstant": False,
                    "scope": "instance",
                    "embedded": embedded,
                },
            )


def _define_interface(node: Node, type_node: Node, scope: _FileScope) -> None:
    name = _text(node.child_by_field_name("name"))
    record = _define(
        scope,
        node,
        kind="Interface",
        symbol_kind="Interface",
        name=name,
        signature=f"type {name} interface",
        descriptor=type_descriptor(scope.namespace, name),
        docstring=_docstring(node),
    )
    if record is None:
        return
    scope.owners[name] = record

    owner_descriptor = _descriptor_of(record)
    for elem in type_node.named_children:
        if elem.type not in _INTERFACE_METHOD_TYPES:
            continue
        method_name = _text(elem.child_by_field_name("name"))
        if not method_name:
            continue
        params = elem.child_by_field_name("parameters")
        result = elem.child_by_field_name("result")
        _define(
            scope,
            elem,
            kind="Method",
            symbol_kind="Method",
            name=method_name,
            signature=f"({name}) {_callable_signature(method_name, params, result)}",
            descriptor=method_descriptor(owner_descriptor, method_name),
            parent=record,
            docstring=_docstring(elem),
            extra={"returnType": _type_text(result), "isAbstract": True},
        )


def _define_type(node: Node, type_node: Node, scope: _FileScope) -> None:
    name = _text(node.child_by_field_name("name"))
    is_alias = node.type == "type_alias"
    if type_node.type == "struct_type":
        shape = "struct"
    else:
        shape = f"= {_type_text(type_node)}" if is_alias else _type_text(type_node)
    record = _define(
        scope,
        node,
        kind="Class",
        symbol_kind="Type",
        name=name,
        signature=f"type {name} {shape}",
        descriptor=type_descriptor(scope.namespace, name),
        docstring=_docstring(node),
        extra={
            "typeKind": "struct" if type_node.type == "struct_type" else "named",
            "isAlias": is_alias,
        },
    )
    if record is None:
        return
    scope.owners[name] = record
    if type_node.type == "struct_type":
        _define_struct_fields(scope, record, type_node)


_TYPE_HANDLERS: dict[str, Callable[[Node, Node, _FileScope], None]] = {
    "interface_type": _define_interface,
}


def _handle_type_declaration(node: Node, scope: _FileScope) -> None:
    for spec in node.named_children:
        if spec.type not in ("type_spec", "type_alias"):
            continue
        if not _text(spec.child_by_field_name("name")):
            continue
        type_node = spec.child_by_field_name("type")
        if type_node is None:
            continue
        handler = _TYPE_HANDLERS.get(type_node.type, _define_type)
        handler(spec, type_node, scope)


def _iter_value_specs(node: Node, spec_type: str) -> list[Node]:
    specs: list[Node] = []
    for child in node.named_children:
        if child.type == spec_type:
            specs.append(child)
        elif child.type == f"{spec_type}_list":
            specs.extend(c for c in child.named_children if c.type == spec_type)
    return specs


def _handle_value_declaration(node: Node, scope: _FileScope) -> None:
    is_constant = node.type == "const_declaration"
    keyword = "const" if is_constant else "var"
    spec_type = "const_spec" if is_constant else "var_spec"
    for spec in _iter_value_specs(node, spec_type):
        type_text = _type_text(spec.child_by_field_name("type"))
        for name_node in spec.children_by_field_name("name"):
            name = _text(name_node)
            if not name or name == "_":
                continue
            signature = f"{keyword} {name} {type_text}".rstrip()
            _define(
                scope,
                spec,
                kind="Variable",
                symbol_kind="Constant" if is_constant else "Variable",
                name=name,
                signature=signature,
                descriptor=term_descriptor(scope.namespace, name),
                docstring=_docstring(spec),
                extra={
                    "type": type_text,
                    "isConstant": is_constant,
                    "scope": "package",
                },
            )


_HANDLERS: dict[str, Callable[[Node, _FileScope], None]] = {
    "function_declaration": _handle_function,
    "method_declaration": _handle_method,
    "type_declaration": _handle_type_declaration,
    "var_declaration": _handle_value_declaration,
    "const_declaration": _handle_value_declaration,
}


def _package_name(root: Node) -> str:
    for child in root.named_children:
        if child.type == "package_clause":
            for ident in child.named_children:
                if ident.type == "package_identifier":
                    return _text(ident)
    return ""


def extract_go_definitions(
    source: bytes,
    relative_path: str,
    *,
    symbol_package: str,
    version: str,
    import_path: str,
) -> GoFileOutline:
    """Extract definitions from one Go file using Tree-sitter.

    Args:
        source: Raw file bytes
        relative_path: Path relative to the project root (for output)
        symbol_package: Package name used in symbol strings (the Go module path)
        version: Package version used in symbol strings
        import_path: Import path of the Go package the file belongs to

    Returns:
        The file's Go package name and its definitions, parents before
        children, in declaration order.

    Raises:
        GoParseError: If the file has syntax errors or no package clause.
    """
    tree = _get_parser().parse(source)
    root = tree.root_node
    if root.has_error:
        msg = f"syntax error in {relative_path}"
        raise GoParseError(msg)

    package_name = _package_name(root)
    if not package_name:
        msg = f"missing package clause in {relative_path}"
        raise GoParseError(msg)

    scope = _FileScope(
        relative_path=relative_path,
        symbol_package=symbol_package,
        version=version,
        namespace=namespace(import_path),
        outline=GoFileOutline(package_name=package_name),
    )
    for child in root.named_children:
        handler = _HANDLERS.get(child.type)
        if handler is not None:
            handler(child, scope)

    return scope.outline


__all__ = ["GoFileOutline", "GoParseError", "extract_go_definitions", "is_exported"]
