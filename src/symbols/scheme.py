"""Canonical symbol identifiers for code entities.

A symbol is five space-separated fields::

    <scheme> <manager> <package-name> <package-version> <descriptor>

e.g. ``scip-go gomod example.com/demo v1.0.0 `example.com/demo`/Server#Start().``

The descriptor locates the entity inside its package. Suffixes distinguish
kinds: ``/`` namespace, ``#`` type, ``().`` method or function, ``.`` term
(field or package-level value). Locals and parameters are prefixed with
``local `` and ``param ``. Both extraction strategies build symbols through
this module so their strings compare equal for the same entity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

GO_SCHEME = "scip-go"
GO_MANAGER = "gomod"

LOCAL_PREFIX = "local "
PARAM_PREFIX = "param "

SymbolKind = Literal[
    "Package",
    "Type",
    "Interface",
    "Method",
    "Function",
    "Field",
    "Variable",
    "Constant",
    "Parameter",
    "Local",
]

DescriptorSuffix = Literal[
    "namespace",
    "type",
    "method",
    "term",
    "parameter",
    "type_parameter",
    "meta",
    "macro",
    "local",
]

_SIMPLE_NAME = re.compile(r"^[A-Za-z0-9_+$\-]+$")
_SIMPLE_CHARS = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_+$-"
)


class MalformedSymbolError(ValueError):
    """Raised when a symbol string does not decode into five components."""


@dataclass(frozen=True)
class Symbol:
    scheme: str
    manager: str
    package_name: str
    package_version: str
    descriptor: str

    def format(self) -> str:
        return " ".join(
            (
                self.scheme,
                self.manager,
                self.package_name,
                self.package_version,
                self.descriptor,
            )
        )

    def __str__(self) -> str:
        return self.format()


@dataclass(frozen=True)
class DescriptorPart:
    """One component of a descriptor, e.g. ``("Server", "type")``."""

    name: str
    suffix: DescriptorSuffix
    disambiguator: str = ""


def build_symbol(package_name: str, version: str, descriptor: str) -> Symbol:
    """Build a Go symbol for an entity inside ``package_name``."""
    return Symbol(
        scheme=GO_SCHEME,
        manager=GO_MANAGER,
        package_name=package_name or ".",
        package_version=version or ".",
        descriptor=descriptor,
    )


def parse_symbol(text: str) -> Symbol:
    """Parse a formatted symbol string.

    The descriptor is everything after the fourth space, so descriptors that
    contain spaces (``param x``) survive a round trip.

    Raises:
        MalformedSymbolError: If the string does not hold exactly five
            non-empty space-separated components.
    """
    parts = text.split(" ", 4)
    if len(parts) != 5 or any(part == "" for part in parts):
        msg = f"invalid symbol format: {text!r}"
        raise MalformedSymbolError(msg)
    return Symbol(*parts)


def escape_name(name: str) -> str:
    """Backtick-quote a descriptor name unless it is a simple identifier."""
    if _SIMPLE_NAME.match(name):
        return name
    return "`" + name.replace("`", "``") + "`"


def namespace(import_path: str) -> str:
    return f"{escape_name(import_path)}/"


def type_descriptor(ns: str, name: str) -> str:
    return f"{ns}{escape_name(name)}#"


def method_descriptor(owner: str, name: str) -> str:
    """Descriptor for a function (owner is a namespace) or method (owner is a type)."""
    return f"{owner}{escape_name(name)}()."


def term_descriptor(owner: str, name: str) -> str:
    return f"{owner}{escape_name(name)}."


def local_descriptor(owner: str, name: str) -> str:
    return f"{owner}{LOCAL_PREFIX}{name}"


def parameter_descriptor(owner: str, name: str) -> str:
    return f"{owner}{PARAM_PREFIX}{name}"


def _read_name(descriptor: str, pos: int) -> tuple[str, int]:
    if pos < len(descriptor) and descriptor[pos] == "`":
        chars: list[str] = []
        pos += 1
        while pos < len(descriptor):
            char = descriptor[pos]
            if char == "`":
                if descriptor.startswith("``", pos):
                    chars.append("`")
                    pos += 2
                    continue
                return "".join(chars), pos + 1
            chars.append(char)
            pos += 1
        msg = f"unterminated backtick in descriptor: {descriptor!r}"
        raise MalformedSymbolError(msg)

    start = pos
    while pos < len(descriptor) and descriptor[pos] in _SIMPLE_CHARS:
        pos += 1
    return descriptor[start:pos], pos


def split_descriptor(descriptor: str) -> list[DescriptorPart]:
    """Split a descriptor into its components.

    Raises:
        MalformedSymbolError: If the descriptor does not follow the grammar.
    """
    parts: list[DescriptorPart] = []
    pos = 0
    while pos < len(descriptor):
        rest = descriptor[pos:]
        if rest.startswith(LOCAL_PREFIX):
            parts.append(DescriptorPart(rest[len(LOCAL_PREFIX) :], "local"))
            break
        if rest.startswith(PARAM_PREFIX):
            parts.append(DescriptorPart(rest[len(PARAM_PREFIX) :], "parameter"))
            break

        if descriptor[pos] in "([":
            closing = ")" if descriptor[pos] == "(" else "]"
            suffix: DescriptorSuffix = (
                "parameter" if closing == ")" else "type_parameter"
            )
            name, end = _read_name(descriptor, pos + 1)
            if end >= len(descriptor) or descriptor[end] != closing:
                msg = f"malformed descriptor: {descriptor!r}"
                raise MalformedSymbolError(msg)
            parts.append(DescriptorPart(name, suffix))
            pos = end + 1
            continue

        name, pos = _read_name(descriptor, pos)
        if pos >= len(descriptor):
            msg = f"descriptor component {name!r} has no suffix: {descriptor!r}"
            raise MalformedSymbolError(msg)

        marker = descriptor[pos]
        if marker == "/":
            parts.append(DescriptorPart(name, "namespace"))
            pos += 1
        elif marker == "#":
            parts.append(DescriptorPart(name, "type"))
            pos += 1
        elif marker == ".":
            parts.append(DescriptorPart(name, "term"))
            pos += 1
        elif marker == ":":
            parts.append(DescriptorPart(name, "meta"))
            pos += 1
        elif marker == "!":
            parts.append(DescriptorPart(name, "macro"))
            pos += 1
        elif marker == "(":
            close = descriptor.find(").", pos)
            if close == -1:
                msg = f"unterminated method descriptor: {descriptor!r}"
                raise MalformedSymbolError(msg)
            parts.append(
                DescriptorPart(name, "method", descriptor[pos + 1 : close])
            )
            pos = close + 2
        else:
            msg = f"unexpected {marker!r} in descriptor: {descriptor!r}"
            raise MalformedSymbolError(msg)

    if not parts:
        msg = "empty descriptor"
        raise MalformedSymbolError(msg)
    return parts


def infer_symbol_kind(descriptor: str) -> SymbolKind:
    """Infer the entity kind from the descriptor's last component."""
    try:
        parts = split_descriptor(descriptor)
    except MalformedSymbolError:
        return "Variable"

    last = parts[-1]
    owner_is_type = len(parts) > 1 and parts[-2].suffix == "type"
    if last.suffix == "method":
        return "Method" if owner_is_type else "Function"
    if last.suffix == "type":
        return "Type"
    if last.suffix == "namespace":
        return "Package"
    if last.suffix == "term":
        return "Field" if owner_is_type else "Variable"
    if last.suffix == "parameter":
        return "Parameter"
    if last.suffix == "local":
        return "Local"
    return "Variable"


def display_name(descriptor: str) -> str:
    """Return the short name of the entity a descriptor denotes."""
    try:
        parts = split_descriptor(descriptor)
    except MalformedSymbolError:
        return descriptor
    name = parts[-1].name
    if parts[-1].suffix == "namespace":
        return name.rsplit("/", 1)[-1]
    return name


def owner_descriptor(descriptor: str) -> str | None:
    """Return the descriptor of the enclosing entity, if any.

    ``ns/T#M().`` is owned by ``ns/T#``; a top-level ``ns/F().`` is owned by
    the namespace ``ns/``. A bare namespace has no owner.
    """
    for prefix in (LOCAL_PREFIX, PARAM_PREFIX):
        index = descriptor.find(prefix)
        if index > 0:
            return descriptor[:index]

    try:
        parts = split_descriptor(descriptor)
    except MalformedSymbolError:
        return None
    if len(parts) < 2:
        return None

    pieces: list[str] = []
    for part in parts[:-1]:
        pieces.append(_render_part(part))
    return "".join(pieces)


def _render_part(part: DescriptorPart) -> str:
    name = escape_name(part.name)
    if part.suffix == "namespace":
        return f"{name}/"
    if part.suffix == "type":
        return f"{name}#"
    if part.suffix == "method":
        return f"{name}({part.disambiguator})."
    if part.suffix == "term":
        return f"{name}."
    if part.suffix == "meta":
        return f"{name}:"
    if part.suffix == "macro":
        return f"{name}!"
    if part.suffix == "parameter":
        return f"({name})"
    if part.suffix == "type_parameter":
        return f"[{name}]"
    return f"{LOCAL_PREFIX}{part.name}"


__all__ = [
    "GO_MANAGER",
    "GO_SCHEME",
    "DescriptorPart",
    "MalformedSymbolError",
    "Symbol",
    "SymbolKind",
    "build_symbol",
    "display_name",
    "escape_name",
    "infer_symbol_kind",
    "local_descriptor",
    "method_descriptor",
    "namespace",
    "owner_descriptor",
    "parameter_descriptor",
    "parse_symbol",
    "split_descriptor",
    "term_descriptor",
    "type_descriptor",
]
