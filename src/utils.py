"""Shared utilities for hashing, positions and Go import paths."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path, PurePosixPath

_MODULE_DIRECTIVE = re.compile(r"^\s*module\s+(\S+)")


def content_hash(data: bytes) -> str:
    """Return the sha256 hex digest of raw file bytes."""
    return hashlib.sha256(data).hexdigest()


def count_lines(data: bytes) -> int:
    """Count lines the way an editor does: a trailing newline adds no line."""
    if not data:
        return 0
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


def byte_offset(lines: list[bytes], line: int, column: int) -> int:
    """Recompute a byte offset from a 1-based line and column.

    Sums the lengths of the preceding lines (plus one for each terminator)
    and adds ``column - 1``. Only used when the extraction strategy has no
    exact offset of its own.

    Args:
        lines: File content split with ``bytes.split(b"\\n")``
        line: 1-based line number
        column: 1-based column, counted in bytes

    Returns:
        The 0-based byte offset, or -1 when the position is out of range.

    Examples:
        >>> byte_offset([b"package a", b"", b"func F() {}"], 3, 6)
        16
    """
    if line < 1 or column < 1 or line > len(lines):
        return -1
    if column - 1 > len(lines[line - 1]):
        return -1
    return sum(len(previous) + 1 for previous in lines[: line - 1]) + column - 1


def source_line(lines: list[bytes], line: int) -> str:
    """Return the stripped text of a 1-based line, or an empty string."""
    if line < 1 or line > len(lines):
        return ""
    return lines[line - 1].decode("utf-8", errors="replace").strip()


def read_go_module_path(root: Path) -> str | None:
    """Read the ``module`` directive from ``root/go.mod``, if present."""
    go_mod = root / "go.mod"
    if not go_mod.is_file():
        return None
    for raw in go_mod.read_text(encoding="utf-8", errors="replace").splitlines():
        match = _MODULE_DIRECTIVE.match(raw)
        if match:
            return match.group(1).strip('"')
    return None


def package_import_path(module_path: str, relative_file: str | Path) -> str:
    """Derive a Go package import path from a project-relative file path.

    Examples:
        >>> package_import_path("example.com/demo", "internal/store/db.go")
        'example.com/demo/internal/store'
        >>> package_import_path("example.com/demo", "main.go")
        'example.com/demo'
    """
    rel = PurePosixPath(Path(relative_file).as_posix())
    parent = rel.parent.as_posix()
    if parent in ("", "."):
        return module_path
    return f"{module_path}/{parent}"


__all__ = [
    "byte_offset",
    "content_hash",
    "count_lines",
    "package_import_path",
    "read_go_module_path",
    "source_line",
]
