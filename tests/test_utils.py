from __future__ import annotations

from typing import TYPE_CHECKING

from utils import (
    byte_offset,
    content_hash,
    count_lines,
    package_import_path,
    read_go_module_path,
    source_line,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_content_hash_is_sha256_hex() -> None:
    assert (
        content_hash(b"")
        == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )
    assert content_hash(b"a") != content_hash(b"b")


def test_count_lines() -> None:
    assert count_lines(b"") == 0
    assert count_lines(b"package a") == 1
    assert count_lines(b"package a\n") == 1
    assert count_lines(b"package a\n\nfunc F() {}\n") == 3


def test_byte_offset_sums_lines_and_column() -> None:
    data = b"package a\n\nfunc F() {}\n"
    lines = data.split(b"\n")

    assert byte_offset(lines, 1, 1) == 0
    offset = byte_offset(lines, 3, 6)
    assert offset == data.index(b"F()")


def test_byte_offset_out_of_range_is_unknown() -> None:
    lines = b"package a\n".split(b"\n")

    assert byte_offset(lines, 0, 1) == -1
    assert byte_offset(lines, 5, 1) == -1
    assert byte_offset(lines, 1, 40) == -1


def test_source_line_strips_text() -> None:
    lines = b"package a\n\tx := F()\n".split(b"\n")

    assert source_line(lines, 2) == "x := F()"
    assert source_line(lines, 9) == ""


def test_read_go_module_path(tmp_path: Path) -> None:
    assert read_go_module_path(tmp_path) is None

    (tmp_path / "go.mod").write_text(
        "// comment\nmodule example.com/demo\n\ngo 1.22\n", encoding="utf-8"
    )

    assert read_go_module_path(tmp_path) == "example.com/demo"


def test_package_import_path() -> None:
    assert package_import_path("example.com/demo", "main.go") == "example.com/demo"
    assert (
        package_import_path("example.com/demo", "internal/store/store.go")
        == "example.com/demo/internal/store"
    )
