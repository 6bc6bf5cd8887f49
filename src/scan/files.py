"""File scanning utilities for Go source trees."""

from __future__ import annotations

import os
from fnmatch import fnmatch
from pathlib import Path
from typing import TYPE_CHECKING, cast

from gitignore_parser import parse_gitignore  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

# Version control, editor state, build output and vendored dependencies.
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".github",
        "vendor",
        "node_modules",
        ".vscode",
        ".idea",
        "bin",
        "build",
        "dist",
        "tmp",
    }
)

GO_SUFFIX = ".go"
GO_TEST_SUFFIX = "_test.go"


def _should_include_file(
    path: Path,
    directory: Path,
    gitignore_matches: Callable[[str], bool] | None,
    include_tests: bool,
    exclude_patterns: list[str] | None,
) -> bool:
    """Check if a file should be included based on all filtering rules."""
    if not path.name.endswith(GO_SUFFIX):
        return False

    if not include_tests and path.name.endswith(GO_TEST_SUFFIX):
        return False

    if not path.is_file() or path.is_symlink():
        return False

    if not _is_within_root(path, directory):
        return False

    try:
        rel_path = path.relative_to(directory)
    except ValueError:
        return False

    if gitignore_matches is not None and gitignore_matches(str(path)):
        return False

    rel_path_str = rel_path.as_posix()
    has_excluded_match = exclude_patterns and any(
        fnmatch(rel_path_str, pat) for pat in exclude_patterns
    )
    return not has_excluded_match


def _is_within_root(path: Path, root: Path) -> bool:
    """Return True when the resolved path stays within the resolved root."""
    try:
        root_resolved = root.resolve()
        path_resolved = path.resolve()
    except OSError:
        return False

    try:
        path_resolved.relative_to(root_resolved)
    except ValueError:
        return False

    return True


def _iter_gitignore_files(root: Path, skip_dirs: frozenset[str]) -> list[Path]:
    """Return sorted list of .gitignore files under root (including root)."""
    found: set[Path] = set()
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [name for name in dirnames if name not in skip_dirs]
        if ".gitignore" in filenames:
            found.add(Path(dirpath) / ".gitignore")
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


def _build_gitignore_matcher(
    root: Path,
    *,
    nested_gitignore: bool,
    skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS,
) -> Callable[[str], bool] | None:
    if not nested_gitignore:
        gitignore_path = root / ".gitignore"
        if gitignore_path.is_file():
            return cast("Callable[[str], bool]", parse_gitignore(gitignore_path))
        return None

    gitignore_paths = _iter_gitignore_files(root, skip_dirs)
    if not gitignore_paths:
        return None

    matchers = [parse_gitignore(path) for path in gitignore_paths]

    def matches(path_str: str) -> bool:
        for matcher in matchers:
            try:
                if matcher(path_str):
                    return True
            except ValueError:
                continue
        return False

    return matches


def find_go_files(
    directory: Path,
    *,
    skip_dirs: Iterable[str] = (),
    include_tests: bool = False,
    exclude_patterns: list[str] | None = None,
    respect_gitignore: bool = True,
    nested_gitignore: bool = False,
) -> Iterator[Path]:
    """Find all Go source files in a directory.

    Directories in the deny-list are pruned from the walk, so nothing below
    them is ever visited.

    Args:
        directory: Project root to search
        skip_dirs: Directory names pruned in addition to DEFAULT_SKIP_DIRS
        include_tests: Also yield ``*_test.go`` files
        exclude_patterns: Optional list of fnmatch patterns matched against
            the POSIX path relative to ``directory``
        respect_gitignore: Skip files matched by ``.gitignore``
        nested_gitignore: Also honor ``.gitignore`` files below the root

    Yields:
        Path objects for each Go file found, sorted lexicographically
        by relative path for deterministic ordering.
    """
    pruned = DEFAULT_SKIP_DIRS | frozenset(skip_dirs)
    gitignore_matches = (
        _build_gitignore_matcher(
            directory, nested_gitignore=nested_gitignore, skip_dirs=pruned
        )
        if respect_gitignore
        else None
    )

    matched_files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames[:] = sorted(name for name in dirnames if name not in pruned)
        for filename in filenames:
            path = Path(dirpath) / filename
            if _should_include_file(
                path,
                directory,
                gitignore_matches,
                include_tests,
                exclude_patterns,
            ):
                matched_files.append(path)

    matched_files.sort(key=lambda p: p.relative_to(directory).as_posix())

    yield from matched_files


def relative_posix(path: Path, root: Path) -> str:
    """Project-relative POSIX path used as the File merge key."""
    return path.relative_to(root).as_posix()


__all__ = [
    "DEFAULT_SKIP_DIRS",
    "_should_include_file",
    "find_go_files",
    "relative_posix",
]
