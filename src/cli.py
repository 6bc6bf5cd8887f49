"""Command-line interface for codegraph."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson

from graph.memory import InMemoryGraphStore
from graph.neo4j_store import Neo4jGraphStore
from graph.store import GraphStoreError
from indexers.native import NativeIndexer
from indexers.scip import ScipIndexer
from settings.config import ConfigError, load_config
from symbols.scheme import MalformedSymbolError, infer_symbol_kind, parse_symbol
from sync.engine import FatalSyncError, SyncEngine

if TYPE_CHECKING:
    from collections.abc import Iterator

    from graph.store import GraphStore
    from indexers.base import ExtractionStrategy
    from settings.config import CodegraphConfig

logger = logging.getLogger(__name__)


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Project root (default: .)",
    )


def _add_store_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        choices=("neo4j", "memory"),
        default="neo4j",
        help="Graph store backend (default: neo4j)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="codegraph")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    index_parser = subparsers.add_parser("index", help="Index a Go project")
    _add_common_paths(index_parser)
    _add_store_option(index_parser)
    index_parser.add_argument(
        "--strategy",
        choices=("native", "scip"),
        default=None,
        help="Extraction strategy (default: config index.strategy)",
    )
    index_parser.add_argument(
        "--full",
        action="store_true",
        help="Re-extract every file, ignoring stored hashes",
    )
    index_parser.add_argument(
        "--scip-index",
        default=None,
        help="Pre-built index.scip to read instead of running scip-go",
    )
    index_parser.add_argument(
        "--dump",
        default=None,
        metavar="PATH",
        help="Write the in-memory graph as JSONL (requires --store memory)",
    )
    index_parser.add_argument(
        "--json", action="store_true", help="Print the run report as JSON"
    )

    plan_parser = subparsers.add_parser(
        "plan", help="Show which files the next run would touch"
    )
    _add_common_paths(plan_parser)
    _add_store_option(plan_parser)
    plan_parser.add_argument(
        "--json", action="store_true", help="Print the plan as JSON"
    )

    symbol_parser = subparsers.add_parser("symbol", help="Parse a symbol string")
    symbol_parser.add_argument("text", help="Symbol string to parse")
    symbol_parser.add_argument(
        "--json", action="store_true", help="Print the fields as JSON"
    )

    return parser


def _write_json(data: Any) -> None:
    sys.stdout.write(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode())
    sys.stdout.write("\n")


def _open_store(kind: str, config: CodegraphConfig) -> GraphStore:
    if kind == "memory":
        return InMemoryGraphStore()
    return Neo4jGraphStore.connect(config.neo4j)


def _close_store(store: GraphStore) -> None:
    if isinstance(store, Neo4jGraphStore):
        store.close()


def _build_strategy(
    name: str, config: CodegraphConfig, scip_index: str | None
) -> ExtractionStrategy:
    if name == "native":
        return NativeIndexer()
    index_path = scip_index or config.index.scip_index
    return ScipIndexer(
        config.index.scip_binary,
        index_path=Path(index_path) if index_path else None,
        timeout=config.index.scip_timeout,
    )


@contextmanager
def _cancel_on_sigint() -> Iterator[threading.Event]:
    """Set the yielded event on Ctrl-C instead of raising KeyboardInterrupt."""
    cancel = threading.Event()

    def _handler(signum: int, frame: object) -> None:
        logger.warning("Interrupt received; stopping after the current file")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _handle_index(root: Path, args: argparse.Namespace) -> int:
    if args.dump and args.store != "memory":
        sys.stderr.write("error: --dump requires --store memory\n")
        return 2

    config = load_config(root)
    strategy = _build_strategy(
        args.strategy or config.index.strategy, config, args.scip_index
    )
    store = _open_store(args.store, config)
    try:
        with _cancel_on_sigint() as cancel:
            result = SyncEngine(store, strategy, config).run(
                root, cancel, full=args.full
            )
        if args.dump and isinstance(store, InMemoryGraphStore):
            count = store.dump_jsonl(Path(args.dump).expanduser())
            logger.info("Wrote %d graph records to %s", count, args.dump)
    finally:
        _close_store(store)

    if args.json:
        _write_json(result.to_dict())
    else:
        sys.stdout.write(
            f"{result.service}: indexed {len(result.indexed)}, "
            f"unchanged {len(result.unchanged)}, removed {len(result.removed)}, "
            f"failed {len(result.failed)}\n"
        )
        for path, message in result.failed:
            sys.stderr.write(f"failed: {path}: {message}\n")
        if result.cancelled:
            sys.stderr.write("cancelled before completion\n")
    return 1 if result.cancelled else 0


def _handle_plan(root: Path, args: argparse.Namespace) -> int:
    config = load_config(root)
    store = _open_store(args.store, config)
    try:
        plan = SyncEngine(store, NativeIndexer(), config).plan(root)
    finally:
        _close_store(store)

    if args.json:
        _write_json(plan.to_dict())
        return 0
    for label, paths in (
        ("added", plan.added),
        ("changed", plan.changed),
        ("deleted", plan.deleted),
    ):
        for path in paths:
            sys.stdout.write(f"{label}: {path}\n")
    sys.stdout.write(f"unchanged: {len(plan.unchanged)} files\n")
    return 0


def _handle_symbol(text: str, as_json: bool) -> int:
    try:
        symbol = parse_symbol(text)
    except MalformedSymbolError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 1

    fields = {
        "scheme": symbol.scheme,
        "manager": symbol.manager,
        "package_name": symbol.package_name,
        "package_version": symbol.package_version,
        "descriptor": symbol.descriptor,
        "kind": infer_symbol_kind(symbol.descriptor),
    }
    if as_json:
        _write_json(fields)
    else:
        for key, value in fields.items():
            sys.stdout.write(f"{key}: {value}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "symbol":
        return _handle_symbol(args.text, args.json)

    root = Path(args.root).expanduser().resolve()

    try:
        if args.command == "index":
            return _handle_index(root, args)

        if args.command == "plan":
            return _handle_plan(root, args)
    except (ConfigError, FatalSyncError, GraphStoreError) as exc:
        sys.stderr.write(f"error: {exc}\n")
        return 2

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
