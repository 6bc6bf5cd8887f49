from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable, SessionExpired
from pydantic import SecretStr

from graph.neo4j_store import (
    DETACH_FILE_QUERY,
    DROP_FILE_QUERY,
    FILE_HASHES_QUERY,
    PURGE_OWNED_QUERY,
    Neo4jGraphStore,
)
from graph.store import GraphStore, GraphStoreError, GraphStoreUnavailableError
from settings.config import Neo4jConfig


class _Record:
    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def data(self) -> dict[str, Any]:
        return self._data


def _store(*results: list[dict[str, Any]]) -> tuple[Neo4jGraphStore, MagicMock]:
    """A store whose successive queries return ``results`` in order."""
    driver = MagicMock()
    session = driver.session.return_value.__enter__.return_value
    session.run.side_effect = [[_Record(row) for row in rows] for rows in results]
    return Neo4jGraphStore(driver, database="code"), session


def test_neo4j_store_satisfies_protocol() -> None:
    store, _ = _store()
    assert isinstance(store, GraphStore)


def test_merge_node_query() -> None:
    store, session = _store([{"id": "4:db:7"}])

    node_id = store.merge_node(
        ["File"], {"service": "demo", "path": "a.go"}, {"hash": "h1"}
    )

    assert node_id == "4:db:7"
    text, params = session.run.call_args.args
    assert text == (
        "MERGE (n:File {service: $match.service, path: $match.path}) "
        "SET n += $props RETURN elementId(n) AS id"
    )
    assert params == {
        "match": {"service": "demo", "path": "a.go"},
        "props": {"hash": "h1"},
    }


def test_session_uses_configured_database() -> None:
    store, _ = _store([{"id": "4:db:1"}])

    store.create_node(["Reference"], {"filePath": "a.go"})

    store._driver.session.assert_called_with(database="code")


def test_create_relationship_query() -> None:
    store, session = _store([{"id": "5:db:2"}])

    rel_id = store.create_relationship("4:db:1", "4:db:2", "DEFINES", {"isExported": True})

    assert rel_id == "5:db:2"
    text, params = session.run.call_args.args
    assert "CREATE (a)-[r:DEFINES]->(b)" in text
    assert params == {
        "from_id": "4:db:1",
        "to_id": "4:db:2",
        "props": {"isExported": True},
    }


def test_invalid_identifiers_rejected_before_query() -> None:
    store, session = _store()

    with pytest.raises(GraphStoreError):
        store.merge_node(["File) DETACH DELETE (x"], {"path": "a.go"}, {})
    with pytest.raises(GraphStoreError):
        store.create_relationship("a", "b", "CONTAINS]->(x")

    session.run.assert_not_called()


def test_missing_id_is_an_error() -> None:
    store, _ = _store([])

    with pytest.raises(GraphStoreError, match="no id"):
        store.create_node(["Reference"], {})


def test_driver_errors_are_translated() -> None:
    store, session = _store()

    session.run.side_effect = ServiceUnavailable("connection refused")
    with pytest.raises(GraphStoreUnavailableError):
        store.execute_query("RETURN 1")

    session.run.side_effect = SessionExpired("session expired")
    with pytest.raises(GraphStoreError) as exc_info:
        store.execute_query("RETURN 1")
    assert not isinstance(exc_info.value, GraphStoreUnavailableError)


def test_file_hashes() -> None:
    store, session = _store(
        [
            {"path": "a.go", "hash": "h-a"},
            {"path": "b.go", "hash": None},
        ]
    )

    assert store.file_hashes("demo") == {"a.go": "h-a"}
    text, params = session.run.call_args.args
    assert text == FILE_HASHES_QUERY
    assert params == {"service": "demo"}


def test_purge_file_keeping_file_node() -> None:
    store, session = _store([{"removed": 3, "symbols": ["sym-a"]}], [])

    result = store.purge_file("demo", "a.go", drop_file=False)

    queries = [call.args[0] for call in session.run.call_args_list]
    assert queries == [PURGE_OWNED_QUERY, DETACH_FILE_QUERY]
    assert result.symbols == ("sym-a",)
    assert result.modules == ()
    assert result.removed_nodes == 4


def test_purge_file_dropping_file_node() -> None:
    store, session = _store(
        [{"removed": 2, "symbols": []}],
        [{"modules": ["example.com/demo/store"]}],
    )

    result = store.purge_file("demo", "store/s.go", drop_file=True)

    queries = [call.args[0] for call in session.run.call_args_list]
    assert queries == [PURGE_OWNED_QUERY, DROP_FILE_QUERY]
    assert result.modules == ("example.com/demo/store",)
    assert result.removed_nodes == 4
    assert session.run.call_args.args[1] == {"service": "demo", "path": "store/s.go"}


def test_connect_verifies_connectivity(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = MagicMock()
    factory = MagicMock(return_value=driver)
    monkeypatch.setattr("graph.neo4j_store.GraphDatabase.driver", factory)
    config = Neo4jConfig(
        uri="bolt://graph:7687", password=SecretStr("secret"), database="code"
    )

    store = Neo4jGraphStore.connect(config)

    assert factory.call_args.args == ("bolt://graph:7687",)
    assert factory.call_args.kwargs["auth"] == ("neo4j", "secret")
    driver.verify_connectivity.assert_called_once()
    store.close()
    driver.close.assert_called_once()


def test_connect_failure_is_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    driver = MagicMock()
    driver.verify_connectivity.side_effect = ServiceUnavailable("no route")
    monkeypatch.setattr(
        "graph.neo4j_store.GraphDatabase.driver", MagicMock(return_value=driver)
    )

    with pytest.raises(GraphStoreUnavailableError, match="bolt://localhost:7687"):
        Neo4jGraphStore.connect(Neo4jConfig())

    driver.close.assert_called_once()
