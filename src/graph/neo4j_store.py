"""Neo4j implementation of the graph store."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from neo4j import GraphDatabase
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable

from graph.models import FILE_OWNED_LABELS
from graph.store import GraphStoreError, GraphStoreUnavailableError, PurgeResult

if TYPE_CHECKING:
    from neo4j import Driver

    from settings.config import Neo4jConfig

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_OWNED_PREDICATE = " OR ".join(f"n:{label}" for label in FILE_OWNED_LABELS)

FILE_HASHES_QUERY = """
MATCH (f:File {service: $service})
RETURN f.path AS path, f.hash AS hash
"""

PURGE_OWNED_QUERY = f"""
MATCH (n)
WHERE n.service = $service AND n.filePath = $path AND ({_OWNED_PREDICATE})
OPTIONAL MATCH (n)-[:DEFINES|REFERENCES]->(s:Symbol)
WITH collect(DISTINCT n) AS owned, collect(DISTINCT s) AS touched
FOREACH (x IN owned | DETACH DELETE x)
WITH size(owned) AS removed, touched
CALL {{
  WITH touched
  UNWIND touched AS s
  WITH s WHERE NOT EXISTS {{ MATCH ()-[:DEFINES|REFERENCES]->(s) }}
  WITH s, s.symbol AS symbol
  DETACH DELETE s
  RETURN collect(symbol) AS symbols
}}
RETURN removed, symbols
"""

DETACH_FILE_QUERY = """
MATCH (f:File {service: $service, path: $path})-[r]-()
DELETE r
"""

DROP_FILE_QUERY = """
MATCH (f:File {service: $service, path: $path})
OPTIONAL MATCH (f)-[:CONTAINS]->(m:Module)
WITH f, collect(DISTINCT m) AS modules
DETACH DELETE f
WITH modules
CALL {
  WITH modules
  UNWIND modules AS m
  WITH m WHERE NOT EXISTS { MATCH (:File)-[:CONTAINS]->(m) }
  WITH m, m.fqn AS fqn
  DETACH DELETE m
  RETURN collect(fqn) AS orphans
}
RETURN orphans AS modules
"""


def _label_clause(labels: list[str]) -> str:
    for label in labels:
        if not _IDENTIFIER.match(label):
            msg = f"invalid label: {label!r}"
            raise GraphStoreError(msg)
    return ":".join(labels)


class Neo4jGraphStore:
    """Graph store backed by a Neo4j database via the official driver."""

    def __init__(self, driver: Driver, database: str | None = None) -> None:
        self._driver = driver
        self._database = database

    @classmethod
    def connect(cls, config: Neo4jConfig) -> Neo4jGraphStore:
        """Create a driver and verify connectivity.

        Raises:
            GraphStoreUnavailableError: If the database cannot be reached or
                rejects the credentials.
        """
        driver = GraphDatabase.driver(
            config.uri,
            auth=(config.username, config.password.get_secret_value()),
            max_connection_pool_size=config.max_connection_pool_size,
            connection_acquisition_timeout=config.connection_timeout,
        )
        try:
            driver.verify_connectivity()
        except (ServiceUnavailable, AuthError, DriverError, Neo4jError) as exc:
            driver.close()
            msg = f"cannot reach Neo4j at {config.uri}: {exc}"
            raise GraphStoreUnavailableError(msg) from exc
        logger.info("Connected to Neo4j at %s", config.uri)
        return cls(driver, database=config.database)

    def close(self) -> None:
        self._driver.close()

    def __enter__(self) -> Neo4jGraphStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def execute_query(
        self, text: str, parameters: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        try:
            with self._driver.session(database=self._database) as session:
                result = session.run(text, parameters or {})
                return [record.data() for record in result]
        except ServiceUnavailable as exc:
            raise GraphStoreUnavailableError(str(exc)) from exc
        except (Neo4jError, DriverError) as exc:
            raise GraphStoreError(str(exc)) from exc

    def _single_id(self, text: str, parameters: dict[str, Any], what: str) -> str:
        records = self.execute_query(text, parameters)
        if not records or records[0].get("id") is None:
            msg = f"no id returned from {what} query"
            raise GraphStoreError(msg)
        return str(records[0]["id"])

    def merge_node(
        self,
        labels: list[str],
        match: dict[str, Any],
        properties: dict[str, Any],
    ) -> str:
        merge_clause = ", ".join(f"{key}: $match.{key}" for key in match)
        text = (
            f"MERGE (n:{_label_clause(labels)} {{{merge_clause}}}) "
            "SET n += $props RETURN elementId(n) AS id"
        )
        return self._single_id(
            text, {"match": match, "props": properties}, "merge node"
        )

    def create_node(self, labels: list[str], properties: dict[str, Any]) -> str:
        text = (
            f"CREATE (n:{_label_clause(labels)}) SET n = $props "
            "RETURN elementId(n) AS id"
        )
        return self._single_id(text, {"props": properties}, "create node")

    def create_relationship(
        self,
        from_id: str,
        to_id: str,
        rel_type: str,
        properties: dict[str, Any] | None = None,
    ) -> str:
        if not _IDENTIFIER.match(rel_type):
            msg = f"invalid relationship type: {rel_type!r}"
            raise GraphStoreError(msg)
        text = (
            "MATCH (a), (b) WHERE elementId(a) = $from_id AND elementId(b) = $to_id "
            f"CREATE (a)-[r:{rel_type}]->(b) SET r = $props "
            "RETURN elementId(r) AS id"
        )
        return self._single_id(
            text,
            {"from_id": from_id, "to_id": to_id, "props": properties or {}},
            "create relationship",
        )

    def file_hashes(self, service: str) -> dict[str, str]:
        hashes: dict[str, str] = {}
        for record in self.execute_query(FILE_HASHES_QUERY, {"service": service}):
            path = record.get("path")
            digest = record.get("hash")
            if isinstance(path, str) and isinstance(digest, str):
                hashes[path] = digest
        return hashes

    def purge_file(self, service: str, path: str, *, drop_file: bool) -> PurgeResult:
        params = {"service": service, "path": path}
        owned = self.execute_query(PURGE_OWNED_QUERY, params)
        removed = int(owned[0]["removed"]) if owned else 0
        symbols = tuple(owned[0]["symbols"]) if owned else ()

        modules: tuple[str, ...] = ()
        if drop_file:
            dropped = self.execute_query(DROP_FILE_QUERY, params)
            modules = tuple(dropped[0]["modules"]) if dropped else ()
            removed += 1 + len(modules)
        else:
            self.execute_query(DETACH_FILE_QUERY, params)

        return PurgeResult(
            removed_nodes=removed + len(symbols), symbols=symbols, modules=modules
        )


__all__ = [
    "DETACH_FILE_QUERY",
    "DROP_FILE_QUERY",
    "FILE_HASHES_QUERY",
    "PURGE_OWNED_QUERY",
    "Neo4jGraphStore",
]
