"""
Neo4j Client - Connection management for the Neo4j Signal Store.
================================================================

The only component that talks to the ``neo4j`` driver directly.  The Signal
Store hands it Cypher text plus parameters and gets plain dict rows back:

    - one driver per process, created lazily (``get_neo4j_client``)
    - reads run as managed read transactions, writes as managed write
      transactions; the driver retries both on transient errors
    - a connectivity probe the CLI runs before touching the schema

Usage::

    from agent_risk.core.neo4j_client import get_neo4j_client

    client = get_neo4j_client()
    rows = client.execute_query(
        "MATCH (e:ListEntry {list_name: $list}) RETURN count(e) AS cnt",
        {"list": "blacklist"},
    )
"""

from __future__ import annotations

import logging
from typing import Any

from neo4j import Driver, GraphDatabase, ManagedTransaction
from neo4j.exceptions import AuthError, ServiceUnavailable

from agent_risk.config.settings import (
    NEO4J_CONNECTION_TIMEOUT,
    NEO4J_DATABASE,
    NEO4J_MAX_CONNECTION_POOL_SIZE,
    NEO4J_PASSWORD,
    NEO4J_URI,
    NEO4J_USER,
)

logger = logging.getLogger(__name__)

_client: Neo4jClient | None = None


def _collect_rows(query: str, parameters: dict[str, Any]):
    """Transaction function returning every record as a dict."""
    def _work(tx: ManagedTransaction) -> list[dict[str, Any]]:
        return [record.data() for record in tx.run(query, parameters)]
    return _work


class Neo4jClient:
    """Owns the driver used by ``Neo4jSignalStore``.

    Connection settings default to the ``NEO4J_*`` values in
    ``agent_risk.config.settings``.
    """

    def __init__(
        self,
        uri: str = NEO4J_URI,
        user: str = NEO4J_USER,
        password: str = NEO4J_PASSWORD,
        database: str = NEO4J_DATABASE,
        max_connection_pool_size: int = NEO4J_MAX_CONNECTION_POOL_SIZE,
        connection_timeout: float = NEO4J_CONNECTION_TIMEOUT,
    ) -> None:
        self._database = database
        self._driver: Driver = GraphDatabase.driver(
            uri,
            auth=(user, password),
            max_connection_pool_size=max_connection_pool_size,
            connection_timeout=connection_timeout,
        )
        logger.info(f"Neo4j driver created for {uri} (database={database})")

    def verify_connectivity(self) -> bool:
        """Return True if the signal database is reachable with these credentials."""
        try:
            self._driver.verify_connectivity()
        except (ServiceUnavailable, AuthError) as exc:
            logger.error(f"Neo4j connectivity check failed: {exc}")
            return False
        logger.info("Neo4j connectivity verified")
        return True

    def execute_query(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a read query in a managed read transaction."""
        with self._driver.session(database=self._database) as session:
            return session.execute_read(_collect_rows(query, parameters or {}))

    def execute_write(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a single write statement inside a managed transaction.

        The whole statement commits or rolls back as one unit, which is what
        makes counter increments and insert-or-ignore ``MERGE``s atomic.
        """
        with self._driver.session(database=self._database) as session:
            return session.execute_write(_collect_rows(query, parameters or {}))

    def close(self) -> None:
        self._driver.close()
        logger.info("Neo4j driver closed")


# ---------------------------------------------------------------------------
# Process-wide client
# ---------------------------------------------------------------------------

def get_neo4j_client() -> Neo4jClient:
    """Return (and lazily create) the process-wide Neo4j client."""
    global _client
    if _client is None:
        _client = Neo4jClient()
    return _client


def close_neo4j_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
