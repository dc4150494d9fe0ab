"""Tests for the Neo4j client wrapper (driver patched, no database needed)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from neo4j.exceptions import ServiceUnavailable

from agent_risk.core import neo4j_client
from agent_risk.core.neo4j_client import Neo4jClient


def _make_client() -> tuple[Neo4jClient, MagicMock, MagicMock]:
    driver = MagicMock()
    session = driver.session.return_value.__enter__.return_value
    with patch.object(neo4j_client.GraphDatabase, "driver", return_value=driver):
        client = Neo4jClient(uri="bolt://test:7687", password="pw", database="risk")
    return client, driver, session


class TestTransactions:
    def test_reads_use_managed_read_transaction(self):
        client, driver, session = _make_client()
        session.execute_read.return_value = [{"row": {"id": "M1"}}]

        rows = client.execute_query("MATCH (m:Merchant) RETURN m {.*} AS row")

        assert rows == [{"row": {"id": "M1"}}]
        driver.session.assert_called_with(database="risk")
        session.execute_write.assert_not_called()

    def test_transaction_function_collects_records(self):
        client, _, session = _make_client()
        client.execute_write("MERGE (m:Merchant {id: $id})", {"id": "M1"})
        work = session.execute_write.call_args.args[0]

        record = MagicMock()
        record.data.return_value = {"inserted": True}
        tx = MagicMock()
        tx.run.return_value = [record]

        assert work(tx) == [{"inserted": True}]
        tx.run.assert_called_once_with("MERGE (m:Merchant {id: $id})", {"id": "M1"})


class TestConnectivity:
    def test_reachable(self):
        client, _, _ = _make_client()
        assert client.verify_connectivity() is True

    def test_unreachable(self):
        client, driver, _ = _make_client()
        driver.verify_connectivity.side_effect = ServiceUnavailable("down")
        assert client.verify_connectivity() is False


class TestProcessClient:
    def test_singleton_and_close(self, monkeypatch):
        monkeypatch.setattr(neo4j_client, "_client", None)
        with patch.object(neo4j_client.GraphDatabase, "driver") as make_driver:
            first = neo4j_client.get_neo4j_client()
            assert neo4j_client.get_neo4j_client() is first
            neo4j_client.close_neo4j_client()

        make_driver.return_value.close.assert_called_once()
        assert neo4j_client._client is None
