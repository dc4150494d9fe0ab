"""Tests for the Neo4j Signal Store (client mocked, no database needed)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from neo4j.exceptions import ServiceUnavailable

from agent_risk.core.errors import SignalStoreError
from agent_risk.core.neo4j_store import Neo4jSignalStore

NOW = datetime(2026, 1, 14, 14, 0, tzinfo=timezone.utc)


def _make_store() -> tuple[Neo4jSignalStore, MagicMock]:
    client = MagicMock()
    client.execute_query.return_value = []
    client.execute_write.return_value = []
    return Neo4jSignalStore(client), client


class TestSchema:
    def test_all_statements_issued(self):
        store, client = _make_store()
        store.ensure_schema()
        assert client.execute_write.call_count == len(Neo4jSignalStore.SCHEMA_STATEMENTS)
        issued = " ".join(c.args[0] for c in client.execute_write.call_args_list)
        assert "ListEntry" in issued
        assert "AgentReputation" in issued


class TestListEntries:
    def test_insert_reports_inserted_flag(self):
        store, client = _make_store()
        client.execute_write.return_value = [{"inserted": True}]
        entry = {"list_name": "blacklist", "type": "phone", "value": "+1", "reason": "x"}
        assert store.add_list_entry(entry) is True

        client.execute_write.return_value = [{"inserted": False}]
        assert store.add_list_entry(entry) is False

    def test_insert_uses_merge(self):
        store, client = _make_store()
        client.execute_write.return_value = [{"inserted": True}]
        store.add_list_entry({"list_name": "whitelist", "type": "email", "value": "a@b.co"})
        cypher, params = client.execute_write.call_args.args
        assert cypher.startswith("MERGE")
        assert params["list_name"] == "whitelist"

    def test_find_returns_row(self):
        store, client = _make_store()
        client.execute_query.return_value = [
            {"row": {"list_name": "blacklist", "type": "phone", "value": "+1", "reason": "fraud"}}
        ]
        assert store.find_list_entry("blacklist", "phone", "+1")["reason"] == "fraud"

    def test_find_missing(self):
        store, _ = _make_store()
        assert store.find_list_entry("blacklist", "phone", "+1") is None


class TestTransactions:
    def test_lookup_by_id(self):
        store, client = _make_store()
        client.execute_query.return_value = [{"row": {"id": "T1", "merchant_id": "M1"}}]

        assert store.get_transaction("T1")["merchant_id"] == "M1"
        cypher, params = client.execute_query.call_args.args
        assert cypher == Neo4jSignalStore.QUERY_GET_TRANSACTION
        assert params == {"id": "T1"}

    def test_missing_transaction(self):
        store, _ = _make_store()
        assert store.get_transaction("T1") is None


class TestCounters:
    def test_increment_is_a_single_statement(self):
        store, client = _make_store()
        client.execute_write.return_value = [{"row": {
            "platform": "retell", "total_transactions": 1, "fraud_count": 0,
            "chargeback_count": 0, "success_count": 1, "last_updated": NOW,
        }}]

        counter = store.increment_agent_counters(
            "retell", {"total_transactions": 1, "success_count": 1}, NOW
        )

        assert client.execute_write.call_count == 1
        cypher, params = client.execute_write.call_args.args
        assert "r.total_transactions + $total_transactions" in cypher
        assert params["fraud_count"] == 0
        assert params["success_count"] == 1
        assert counter["success_count"] == 1


class TestAssessments:
    def test_nested_fields_stored_as_json(self):
        store, client = _make_store()
        store.create_assessment({
            "id": "A1", "transaction_id": "T1", "risk_score": 30, "risk_level": "LOW",
            "signals": {"temporal": {"hour": 14}}, "score_breakdown": {"weekend": 3},
            "reasons": ["Weekend transaction"], "reviewed": False, "created_at": NOW,
        })
        props = client.execute_write.call_args.args[1]["props"]
        assert "signals" not in props
        assert json.loads(props["signals_json"]) == {"temporal": {"hour": 14}}
        assert json.loads(props["score_breakdown_json"]) == {"weekend": 3}
        assert props["reviewed"] is False

    def test_rows_decoded(self):
        store, client = _make_store()
        client.execute_query.return_value = [{"row": {
            "id": "A1", "transaction_id": "T1", "risk_score": 30,
            "signals_json": '{"agent": {"platform": "vapi"}}',
            "score_breakdown_json": '{"unknown_platform": 15}',
            "reasons": ["Unknown agent platform"], "reviewed": False, "created_at": NOW,
        }}]
        assessment = store.get_assessment("A1")
        assert assessment["signals"] == {"agent": {"platform": "vapi"}}
        assert assessment["score_breakdown"] == {"unknown_platform": 15}
        assert "signals_json" not in assessment

    def test_review_of_unknown_id(self):
        store, _ = _make_store()
        assert store.update_assessment_review("missing", "ops", "approve", NOW) is False


class TestErrors:
    def test_driver_errors_are_wrapped(self):
        store, client = _make_store()
        client.execute_query.side_effect = ServiceUnavailable("no route")
        with pytest.raises(SignalStoreError):
            store.get_merchant("M1")
