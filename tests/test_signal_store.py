"""Tests for the in-memory Signal Store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from agent_risk.core.signal_store import InMemorySignalStore
from agent_risk.core.state import ListEntry, RiskAssessment

NOW = datetime(2026, 1, 14, 14, 0, tzinfo=timezone.utc)


def _make_entry(value: str = "+14155550100", reason: str = "chargeback") -> ListEntry:
    return ListEntry(
        list_name="blacklist",
        type="phone",
        value=value,
        reason=reason,
        added_by="tester",
        created_at=NOW,
    )


def _make_assessment(assessment_id: str, score: int = 10, minutes_ago: int = 0) -> RiskAssessment:
    return RiskAssessment(
        id=assessment_id,
        transaction_id=f"TXN-{assessment_id}",
        customer_phone="+14155550123",
        customer_email="dana@example.com",
        merchant_id="MERCH-1",
        agent_platform="retell",
        risk_score=score,
        risk_level="HIGH" if score >= 80 else "LOW",
        signals={},
        reasons=[],
        score_breakdown={},
        is_fraud=score >= 80,
        requires_verification=False,
        reviewed=False,
        reviewed_by=None,
        reviewed_at=None,
        action_taken=None,
        created_at=NOW - timedelta(minutes=minutes_ago),
    )


# ── Block / allow lists ──────────────────────────────────────────────


class TestListEntries:
    def test_first_insert_returns_true(self):
        store = InMemorySignalStore()
        assert store.add_list_entry(_make_entry()) is True

    def test_duplicate_insert_is_a_no_op(self):
        store = InMemorySignalStore()
        store.add_list_entry(_make_entry(reason="first"))

        assert store.add_list_entry(_make_entry(reason="second")) is False
        assert len(store.list_entries("blacklist")) == 1
        assert store.find_list_entry("blacklist", "phone", "+14155550100")["reason"] == "first"

    def test_same_value_on_both_lists_is_allowed(self):
        store = InMemorySignalStore()
        store.add_list_entry(_make_entry())
        whitelisted = ListEntry(list_name="whitelist", type="phone", value="+14155550100")
        assert store.add_list_entry(whitelisted) is True

    def test_remove(self):
        store = InMemorySignalStore()
        store.add_list_entry(_make_entry())
        assert store.remove_list_entry("blacklist", "phone", "+14155550100") is True
        assert store.remove_list_entry("blacklist", "phone", "+14155550100") is False
        assert store.find_list_entry("blacklist", "phone", "+14155550100") is None


# ── Transactions ─────────────────────────────────────────────────────


class TestTransactions:
    def test_windowed_lookup_is_inclusive(self):
        store = InMemorySignalStore()
        store.record_transaction({
            "id": "T1", "merchant_id": "M", "customer_phone": "+1415",
            "amount": 1.0, "created_at": NOW - timedelta(hours=24),
        })
        store.record_transaction({
            "id": "T2", "merchant_id": "M", "customer_phone": "+1415",
            "amount": 1.0, "created_at": NOW - timedelta(hours=25),
        })

        rows = store.get_transactions_by_phone("+1415", NOW - timedelta(hours=24))
        assert [r["id"] for r in rows] == ["T1"]

    def test_defaults_applied_on_record(self):
        store = InMemorySignalStore()
        store.record_transaction({"id": "T1", "merchant_id": "M", "amount": 5.0})
        row = store.get_transactions_by_merchant("M")[0]
        assert row["status"] == "pending"
        assert row["created_at"].tzinfo is not None

    def test_customer_lookup_matches_phone_or_email(self):
        store = InMemorySignalStore()
        store.record_transaction({"id": "T1", "customer_phone": "+1", "created_at": NOW})
        store.record_transaction({"id": "T2", "customer_email": "a@b.co", "created_at": NOW})
        store.record_transaction({"id": "T3", "customer_phone": "+2", "created_at": NOW})

        rows = store.get_transactions_by_customer("+1", "a@b.co")
        assert {r["id"] for r in rows} == {"T1", "T2"}

    def test_lookup_by_id(self):
        store = InMemorySignalStore()
        store.record_transaction({"id": "T1", "merchant_id": "M", "amount": 5.0})
        assert store.get_transaction("T1")["merchant_id"] == "M"
        assert store.get_transaction("T2") is None

    def test_reads_are_copies(self):
        store = InMemorySignalStore()
        store.record_transaction({"id": "T1", "merchant_id": "M", "amount": 5.0})
        store.get_transactions_by_merchant("M")[0]["amount"] = 999.0
        assert store.get_transactions_by_merchant("M")[0]["amount"] == 5.0


# ── Assessments ──────────────────────────────────────────────────────


class TestAssessments:
    def test_duplicate_id_rejected(self):
        store = InMemorySignalStore()
        store.create_assessment(_make_assessment("A1"))
        with pytest.raises(ValueError):
            store.create_assessment(_make_assessment("A1"))

    def test_newest_first(self):
        store = InMemorySignalStore()
        store.create_assessment(_make_assessment("OLD", minutes_ago=30))
        store.create_assessment(_make_assessment("NEW", minutes_ago=1))
        assert [a["id"] for a in store.list_assessments(10)] == ["NEW", "OLD"]

    def test_high_risk_pending_excludes_reviewed(self):
        store = InMemorySignalStore()
        store.create_assessment(_make_assessment("HIGH", score=90))
        store.create_assessment(_make_assessment("DONE", score=95))
        store.create_assessment(_make_assessment("LOW", score=20))
        store.update_assessment_review("DONE", "analyst", "block", NOW)

        assert [a["id"] for a in store.get_high_risk_pending(80)] == ["HIGH"]

    def test_review_of_unknown_id(self):
        store = InMemorySignalStore()
        assert store.update_assessment_review("nope", "analyst", "approve", NOW) is False


# ── Agent counters ───────────────────────────────────────────────────


class TestAgentCounters:
    def test_increment_creates_row(self):
        store = InMemorySignalStore()
        counter = store.increment_agent_counters(
            "retell", {"total_transactions": 1, "success_count": 1}, NOW
        )
        assert counter["total_transactions"] == 1
        assert counter["success_count"] == 1
        assert counter["fraud_count"] == 0
        assert counter["last_updated"] == NOW

    def test_unknown_platform_has_no_row(self):
        assert InMemorySignalStore().get_agent_counters("nobody") is None
