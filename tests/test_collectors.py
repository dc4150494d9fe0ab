"""Tests for the five signal collectors."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

from agent_risk.agents.agent_reputation import collect_agent_signals
from agent_risk.agents.customer import (
    PrefixPhoneClassifier,
    collect_customer_signals,
    is_valid_e164,
    is_valid_email,
)
from agent_risk.agents.temporal import collect_payment_signals, collect_temporal_signals
from agent_risk.agents.transaction_pattern import collect_transaction_signals
from agent_risk.agents.velocity import collect_velocity_signals
from agent_risk.config.settings import PLATFORM_REPUTATION
from agent_risk.core.signal_store import InMemorySignalStore

NOW = datetime(2026, 1, 14, 14, 0, tzinfo=timezone.utc)   # Wednesday


def _txn(txn_id, phone=None, email=None, merchant="M1", amount=50.0,
         status="completed", ago=timedelta(days=3)):
    return {
        "id": txn_id,
        "merchant_id": merchant,
        "customer_phone": phone,
        "customer_email": email,
        "amount": amount,
        "status": status,
        "created_at": NOW - ago,
    }


def _failing_store() -> MagicMock:
    store = MagicMock()
    for name in (
        "get_transactions_by_customer", "get_assessments_by_customer",
        "get_merchant", "get_transactions_by_merchant", "get_agent_counters",
        "get_transactions_by_phone", "get_transactions_by_email",
    ):
        getattr(store, name).side_effect = ConnectionError("store down")
    return store


# ── Customer ─────────────────────────────────────────────────────────


class TestCustomerValidation:
    def test_e164(self):
        assert is_valid_e164("+14155550123")
        assert not is_valid_e164("4155550123")
        assert not is_valid_e164("+04155550123")
        assert not is_valid_e164("+1415555012345678")

    def test_email(self):
        assert is_valid_email("dana@example.com")
        assert not is_valid_email("dana@example")
        assert not is_valid_email("dana example@x.com")

    def test_voip_prefix(self):
        classifier = PrefixPhoneClassifier()
        assert classifier.classify("+18005550100") == "voip"
        assert classifier.classify("+15555555555") == "voip"
        assert classifier.classify("+14155550100") == "mobile"


class TestCustomerSignals:
    def test_first_time_customer(self):
        store = InMemorySignalStore()
        signals = collect_customer_signals(
            {"phone": "+14155550123", "email": "x@Mailinator.com"}, store, PrefixPhoneClassifier()
        )
        assert signals["phone_valid"] is True
        assert signals["phone_type"] == "mobile"
        assert signals["is_disposable_email"] is True
        assert signals["email_domain"] == "mailinator.com"
        assert signals["is_new_customer"] is True
        assert signals["previous_orders"] == 0

    def test_history_by_phone_or_email(self):
        store = InMemorySignalStore()
        store.record_transaction(_txn("T1", phone="+14155550123", amount=20.0))
        store.record_transaction(_txn("T2", email="dana@example.com", amount=30.0))
        store.create_assessment({
            "id": "A1", "transaction_id": "T0", "customer_phone": "+14155550123",
            "risk_score": 90, "is_fraud": True, "created_at": NOW,
        })

        signals = collect_customer_signals(
            {"phone": "+14155550123", "email": "dana@example.com"},
            store, PrefixPhoneClassifier(),
        )
        assert signals["previous_orders"] == 2
        assert signals["lifetime_value"] == 50.0
        assert signals["is_new_customer"] is False
        assert signals["previous_fraud"] == 1

    def test_history_failure_keeps_defaults(self):
        signals = collect_customer_signals(
            {"phone": "+14155550123"}, _failing_store(), PrefixPhoneClassifier()
        )
        assert signals["is_new_customer"] is True
        assert signals["previous_fraud"] == 0
        assert signals["phone_valid"] is True


# ── Transaction pattern ──────────────────────────────────────────────


class TestTransactionSignals:
    def _context(self, total, merchant="M1"):
        return {"merchant_id": merchant, "totals": {"total": Decimal(total)},
                "items": [{"product_id": "p", "quantity": 1}]}

    def test_unknown_merchant(self):
        signals = collect_transaction_signals(self._context("10"), InMemorySignalStore())
        assert signals["merchant_exists"] is False
        assert signals["is_unusual_amount"] is False

    def test_default_average_without_completed_orders(self):
        store = InMemorySignalStore()
        store.add_merchant({"id": "M1", "name": "Shop"})
        store.record_transaction(_txn("T1", amount=999.0, status="failed"))

        signals = collect_transaction_signals(self._context("50"), store)
        assert signals["merchant_avg_order"] == 50.0
        assert signals["deviation_from_avg"] == 1.0
        assert signals["is_unusual_amount"] is False

    def test_high_and_low_outliers(self):
        store = InMemorySignalStore()
        store.add_merchant({"id": "M1", "name": "Shop"})
        store.record_transaction(_txn("T1", amount=20.0))
        store.record_transaction(_txn("T2", amount=20.0))

        assert collect_transaction_signals(self._context("100"), store)["is_unusual_amount"]
        assert collect_transaction_signals(self._context("1"), store)["is_unusual_amount"]
        assert not collect_transaction_signals(self._context("60"), store)["is_unusual_amount"]

    def test_store_failure_degrades(self):
        signals = collect_transaction_signals(self._context("10"), _failing_store())
        assert signals["degraded"] is True


# ── Agent reputation ─────────────────────────────────────────────────


class TestAgentSignals:
    def test_known_platform_case_insensitive(self):
        signals = collect_agent_signals(
            {"platform": "ReTell"}, InMemorySignalStore(), PLATFORM_REPUTATION
        )
        assert signals["is_known_platform"] is True
        assert signals["platform_reputation"] == 90

    def test_unknown_platform(self):
        signals = collect_agent_signals(
            {"platform": "shadybot"}, InMemorySignalStore(), PLATFORM_REPUTATION
        )
        assert signals["is_known_platform"] is False
        assert signals["platform_reputation"] == 30

    def test_literal_unknown_is_never_known(self):
        signals = collect_agent_signals(
            {"platform": "unknown"}, InMemorySignalStore(), {"unknown": 99}
        )
        assert signals["is_known_platform"] is False

    def test_live_rates(self):
        store = InMemorySignalStore()
        store.increment_agent_counters(
            "vapi",
            {"total_transactions": 20, "fraud_count": 2, "chargeback_count": 1,
             "success_count": 15},
            NOW,
        )
        signals = collect_agent_signals({"platform": "vapi"}, store, PLATFORM_REPUTATION)
        assert signals["agent_transaction_count"] == 20
        assert signals["agent_fraud_rate"] == 0.1
        assert signals["agent_chargeback_rate"] == 0.05
        assert signals["agent_success_rate"] == 0.75

    def test_counter_failure_keeps_zero_rates(self):
        signals = collect_agent_signals({"platform": "vapi"}, _failing_store(), PLATFORM_REPUTATION)
        assert signals["agent_fraud_rate"] == 0.0


# ── Velocity ─────────────────────────────────────────────────────────


class TestVelocitySignals:
    def test_phone_history_drives_windows(self):
        store = InMemorySignalStore()
        phone, email = "+14155550123", "dana@example.com"
        store.record_transaction(_txn("T1", phone=phone, email=email, ago=timedelta(minutes=5)))
        store.record_transaction(_txn("T2", phone=phone, merchant="M2",
                                      status="failed", ago=timedelta(minutes=20)))
        store.record_transaction(_txn("T3", email=email, merchant="M3",
                                      ago=timedelta(hours=5)))
        store.record_transaction(_txn("T4", phone=phone, ago=timedelta(hours=1)))
        store.record_transaction(_txn("T5", phone=phone, ago=timedelta(hours=30)))

        signals = collect_velocity_signals({"phone": phone, "email": email}, store, NOW)
        assert signals["transactions_last_hour"] == 2          # T4 sits on the boundary
        assert signals["transactions_last_24h"] == 3           # T3 is email-only
        assert signals["unique_merchants_24h"] == 2
        assert signals["failed_attempts_1h"] == 1

    def test_hourly_count_takes_larger_window_not_sum(self):
        store = InMemorySignalStore()
        phone, email = "+14155550123", "dana@example.com"
        for n in range(2):
            store.record_transaction(_txn(f"P{n}", phone=phone, ago=timedelta(minutes=10 + n)))
            store.record_transaction(_txn(f"E{n}", email=email, ago=timedelta(minutes=20 + n)))

        signals = collect_velocity_signals({"phone": phone, "email": email}, store, NOW)
        assert signals["transactions_last_hour"] == 2

        store.record_transaction(_txn("E2", email=email, ago=timedelta(minutes=30)))
        signals = collect_velocity_signals({"phone": phone, "email": email}, store, NOW)
        assert signals["transactions_last_hour"] == 3
        assert signals["transactions_last_24h"] == 2

    def test_email_only_customer(self):
        store = InMemorySignalStore()
        email = "dana@example.com"
        store.record_transaction(_txn("E1", email=email, merchant="M1", ago=timedelta(minutes=5)))
        store.record_transaction(_txn("E2", email=email, merchant="M2",
                                      status="failed", ago=timedelta(hours=3)))

        signals = collect_velocity_signals({"email": email}, store, NOW)
        assert signals["transactions_last_hour"] == 1
        assert signals["transactions_last_24h"] == 2
        assert signals["unique_merchants_24h"] == 2
        assert signals["failed_attempts_1h"] == 0

    def test_failure_gives_zeros(self):
        signals = collect_velocity_signals({"phone": "+1"}, _failing_store(), NOW)
        assert signals["transactions_last_hour"] == 0
        assert signals["transactions_last_24h"] == 0


# ── Temporal / payment ───────────────────────────────────────────────


class TestTemporalSignals:
    def test_weekday_afternoon(self):
        signals = collect_temporal_signals(NOW)
        assert signals["hour"] == 14
        assert signals["is_business_hours"] is True
        assert signals["is_late_night"] is False
        assert signals["day_of_week"] == 2
        assert signals["is_weekend"] is False

    def test_saturday_late_night(self):
        signals = collect_temporal_signals(datetime(2026, 1, 17, 2, 0, tzinfo=timezone.utc))
        assert signals["is_late_night"] is True
        assert signals["is_weekend"] is True

    def test_late_night_bounds(self):
        assert not collect_temporal_signals(NOW.replace(hour=0, minute=59))["is_late_night"]
        assert collect_temporal_signals(NOW.replace(hour=5, minute=59))["is_late_night"]
        assert not collect_temporal_signals(NOW.replace(hour=6))["is_late_night"]

    def test_payment_descriptors(self):
        link = collect_payment_signals({"method": "link", "currency": "USD"})
        assert link["is_link"] and not link["is_direct"]
        direct = collect_payment_signals({"method": "stripe", "save_for_future": True})
        assert direct["is_direct"] and direct["save_for_future"]
        other = collect_payment_signals({"method": "stablecoin"})
        assert not other["is_link"] and not other["is_direct"]
