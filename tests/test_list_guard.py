"""Tests for the List Guard (Node 1)."""

from __future__ import annotations

from unittest.mock import MagicMock

from agent_risk.agents.list_guard import make_list_guard_node
from agent_risk.core.admin import add_to_blacklist, add_to_whitelist
from agent_risk.core.signal_store import InMemorySignalStore


def _make_state(phone: str | None = "+14155550123", email: str | None = "dana@example.com"):
    customer = {}
    if phone:
        customer["phone"] = phone
    if email:
        customer["email"] = email
    return {"context": {"transaction_id": "TXN-GUARD", "customer": customer}}


class TestBlacklist:
    def test_phone_hit(self):
        store = InMemorySignalStore()
        add_to_blacklist(store, "phone", "+14155550123", reason="prior chargeback")

        result = make_list_guard_node(store)(_make_state())
        assert result["is_blacklisted"] is True
        assert result["signals"]["blacklist"]["phone"] is True
        assert result["signals"]["blacklist"]["reason"] == "prior chargeback"

    def test_email_hit(self):
        store = InMemorySignalStore()
        add_to_blacklist(store, "email", "dana@example.com", reason="stolen card")

        result = make_list_guard_node(store)(_make_state())
        assert result["is_blacklisted"] is True
        assert result["signals"]["blacklist"]["email"] is True

    def test_no_hit(self):
        result = make_list_guard_node(InMemorySignalStore())(_make_state())
        assert result["is_blacklisted"] is False
        assert result["processing_errors"] == []

    def test_missing_email_is_not_looked_up(self):
        store = MagicMock()
        store.find_list_entry.return_value = None
        make_list_guard_node(store)(_make_state(email=None))
        looked_up = {call.args[1] for call in store.find_list_entry.call_args_list}
        assert looked_up == {"phone"}


class TestWhitelist:
    def test_whitelist_recorded_but_not_blocking(self):
        store = InMemorySignalStore()
        add_to_whitelist(store, "phone", "+14155550123")

        result = make_list_guard_node(store)(_make_state())
        assert result["is_blacklisted"] is False
        assert result["signals"]["whitelist"]["phone"] is True


class TestLookupFailure:
    def test_error_is_treated_as_no_match(self):
        store = MagicMock()
        store.find_list_entry.side_effect = ConnectionError("db down")

        result = make_list_guard_node(store)(_make_state())
        assert result["is_blacklisted"] is False
        # phone + email on both lists
        assert len(result["processing_errors"]) == 4
