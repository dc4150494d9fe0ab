"""
List Guard
==========

Pipeline position: **Node 1**

Responsibility:
    - Look up the customer's phone and email in the blacklist
    - Record any whitelist hit in the signal snapshot (informational only,
      the whitelist never changes the score)
    - Set ``is_blacklisted`` so the graph can short-circuit straight to a
      block verdict

Lookup failures count as "no match": they are logged and appended to
``processing_errors`` but never propagate.
"""

from __future__ import annotations

import logging

from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import CustomerInfo, ListCheck, ListName

logger = logging.getLogger(__name__)


def check_list(
    store: SignalStore,
    list_name: ListName,
    customer: CustomerInfo,
) -> tuple[ListCheck, list[str]]:
    """Check phone and email against one list.

    The first matching entry's reason wins (phone before email).
    """
    result = ListCheck(phone=False, email=False, reason=None)
    errors: list[str] = []

    for id_type in ("phone", "email"):
        value = customer.get(id_type)
        if not value:
            continue
        try:
            entry = store.find_list_entry(list_name, id_type, value)
        except Exception as exc:
            logger.error(f"{list_name} lookup failed for {id_type}: {exc}")
            errors.append(f"list_guard:{list_name}:{id_type}: {exc}")
            continue
        if entry is not None:
            result[id_type] = True  # type: ignore[literal-required]
            if result["reason"] is None:
                result["reason"] = entry.get("reason")

    return result, errors


def is_blacklisted(check: ListCheck) -> bool:
    return check["phone"] or check["email"]


def make_list_guard_node(store: SignalStore):
    """Bind the store into the List Guard LangGraph node."""

    def list_guard_agent(state: dict) -> dict:
        """
        LangGraph node: List Guard.

        Reads
        -----
        - state["context"]["customer"]

        Writes
        ------
        - is_blacklisted    : bool
        - signals           : {"blacklist": ListCheck, "whitelist": ListCheck}
        - processing_errors : list[str]  (appended)
        """
        context = state["context"]
        txn_id = context.get("transaction_id", "UNKNOWN")
        customer = context.get("customer", {})
        logger.info(f"=== List Guard: START  txn={txn_id} ===")

        blacklist, black_errors = check_list(store, "blacklist", customer)
        whitelist, white_errors = check_list(store, "whitelist", customer)

        blocked = is_blacklisted(blacklist)
        if blocked:
            logger.warning(
                f"Transaction {txn_id} matches blacklist "
                f"(reason={blacklist['reason']!r}) -- skipping collectors"
            )
        elif whitelist["phone"] or whitelist["email"]:
            logger.info(f"Transaction {txn_id} matches whitelist (informational)")

        logger.info(f"=== List Guard: END  txn={txn_id}  blacklisted={blocked} ===")
        return {
            "is_blacklisted": blocked,
            "signals": {"blacklist": blacklist, "whitelist": whitelist},
            "processing_errors": black_errors + white_errors,
        }

    return list_guard_agent
