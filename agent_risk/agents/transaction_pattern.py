"""
Transaction-Pattern Signal Collector
====================================

Responsibility:
    - Confirm the merchant resolves in the Signal Store
    - Compare the order total with the merchant's historical average
      completed-order value and flag outliers
"""

from __future__ import annotations

import logging

from agent_risk.config.settings import (
    AMOUNT_DEVIATION_HIGH,
    AMOUNT_DEVIATION_LOW,
    DEFAULT_MERCHANT_AVG_ORDER,
)
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import TransactionContext, TransactionSignals

logger = logging.getLogger(__name__)


def merchant_average_order(store: SignalStore, merchant_id: str) -> float:
    """Mean amount of the merchant's completed orders.

    Merchants without completed orders fall back to
    ``DEFAULT_MERCHANT_AVG_ORDER`` so a first order is still compared
    against something sensible.
    """
    completed = [
        float(t.get("amount") or 0.0)
        for t in store.get_transactions_by_merchant(merchant_id)
        if t.get("status") == "completed"
    ]
    if not completed:
        return DEFAULT_MERCHANT_AVG_ORDER
    return sum(completed) / len(completed)


def is_unusual_deviation(deviation: float) -> bool:
    return deviation > AMOUNT_DEVIATION_HIGH or deviation < AMOUNT_DEVIATION_LOW


def collect_transaction_signals(
    context: TransactionContext,
    store: SignalStore,
) -> TransactionSignals:
    """Build the transaction-pattern signal bag."""
    items = context.get("items") or []
    amount = float(context.get("totals", {}).get("total", 0) or 0)

    signals = TransactionSignals(
        degraded=False,
        amount=amount,
        has_items=len(items) > 0,
        item_count=len(items),
        merchant_exists=False,
        merchant_avg_order=None,
        is_unusual_amount=False,
        deviation_from_avg=1.0,
    )

    merchant_id = context.get("merchant_id", "")
    try:
        merchant = store.get_merchant(merchant_id)
        signals["merchant_exists"] = merchant is not None
        if merchant is None:
            return signals

        avg_order = merchant_average_order(store, merchant_id)
        signals["merchant_avg_order"] = round(avg_order, 2)
        if avg_order > 0:
            deviation = amount / avg_order
            signals["deviation_from_avg"] = round(deviation, 4)
            signals["is_unusual_amount"] = is_unusual_deviation(deviation)
    except Exception as exc:
        # Without the merchant lookup "unknown merchant" would be a guess.
        logger.warning(f"Could not analyse transaction pattern for merchant {merchant_id}: {exc}")
        signals["degraded"] = True
        signals["merchant_exists"] = False
        signals["is_unusual_amount"] = False

    return signals
