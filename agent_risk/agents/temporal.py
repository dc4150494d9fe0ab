"""
Temporal / Payment-Method Signal Collector
==========================================

Derived purely from the transaction context and the evaluation clock; no
storage access.
"""

from __future__ import annotations

from datetime import datetime

from agent_risk.config.settings import (
    BUSINESS_HOURS_END,
    BUSINESS_HOURS_START,
    LATE_NIGHT_END_HOUR,
    LATE_NIGHT_START_HOUR,
)
from agent_risk.core.state import PaymentInfo, PaymentSignals, TemporalSignals


def collect_temporal_signals(now: datetime) -> TemporalSignals:
    """Hour-of-day and day-of-week flags for ``now`` (local wall clock)."""
    hour = now.hour
    weekday = now.weekday()
    return TemporalSignals(
        degraded=False,
        hour=hour,
        is_late_night=LATE_NIGHT_START_HOUR <= hour <= LATE_NIGHT_END_HOUR,
        is_business_hours=BUSINESS_HOURS_START <= hour <= BUSINESS_HOURS_END,
        day_of_week=weekday,
        is_weekend=weekday >= 5,
    )


def collect_payment_signals(payment: PaymentInfo) -> PaymentSignals:
    method = payment.get("method")
    return PaymentSignals(
        degraded=False,
        method=method,
        is_link=method == "link",
        is_direct=method == "stripe",
        currency=payment.get("currency"),
        save_for_future=bool(payment.get("save_for_future", False)),
    )
