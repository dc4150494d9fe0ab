"""
Velocity Signal Collector
=========================

Counts how often this identity has transacted inside rolling windows ending
at the evaluation time:

    - transactions in the last hour and the last 24 hours
    - distinct merchants contacted in 24 hours
    - failed attempts in the last hour

The phone history drives every counter; without a phone the email history
does.  When both are present the email history can only raise the hourly
count (the larger of the two windows wins, they are never added).

One time-bounded query per identifier (since ``now - 24h``) is filtered in
memory against the window boundaries.  Counts are best-effort: concurrent
assessments for the same identity may or may not see each other.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import CustomerInfo, TransactionRecord, VelocitySignals

logger = logging.getLogger(__name__)

HOUR = timedelta(hours=1)
DAY = timedelta(hours=24)


def _last_hour(recent: list[TransactionRecord], one_hour_ago: datetime) -> list[TransactionRecord]:
    return [t for t in recent if t["created_at"] > one_hour_ago]


def collect_velocity_signals(
    customer: CustomerInfo,
    store: SignalStore,
    now: datetime,
) -> VelocitySignals:
    """Build the velocity signal bag."""
    signals = VelocitySignals(
        degraded=False,
        transactions_last_hour=0,
        transactions_last_24h=0,
        unique_merchants_24h=0,
        failed_attempts_1h=0,
    )

    one_hour_ago = now - HOUR
    one_day_ago = now - DAY
    phone = customer.get("phone")
    email = customer.get("email")

    try:
        by_phone = store.get_transactions_by_phone(phone, one_day_ago) if phone else None
        by_email = store.get_transactions_by_email(email, one_day_ago) if email else None
    except Exception as exc:
        logger.warning(f"Could not analyse velocity: {exc}")
        return signals

    primary = by_phone if by_phone is not None else by_email
    if primary is None:
        return signals

    last_hour = _last_hour(primary, one_hour_ago)
    signals["transactions_last_hour"] = len(last_hour)
    signals["transactions_last_24h"] = len(primary)
    signals["unique_merchants_24h"] = len({t.get("merchant_id") for t in primary})
    signals["failed_attempts_1h"] = sum(1 for t in last_hour if t.get("status") == "failed")

    if by_phone is not None and by_email is not None:
        signals["transactions_last_hour"] = max(
            signals["transactions_last_hour"], len(_last_hour(by_email, one_hour_ago))
        )
    return signals
