"""
Dashboard read surfaces.
========================

Aggregations over the audit trail, the lists and the agent counters for the
operator console.  Read-only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from agent_risk.agents.agent_reputation import counter_rates
from agent_risk.config.settings import (
    DEFAULT_LIST_LIMIT,
    DEFAULT_STATS_TIMEFRAME,
    RISK_THRESHOLD_BLOCK,
    STATS_TIMEFRAMES_HOURS,
)
from agent_risk.core.errors import AssessmentNotFound
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import AgentReputationCounter, ListEntry, RiskAssessment

logger = logging.getLogger(__name__)

RECENT_CHECKS_LIMIT = 20


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Fraud statistics
# ---------------------------------------------------------------------------

def timeframe_window(timeframe: str) -> tuple[str, timedelta]:
    """Resolve a timeframe label; unknown labels fall back to 24h."""
    if timeframe not in STATS_TIMEFRAMES_HOURS:
        logger.debug(f"Unknown timeframe {timeframe!r}, using {DEFAULT_STATS_TIMEFRAME}")
        timeframe = DEFAULT_STATS_TIMEFRAME
    return timeframe, timedelta(hours=STATS_TIMEFRAMES_HOURS[timeframe])


def get_fraud_stats(
    store: SignalStore,
    timeframe: str = DEFAULT_STATS_TIMEFRAME,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Decision counts and averages over the assessments in ``timeframe``."""
    label, window = timeframe_window(timeframe)
    since = (clock or _utcnow)() - window
    checks = store.get_assessments_since(since)

    total = len(checks)
    blocked = sum(1 for c in checks if c.get("is_fraud"))
    verify = sum(1 for c in checks if c.get("requires_verification"))
    approved = sum(
        1 for c in checks if not c.get("is_fraud") and not c.get("requires_verification")
    )
    high = sum(1 for c in checks if c.get("risk_level") == "HIGH")
    medium = sum(1 for c in checks if c.get("risk_level") == "MEDIUM")
    low = sum(1 for c in checks if c.get("risk_level") == "LOW")

    return {
        "timeframe": label,
        "total_checks": total,
        "blocked_count": blocked,
        "verification_required": verify,
        "approved_count": approved,
        "block_rate": round(blocked / total * 100, 2) if total else 0.0,
        "avg_risk_score": (
            round(sum(c["risk_score"] for c in checks) / total, 2) if total else 0.0
        ),
        "high_risk_count": high,
        "medium_risk_count": medium,
        "low_risk_count": low,
    }


# ---------------------------------------------------------------------------
# Assessments
# ---------------------------------------------------------------------------

def get_high_risk_pending(store: SignalStore) -> list[RiskAssessment]:
    """Unreviewed assessments at or above the block threshold, newest first."""
    return store.get_high_risk_pending(RISK_THRESHOLD_BLOCK)


def list_assessments(
    store: SignalStore,
    risk_level: str | None = None,
    reviewed: bool | None = None,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[RiskAssessment]:
    """Newest ``limit`` assessments, then filtered by level / review state."""
    checks = store.list_assessments(limit)
    if risk_level:
        checks = [c for c in checks if c.get("risk_level") == risk_level.upper()]
    if reviewed is not None:
        checks = [c for c in checks if bool(c.get("reviewed")) == reviewed]
    return checks


def get_assessment_details(store: SignalStore, assessment_id: str) -> dict[str, Any]:
    """The assessment plus the historical transaction it refers to, if any."""
    assessment = store.get_assessment(assessment_id)
    if assessment is None:
        raise AssessmentNotFound(assessment_id)

    transaction = store.get_transaction(assessment["transaction_id"])
    return {"assessment": assessment, "transaction": transaction}


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------

def get_blacklist(store: SignalStore) -> list[ListEntry]:
    return store.list_entries("blacklist")


def get_whitelist(store: SignalStore) -> list[ListEntry]:
    return store.list_entries("whitelist")


# ---------------------------------------------------------------------------
# Agent reputation
# ---------------------------------------------------------------------------

def reputation_score(counter: AgentReputationCounter) -> int:
    """0-100 platform score: 100 - 50*fraud - 30*chargeback + 20*success.

    Platforms with no transactions score 0.
    """
    if counter["total_transactions"] <= 0:
        return 0
    rates = counter_rates(counter)
    raw = (
        100
        - rates["fraud_rate"] * 50
        - rates["chargeback_rate"] * 30
        + rates["success_rate"] * 20
    )
    return int(max(0.0, min(100.0, _round_half_up(raw))))


def get_agent_reputation(store: SignalStore) -> list[dict[str, Any]]:
    """Every platform with at least one transaction, with derived rates."""
    platforms = []
    for counter in store.list_agent_counters():
        if counter["total_transactions"] <= 0:
            continue
        platforms.append({
            **counter,
            **counter_rates(counter),
            "reputation_score": reputation_score(counter),
        })
    return platforms


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------

def get_dashboard_overview(
    store: SignalStore,
    timeframe: str = DEFAULT_STATS_TIMEFRAME,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Everything the operator console's landing page shows."""
    pending = get_high_risk_pending(store)
    return {
        "timeframe": timeframe_window(timeframe)[0],
        "stats": get_fraud_stats(store, timeframe, clock=clock),
        "high_risk_pending": len(pending),
        "high_risk_transactions": pending,
        "recent_checks": store.list_assessments(RECENT_CHECKS_LIMIT),
        "blacklist_count": len(get_blacklist(store)),
        "whitelist_count": len(get_whitelist(store)),
        "agent_reputation": get_agent_reputation(store),
    }
