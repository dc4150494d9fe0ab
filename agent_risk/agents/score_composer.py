"""
Score Composer
==============

Pipeline position: **Node 3**

Responsibility:
    - Apply the additive rule table to the collected signals
    - Produce the integer risk score (clamped to ``MAX_RISK_SCORE``), the
      ordered list of human-readable reasons and the per-rule breakdown

Scoring is a pure function of the signal snapshot:

    score = min(100, sum(points of every rule whose predicate holds))

Each rule maps to exactly one reason string, and ``SCORING_RULES`` is kept
in reason-priority order, so the reason list is deterministic and free of
duplicates.  A rule whose signal bag is ``degraded`` is never evaluated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from agent_risk.config.settings import (
    AGENT_CHARGEBACK_RATE_MAX,
    AGENT_FRAUD_RATE_MAX,
    FAILED_ATTEMPTS_MAX_HOUR,
    LOW_REPUTATION_THRESHOLD,
    MAX_RISK_SCORE,
    POINTS_AGENT_CHARGEBACK_RATE,
    POINTS_AGENT_FRAUD_RATE,
    POINTS_DISPOSABLE_EMAIL,
    POINTS_FAILED_ATTEMPTS,
    POINTS_INVALID_EMAIL,
    POINTS_INVALID_PHONE,
    POINTS_LATE_NIGHT,
    POINTS_LOW_PLATFORM_REPUTATION,
    POINTS_MERCHANT_HOPPING,
    POINTS_NEW_CUSTOMER,
    POINTS_PREVIOUS_FRAUD,
    POINTS_UNKNOWN_MERCHANT,
    POINTS_UNKNOWN_PLATFORM,
    POINTS_UNUSUAL_AMOUNT,
    POINTS_VELOCITY_DAY,
    POINTS_VELOCITY_HOUR,
    POINTS_VOIP_PHONE,
    POINTS_WEEKEND,
    UNIQUE_MERCHANTS_MAX_DAY,
    VELOCITY_MAX_DAY,
    VELOCITY_MAX_HOUR,
)
from agent_risk.core.state import Signals

logger = logging.getLogger(__name__)

NO_RISK_REASON = "No significant risk factors"


@dataclass(frozen=True)
class ScoringRule:
    """One additive rule: if ``applies(bag)`` then add ``points``."""
    rule_id: str
    category: str                          # signal bag the rule reads
    points: int
    applies: Callable[[dict], bool]
    reason: Callable[[dict], str]


def _fixed(text: str) -> Callable[[dict], str]:
    return lambda _bag: text


# ---------------------------------------------------------------------------
# Rule table -- in reason-priority order
# ---------------------------------------------------------------------------

SCORING_RULES: tuple[ScoringRule, ...] = (
    ScoringRule(
        "invalid_phone", "customer", POINTS_INVALID_PHONE,
        lambda c: not c.get("phone_valid", True),
        _fixed("Invalid phone number"),
    ),
    ScoringRule(
        "disposable_email", "customer", POINTS_DISPOSABLE_EMAIL,
        lambda c: c.get("is_disposable_email", False),
        _fixed("Disposable email detected"),
    ),
    ScoringRule(
        "voip_phone", "customer", POINTS_VOIP_PHONE,
        lambda c: c.get("phone_type") == "voip",
        _fixed("VoIP phone number"),
    ),
    ScoringRule(
        "velocity_hour", "velocity", POINTS_VELOCITY_HOUR,
        lambda v: v.get("transactions_last_hour", 0) > VELOCITY_MAX_HOUR,
        lambda v: f"High velocity: {v['transactions_last_hour']} transactions/hour",
    ),
    ScoringRule(
        "failed_attempts", "velocity", POINTS_FAILED_ATTEMPTS,
        lambda v: v.get("failed_attempts_1h", 0) > FAILED_ATTEMPTS_MAX_HOUR,
        lambda v: f"{v['failed_attempts_1h']} failed attempts in last hour",
    ),
    ScoringRule(
        "unknown_platform", "agent", POINTS_UNKNOWN_PLATFORM,
        lambda a: not a.get("is_known_platform", True),
        _fixed("Unknown agent platform"),
    ),
    ScoringRule(
        "agent_fraud_rate", "agent", POINTS_AGENT_FRAUD_RATE,
        lambda a: a.get("agent_fraud_rate", 0.0) > AGENT_FRAUD_RATE_MAX,
        lambda a: f"Agent fraud rate: {a['agent_fraud_rate'] * 100:.1f}%",
    ),
    ScoringRule(
        "unusual_amount", "transaction", POINTS_UNUSUAL_AMOUNT,
        lambda t: t.get("is_unusual_amount", False),
        lambda t: f"Unusual amount ({t['deviation_from_avg']:.1f}x average)",
    ),
    ScoringRule(
        "late_night", "temporal", POINTS_LATE_NIGHT,
        lambda t: t.get("is_late_night", False),
        _fixed("Late night transaction (1-5 AM)"),
    ),
    ScoringRule(
        "invalid_email", "customer", POINTS_INVALID_EMAIL,
        lambda c: c.get("has_email", False) and not c.get("email_valid", True),
        _fixed("Invalid email address"),
    ),
    ScoringRule(
        "new_customer", "customer", POINTS_NEW_CUSTOMER,
        lambda c: c.get("is_new_customer", False),
        _fixed("New customer"),
    ),
    ScoringRule(
        "previous_fraud", "customer", POINTS_PREVIOUS_FRAUD,
        lambda c: c.get("previous_fraud", 0) >= 1,
        lambda c: f"{c['previous_fraud']} prior fraud assessment(s)",
    ),
    ScoringRule(
        "unknown_merchant", "transaction", POINTS_UNKNOWN_MERCHANT,
        lambda t: not t.get("merchant_exists", True),
        _fixed("Unknown merchant"),
    ),
    ScoringRule(
        # Unknown platforms are already charged by ``unknown_platform``.
        "low_platform_reputation", "agent", POINTS_LOW_PLATFORM_REPUTATION,
        lambda a: a.get("is_known_platform", False)
        and a.get("platform_reputation", 100) < LOW_REPUTATION_THRESHOLD,
        lambda a: f"Low platform reputation ({a['platform_reputation']})",
    ),
    ScoringRule(
        "agent_chargeback_rate", "agent", POINTS_AGENT_CHARGEBACK_RATE,
        lambda a: a.get("agent_chargeback_rate", 0.0) > AGENT_CHARGEBACK_RATE_MAX,
        lambda a: f"Agent chargeback rate: {a['agent_chargeback_rate'] * 100:.1f}%",
    ),
    ScoringRule(
        "velocity_day", "velocity", POINTS_VELOCITY_DAY,
        lambda v: v.get("transactions_last_24h", 0) > VELOCITY_MAX_DAY,
        lambda v: f"High velocity: {v['transactions_last_24h']} transactions/24h",
    ),
    ScoringRule(
        "merchant_hopping", "velocity", POINTS_MERCHANT_HOPPING,
        lambda v: v.get("unique_merchants_24h", 0) > UNIQUE_MERCHANTS_MAX_DAY,
        lambda v: f"{v['unique_merchants_24h']} different merchants in 24h",
    ),
    ScoringRule(
        "weekend", "temporal", POINTS_WEEKEND,
        lambda t: t.get("is_weekend", False),
        _fixed("Weekend transaction"),
    ),
)


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def compose_score(
    signals: Signals,
    rules: tuple[ScoringRule, ...] = SCORING_RULES,
) -> tuple[int, list[str], dict[str, int]]:
    """Return ``(score, reasons, breakdown)`` for a signal snapshot.

    Missing or degraded bags contribute nothing.
    """
    total = 0
    reasons: list[str] = []
    breakdown: dict[str, int] = {}

    for rule in rules:
        bag = signals.get(rule.category)  # type: ignore[misc]
        if not bag or bag.get("degraded"):
            continue
        if rule.applies(bag):
            total += rule.points
            breakdown[rule.rule_id] = rule.points
            reasons.append(rule.reason(bag))

    if not reasons:
        reasons.append(NO_RISK_REASON)

    return min(MAX_RISK_SCORE, total), reasons, breakdown


def score_composer_agent(state: dict) -> dict:
    """
    LangGraph node: Score Composer.

    Reads
    -----
    - state["signals"]

    Writes
    ------
    - risk_score      : int
    - reasons         : list[str]
    - score_breakdown : dict[str, int]
    """
    txn_id = state["context"].get("transaction_id", "UNKNOWN")
    logger.info(f"=== Score Composer: START  txn={txn_id} ===")

    score, reasons, breakdown = compose_score(state.get("signals", {}))

    logger.info(
        f"=== Score Composer: END  txn={txn_id}  score={score}  "
        f"rules={sorted(breakdown)} ==="
    )
    return {"risk_score": score, "reasons": reasons, "score_breakdown": breakdown}
