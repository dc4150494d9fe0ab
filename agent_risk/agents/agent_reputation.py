"""
Agent-Reputation Signal Collector
=================================

Scores the AI platform that initiated the transaction, not just the
customer.  Two inputs:

    - a static base reputation per platform, injected as a mapping so
      operators can add platforms without a release
    - live outcome counters from the Signal Store, turned into fraud /
      chargeback / success rates at read time
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from agent_risk.config.settings import UNKNOWN_PLATFORM, UNKNOWN_PLATFORM_REPUTATION
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import AgentReputationCounter, AgentSignals, SourceInfo

logger = logging.getLogger(__name__)


def normalise_platform(platform: str | None) -> str:
    return (platform or UNKNOWN_PLATFORM).strip().lower() or UNKNOWN_PLATFORM


def counter_rates(counter: AgentReputationCounter | None) -> dict[str, float]:
    """Derive fraud / chargeback / success rates (0 when there is no history)."""
    total = counter["total_transactions"] if counter else 0
    if not counter or total <= 0:
        return {"fraud_rate": 0.0, "chargeback_rate": 0.0, "success_rate": 0.0}
    return {
        "fraud_rate": counter["fraud_count"] / total,
        "chargeback_rate": counter["chargeback_count"] / total,
        "success_rate": counter["success_count"] / total,
    }


def collect_agent_signals(
    source: SourceInfo,
    store: SignalStore,
    platform_reputation: Mapping[str, int],
) -> AgentSignals:
    """Build the agent-reputation signal bag."""
    platform = normalise_platform(source.get("platform"))
    is_known = platform != UNKNOWN_PLATFORM and platform in platform_reputation

    signals = AgentSignals(
        degraded=False,
        protocol=source.get("protocol"),
        platform=source.get("platform"),
        input_type=source.get("input_type"),
        is_known_platform=is_known,
        platform_reputation=(
            platform_reputation[platform] if is_known else UNKNOWN_PLATFORM_REPUTATION
        ),
        agent_transaction_count=0,
        agent_fraud_rate=0.0,
        agent_chargeback_rate=0.0,
        agent_success_rate=0.0,
    )

    try:
        counter = store.get_agent_counters(platform)
    except Exception as exc:
        logger.warning(f"Could not fetch agent stats for platform '{platform}': {exc}")
        return signals

    rates = counter_rates(counter)
    signals["agent_transaction_count"] = counter["total_transactions"] if counter else 0
    signals["agent_fraud_rate"] = rates["fraud_rate"]
    signals["agent_chargeback_rate"] = rates["chargeback_rate"]
    signals["agent_success_rate"] = rates["success_rate"]
    return signals
