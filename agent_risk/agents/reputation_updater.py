"""
Reputation Updater
==================

Runs out of band, driven by outcome events from the payment layer
(completion, failure, confirmed fraud, chargeback).  Only ever increments
the per-platform counters; rates are derived at read time by the
Agent-Reputation collector and the dashboard.

Atomicity is delegated to the store: a lock in the in-memory store, a
single ``MERGE ... SET x = x + $d`` statement in Neo4j.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from agent_risk.agents.agent_reputation import normalise_platform
from agent_risk.core.signal_store import COUNTER_FIELDS, SignalStore
from agent_risk.core.state import AgentReputationCounter, ReputationDelta

logger = logging.getLogger(__name__)

OUTCOME_DELTAS: dict[str, ReputationDelta] = {
    "completed": ReputationDelta(total_transactions=1, success_count=1),
    "failed": ReputationDelta(total_transactions=1),
    "fraud": ReputationDelta(fraud_count=1),
    "chargeback": ReputationDelta(chargeback_count=1),
}


def _validate_delta(delta: ReputationDelta) -> None:
    unknown = set(delta) - set(COUNTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown reputation counter(s): {sorted(unknown)}")
    for field, value in delta.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(
                f"Reputation delta '{field}' must be a non-negative int, got {value!r}"
            )


def update_agent_reputation(
    store: SignalStore,
    platform: str,
    delta: ReputationDelta,
    clock: Callable[[], datetime] | None = None,
) -> AgentReputationCounter:
    """Atomically add ``delta`` to the platform's counters.

    The counter row is created on first use; ``last_updated`` is refreshed
    on every call.
    """
    _validate_delta(delta)
    key = normalise_platform(platform)
    now = (clock or (lambda: datetime.now(timezone.utc)))()

    counter = store.increment_agent_counters(key, delta, now)
    logger.info(
        f"Agent reputation '{key}' += {dict(delta)} -> "
        f"total={counter['total_transactions']} fraud={counter['fraud_count']} "
        f"chargeback={counter['chargeback_count']} success={counter['success_count']}"
    )
    return counter


def record_outcome(
    store: SignalStore,
    platform: str,
    outcome: str,
    clock: Callable[[], datetime] | None = None,
) -> AgentReputationCounter:
    """Translate an outcome event into a counter increment."""
    try:
        delta = OUTCOME_DELTAS[outcome]
    except KeyError:
        raise ValueError(
            f"Unknown outcome '{outcome}' (expected one of {sorted(OUTCOME_DELTAS)})"
        ) from None
    return update_agent_reputation(store, platform, delta, clock=clock)
