"""
Concurrent Signal Collection
============================

Pipeline position: **Node 2** (skipped for blacklisted identities)

Runs the five signal collectors concurrently on a thread pool under a
single per-assessment deadline.  A collector that raises or misses the
deadline contributes its default bag marked ``degraded=True`` and a line in
``processing_errors``; the Score Composer ignores degraded bags, so a
failed signal source can never raise the score.

Stuck collectors are abandoned, not joined: the pool is shut down without
waiting so a hung backend call cannot hold up the assessment.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable, Mapping
from datetime import datetime

from agent_risk.agents.agent_reputation import collect_agent_signals
from agent_risk.agents.customer import (
    PhoneClassifier,
    collect_customer_signals,
    default_customer_signals,
)
from agent_risk.agents.temporal import collect_payment_signals, collect_temporal_signals
from agent_risk.agents.transaction_pattern import collect_transaction_signals
from agent_risk.agents.velocity import collect_velocity_signals
from agent_risk.config.settings import COLLECTOR_MAX_WORKERS
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import Signals, TransactionContext

logger = logging.getLogger(__name__)

# A collector task returns a mapping of signal-bag name -> bag.
CollectorTask = Callable[[], dict]


def default_signals(context: TransactionContext) -> dict[str, dict]:
    """Degraded placeholder bag for every collector output."""
    customer = default_customer_signals(context.get("customer", {}))
    customer["degraded"] = True
    return {
        "customer": customer,
        "transaction": {"degraded": True},
        "agent": {"degraded": True},
        "velocity": {"degraded": True},
        "temporal": {"degraded": True},
        "payment": {"degraded": True},
    }


def build_collector_tasks(
    context: TransactionContext,
    store: SignalStore,
    now: datetime,
    phone_classifier: PhoneClassifier,
    platform_reputation: Mapping[str, int],
) -> dict[str, tuple[tuple[str, ...], CollectorTask]]:
    """Collector name -> (bags it produces, zero-argument task)."""
    customer = context.get("customer", {})
    return {
        "customer": (
            ("customer",),
            lambda: {"customer": collect_customer_signals(customer, store, phone_classifier)},
        ),
        "transaction_pattern": (
            ("transaction",),
            lambda: {"transaction": collect_transaction_signals(context, store)},
        ),
        "agent_reputation": (
            ("agent",),
            lambda: {
                "agent": collect_agent_signals(
                    context.get("source", {}), store, platform_reputation
                )
            },
        ),
        "velocity": (
            ("velocity",),
            lambda: {"velocity": collect_velocity_signals(customer, store, now)},
        ),
        "temporal": (
            ("temporal", "payment"),
            lambda: {
                "temporal": collect_temporal_signals(now),
                "payment": collect_payment_signals(context.get("payment", {})),
            },
        ),
    }


def run_collectors(
    tasks: Mapping[str, tuple[tuple[str, ...], CollectorTask]],
    defaults: Mapping[str, dict],
    timeout: float,
    max_workers: int = COLLECTOR_MAX_WORKERS,
) -> tuple[dict[str, dict], list[str]]:
    """Execute ``tasks`` concurrently and wait at most ``timeout`` seconds.

    Returns the merged signal bags and the list of failures.
    """
    collected: dict[str, dict] = {}
    errors: list[str] = []

    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="signal-collector"
    )
    try:
        future_to_name = {executor.submit(task): name for name, (_, task) in tasks.items()}
        done, not_done = concurrent.futures.wait(future_to_name, timeout=timeout)

        for future in done:
            name = future_to_name[future]
            try:
                collected.update(future.result())
            except Exception as exc:
                logger.warning(f"Collector '{name}' failed: {exc}")
                errors.append(f"collector:{name}: {exc}")

        for future in not_done:
            name = future_to_name[future]
            future.cancel()
            logger.warning(f"Collector '{name}' missed the {timeout}s deadline")
            errors.append(f"collector:{name}: timed out after {timeout}s")
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    for bags, _ in tasks.values():
        for bag in bags:
            if bag not in collected:
                collected[bag] = dict(defaults[bag])

    return collected, errors


# ---------------------------------------------------------------------------
# LangGraph node factory
# ---------------------------------------------------------------------------

def make_signal_collection_node(
    store: SignalStore,
    phone_classifier: PhoneClassifier,
    platform_reputation: Mapping[str, int],
    timeout: float,
):
    """Bind the collectors' dependencies into a LangGraph node."""

    def signal_collection_agent(state: dict) -> dict:
        """
        LangGraph node: Signal Collection.

        Reads
        -----
        - state["context"]
        - state["evaluated_at"]
        - state["signals"]  (list-guard results, carried forward)

        Writes
        ------
        - signals           : Signals
        - processing_errors : list[str]  (appended)
        """
        context = state["context"]
        txn_id = context.get("transaction_id", "UNKNOWN")
        logger.info(f"=== Signal Collection: START  txn={txn_id} ===")

        tasks = build_collector_tasks(
            context, store, state["evaluated_at"], phone_classifier, platform_reputation
        )
        collected, errors = run_collectors(tasks, default_signals(context), timeout)

        degraded = sorted(name for name, bag in collected.items() if bag.get("degraded"))
        if degraded:
            logger.warning(f"Degraded signals for {txn_id}: {degraded}")

        logger.info(f"=== Signal Collection: END  txn={txn_id} ===")
        signals: Signals = {**state.get("signals", {}), **collected}  # type: ignore[typeddict-item]
        return {"signals": signals, "processing_errors": errors}

    return signal_collection_agent
