#!/usr/bin/env python3
"""
AgentGuard - Batch Risk Assessment Script
=========================================

Scores agent-initiated transactions loaded from CSV or Parquet files and
prints a per-transaction summary, a batch table and the fraud statistics.

Usage:
    # Load from CSV (default: data/sample_agent_orders.csv)
    python run_pipeline.py

    # Load from a specific file
    python run_pipeline.py data/agent_orders.csv
    python run_pipeline.py data/agent_orders.parquet

    # Seeded in-memory store + hardcoded contexts (for quick testing)
    python run_pipeline.py --demo

    # Score against the Neo4j Signal Store (NEO4J_* env vars)
    python run_pipeline.py data/agent_orders.csv --store neo4j
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

from agent_risk.agents.reputation_updater import record_outcome
from agent_risk.config.settings import LOG_LEVEL
from agent_risk.core.admin import add_to_blacklist
from agent_risk.core.dashboard import get_agent_reputation, get_fraud_stats
from agent_risk.core.engine import RiskEngine
from agent_risk.core.errors import InvalidTransactionContext
from agent_risk.core.loader import load_transactions
from agent_risk.core.signal_store import InMemorySignalStore, SignalStore
from agent_risk.core.state import RiskAssessment, TransactionContext

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("AgentGuard")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------

DEFAULT_CSV_PATH = Path(__file__).parent / "data" / "sample_agent_orders.csv"


# ---------------------------------------------------------------------------
# Hardcoded demo data (kept as a --demo fallback for quick testing)
# ---------------------------------------------------------------------------

def _seed_demo_store(store: InMemorySignalStore) -> None:
    """Merchants, order history, one blacklisted phone and agent outcomes."""
    now = datetime.now(timezone.utc)
    store.add_merchant({"id": "MERCH-PIZZA-01", "name": "Tony's Pizza"})
    store.add_merchant({"id": "MERCH-FLORIST-02", "name": "Bloom & Co"})

    for day in range(1, 6):
        store.record_transaction({
            "id": f"HIST-PIZZA-{day}",
            "merchant_id": "MERCH-PIZZA-01",
            "customer_phone": "+14155550123",
            "customer_email": "dana@example.com",
            "amount": 32.0 + day,
            "status": "completed",
            "created_at": now - timedelta(days=day),
        })

    # Burst of attempts from one phone in the last hour
    for n in range(4):
        store.record_transaction({
            "id": f"BURST-{n}",
            "merchant_id": "MERCH-FLORIST-02",
            "customer_phone": "4155550999",
            "amount": 60.0,
            "status": "failed" if n % 2 else "pending",
            "created_at": now - timedelta(minutes=10 * (n + 1)),
        })

    add_to_blacklist(store, "phone", "+12125550100", reason="prior chargeback")

    for outcome in ("completed", "completed", "completed", "fraud"):
        record_outcome(store, "retell", outcome)


def _get_demo_contexts() -> list[TransactionContext]:
    """Return 4 hardcoded contexts covering the risk spectrum."""
    return [
        TransactionContext(
            transaction_id="AGT-001-RETURNING",
            merchant_id="MERCH-PIZZA-01",
            customer={"name": "Dana", "phone": "+14155550123", "email": "dana@example.com"},
            items=[{"product_id": "pizza-margherita", "quantity": 1}],
            totals={"subtotal": Decimal("30.00"), "tax": Decimal("2.70"),
                    "shipping": Decimal("3.00"), "total": Decimal("35.70")},
            payment={"method": "link", "currency": "USD"},
            source={"protocol": "voice", "platform": "retell", "input_type": "voice"},
        ),
        TransactionContext(
            transaction_id="AGT-002-SHADYBOT",
            merchant_id="MERCH-PIZZA-01",
            customer={"name": "X", "phone": "+14155550177", "email": "x@mailinator.com"},
            items=[{"product_id": "pizza-pepperoni", "quantity": 2}],
            totals={"total": Decimal("48.00")},
            payment={"method": "card", "currency": "USD"},
            source={"protocol": "acp", "platform": "shadybot", "input_type": "text"},
        ),
        TransactionContext(
            transaction_id="AGT-003-BLACKLISTED",
            merchant_id="MERCH-FLORIST-02",
            customer={"name": "Sam", "phone": "+12125550100", "email": "sam@example.com"},
            items=[{"product_id": "roses-dozen", "quantity": 1}],
            totals={"total": Decimal("89.00")},
            payment={"method": "stripe", "currency": "USD"},
            source={"protocol": "voice", "platform": "vapi", "input_type": "voice"},
        ),
        TransactionContext(
            transaction_id="AGT-004-VELOCITY",
            merchant_id="MERCH-FLORIST-02",
            customer={"name": "Lee", "phone": "4155550999"},
            items=[{"product_id": "tulips", "quantity": 3}],
            totals={"total": Decimal("60.00")},
            payment={"method": "link", "currency": "USD"},
            source={"protocol": "voice", "platform": "retell", "input_type": "voice"},
        ),
    ]


# ---------------------------------------------------------------------------
# Pretty-print helpers
# ---------------------------------------------------------------------------

def _print_separator(char: str = "=", width: int = 80) -> None:
    print(f"\n{char * width}")


def _print_result_summary(assessment: RiskAssessment) -> None:
    """Print a concise summary of one assessment."""
    _print_separator()
    print(f"RESULT SUMMARY: {assessment['transaction_id']}")
    _print_separator("-")

    print(f"  Assessment:  {assessment['id']}")
    print(f"  Risk Score:  {assessment['risk_score']}/100")
    print(f"  Risk Level:  {assessment['risk_level']}")

    breakdown = assessment.get("score_breakdown", {})
    if breakdown:
        print("  Breakdown:   " + "  ".join(f"{k}=+{v}" for k, v in breakdown.items()))

    print(f"  Reasons:     {len(assessment.get('reasons', []))}")
    for reason in assessment.get("reasons", []):
        print(f"    - {reason}")

    if assessment.get("error"):
        print(f"  Error:       {assessment['error']}")

    _print_separator()


def _print_stats(store: SignalStore) -> None:
    stats = get_fraud_stats(store, "24h")
    _print_separator("*", 80)
    print("  FRAUD STATISTICS (24h)")
    _print_separator("*", 80)
    for key, value in stats.items():
        print(f"  {key:<24} {value}")

    agents = get_agent_reputation(store)
    if agents:
        print(f"\n  {'Platform':<16} {'Txns':>6} {'Fraud%':>8} {'Reputation':>12}")
        print(f"  {'-'*16} {'-'*6} {'-'*8} {'-'*12}")
        for agent in agents:
            print(f"  {agent['platform']:<16} {agent['total_transactions']:>6} "
                  f"{agent['fraud_rate'] * 100:>7.1f}% {agent['reputation_score']:>12}")


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------

def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="AgentGuard - Risk Scoring for Agent-Initiated Commerce",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python run_pipeline.py                              # load default CSV\n"
            "  python run_pipeline.py data/agent_orders.csv        # load specific CSV\n"
            "  python run_pipeline.py data/agent_orders.parquet    # load Parquet\n"
            "  python run_pipeline.py --demo                       # seeded demo data\n"
        ),
    )
    parser.add_argument(
        "file",
        nargs="?",
        default=None,
        help="Path to a CSV or Parquet transaction file.  "
             f"Defaults to {DEFAULT_CSV_PATH}",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Use a seeded in-memory store and hardcoded contexts",
    )
    parser.add_argument(
        "--format",
        choices=["csv", "parquet", "pq"],
        default=None,
        help="Explicit file format (auto-detected from extension by default)",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "neo4j"],
        default="memory",
        help="Signal Store backend (ignored with --demo)",
    )
    return parser.parse_args()


def _open_store(kind: str) -> SignalStore:
    if kind == "neo4j":
        from agent_risk.core.neo4j_client import get_neo4j_client
        from agent_risk.core.neo4j_store import Neo4jSignalStore

        client = get_neo4j_client()
        if not client.verify_connectivity():
            logger.error("Neo4j Signal Store unreachable.  Exiting.")
            sys.exit(1)
        store = Neo4jSignalStore(client)
        store.ensure_schema()
        return store
    return InMemorySignalStore()


# ---------------------------------------------------------------------------
# Main execution
# ---------------------------------------------------------------------------

def main() -> None:
    args = _parse_args()

    # ── Load contexts ─────────────────────────────────────────────────
    if args.demo:
        logger.info("Using seeded demo store and hardcoded contexts (--demo mode)")
        demo_store = InMemorySignalStore()
        _seed_demo_store(demo_store)
        store: SignalStore = demo_store
        contexts = _get_demo_contexts()
        source_label = "demo (hardcoded)"
    else:
        file_path = Path(args.file) if args.file else DEFAULT_CSV_PATH
        logger.info(f"Loading transactions from: {file_path}")
        contexts = load_transactions(file_path, fmt=args.format)
        store = _open_store(args.store)
        source_label = str(file_path)

    if not contexts:
        logger.error("No valid transactions to process.  Exiting.")
        sys.exit(1)

    engine = RiskEngine(store)
    logger.info(f"Engine ready.  Assessing {len(contexts)} transactions from [{source_label}].\n")

    # ── Assess each transaction ───────────────────────────────────────
    results: list[tuple[TransactionContext, RiskAssessment]] = []
    rejected: list[tuple[str, str]] = []

    for i, context in enumerate(contexts, start=1):
        txn_id = context.get("transaction_id", f"TXN-{i}")
        _print_separator("#")
        print(f"  ASSESSING TRANSACTION {i}/{len(contexts)}: {txn_id}")
        print(f"  Total: {context.get('totals', {}).get('total', '?')} | "
              f"Platform: {context.get('source', {}).get('platform', '?')} | "
              f"Merchant: {context.get('merchant_id', '?')}")
        _print_separator("#")

        try:
            assessment = engine.assess(context)
        except InvalidTransactionContext as exc:
            logger.error(f"Rejected transaction {txn_id}: {exc}")
            rejected.append((txn_id, "; ".join(exc.problems)))
            continue

        results.append((context, assessment))
        _print_result_summary(assessment)

    # ── Batch summary table ───────────────────────────────────────────
    _print_separator("*", 80)
    print(f"  BATCH SUMMARY  (source: {source_label})")
    _print_separator("*", 80)
    print(f"  {'Transaction':<30} {'Total':>12} {'Risk':>6} {'Level':>8}")
    print(f"  {'-'*30} {'-'*12} {'-'*6} {'-'*8}")
    for context, assessment in results:
        total = Decimal(str(context.get("totals", {}).get("total", 0)))
        print(f"  {assessment['transaction_id']:<30} "
              f"{total:>12,.2f} "
              f"{assessment['risk_score']:>6} "
              f"{assessment['risk_level']:>8}")

    if rejected:
        _print_separator("!", 80)
        print(f"  REJECTED: {len(rejected)}/{len(contexts)} transactions failed validation")
        _print_separator("!", 80)
        for txn_id, problems in rejected:
            print(f"  {txn_id}: {problems}")

    _print_stats(store)
    _print_separator("*", 80)

    if args.store == "neo4j" and not args.demo:
        from agent_risk.core.neo4j_client import close_neo4j_client

        close_neo4j_client()

    logger.info("Batch assessment complete.")


if __name__ == "__main__":
    main()
