"""
Risk Engine
===========

The single scoring entry point.  ``RiskEngine.assess`` owns the boundary
behaviour around the compiled pipeline graph:

    1. Validate the transaction context (caller contract violations raise
       ``InvalidTransactionContext`` before any scoring happens).
    2. Run the graph: List Guard -> collectors -> composer -> classifier
       -> audit.
    3. Fail open: any unexpected error inside the pipeline becomes a
       ``PartialFailure`` which is collapsed into a LOW, non-blocking
       assessment.  Availability of the transaction wins over a false
       rejection.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from datetime import datetime
from decimal import Decimal, InvalidOperation

from agent_risk.agents.audit import new_assessment_id
from agent_risk.agents.customer import PhoneClassifier, PrefixPhoneClassifier
from agent_risk.config.settings import COLLECTOR_TIMEOUT_SECONDS, PLATFORM_REPUTATION
from agent_risk.core.errors import InvalidTransactionContext
from agent_risk.core.graph import (
    NODE_AUDIT,
    NODE_BLOCK_VERDICT,
    NODE_COLLECT,
    NODE_DECISION,
    NODE_LIST_GUARD,
    NODE_SCORE,
    compile_risk_assessment_graph,
)
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import (
    AssessmentState,
    PartialFailure,
    RiskAssessment,
    TransactionContext,
)

logger = logging.getLogger(__name__)

FAIL_OPEN_REASON = "Risk check failed - proceeding with caution"

# Stage that runs after each completed node (List Guard branches).
_NEXT_STAGE: dict[str, str] = {
    NODE_COLLECT: NODE_SCORE,
    NODE_SCORE: NODE_DECISION,
    NODE_BLOCK_VERDICT: NODE_DECISION,
    NODE_DECISION: NODE_AUDIT,
}


def _local_now() -> datetime:
    return datetime.now().astimezone()


# ---------------------------------------------------------------------------
# Context validation
# ---------------------------------------------------------------------------

def _as_amount(value) -> Decimal | None:
    """Coerce a numeric total to ``Decimal``; ``None`` if not a finite number."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def validate_context(context: TransactionContext) -> None:
    """Raise ``InvalidTransactionContext`` listing every contract violation."""
    problems: list[str] = []

    if not context.get("transaction_id"):
        problems.append("missing transaction_id")
    if not context.get("merchant_id"):
        problems.append("missing merchant_id")

    customer = context.get("customer") or {}
    if not customer.get("phone") and not customer.get("email"):
        problems.append("customer needs a phone or an email")

    totals = context.get("totals") or {}
    if "total" not in totals or totals["total"] is None:
        problems.append("missing totals.total")
    else:
        amount = _as_amount(totals["total"])
        if amount is None:
            problems.append(f"totals.total is not numeric: {totals['total']!r}")
        elif amount < 0:
            problems.append(f"totals.total is negative: {amount}")

    if problems:
        raise InvalidTransactionContext(context.get("transaction_id"), problems)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class RiskEngine:
    """Scores agent-initiated transactions against a ``SignalStore``."""

    def __init__(
        self,
        store: SignalStore,
        platform_reputation: Mapping[str, int] | None = None,
        phone_classifier: PhoneClassifier | None = None,
        collector_timeout: float = COLLECTOR_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.platform_reputation = {
            name.lower(): score
            for name, score in (
                PLATFORM_REPUTATION if platform_reputation is None else platform_reputation
            ).items()
        }
        self.phone_classifier = phone_classifier or PrefixPhoneClassifier()
        self.collector_timeout = collector_timeout
        self.clock = clock or _local_now
        self._graph = compile_risk_assessment_graph(
            store, self.phone_classifier, self.platform_reputation, collector_timeout
        )

    # -- public API ---------------------------------------------------------

    def assess(self, context: TransactionContext) -> RiskAssessment:
        """Score one transaction attempt and return its audit record.

        Raises ``InvalidTransactionContext`` for malformed input; every other
        failure fails open.
        """
        validate_context(context)
        now = self.clock()
        txn_id = context["transaction_id"]

        logger.info(f"Assessing transaction {txn_id}")
        result = self._run_pipeline(context, now)

        if isinstance(result, PartialFailure):
            return self._fail_open(context, result, now)

        logger.info(
            f"Transaction {txn_id}: score={result['risk_score']} "
            f"level={result['risk_level']}"
        )
        return result

    def simulate(
        self,
        phone: str | None = None,
        email: str | None = None,
        name: str | None = None,
        amount: Decimal | int | float | None = None,
        platform: str | None = None,
        merchant_id: str | None = None,
    ) -> RiskAssessment:
        """Assess a synthetic transaction (operator what-if tool).

        Missing arguments fall back to the same test values the dashboard's
        simulator uses.  The resulting assessment is persisted like any
        other.
        """
        total = Decimal(str(amount)) if amount is not None else Decimal("100")
        context = TransactionContext(
            transaction_id=f"sim_{int(time.time() * 1000)}",
            merchant_id=merchant_id or "test_merchant",
            customer={
                "name": name or "Test User",
                "phone": phone or "+15555555555",
                "email": email or "test@example.com",
            },
            items=[{"product_id": "test_product", "quantity": 1}],
            totals={"total": total},
            payment={"method": "link", "currency": "USD"},
            source={
                "protocol": "voice",
                "platform": platform or "unknown",
                "input_type": "voice",
            },
        )
        return self.assess(context)

    # -- internals ----------------------------------------------------------

    def _run_pipeline(
        self, context: TransactionContext, now: datetime
    ) -> RiskAssessment | PartialFailure:
        initial: AssessmentState = {
            "context": context,
            "evaluated_at": now,
            "signals": {},
            "processing_errors": [],
        }
        stage = NODE_LIST_GUARD
        assessment: RiskAssessment | None = None
        errors: list[str] = []

        try:
            for update in self._graph.stream(initial, stream_mode="updates"):
                for node, delta in update.items():
                    delta = delta or {}
                    errors.extend(delta.get("processing_errors", []))
                    if node == NODE_LIST_GUARD:
                        stage = NODE_BLOCK_VERDICT if delta.get("is_blacklisted") else NODE_COLLECT
                    elif node == NODE_AUDIT:
                        assessment = delta["assessment"]
                    else:
                        stage = _NEXT_STAGE.get(node, stage)
        except Exception as exc:
            logger.exception(f"Pipeline failed at stage '{stage}' for {context['transaction_id']}")
            return PartialFailure(stage=stage, error=f"{type(exc).__name__}: {exc}")

        if errors:
            logger.warning(
                f"Transaction {context['transaction_id']} scored with "
                f"{len(errors)} degraded step(s): {errors}"
            )
        if assessment is None:
            return PartialFailure(stage=NODE_AUDIT, error="pipeline produced no assessment")
        return assessment

    def _fail_open(
        self, context: TransactionContext, failure: PartialFailure, now: datetime
    ) -> RiskAssessment:
        """Collapse a ``PartialFailure`` into a LOW, non-blocking verdict.

        The record is returned to the caller but not persisted.
        """
        logger.error(
            f"FAIL-OPEN: transaction {context['transaction_id']} approved without "
            f"a complete risk check ({failure.stage}: {failure.error})"
        )
        customer = context.get("customer", {})
        return RiskAssessment(
            id=new_assessment_id(),
            transaction_id=context["transaction_id"],
            customer_phone=customer.get("phone"),
            customer_email=customer.get("email"),
            merchant_id=context.get("merchant_id"),
            agent_platform=context.get("source", {}).get("platform"),
            risk_score=0,
            risk_level="LOW",
            signals={},
            reasons=[FAIL_OPEN_REASON],
            score_breakdown={},
            is_fraud=False,
            requires_verification=False,
            reviewed=False,
            reviewed_by=None,
            reviewed_at=None,
            action_taken=None,
            created_at=now,
            error=f"{failure.stage}: {failure.error}",
        )
