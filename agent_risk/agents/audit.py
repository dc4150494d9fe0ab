"""
Audit Logger
============

Pipeline position: **Node 5** (terminal node)

Responsibility:
    - Assemble the ``RiskAssessment`` audit record from the pipeline state
    - Persist it synchronously, exactly once per successful scoring run
    - Hand the record back to the caller even when persistence fails

An assessment that cannot be written is a compliance gap, so a failed write
is logged at ERROR level (the operational alert) and listed in
``processing_errors``, but it never blocks the verdict.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import Decision, RiskAssessment, TransactionContext

logger = logging.getLogger(__name__)


def new_assessment_id() -> str:
    return uuid.uuid4().hex


def build_assessment(
    context: TransactionContext,
    signals: dict,
    risk_score: int,
    decision: Decision,
    reasons: list[str],
    score_breakdown: dict[str, int],
    created_at: datetime,
) -> RiskAssessment:
    """Assemble an unreviewed audit record with a fresh id."""
    customer = context.get("customer", {})
    source = context.get("source", {})
    return RiskAssessment(
        id=new_assessment_id(),
        transaction_id=context.get("transaction_id", ""),
        customer_phone=customer.get("phone"),
        customer_email=customer.get("email"),
        merchant_id=context.get("merchant_id"),
        agent_platform=source.get("platform"),
        risk_score=risk_score,
        risk_level=decision["risk_level"],
        signals=signals,
        reasons=list(reasons),
        score_breakdown=dict(score_breakdown),
        is_fraud=decision["is_fraud"],
        requires_verification=decision["requires_verification"],
        reviewed=False,
        reviewed_by=None,
        reviewed_at=None,
        action_taken=None,
        created_at=created_at,
    )


def persist_assessment(store: SignalStore, assessment: RiskAssessment) -> str | None:
    """Write ``assessment``; return an error description on failure."""
    try:
        store.create_assessment(assessment)
    except Exception as exc:
        logger.error(
            f"AUDIT GAP: could not persist assessment {assessment['id']} "
            f"for transaction {assessment['transaction_id']}: {exc}"
        )
        return f"audit:{assessment['id']}: {exc}"
    return None


def make_audit_node(store: SignalStore):
    """Bind the store into the Audit Logger LangGraph node."""

    def audit_logger_agent(state: dict) -> dict:
        """
        LangGraph node: Audit Logger.

        Reads
        -----
        - ALL state fields

        Writes
        ------
        - assessment        : RiskAssessment
        - audit_persisted   : bool
        - processing_errors : list[str]  (appended on write failure)
        """
        context = state["context"]
        txn_id = context.get("transaction_id", "UNKNOWN")
        logger.info(f"=== Audit Logger: START  txn={txn_id} ===")

        assessment = build_assessment(
            context=context,
            signals=dict(state.get("signals", {})),
            risk_score=state["risk_score"],
            decision=state["decision"],
            reasons=state.get("reasons", []),
            score_breakdown=state.get("score_breakdown", {}),
            created_at=state["evaluated_at"],
        )
        error = persist_assessment(store, assessment)

        logger.info(
            f"=== Audit Logger: END  txn={txn_id}  assessment={assessment['id']}  "
            f"persisted={error is None} ==="
        )
        return {
            "assessment": assessment,
            "audit_persisted": error is None,
            "processing_errors": [error] if error else [],
        }

    return audit_logger_agent
