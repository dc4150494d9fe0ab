"""
Decision Classifier
===================

Pipeline position: **Node 4**

Maps the integer risk score onto a tier and an action:

    score <  50          -> LOW     approve
    50 <= score < 80     -> MEDIUM  verify (step-up)
    score >= 80          -> HIGH    block
"""

from __future__ import annotations

import logging

from agent_risk.config.settings import (
    MAX_RISK_SCORE,
    RISK_THRESHOLD_BLOCK,
    RISK_THRESHOLD_VERIFY,
)
from agent_risk.core.state import Decision

logger = logging.getLogger(__name__)


def classify_risk(score: int) -> Decision:
    """Classify ``score``.  Non-integers and values outside [0, 100] raise."""
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValueError(f"Risk score must be an integer, got {score!r}")
    if not 0 <= score <= MAX_RISK_SCORE:
        raise ValueError(f"Risk score {score} outside [0, {MAX_RISK_SCORE}]")

    if score >= RISK_THRESHOLD_BLOCK:
        return Decision(
            risk_level="HIGH",
            action="block",
            is_fraud=True,
            requires_verification=False,
            reason="High fraud risk - transaction blocked",
        )
    if score >= RISK_THRESHOLD_VERIFY:
        return Decision(
            risk_level="MEDIUM",
            action="verify",
            is_fraud=False,
            requires_verification=True,
            reason="Medium risk - additional verification required",
        )
    return Decision(
        risk_level="LOW",
        action="approve",
        is_fraud=False,
        requires_verification=False,
        reason="Low risk - transaction approved",
    )


def decision_classifier_agent(state: dict) -> dict:
    """
    LangGraph node: Decision Classifier.

    Reads
    -----
    - state["risk_score"]

    Writes
    ------
    - decision : Decision
    """
    txn_id = state["context"].get("transaction_id", "UNKNOWN")
    decision = classify_risk(state["risk_score"])

    if decision["action"] == "block":
        logger.warning(f"BLOCKING transaction {txn_id} (risk={state['risk_score']})")
    elif decision["action"] == "verify":
        logger.warning(f"VERIFY transaction {txn_id} (risk={state['risk_score']})")
    else:
        logger.info(f"APPROVING transaction {txn_id} (risk={state['risk_score']})")

    return {"decision": decision}
