"""
Data model for the AgentGuard risk engine.
==========================================

Every record that crosses a component boundary is declared here as a
``TypedDict``.  ``AssessmentState`` is the dict LangGraph passes from node to
node during a single assessment; the other schemas are either caller input
(``TransactionContext``), signal bags produced by collectors, or rows kept in
the Signal Store.

Architecture note:
    ``processing_errors`` uses the ``Annotated[list, operator.add]`` reducer
    so every node *appends* failures rather than overwriting them, giving a
    complete record of what degraded during the run.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, TypedDict

RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
ListName = Literal["blacklist", "whitelist"]
IdentifierType = Literal["phone", "email"]


# ---------------------------------------------------------------------------
# Caller input -- normalised from voice / ACP / AP2 upstream
# ---------------------------------------------------------------------------

class CustomerInfo(TypedDict, total=False):
    name: str
    phone: str                     # E.164 candidate
    email: str


class LineItem(TypedDict):
    product_id: str
    quantity: int


class Totals(TypedDict, total=False):
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class PaymentInfo(TypedDict, total=False):
    method: str                    # "link" | "stripe" | "stablecoin" | "card"
    currency: str
    save_for_future: bool


class SourceInfo(TypedDict, total=False):
    protocol: str                  # e.g. "voice", "acp", "ap2"
    platform: str                  # agent platform, e.g. "retell"
    input_type: str                # e.g. "voice", "text"


class TransactionContext(TypedDict, total=False):
    """One transaction attempt.  Never mutated by the engine."""

    transaction_id: str
    merchant_id: str
    customer: CustomerInfo
    items: list[LineItem]
    totals: Totals
    payment: PaymentInfo
    source: SourceInfo


# ---------------------------------------------------------------------------
# Signal Store records
# ---------------------------------------------------------------------------

class TransactionRecord(TypedDict, total=False):
    """Historical order as recorded by the payment layer."""
    id: str
    merchant_id: str
    customer_phone: str
    customer_email: str
    amount: float
    status: str                    # "pending" | "completed" | "failed" | ...
    created_at: datetime


class MerchantRecord(TypedDict, total=False):
    id: str
    name: str


class ListEntry(TypedDict, total=False):
    list_name: ListName
    type: IdentifierType
    value: str
    reason: str | None             # blacklist only
    added_by: str
    created_at: datetime


class AgentReputationCounter(TypedDict):
    platform: str
    total_transactions: int
    fraud_count: int
    chargeback_count: int
    success_count: int
    last_updated: datetime


class ReputationDelta(TypedDict, total=False):
    total_transactions: int
    fraud_count: int
    chargeback_count: int
    success_count: int


class RiskAssessment(TypedDict, total=False):
    """Audit record.  Only the review fields change after creation."""
    id: str
    transaction_id: str
    customer_phone: str | None
    customer_email: str | None
    merchant_id: str | None
    agent_platform: str | None
    risk_score: int
    risk_level: RiskLevel
    signals: dict[str, Any]
    reasons: list[str]
    score_breakdown: dict[str, int]
    is_fraud: bool
    requires_verification: bool
    reviewed: bool
    reviewed_by: str | None
    reviewed_at: datetime | None
    action_taken: str | None
    created_at: datetime
    error: str                     # only set on a fail-open assessment


# ---------------------------------------------------------------------------
# Signal bags -- one per collector
# ---------------------------------------------------------------------------

class CustomerSignals(TypedDict, total=False):
    degraded: bool
    has_phone: bool
    has_email: bool
    has_name: bool
    phone_valid: bool
    phone_type: str                # "voip" | "mobile" | "unknown"
    email_valid: bool
    email_domain: str | None
    is_disposable_email: bool
    is_new_customer: bool
    previous_orders: int
    previous_fraud: int
    lifetime_value: float


class TransactionSignals(TypedDict, total=False):
    degraded: bool
    amount: float
    has_items: bool
    item_count: int
    merchant_exists: bool
    merchant_avg_order: float | None
    is_unusual_amount: bool
    deviation_from_avg: float


class AgentSignals(TypedDict, total=False):
    degraded: bool
    protocol: str | None
    platform: str | None
    input_type: str | None
    is_known_platform: bool
    platform_reputation: int
    agent_transaction_count: int
    agent_fraud_rate: float
    agent_chargeback_rate: float
    agent_success_rate: float


class VelocitySignals(TypedDict, total=False):
    degraded: bool
    transactions_last_hour: int
    transactions_last_24h: int
    unique_merchants_24h: int
    failed_attempts_1h: int


class TemporalSignals(TypedDict, total=False):
    degraded: bool
    hour: int
    is_late_night: bool
    is_business_hours: bool
    day_of_week: int               # Monday == 0
    is_weekend: bool


class PaymentSignals(TypedDict, total=False):
    degraded: bool
    method: str | None
    is_link: bool
    is_direct: bool
    currency: str | None
    save_for_future: bool


class ListCheck(TypedDict):
    """Outcome of a block- or allow-list lookup."""
    phone: bool
    email: bool
    reason: str | None


class Signals(TypedDict, total=False):
    """Full structured snapshot stored with the assessment."""
    blacklist: ListCheck
    whitelist: ListCheck
    customer: CustomerSignals
    transaction: TransactionSignals
    agent: AgentSignals
    velocity: VelocitySignals
    temporal: TemporalSignals
    payment: PaymentSignals


class Decision(TypedDict):
    """Output of the Decision Classifier."""
    risk_level: RiskLevel
    action: str                    # "approve" | "verify" | "block"
    is_fraud: bool
    requires_verification: bool
    reason: str


# ---------------------------------------------------------------------------
# Fail-open boundary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PartialFailure:
    """An assessment that could not be completed.

    The engine never hands this to callers; ``RiskEngine.assess`` collapses
    it into a LOW, non-blocking assessment.
    """
    stage: str
    error: str


# ---------------------------------------------------------------------------
# Pipeline state -- this is what LangGraph passes node-to-node
# ---------------------------------------------------------------------------

class AssessmentState(TypedDict, total=False):
    """
    State flowing through the assessment graph.

    Pipeline stages and their primary read/write fields:
        1. List Guard   -> reads: context                  writes: signals(blacklist, whitelist), is_blacklisted
        2. Collectors   -> reads: context, evaluated_at    writes: signals(customer ... payment)
        3. Composer     -> reads: signals                  writes: risk_score, reasons, score_breakdown
        4. Classifier   -> reads: risk_score               writes: decision
        5. Audit        -> reads: ALL                      writes: assessment, audit_persisted
    """

    # ── Ingest ────────────────────────────────────────────────────────
    context: TransactionContext
    evaluated_at: datetime

    # ── List Guard / Collectors ───────────────────────────────────────
    is_blacklisted: bool
    signals: Signals

    # ── Composer ──────────────────────────────────────────────────────
    risk_score: int
    reasons: list[str]
    score_breakdown: dict[str, int]

    # ── Classifier ────────────────────────────────────────────────────
    decision: Decision

    # ── Audit ─────────────────────────────────────────────────────────
    assessment: RiskAssessment
    audit_persisted: bool

    # ── Run metadata ──────────────────────────────────────────────────
    processing_errors: Annotated[list[str], operator.add]
