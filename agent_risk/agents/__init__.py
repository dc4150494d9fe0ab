"""
Risk-assessment pipeline stages.

Signal collectors are plain functions returning a signal bag; the pipeline
stages are LangGraph node functions (or factories binding a store into one)
that receive and return ``AssessmentState`` updates.
"""

from agent_risk.agents.agent_reputation import collect_agent_signals
from agent_risk.agents.audit import make_audit_node
from agent_risk.agents.collection import make_signal_collection_node, run_collectors
from agent_risk.agents.customer import (
    PhoneClassifier,
    PrefixPhoneClassifier,
    collect_customer_signals,
)
from agent_risk.agents.decision import classify_risk, decision_classifier_agent
from agent_risk.agents.list_guard import make_list_guard_node
from agent_risk.agents.reputation_updater import record_outcome, update_agent_reputation
from agent_risk.agents.score_composer import compose_score, score_composer_agent
from agent_risk.agents.temporal import collect_payment_signals, collect_temporal_signals
from agent_risk.agents.transaction_pattern import collect_transaction_signals
from agent_risk.agents.velocity import collect_velocity_signals

__all__ = [
    "collect_customer_signals",
    "collect_transaction_signals",
    "collect_agent_signals",
    "collect_velocity_signals",
    "collect_temporal_signals",
    "collect_payment_signals",
    "PhoneClassifier",
    "PrefixPhoneClassifier",
    "run_collectors",
    "make_list_guard_node",
    "make_signal_collection_node",
    "compose_score",
    "score_composer_agent",
    "classify_risk",
    "decision_classifier_agent",
    "make_audit_node",
    "update_agent_reputation",
    "record_outcome",
]
