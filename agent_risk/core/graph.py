"""
Risk Assessment Pipeline Graph
==============================

Constructs the LangGraph ``StateGraph`` that wires the pipeline stages into
a conditional pipeline:

    START -> List Guard --(clean)------> Signal Collection -> Score Composer --\\
                        \\                                                      -> Decision -> Audit -> END
                         \\-(blacklisted)-> Block Verdict ----------------------/

A blacklist hit short-circuits: no collector runs and the score is fixed
at 100.

Architecture decisions:
    - Stages communicate exclusively through the shared state dict.
    - Dependencies (store, phone classifier, platform reputation table,
      collector deadline) are bound into the node functions when the graph
      is built, so one compiled graph serves every assessment for a given
      engine.
    - ``processing_errors`` uses an ``operator.add`` reducer, so every stage
      appends its own failures.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from langgraph.graph import END, START, StateGraph

from agent_risk.agents.audit import make_audit_node
from agent_risk.agents.collection import make_signal_collection_node
from agent_risk.agents.customer import PhoneClassifier
from agent_risk.agents.decision import decision_classifier_agent
from agent_risk.agents.list_guard import make_list_guard_node
from agent_risk.agents.score_composer import score_composer_agent
from agent_risk.config.settings import BLACKLIST_SCORE
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import AssessmentState

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Node identifiers -- centralised to avoid magic strings
# ---------------------------------------------------------------------------
NODE_LIST_GUARD = "list_guard"
NODE_COLLECT = "signal_collection"
NODE_SCORE = "score_composer"
NODE_BLOCK_VERDICT = "block_verdict"
NODE_DECISION = "decision_classifier"
NODE_AUDIT = "audit_logger"


# ---------------------------------------------------------------------------
# Short-circuit node -- fixed verdict for blacklisted identities
# ---------------------------------------------------------------------------

def _block_verdict(state: AssessmentState) -> dict:
    """Score a blacklisted transaction at 100 with the stored block reason."""
    blacklist = state.get("signals", {}).get("blacklist", {})
    reason = blacklist.get("reason") or "no reason recorded"
    txn_id = state["context"].get("transaction_id", "UNKNOWN")

    logger.warning(f"Block verdict: transaction {txn_id} is blacklisted ({reason})")

    return {
        "risk_score": BLACKLIST_SCORE,
        "reasons": [f"Blacklisted: {reason}"],
        "score_breakdown": {"blacklist": BLACKLIST_SCORE},
    }


# ---------------------------------------------------------------------------
# Conditional routing function
# ---------------------------------------------------------------------------

def _route_after_list_guard(state: AssessmentState) -> str:
    if state.get("is_blacklisted"):
        return NODE_BLOCK_VERDICT
    return NODE_COLLECT


def build_risk_assessment_graph(
    store: SignalStore,
    phone_classifier: PhoneClassifier,
    platform_reputation: Mapping[str, int],
    collector_timeout: float,
) -> StateGraph:
    """
    Construct (but do not compile) the risk-assessment pipeline graph.

    Graph topology:
        START -> List Guard --[clean]--> Signal Collection
                            |              -> Score Composer -> Decision
                            |                                -> Audit -> END
                            +-[blacklisted]-> Block Verdict -> Decision
    """
    graph = StateGraph(AssessmentState)

    graph.add_node(NODE_LIST_GUARD, make_list_guard_node(store))
    graph.add_node(
        NODE_COLLECT,
        make_signal_collection_node(
            store, phone_classifier, platform_reputation, collector_timeout
        ),
    )
    graph.add_node(NODE_SCORE, score_composer_agent)
    graph.add_node(NODE_BLOCK_VERDICT, _block_verdict)
    graph.add_node(NODE_DECISION, decision_classifier_agent)
    graph.add_node(NODE_AUDIT, make_audit_node(store))

    graph.add_edge(START, NODE_LIST_GUARD)

    graph.add_conditional_edges(
        NODE_LIST_GUARD,
        _route_after_list_guard,
        {NODE_COLLECT: NODE_COLLECT, NODE_BLOCK_VERDICT: NODE_BLOCK_VERDICT},
    )

    graph.add_edge(NODE_COLLECT, NODE_SCORE)
    graph.add_edge(NODE_SCORE, NODE_DECISION)
    graph.add_edge(NODE_BLOCK_VERDICT, NODE_DECISION)
    graph.add_edge(NODE_DECISION, NODE_AUDIT)
    graph.add_edge(NODE_AUDIT, END)

    return graph


def compile_risk_assessment_graph(
    store: SignalStore,
    phone_classifier: PhoneClassifier,
    platform_reputation: Mapping[str, int],
    collector_timeout: float,
):
    """
    Build and compile the pipeline into an executable graph.

        result = compiled.invoke({"context": {...}, "evaluated_at": now,
                                  "processing_errors": []})
    """
    graph = build_risk_assessment_graph(
        store, phone_classifier, platform_reputation, collector_timeout
    )
    compiled = graph.compile()
    logger.info(
        "Risk pipeline compiled: blacklisted identities skip collection via block verdict"
    )
    return compiled
