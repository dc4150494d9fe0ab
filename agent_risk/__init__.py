"""
AgentGuard - Risk Scoring for Agent-Initiated Commerce
======================================================

A deterministic, auditable risk engine that decides for every transaction
started by an AI agent (voice, chat, autonomous buyer) whether to approve
it, require step-up verification, or block it.

Pipeline: List Guard -> Signal Collectors (parallel) -> Score Composer
          -> Decision Classifier -> Audit Logger
"""

__version__ = "0.1.0"
