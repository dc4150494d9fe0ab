"""Tests for the Decision Classifier (Node 4)."""

from __future__ import annotations

import pytest

from agent_risk.agents.decision import classify_risk, decision_classifier_agent


class TestBoundaries:
    @pytest.mark.parametrize(
        "score, level, action",
        [
            (0, "LOW", "approve"),
            (49, "LOW", "approve"),
            (50, "MEDIUM", "verify"),
            (79, "MEDIUM", "verify"),
            (80, "HIGH", "block"),
            (99, "HIGH", "block"),
            (100, "HIGH", "block"),
        ],
    )
    def test_tiers(self, score, level, action):
        decision = classify_risk(score)
        assert decision["risk_level"] == level
        assert decision["action"] == action

    def test_flags(self):
        assert classify_risk(80)["is_fraud"] is True
        assert classify_risk(79)["is_fraud"] is False
        assert classify_risk(79)["requires_verification"] is True
        assert classify_risk(80)["requires_verification"] is False
        assert classify_risk(49)["requires_verification"] is False


class TestInvalidScores:
    @pytest.mark.parametrize("bad", [-1, 101, 50.0, "50", None, True])
    def test_rejected(self, bad):
        with pytest.raises(ValueError):
            classify_risk(bad)


class TestNode:
    def test_writes_decision(self):
        result = decision_classifier_agent({"context": {"transaction_id": "T"}, "risk_score": 65})
        assert result["decision"]["risk_level"] == "MEDIUM"
