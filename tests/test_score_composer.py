"""Tests for the Score Composer (Node 3)."""

from __future__ import annotations

from agent_risk.agents.score_composer import (
    NO_RISK_REASON,
    SCORING_RULES,
    compose_score,
    score_composer_agent,
)


def _clean_signals(**overrides) -> dict:
    """A snapshot that triggers no rule at all."""
    signals = {
        "customer": {
            "degraded": False, "has_phone": True, "has_email": True,
            "phone_valid": True, "phone_type": "mobile", "email_valid": True,
            "is_disposable_email": False, "is_new_customer": False,
            "previous_orders": 3, "previous_fraud": 0,
        },
        "transaction": {
            "degraded": False, "merchant_exists": True,
            "is_unusual_amount": False, "deviation_from_avg": 1.0,
        },
        "agent": {
            "degraded": False, "is_known_platform": True, "platform_reputation": 90,
            "agent_fraud_rate": 0.0, "agent_chargeback_rate": 0.0,
        },
        "velocity": {
            "degraded": False, "transactions_last_hour": 0, "transactions_last_24h": 0,
            "unique_merchants_24h": 0, "failed_attempts_1h": 0,
        },
        "temporal": {"degraded": False, "is_late_night": False, "is_weekend": False},
        "payment": {"degraded": False},
    }
    for path, value in overrides.items():
        bag, field = path.split("__")
        signals[bag][field] = value
    return signals


class TestRuleTable:
    def test_rule_ids_are_unique(self):
        ids = [rule.rule_id for rule in SCORING_RULES]
        assert len(ids) == len(set(ids)) == 18

    def test_clean_snapshot(self):
        score, reasons, breakdown = compose_score(_clean_signals())
        assert score == 0
        assert reasons == [NO_RISK_REASON]
        assert breakdown == {}


class TestIndividualRules:
    def test_invalid_phone(self):
        _, _, breakdown = compose_score(_clean_signals(customer__phone_valid=False))
        assert breakdown == {"invalid_phone": 10}

    def test_missing_phone_counts_as_invalid(self):
        _, reasons, breakdown = compose_score(
            _clean_signals(customer__has_phone=False, customer__phone_valid=False,
                           customer__phone_type="unknown")
        )
        assert breakdown == {"invalid_phone": 10}
        assert reasons == ["Invalid phone number"]

    def test_invalid_email(self):
        _, _, breakdown = compose_score(_clean_signals(customer__email_valid=False))
        assert breakdown == {"invalid_email": 5}

    def test_previous_fraud(self):
        score, reasons, _ = compose_score(_clean_signals(customer__previous_fraud=2))
        assert score == 15
        assert reasons == ["2 prior fraud assessment(s)"]

    def test_unknown_platform_does_not_also_charge_low_reputation(self):
        _, _, breakdown = compose_score(
            _clean_signals(agent__is_known_platform=False, agent__platform_reputation=30)
        )
        assert breakdown == {"unknown_platform": 15}

    def test_low_reputation_known_platform(self):
        _, _, breakdown = compose_score(_clean_signals(agent__platform_reputation=40))
        assert breakdown == {"low_platform_reputation": 10}

    def test_agent_rates(self):
        _, reasons, breakdown = compose_score(
            _clean_signals(agent__agent_fraud_rate=0.08, agent__agent_chargeback_rate=0.04)
        )
        assert breakdown == {"agent_fraud_rate": 10, "agent_chargeback_rate": 5}
        assert "Agent fraud rate: 8.0%" in reasons

    def test_velocity_thresholds_are_strict(self):
        _, _, at_limit = compose_score(
            _clean_signals(velocity__transactions_last_hour=3, velocity__failed_attempts_1h=2)
        )
        assert at_limit == {}
        _, _, over = compose_score(
            _clean_signals(
                velocity__transactions_last_hour=4,
                velocity__transactions_last_24h=11,
                velocity__failed_attempts_1h=3,
                velocity__unique_merchants_24h=6,
            )
        )
        assert over == {
            "velocity_hour": 10, "velocity_day": 8,
            "failed_attempts": 12, "merchant_hopping": 8,
        }


class TestComposition:
    def test_score_clamped_to_100(self):
        signals = _clean_signals(
            customer__phone_valid=False, customer__email_valid=False,
            customer__is_disposable_email=True, customer__phone_type="voip",
            customer__is_new_customer=True, customer__previous_fraud=1,
            transaction__is_unusual_amount=True, transaction__merchant_exists=False,
            agent__is_known_platform=False, agent__agent_fraud_rate=0.5,
            agent__agent_chargeback_rate=0.5,
            velocity__transactions_last_hour=10, velocity__transactions_last_24h=20,
            velocity__failed_attempts_1h=5, velocity__unique_merchants_24h=9,
            temporal__is_late_night=True, temporal__is_weekend=True,
        )
        score, reasons, breakdown = compose_score(signals)
        assert score == 100
        assert sum(breakdown.values()) > 100
        assert len(reasons) == len(set(reasons)) == len(breakdown)

    def test_reason_priority_order(self):
        _, reasons, _ = compose_score(
            _clean_signals(
                temporal__is_late_night=True,
                customer__phone_valid=False,
                agent__is_known_platform=False,
            )
        )
        assert reasons == [
            "Invalid phone number",
            "Unknown agent platform",
            "Late night transaction (1-5 AM)",
        ]

    def test_degraded_bag_contributes_nothing(self):
        signals = _clean_signals(
            velocity__transactions_last_hour=99, velocity__degraded=True
        )
        score, _, _ = compose_score(signals)
        assert score == 0

    def test_missing_bags_are_ignored(self):
        score, reasons, _ = compose_score({})
        assert score == 0
        assert reasons == [NO_RISK_REASON]


class TestNode:
    def test_writes_score_fields(self):
        result = score_composer_agent({
            "context": {"transaction_id": "TXN"},
            "signals": _clean_signals(temporal__is_weekend=True),
        })
        assert result == {
            "risk_score": 3,
            "reasons": ["Weekend transaction"],
            "score_breakdown": {"weekend": 3},
        }
