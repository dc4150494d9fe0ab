"""
Error taxonomy for the risk engine.

Signal-source failures never appear here: collectors recover from them by
degrading their signal bag.  These exceptions cover caller contract
violations and administrative lookups.
"""

from __future__ import annotations


class RiskEngineError(Exception):
    """Base class for all risk engine errors."""


class InvalidTransactionContext(RiskEngineError, ValueError):
    """The caller submitted a context that cannot be scored."""

    def __init__(self, transaction_id: str | None, problems: list[str]) -> None:
        self.transaction_id = transaction_id
        self.problems = problems
        super().__init__(
            f"Invalid transaction context {transaction_id or '<missing id>'}: "
            f"{'; '.join(problems)}"
        )


class AssessmentNotFound(RiskEngineError, KeyError):
    """No risk assessment exists for the given id."""

    def __init__(self, assessment_id: str) -> None:
        self.assessment_id = assessment_id
        super().__init__(assessment_id)

    def __str__(self) -> str:
        return f"Risk assessment not found: {self.assessment_id}"


class SignalStoreError(RiskEngineError):
    """The persistence backend failed a read or write."""
