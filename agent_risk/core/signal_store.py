"""
Signal Store - persistence surface read by the collectors.
==========================================================

Four record families live behind this interface:

    - historical transactions (and the merchants they belong to)
    - prior risk assessments (the audit trail)
    - agent reputation counters
    - blacklist / whitelist entries

``SignalStore`` is the contract the engine depends on.  Two implementations
ship with the package:

    - ``InMemorySignalStore`` (this module) -- thread-safe reference store
      used by the test-suite and the demo runner.
    - ``Neo4jSignalStore`` (``agent_risk.core.neo4j_store``) -- production
      backend on the Neo4j graph database.

Write-side guarantees every implementation must honour:
    - list inserts are insert-or-ignore on ``(list_name, type, value)``
    - reputation increments are atomic per platform
    - an assessment is immutable apart from its review fields
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from agent_risk.core.state import (
    AgentReputationCounter,
    IdentifierType,
    ListEntry,
    ListName,
    MerchantRecord,
    ReputationDelta,
    RiskAssessment,
    TransactionRecord,
)

logger = logging.getLogger(__name__)

COUNTER_FIELDS: tuple[str, ...] = (
    "total_transactions",
    "fraud_count",
    "chargeback_count",
    "success_count",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalStore(ABC):
    """Read/write operations over the four record families."""

    # -- merchants & transactions -------------------------------------------

    @abstractmethod
    def add_merchant(self, merchant: MerchantRecord) -> None: ...

    @abstractmethod
    def get_merchant(self, merchant_id: str) -> MerchantRecord | None: ...

    @abstractmethod
    def record_transaction(self, record: TransactionRecord) -> None: ...

    @abstractmethod
    def get_transaction(self, transaction_id: str) -> TransactionRecord | None: ...

    @abstractmethod
    def get_transactions_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[TransactionRecord]:
        """All transactions matching the phone OR the email, newest first."""

    @abstractmethod
    def get_transactions_by_merchant(self, merchant_id: str) -> list[TransactionRecord]: ...

    @abstractmethod
    def get_transactions_by_phone(
        self, phone: str, since: datetime
    ) -> list[TransactionRecord]:
        """Transactions for ``phone`` created at or after ``since``."""

    @abstractmethod
    def get_transactions_by_email(
        self, email: str, since: datetime
    ) -> list[TransactionRecord]:
        """Transactions for ``email`` created at or after ``since``."""

    # -- assessments --------------------------------------------------------

    @abstractmethod
    def create_assessment(self, assessment: RiskAssessment) -> None: ...

    @abstractmethod
    def get_assessment(self, assessment_id: str) -> RiskAssessment | None: ...

    @abstractmethod
    def get_assessment_by_transaction(self, transaction_id: str) -> RiskAssessment | None:
        """Most recent assessment for a transaction id."""

    @abstractmethod
    def get_assessments_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[RiskAssessment]: ...

    @abstractmethod
    def list_assessments(self, limit: int) -> list[RiskAssessment]:
        """Newest ``limit`` assessments, newest first."""

    @abstractmethod
    def get_assessments_since(self, since: datetime) -> list[RiskAssessment]: ...

    @abstractmethod
    def get_high_risk_pending(self, min_score: int) -> list[RiskAssessment]:
        """Unreviewed assessments scoring at least ``min_score``, newest first."""

    @abstractmethod
    def update_assessment_review(
        self,
        assessment_id: str,
        reviewed_by: str,
        action_taken: str,
        reviewed_at: datetime,
    ) -> bool:
        """Set the review fields.  Returns False when the id is unknown."""

    # -- agent reputation ---------------------------------------------------

    @abstractmethod
    def get_agent_counters(self, platform: str) -> AgentReputationCounter | None: ...

    @abstractmethod
    def increment_agent_counters(
        self, platform: str, delta: ReputationDelta, at: datetime
    ) -> AgentReputationCounter:
        """Atomically add ``delta``, creating the row if absent."""

    @abstractmethod
    def list_agent_counters(self) -> list[AgentReputationCounter]: ...

    # -- block / allow lists ------------------------------------------------

    @abstractmethod
    def add_list_entry(self, entry: ListEntry) -> bool:
        """Insert-or-ignore.  Returns True only when a row was created."""

    @abstractmethod
    def remove_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> bool: ...

    @abstractmethod
    def find_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> ListEntry | None: ...

    @abstractmethod
    def list_entries(self, list_name: ListName) -> list[ListEntry]:
        """All entries on one list, newest first."""


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

def _matches_customer(
    record: dict, phone: str | None, email: str | None
) -> bool:
    return bool(
        (phone and record.get("customer_phone") == phone)
        or (email and record.get("customer_email") == email)
    )


def _newest_first(records: list[dict]) -> list[dict]:
    return sorted(records, key=lambda r: r["created_at"], reverse=True)


class InMemorySignalStore(SignalStore):
    """Thread-safe dictionary-backed store.

    Reads return deep copies so callers can never mutate stored rows.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._merchants: dict[str, MerchantRecord] = {}
        self._transactions: dict[str, TransactionRecord] = {}
        self._assessments: dict[str, RiskAssessment] = {}
        self._counters: dict[str, AgentReputationCounter] = {}
        self._lists: dict[tuple[str, str, str], ListEntry] = {}

    # -- merchants & transactions -------------------------------------------

    def add_merchant(self, merchant: MerchantRecord) -> None:
        with self._lock:
            self._merchants[merchant["id"]] = copy.deepcopy(merchant)

    def get_merchant(self, merchant_id: str) -> MerchantRecord | None:
        with self._lock:
            merchant = self._merchants.get(merchant_id)
            return copy.deepcopy(merchant) if merchant else None

    def record_transaction(self, record: TransactionRecord) -> None:
        row = copy.deepcopy(record)
        row.setdefault("created_at", _utcnow())
        row.setdefault("status", "pending")
        with self._lock:
            self._transactions[row["id"]] = row

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        with self._lock:
            txn = self._transactions.get(transaction_id)
            return copy.deepcopy(txn) if txn else None

    def _select_transactions(self, predicate) -> list[TransactionRecord]:
        with self._lock:
            rows = [copy.deepcopy(t) for t in self._transactions.values() if predicate(t)]
        return _newest_first(rows)  # type: ignore[return-value]

    def get_transactions_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[TransactionRecord]:
        return self._select_transactions(lambda t: _matches_customer(t, phone, email))

    def get_transactions_by_merchant(self, merchant_id: str) -> list[TransactionRecord]:
        return self._select_transactions(lambda t: t.get("merchant_id") == merchant_id)

    def get_transactions_by_phone(
        self, phone: str, since: datetime
    ) -> list[TransactionRecord]:
        return self._select_transactions(
            lambda t: t.get("customer_phone") == phone and t["created_at"] >= since
        )

    def get_transactions_by_email(
        self, email: str, since: datetime
    ) -> list[TransactionRecord]:
        return self._select_transactions(
            lambda t: t.get("customer_email") == email and t["created_at"] >= since
        )

    # -- assessments --------------------------------------------------------

    def create_assessment(self, assessment: RiskAssessment) -> None:
        with self._lock:
            if assessment["id"] in self._assessments:
                raise ValueError(f"Assessment {assessment['id']} already exists")
            self._assessments[assessment["id"]] = copy.deepcopy(assessment)

    def get_assessment(self, assessment_id: str) -> RiskAssessment | None:
        with self._lock:
            row = self._assessments.get(assessment_id)
            return copy.deepcopy(row) if row else None

    def _select_assessments(self, predicate) -> list[RiskAssessment]:
        with self._lock:
            rows = [copy.deepcopy(a) for a in self._assessments.values() if predicate(a)]
        return _newest_first(rows)  # type: ignore[return-value]

    def get_assessment_by_transaction(self, transaction_id: str) -> RiskAssessment | None:
        rows = self._select_assessments(lambda a: a.get("transaction_id") == transaction_id)
        return rows[0] if rows else None

    def get_assessments_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[RiskAssessment]:
        return self._select_assessments(lambda a: _matches_customer(a, phone, email))

    def list_assessments(self, limit: int) -> list[RiskAssessment]:
        return self._select_assessments(lambda a: True)[:limit]

    def get_assessments_since(self, since: datetime) -> list[RiskAssessment]:
        return self._select_assessments(lambda a: a["created_at"] >= since)

    def get_high_risk_pending(self, min_score: int) -> list[RiskAssessment]:
        return self._select_assessments(
            lambda a: a["risk_score"] >= min_score and not a.get("reviewed")
        )

    def update_assessment_review(
        self,
        assessment_id: str,
        reviewed_by: str,
        action_taken: str,
        reviewed_at: datetime,
    ) -> bool:
        with self._lock:
            row = self._assessments.get(assessment_id)
            if row is None:
                return False
            row["reviewed"] = True
            row["reviewed_by"] = reviewed_by
            row["reviewed_at"] = reviewed_at
            row["action_taken"] = action_taken
            return True

    # -- agent reputation ---------------------------------------------------

    def get_agent_counters(self, platform: str) -> AgentReputationCounter | None:
        with self._lock:
            row = self._counters.get(platform)
            return copy.deepcopy(row) if row else None

    def increment_agent_counters(
        self, platform: str, delta: ReputationDelta, at: datetime
    ) -> AgentReputationCounter:
        with self._lock:
            row = self._counters.get(platform)
            if row is None:
                row = AgentReputationCounter(
                    platform=platform,
                    total_transactions=0,
                    fraud_count=0,
                    chargeback_count=0,
                    success_count=0,
                    last_updated=at,
                )
                self._counters[platform] = row
            for field in COUNTER_FIELDS:
                row[field] += int(delta.get(field, 0))  # type: ignore[literal-required]
            row["last_updated"] = at
            return copy.deepcopy(row)

    def list_agent_counters(self) -> list[AgentReputationCounter]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._counters.values()]
        return sorted(rows, key=lambda r: r["platform"])

    # -- block / allow lists ------------------------------------------------

    def add_list_entry(self, entry: ListEntry) -> bool:
        key = (entry["list_name"], entry["type"], entry["value"])
        row = copy.deepcopy(entry)
        row.setdefault("created_at", _utcnow())
        with self._lock:
            if key in self._lists:
                logger.debug(f"List entry {key} already present -- ignoring insert")
                return False
            self._lists[key] = row
            return True

    def remove_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> bool:
        with self._lock:
            return self._lists.pop((list_name, type_, value), None) is not None

    def find_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> ListEntry | None:
        with self._lock:
            row = self._lists.get((list_name, type_, value))
            return copy.deepcopy(row) if row else None

    def list_entries(self, list_name: ListName) -> list[ListEntry]:
        with self._lock:
            rows = [copy.deepcopy(e) for e in self._lists.values() if e["list_name"] == list_name]
        return _newest_first(rows)  # type: ignore[return-value]
