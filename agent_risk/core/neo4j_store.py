"""
Neo4j Signal Store
==================

``SignalStore`` implementation on top of ``Neo4jClient``.

Graph data model:
    Nodes:  (:Merchant {id, name})
            (:Transaction {id, merchant_id, customer_phone, customer_email,
                           amount, status, created_at})
            (:RiskAssessment {id, transaction_id, ..., signals_json})
            (:AgentReputation {platform, total_transactions, fraud_count,
                               chargeback_count, success_count, last_updated})
            (:ListEntry {list_name, type, value, reason, added_by, created_at})
    Rels:   (Transaction)-[:AT]->(Merchant)

Nested structures (signals, score breakdown) are stored as JSON strings
because Neo4j properties cannot hold maps.  Uniqueness constraints created by
``ensure_schema`` back the insert-or-ignore and atomic-increment guarantees.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from neo4j.exceptions import DriverError, Neo4jError

from agent_risk.core.errors import SignalStoreError
from agent_risk.core.signal_store import COUNTER_FIELDS, SignalStore
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

_JSON_FIELDS: tuple[str, ...] = ("signals", "score_breakdown")


def _to_native(value: Any) -> Any:
    """Convert ``neo4j.time`` values back to stdlib datetimes."""
    if hasattr(value, "to_native"):
        return value.to_native()
    return value


def _row(record: dict[str, Any]) -> dict[str, Any]:
    return {key: _to_native(val) for key, val in (record.get("row") or {}).items()}


def _assessment_from_row(row: dict[str, Any]) -> RiskAssessment:
    for field in _JSON_FIELDS:
        raw = row.pop(f"{field}_json", None)
        row[field] = json.loads(raw) if raw else {}
    row["reasons"] = list(row.get("reasons") or [])
    return RiskAssessment(**row)  # type: ignore[typeddict-item]


class Neo4jSignalStore(SignalStore):
    """Signal Store persisted in Neo4j.

    Parameters
    ----------
    neo4j_client
        An instance of ``Neo4jClient`` (from ``agent_risk.core.neo4j_client``).
        The caller is responsible for lifecycle management.
    """

    # -- Schema ---------------------------------------------------------------

    SCHEMA_STATEMENTS: tuple[str, ...] = (
        "CREATE CONSTRAINT merchant_id IF NOT EXISTS "
        "FOR (m:Merchant) REQUIRE m.id IS UNIQUE",
        "CREATE CONSTRAINT transaction_id IF NOT EXISTS "
        "FOR (t:Transaction) REQUIRE t.id IS UNIQUE",
        "CREATE CONSTRAINT assessment_id IF NOT EXISTS "
        "FOR (a:RiskAssessment) REQUIRE a.id IS UNIQUE",
        "CREATE CONSTRAINT agent_platform IF NOT EXISTS "
        "FOR (r:AgentReputation) REQUIRE r.platform IS UNIQUE",
        "CREATE CONSTRAINT list_entry_key IF NOT EXISTS "
        "FOR (e:ListEntry) REQUIRE (e.list_name, e.type, e.value) IS UNIQUE",
        "CREATE INDEX transaction_phone IF NOT EXISTS "
        "FOR (t:Transaction) ON (t.customer_phone)",
        "CREATE INDEX transaction_email IF NOT EXISTS "
        "FOR (t:Transaction) ON (t.customer_email)",
        "CREATE INDEX assessment_created IF NOT EXISTS "
        "FOR (a:RiskAssessment) ON (a.created_at)",
    )

    # -- Cypher templates -----------------------------------------------------

    QUERY_ADD_MERCHANT: str = (
        "MERGE (m:Merchant {id: $id}) SET m.name = $name"
    )

    QUERY_GET_MERCHANT: str = (
        "MATCH (m:Merchant {id: $id}) RETURN m {.*} AS row"
    )

    QUERY_RECORD_TRANSACTION: str = (
        "MERGE (t:Transaction {id: $id}) "
        "SET t.merchant_id = $merchant_id, t.customer_phone = $customer_phone, "
        "    t.customer_email = $customer_email, t.amount = $amount, "
        "    t.status = $status, t.created_at = $created_at "
        "WITH t "
        "OPTIONAL MATCH (m:Merchant {id: $merchant_id}) "
        "FOREACH (_ IN CASE WHEN m IS NULL THEN [] ELSE [1] END | MERGE (t)-[:AT]->(m))"
    )

    QUERY_GET_TRANSACTION: str = (
        "MATCH (t:Transaction {id: $id}) RETURN t {.*} AS row"
    )

    QUERY_TRANSACTIONS_BY_CUSTOMER: str = (
        "MATCH (t:Transaction) "
        "WHERE ($phone IS NOT NULL AND t.customer_phone = $phone) "
        "   OR ($email IS NOT NULL AND t.customer_email = $email) "
        "RETURN t {.*} AS row ORDER BY t.created_at DESC"
    )

    QUERY_TRANSACTIONS_BY_MERCHANT: str = (
        "MATCH (t:Transaction {merchant_id: $merchant_id}) "
        "RETURN t {.*} AS row ORDER BY t.created_at DESC"
    )

    QUERY_TRANSACTIONS_BY_PHONE_SINCE: str = (
        "MATCH (t:Transaction {customer_phone: $phone}) "
        "WHERE t.created_at >= $since "
        "RETURN t {.*} AS row ORDER BY t.created_at DESC"
    )

    QUERY_TRANSACTIONS_BY_EMAIL_SINCE: str = (
        "MATCH (t:Transaction {customer_email: $email}) "
        "WHERE t.created_at >= $since "
        "RETURN t {.*} AS row ORDER BY t.created_at DESC"
    )

    QUERY_CREATE_ASSESSMENT: str = (
        "CREATE (a:RiskAssessment) SET a = $props"
    )

    QUERY_GET_ASSESSMENT: str = (
        "MATCH (a:RiskAssessment {id: $id}) RETURN a {.*} AS row"
    )

    QUERY_ASSESSMENT_BY_TRANSACTION: str = (
        "MATCH (a:RiskAssessment {transaction_id: $transaction_id}) "
        "RETURN a {.*} AS row ORDER BY a.created_at DESC LIMIT 1"
    )

    QUERY_ASSESSMENTS_BY_CUSTOMER: str = (
        "MATCH (a:RiskAssessment) "
        "WHERE ($phone IS NOT NULL AND a.customer_phone = $phone) "
        "   OR ($email IS NOT NULL AND a.customer_email = $email) "
        "RETURN a {.*} AS row ORDER BY a.created_at DESC"
    )

    QUERY_LIST_ASSESSMENTS: str = (
        "MATCH (a:RiskAssessment) "
        "RETURN a {.*} AS row ORDER BY a.created_at DESC LIMIT $limit"
    )

    QUERY_ASSESSMENTS_SINCE: str = (
        "MATCH (a:RiskAssessment) WHERE a.created_at >= $since "
        "RETURN a {.*} AS row ORDER BY a.created_at DESC"
    )

    QUERY_HIGH_RISK_PENDING: str = (
        "MATCH (a:RiskAssessment) "
        "WHERE a.risk_score >= $min_score AND a.reviewed = false "
        "RETURN a {.*} AS row ORDER BY a.created_at DESC"
    )

    QUERY_UPDATE_REVIEW: str = (
        "MATCH (a:RiskAssessment {id: $id}) "
        "SET a.reviewed = true, a.reviewed_by = $reviewed_by, "
        "    a.reviewed_at = $reviewed_at, a.action_taken = $action_taken "
        "RETURN a.id AS id"
    )

    QUERY_GET_COUNTERS: str = (
        "MATCH (r:AgentReputation {platform: $platform}) RETURN r {.*} AS row"
    )

    # Neo4j takes the node write lock before evaluating ``r.x + $x``, so
    # concurrent increments for the same platform serialise.
    QUERY_INCREMENT_COUNTERS: str = (
        "MERGE (r:AgentReputation {platform: $platform}) "
        "ON CREATE SET r.total_transactions = 0, r.fraud_count = 0, "
        "              r.chargeback_count = 0, r.success_count = 0 "
        "SET r.total_transactions = r.total_transactions + $total_transactions, "
        "    r.fraud_count = r.fraud_count + $fraud_count, "
        "    r.chargeback_count = r.chargeback_count + $chargeback_count, "
        "    r.success_count = r.success_count + $success_count, "
        "    r.last_updated = $at "
        "RETURN r {.*} AS row"
    )

    QUERY_LIST_COUNTERS: str = (
        "MATCH (r:AgentReputation) RETURN r {.*} AS row ORDER BY r.platform"
    )

    QUERY_ADD_LIST_ENTRY: str = (
        "MERGE (e:ListEntry {list_name: $list_name, type: $type, value: $value}) "
        "ON CREATE SET e.reason = $reason, e.added_by = $added_by, "
        "              e.created_at = $created_at, e.inserted = true "
        "ON MATCH SET e.inserted = false "
        "WITH e, e.inserted AS inserted "
        "REMOVE e.inserted "
        "RETURN inserted"
    )

    QUERY_REMOVE_LIST_ENTRY: str = (
        "MATCH (e:ListEntry {list_name: $list_name, type: $type, value: $value}) "
        "DELETE e RETURN count(*) AS removed"
    )

    QUERY_FIND_LIST_ENTRY: str = (
        "MATCH (e:ListEntry {list_name: $list_name, type: $type, value: $value}) "
        "RETURN e {.*} AS row"
    )

    QUERY_LIST_ENTRIES: str = (
        "MATCH (e:ListEntry {list_name: $list_name}) "
        "RETURN e {.*} AS row ORDER BY e.created_at DESC"
    )

    def __init__(self, neo4j_client: Any) -> None:
        self._client = neo4j_client

    # -- Internal helpers ----------------------------------------------------

    def _read(self, query_name: str, cypher: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return self._client.execute_query(cypher, params)
        except (Neo4jError, DriverError) as exc:
            raise SignalStoreError(f"Neo4j query '{query_name}' failed: {exc}") from exc

    def _write(self, query_name: str, cypher: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return self._client.execute_write(cypher, params)
        except (Neo4jError, DriverError) as exc:
            raise SignalStoreError(f"Neo4j write '{query_name}' failed: {exc}") from exc

    def _rows(self, query_name: str, cypher: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return [_row(record) for record in self._read(query_name, cypher, params)]

    def _first(self, query_name: str, cypher: str, params: dict[str, Any]) -> dict[str, Any] | None:
        rows = self._rows(query_name, cypher, params)
        return rows[0] if rows else None

    # -- Schema --------------------------------------------------------------

    def ensure_schema(self) -> None:
        """Create constraints and indexes.  Safe to call repeatedly."""
        for statement in self.SCHEMA_STATEMENTS:
            self._write("schema", statement, {})
        logger.info(f"Neo4j schema ensured ({len(self.SCHEMA_STATEMENTS)} statements)")

    # -- merchants & transactions -------------------------------------------

    def add_merchant(self, merchant: MerchantRecord) -> None:
        self._write(
            "add_merchant",
            self.QUERY_ADD_MERCHANT,
            {"id": merchant["id"], "name": merchant.get("name")},
        )

    def get_merchant(self, merchant_id: str) -> MerchantRecord | None:
        row = self._first("get_merchant", self.QUERY_GET_MERCHANT, {"id": merchant_id})
        return MerchantRecord(**row) if row else None  # type: ignore[typeddict-item]

    def record_transaction(self, record: TransactionRecord) -> None:
        self._write(
            "record_transaction",
            self.QUERY_RECORD_TRANSACTION,
            {
                "id": record["id"],
                "merchant_id": record.get("merchant_id"),
                "customer_phone": record.get("customer_phone") or None,
                "customer_email": record.get("customer_email") or None,
                "amount": float(record.get("amount", 0.0)),
                "status": record.get("status", "pending"),
                "created_at": record.get("created_at"),
            },
        )

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        row = self._first("get_transaction", self.QUERY_GET_TRANSACTION, {"id": transaction_id})
        return TransactionRecord(**row) if row else None  # type: ignore[typeddict-item]

    def get_transactions_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[TransactionRecord]:
        return self._rows(  # type: ignore[return-value]
            "transactions_by_customer",
            self.QUERY_TRANSACTIONS_BY_CUSTOMER,
            {"phone": phone or None, "email": email or None},
        )

    def get_transactions_by_merchant(self, merchant_id: str) -> list[TransactionRecord]:
        return self._rows(  # type: ignore[return-value]
            "transactions_by_merchant",
            self.QUERY_TRANSACTIONS_BY_MERCHANT,
            {"merchant_id": merchant_id},
        )

    def get_transactions_by_phone(
        self, phone: str, since: datetime
    ) -> list[TransactionRecord]:
        return self._rows(  # type: ignore[return-value]
            "transactions_by_phone",
            self.QUERY_TRANSACTIONS_BY_PHONE_SINCE,
            {"phone": phone, "since": since},
        )

    def get_transactions_by_email(
        self, email: str, since: datetime
    ) -> list[TransactionRecord]:
        return self._rows(  # type: ignore[return-value]
            "transactions_by_email",
            self.QUERY_TRANSACTIONS_BY_EMAIL_SINCE,
            {"email": email, "since": since},
        )

    # -- assessments --------------------------------------------------------

    def create_assessment(self, assessment: RiskAssessment) -> None:
        props: dict[str, Any] = {
            key: val for key, val in assessment.items() if key not in _JSON_FIELDS
        }
        for field in _JSON_FIELDS:
            props[f"{field}_json"] = json.dumps(assessment.get(field, {}), default=str)
        # Neo4j drops null-valued properties on SET; keep the review flag explicit.
        props["reviewed"] = bool(assessment.get("reviewed", False))
        self._write("create_assessment", self.QUERY_CREATE_ASSESSMENT, {"props": props})

    def get_assessment(self, assessment_id: str) -> RiskAssessment | None:
        row = self._first("get_assessment", self.QUERY_GET_ASSESSMENT, {"id": assessment_id})
        return _assessment_from_row(row) if row else None

    def get_assessment_by_transaction(self, transaction_id: str) -> RiskAssessment | None:
        row = self._first(
            "assessment_by_transaction",
            self.QUERY_ASSESSMENT_BY_TRANSACTION,
            {"transaction_id": transaction_id},
        )
        return _assessment_from_row(row) if row else None

    def get_assessments_by_customer(
        self, phone: str | None, email: str | None
    ) -> list[RiskAssessment]:
        rows = self._rows(
            "assessments_by_customer",
            self.QUERY_ASSESSMENTS_BY_CUSTOMER,
            {"phone": phone or None, "email": email or None},
        )
        return [_assessment_from_row(r) for r in rows]

    def list_assessments(self, limit: int) -> list[RiskAssessment]:
        rows = self._rows("list_assessments", self.QUERY_LIST_ASSESSMENTS, {"limit": limit})
        return [_assessment_from_row(r) for r in rows]

    def get_assessments_since(self, since: datetime) -> list[RiskAssessment]:
        rows = self._rows("assessments_since", self.QUERY_ASSESSMENTS_SINCE, {"since": since})
        return [_assessment_from_row(r) for r in rows]

    def get_high_risk_pending(self, min_score: int) -> list[RiskAssessment]:
        rows = self._rows(
            "high_risk_pending", self.QUERY_HIGH_RISK_PENDING, {"min_score": min_score}
        )
        return [_assessment_from_row(r) for r in rows]

    def update_assessment_review(
        self,
        assessment_id: str,
        reviewed_by: str,
        action_taken: str,
        reviewed_at: datetime,
    ) -> bool:
        result = self._write(
            "update_review",
            self.QUERY_UPDATE_REVIEW,
            {
                "id": assessment_id,
                "reviewed_by": reviewed_by,
                "reviewed_at": reviewed_at,
                "action_taken": action_taken,
            },
        )
        return bool(result)

    # -- agent reputation ---------------------------------------------------

    def get_agent_counters(self, platform: str) -> AgentReputationCounter | None:
        row = self._first("get_counters", self.QUERY_GET_COUNTERS, {"platform": platform})
        return AgentReputationCounter(**row) if row else None  # type: ignore[typeddict-item]

    def increment_agent_counters(
        self, platform: str, delta: ReputationDelta, at: datetime
    ) -> AgentReputationCounter:
        params: dict[str, Any] = {"platform": platform, "at": at}
        for field in COUNTER_FIELDS:
            params[field] = int(delta.get(field, 0))  # type: ignore[misc]
        result = self._write("increment_counters", self.QUERY_INCREMENT_COUNTERS, params)
        return AgentReputationCounter(**_row(result[0]))  # type: ignore[typeddict-item]

    def list_agent_counters(self) -> list[AgentReputationCounter]:
        return self._rows("list_counters", self.QUERY_LIST_COUNTERS, {})  # type: ignore[return-value]

    # -- block / allow lists ------------------------------------------------

    def add_list_entry(self, entry: ListEntry) -> bool:
        result = self._write(
            "add_list_entry",
            self.QUERY_ADD_LIST_ENTRY,
            {
                "list_name": entry["list_name"],
                "type": entry["type"],
                "value": entry["value"],
                "reason": entry.get("reason"),
                "added_by": entry.get("added_by", "system"),
                "created_at": entry.get("created_at"),
            },
        )
        return bool(result and result[0].get("inserted"))

    def remove_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> bool:
        result = self._write(
            "remove_list_entry",
            self.QUERY_REMOVE_LIST_ENTRY,
            {"list_name": list_name, "type": type_, "value": value},
        )
        return bool(result and result[0].get("removed"))

    def find_list_entry(
        self, list_name: ListName, type_: IdentifierType, value: str
    ) -> ListEntry | None:
        row = self._first(
            "find_list_entry",
            self.QUERY_FIND_LIST_ENTRY,
            {"list_name": list_name, "type": type_, "value": value},
        )
        return ListEntry(**row) if row else None  # type: ignore[typeddict-item]

    def list_entries(self, list_name: ListName) -> list[ListEntry]:
        return self._rows(  # type: ignore[return-value]
            "list_entries", self.QUERY_LIST_ENTRIES, {"list_name": list_name}
        )
