"""
Review & list administration.
=============================

Operator-facing write operations:

    - ``review_assessment``  -- mark an assessment reviewed, optionally
      escalating the customer's phone to the blacklist or whitelist
    - block / allow list maintenance

These are the only mutations of an assessment after creation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from agent_risk.core.errors import AssessmentNotFound
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import IdentifierType, ListEntry, ListName, RiskAssessment

logger = logging.getLogger(__name__)

REVIEW_ACTIONS: tuple[str, ...] = ("approve", "block", "whitelist", "blacklist")
IDENTIFIER_TYPES: tuple[str, ...] = ("phone", "email")
MANUAL_REVIEW_REASON = "Manual review"
DEFAULT_OPERATOR = "admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Block / allow lists
# ---------------------------------------------------------------------------

def _validate_identifier(type_: str, value: str) -> None:
    if type_ not in IDENTIFIER_TYPES:
        raise ValueError(f"Type must be phone or email, got {type_!r}")
    if not value:
        raise ValueError("A value is required")


def _add_entry(
    store: SignalStore,
    list_name: ListName,
    type_: IdentifierType,
    value: str,
    reason: str | None,
    added_by: str,
) -> bool:
    _validate_identifier(type_, value)
    inserted = store.add_list_entry(
        ListEntry(
            list_name=list_name,
            type=type_,
            value=value,
            reason=reason,
            added_by=added_by,
            created_at=_utcnow(),
        )
    )
    if inserted:
        logger.info(f"Added {type_} {value} to {list_name} by {added_by} (reason={reason!r})")
    else:
        logger.info(f"{type_} {value} already on {list_name}")
    return inserted


def _remove_entry(
    store: SignalStore, list_name: ListName, type_: IdentifierType, value: str
) -> bool:
    _validate_identifier(type_, value)
    removed = store.remove_list_entry(list_name, type_, value)
    if removed:
        logger.info(f"Removed {type_} {value} from {list_name}")
    return removed


def add_to_blacklist(
    store: SignalStore,
    type_: IdentifierType,
    value: str,
    reason: str | None = None,
    added_by: str = DEFAULT_OPERATOR,
) -> bool:
    """Insert-or-ignore; ``False`` when the identifier was already listed."""
    return _add_entry(store, "blacklist", type_, value, reason, added_by)


def remove_from_blacklist(store: SignalStore, type_: IdentifierType, value: str) -> bool:
    return _remove_entry(store, "blacklist", type_, value)


def add_to_whitelist(
    store: SignalStore,
    type_: IdentifierType,
    value: str,
    added_by: str = DEFAULT_OPERATOR,
) -> bool:
    return _add_entry(store, "whitelist", type_, value, None, added_by)


def remove_from_whitelist(store: SignalStore, type_: IdentifierType, value: str) -> bool:
    return _remove_entry(store, "whitelist", type_, value)


# ---------------------------------------------------------------------------
# Assessment review
# ---------------------------------------------------------------------------

def review_assessment(
    store: SignalStore,
    assessment_id: str,
    action: str,
    reviewed_by: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> RiskAssessment:
    """Record an analyst's verdict on an assessment.

    ``blacklist`` / ``whitelist`` additionally list the assessment's phone
    number.  Returns the updated assessment.

    Raises ``ValueError`` for an unknown action and ``AssessmentNotFound``
    for an unknown id.
    """
    if action not in REVIEW_ACTIONS:
        raise ValueError(
            f"Invalid action {action!r}. Must be one of: {', '.join(REVIEW_ACTIONS)}"
        )

    assessment = store.get_assessment(assessment_id)
    if assessment is None:
        raise AssessmentNotFound(assessment_id)

    reviewer = reviewed_by or DEFAULT_OPERATOR
    reviewed_at = (clock or _utcnow)()
    if not store.update_assessment_review(assessment_id, reviewer, action, reviewed_at):
        raise AssessmentNotFound(assessment_id)

    logger.info(f"Assessment {assessment_id} reviewed by {reviewer}: {action}")

    phone = assessment.get("customer_phone")
    if action == "blacklist" and phone:
        add_to_blacklist(store, "phone", phone, MANUAL_REVIEW_REASON, reviewer)
    elif action == "whitelist" and phone:
        add_to_whitelist(store, "phone", phone, reviewer)

    updated = store.get_assessment(assessment_id)
    if updated is None:
        raise AssessmentNotFound(assessment_id)
    return updated
