"""
Customer Signal Collector
=========================

Responsibility:
    - Validate the customer's phone (E.164) and email syntax
    - Classify the phone line type through a pluggable ``PhoneClassifier``
    - Flag disposable email domains
    - Derive purchase / fraud history for the phone or email from the
      Signal Store

A failed history lookup keeps the "no history" defaults; it never raises.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from agent_risk.config.settings import DISPOSABLE_EMAIL_DOMAINS, VOIP_PREFIXES
from agent_risk.core.signal_store import SignalStore
from agent_risk.core.state import CustomerInfo, CustomerSignals

logger = logging.getLogger(__name__)

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ---------------------------------------------------------------------------
# Phone line classification
# ---------------------------------------------------------------------------

class PhoneClassifier(Protocol):
    """Anything that can label a phone number ``voip`` / ``mobile`` / ...."""

    def classify(self, phone: str) -> str: ...


class PrefixPhoneClassifier:
    """Static prefix heuristic.

    Strips non-digits, skips the leading (country) digit and checks the next
    three digits against a list of prefixes commonly issued to VoIP and
    toll-free lines.  An approximation only; a carrier lookup service can be
    dropped in behind ``PhoneClassifier`` instead.
    """

    def __init__(self, voip_prefixes: frozenset[str] = VOIP_PREFIXES) -> None:
        self.voip_prefixes = voip_prefixes

    def classify(self, phone: str) -> str:
        digits = re.sub(r"\D", "", phone)
        prefix = digits[1:4]
        return "voip" if prefix in self.voip_prefixes else "mobile"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def is_valid_e164(phone: str) -> bool:
    return bool(_E164_RE.match(phone))


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def email_domain(email: str) -> str | None:
    _, sep, domain = email.partition("@")
    return domain.lower() if sep and domain else None


def is_disposable_email(email: str) -> bool:
    return email_domain(email) in DISPOSABLE_EMAIL_DOMAINS


def default_customer_signals(customer: CustomerInfo) -> CustomerSignals:
    """Baseline bag before any validation or lookup has run."""
    return CustomerSignals(
        degraded=False,
        has_phone=bool(customer.get("phone")),
        has_email=bool(customer.get("email")),
        has_name=bool(customer.get("name")),
        phone_valid=False,
        phone_type="unknown",
        email_valid=False,
        email_domain=None,
        is_disposable_email=False,
        is_new_customer=True,
        previous_orders=0,
        previous_fraud=0,
        lifetime_value=0.0,
    )


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------

def collect_customer_signals(
    customer: CustomerInfo,
    store: SignalStore,
    phone_classifier: PhoneClassifier,
) -> CustomerSignals:
    """Build the customer signal bag for one transaction."""
    signals = default_customer_signals(customer)
    phone = customer.get("phone") or None
    email = customer.get("email") or None

    if phone:
        signals["phone_valid"] = is_valid_e164(phone)
        signals["phone_type"] = phone_classifier.classify(phone)

    if email:
        signals["email_valid"] = is_valid_email(email)
        signals["email_domain"] = email_domain(email)
        signals["is_disposable_email"] = is_disposable_email(email)

    try:
        transactions = store.get_transactions_by_customer(phone, email)
        prior_assessments = store.get_assessments_by_customer(phone, email)
    except Exception as exc:
        logger.warning(f"Could not fetch customer history: {exc}")
        return signals

    signals["previous_orders"] = len(transactions)
    signals["is_new_customer"] = len(transactions) == 0
    signals["lifetime_value"] = round(
        sum(float(t.get("amount") or 0.0) for t in transactions), 2
    )
    signals["previous_fraud"] = sum(1 for a in prior_assessments if a.get("is_fraud"))
    return signals
