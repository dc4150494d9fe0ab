"""
Configuration & thresholds for the AgentGuard risk engine.
==========================================================

All magic numbers are centralised here so they can be tuned without touching
collector or scoring logic.  Values that operators change at runtime are
read from environment variables.
"""

import os

# ---------------------------------------------------------------------------
# Risk tier thresholds  (used by the Decision Classifier)
# ---------------------------------------------------------------------------
RISK_THRESHOLD_BLOCK: int = 80         # >= this -> HIGH, block
RISK_THRESHOLD_VERIFY: int = 50        # >= this -> MEDIUM, step-up verification
# anything below VERIFY threshold -> LOW, auto-approve

MAX_RISK_SCORE: int = 100
BLACKLIST_SCORE: int = 100

# ---------------------------------------------------------------------------
# Score Composer points  (purely additive, no per-category caps)
# ---------------------------------------------------------------------------
# Customer
POINTS_INVALID_PHONE: int = 10
POINTS_INVALID_EMAIL: int = 5
POINTS_DISPOSABLE_EMAIL: int = 10
POINTS_VOIP_PHONE: int = 8
POINTS_NEW_CUSTOMER: int = 5
POINTS_PREVIOUS_FRAUD: int = 15

# Transaction
POINTS_UNUSUAL_AMOUNT: int = 15
POINTS_UNKNOWN_MERCHANT: int = 10

# Agent
POINTS_UNKNOWN_PLATFORM: int = 15
POINTS_LOW_PLATFORM_REPUTATION: int = 10
POINTS_AGENT_FRAUD_RATE: int = 10
POINTS_AGENT_CHARGEBACK_RATE: int = 5

# Velocity
POINTS_VELOCITY_HOUR: int = 10
POINTS_VELOCITY_DAY: int = 8
POINTS_FAILED_ATTEMPTS: int = 12
POINTS_MERCHANT_HOPPING: int = 8

# Temporal
POINTS_LATE_NIGHT: int = 8
POINTS_WEEKEND: int = 3

# ---------------------------------------------------------------------------
# Signal limits
# ---------------------------------------------------------------------------
VELOCITY_MAX_HOUR: int = 3             # > this many txns in 1h -> flag
VELOCITY_MAX_DAY: int = 10             # > this many txns in 24h -> flag
FAILED_ATTEMPTS_MAX_HOUR: int = 2
UNIQUE_MERCHANTS_MAX_DAY: int = 5

AMOUNT_DEVIATION_HIGH: float = 3.0     # amount / merchant avg above this -> unusual
AMOUNT_DEVIATION_LOW: float = 0.1      # ... or below this
DEFAULT_MERCHANT_AVG_ORDER: float = 50.0

AGENT_FRAUD_RATE_MAX: float = 0.05
AGENT_CHARGEBACK_RATE_MAX: float = 0.03
LOW_REPUTATION_THRESHOLD: int = 50

LATE_NIGHT_START_HOUR: int = 1         # 01:00 inclusive
LATE_NIGHT_END_HOUR: int = 5           # through 05:59
BUSINESS_HOURS_START: int = 9
BUSINESS_HOURS_END: int = 17

# ---------------------------------------------------------------------------
# Customer heuristics
# ---------------------------------------------------------------------------
VOIP_PREFIXES: frozenset[str] = frozenset(
    {"555", "800", "888", "877", "866", "844", "855"}
)

DISPOSABLE_EMAIL_DOMAINS: frozenset[str] = frozenset({
    "tempmail.com",
    "guerrillamail.com",
    "10minutemail.com",
    "mailinator.com",
    "throwaway.email",
    "temp-mail.org",
    "yopmail.com",
    "trashmail.com",
})

# ---------------------------------------------------------------------------
# Agent platform reputation
# ---------------------------------------------------------------------------
UNKNOWN_PLATFORM: str = "unknown"
UNKNOWN_PLATFORM_REPUTATION: int = 30

_DEFAULT_PLATFORM_REPUTATION: dict[str, int] = {
    "chatgpt": 95,
    "retell": 90,
    "vapi": 88,
    "bland": 85,
    "voiceflow": 85,
    "voice": 80,
}


def parse_platform_reputation(raw: str) -> dict[str, int]:
    """Parse ``"chatgpt=95,retell=90"`` into a platform -> score mapping.

    Platform names are lower-cased.  Malformed pairs raise ``ValueError`` so
    a bad deployment fails at import rather than silently scoring with the
    wrong table.
    """
    table: dict[str, int] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        name, sep, score = pair.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"Invalid platform reputation entry: '{pair}'")
        table[name.strip().lower()] = int(score)
    return table


PLATFORM_REPUTATION: dict[str, int] = (
    parse_platform_reputation(os.environ["AGENT_PLATFORM_REPUTATION"])
    if os.environ.get("AGENT_PLATFORM_REPUTATION")
    else dict(_DEFAULT_PLATFORM_REPUTATION)
)

# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------
COLLECTOR_TIMEOUT_SECONDS: float = float(
    os.environ.get("COLLECTOR_TIMEOUT_SECONDS", "2.0")
)
COLLECTOR_MAX_WORKERS: int = 5

# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------
STATS_TIMEFRAMES_HOURS: dict[str, int] = {
    "1h": 1,
    "24h": 24,
    "7d": 7 * 24,
    "30d": 30 * 24,
}
DEFAULT_STATS_TIMEFRAME: str = "24h"
DEFAULT_LIST_LIMIT: int = 100

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

# ── Neo4j Signal Store ───────────────────────────────────────────────
NEO4J_URI: str = os.environ.get("NEO4J_URI", "bolt://localhost:7687")
NEO4J_USER: str = os.environ.get("NEO4J_USER", "neo4j")
NEO4J_PASSWORD: str = os.environ.get("NEO4J_PASSWORD", "")
NEO4J_DATABASE: str = os.environ.get("NEO4J_DATABASE", "agent_risk")
NEO4J_MAX_CONNECTION_POOL_SIZE: int = int(
    os.environ.get("NEO4J_MAX_CONNECTION_POOL_SIZE", "50")
)
NEO4J_CONNECTION_TIMEOUT: float = float(
    os.environ.get("NEO4J_CONNECTION_TIMEOUT", "5.0")
)
#
# The graph DB holds the four record families read by the collectors:
#   - (:Transaction) historical orders, (:Merchant) merchants
#   - (:RiskAssessment) the audit trail written by the Audit Logger
#   - (:AgentReputation) per-platform outcome counters
#   - (:ListEntry) blacklist / whitelist rows
