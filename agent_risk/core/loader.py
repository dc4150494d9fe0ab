"""
Batch Transaction Loader
=========================

Loads flat transaction rows from CSV or Parquet files and converts each row
into a nested ``TransactionContext`` ready for ``RiskEngine.assess``.

Supported formats:
    - CSV  (.csv)  -- via Python's built-in ``csv`` module
    - Parquet (.parquet, .pq) -- via ``pyarrow.parquet``

Expected columns (aliases accepted, see ``_COLUMN_ALIASES``):
    transaction_id, merchant_id, customer_name, customer_phone,
    customer_email, total, subtotal, tax, shipping, payment_method,
    currency, protocol, platform, input_type
    optional: product_id, quantity, save_for_future

Usage:
    from agent_risk.core.loader import load_transactions

    contexts = load_transactions("data/agent_orders.csv")
    contexts = load_transactions("data/feed.dat", fmt="csv")
"""

from __future__ import annotations

import csv
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from agent_risk.core.engine import validate_context
from agent_risk.core.errors import InvalidTransactionContext
from agent_risk.core.state import TransactionContext

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Column name mapping -- normalises external column names to our schema
# ---------------------------------------------------------------------------

_COLUMN_ALIASES: dict[str, str] = {
    "txn_id": "transaction_id",
    "order_id": "transaction_id",
    "merch_id": "merchant_id",
    "merchant": "merchant_id",
    "name": "customer_name",
    "phone": "customer_phone",
    "phone_number": "customer_phone",
    "email": "customer_email",
    "amount": "total",
    "amt": "total",
    "order_total": "total",
    "method": "payment_method",
    "ccy": "currency",
    "agent_platform": "platform",
    "source_protocol": "protocol",
}

_VALID_FIELDS = {
    "transaction_id", "merchant_id", "customer_name", "customer_phone",
    "customer_email", "total", "subtotal", "tax", "shipping", "payment_method",
    "currency", "protocol", "platform", "input_type", "product_id", "quantity",
    "save_for_future",
}
_MONEY_FIELDS = ("total", "subtotal", "tax", "shipping")
_TRUE_VALUES = {"1", "true", "yes", "y"}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _normalise_column_name(raw: str) -> str:
    cleaned = raw.strip().lower().replace(" ", "_").replace("-", "_")
    return _COLUMN_ALIASES.get(cleaned, cleaned)


def _money(value: str) -> Decimal | str:
    """Parse a money column; leave unparseable text for validation to report."""
    try:
        return Decimal(value)
    except InvalidOperation:
        return value


def _coerce_row(raw_row: dict[str, Any]) -> TransactionContext:
    """Convert one flat string-valued row into a nested TransactionContext.

    - Normalises column names via aliases
    - Parses money columns into ``Decimal``
    - Drops empty values and unrecognised columns
    """
    row: dict[str, str] = {}
    for raw_key, raw_val in raw_row.items():
        canonical = _normalise_column_name(raw_key)
        val = raw_val.strip() if isinstance(raw_val, str) else raw_val
        if canonical in _VALID_FIELDS and val not in (None, ""):
            row[canonical] = str(val)

    customer = {
        key: row[f"customer_{key}"]
        for key in ("name", "phone", "email")
        if f"customer_{key}" in row
    }
    totals = {field: _money(row[field]) for field in _MONEY_FIELDS if field in row}

    payment: dict[str, Any] = {"currency": row.get("currency", "USD")}
    if "payment_method" in row:
        payment["method"] = row["payment_method"]
    if "save_for_future" in row:
        payment["save_for_future"] = row["save_for_future"].lower() in _TRUE_VALUES

    source = {
        key: row[key] for key in ("protocol", "platform", "input_type") if key in row
    }

    items = []
    if "product_id" in row:
        try:
            quantity = int(row.get("quantity", "1"))
        except ValueError:
            quantity = 1
        items.append({"product_id": row["product_id"], "quantity": quantity})

    return TransactionContext(
        transaction_id=row.get("transaction_id", ""),
        merchant_id=row.get("merchant_id", ""),
        customer=customer,  # type: ignore[typeddict-item]
        items=items,  # type: ignore[typeddict-item]
        totals=totals,  # type: ignore[typeddict-item]
        payment=payment,  # type: ignore[typeddict-item]
        source=source,  # type: ignore[typeddict-item]
    )


def _validate_transactions(contexts: list[TransactionContext]) -> list[TransactionContext]:
    """Drop rows the engine would reject, logging why."""
    valid: list[TransactionContext] = []

    for i, context in enumerate(contexts):
        try:
            validate_context(context)
        except InvalidTransactionContext as exc:
            txn_id = context.get("transaction_id") or f"row-{i}"
            logger.warning(f"Transaction {txn_id} has issues: {'; '.join(exc.problems)} -- skipping")
            continue
        valid.append(context)

    skipped = len(contexts) - len(valid)
    if skipped:
        logger.warning(f"Skipped {skipped}/{len(contexts)} transactions due to validation errors")

    return valid


# ---------------------------------------------------------------------------
# CSV loader
# ---------------------------------------------------------------------------

def _load_csv(path: Path) -> list[TransactionContext]:
    logger.info(f"Loading CSV: {path}")

    with open(path, newline="", encoding="utf-8") as f:
        raw_rows = list(csv.DictReader(f))

    logger.info(f"  Read {len(raw_rows)} rows from {path.name}")
    return _validate_transactions([_coerce_row(row) for row in raw_rows])


# ---------------------------------------------------------------------------
# Parquet loader
# ---------------------------------------------------------------------------

def _load_parquet(path: Path) -> list[TransactionContext]:
    """Load rows from a Parquet file.  Requires the ``parquet`` extra."""
    logger.info(f"Loading Parquet: {path}")

    try:
        import pyarrow.parquet as pq
    except ImportError:
        raise ImportError(
            "pyarrow is required for Parquet support.  "
            "Install it with: pip install 'agent-risk-engine[parquet]'"
        )

    table = pq.read_table(path)
    raw_rows = table.to_pylist()

    logger.info(f"  Read {len(raw_rows)} rows from {path.name}")
    return _validate_transactions([_coerce_row(row) for row in raw_rows])


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_FORMAT_LOADERS = {
    "csv": _load_csv,
    "parquet": _load_parquet,
    "pq": _load_parquet,
}


def load_transactions(
    path: str | Path,
    fmt: str | None = None,
) -> list[TransactionContext]:
    """
    Load transaction contexts from a file.

    Parameters
    ----------
    path : str or Path
        Path to the transaction data file.
    fmt : str, optional
        Explicit format override ("csv", "parquet", "pq").
        If not provided, the format is inferred from the file extension.

    Returns
    -------
    list[TransactionContext]
        Contexts that pass validation, in file order.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the format cannot be determined or is unsupported.
    """
    filepath = Path(path)

    if not filepath.exists():
        raise FileNotFoundError(f"Transaction file not found: {filepath}")

    if fmt is None:
        fmt = filepath.suffix.lstrip(".").lower()

    if fmt not in _FORMAT_LOADERS:
        supported = ", ".join(sorted(_FORMAT_LOADERS.keys()))
        raise ValueError(
            f"Unsupported format '{fmt}' for file {filepath.name}.  "
            f"Supported formats: {supported}"
        )

    contexts = _FORMAT_LOADERS[fmt](filepath)

    logger.info(f"Loaded {len(contexts)} valid transactions from {filepath.name}")
    return contexts
