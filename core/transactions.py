"""
transactions.py
----------------
Bridges tabular data (CSV exports, store query results) and the typed
records the engine works on.

    transactions_from_frame(): DataFrame → [Transaction], skipping rows
        whose date cannot be parsed.
    bills_to_frame():          [DetectedBill] → flat DataFrame.
"""

import logging
from typing import List, Sequence

import pandas as pd

from core.models import CREDIT, DEBIT, DetectedBill, Transaction

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = ["id", "amount", "description", "date", "merchant"]

BILL_COLUMNS = [
    "id", "name", "merchant", "category", "amount", "average_amount",
    "frequency", "status", "confidence", "next_due_date", "last_payment_date",
    "account_id", "bank_name", "day_of_month", "day_of_week",
    "occurrence_count", "evidence_transaction_refs",
]


def transactions_from_frame(df: pd.DataFrame) -> List[Transaction]:
    """
    Convert a transactions DataFrame into Transaction records.

    Args:
        df: DataFrame with columns id, amount, description, date, merchant
            and optionally type, account_id, category, bank_name. When
            `type` is missing, positive amounts are debits (expenses).

    Returns:
        Transaction records in input order. Rows with unparseable dates are
        dropped with a warning.

    Raises:
        ValueError: If a required column is missing.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    df = df.copy()
    df["date"] = pd.to_datetime(df["date"], errors="coerce")

    invalid = df["date"].isna()
    if invalid.any():
        logger.warning(
            f"Skipping {int(invalid.sum()):,} transactions with unparseable dates: "
            f"{df.loc[invalid, 'id'].astype(str).tolist()[:10]}"
        )
        df = df[~invalid]

    if "type" not in df.columns:
        df["type"] = [DEBIT if a > 0 else CREDIT for a in df["amount"]]

    records = []
    for row in df.itertuples(index=False):
        records.append(Transaction(
            id=str(row.id),
            amount=float(row.amount),
            description=_optional_str(row.description) or "Unknown",
            date=row.date.date(),
            merchant=_optional_str(row.merchant) or _optional_str(row.description) or "Unknown Merchant",
            account_id=_optional_str(getattr(row, "account_id", None)) or "manual",
            type=str(row.type).lower(),
            category=_optional_str(getattr(row, "category", None)),
            bank_name=_optional_str(getattr(row, "bank_name", None)),
        ))
    return records


def bills_to_frame(bills: Sequence[DetectedBill]) -> pd.DataFrame:
    """
    Flattens DetectedBill records into one row per bill. Evidence is
    serialized as a pipe-separated list of transaction ids.
    """
    if not bills:
        return pd.DataFrame(columns=BILL_COLUMNS)

    rows = []
    for b in bills:
        rows.append({
            "id": b.id,
            "name": b.name,
            "merchant": b.merchant,
            "category": b.category,
            "amount": b.amount,
            "average_amount": round(b.average_amount, 4),
            "frequency": b.frequency,
            "status": b.status,
            "confidence": b.confidence,
            "next_due_date": b.next_due_date.strftime("%Y-%m-%d"),
            "last_payment_date": b.last_payment_date.strftime("%Y-%m-%d"),
            "account_id": b.account_id,
            "bank_name": b.bank_name,
            "day_of_month": b.day_of_month,
            "day_of_week": b.day_of_week,
            "occurrence_count": len(b.transactions),
            "evidence_transaction_refs": "|".join(b.transaction_ids),
        })
    return pd.DataFrame(rows, columns=BILL_COLUMNS)


def _optional_str(value) -> str | None:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None
