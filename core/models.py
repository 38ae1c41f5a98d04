"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction: Input record, sourced from the transaction store. Immutable.

- MerchantClassification: Output of the merchant classifier. Gates whether
  a merchant is eligible for bill detection and how strict amount matching is.

- AmountCluster / FrequencyPattern: Intermediate detection results.

- DetectedBill: Output of the detection pipeline. A pure projection of the
  transaction history, recomputed on every run.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


DEBIT = "debit"
CREDIT = "credit"

FREQUENCIES = ("weekly", "monthly", "quarterly", "yearly")
STATUSES = ("active", "irregular", "cancelled")


@dataclass(frozen=True)
class Transaction:
    """A single bank-statement line."""

    id: str
    amount: float                    # Signed. Bills are matched on absolute value.
    description: str
    date: date
    merchant: str                    # Raw merchant string as supplied by the bank
    account_id: str
    type: str                        # "debit" | "credit"
    category: Optional[str] = None
    bank_name: Optional[str] = None

    @property
    def is_debit(self) -> bool:
        return self.type == DEBIT


@dataclass(frozen=True)
class MerchantClassification:
    """
    Rule-table classification of a payee.

    variance_tolerance and min_acceptance are carried with the classification
    so downstream stages never re-derive them from `type`.
    """

    type: str                        # "bill" | "retail" | "unknown"
    category: str
    confidence: float
    requires_amount_consistency: bool
    variance_tolerance: float        # Max relative amount difference within a cluster
    min_acceptance: float            # Minimum bill confidence to accept for this merchant

    @property
    def is_retail(self) -> bool:
        return self.type == "retail"


@dataclass(frozen=True)
class AmountCluster:
    """Transactions from one merchant sharing a near-equal amount."""

    representative_amount: float     # Absolute amount of the transaction that seeded the cluster
    transactions: tuple[Transaction, ...] = ()

    @property
    def mean_amount(self) -> float:
        return sum(abs(t.amount) for t in self.transactions) / len(self.transactions)

    def __len__(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True)
class FrequencyPattern:
    """Cadence inferred from the date gaps of a cluster."""

    frequency: str                   # "weekly" | "monthly" | "quarterly" | "yearly"
    confidence: float                # Share of gaps matching the cadence, or a fixed fallback score
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None  # date.weekday(): Monday = 0


@dataclass(frozen=True)
class DetectedBill:
    """
    A recurring payment obligation inferred from transaction history.

    `id` is a composite key (merchant|frequency or merchant|day<N>) so that
    repeated runs over the same input produce the same ids.
    """

    # Identity
    id: str
    name: str
    merchant: str                    # Normalized merchant name
    category: str

    # Amount
    amount: float                    # Cluster mean, rounded to 2dp
    average_amount: float            # Cluster mean, unrounded

    # Cadence & timing
    frequency: str
    next_due_date: date
    last_payment_date: date
    status: str                      # "active" | "irregular" | "cancelled"

    # Source account (taken from the most recent evidence transaction)
    account_id: str
    bank_name: str

    # Confidence
    confidence: float                # 0.0 – 1.0

    # Evidence, newest first
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)

    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None

    @property
    def transaction_ids(self) -> list[str]:
        return [t.id for t in self.transactions]
