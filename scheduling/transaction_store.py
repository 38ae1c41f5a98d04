"""
transaction_store.py
---------------------
Boundary to the Transaction Store collaborator.

The scheduler only needs one call: fetch the most recent N transactions.
Anything that implements `fetch_transactions(limit)` can be injected; a
DataFrame-backed store is provided for the CLI and tests.
"""

from typing import List, Protocol, Sequence

import pandas as pd

from core.models import Transaction
from core.transactions import transactions_from_frame


class TransactionStore(Protocol):

    def fetch_transactions(self, limit: int) -> Sequence[Transaction]:
        """Return up to `limit` transactions, newest first."""
        ...


class DataFrameTransactionStore:
    """
    Serves transactions from an in-memory DataFrame.

    Usage:
        store = DataFrameTransactionStore(pd.read_csv("transactions.csv"))
        recent = store.fetch_transactions(limit=2000)
    """

    def __init__(self, transactions: pd.DataFrame):
        self._records = sorted(
            transactions_from_frame(transactions), key=lambda t: t.date, reverse=True
        )
        self.fetch_count = 0

    def fetch_transactions(self, limit: int) -> List[Transaction]:
        self.fetch_count += 1
        return self._records[:limit]

    def __len__(self) -> int:
        return len(self._records)
