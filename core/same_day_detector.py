"""
same_day_detector.py
---------------------
Second, independent detection pass: payments that land on the same
calendar day every month.

Catches bills the cluster pass misses, e.g. a direct debit whose amount
drifts more than the merchant's variance tolerance but is always taken on
the 1st. Groups by day of month, then by normalized merchant; a group
qualifies when every amount is within max_amount_spread of the group mean
and it either spans at least one calendar month or has enough occurrences
outright.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Sequence

from core.bill_synthesizer import BillSynthesizer
from core.merchant_normalizer import MerchantNormalizer
from core.models import DetectedBill, Transaction
from config.config_loader import get_same_day_config

logger = logging.getLogger(__name__)


class SameDayDetector:

    def __init__(
        self,
        normalizer: MerchantNormalizer | None = None,
        synthesizer: BillSynthesizer | None = None,
        preset: str | None = None,
    ):
        config = get_same_day_config()
        self.max_amount_spread = config["max_amount_spread"]
        self.min_occurrences = config["min_occurrences"]
        self.min_month_span = config["min_month_span"]
        self.min_occurrences_without_span = config["min_occurrences_without_span"]
        self.confidence = config["confidence"]
        self.normalizer = normalizer or MerchantNormalizer()
        self.synthesizer = synthesizer or BillSynthesizer(preset)

    def detect(self, transactions: Sequence[Transaction], now: date) -> List[DetectedBill]:
        """
        Args:
            transactions: Non-retail debit transactions with valid dates.
            now: Reference date for status and next due date.
        """
        by_day: Dict[int, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            by_day[txn.date.day].append(txn)

        bills: List[DetectedBill] = []
        for day in sorted(by_day):
            day_txns = by_day[day]
            if len(day_txns) < self.min_occurrences:
                continue

            by_merchant: Dict[str, List[Transaction]] = defaultdict(list)
            for txn in day_txns:
                by_merchant[self.normalizer.normalize(txn.merchant)].append(txn)

            for merchant, group in by_merchant.items():
                if len(group) < self.min_occurrences or not self._amounts_consistent(group):
                    continue
                if self._month_span(group) >= self.min_month_span or len(group) >= self.min_occurrences_without_span:
                    logger.debug(f"Same-day candidate: '{merchant}' on day {day} ({len(group)} payments).")
                    bills.append(
                        self.synthesizer.build_same_day_bill(merchant, group, day, self.confidence, now)
                    )

        return bills

    def _amounts_consistent(self, group: Sequence[Transaction]) -> bool:
        amounts = [abs(t.amount) for t in group]
        mean = sum(amounts) / len(amounts)
        if mean == 0:
            return False
        return all(abs(a - mean) / mean <= self.max_amount_spread for a in amounts)

    @staticmethod
    def _month_span(group: Sequence[Transaction]) -> int:
        """Calendar months between the earliest and latest payment."""
        months = [t.date.year * 12 + t.date.month for t in group]
        return max(months) - min(months)
