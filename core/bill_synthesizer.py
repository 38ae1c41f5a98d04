"""
bill_synthesizer.py
--------------------
Builds DetectedBill records from detection intermediates.

Two entry points:
    - synthesize(): cluster + frequency pattern → bill. Confidence is the
      mean of the pattern confidence and the cluster's amount consistency.
    - build_same_day_bill(): same-calendar-day group → monthly bill at a
      fixed confidence.

Both attach a category from the ordered bill_categories table, a display
name, a status and the next due date.
"""

from datetime import date
from typing import Dict, List, Sequence

from core.models import AmountCluster, DetectedBill, FrequencyPattern, Transaction
from core.status_evaluator import StatusEvaluator
from core.due_date_calculator import NextDueDateCalculator
from config.config_loader import get_bill_categories, get_bill_naming_config


class BillSynthesizer:

    def __init__(self, preset: str | None = None):
        self.categories: List[Dict] = get_bill_categories()
        naming = get_bill_naming_config()
        self.default_category = naming["default_category"]
        self.name_suffixes: Dict[str, str] = naming["suffixes"]
        self.default_bank_name = naming["default_bank_name"]
        self.status_evaluator = StatusEvaluator(preset)
        self.due_dates = NextDueDateCalculator()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def synthesize(
        self, merchant: str, cluster: AmountCluster, pattern: FrequencyPattern, now: date
    ) -> DetectedBill:
        """
        Raises:
            DueDateRollError: If the next due date cannot be rolled past `now`.
        """
        evidence = self._newest_first(cluster.transactions)
        latest = evidence[0]
        mean_amount = cluster.mean_amount

        rep = cluster.representative_amount
        amount_consistency = 1 - abs(rep - mean_amount) / rep if rep else 0.0
        confidence = clamp_confidence((pattern.confidence + amount_consistency) / 2)

        category = self.categorize(merchant, latest.description)
        return DetectedBill(
            id=f"{merchant}|{pattern.frequency}",
            name=self.generate_name(merchant, category),
            merchant=merchant,
            category=category,
            amount=round(mean_amount, 2),
            average_amount=mean_amount,
            frequency=pattern.frequency,
            next_due_date=self.due_dates.next_due_date(
                latest.date, pattern.frequency, now, pattern.day_of_month
            ),
            last_payment_date=latest.date,
            status=self.status_evaluator.evaluate(evidence, now),
            account_id=latest.account_id,
            bank_name=latest.bank_name or self.default_bank_name,
            confidence=confidence,
            transactions=evidence,
            day_of_month=pattern.day_of_month,
            day_of_week=pattern.day_of_week,
        )

    def build_same_day_bill(
        self,
        merchant: str,
        transactions: Sequence[Transaction],
        day_of_month: int,
        confidence: float,
        now: date,
    ) -> DetectedBill:
        evidence = self._newest_first(transactions)
        latest = evidence[0]
        mean_amount = sum(abs(t.amount) for t in evidence) / len(evidence)

        category = self.categorize(merchant, latest.description)
        return DetectedBill(
            id=f"{merchant}|day{day_of_month}",
            name=self.generate_name(merchant, category),
            merchant=merchant,
            category=category,
            amount=round(mean_amount, 2),
            average_amount=mean_amount,
            frequency="monthly",
            next_due_date=self.due_dates.next_date_for_day(day_of_month, now),
            last_payment_date=latest.date,
            status=self.status_evaluator.evaluate(evidence, now),
            account_id=latest.account_id,
            bank_name=latest.bank_name or self.default_bank_name,
            confidence=clamp_confidence(confidence),
            transactions=evidence,
            day_of_month=day_of_month,
        )

    def categorize(self, merchant: str, description: str | None) -> str:
        """First category whose keywords appear in merchant + description."""
        text = f"{merchant} {description or ''}".lower()
        for entry in self.categories:
            if any(keyword in text for keyword in entry["keywords"]):
                return entry["name"]
        return self.default_category

    def generate_name(self, merchant: str, category: str) -> str:
        """Title-cased merchant with a category suffix, e.g. 'Netflix Com Subscription'."""
        clean = " ".join(word[:1].upper() + word[1:] for word in merchant.split(" "))
        suffix = self.name_suffixes.get(category)
        return f"{clean} {suffix}" if suffix else clean

    @staticmethod
    def _newest_first(transactions: Sequence[Transaction]) -> tuple[Transaction, ...]:
        return tuple(sorted(transactions, key=lambda t: t.date, reverse=True))


def clamp_confidence(value: float) -> float:
    return round(min(max(value, 0.0), 1.0), 4)
