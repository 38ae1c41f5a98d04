"""
quick_heuristic.py
-------------------
Instant, history-free check of whether a single new transaction looks like
a bill payment. Used for immediate feedback when a transaction is added.

This is deliberately separate from the batch pipeline: it only sees one
transaction, so it scores keywords and amount shape. The two can disagree
on the same transaction.

Score:
    + keyword_weight per matched keyword (capped at 1.0)
    + round_amount_weight for a whole amount inside round_amount_range
    + price_point_weight for a common subscription price (9.99, 14.99, ...)
    is_bill = score >= bill_threshold
"""

from dataclasses import dataclass

from config.config_loader import get_quick_heuristic_config


@dataclass(frozen=True)
class QuickBillAssessment:
    is_bill: bool
    category: str
    confidence: float


class QuickBillHeuristic:

    def __init__(self):
        config = get_quick_heuristic_config()
        self.keywords = config["keywords"]
        self.categories = config["categories"]
        self.default_category = config["default_category"]
        self.keyword_weight = config["keyword_weight"]
        self.round_amount_weight = config["round_amount_weight"]
        self.round_low, self.round_high = config["round_amount_range"]
        self.price_point_weight = config["price_point_weight"]
        self.price_points = {round(float(p), 2) for p in config["price_points"]}
        self.bill_threshold = config["bill_threshold"]

    def is_likely_bill_payment(self, description: str, amount: float) -> QuickBillAssessment:
        text = (description or "").lower()
        confidence = 0.0
        category = self.default_category

        for keyword in self.keywords:
            if keyword in text:
                confidence = min(confidence + self.keyword_weight, 1.0)
                category = self._category_for(text, category)

        magnitude = abs(amount)
        if magnitude % 1 == 0 and self.round_low <= magnitude <= self.round_high:
            confidence += self.round_amount_weight

        if round(magnitude, 2) in self.price_points:
            confidence += self.price_point_weight

        confidence = round(min(confidence, 1.0), 4)
        return QuickBillAssessment(
            is_bill=confidence >= self.bill_threshold,
            category=category,
            confidence=confidence,
        )

    def _category_for(self, text: str, current: str) -> str:
        for entry in self.categories:
            if any(k in text for k in entry["keywords"]):
                return entry["name"]
        return current
