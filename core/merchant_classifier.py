"""
merchant_classifier.py
-----------------------
Merchant classification layer.

Separates variable retail spending from genuine recurring bills before any
clustering happens. Classification is a pure function of
(merchant, description), driven by the ordered rule tiers in config.yaml:

    1. retail_exclusion  → "retail"  (never accepted as a bill)
    2. bill_inclusion    → "bill"
    3. payment_method    → "bill"    (description patterns like "direct debit")
    4. fallthrough       → "unknown" (stricter amount matching, higher bar)

The first tier with a matching pattern wins. Rule updates happen in
config.yaml; no code changes required.
"""

import re
from typing import Dict, List

from core.models import MerchantClassification
from config.config_loader import get_classification_config


class MerchantClassifier:
    """
    Rule-table merchant classifier.

    Built once at init from the config tables. Thread-safe for reads.

    Usage:
        classifier = MerchantClassifier()
        classification = classifier.classify("NETFLIX.COM", "Monthly plan")
    """

    def __init__(self):
        config = get_classification_config()
        self._tiers: List[Dict] = [self._compile_tier(tier) for tier in config["tiers"]]
        self._unknown = config["unknown"]
        self._retail_categories = config["retail_categories"]
        self._retail_default = config["retail_default_category"]
        self._bill_categories = config["bill_categories"]
        self._bill_default = config["bill_default_category"]

    @staticmethod
    def _compile_tier(tier: Dict) -> Dict:
        """Pre-compiles word-boundary patterns; substring tiers are kept as plain strings."""
        compiled = dict(tier)
        if tier["match"] == "word":
            compiled["regexes"] = [
                re.compile(r"\b" + re.escape(p) + r"\b") for p in tier["patterns"]
            ]
        return compiled

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def classify(self, merchant: str, description: str | None = None) -> MerchantClassification:
        """
        Classify a merchant for bill-detection eligibility.

        Args:
            merchant: Raw merchant string.
            description: Optional transaction description.

        Returns:
            MerchantClassification for the first matching tier, or the
            "unknown" classification when nothing matches.
        """
        merchant_text = " ".join((merchant or "").lower().split())
        full_text = f"{merchant_text} {(description or '').lower()}".strip()

        for tier in self._tiers:
            if self._tier_matches(tier, merchant_text, full_text):
                return MerchantClassification(
                    type=tier["type"],
                    category=self._categorize(tier["type"], merchant_text, full_text),
                    confidence=tier["confidence"],
                    requires_amount_consistency=tier["type"] != "retail",
                    variance_tolerance=tier["variance_tolerance"],
                    min_acceptance=tier["min_acceptance"],
                )

        return MerchantClassification(
            type=self._unknown["type"],
            category=self._unknown["category"],
            confidence=self._unknown["confidence"],
            requires_amount_consistency=True,
            variance_tolerance=self._unknown["variance_tolerance"],
            min_acceptance=self._unknown["min_acceptance"],
        )

    def should_exclude_from_bills(self, merchant: str, description: str | None = None) -> bool:
        """Retail merchants are dropped before clustering."""
        return self.classify(merchant, description).is_retail

    @staticmethod
    def get_min_confidence_threshold(classification: MerchantClassification) -> float:
        return classification.min_acceptance

    @staticmethod
    def get_amount_variance_threshold(classification: MerchantClassification) -> float:
        return classification.variance_tolerance

    # -------------------------------------------------------------------------
    # INTERNAL: MATCHING
    # -------------------------------------------------------------------------

    @staticmethod
    def _tier_matches(tier: Dict, merchant_text: str, full_text: str) -> bool:
        if tier["match"] == "word":
            return any(regex.search(full_text) for regex in tier["regexes"])
        return any(p in merchant_text or p in full_text for p in tier["patterns"])

    def _categorize(self, classification_type: str, merchant_text: str, full_text: str) -> str:
        if classification_type == "retail":
            # Retail categories look at the merchant only
            return self._first_category(self._retail_categories, merchant_text, self._retail_default)
        return self._first_category(
            self._bill_categories, f"{merchant_text} {full_text}", self._bill_default
        )

    @staticmethod
    def _first_category(table: List[Dict], text: str, default: str) -> str:
        for entry in table:
            if any(keyword in text for keyword in entry["keywords"]):
                return entry["name"]
        return default
