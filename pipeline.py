"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. MerchantClassifier   →  drops retail spending
    2. MerchantNormalizer   →  groups debits by payee
    3. AmountClusterer      →  splits each payee into amount tiers
    4. FrequencyDetector    →  infers cadence per cluster
    5. BillSynthesizer      →  builds DetectedBills (status, next due date)
    6. SameDayDetector      →  independent same-calendar-day pass, unioned in
    7. Acceptance gate      →  per-merchant confidence threshold, then sort

This is the single entry point for running the engine. It is a pure function
of its input list: no hidden state, no I/O, deterministic for a given `now`.

Usage:
    from pipeline import BillDetectionPipeline

    pipeline = BillDetectionPipeline()
    bills = pipeline.run(transactions)
"""

import logging
from collections import defaultdict
from dataclasses import replace
from datetime import date, datetime
from typing import Dict, List, Sequence

import pandas as pd

from core.amount_clusterer import AmountClusterer
from core.bill_synthesizer import BillSynthesizer
from core.due_date_calculator import DueDateRollError
from core.frequency_detector import FrequencyDetector
from core.merchant_classifier import MerchantClassifier
from core.merchant_normalizer import MerchantNormalizer
from core.models import DetectedBill, MerchantClassification, Transaction
from core.same_day_detector import SameDayDetector
from core.transactions import bills_to_frame, transactions_from_frame
from config.config_loader import get_active_preset_name, get_detection_config

logger = logging.getLogger(__name__)


class BillDetectionPipeline:
    """
    End-to-end recurring-bill detection.

    Orchestrates classification → grouping → clustering → cadence →
    synthesis → acceptance without exposing internal objects to callers.
    """

    def __init__(self, preset: str | None = None):
        """
        Args:
            preset: Detection preset name from config.yaml. Defaults to
                `active_preset`.
        """
        self.preset = preset or get_active_preset_name()
        self.config = get_detection_config(self.preset)
        self.min_confidence = self.config["min_confidence"]

        self.normalizer = MerchantNormalizer()
        self.classifier = MerchantClassifier()
        self.clusterer = AmountClusterer(self.preset)
        self.frequency_detector = FrequencyDetector(self.preset)
        self.synthesizer = BillSynthesizer(self.preset)
        self.same_day_detector = SameDayDetector(self.normalizer, self.synthesizer, self.preset)

        logger.info(
            f"Pipeline initialized. Preset: {self.preset} "
            f"(match fraction {self.config['pattern_match_fraction']}, "
            f"staleness {self.config['staleness_days']} days)."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, transactions: Sequence[Transaction], now: date | None = None) -> List[DetectedBill]:
        """
        Run the full detection pipeline.

        Args:
            transactions: Transaction records in any order.
            now: Reference date for status and next due dates. Defaults to today.

        Returns:
            Accepted bills sorted by confidence descending. Ties keep their
            detection order.
        """
        now = now or date.today()
        logger.info(f"Pipeline starting. Input: {len(transactions):,} transactions.")

        # --- Stage 1: Debits with valid dates, retail excluded ---
        eligible, classifications = self._prepare(transactions)
        logger.info(f"Stage 1 complete. Eligible debits: {len(eligible):,}.")

        # --- Stage 2: Cluster-based detection per merchant ---
        groups = self._group_by_merchant(eligible)
        candidates = self._detect_from_clusters(groups, classifications, now)
        logger.info(
            f"Stage 2 complete. Merchants: {len(groups):,}. Cluster candidates: {len(candidates):,}."
        )

        # --- Stage 3: Same-calendar-day pass, unioned ---
        same_day = self._union_same_day(candidates, self.same_day_detector.detect(eligible, now))
        candidates.extend(same_day)
        logger.info(f"Stage 3 complete. Same-day candidates added: {len(same_day):,}.")

        # --- Stage 4: Acceptance gate + ordering ---
        accepted = [bill for bill in candidates if self._accept(bill)]
        accepted.sort(key=lambda bill: bill.confidence, reverse=True)
        logger.info(f"Pipeline complete. Bills detected: {len(accepted):,}.")

        return accepted

    def run_frame(self, transactions: pd.DataFrame, now: date | None = None) -> pd.DataFrame:
        """Runs the pipeline on a transactions DataFrame and returns a bills DataFrame."""
        return self.to_frame(self.run(transactions_from_frame(transactions), now=now))

    @staticmethod
    def to_frame(bills: Sequence[DetectedBill]) -> pd.DataFrame:
        return bills_to_frame(bills)

    # -------------------------------------------------------------------------
    # INTERNAL: PREPARATION
    # -------------------------------------------------------------------------

    def _prepare(
        self, transactions: Sequence[Transaction]
    ) -> tuple[List[Transaction], Dict[str, MerchantClassification]]:
        """
        Keeps debit transactions with a usable date whose merchant is not
        retail. Timestamps are truncated to their calendar date. Returns the
        kept transactions with the classification of each normalized
        merchant, taken from its first eligible transaction (used for the
        amount tolerance).
        """
        eligible: List[Transaction] = []
        classifications: Dict[str, MerchantClassification] = {}
        skipped_dates = 0
        excluded_retail = 0

        for txn in transactions:
            if not txn.is_debit:
                continue
            if isinstance(txn.date, datetime):
                txn = replace(txn, date=txn.date.date())
            elif not isinstance(txn.date, date):
                skipped_dates += 1
                continue

            classification = self.classifier.classify(txn.merchant, txn.description)
            if classification.is_retail:
                excluded_retail += 1
                continue

            classifications.setdefault(self.normalizer.normalize(txn.merchant), classification)
            eligible.append(txn)

        if skipped_dates:
            logger.warning(f"Skipped {skipped_dates:,} debit transactions without a valid date.")
        logger.debug(f"Excluded {excluded_retail:,} retail transactions.")
        return eligible, classifications

    def _group_by_merchant(self, transactions: Sequence[Transaction]) -> Dict[str, List[Transaction]]:
        groups: Dict[str, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            groups[self.normalizer.normalize(txn.merchant)].append(txn)
        return groups

    # -------------------------------------------------------------------------
    # INTERNAL: DETECTION
    # -------------------------------------------------------------------------

    def _detect_from_clusters(
        self,
        groups: Dict[str, List[Transaction]],
        classifications: Dict[str, MerchantClassification],
        now: date,
    ) -> List[DetectedBill]:
        bills: List[DetectedBill] = []

        for merchant, group in groups.items():
            if len(group) < self.clusterer.min_occurrences:
                continue

            tolerance = self.classifier.get_amount_variance_threshold(classifications[merchant])
            for cluster in self.clusterer.cluster(group, tolerance):
                pattern = self.frequency_detector.detect(cluster.transactions)
                if pattern is None:
                    logger.debug(f"No cadence for '{merchant}' at {cluster.representative_amount:.2f}.")
                    continue
                try:
                    bills.append(self.synthesizer.synthesize(merchant, cluster, pattern, now))
                except DueDateRollError as exc:
                    logger.warning(f"Dropping '{merchant}' {pattern.frequency} candidate: {exc}")

        return bills

    @staticmethod
    def _union_same_day(
        cluster_bills: Sequence[DetectedBill], same_day_bills: Sequence[DetectedBill]
    ) -> List[DetectedBill]:
        """
        Same-day candidates already covered by a monthly cluster bill for the
        same merchant describe the same obligation and are dropped.
        """
        covered: Dict[str, List[set]] = defaultdict(list)
        for bill in cluster_bills:
            if bill.frequency == "monthly":
                covered[bill.merchant].append(set(bill.transaction_ids))

        return [
            bill for bill in same_day_bills
            if not any(set(bill.transaction_ids) <= ids for ids in covered[bill.merchant])
        ]

    def _accept(self, bill: DetectedBill) -> bool:
        # Gated on the merchant as emitted; descriptions only shape clustering
        classification = self.classifier.classify(bill.merchant)
        if classification.is_retail:
            return False
        threshold = max(self.classifier.get_min_confidence_threshold(classification), self.min_confidence)
        passes = bill.confidence >= threshold
        if not passes:
            logger.debug(
                f"Filtered out '{bill.merchant}' ({bill.id}): confidence {bill.confidence:.2f} "
                f"< threshold {threshold:.2f} ({classification.type})."
            )
        return passes


def detect_bills(transactions: Sequence[Transaction], now: date | None = None) -> List[DetectedBill]:
    """Convenience wrapper: runs a default-preset pipeline once."""
    return BillDetectionPipeline().run(transactions, now=now)
