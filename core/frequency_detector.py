"""
frequency_detector.py
----------------------
Cadence detection for a single amount cluster.

Logic:
    1. Sort the cluster by date and compute consecutive gaps in days.
    2. Test the canonical cadences (weekly, monthly, quarterly, yearly) in
       order. The first one whose share of matching gaps reaches the preset's
       pattern_match_fraction wins, and that share is the pattern confidence.
    3. Otherwise fall back to a bi-weekly signature (reported as monthly) or,
       for frequent payments with a short mean gap, a low-confidence monthly.
    4. Otherwise there is no pattern and the cluster is discarded.

Tolerances come from the active detection preset in config.yaml.
"""

import numpy as np
from scipy import stats
from typing import Sequence

from core.models import FrequencyPattern, Transaction
from config.config_loader import get_detection_config, get_frequency_fallbacks


class FrequencyDetector:
    """
    Usage:
        detector = FrequencyDetector()
        pattern = detector.detect(cluster.transactions)
    """

    def __init__(self, preset: str | None = None):
        config = get_detection_config(preset)
        self.match_fraction = config["pattern_match_fraction"]
        self.patterns = config["frequency_patterns"]
        self.fallbacks = get_frequency_fallbacks()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def detect(self, transactions: Sequence[Transaction]) -> FrequencyPattern | None:
        if len(transactions) < 2:
            return None

        ordered = sorted(transactions, key=lambda t: t.date)
        gaps = self.day_gaps(ordered)

        for frequency, window in self.patterns.items():
            fit_ratio = self._fit_ratio(gaps, window["expected_days"], window["tolerance_days"])
            if fit_ratio >= self.match_fraction:
                return FrequencyPattern(
                    frequency=frequency,
                    confidence=round(fit_ratio, 4),
                    day_of_month=self._modal([t.date.day for t in ordered]) if frequency == "monthly" else None,
                    day_of_week=self._modal([t.date.weekday() for t in ordered]) if frequency == "weekly" else None,
                )

        return self._detect_fallback(gaps)

    @staticmethod
    def day_gaps(ordered: Sequence[Transaction]) -> np.ndarray:
        """Consecutive gaps in whole days between date-sorted transactions."""
        ordinals = np.array([t.date.toordinal() for t in ordered], dtype=float)
        return np.diff(ordinals)

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _detect_fallback(self, gaps: np.ndarray) -> FrequencyPattern | None:
        biweekly = self.fallbacks["biweekly"]
        if self._fit_ratio(gaps, biweekly["expected_days"], biweekly["tolerance_days"]) >= biweekly["min_match_fraction"]:
            # Bi-weekly payments are tracked as a monthly obligation
            return FrequencyPattern(frequency="monthly", confidence=biweekly["confidence"])

        frequent = self.fallbacks["frequent"]
        if float(np.mean(gaps)) <= frequent["max_mean_gap_days"]:
            return FrequencyPattern(frequency="monthly", confidence=frequent["confidence"])

        return None

    @staticmethod
    def _fit_ratio(gaps: np.ndarray, expected: float, tolerance: float) -> float:
        """Fraction of gaps within ±tolerance of the expected interval."""
        in_window = np.sum(np.abs(gaps - expected) <= tolerance)
        return float(in_window / len(gaps))

    @staticmethod
    def _modal(values: list[int]) -> int:
        """Most frequent value; ties resolve to the smallest."""
        return int(stats.mode(np.array(values), keepdims=False).mode)
