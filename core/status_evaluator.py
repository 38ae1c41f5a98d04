"""
status_evaluator.py
--------------------
Marks a detected bill active / irregular / cancelled.

    cancelled: no payment for longer than the preset's staleness window
               (180 days for imported history, 60 days for live feeds).
    irregular: the gaps between the most recent payments vary too much
               (population variance above irregular_gap_variance, in day²).
    active:    otherwise.
"""

from datetime import date
from typing import Sequence

import numpy as np

from core.models import Transaction
from config.config_loader import get_detection_config, get_status_config


class StatusEvaluator:

    def __init__(self, preset: str | None = None):
        self.staleness_days = get_detection_config(preset)["staleness_days"]
        config = get_status_config()
        self.recent_window = config["recent_window"]
        self.irregular_gap_variance = config["irregular_gap_variance"]

    def evaluate(self, transactions: Sequence[Transaction], now: date) -> str:
        newest_first = sorted(transactions, key=lambda t: t.date, reverse=True)

        days_since_latest = (now - newest_first[0].date).days
        if days_since_latest > self.staleness_days:
            return "cancelled"

        if len(newest_first) >= self.recent_window:
            recent = newest_first[: self.recent_window]
            gaps = np.array([(recent[i - 1].date - recent[i].date).days for i in range(1, len(recent))])
            if float(np.var(gaps)) > self.irregular_gap_variance:
                return "irregular"

        return "active"
