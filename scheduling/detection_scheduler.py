"""
detection_scheduler.py
-----------------------
Cooldown wrapper around the detection pipeline.

Callers trigger detection after every transaction change (manual entry,
imports, app resume). Re-analysing 2,000 transactions each time is wasted
work, so a non-forced trigger within the cooldown of the last successful run
returns an empty result without fetching. `force=True` bypasses the gate.

The last-run instant is the only shared mutable state. The check, fetch,
run and update happen under one lock so overlapping callers cannot both
pass the gate. Construct one scheduler per process (or per user) and pass
it where needed.

Fetch failures propagate to the caller unchanged and do not start a new
cooldown; retry policy belongs to the caller.
"""

import logging
import threading
import time
from typing import Callable, List

from core.models import DetectedBill
from core.quick_heuristic import QuickBillAssessment, QuickBillHeuristic
from pipeline import BillDetectionPipeline
from scheduling.transaction_store import TransactionStore
from config.config_loader import get_scheduler_config

logger = logging.getLogger(__name__)


class BillDetectionScheduler:
    """
    Usage:
        scheduler = BillDetectionScheduler(store)
        bills = scheduler.trigger_bill_detection()
        bills = scheduler.trigger_bill_detection(force=True)
    """

    def __init__(
        self,
        store: TransactionStore,
        pipeline: BillDetectionPipeline | None = None,
        cooldown_seconds: float | None = None,
        fetch_limit: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        heuristic: QuickBillHeuristic | None = None,
    ):
        config = get_scheduler_config()
        self.store = store
        self.pipeline = pipeline or BillDetectionPipeline()
        self.cooldown_seconds = config["cooldown_seconds"] if cooldown_seconds is None else cooldown_seconds
        self.fetch_limit = config["fetch_limit"] if fetch_limit is None else fetch_limit
        self.heuristic = heuristic or QuickBillHeuristic()
        self._clock = clock
        self._lock = threading.Lock()
        self._last_run: float | None = None

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def trigger_bill_detection(self, force: bool = False) -> List[DetectedBill]:
        """
        Fetch recent transactions and run detection, unless a non-forced call
        lands inside the cooldown window, in which case return [].
        """
        with self._lock:
            started = self._clock()
            if not force and self._in_cooldown(started):
                logger.info("Skipping bill detection: cooldown period active.")
                return []

            transactions = self.store.fetch_transactions(limit=self.fetch_limit)
            if not transactions:
                logger.info("No transactions available for bill detection.")
                bills: List[DetectedBill] = []
            else:
                bills = self.pipeline.run(transactions)

            self._last_run = started
            logger.info(f"Bill detection complete: {len(bills):,} bills from {len(transactions):,} transactions.")
            return bills

    def get_current_bills(self) -> List[DetectedBill]:
        """Non-forced detection; honours the cooldown."""
        return self.trigger_bill_detection(force=False)

    def refresh_after_transaction_changes(self, transaction_count: int | None = None) -> List[DetectedBill]:
        """Forced detection after imports or bulk adds."""
        logger.info(f"Refreshing bills after transaction changes (count={transaction_count}).")
        return self.trigger_bill_detection(force=True)

    def is_likely_bill_payment(self, description: str, amount: float) -> QuickBillAssessment:
        return self.heuristic.is_likely_bill_payment(description, amount)

    def reset(self) -> None:
        """Forget the last run, e.g. when the user logs out or switches accounts."""
        with self._lock:
            self._last_run = None

    # -------------------------------------------------------------------------
    # INTERNAL
    # -------------------------------------------------------------------------

    def _in_cooldown(self, now: float) -> bool:
        return self._last_run is not None and now - self._last_run < self.cooldown_seconds
