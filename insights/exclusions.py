"""
exclusions.py
--------------
Caller-side filtering of detected bills against the user's exclusion list.

The detection pipeline never looks at exclusions: a user marking "this is
not a bill" only suppresses it in the output, it does not change detection.
Callers run the pipeline, then pass the result through apply_exclusions().
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.merchant_normalizer import normalize_merchant_name
from core.models import DetectedBill
from config.config_loader import get_bill_insights_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BillExclusion:
    """A user-declared 'not a bill'. Unset fields match anything."""

    merchant: str
    amount: Optional[float] = None
    category: Optional[str] = None
    reason: Optional[str] = None


def apply_exclusions(
    bills: Sequence[DetectedBill], exclusions: Sequence[BillExclusion]
) -> List[DetectedBill]:
    """
    Drops bills matched by any exclusion. Merchants are compared in
    normalized form; amounts match within exclusion_amount_tolerance.
    """
    if not exclusions:
        return list(bills)

    tolerance = get_bill_insights_config()["exclusion_amount_tolerance"]
    kept = []
    for bill in bills:
        match = next((e for e in exclusions if _matches(bill, e, tolerance)), None)
        if match is None:
            kept.append(bill)
        else:
            logger.info(f"Excluding bill '{bill.name}' ({bill.id}): {match.reason or 'user exclusion'}.")
    return kept


def _matches(bill: DetectedBill, exclusion: BillExclusion, tolerance: float) -> bool:
    if normalize_merchant_name(exclusion.merchant) != normalize_merchant_name(bill.merchant):
        return False
    if exclusion.category is not None and exclusion.category.lower() != bill.category.lower():
        return False
    if exclusion.amount is not None:
        reference = abs(exclusion.amount)
        if reference == 0 or abs(bill.amount - reference) / reference > tolerance:
            return False
    return True
