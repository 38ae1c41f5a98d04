"""
amount_clusterer.py
--------------------
Groups one merchant's debit transactions into amount-similar clusters.

Single-linkage online clustering: transactions are visited in input order,
each joins the first existing cluster whose representative amount is within
the merchant's variance tolerance, otherwise it seeds a new cluster.
Clusters below min_occurrences are discarded.
"""

import logging
from typing import List, Sequence

from core.models import AmountCluster, Transaction
from config.config_loader import get_detection_config

logger = logging.getLogger(__name__)


class AmountClusterer:

    def __init__(self, preset: str | None = None):
        self.min_occurrences = get_detection_config(preset)["min_occurrences"]

    def cluster(
        self, transactions: Sequence[Transaction], variance_tolerance: float
    ) -> List[AmountCluster]:
        """
        Args:
            transactions: Debit transactions for a single normalized merchant.
            variance_tolerance: Max relative difference from a cluster's
                representative amount (e.g. 0.05 = 5%).

        Returns:
            Clusters with at least min_occurrences members, in creation order.
        """
        representatives: List[float] = []
        members: List[List[Transaction]] = []

        for txn in transactions:
            amount = abs(txn.amount)
            for idx, rep in enumerate(representatives):
                if self._relative_difference(amount, rep) <= variance_tolerance:
                    members[idx].append(txn)
                    break
            else:
                representatives.append(amount)
                members.append([txn])

        clusters = [
            AmountCluster(representative_amount=rep, transactions=tuple(group))
            for rep, group in zip(representatives, members)
            if len(group) >= self.min_occurrences
        ]
        logger.debug(
            f"Clustered {len(transactions)} transactions into {len(representatives)} groups, "
            f"{len(clusters)} kept (tolerance={variance_tolerance:.2%})."
        )
        return clusters

    @staticmethod
    def _relative_difference(amount: float, representative: float) -> float:
        if representative == 0:
            return 0.0 if amount == 0 else float("inf")
        return abs(amount - representative) / representative
