"""
detection_monitor.py
---------------------
Health checks for a bill detection run.

Monitoring dimensions:
    1. Unknown merchant ratio: share of eligible debits that matched no
       classification rule. A high ratio points at gaps in the keyword tables.
    2. Retail exclusion ratio: share of debits dropped as retail.
    3. Low-confidence share: share of accepted bills near the threshold.
    4. Volume: bill count compared with a previous run.
    5. Amount distribution: KS test (SciPy) and PSI between the bill
       amounts of a previous run and the current one.

PSI thresholds follow the usual convention: <0.1 stable, 0.1–0.25 minor
shift, >0.25 major shift. All thresholds come from config.yaml.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Sequence

import numpy as np
from scipy import stats

from core.merchant_classifier import MerchantClassifier
from core.models import DetectedBill, Transaction
from config.config_loader import get_monitoring_config


@dataclass
class MonitorAlert:
    """A single monitoring alert."""
    alert_type: str                  # "UNKNOWN_MERCHANT" | "RETAIL_EXCLUSION" | "LOW_CONFIDENCE" | "VOLUME" | "AMOUNT_DISTRIBUTION"
    severity: str                    # "INFO" | "WARNING" | "CRITICAL"
    metric_name: str
    metric_value: float
    threshold: float
    message: str
    detected_at: str = ""            # ISO timestamp


@dataclass
class DetectionReport:
    """Monitoring report, one per detection run."""
    run_timestamp: str
    alerts: List[MonitorAlert] = field(default_factory=list)
    summary: dict = field(default_factory=dict)


class DetectionMonitor:
    """
    Usage:
        monitor = DetectionMonitor()
        report = monitor.run(bills, transactions, previous_bills=last_run)
    """

    def __init__(self, classifier: MerchantClassifier | None = None):
        self.config = get_monitoring_config()
        self.classifier = classifier or MerchantClassifier()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(
        self,
        bills: Sequence[DetectedBill],
        transactions: Sequence[Transaction],
        previous_bills: Sequence[DetectedBill] | None = None,
    ) -> DetectionReport:
        now = datetime.now().isoformat()
        alerts: List[MonitorAlert] = []

        debits = [t for t in transactions if t.is_debit]
        types = [self.classifier.classify(t.merchant, t.description).type for t in debits]
        retail_count = types.count("retail")
        unknown_count = types.count("unknown")
        eligible_count = len(debits) - retail_count

        alerts.extend(self._check_unknown_ratio(unknown_count, eligible_count, now))
        alerts.extend(self._check_retail_ratio(retail_count, len(debits), now))
        alerts.extend(self._check_low_confidence(bills, now))

        if previous_bills is not None:
            alerts.extend(self._check_volume(len(previous_bills), len(bills), now))
            alerts.extend(self._check_amount_drift(
                np.array([b.amount for b in previous_bills]),
                np.array([b.amount for b in bills]),
                now,
            ))

        summary = {
            "total_alerts": len(alerts),
            "critical_alerts": sum(1 for a in alerts if a.severity == "CRITICAL"),
            "warning_alerts": sum(1 for a in alerts if a.severity == "WARNING"),
            "info_alerts": sum(1 for a in alerts if a.severity == "INFO"),
            "bills": len(bills),
            "debits": len(debits),
            "retail_debits": retail_count,
            "unknown_debits": unknown_count,
        }
        return DetectionReport(run_timestamp=now, alerts=alerts, summary=summary)

    # -------------------------------------------------------------------------
    # INTERNAL: RATIO CHECKS
    # -------------------------------------------------------------------------

    def _check_unknown_ratio(self, unknown: int, eligible: int, now: str) -> List[MonitorAlert]:
        if eligible == 0:
            return []
        ratio = unknown / eligible
        threshold = self.config["unknown_merchant_ratio_warning"]
        if ratio <= threshold:
            return []
        return [MonitorAlert(
            alert_type="UNKNOWN_MERCHANT",
            severity="WARNING",
            metric_name="unknown_merchant_ratio",
            metric_value=round(ratio, 3),
            threshold=threshold,
            message=(
                f"{unknown:,} of {eligible:,} eligible debits matched no classification rule "
                f"({ratio:.0%}). Review the merchant keyword tables."
            ),
            detected_at=now,
        )]

    def _check_retail_ratio(self, retail: int, debits: int, now: str) -> List[MonitorAlert]:
        if debits == 0:
            return []
        ratio = retail / debits
        threshold = self.config["retail_exclusion_ratio_info"]
        if ratio <= threshold:
            return []
        return [MonitorAlert(
            alert_type="RETAIL_EXCLUSION",
            severity="INFO",
            metric_name="retail_exclusion_ratio",
            metric_value=round(ratio, 3),
            threshold=threshold,
            message=f"{ratio:.0%} of debits were excluded as retail spending.",
            detected_at=now,
        )]

    def _check_low_confidence(self, bills: Sequence[DetectedBill], now: str) -> List[MonitorAlert]:
        if not bills:
            return []
        cutoff = self.config["low_confidence_threshold"]
        share = sum(1 for b in bills if b.confidence < cutoff) / len(bills)
        threshold = self.config["low_confidence_share_warning"]
        if share <= threshold:
            return []
        return [MonitorAlert(
            alert_type="LOW_CONFIDENCE",
            severity="WARNING",
            metric_name="low_confidence_share",
            metric_value=round(share, 3),
            threshold=threshold,
            message=f"{share:.0%} of detected bills have confidence below {cutoff:.2f}.",
            detected_at=now,
        )]

    # -------------------------------------------------------------------------
    # INTERNAL: RUN-OVER-RUN DRIFT
    # -------------------------------------------------------------------------

    def _check_volume(self, previous: int, current: int, now: str) -> List[MonitorAlert]:
        if previous == 0:
            return []  # No baseline to compare against

        ratio = current / previous
        warning = self.config["volume_ratio_warning"]
        critical = self.config["volume_ratio_critical"]
        if 1 / warning <= ratio <= warning:
            return []

        severity = "CRITICAL" if (ratio > critical or ratio < 1 / critical) else "WARNING"
        return [MonitorAlert(
            alert_type="VOLUME",
            severity=severity,
            metric_name="bill_count_ratio",
            metric_value=round(ratio, 3),
            threshold=warning,
            message=(
                f"Detected bill count changed by {((ratio - 1) * 100):+.0f}% "
                f"({previous:,} → {current:,})."
            ),
            detected_at=now,
        )]

    def _check_amount_drift(self, baseline: np.ndarray, comparison: np.ndarray, now: str) -> List[MonitorAlert]:
        alerts: List[MonitorAlert] = []

        # Need minimum samples for meaningful tests
        if len(baseline) < self.config["min_baseline_bills"] or len(comparison) < self.config["min_comparison_bills"]:
            return alerts

        ks_stat, ks_pvalue = stats.ks_2samp(baseline, comparison)
        if ks_pvalue < self.config["ks_alpha"]:
            alerts.append(MonitorAlert(
                alert_type="AMOUNT_DISTRIBUTION",
                severity="WARNING",
                metric_name="ks_p_value",
                metric_value=round(float(ks_pvalue), 4),
                threshold=self.config["ks_alpha"],
                message=f"Bill amount distribution shifted. KS statistic={ks_stat:.3f}, p-value={ks_pvalue:.4f}.",
                detected_at=now,
            ))

        psi = self.compute_psi(baseline, comparison)
        if psi > self.config["psi_minor"]:
            major = psi > self.config["psi_major"]
            alerts.append(MonitorAlert(
                alert_type="AMOUNT_DISTRIBUTION",
                severity="CRITICAL" if major else "WARNING",
                metric_name="psi",
                metric_value=round(psi, 4),
                threshold=self.config["psi_major"] if major else self.config["psi_minor"],
                message=f"PSI={psi:.3f} on bill amounts ({'major' if major else 'minor'} shift).",
                detected_at=now,
            ))

        return alerts

    @staticmethod
    def compute_psi(baseline: np.ndarray, comparison: np.ndarray, n_bins: int = 10) -> float:
        """
        Population Stability Index between two distributions, with bin edges
        taken from baseline percentiles.
        """
        bin_edges = np.unique(np.percentile(baseline, np.linspace(0, 100, n_bins + 1)))
        if len(bin_edges) < 3:
            return 0.0  # Not enough variation to compute PSI

        baseline_counts, _ = np.histogram(baseline, bins=bin_edges)
        comparison_counts, _ = np.histogram(comparison, bins=bin_edges)

        # Epsilon avoids log(0)
        eps = 1e-6
        baseline_freq = (baseline_counts + eps) / (baseline_counts.sum() + eps * len(baseline_counts))
        comparison_freq = (comparison_counts + eps) / (comparison_counts.sum() + eps * len(comparison_counts))

        return float(np.sum((comparison_freq - baseline_freq) * np.log(comparison_freq / baseline_freq)))
