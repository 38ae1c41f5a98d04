"""
test_insights.py
-----------------
Tests for the bill-list views, user exclusions and detection monitoring.

Run from the project root:
    python -m pytest tests/test_insights.py -v
"""

import sys
import os
import pytest
import numpy as np
from datetime import date, timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from config.config_loader import reset_config
from core.models import DEBIT, DetectedBill, Transaction
from insights.bill_insights import (
    calculate_monthly_total, get_bill_priority, get_bills_by_category,
    get_bills_by_priority, get_due_soon, get_monthly_amount, get_upcoming_bills,
)
from insights.exclusions import BillExclusion, apply_exclusions
from monitoring.detection_monitor import DetectionMonitor


NOW = date(2026, 10, 18)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def reset_config_cache():
    reset_config()
    yield
    reset_config()


def _bill(
    merchant: str = "netflix com",
    amount: float = 45.0,
    frequency: str = "monthly",
    category: str = "Subscriptions",
    status: str = "active",
    due_in_days: int = 10,
    confidence: float = 0.9,
    day_of_month: int | None = None,
) -> DetectedBill:
    """Helper: creates a DetectedBill directly for insight tests."""
    return DetectedBill(
        id=f"{merchant}|{frequency}",
        name=merchant.title(),
        merchant=merchant,
        category=category,
        amount=amount,
        average_amount=amount,
        frequency=frequency,
        next_due_date=NOW + timedelta(days=due_in_days),
        last_payment_date=NOW - timedelta(days=20),
        status=status,
        account_id="ACC001",
        bank_name="Unknown Bank",
        confidence=confidence,
        day_of_month=day_of_month,
    )


def _debit(txn_id: str, merchant: str, amount: float = 20.0) -> Transaction:
    return Transaction(
        id=txn_id, amount=amount, description=merchant, date=NOW,
        merchant=merchant, account_id="ACC001", type=DEBIT,
    )


# =============================================================================
# BILL INSIGHTS TESTS
# =============================================================================

class TestMonthlyAmounts:
    def test_cadence_factors(self):
        assert get_monthly_amount(_bill(amount=10.0, frequency="weekly")) == pytest.approx(43.3)
        assert get_monthly_amount(_bill(amount=45.0)) == pytest.approx(45.0)
        assert get_monthly_amount(_bill(amount=90.0, frequency="quarterly")) == pytest.approx(30.0)
        assert get_monthly_amount(_bill(amount=120.0, frequency="yearly")) == pytest.approx(10.0)

    def test_monthly_total_rounded(self):
        bills = [_bill(amount=9.99), _bill(amount=10.0, frequency="weekly")]
        assert calculate_monthly_total(bills) == 53.29

    def test_empty_total(self):
        assert calculate_monthly_total([]) == 0


class TestPriority:
    def test_priority_components(self):
        # Utilities 100 + amount band (>50) 5 + monthly 10 + due in 5 days 15 + 0.5 * 10
        bill = _bill(category="Utilities", amount=60.0, due_in_days=5, confidence=0.5)
        assert get_bill_priority(bill, NOW) == pytest.approx(135.0)

    def test_unlisted_category_uses_default(self):
        bill = _bill(category="Other", amount=20.0, due_in_days=20, confidence=0.0)
        assert get_bill_priority(bill, NOW) == pytest.approx(30 + 10)

    def test_essentials_first(self):
        rent = _bill(merchant="riverside lettings", category="Housing", amount=1200.0, due_in_days=2)
        streaming = _bill(merchant="netflix com", amount=9.99, due_in_days=1)
        gym = _bill(merchant="puregym", category="Fitness", amount=30.0, due_in_days=25)

        ordered = get_bills_by_priority([gym, streaming, rent], NOW)
        assert [b.merchant for b in ordered] == ["riverside lettings", "netflix com", "puregym"]

    def test_group_by_category(self):
        bills = [_bill(), _bill(merchant="spotify"), _bill(merchant="aviva", category="Insurance")]
        grouped = get_bills_by_category(bills)
        assert set(grouped) == {"Subscriptions", "Insurance"}
        assert len(grouped["Subscriptions"]) == 2


class TestUpcoming:
    def test_window_and_order(self):
        soon = _bill(merchant="spotify", due_in_days=3)
        later = _bill(merchant="netflix com", due_in_days=12)
        outside = _bill(merchant="aviva", due_in_days=45)
        cancelled = _bill(merchant="puregym", due_in_days=5, status="cancelled")

        upcoming = get_upcoming_bills([later, outside, cancelled, soon], now=NOW)
        assert [b.merchant for b in upcoming] == ["spotify", "netflix com"]

    def test_past_due_dates_are_rolled_forward(self):
        stale = _bill(due_in_days=-3, day_of_month=15)
        upcoming = get_upcoming_bills([stale], now=NOW)

        assert len(upcoming) == 1
        assert upcoming[0].next_due_date == date(2026, 11, 15)
        assert stale.next_due_date == date(2026, 10, 15)

    def test_custom_window(self):
        bills = [_bill(due_in_days=10)]
        assert get_upcoming_bills(bills, days=7, now=NOW) == []

    def test_due_soon(self):
        bills = [
            _bill(merchant="spotify", due_in_days=0),
            _bill(merchant="netflix com", due_in_days=7),
            _bill(merchant="aviva", due_in_days=8),
            _bill(merchant="puregym", due_in_days=2, status="irregular"),
        ]
        assert [b.merchant for b in get_due_soon(bills, now=NOW)] == ["spotify", "netflix com"]


# =============================================================================
# EXCLUSION TESTS
# =============================================================================

class TestExclusions:
    def test_merchant_matched_in_normalized_form(self):
        bills = [_bill(), _bill(merchant="spotify")]
        kept = apply_exclusions(bills, [BillExclusion(merchant="NETFLIX.COM", reason="shared account")])
        assert [b.merchant for b in kept] == ["spotify"]

    def test_amount_tolerance(self):
        bills = [_bill(amount=45.0)]
        assert apply_exclusions(bills, [BillExclusion(merchant="netflix com", amount=46.0)]) == []
        assert len(apply_exclusions(bills, [BillExclusion(merchant="netflix com", amount=60.0)])) == 1

    def test_category_must_match_when_set(self):
        bills = [_bill()]
        assert len(apply_exclusions(bills, [BillExclusion(merchant="netflix com", category="Utilities")])) == 1
        assert apply_exclusions(bills, [BillExclusion(merchant="netflix com", category="subscriptions")]) == []

    def test_no_exclusions_keeps_everything(self):
        bills = [_bill(), _bill(merchant="spotify")]
        assert apply_exclusions(bills, []) == bills


# =============================================================================
# DETECTION MONITOR TESTS
# =============================================================================

class TestDetectionMonitor:
    def test_unknown_merchant_ratio(self):
        txns = [_debit(f"U{i}", "ZXQ HOLDINGS") for i in range(3)] + [_debit("N1", "NETFLIX.COM")]
        report = DetectionMonitor().run([], txns)

        alerts = [a for a in report.alerts if a.alert_type == "UNKNOWN_MERCHANT"]
        assert len(alerts) == 1
        assert alerts[0].severity == "WARNING"
        assert alerts[0].metric_value == pytest.approx(0.75)
        assert report.summary["unknown_debits"] == 3

    def test_retail_ratio(self):
        txns = [_debit(f"R{i}", "TESCO STORES") for i in range(9)] + [_debit("N1", "NETFLIX.COM")]
        report = DetectionMonitor().run([], txns)

        alerts = [a for a in report.alerts if a.alert_type == "RETAIL_EXCLUSION"]
        assert len(alerts) == 1
        assert alerts[0].severity == "INFO"
        assert report.summary["retail_debits"] == 9
        assert report.summary["debits"] == 10

    def test_low_confidence_share(self):
        bills = [_bill(confidence=0.4), _bill(confidence=0.45), _bill(confidence=0.9)]
        report = DetectionMonitor().run(bills, [])
        assert [a.alert_type for a in report.alerts] == ["LOW_CONFIDENCE"]

    def test_volume_change(self):
        previous = [_bill(merchant=f"m{i}") for i in range(10)]
        current = [_bill(merchant=f"m{i}") for i in range(25)]
        report = DetectionMonitor().run(current, [], previous_bills=previous)

        volume = [a for a in report.alerts if a.alert_type == "VOLUME"]
        assert len(volume) == 1
        assert volume[0].severity == "CRITICAL"

    def test_stable_volume_no_alert(self):
        previous = [_bill(merchant=f"m{i}") for i in range(10)]
        current = [_bill(merchant=f"m{i}") for i in range(12)]
        report = DetectionMonitor().run(current, [], previous_bills=previous)
        assert not [a for a in report.alerts if a.alert_type == "VOLUME"]

    def test_amount_distribution_shift(self):
        previous = [_bill(merchant=f"m{i}", amount=float(10 + i)) for i in range(20)]
        current = [_bill(merchant=f"m{i}", amount=28.0) for i in range(10)]
        report = DetectionMonitor().run(current, [], previous_bills=previous)

        metrics = {a.metric_name: a for a in report.alerts if a.alert_type == "AMOUNT_DISTRIBUTION"}
        assert "ks_p_value" in metrics
        assert metrics["psi"].severity == "CRITICAL"

    def test_drift_needs_enough_bills(self):
        previous = [_bill(merchant=f"m{i}", amount=float(10 + i)) for i in range(5)]
        current = [_bill(merchant=f"m{i}", amount=500.0) for i in range(5)]
        report = DetectionMonitor().run(current, [], previous_bills=previous)
        assert not [a for a in report.alerts if a.alert_type == "AMOUNT_DISTRIBUTION"]

    def test_clean_run_has_no_alerts(self):
        txns = [_debit(f"N{i}", "NETFLIX.COM") for i in range(4)]
        report = DetectionMonitor().run([_bill()], txns)
        assert report.alerts == []
        assert report.summary["total_alerts"] == 0


class TestPSI:
    def test_identical_distributions(self):
        values = np.linspace(10, 100, 50)
        assert DetectionMonitor.compute_psi(values, values) == pytest.approx(0.0, abs=1e-6)

    def test_constant_baseline(self):
        assert DetectionMonitor.compute_psi(np.full(20, 45.0), np.linspace(10, 100, 20)) == 0.0

    def test_shifted_distribution(self):
        baseline = np.linspace(10, 100, 50)
        comparison = np.full(30, 95.0)
        assert DetectionMonitor.compute_psi(baseline, comparison) > 0.25
