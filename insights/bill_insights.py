"""
bill_insights.py
-----------------
Read-only views over a list of detected bills, for the upcoming-bills
screen and the notification scheduler.

    get_monthly_amount / calculate_monthly_total: normalize cadences to a
        monthly figure (weekly × 4.33, quarterly ÷ 3, yearly ÷ 12).
    get_bill_priority / get_bills_by_priority: rank bills so essentials
        (housing, utilities, insurance) and imminent payments come first.
    get_upcoming_bills: re-project due dates into a rolling window.
    get_due_soon: active bills due within the reminder horizon.

Weights come from the bill_insights block of config.yaml.
"""

from collections import defaultdict
from dataclasses import replace
from datetime import date, timedelta
from typing import Dict, List, Sequence

from core.due_date_calculator import NextDueDateCalculator
from core.models import DetectedBill
from config.config_loader import get_bill_insights_config


def get_monthly_amount(bill: DetectedBill) -> float:
    factor = get_bill_insights_config()["monthly_factors"].get(bill.frequency, 1.0)
    return bill.amount * factor


def calculate_monthly_total(bills: Sequence[DetectedBill]) -> float:
    return round(sum(get_monthly_amount(b) for b in bills), 2)


def get_bill_priority(bill: DetectedBill, now: date | None = None) -> float:
    """
    Higher = more important. Sums category, monthly amount, frequency and
    due-date urgency points, plus a confidence bonus.
    """
    now = now or date.today()
    config = get_bill_insights_config()

    priority = config["category_priority"].get(
        bill.category.lower(), config["default_category_priority"]
    )

    monthly_amount = get_monthly_amount(bill)
    for band in config["amount_priority"]:
        if monthly_amount > band["above"]:
            priority += band["points"]
            break

    priority += config["frequency_priority"].get(bill.frequency, 0)

    days_until_due = (bill.next_due_date - now).days
    for band in config["urgency_priority"]:
        if days_until_due <= band["within_days"]:
            priority += band["points"]
            break

    priority += bill.confidence * config["confidence_weight"]
    return priority


def get_bills_by_priority(bills: Sequence[DetectedBill], now: date | None = None) -> List[DetectedBill]:
    """Most important first; equal priorities fall back to monthly amount."""
    return sorted(
        bills,
        key=lambda b: (get_bill_priority(b, now), get_monthly_amount(b)),
        reverse=True,
    )


def get_bills_by_category(bills: Sequence[DetectedBill]) -> Dict[str, List[DetectedBill]]:
    grouped: Dict[str, List[DetectedBill]] = defaultdict(list)
    for bill in bills:
        grouped[bill.category].append(bill)
    return dict(grouped)


def get_upcoming_bills(
    bills: Sequence[DetectedBill], days: int | None = None, now: date | None = None
) -> List[DetectedBill]:
    """
    Active bills falling due within `days` of `now`, soonest first.

    Due dates are rolled forward again from `now`, so a list detected some
    time ago still projects into the current window.
    """
    now = now or date.today()
    days = days if days is not None else get_bill_insights_config()["upcoming_window_days"]
    cutoff = now + timedelta(days=days)
    calculator = NextDueDateCalculator()

    upcoming = []
    for bill in bills:
        if bill.status != "active":
            continue
        due = bill.next_due_date
        if due <= now:
            due = calculator.next_due_date(due, bill.frequency, now, bill.day_of_month)
        if due < cutoff:
            upcoming.append(replace(bill, next_due_date=due) if due != bill.next_due_date else bill)

    return sorted(upcoming, key=lambda b: b.next_due_date)


def get_due_soon(
    bills: Sequence[DetectedBill], days: int | None = None, now: date | None = None
) -> List[DetectedBill]:
    """Active bills due between today and `days` from now, for reminders."""
    now = now or date.today()
    days = days if days is not None else get_bill_insights_config()["due_soon_days"]
    return [
        b for b in bills
        if b.status == "active" and 0 <= (b.next_due_date - now).days <= days
    ]
