"""
due_date_calculator.py
-----------------------
Rolls a bill's last payment forward to its next future occurrence.

Monthly bills re-align to their recorded day of month on every step,
clamped to the length of the target month (a bill on the 31st falls due on
30 April and 28/29 February). The roll loop is bounded; exceeding the bound
raises DueDateRollError instead of spinning on corrupt or very old dates.
"""

import calendar
from datetime import date

import pandas as pd

from config.config_loader import get_due_date_config


# Period added per roll step
FREQUENCY_OFFSETS = {
    "weekly": pd.DateOffset(weeks=1),
    "monthly": pd.DateOffset(months=1),
    "quarterly": pd.DateOffset(months=3),
    "yearly": pd.DateOffset(years=1),
}


class DueDateRollError(RuntimeError):
    """Raised when a due date cannot be rolled past `now` within the iteration bound."""


class NextDueDateCalculator:

    def __init__(self, max_iterations: int | None = None):
        self.max_iterations = max_iterations or get_due_date_config()["max_roll_iterations"]

    def next_due_date(
        self,
        last_payment: date,
        frequency: str,
        now: date,
        day_of_month: int | None = None,
    ) -> date:
        """
        Returns the first occurrence strictly after `now`.

        Raises:
            KeyError: If frequency is not a known cadence.
            DueDateRollError: If the bound is hit before passing `now`.
        """
        if frequency not in FREQUENCY_OFFSETS:
            raise KeyError(
                f"Unknown frequency '{frequency}'. Available: {list(FREQUENCY_OFFSETS.keys())}"
            )
        offset = FREQUENCY_OFFSETS[frequency]
        align = day_of_month if frequency == "monthly" else None

        candidate = self._step(last_payment, offset, align)
        for _ in range(self.max_iterations):
            if candidate > now:
                return candidate
            candidate = self._step(candidate, offset, align)

        raise DueDateRollError(
            f"Could not roll {frequency} due date from {last_payment} past {now} "
            f"within {self.max_iterations} iterations."
        )

    def next_date_for_day(self, day_of_month: int, now: date) -> date:
        """Next date after `now` falling on the given day of month."""
        candidate = _with_day(now, day_of_month)
        if candidate <= now:
            candidate = self._step(candidate, FREQUENCY_OFFSETS["monthly"], day_of_month)
        return candidate

    @staticmethod
    def _step(current: date, offset: pd.DateOffset, day_of_month: int | None) -> date:
        stepped = (pd.Timestamp(current) + offset).date()
        if day_of_month is not None:
            stepped = _with_day(stepped, day_of_month)
        return stepped


def _with_day(value: date, day_of_month: int) -> date:
    """Same month, day clamped to the month's length."""
    last_day = calendar.monthrange(value.year, value.month)[1]
    return value.replace(day=min(day_of_month, last_day))
