from __future__ import annotations

from collections.abc import Sequence
from datetime import date, timedelta

from tutorly.core.datetime_utils import start_of_week
from tutorly.domain.models import EarningsSummary, Transaction


def total_earnings(transactions: Sequence[Transaction]) -> float:
    return sum(item.amount for item in transactions)


def earnings_for_month(transactions: Sequence[Transaction], year: int, month: int) -> float:
    return sum(item.amount for item in transactions if item.date.year == year and item.date.month == month)


def earnings_for_week(transactions: Sequence[Transaction], week_start: date) -> float:
    week_end = week_start + timedelta(days=6)
    return sum(item.amount for item in transactions if week_start <= item.date <= week_end)


def average_hourly_rate(transactions: Sequence[Transaction]) -> float:
    hours = sum(item.duration_hours or 0 for item in transactions)
    if hours <= 0:
        return 0.0
    return total_earnings(transactions) / hours


def summarize(transactions: Sequence[Transaction], today: date) -> EarningsSummary:
    return EarningsSummary(
        total=total_earnings(transactions),
        this_month=earnings_for_month(transactions, today.year, today.month),
        this_week=earnings_for_week(transactions, start_of_week(today)),
        average_hourly_rate=average_hourly_rate(transactions),
        transaction_count=len(transactions),
    )
