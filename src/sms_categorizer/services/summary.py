"""Spending aggregates over categorized transactions."""
from collections import defaultdict
from collections.abc import Iterable
from datetime import datetime

from sms_categorizer.domain.timefmt import month_bounds, naive
from sms_categorizer.models import (
    SPENDING_TYPES,
    CategorizedTransaction,
    Category,
    CategorySpending,
    MonthlySpendingSummary,
    MonthlyTotal,
    SpendingSummary,
    TransactionType,
)


def is_spending(item: CategorizedTransaction) -> bool:
    return item.transaction.type in SPENDING_TYPES and not item.category.exclude_from_spending


def _in_range(item: CategorizedTransaction, start: datetime | None, end: datetime | None) -> bool:
    stamp = naive(item.transaction.timestamp)
    if start is not None and stamp < naive(start):
        return False
    if end is not None and stamp >= naive(end):
        return False
    return True


def _by_category(items: Iterable[CategorizedTransaction]) -> list[CategorySpending]:
    totals: dict[Category, float] = defaultdict(float)
    counts: dict[Category, int] = defaultdict(int)
    for item in items:
        totals[item.category] += item.transaction.amount
        counts[item.category] += 1
    rows = [
        CategorySpending(
            category=category,
            display_name=category.display_name,
            total=round(total, 2),
            count=counts[category],
        )
        for category, total in totals.items()
    ]
    return sorted(rows, key=lambda row: row.total, reverse=True)


def spending_by_category(
    items: Iterable[CategorizedTransaction],
    start: datetime | None = None,
    end: datetime | None = None,
) -> SpendingSummary:
    spending = [item for item in items if is_spending(item) and _in_range(item, start, end)]
    return SpendingSummary(
        total=round(sum(item.transaction.amount for item in spending), 2),
        count=len(spending),
        by_category=_by_category(spending),
    )


def monthly_summary(items: Iterable[CategorizedTransaction], year: int, month: int) -> MonthlySpendingSummary:
    start, end = month_bounds(year, month)
    in_month = [item for item in items if _in_range(item, start, end)]
    income = sum(item.transaction.amount for item in in_month if item.transaction.type == TransactionType.CREDIT)
    spending = [item for item in in_month if is_spending(item)]
    expenses = sum(item.transaction.amount for item in spending)
    return MonthlySpendingSummary(
        year=year,
        month=month,
        income=round(income, 2),
        expenses=round(expenses, 2),
        net=round(income - expenses, 2),
        by_category=_by_category(spending),
    )


def monthly_totals(items: Iterable[CategorizedTransaction]) -> list[MonthlyTotal]:
    """Income and spending per calendar month, newest month first."""
    income: dict[tuple[int, int], float] = defaultdict(float)
    expenses: dict[tuple[int, int], float] = defaultdict(float)
    for item in items:
        stamp = naive(item.transaction.timestamp)
        key = (stamp.year, stamp.month)
        if item.transaction.type == TransactionType.CREDIT:
            income[key] += item.transaction.amount
        elif is_spending(item):
            expenses[key] += item.transaction.amount
        else:
            expenses.setdefault(key, 0.0)
    months = sorted(set(income) | set(expenses), reverse=True)
    return [
        MonthlyTotal(
            year=year,
            month=month,
            income=round(income.get((year, month), 0.0), 2),
            expenses=round(expenses.get((year, month), 0.0), 2),
        )
        for year, month in months
    ]


def available_months(items: Iterable[CategorizedTransaction]) -> list[tuple[int, int]]:
    return [(total.year, total.month) for total in monthly_totals(items)]
