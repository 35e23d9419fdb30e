from datetime import datetime

import pytest

from sms_categorizer.models import (
    CategorizedTransaction,
    Category,
    MatchType,
    TransactionInfo,
    TransactionType,
)
from sms_categorizer.services.summary import (
    available_months,
    is_spending,
    monthly_summary,
    monthly_totals,
    spending_by_category,
)


def _item(amount: float, category: Category, when: datetime, type=TransactionType.DEBIT) -> CategorizedTransaction:
    return CategorizedTransaction(
        transaction=TransactionInfo(
            type=type, amount=amount, bank_name="Bancolombia", timestamp=when, raw_message="..."
        ),
        category=category,
        confidence=1.0,
        match_type=MatchType.EXACT,
    )


@pytest.fixture
def items():
    return [
        _item(50000, Category.GROCERIES, datetime(2024, 3, 2)),
        _item(20000, Category.GROCERIES, datetime(2024, 3, 10)),
        _item(8000, Category.COFFEE, datetime(2024, 3, 11)),
        _item(300000, Category.CREDIT_CARD_PAYMENT, datetime(2024, 3, 15)),
        _item(1500000, Category.UNCATEGORIZED, datetime(2024, 3, 30), type=TransactionType.CREDIT),
        _item(40000, Category.GAS, datetime(2024, 4, 1), type=TransactionType.WITHDRAWAL),
    ]


def test_credit_card_payment_is_not_spending(items):
    assert not is_spending(items[3])
    assert not is_spending(items[4])
    assert is_spending(items[5])


def test_spending_by_category(items):
    summary = spending_by_category(items, datetime(2024, 3, 1), datetime(2024, 4, 1))

    assert summary.total == 78000
    assert summary.count == 3
    assert [(row.category, row.total, row.count) for row in summary.by_category] == [
        (Category.GROCERIES, 70000, 2),
        (Category.COFFEE, 8000, 1),
    ]
    assert summary.by_category[0].display_name == "Groceries"


def test_spending_without_bounds_covers_everything(items):
    assert spending_by_category(items).total == 118000


def test_monthly_summary(items):
    march = monthly_summary(items, 2024, 3)

    assert march.income == 1500000
    assert march.expenses == 78000
    assert march.net == 1422000
    assert {row.category for row in march.by_category} == {Category.GROCERIES, Category.COFFEE}


def test_monthly_summary_rejects_bad_month(items):
    with pytest.raises(ValueError):
        monthly_summary(items, 2024, 13)


def test_monthly_totals_newest_first(items):
    totals = monthly_totals(items)

    assert [(t.year, t.month) for t in totals] == [(2024, 4), (2024, 3)]
    assert totals[0].expenses == 40000
    assert totals[0].income == 0
    assert totals[1].income == 1500000
    assert available_months(items) == [(2024, 4), (2024, 3)]
