"""Unit tests for monthly status classification"""

import pytest

from billing_ledger.domain.models import SummaryStatus
from billing_ledger.domain.summary import classify_status, summarize_month


@pytest.mark.parametrize(
    "balance,bills,expected",
    [
        (0, 0, SummaryStatus.EXCELLENT),
        (0, 1, SummaryStatus.GOOD),
        (250000, 0, SummaryStatus.EXCELLENT),
        (-1, 0, SummaryStatus.WARNING),
        (-50000, 0, SummaryStatus.WARNING),
        (-50001, 0, SummaryStatus.CRITICAL),
        (-50001, 999, SummaryStatus.CRITICAL),
    ],
)
def test_classify_status_boundaries(balance, bills, expected):
    """Test status bands at their boundaries"""
    assert classify_status(balance, bills) == expected


def test_summarize_month():
    """Test income, expense and bill totals"""
    totals = summarize_month(
        [("INCOME", 300000), ("EXPENSE", 120000), ("EXPENSE", 30000)],
        [10000, 5000],
    )

    assert totals.total_income == 300000
    assert totals.total_expenses == 150000
    assert totals.total_balance == 150000
    assert totals.bills_to_pay == 15000
    assert totals.bills_count == 2
    assert totals.status == SummaryStatus.GOOD


def test_summarize_empty_month():
    """Test month with no activity is EXCELLENT"""
    totals = summarize_month([], [])
    assert (totals.total_balance, totals.bills_count, totals.status) == (0, 0, SummaryStatus.EXCELLENT)


def test_summarize_rejects_unknown_type():
    """Test unknown transaction type raises"""
    with pytest.raises(ValueError):
        summarize_month([("TRANSFER", 100)], [])
