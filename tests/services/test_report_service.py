"""Balance and spending reports"""

from datetime import date

import pytest

from billing_ledger.domain.models import TransactionDraft
from billing_ledger.services.payments import PaymentService
from billing_ledger.services.reports import ReportService

USER_ID = "user_1"


@pytest.fixture
def reports(db) -> ReportService:
    return ReportService(db, today=lambda: date(2025, 1, 10))


@pytest.fixture
def january(db, accounts, fixed_draft, loan_draft):
    """Salary, a gym installment payment and two loose expenses in January"""
    gym = accounts.create(USER_ID, fixed_draft).value
    accounts.create(USER_ID, loan_draft)
    payments = PaymentService(db)
    first = accounts.get_account(USER_ID, gym.id).installments[0]
    payments.mark_installment_paid(USER_ID, first.id)
    payments.create_income(USER_ID, TransactionDraft(description="Salary", value=400000, date=date(2025, 1, 5)))
    payments.create_expense(
        USER_ID, TransactionDraft(description="Market", value=30000, date=date(2025, 1, 8), category="FOOD")
    )
    payments.create_expense(USER_ID, TransactionDraft(description="Misc", value=5000, date=date(2025, 1, 9)))
    return gym


def test_user_balance(reports: ReportService, january):
    """Test January income, linked and standalone expenses and account totals"""
    balance = reports.user_balance(USER_ID, 1, 2025)

    assert balance.income == 400000
    assert balance.expense == 45000
    assert balance.linked_expenses == 10000
    assert balance.standalone_expenses == 35000
    assert balance.balance == 355000
    assert balance.fixed_accounts_total == 30000
    assert balance.loan_accounts_total == 500000
    assert balance.total_accounts == 530000
    assert balance.is_current_month
    assert (balance.start_date, balance.end_date) == (date(2025, 1, 1), date(2025, 1, 31))


def test_user_balance_defaults_to_current_month(reports: ReportService, january):
    """Test omitted month falls back to today"""
    assert reports.user_balance(USER_ID).month == 1
    assert not reports.user_balance(USER_ID, 2, 2025).is_current_month


def test_expenses_by_category(reports: ReportService, january):
    """Test expenses grouped by account type or category with percentages"""
    groups = reports.expenses_by_category(USER_ID, 1, 2025)

    assert [(group.category, group.source, group.value) for group in groups] == [
        ("FOOD", "transaction", 30000),
        ("FIXED", "account", 10000),
        ("OTHER", "transaction", 5000),
    ]
    assert sum(group.percentage for group in groups) == pytest.approx(100, abs=0.05)
    assert groups[0].percentage == pytest.approx(66.67)


def test_expenses_by_category_empty_month(reports: ReportService):
    """Test month without expenses"""
    assert reports.expenses_by_category(USER_ID, 6, 2025) == []
