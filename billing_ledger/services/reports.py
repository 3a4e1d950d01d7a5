"""Read-only balance and spending reports"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from billing_ledger.domain.models import AccountType, TransactionType
from billing_ledger.infrastructure.database.repositories import AccountRepository, TransactionRepository
from billing_ledger.utils.date_utils import month_bounds

UNCATEGORIZED = "OTHER"


@dataclass
class UserBalance:
    """Cash movement in a month plus outstanding account totals (cents)"""

    month: int
    year: int
    start_date: date
    end_date: date
    is_current_month: bool
    income: int
    expense: int
    linked_expenses: int
    standalone_expenses: int
    balance: int
    fixed_accounts_total: int
    loan_accounts_total: int
    total_accounts: int


@dataclass
class CategoryExpense:
    category: str
    source: str  # account | transaction
    value: int
    percentage: float


class ReportService:
    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)

    def user_balance(self, user_id: str, month: Optional[int] = None, year: Optional[int] = None) -> UserBalance:
        """
        Income and expenses of a month (defaults to the current one).

        Expenses tied to an account or installment count as linked; the rest
        are standalone. Account totals cover every account of the user.
        """
        today = self.today()
        month = month or today.month
        year = year or today.year
        start, end = month_bounds(month, year)

        income = expense = linked = 0
        for txn in self.transactions.list_between(user_id, start, end):
            if txn.type == TransactionType.INCOME.value:
                income += txn.value
            else:
                expense += txn.value
                if txn.account_id is not None or txn.installment_id is not None:
                    linked += txn.value

        fixed_total = loan_total = accounts_total = 0
        for account in self.accounts.list_all_for_user(user_id):
            amount = account.total_amount or 0
            accounts_total += amount
            if account.type == AccountType.FIXED.value:
                fixed_total += amount
            elif account.type == AccountType.LOAN.value:
                loan_total += amount

        return UserBalance(
            month=month,
            year=year,
            start_date=start,
            end_date=end,
            is_current_month=(month, year) == (today.month, today.year),
            income=income,
            expense=expense,
            linked_expenses=linked,
            standalone_expenses=expense - linked,
            balance=income - expense,
            fixed_accounts_total=fixed_total,
            loan_accounts_total=loan_total,
            total_accounts=accounts_total,
        )

    def expenses_by_category(
        self, user_id: str, month: Optional[int] = None, year: Optional[int] = None
    ) -> List[CategoryExpense]:
        """Expenses of a month grouped by account type or category, largest first"""
        today = self.today()
        start, end = month_bounds(month or today.month, year or today.year)

        groups: Dict[str, CategoryExpense] = {}
        for txn in self.transactions.list_between(user_id, start, end, txn_type=TransactionType.EXPENSE.value):
            if txn.account is not None:
                key, source = txn.account.type, "account"
            else:
                key, source = txn.category or UNCATEGORIZED, "transaction"

            group = groups.setdefault(key, CategoryExpense(category=key, source=source, value=0, percentage=0.0))
            group.value += txn.value

        categories = list(groups.values())
        total = sum(group.value for group in categories)
        if total > 0:
            for group in categories:
                group.percentage = round(group.value * 100 / total, 2)

        categories.sort(key=lambda group: group.value, reverse=True)
        return categories
