"""Monthly summary aggregation and status classification"""

from typing import Iterable, Tuple

from billing_ledger.domain.models import SummaryStatus, SummaryTotals, TransactionType

# Balance floor (cents) below which a month is CRITICAL rather than WARNING
WARNING_BALANCE_FLOOR = -50_000


def classify_status(total_balance: int, bills_to_pay: int) -> SummaryStatus:
    """
    Map a month's balance and outstanding bills to a status band.

    Bands (cents):
    - balance >= 0, nothing to pay:     EXCELLENT
    - balance >= 0, bills outstanding:  GOOD
    - -50_000 <= balance < 0:           WARNING
    - balance < -50_000:                CRITICAL
    """
    if total_balance >= 0:
        return SummaryStatus.EXCELLENT if bills_to_pay == 0 else SummaryStatus.GOOD
    if total_balance >= WARNING_BALANCE_FLOOR:
        return SummaryStatus.WARNING
    return SummaryStatus.CRITICAL


def summarize_month(
    transactions: Iterable[Tuple[str, int]],
    unpaid_installment_amounts: Iterable[int],
) -> SummaryTotals:
    """
    Aggregate one user's month.

    Args:
        transactions: (type, value_cents) pairs of transactions dated in the month
        unpaid_installment_amounts: amounts of unpaid installments due in the month
    """
    total_income = 0
    total_expenses = 0
    for txn_type, value in transactions:
        if TransactionType(txn_type) == TransactionType.INCOME:
            total_income += value
        else:
            total_expenses += value

    bills = list(unpaid_installment_amounts)
    bills_to_pay = sum(bills)
    total_balance = total_income - total_expenses

    return SummaryTotals(
        total_income=total_income,
        total_expenses=total_expenses,
        total_balance=total_balance,
        bills_to_pay=bills_to_pay,
        bills_count=len(bills),
        status=classify_status(total_balance, bills_to_pay),
    )
