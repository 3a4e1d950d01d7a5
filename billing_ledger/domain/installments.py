"""Installment schedule generation for account obligations"""

from datetime import date
from typing import List

from billing_ledger.domain.exceptions import BusinessRuleError
from billing_ledger.domain.models import GenerationStrategy, ScheduledInstallment
from billing_ledger.utils.date_utils import normalize_date, step_due_date
from billing_ledger.utils.money import split_evenly


def generate_installment_schedule(
    strategy: GenerationStrategy,
    amount_cents: int,
    count: int,
    start_date: date | str,
    due_day: int,
) -> List[ScheduledInstallment]:
    """
    Build the ordered installments of an account, one per calendar month.

    Strategies:
    - EVEN_SPLIT: `amount_cents` is the account total; it is split evenly and
      the last installment absorbs the rounding remainder.
    - FIXED_AMOUNT: `amount_cents` is the unit amount; every installment gets
      exactly that (total repaid may differ from the principal, e.g. loans).

    Each installment's reference month/year comes from its own due date.

    Example:
        EVEN_SPLIT, 40003 cents, 4 installments from 2025-01-10, due day 5
        -> 2025-01-05 10000, 2025-02-05 10000, 2025-03-05 10000, 2025-04-05 10003
    """
    if count < 1:
        raise BusinessRuleError(f"Installment count must be >= 1, got {count}", code="INVALID_INSTALLMENT_COUNT")
    if amount_cents < 0:
        raise BusinessRuleError(f"Amount must be >= 0, got {amount_cents}", code="NEGATIVE_AMOUNT")

    base_date = normalize_date(start_date)

    if strategy == GenerationStrategy.EVEN_SPLIT:
        amounts = split_evenly(amount_cents, count)
    else:
        amounts = [amount_cents] * count

    installments = []
    for number, amount in enumerate(amounts, start=1):
        due_date, reference_month, reference_year = step_due_date(base_date, number, due_day)
        installments.append(
            ScheduledInstallment(
                number=number,
                due_date=due_date,
                amount_cents=amount,
                reference_month=reference_month,
                reference_year=reference_year,
            )
        )

    return installments
