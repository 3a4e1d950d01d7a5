"""Account-type policies: validation, amount derivation and schedule strategy per type"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional

from billing_ledger.domain.exceptions import BusinessRuleError
from billing_ledger.domain.loans import calculate_loan_amounts
from billing_ledger.domain.models import AccountAmounts, AccountType, GenerationStrategy, Period
from billing_ledger.utils.date_utils import add_months


@dataclass
class AccountTerms:
    """Effective schedule-relevant values of an account (new input merged over stored values)"""

    start_date: date
    due_day: int
    total_amount: Optional[int] = None
    installment_amount: Optional[int] = None
    installments: Optional[int] = None
    closing_day: Optional[int] = None
    credit_limit: Optional[int] = None


class AccountTypePolicy:
    """Default behaviour: optional total split evenly across installments"""

    strategy = GenerationStrategy.EVEN_SPLIT
    allows_credit_limit = False

    def validate(self, terms: AccountTerms) -> None:
        if not 1 <= terms.due_day <= 31:
            raise BusinessRuleError(f"Due day must be within 1..31, got {terms.due_day}", code="INVALID_DUE_DAY")
        if terms.installments is not None and terms.installments < 1:
            raise BusinessRuleError(
                f"Installment count must be >= 1, got {terms.installments}", code="INVALID_INSTALLMENT_COUNT"
            )
        for label, value in (
            ("totalAmount", terms.total_amount),
            ("installmentAmount", terms.installment_amount),
            ("creditLimit", terms.credit_limit),
        ):
            if value is not None and value < 0:
                raise BusinessRuleError(f"{label} must be >= 0", code="NEGATIVE_AMOUNT")
        if terms.credit_limit is not None and not self.allows_credit_limit:
            raise BusinessRuleError("Only CREDIT_CARD accounts accept a credit limit", code="CREDIT_LIMIT_NOT_ALLOWED")

    def compute_amounts(self, terms: AccountTerms) -> AccountAmounts:
        total = terms.total_amount
        if total is None and terms.installments and terms.installment_amount is not None:
            total = terms.installment_amount * terms.installments

        installment_amount = terms.installment_amount
        if terms.installments and total is not None:
            installment_amount = total // terms.installments

        return AccountAmounts(total_amount=total, installment_amount=installment_amount)

    def generation_strategy(self) -> GenerationStrategy:
        return self.strategy

    def schedule_amount(self, amounts: AccountAmounts) -> Optional[int]:
        """Amount handed to the generator: the total or the unit amount, per strategy"""
        if self.strategy == GenerationStrategy.FIXED_AMOUNT:
            return amounts.installment_amount
        return amounts.total_amount

    def resolve_reference_period(self, terms: AccountTerms, today: date) -> Period:
        return Period(month=terms.start_date.month, year=terms.start_date.year)


class FixedPolicy(AccountTypePolicy):
    """Recurring bill with a known amount per installment"""

    strategy = GenerationStrategy.FIXED_AMOUNT

    def validate(self, terms: AccountTerms) -> None:
        super().validate(terms)
        if terms.installments and not terms.installment_amount:
            raise BusinessRuleError(
                "FIXED accounts with installments require installmentAmount",
                code="FIXED_INSTALLMENT_AMOUNT_REQUIRED",
            )

    def compute_amounts(self, terms: AccountTerms) -> AccountAmounts:
        if terms.installments:
            return AccountAmounts(
                total_amount=terms.installment_amount * terms.installments,
                installment_amount=terms.installment_amount,
            )
        return AccountAmounts(total_amount=terms.total_amount, installment_amount=terms.installment_amount)


class LoanPolicy(AccountTypePolicy):
    """Principal repaid in fixed installments; the implied interest rate is derived"""

    strategy = GenerationStrategy.FIXED_AMOUNT

    def validate(self, terms: AccountTerms) -> None:
        super().validate(terms)
        if not (terms.total_amount and terms.installments and terms.installment_amount):
            raise BusinessRuleError(
                "LOAN accounts require totalAmount, installments, and installmentAmount",
                code="LOAN_FIELDS_REQUIRED",
            )
        if terms.installment_amount * terms.installments < terms.total_amount:
            raise BusinessRuleError(
                "LOAN installments must repay at least the principal",
                code="LOAN_PAYMENT_BELOW_PRINCIPAL",
            )

    def compute_amounts(self, terms: AccountTerms) -> AccountAmounts:
        loan = calculate_loan_amounts(terms.total_amount, terms.installments, terms.installment_amount)
        return AccountAmounts(total_amount=loan.total_amount, installment_amount=loan.monthly_payment, loan=loan)


class CreditCardPolicy(AccountTypePolicy):
    """Card statements are attributed to the month that closes next"""

    allows_credit_limit = True

    def validate(self, terms: AccountTerms) -> None:
        super().validate(terms)
        if terms.closing_day is not None and not 1 <= terms.closing_day <= 31:
            raise BusinessRuleError(
                f"Closing day must be within 1..31, got {terms.closing_day}", code="INVALID_CLOSING_DAY"
            )

    def resolve_reference_period(self, terms: AccountTerms, today: date) -> Period:
        if terms.closing_day is None:
            return super().resolve_reference_period(terms, today)
        if today.day <= terms.closing_day:
            return Period(month=today.month, year=today.year)
        year, month = add_months(today.year, today.month, 1)
        return Period(month=month, year=year)


_DEFAULT_POLICY = AccountTypePolicy()

_POLICIES: Dict[AccountType, AccountTypePolicy] = {
    AccountType.FIXED: FixedPolicy(),
    AccountType.LOAN: LoanPolicy(),
    AccountType.CREDIT_CARD: CreditCardPolicy(),
}


def get_policy(account_type: AccountType | str) -> AccountTypePolicy:
    """Single dispatch point from account type to its behaviour"""
    return _POLICIES.get(AccountType(account_type), _DEFAULT_POLICY)
