"""Payment recording and reversal: installments, accounts and ledger transactions"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_ledger.domain.exceptions import BusinessRuleError, ConflictError, NotFoundError, PaymentError
from billing_ledger.domain.models import OperationResult, Page, Period, SideEffect, TransactionDraft, TransactionType
from billing_ledger.infrastructure.database.models import Account, Installment, Transaction
from billing_ledger.infrastructure.database.repositories import (
    AccountRepository,
    InstallmentRepository,
    TransactionRepository,
)
from billing_ledger.infrastructure.database.session import unit_of_work
from billing_ledger.infrastructure.observability.logging import log_payment
from billing_ledger.infrastructure.observability.metrics import payment_counter, transaction_reversal_counter
from billing_ledger.services.categories import AllowAllCategories, CategoryValidator
from billing_ledger.services.side_effects import RECALCULATE_SUMMARY, run_best_effort
from billing_ledger.services.summaries import MonthlySummaryService
from billing_ledger.utils.date_utils import clamp_day

logger = logging.getLogger(__name__)

INSTALLMENT_PAYMENT_CATEGORY = "INSTALLMENT_PAYMENT"
ACCOUNT_PAYMENT_CATEGORY = "ACCOUNT_PAYMENT"
DEFAULT_CATEGORY = "OTHER"


@dataclass
class InstallmentPayment:
    installment: Installment
    transaction: Transaction


@dataclass
class AccountPayment:
    account: Account
    transaction: Transaction
    installments_settled: int


def account_payment_date(account: Account) -> date:
    """Ledger date of a full-account payment: due day of its reference month"""
    if account.reference_month and account.reference_year:
        return clamp_day(account.reference_year, account.reference_month, account.due_day)
    return account.start_date


class PaymentService:
    """Marks installments/accounts paid and keeps them consistent with the ledger"""

    def __init__(self, db: Session, category_validator: Optional[CategoryValidator] = None):
        self.db = db
        self.accounts = AccountRepository(db)
        self.installments = InstallmentRepository(db)
        self.transactions = TransactionRepository(db)
        self.summaries = MonthlySummaryService(db)
        self.category_validator = category_validator or AllowAllCategories()

    # ---- installments -------------------------------------------------

    def mark_installment_paid(self, user_id: str, installment_id: uuid.UUID) -> OperationResult[InstallmentPayment]:
        """
        Pay one installment and record the matching EXPENSE transaction.

        The installment is committed as paid before its transaction is written;
        if that second write fails the installment stays paid and PaymentError
        is raised so the caller can reconcile.
        """
        installment = self._get_installment(user_id, installment_id)
        if installment.is_paid:
            raise BusinessRuleError(f"Installment {installment_id} is already paid", code="INSTALLMENT_ALREADY_PAID")
        if self.transactions.find_by_installment(installment.id) is not None:
            raise ConflictError(
                f"Transaction already exists for installment {installment_id}",
                code="INSTALLMENT_TRANSACTION_ALREADY_EXISTS",
            )

        with unit_of_work(self.db):
            installment.is_paid = True
            installment.paid_at = datetime.now(timezone.utc)

        try:
            with unit_of_work(self.db):
                transaction = self.transactions.add(
                    Transaction(
                        user_id=user_id,
                        account_id=installment.account_id,
                        installment_id=installment.id,
                        type=TransactionType.EXPENSE.value,
                        category=INSTALLMENT_PAYMENT_CATEGORY,
                        description=f"Installment {installment.number} payment",
                        value=installment.amount,
                        date=installment.due_date,
                    )
                )
        except SQLAlchemyError as e:
            logger.error(
                "Installment marked paid but its transaction was not recorded",
                extra={"user_id": user_id, "installment_id": str(installment_id), "error": str(e)},
            )
            raise PaymentError(f"Could not record payment for installment {installment_id}") from e

        payment_counter.labels(kind="installment").inc()
        log_payment("installment", user_id, installment.id, installment.amount)

        effect = self._recalculate(user_id, [Period(installment.reference_month, installment.reference_year)])
        return OperationResult(InstallmentPayment(installment, transaction), [effect])

    def mark_installment_unpaid(self, user_id: str, installment_id: uuid.UUID) -> Installment:
        """Clear the paid flag; ledger transactions are left untouched"""
        installment = self._get_installment(user_id, installment_id)
        with unit_of_work(self.db):
            installment.is_paid = False
            installment.paid_at = None
        return installment

    # ---- accounts -----------------------------------------------------

    def mark_account_paid(
        self,
        user_id: str,
        account_id: uuid.UUID,
        payment_amount: Optional[int] = None,
    ) -> OperationResult[AccountPayment]:
        """
        Settle a whole account with one consolidated EXPENSE transaction.

        payment_amount defaults to the account total and may not be lower.
        All unpaid installments share one paid_at timestamp. The installment
        updates, the account flag and the transaction commit together.
        """
        account = self._get_account(user_id, account_id)
        if account.is_paid:
            raise BusinessRuleError(f"Account {account_id} is already paid", code="ACCOUNT_ALREADY_PAID")

        total = account.total_amount or 0
        amount = total if payment_amount is None else payment_amount
        if amount < 0:
            raise BusinessRuleError("Payment amount must be >= 0", code="NEGATIVE_AMOUNT")
        if amount < total:
            raise BusinessRuleError(
                f"Payment amount {amount} is less than account total {total}",
                code="INSUFFICIENT_PAYMENT_AMOUNT",
            )

        unpaid = self.installments.list_by_account(account.id, unpaid_only=True) if account.installments else []
        paid_on = account_payment_date(account)

        with unit_of_work(self.db):
            settled = self.installments.mark_unpaid_as_paid(account.id, datetime.now(timezone.utc)) if unpaid else 0
            account.is_paid = True
            account.is_preview = False
            transaction = self.transactions.add(
                Transaction(
                    user_id=user_id,
                    account_id=account.id,
                    type=TransactionType.EXPENSE.value,
                    category=ACCOUNT_PAYMENT_CATEGORY,
                    description=f"Payment for account: {account.name}",
                    value=amount,
                    date=paid_on,
                )
            )

        payment_counter.labels(kind="account").inc()
        log_payment("account", user_id, account.id, amount)

        periods = [Period(paid_on.month, paid_on.year)]
        if account.reference_month and account.reference_year:
            periods.append(Period(account.reference_month, account.reference_year))
        periods.extend(Period(item.reference_month, item.reference_year) for item in unpaid)

        effect = self._recalculate(user_id, periods)
        return OperationResult(AccountPayment(account, transaction, settled), [effect])

    # ---- transactions -------------------------------------------------

    def create_income(self, user_id: str, draft: TransactionDraft) -> OperationResult[Transaction]:
        self.category_validator.validate_category_exists(draft.category or DEFAULT_CATEGORY, TransactionType.INCOME)
        self._check_value(draft.value)

        with unit_of_work(self.db):
            transaction = self.transactions.add(self._build(user_id, draft, TransactionType.INCOME))

        payment_counter.labels(kind="income").inc()
        effect = self._recalculate(user_id, [Period(draft.date.month, draft.date.year)])
        return OperationResult(transaction, [effect])

    def create_expense(self, user_id: str, draft: TransactionDraft) -> OperationResult[Transaction]:
        """
        Record an expense; when linked to an account it must settle it.

        Linked expenses go through account payment validation first, and the
        resulting installment/account updates commit with the transaction.
        """
        self.category_validator.validate_category_exists(draft.category or DEFAULT_CATEGORY, TransactionType.EXPENSE)
        self._check_value(draft.value)

        account = None
        unpaid: List[Installment] = []
        if draft.account_id is not None:
            account = self._get_account(user_id, draft.account_id)
            unpaid = self._validate_account_payment(account, draft.value)

        with unit_of_work(self.db):
            if account is not None:
                self._settle_account(account, unpaid)
            transaction = self.transactions.add(self._build(user_id, draft, TransactionType.EXPENSE))

        payment_counter.labels(kind="expense").inc()
        periods = [Period(draft.date.month, draft.date.year)]
        periods.extend(Period(item.reference_month, item.reference_year) for item in unpaid)
        effect = self._recalculate(user_id, periods)
        return OperationResult(transaction, [effect])

    def delete_transaction(self, user_id: str, transaction_id: uuid.UUID) -> OperationResult[uuid.UUID]:
        """
        Delete a transaction and undo the paid state it caused.

        - Linked installment: reset to unpaid.
        - Linked paid account: unpaid again if any of its installments is now
          unpaid; accounts without installments are always reset.
        """
        transaction = self.transactions.get_for_user(user_id, transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with ID {transaction_id} not found", code="TRANSACTION_NOT_FOUND")

        periods = [Period(transaction.date.month, transaction.date.year)]
        reverted = False

        with unit_of_work(self.db):
            if transaction.installment_id is not None:
                installment = self.installments.get(transaction.installment_id)
                if installment is not None:
                    installment.is_paid = False
                    installment.paid_at = None
                    periods.append(Period(installment.reference_month, installment.reference_year))
                    reverted = True
                    self.db.flush()

            if transaction.account_id is not None:
                account = self.accounts.get(transaction.account_id)
                if account is not None and account.is_paid:
                    if self.installments.count_by_account(account.id) > 0:
                        if self.installments.count_by_account(account.id, unpaid_only=True) > 0:
                            account.is_paid = False
                            reverted = True
                    else:
                        account.is_paid = False
                        reverted = True

            self.transactions.delete(transaction)

        if reverted:
            transaction_reversal_counter.inc()
        logger.info(
            "Transaction deleted",
            extra={"user_id": user_id, "transaction_id": str(transaction_id), "reverted": reverted},
        )

        effect = self._recalculate(user_id, periods)
        return OperationResult(transaction_id, [effect])

    def get_transaction(self, user_id: str, transaction_id: uuid.UUID) -> Transaction:
        transaction = self.transactions.get_for_user(user_id, transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with ID {transaction_id} not found", code="TRANSACTION_NOT_FOUND")
        return transaction

    def list_transactions(
        self,
        user_id: str,
        txn_type: Optional[TransactionType] = None,
        category: Optional[str] = None,
        account_id: Optional[uuid.UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Transaction]:
        items, total = self.transactions.list_filtered(
            user_id,
            txn_type=txn_type.value if txn_type else None,
            category=category,
            account_id=account_id,
            start=start,
            end=end,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return Page(items=items, total=total, page=page, limit=limit)

    # ---- helpers ------------------------------------------------------

    def _validate_account_payment(self, account: Account, payment_value: int) -> List[Installment]:
        """
        Check that an expense fully settles its account; nothing is written here.

        Returns the unpaid installments the payment will settle.
        """
        if account.is_paid:
            raise BusinessRuleError(f"Account {account.id} is already paid", code="ACCOUNT_ALREADY_PAID")

        unpaid: List[Installment] = []
        if account.installments:
            unpaid = self.installments.list_by_account(account.id, unpaid_only=True)
            unpaid_total = sum(item.amount for item in unpaid)
            if payment_value < unpaid_total:
                raise BusinessRuleError(
                    f"Payment {payment_value} does not cover outstanding installments {unpaid_total}",
                    code="INSUFFICIENT_PAYMENT_AMOUNT",
                )

        if account.total_amount and payment_value < account.total_amount:
            raise BusinessRuleError(
                f"Payment {payment_value} does not cover account total {account.total_amount}",
                code="INSUFFICIENT_PAYMENT_AMOUNT",
            )

        return unpaid

    def _settle_account(self, account: Account, unpaid: Iterable[Installment]) -> None:
        paid_at = datetime.now(timezone.utc)
        for installment in unpaid:
            installment.is_paid = True
            installment.paid_at = paid_at
        if account.total_amount:
            account.is_paid = True

    def _build(self, user_id: str, draft: TransactionDraft, txn_type: TransactionType) -> Transaction:
        return Transaction(
            user_id=user_id,
            account_id=draft.account_id,
            type=txn_type.value,
            category=draft.category,
            description=draft.description,
            value=draft.value,
            date=draft.date,
        )

    def _check_value(self, value: int) -> None:
        if value < 0:
            raise BusinessRuleError("Transaction value must be >= 0", code="NEGATIVE_AMOUNT")

    def _recalculate(self, user_id: str, periods: List[Period]) -> SideEffect:
        return run_best_effort(
            self.db,
            RECALCULATE_SUMMARY,
            lambda: self.summaries.recalculate_many(user_id, periods),
            user_id=user_id,
            periods=[(p.month, p.year) for p in periods],
        )

    def _get_installment(self, user_id: str, installment_id: uuid.UUID) -> Installment:
        installment = self.installments.get_for_user(user_id, installment_id)
        if installment is None:
            raise NotFoundError(f"Installment with ID {installment_id} not found", code="INSTALLMENT_NOT_FOUND")
        return installment

    def _get_account(self, user_id: str, account_id: uuid.UUID) -> Account:
        account = self.accounts.get_for_user(user_id, account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found", code="ACCOUNT_NOT_FOUND")
        return account
