"""Account lifecycle: create, update, delete and period queries"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from billing_ledger.domain.account_types import AccountTerms, get_policy
from billing_ledger.domain.exceptions import BusinessRuleError, NotFoundError
from billing_ledger.domain.models import (
    AccountAmounts,
    AccountDraft,
    AccountPatch,
    AccountType,
    OperationResult,
    Page,
    Period,
    SideEffect,
)
from billing_ledger.infrastructure.database.models import Account, Installment
from billing_ledger.infrastructure.database.repositories import (
    AccountRepository,
    CreditCardItemRepository,
    InstallmentRepository,
    TransactionRepository,
)
from billing_ledger.infrastructure.database.session import unit_of_work
from billing_ledger.infrastructure.observability.metrics import record_account_mutation
from billing_ledger.services.credit_cards import CreditCardService
from billing_ledger.services.installments import InstallmentService
from billing_ledger.services.side_effects import (
    GENERATE_INSTALLMENTS,
    RECALCULATE_SUMMARY,
    REGENERATE_INSTALLMENTS,
    run_best_effort,
)
from billing_ledger.services.summaries import MonthlySummaryService
from billing_ledger.utils.date_utils import normalize_date

logger = logging.getLogger(__name__)

# Fields whose change invalidates the installment schedule
SCHEDULE_FIELDS = ("total_amount", "installment_amount", "installments", "start_date", "due_day")


@dataclass
class AccountDetails:
    account: Account
    installments: List[Installment] = field(default_factory=list)
    amount_paid: int = 0
    remaining_amount: int = 0


@dataclass
class PeriodStatistics:
    reference_month: int
    reference_year: int
    total_accounts: int
    paid_accounts: int
    unpaid_accounts: int
    total_amount: int
    paid_amount: int
    unpaid_amount: int


def _check_reference_period(month: Optional[int], year: Optional[int]) -> None:
    if (month is None) != (year is None):
        raise BusinessRuleError(
            "referenceMonth and referenceYear must be given together", code="INVALID_REFERENCE_PERIOD"
        )
    if month is not None and not 1 <= month <= 12:
        raise BusinessRuleError(f"referenceMonth must be within 1..12, got {month}", code="INVALID_REFERENCE_PERIOD")


def _pick(new, current):
    return current if new is None else new


class AccountLifecycleService:
    """
    Owns the Account state machine.

    Primary writes (the account row, or an account with everything hanging
    off it on delete) commit atomically. Installment generation, summary
    recalculation and card breakdowns run afterwards as best-effort steps
    reported in the returned OperationResult.
    """

    def __init__(self, db: Session, today: Callable[[], date] = date.today):
        self.db = db
        self.today = today
        self.accounts = AccountRepository(db)
        self.installments = InstallmentRepository(db)
        self.transactions = TransactionRepository(db)
        self.credit_card_items = CreditCardItemRepository(db)
        self.installment_service = InstallmentService(db)
        self.summaries = MonthlySummaryService(db)
        self.credit_cards = CreditCardService(db)

    # ---- commands -----------------------------------------------------

    def create(self, user_id: str, draft: AccountDraft) -> OperationResult[Account]:
        policy = get_policy(draft.type)
        terms = AccountTerms(
            start_date=normalize_date(draft.start_date),
            due_day=draft.due_day,
            total_amount=draft.total_amount,
            installment_amount=draft.installment_amount,
            installments=draft.installments,
            closing_day=draft.closing_day,
            credit_limit=draft.credit_limit,
        )
        policy.validate(terms)
        _check_reference_period(draft.reference_month, draft.reference_year)
        amounts = policy.compute_amounts(terms)

        if draft.reference_month is not None:
            period = Period(month=draft.reference_month, year=draft.reference_year)
        else:
            period = policy.resolve_reference_period(terms, self.today())

        card = None
        if draft.credit_card_id is not None:
            card = self.credit_cards.get_card(user_id, draft.credit_card_id)

        with unit_of_work(self.db):
            account = Account(
                user_id=user_id,
                name=draft.name,
                type=AccountType(draft.type).value,
                is_paid=draft.is_paid,
                is_preview=draft.is_preview,
                start_date=terms.start_date,
                due_day=terms.due_day,
                installments=terms.installments,
                reference_month=period.month,
                reference_year=period.year,
                closing_day=terms.closing_day,
                credit_limit=terms.credit_limit,
                credit_card_id=card.id if card is not None else None,
            )
            self._apply_amounts(account, amounts)
            self.accounts.add(account)
            if card is not None:
                self.credit_card_items.add(card.id, account.id)

        record_account_mutation("create", account.type)
        logger.info(
            "Account created",
            extra={"user_id": user_id, "account_id": str(account.id), "account_type": account.type},
        )

        effects = []
        if account.installments:
            effects.append(
                run_best_effort(
                    self.db,
                    GENERATE_INSTALLMENTS,
                    lambda: self.installment_service.regenerate(account),
                    account_id=str(account.id),
                )
            )
        if card is not None:
            effects.append(self.credit_cards.recalculate_best_effort(card.id))
        effects.append(self._recalculate(user_id, [period]))
        return OperationResult(account, effects)

    def update(self, user_id: str, account_id: uuid.UUID, patch: AccountPatch) -> OperationResult[Account]:
        """
        Apply a partial update, regenerating the schedule when it is affected.

        Unset fields fall back to the stored values before validation. The
        reference period is re-derived only when start date, closing day or
        type are provided, unless it is given explicitly.
        """
        account = self._get_account(user_id, account_id)
        account_type = AccountType(_pick(patch.type, account.type))
        policy = get_policy(account_type)

        terms = AccountTerms(
            start_date=normalize_date(patch.start_date) if patch.start_date is not None else account.start_date,
            due_day=_pick(patch.due_day, account.due_day),
            total_amount=_pick(patch.total_amount, account.total_amount),
            installment_amount=_pick(patch.installment_amount, account.installment_amount),
            installments=_pick(patch.installments, account.installments),
            closing_day=_pick(patch.closing_day, account.closing_day),
            credit_limit=_pick(patch.credit_limit, account.credit_limit),
        )
        policy.validate(terms)
        _check_reference_period(patch.reference_month, patch.reference_year)
        amounts = policy.compute_amounts(terms)

        type_changed = account_type.value != account.type
        schedule_changed = type_changed or any(
            getattr(patch, name) is not None and getattr(terms, name) != getattr(account, name)
            for name in SCHEDULE_FIELDS
        )

        previous = None
        if account.reference_month is not None and account.reference_year is not None:
            previous = Period(month=account.reference_month, year=account.reference_year)

        # Months the current schedule touches, to refresh once it is replaced
        affected = self._installment_periods(account.id) if schedule_changed else []

        if patch.reference_month is not None:
            period = Period(month=patch.reference_month, year=patch.reference_year)
        elif patch.start_date is not None or patch.closing_day is not None or type_changed or previous is None:
            period = policy.resolve_reference_period(terms, self.today())
        else:
            period = previous

        with unit_of_work(self.db):
            account.name = _pick(patch.name, account.name)
            account.type = account_type.value
            account.start_date = terms.start_date
            account.due_day = terms.due_day
            account.installments = terms.installments
            account.closing_day = terms.closing_day
            account.credit_limit = terms.credit_limit
            account.is_paid = _pick(patch.is_paid, account.is_paid)
            account.is_preview = _pick(patch.is_preview, account.is_preview)
            account.reference_month = period.month
            account.reference_year = period.year
            self._apply_amounts(account, amounts)

        record_account_mutation("update", account.type)
        logger.info(
            "Account updated",
            extra={"user_id": user_id, "account_id": str(account.id), "schedule_changed": schedule_changed},
        )

        effects = []
        if schedule_changed:
            effects.append(
                run_best_effort(
                    self.db,
                    REGENERATE_INSTALLMENTS,
                    lambda: self.installment_service.regenerate(account),
                    account_id=str(account.id),
                )
            )
            card_id = account.id if account.type == AccountType.CREDIT_CARD.value else account.credit_card_id
            if card_id is not None:
                effects.append(self.credit_cards.recalculate_best_effort(card_id))

        periods = [period]
        if previous is not None and previous != period:
            periods.append(previous)
        if schedule_changed:
            periods.extend(affected + self._installment_periods(account.id))
        effects.append(self._recalculate(user_id, periods))
        return OperationResult(account, effects)

    def update_temporal_reference(
        self, user_id: str, account_id: uuid.UUID, month: int, year: int
    ) -> OperationResult[Account]:
        """Move an account to another billing period without touching its schedule"""
        return self.update(user_id, account_id, AccountPatch(reference_month=month, reference_year=year))

    def delete(self, user_id: str, account_id: uuid.UUID) -> OperationResult[uuid.UUID]:
        """
        Remove an account with its installments, transactions and card links.

        Everything is deleted in one database transaction. Card links are
        removed on both sides, and accounts billed through a deleted card are
        detached from it.
        """
        account = self._get_account(user_id, account_id)
        account_type = account.type
        linked_card_id = account.credit_card_id

        installment_ids = self.installments.ids_by_account(account.id)
        removed = self.transactions.list_for_account(account.id, installment_ids)

        periods = []
        if account.reference_month is not None and account.reference_year is not None:
            periods.append(Period(month=account.reference_month, year=account.reference_year))
        else:
            periods.append(Period(month=account.start_date.month, year=account.start_date.year))
        periods.extend(self._installment_periods(account.id))
        # Payments may be dated outside the account's own months
        periods.extend(Period(month=txn.date.month, year=txn.date.year) for txn in removed)

        with unit_of_work(self.db):
            removed_transactions = self.transactions.delete_for_account(account.id, installment_ids)
            self.installments.delete_by_account(account.id)
            if account_type == AccountType.CREDIT_CARD.value:
                self.credit_card_items.delete_by_credit_card(account.id)
                self.accounts.clear_credit_card_references(account.id)
            self.credit_card_items.delete_by_account(account.id)
            self.accounts.delete(account)

        record_account_mutation("delete", account_type)
        logger.info(
            "Account deleted",
            extra={
                "user_id": user_id,
                "account_id": str(account_id),
                "installments": len(installment_ids),
                "transactions": removed_transactions,
            },
        )

        effects = []
        if linked_card_id is not None:
            effects.append(self.credit_cards.recalculate_best_effort(linked_card_id))
        effects.append(self._recalculate(user_id, periods))
        return OperationResult(account_id, effects)

    # ---- queries ------------------------------------------------------

    def get_account(self, user_id: str, account_id: uuid.UUID) -> AccountDetails:
        """Account with its schedule and how much of it has been paid"""
        account = self._get_account(user_id, account_id)
        installments = self.installments.list_by_account(account.id)
        total = account.total_amount or 0

        if installments:
            amount_paid = sum(item.amount for item in installments if item.is_paid)
        else:
            amount_paid = total if account.is_paid else 0

        return AccountDetails(
            account=account,
            installments=installments,
            amount_paid=amount_paid,
            remaining_amount=max(total - amount_paid, 0),
        )

    def list_accounts(
        self, user_id: str, is_paid: Optional[bool] = None, page: int = 1, limit: int = 10
    ) -> Page[Account]:
        items, total = self.accounts.list_for_user(user_id, is_paid=is_paid, offset=(page - 1) * limit, limit=limit)
        return Page(items=items, total=total, page=page, limit=limit)

    def find_by_period(self, user_id: str, month: int, year: int) -> List[Account]:
        _check_reference_period(month, year)
        return self.accounts.find_by_period(user_id, month, year)

    def find_unpaid_by_period(self, user_id: str, month: int, year: int) -> List[Account]:
        _check_reference_period(month, year)
        return self.accounts.find_by_period(user_id, month, year, is_paid=False)

    def period_statistics(self, user_id: str, month: int, year: int) -> PeriodStatistics:
        accounts = self.find_by_period(user_id, month, year)
        paid = [account for account in accounts if account.is_paid]
        total_amount = sum(account.total_amount or 0 for account in accounts)
        paid_amount = sum(account.total_amount or 0 for account in paid)
        return PeriodStatistics(
            reference_month=month,
            reference_year=year,
            total_accounts=len(accounts),
            paid_accounts=len(paid),
            unpaid_accounts=len(accounts) - len(paid),
            total_amount=total_amount,
            paid_amount=paid_amount,
            unpaid_amount=total_amount - paid_amount,
        )

    # ---- helpers ------------------------------------------------------

    def _apply_amounts(self, account: Account, amounts: AccountAmounts) -> None:
        account.total_amount = amounts.total_amount
        account.installment_amount = amounts.installment_amount
        if amounts.loan is not None:
            account.monthly_interest_rate = amounts.loan.monthly_interest_rate
            account.total_interest = amounts.loan.total_interest
        else:
            account.monthly_interest_rate = None
            account.total_interest = None

    def _installment_periods(self, account_id: uuid.UUID) -> List[Period]:
        return [
            Period(month=item.reference_month, year=item.reference_year)
            for item in self.installments.list_by_account(account_id)
        ]

    def _recalculate(self, user_id: str, periods: List[Period]) -> SideEffect:
        return run_best_effort(
            self.db,
            RECALCULATE_SUMMARY,
            lambda: self.summaries.recalculate_many(user_id, periods),
            user_id=user_id,
            periods=[(p.month, p.year) for p in periods],
        )

    def _get_account(self, user_id: str, account_id: uuid.UUID) -> Account:
        account = self.accounts.get_for_user(user_id, account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found", code="ACCOUNT_NOT_FOUND")
        return account
