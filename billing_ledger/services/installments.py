"""Installment schedule persistence and queries"""

import logging
import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from billing_ledger.domain.account_types import get_policy
from billing_ledger.domain.exceptions import BusinessRuleError, NotFoundError
from billing_ledger.domain.installments import generate_installment_schedule
from billing_ledger.domain.models import AccountAmounts, Page
from billing_ledger.infrastructure.database.models import Account, Installment
from billing_ledger.infrastructure.database.repositories import AccountRepository, InstallmentRepository
from billing_ledger.infrastructure.database.session import unit_of_work
from billing_ledger.infrastructure.observability.metrics import installments_generated_counter

logger = logging.getLogger(__name__)


class InstallmentService:
    """Builds, replaces and queries account installments"""

    def __init__(self, db: Session):
        self.db = db
        self.installments = InstallmentRepository(db)
        self.accounts = AccountRepository(db)

    def regenerate(self, account: Account) -> List[Installment]:
        """
        Replace the account's schedule with one derived from its current fields.

        Delete and recreate run in a single database transaction: a failure
        leaves the previous complete set in place. Accounts without an
        installment count end up with no installments. Paid installments keep
        their paid state by number; a paid account left with unpaid
        installments is marked unpaid.
        """
        policy = get_policy(account.type)
        amount = policy.schedule_amount(
            AccountAmounts(total_amount=account.total_amount, installment_amount=account.installment_amount)
        )

        schedule = []
        if account.installments and amount is not None:
            schedule = generate_installment_schedule(
                policy.generation_strategy(),
                amount,
                account.installments,
                account.start_date,
                account.due_day,
            )

        with unit_of_work(self.db):
            replaced = self.installments.count_by_account(account.id)
            rows = self.installments.replace_for_account(account.id, schedule)
            # A paid account cannot keep owing installments it did not owe before
            if replaced and account.is_paid and not all(row.is_paid for row in rows):
                account.is_paid = False

        installments_generated_counter.labels(strategy=policy.generation_strategy().value).inc(len(rows))
        logger.info(
            "Installments generated",
            extra={
                "account_id": str(account.id),
                "strategy": policy.generation_strategy().value,
                "count": len(rows),
            },
        )
        return rows

    def get(self, user_id: str, installment_id: uuid.UUID) -> Installment:
        installment = self.installments.get_for_user(user_id, installment_id)
        if installment is None:
            raise NotFoundError(f"Installment with ID {installment_id} not found", code="INSTALLMENT_NOT_FOUND")
        return installment

    def list_by_account(
        self,
        user_id: str,
        account_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
        unpaid_only: bool = False,
    ) -> Page[Installment]:
        """Paginated installments of one account, ordered by number"""
        self._require_account(user_id, account_id)
        offset = (page - 1) * limit
        items = self.installments.list_by_account(account_id, unpaid_only=unpaid_only, offset=offset, limit=limit)
        total = self.installments.count_by_account(account_id, unpaid_only=unpaid_only)
        return Page(items=items, total=total, page=page, limit=limit)

    def list_overdue(
        self,
        user_id: str,
        account_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 10,
        today: Optional[date] = None,
    ) -> Page[Installment]:
        """Unpaid installments already past their due date"""
        if account_id is not None:
            self._require_account(user_id, account_id)
        items, total = self.installments.list_overdue(
            user_id,
            today or date.today(),
            account_id=account_id,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return Page(items=items, total=total, page=page, limit=limit)

    def delete(self, installment_id: uuid.UUID) -> None:
        """Installments only disappear with a full schedule regeneration"""
        raise BusinessRuleError(
            f"Installment {installment_id} cannot be deleted individually",
            code="INSTALLMENT_INDIVIDUAL_DELETION_NOT_ALLOWED",
        )

    def _require_account(self, user_id: str, account_id: uuid.UUID) -> Account:
        account = self.accounts.get_for_user(user_id, account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found", code="ACCOUNT_NOT_FOUND")
        return account
