"""Data access layer for ledger entities"""

import uuid
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from billing_ledger.domain.models import ScheduledInstallment, SummaryTotals
from billing_ledger.infrastructure.database.models import (
    Account,
    CreditCardItem,
    Installment,
    MonthlySummary,
    Transaction,
)


class AccountRepository:
    """Repository for accounts"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, account: Account) -> Account:
        """Stage a new account and assign its ID without committing"""
        self.db.add(account)
        self.db.flush()
        return account

    def get(self, account_id: uuid.UUID) -> Optional[Account]:
        return self.db.get(Account, account_id)

    def get_for_user(self, user_id: str, account_id: uuid.UUID) -> Optional[Account]:
        """Fetch an account only if it belongs to the user"""
        return (
            self.db.query(Account)
            .filter(Account.id == account_id, Account.user_id == user_id)
            .first()
        )

    def list_for_user(
        self,
        user_id: str,
        is_paid: Optional[bool] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Account], int]:
        """Paginated accounts of a user, newest first"""
        query = self.db.query(Account).filter(Account.user_id == user_id)
        if is_paid is not None:
            query = query.filter(Account.is_paid == is_paid)

        total = query.count()
        accounts = query.order_by(Account.created_at.desc()).offset(offset).limit(limit).all()
        return accounts, total

    def find_by_period(
        self,
        user_id: str,
        month: int,
        year: int,
        is_paid: Optional[bool] = None,
    ) -> List[Account]:
        """Accounts attributed to a billing period, ordered by due day"""
        query = self.db.query(Account).filter(
            Account.user_id == user_id,
            Account.reference_month == month,
            Account.reference_year == year,
        )
        if is_paid is not None:
            query = query.filter(Account.is_paid == is_paid)
        return query.order_by(Account.due_day.asc()).all()

    def list_all_for_user(self, user_id: str) -> List[Account]:
        return self.db.query(Account).filter(Account.user_id == user_id).all()

    def list_by_ids(self, account_ids: Iterable[uuid.UUID]) -> List[Account]:
        ids = list(account_ids)
        if not ids:
            return []
        return self.db.query(Account).filter(Account.id.in_(ids)).all()

    def clear_credit_card_references(self, credit_card_id: uuid.UUID) -> int:
        """Detach every account pointing at a credit card"""
        return (
            self.db.query(Account)
            .filter(Account.credit_card_id == credit_card_id)
            .update({Account.credit_card_id: None}, synchronize_session="fetch")
        )

    def delete(self, account: Account) -> None:
        self.db.delete(account)
        self.db.flush()


class InstallmentRepository:
    """Repository for installments"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, installment_id: uuid.UUID) -> Optional[Installment]:
        return self.db.get(Installment, installment_id)

    def get_for_user(self, user_id: str, installment_id: uuid.UUID) -> Optional[Installment]:
        """Fetch an installment only if its account belongs to the user"""
        return (
            self.db.query(Installment)
            .join(Account, Installment.account_id == Account.id)
            .filter(Installment.id == installment_id, Account.user_id == user_id)
            .first()
        )

    def list_by_account(
        self,
        account_id: uuid.UUID,
        unpaid_only: bool = False,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Installment]:
        """Installments of an account ordered by number"""
        query = self._by_account(account_id, unpaid_only).order_by(Installment.number.asc())
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_by_account(self, account_id: uuid.UUID, unpaid_only: bool = False) -> int:
        return self._by_account(account_id, unpaid_only).count()

    def list_by_accounts(self, account_ids: Iterable[uuid.UUID]) -> List[Installment]:
        ids = list(account_ids)
        if not ids:
            return []
        return (
            self.db.query(Installment)
            .filter(Installment.account_id.in_(ids))
            .order_by(Installment.account_id, Installment.number.asc())
            .all()
        )

    def replace_for_account(self, account_id: uuid.UUID, schedule: List[ScheduledInstallment]) -> List[Installment]:
        """
        Swap an account's whole schedule for a new one.

        Deletes the existing rows and stages the new batch in the same session;
        the caller commits both or rolls both back. Paid state carries over by
        installment number, and so do the payments that referenced the old
        rows. Payments whose number no longer exists stay in the ledger,
        detached from any installment.
        """
        old_rows = self.list_by_account(account_id)
        number_by_id = {row.id: row.number for row in old_rows}
        paid_at_by_number = {row.number: row.paid_at for row in old_rows if row.is_paid}

        payments = []
        if number_by_id:
            linked = self.db.query(Transaction).filter(Transaction.installment_id.in_(list(number_by_id)))
            payments = [(txn, number_by_id[txn.installment_id]) for txn in linked.all()]
            # Unique installment_id: detach before the old rows go away
            linked.update({Transaction.installment_id: None}, synchronize_session="fetch")
        self.delete_by_account(account_id)

        rows = [
            Installment(
                account_id=account_id,
                number=item.number,
                due_date=item.due_date,
                amount=item.amount_cents,
                is_paid=item.number in paid_at_by_number,
                paid_at=paid_at_by_number.get(item.number),
                reference_month=item.reference_month,
                reference_year=item.reference_year,
            )
            for item in schedule
        ]
        self.db.add_all(rows)
        self.db.flush()

        by_number = {row.number: row for row in rows}
        for txn, number in payments:
            if number in by_number:
                txn.installment_id = by_number[number].id
        if payments:
            self.db.flush()
        return rows

    def delete_by_account(self, account_id: uuid.UUID) -> int:
        return (
            self.db.query(Installment)
            .filter(Installment.account_id == account_id)
            .delete(synchronize_session="fetch")
        )

    def ids_by_account(self, account_id: uuid.UUID) -> List[uuid.UUID]:
        rows = self.db.query(Installment.id).filter(Installment.account_id == account_id).all()
        return [row.id for row in rows]

    def mark_unpaid_as_paid(self, account_id: uuid.UUID, paid_at: datetime) -> int:
        """Settle every unpaid installment of an account with one shared timestamp"""
        return (
            self.db.query(Installment)
            .filter(Installment.account_id == account_id, Installment.is_paid.is_(False))
            .update({Installment.is_paid: True, Installment.paid_at: paid_at}, synchronize_session="fetch")
        )

    def list_unpaid_due_between(self, user_id: str, start: date, end: date) -> List[Installment]:
        """Unpaid installments of the user's accounts due within [start, end]"""
        return (
            self.db.query(Installment)
            .join(Account, Installment.account_id == Account.id)
            .filter(
                Account.user_id == user_id,
                Installment.is_paid.is_(False),
                Installment.due_date >= start,
                Installment.due_date <= end,
            )
            .all()
        )

    def list_overdue(
        self,
        user_id: str,
        today: date,
        account_id: Optional[uuid.UUID] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Installment], int]:
        """Unpaid installments due before today, oldest first"""
        query = (
            self.db.query(Installment)
            .join(Account, Installment.account_id == Account.id)
            .filter(
                Account.user_id == user_id,
                Installment.is_paid.is_(False),
                Installment.due_date < today,
            )
        )
        if account_id is not None:
            query = query.filter(Installment.account_id == account_id)

        total = query.count()
        items = query.order_by(Installment.due_date.asc()).offset(offset).limit(limit).all()
        return items, total

    def _by_account(self, account_id: uuid.UUID, unpaid_only: bool):
        query = self.db.query(Installment).filter(Installment.account_id == account_id)
        if unpaid_only:
            query = query.filter(Installment.is_paid.is_(False))
        return query


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def get(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.get(Transaction, transaction_id)

    def get_for_user(self, user_id: str, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .first()
        )

    def find_by_installment(self, installment_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.installment_id == installment_id).first()

    def list_between(
        self,
        user_id: str,
        start: date,
        end: date,
        txn_type: Optional[str] = None,
    ) -> List[Transaction]:
        """Transactions of a user dated within [start, end]"""
        query = self.db.query(Transaction).filter(
            Transaction.user_id == user_id,
            Transaction.date >= start,
            Transaction.date <= end,
        )
        if txn_type is not None:
            query = query.filter(Transaction.type == txn_type)
        return query.all()

    def list_filtered(
        self,
        user_id: str,
        txn_type: Optional[str] = None,
        category: Optional[str] = None,
        account_id: Optional[uuid.UUID] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Transaction], int]:
        """Paginated transactions, most recent first"""
        query = self.db.query(Transaction).filter(Transaction.user_id == user_id)
        if txn_type is not None:
            query = query.filter(Transaction.type == txn_type)
        if category is not None:
            query = query.filter(Transaction.category == category)
        if account_id is not None:
            query = query.filter(Transaction.account_id == account_id)
        if start is not None:
            query = query.filter(Transaction.date >= start)
        if end is not None:
            query = query.filter(Transaction.date <= end)

        total = query.count()
        items = (
            query.order_by(Transaction.date.desc(), Transaction.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def delete(self, transaction: Transaction) -> None:
        self.db.delete(transaction)
        self.db.flush()

    def list_for_account(self, account_id: uuid.UUID, installment_ids: List[uuid.UUID]) -> List[Transaction]:
        """Transactions tied to an account directly or through its installments"""
        query = self.db.query(Transaction)
        if installment_ids:
            return query.filter(
                (Transaction.account_id == account_id) | Transaction.installment_id.in_(installment_ids)
            ).all()
        return query.filter(Transaction.account_id == account_id).all()

    def delete_for_account(self, account_id: uuid.UUID, installment_ids: List[uuid.UUID]) -> int:
        """Delete transactions tied to an account directly or through its installments"""
        deleted = 0
        if installment_ids:
            deleted += (
                self.db.query(Transaction)
                .filter(Transaction.installment_id.in_(installment_ids))
                .delete(synchronize_session="fetch")
            )
        deleted += (
            self.db.query(Transaction)
            .filter(Transaction.account_id == account_id)
            .delete(synchronize_session="fetch")
        )
        return deleted


class MonthlySummaryRepository:
    """Repository for derived monthly summaries"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str, month: int, year: int) -> Optional[MonthlySummary]:
        return (
            self.db.query(MonthlySummary)
            .filter(
                MonthlySummary.user_id == user_id,
                MonthlySummary.reference_month == month,
                MonthlySummary.reference_year == year,
            )
            .first()
        )

    def upsert(
        self,
        user_id: str,
        month: int,
        year: int,
        totals: SummaryTotals,
        calculated_at: datetime,
    ) -> MonthlySummary:
        """Insert or overwrite the (user, year, month) row with fresh totals"""
        summary = self.get(user_id, month, year)
        if summary is None:
            summary = MonthlySummary(user_id=user_id, reference_month=month, reference_year=year)
            self.db.add(summary)

        summary.total_income = totals.total_income
        summary.total_expenses = totals.total_expenses
        summary.total_balance = totals.total_balance
        summary.bills_to_pay = totals.bills_to_pay
        summary.bills_count = totals.bills_count
        summary.status = totals.status.value
        summary.last_calculated_at = calculated_at

        self.db.flush()
        return summary


class CreditCardItemRepository:
    """Repository for credit-card links"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, credit_card_id: uuid.UUID, account_id: uuid.UUID) -> Optional[CreditCardItem]:
        return (
            self.db.query(CreditCardItem)
            .filter(
                CreditCardItem.credit_card_id == credit_card_id,
                CreditCardItem.account_id == account_id,
            )
            .first()
        )

    def add(self, credit_card_id: uuid.UUID, account_id: uuid.UUID) -> CreditCardItem:
        item = CreditCardItem(credit_card_id=credit_card_id, account_id=account_id)
        self.db.add(item)
        self.db.flush()
        return item

    def delete(self, item: CreditCardItem) -> None:
        self.db.delete(item)
        self.db.flush()

    def linked_account_ids(self, credit_card_id: uuid.UUID) -> List[uuid.UUID]:
        rows = (
            self.db.query(CreditCardItem.account_id)
            .filter(CreditCardItem.credit_card_id == credit_card_id)
            .order_by(CreditCardItem.created_at.desc())
            .all()
        )
        return [row.account_id for row in rows]

    def delete_by_credit_card(self, credit_card_id: uuid.UUID) -> int:
        return (
            self.db.query(CreditCardItem)
            .filter(CreditCardItem.credit_card_id == credit_card_id)
            .delete(synchronize_session="fetch")
        )

    def delete_by_account(self, account_id: uuid.UUID) -> int:
        return (
            self.db.query(CreditCardItem)
            .filter(CreditCardItem.account_id == account_id)
            .delete(synchronize_session="fetch")
        )
