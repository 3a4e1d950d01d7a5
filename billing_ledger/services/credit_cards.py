"""Credit-card links and per-installment charge breakdowns"""

import logging
import uuid
from collections import defaultdict
from typing import Dict, List, Tuple

from sqlalchemy.orm import Session

from billing_ledger.domain.exceptions import BusinessRuleError, ConflictError, NotFoundError
from billing_ledger.domain.models import AccountType, OperationResult, SideEffect
from billing_ledger.infrastructure.database.models import Account, CreditCardItem, Installment
from billing_ledger.infrastructure.database.repositories import (
    AccountRepository,
    CreditCardItemRepository,
    InstallmentRepository,
)
from billing_ledger.infrastructure.database.session import unit_of_work
from billing_ledger.services.side_effects import RECALCULATE_CREDIT_CARD_INSTALLMENTS, run_best_effort

logger = logging.getLogger(__name__)

BREAKDOWN_ERROR_CODE = "CREDIT_CARD_INSTALLMENTS_RECALCULATION_ERROR"


class CreditCardService:
    """Links accounts to CREDIT_CARD accounts and keeps card breakdowns current"""

    def __init__(self, db: Session):
        self.db = db
        self.accounts = AccountRepository(db)
        self.installments = InstallmentRepository(db)
        self.items = CreditCardItemRepository(db)

    def associate(
        self, user_id: str, credit_card_id: uuid.UUID, account_id: uuid.UUID
    ) -> OperationResult[CreditCardItem]:
        """Bill an account through a card, then rebuild the card's breakdown"""
        card = self.get_card(user_id, credit_card_id)
        account = self.accounts.get_for_user(user_id, account_id)
        if account is None:
            raise NotFoundError(f"Account with ID {account_id} not found", code="ACCOUNT_NOT_FOUND")
        if account.id == card.id:
            raise BusinessRuleError("A credit card cannot be linked to itself", code="CREDIT_CARD_SELF_LINK")
        if self.items.get(card.id, account.id) is not None:
            raise ConflictError(
                f"Account {account_id} is already linked to credit card {credit_card_id}",
                code="CREDIT_CARD_LINK_ALREADY_EXISTS",
            )

        with unit_of_work(self.db):
            item = self.items.add(card.id, account.id)
            account.credit_card_id = card.id

        logger.info(
            "Account linked to credit card",
            extra={"user_id": user_id, "credit_card_id": str(card.id), "account_id": str(account.id)},
        )
        return OperationResult(item, [self.recalculate_best_effort(card.id)])

    def disassociate(self, user_id: str, credit_card_id: uuid.UUID, account_id: uuid.UUID) -> OperationResult[None]:
        card = self.get_card(user_id, credit_card_id)
        item = self.items.get(card.id, account_id)
        if item is None:
            raise NotFoundError(
                f"Account {account_id} is not linked to credit card {credit_card_id}",
                code="CREDIT_CARD_LINK_NOT_FOUND",
            )

        with unit_of_work(self.db):
            self.items.delete(item)
            account = self.accounts.get(account_id)
            if account is not None and account.credit_card_id == card.id:
                account.credit_card_id = None

        logger.info(
            "Account unlinked from credit card",
            extra={"user_id": user_id, "credit_card_id": str(card.id), "account_id": str(account_id)},
        )
        return OperationResult(None, [self.recalculate_best_effort(card.id)])

    def list_linked_accounts(self, user_id: str, credit_card_id: uuid.UUID) -> List[Account]:
        """Accounts billed through the card, most recently linked first"""
        card = self.get_card(user_id, credit_card_id)
        ids = self.items.linked_account_ids(card.id)
        by_id = {account.id: account for account in self.accounts.list_by_ids(ids)}
        return [by_id[account_id] for account_id in ids if account_id in by_id]

    def recalculate_credit_card_installments(self, credit_card_id: uuid.UUID) -> List[Installment]:
        """
        Rebuild the breakdown stored on each installment of a card.

        A card installment lists every linked-account installment attributed
        to the same reference period, with their total in cents.
        """
        card_installments = self.installments.list_by_account(credit_card_id)
        linked_ids = self.items.linked_account_ids(credit_card_id)
        names = {account.id: account.name for account in self.accounts.list_by_ids(linked_ids)}

        charges: Dict[Tuple[int, int], List[dict]] = defaultdict(list)
        for charge in self.installments.list_by_accounts(linked_ids):
            charges[(charge.reference_year, charge.reference_month)].append(
                {
                    "account_id": str(charge.account_id),
                    "account_name": names.get(charge.account_id),
                    "installment_number": charge.number,
                    "amount": charge.amount,
                }
            )

        with unit_of_work(self.db):
            for installment in card_installments:
                items = charges.get((installment.reference_year, installment.reference_month), [])
                installment.breakdown = {"items": items, "total": sum(item["amount"] for item in items)}

        logger.info(
            "Credit card breakdown recalculated",
            extra={
                "credit_card_id": str(credit_card_id),
                "installments": len(card_installments),
                "linked_accounts": len(linked_ids),
            },
        )
        return card_installments

    def recalculate_best_effort(self, credit_card_id: uuid.UUID) -> SideEffect:
        return run_best_effort(
            self.db,
            RECALCULATE_CREDIT_CARD_INSTALLMENTS,
            lambda: self.recalculate_credit_card_installments(credit_card_id),
            error_code=BREAKDOWN_ERROR_CODE,
            credit_card_id=str(credit_card_id),
        )

    def get_card(self, user_id: str, credit_card_id: uuid.UUID) -> Account:
        card = self.accounts.get_for_user(user_id, credit_card_id)
        if card is None:
            raise NotFoundError(f"Credit card with ID {credit_card_id} not found", code="CREDIT_CARD_NOT_FOUND")
        if card.type != AccountType.CREDIT_CARD.value:
            raise BusinessRuleError(f"Account {credit_card_id} is not a credit card", code="NOT_A_CREDIT_CARD")
        return card
