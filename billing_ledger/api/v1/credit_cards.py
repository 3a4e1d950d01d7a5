"""/v1/credit-cards - link accounts to credit cards"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import get_current_user_id
from billing_ledger.api.v1.schemas import (
    AccountSchema,
    CreditCardItemSchema,
    CreditCardLinkRequest,
    CreditCardLinkResponse,
    InstallmentSchema,
    LinkedAccountsResponse,
    MutationMeta,
)
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.credit_cards import CreditCardService

router = APIRouter()


@router.post("/credit-cards/{credit_card_id}/accounts", response_model=CreditCardLinkResponse, status_code=201)
def associate_account(
    credit_card_id: uuid.UUID,
    body: CreditCardLinkRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = CreditCardService(db).associate(user_id, credit_card_id, body.account_id)
    return CreditCardLinkResponse(item=CreditCardItemSchema.model_validate(result.value), **MutationMeta.from_result(result))


@router.delete("/credit-cards/{credit_card_id}/accounts/{account_id}", response_model=CreditCardLinkResponse)
def disassociate_account(
    credit_card_id: uuid.UUID,
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = CreditCardService(db).disassociate(user_id, credit_card_id, account_id)
    return CreditCardLinkResponse(**MutationMeta.from_result(result))


@router.get("/credit-cards/{credit_card_id}/accounts", response_model=LinkedAccountsResponse)
def list_linked_accounts(
    credit_card_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    accounts = CreditCardService(db).list_linked_accounts(user_id, credit_card_id)
    return LinkedAccountsResponse(
        credit_card_id=credit_card_id,
        accounts=[AccountSchema.model_validate(account) for account in accounts],
    )


@router.post("/credit-cards/{credit_card_id}/recalculate", response_model=list[InstallmentSchema])
def recalculate_breakdown(
    credit_card_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Rebuild the charge breakdown of every installment of the card"""
    service = CreditCardService(db)
    card = service.get_card(user_id, credit_card_id)
    return [InstallmentSchema.model_validate(item) for item in service.recalculate_credit_card_installments(card.id)]
