"""/v1/installments - schedule queries and installment payments"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import Pagination, get_current_user_id, get_pagination
from billing_ledger.api.v1.schemas import (
    InstallmentListResponse,
    InstallmentPaymentResponse,
    InstallmentSchema,
    MutationMeta,
    TransactionSchema,
)
from billing_ledger.domain.models import Page
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.installments import InstallmentService
from billing_ledger.services.payments import PaymentService

router = APIRouter()


def _to_response(page: Page) -> InstallmentListResponse:
    return InstallmentListResponse(
        items=[InstallmentSchema.model_validate(item) for item in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        has_next_page=page.has_next_page,
        has_prev_page=page.has_prev_page,
    )


@router.get("/accounts/{account_id}/installments", response_model=InstallmentListResponse)
def list_account_installments(
    account_id: uuid.UUID,
    unpaid_only: bool = Query(False),
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    page = InstallmentService(db).list_by_account(
        user_id, account_id, pagination.page, pagination.limit, unpaid_only=unpaid_only
    )
    return _to_response(page)


@router.get("/installments/overdue", response_model=InstallmentListResponse)
def list_overdue_installments(
    account_id: Optional[uuid.UUID] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    page = InstallmentService(db).list_overdue(user_id, account_id, pagination.page, pagination.limit)
    return _to_response(page)


@router.get("/installments/{installment_id}", response_model=InstallmentSchema)
def get_installment(
    installment_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return InstallmentSchema.model_validate(InstallmentService(db).get(user_id, installment_id))


@router.post("/installments/{installment_id}/pay", response_model=InstallmentPaymentResponse)
def mark_installment_paid(
    installment_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Pay one installment; records an INSTALLMENT_PAYMENT expense dated at its due date"""
    result = PaymentService(db).mark_installment_paid(user_id, installment_id)
    return InstallmentPaymentResponse(
        installment=InstallmentSchema.model_validate(result.value.installment),
        transaction=TransactionSchema.model_validate(result.value.transaction),
        **MutationMeta.from_result(result),
    )


@router.post("/installments/{installment_id}/unpay", response_model=InstallmentSchema)
def mark_installment_unpaid(
    installment_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return InstallmentSchema.model_validate(PaymentService(db).mark_installment_unpaid(user_id, installment_id))


@router.delete("/installments/{installment_id}", status_code=204)
def delete_installment(
    installment_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    InstallmentService(db).delete(installment_id)
