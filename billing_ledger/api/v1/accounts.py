"""/v1/accounts - account lifecycle endpoints"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import Pagination, get_current_user_id, get_pagination
from billing_ledger.api.v1.schemas import (
    AccountCreateRequest,
    AccountDetailResponse,
    AccountListResponse,
    AccountMutationResponse,
    AccountPaymentResponse,
    AccountSchema,
    AccountUpdateRequest,
    DeleteResponse,
    InstallmentSchema,
    MarkAccountPaidRequest,
    MutationMeta,
    PeriodStatisticsResponse,
    TemporalReferenceRequest,
    TransactionSchema,
)
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.accounts import AccountLifecycleService
from billing_ledger.services.payments import PaymentService

router = APIRouter()


@router.post("/accounts", response_model=AccountMutationResponse, status_code=201)
def create_account(
    body: AccountCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create an account and generate its installment schedule.

    The account is committed even when schedule or summary generation fails;
    `stale` then reports which trailing steps need a retry.
    """
    result = AccountLifecycleService(db).create(user_id, body.to_draft())
    return AccountMutationResponse(account=AccountSchema.model_validate(result.value), **MutationMeta.from_result(result))


@router.get("/accounts", response_model=AccountListResponse)
def list_accounts(
    is_paid: Optional[bool] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    page = AccountLifecycleService(db).list_accounts(user_id, is_paid, pagination.page, pagination.limit)
    return AccountListResponse(
        items=[AccountSchema.model_validate(account) for account in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        has_next_page=page.has_next_page,
        has_prev_page=page.has_prev_page,
    )


@router.get("/accounts/period", response_model=List[AccountSchema])
def find_accounts_by_period(
    month: int = Query(...),
    year: int = Query(...),
    unpaid_only: bool = Query(False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = AccountLifecycleService(db)
    if unpaid_only:
        accounts = service.find_unpaid_by_period(user_id, month, year)
    else:
        accounts = service.find_by_period(user_id, month, year)
    return [AccountSchema.model_validate(account) for account in accounts]


@router.get("/accounts/period/statistics", response_model=PeriodStatisticsResponse)
def period_statistics(
    month: int = Query(...),
    year: int = Query(...),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    stats = AccountLifecycleService(db).period_statistics(user_id, month, year)
    return PeriodStatisticsResponse.model_validate(stats)


@router.get("/accounts/{account_id}", response_model=AccountDetailResponse)
def get_account(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    details = AccountLifecycleService(db).get_account(user_id, account_id)
    return AccountDetailResponse(
        **AccountSchema.model_validate(details.account).model_dump(),
        installment_list=[InstallmentSchema.model_validate(item) for item in details.installments],
        amount_paid=details.amount_paid,
        remaining_amount=details.remaining_amount,
    )


@router.patch("/accounts/{account_id}", response_model=AccountMutationResponse)
def update_account(
    account_id: uuid.UUID,
    body: AccountUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = AccountLifecycleService(db).update(user_id, account_id, body.to_patch())
    return AccountMutationResponse(account=AccountSchema.model_validate(result.value), **MutationMeta.from_result(result))


@router.patch("/accounts/{account_id}/reference", response_model=AccountMutationResponse)
def update_temporal_reference(
    account_id: uuid.UUID,
    body: TemporalReferenceRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = AccountLifecycleService(db).update_temporal_reference(
        user_id, account_id, body.reference_month, body.reference_year
    )
    return AccountMutationResponse(account=AccountSchema.model_validate(result.value), **MutationMeta.from_result(result))


@router.delete("/accounts/{account_id}", response_model=DeleteResponse)
def delete_account(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = AccountLifecycleService(db).delete(user_id, account_id)
    return DeleteResponse(id=result.value, **MutationMeta.from_result(result))


@router.post("/accounts/{account_id}/pay", response_model=AccountPaymentResponse)
def mark_account_paid(
    account_id: uuid.UUID,
    body: MarkAccountPaidRequest = MarkAccountPaidRequest(),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    result = PaymentService(db).mark_account_paid(user_id, account_id, body.payment_amount)
    payment = result.value
    return AccountPaymentResponse(
        account=AccountSchema.model_validate(payment.account),
        transaction=TransactionSchema.model_validate(payment.transaction),
        installments_settled=payment.installments_settled,
        **MutationMeta.from_result(result),
    )
