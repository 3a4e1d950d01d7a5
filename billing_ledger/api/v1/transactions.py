"""/v1/transactions - ledger entries and reports"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billing_ledger.api.dependencies import Pagination, get_category_validator, get_current_user_id, get_pagination
from billing_ledger.api.v1.schemas import (
    CategoryExpenseSchema,
    DeleteResponse,
    ExpensesByCategoryResponse,
    MutationMeta,
    TransactionCreateRequest,
    TransactionListResponse,
    TransactionMutationResponse,
    TransactionSchema,
    UserBalanceResponse,
)
from billing_ledger.domain.models import TransactionType
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.categories import CategoryValidator
from billing_ledger.services.payments import PaymentService
from billing_ledger.services.reports import ReportService

router = APIRouter()


@router.post("/transactions/income", response_model=TransactionMutationResponse, status_code=201)
def create_income(
    body: TransactionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    categories: CategoryValidator = Depends(get_category_validator),
):
    result = PaymentService(db, categories).create_income(user_id, body.to_draft())
    return TransactionMutationResponse(
        transaction=TransactionSchema.model_validate(result.value), **MutationMeta.from_result(result)
    )


@router.post("/transactions/expense", response_model=TransactionMutationResponse, status_code=201)
def create_expense(
    body: TransactionCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    categories: CategoryValidator = Depends(get_category_validator),
):
    """
    Record an expense.

    With `account_id` the value must settle the account: its unpaid
    installments, and its total when set, are marked paid with it.
    """
    result = PaymentService(db, categories).create_expense(user_id, body.to_draft())
    return TransactionMutationResponse(
        transaction=TransactionSchema.model_validate(result.value), **MutationMeta.from_result(result)
    )


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    type: Optional[TransactionType] = Query(None),
    category: Optional[str] = Query(None),
    account_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: Pagination = Depends(get_pagination),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    page = PaymentService(db).list_transactions(
        user_id,
        txn_type=type,
        category=category,
        account_id=account_id,
        start=start_date,
        end=end_date,
        page=pagination.page,
        limit=pagination.limit,
    )
    return TransactionListResponse(
        items=[TransactionSchema.model_validate(txn) for txn in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        has_next_page=page.has_next_page,
        has_prev_page=page.has_prev_page,
    )


@router.get("/transactions/balance", response_model=UserBalanceResponse)
def get_user_balance(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return UserBalanceResponse.model_validate(ReportService(db).user_balance(user_id, month, year))


@router.get("/transactions/expenses-by-category", response_model=ExpensesByCategoryResponse)
def get_expenses_by_category(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    groups = ReportService(db).expenses_by_category(user_id, month, year)
    return ExpensesByCategoryResponse(categories=[CategoryExpenseSchema.model_validate(group) for group in groups])


@router.get("/transactions/{transaction_id}", response_model=TransactionSchema)
def get_transaction(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return TransactionSchema.model_validate(PaymentService(db).get_transaction(user_id, transaction_id))


@router.delete("/transactions/{transaction_id}", response_model=DeleteResponse)
def delete_transaction(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete a transaction and revert the paid state of what it settled"""
    result = PaymentService(db).delete_transaction(user_id, transaction_id)
    return DeleteResponse(id=result.value, **MutationMeta.from_result(result))
