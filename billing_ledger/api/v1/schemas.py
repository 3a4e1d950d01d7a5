"""Pydantic schemas for API request/response validation"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from billing_ledger.domain.models import AccountDraft, AccountPatch, AccountType, OperationResult, TransactionDraft


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---- shared -------------------------------------------------------------


class SideEffectSchema(ORMModel):
    """Status of a trailing best-effort step"""

    name: str
    succeeded: bool
    error_code: Optional[str] = None
    detail: Optional[str] = None


class MutationMeta(BaseModel):
    """Freshness of derived state after a committed mutation"""

    stale: bool = False
    side_effects: List[SideEffectSchema] = []

    @staticmethod
    def from_result(result: OperationResult) -> dict:
        return {
            "stale": result.stale,
            "side_effects": [SideEffectSchema.model_validate(effect) for effect in result.side_effects],
        }


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


# ---- accounts -----------------------------------------------------------


class AccountCreateRequest(BaseModel):
    """Request body for POST /v1/accounts (amounts in cents)"""

    name: str = Field(..., min_length=1)
    type: AccountType
    start_date: date
    due_day: int
    total_amount: Optional[int] = None
    installment_amount: Optional[int] = None
    installments: Optional[int] = None
    is_paid: bool = False
    is_preview: bool = False
    reference_month: Optional[int] = None
    reference_year: Optional[int] = None
    closing_day: Optional[int] = None
    credit_limit: Optional[int] = None
    credit_card_id: Optional[uuid.UUID] = None

    def to_draft(self) -> AccountDraft:
        return AccountDraft(**self.model_dump())


class AccountUpdateRequest(BaseModel):
    """Request body for PATCH /v1/accounts/{id}; omitted fields keep their value"""

    name: Optional[str] = Field(None, min_length=1)
    type: Optional[AccountType] = None
    start_date: Optional[date] = None
    due_day: Optional[int] = None
    total_amount: Optional[int] = None
    installment_amount: Optional[int] = None
    installments: Optional[int] = None
    is_paid: Optional[bool] = None
    is_preview: Optional[bool] = None
    reference_month: Optional[int] = None
    reference_year: Optional[int] = None
    closing_day: Optional[int] = None
    credit_limit: Optional[int] = None

    def to_patch(self) -> AccountPatch:
        return AccountPatch(**self.model_dump())


class TemporalReferenceRequest(BaseModel):
    reference_month: int
    reference_year: int


class MarkAccountPaidRequest(BaseModel):
    payment_amount: Optional[int] = Field(None, description="Defaults to the account total")


class InstallmentSchema(ORMModel):
    id: uuid.UUID
    account_id: uuid.UUID
    number: int
    due_date: date
    amount: int
    is_paid: bool
    paid_at: Optional[datetime] = None
    reference_month: int
    reference_year: int
    breakdown: Optional[dict] = None


class AccountSchema(ORMModel):
    id: uuid.UUID
    user_id: str
    name: str
    type: AccountType
    is_paid: bool
    is_preview: bool
    total_amount: Optional[int] = None
    installment_amount: Optional[int] = None
    installments: Optional[int] = None
    start_date: date
    due_day: int
    reference_month: Optional[int] = None
    reference_year: Optional[int] = None
    closing_day: Optional[int] = None
    credit_limit: Optional[int] = None
    credit_card_id: Optional[uuid.UUID] = None
    monthly_interest_rate: Optional[float] = None
    total_interest: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AccountDetailResponse(AccountSchema):
    installment_list: List[InstallmentSchema] = []
    amount_paid: int
    remaining_amount: int


class AccountMutationResponse(MutationMeta):
    account: AccountSchema


class AccountListResponse(PageMeta):
    items: List[AccountSchema]


class PeriodStatisticsResponse(ORMModel):
    reference_month: int
    reference_year: int
    total_accounts: int
    paid_accounts: int
    unpaid_accounts: int
    total_amount: int
    paid_amount: int
    unpaid_amount: int


class DeleteResponse(MutationMeta):
    id: uuid.UUID


# ---- installments -------------------------------------------------------


class InstallmentListResponse(PageMeta):
    items: List[InstallmentSchema]


# ---- transactions -------------------------------------------------------


class TransactionCreateRequest(BaseModel):
    """Request body for POST /v1/transactions/{income|expense} (value in cents)"""

    description: str = Field(..., min_length=1)
    value: int
    date: date
    category: Optional[str] = None
    account_id: Optional[uuid.UUID] = None

    def to_draft(self) -> TransactionDraft:
        return TransactionDraft(**self.model_dump())


class TransactionSchema(ORMModel):
    id: uuid.UUID
    user_id: str
    account_id: Optional[uuid.UUID] = None
    installment_id: Optional[uuid.UUID] = None
    type: str
    category: Optional[str] = None
    description: str
    value: int
    date: date
    created_at: Optional[datetime] = None


class TransactionMutationResponse(MutationMeta):
    transaction: TransactionSchema


class TransactionListResponse(PageMeta):
    items: List[TransactionSchema]


class InstallmentPaymentResponse(MutationMeta):
    installment: InstallmentSchema
    transaction: TransactionSchema


class AccountPaymentResponse(MutationMeta):
    account: AccountSchema
    transaction: TransactionSchema
    installments_settled: int


class UserBalanceResponse(ORMModel):
    month: int
    year: int
    start_date: date
    end_date: date
    is_current_month: bool
    income: int
    expense: int
    linked_expenses: int
    standalone_expenses: int
    balance: int
    fixed_accounts_total: int
    loan_accounts_total: int
    total_accounts: int


class CategoryExpenseSchema(ORMModel):
    category: str
    source: str
    value: int
    percentage: float


class ExpensesByCategoryResponse(BaseModel):
    categories: List[CategoryExpenseSchema]


# ---- summaries ----------------------------------------------------------


class MonthlySummaryResponse(ORMModel):
    user_id: str
    reference_month: int
    reference_year: int
    total_income: int
    total_expenses: int
    total_balance: int
    bills_to_pay: int
    bills_count: int
    status: str
    last_calculated_at: datetime


# ---- credit cards -------------------------------------------------------


class CreditCardLinkRequest(BaseModel):
    account_id: uuid.UUID


class CreditCardItemSchema(ORMModel):
    id: uuid.UUID
    credit_card_id: uuid.UUID
    account_id: uuid.UUID
    created_at: Optional[datetime] = None


class CreditCardLinkResponse(MutationMeta):
    item: Optional[CreditCardItemSchema] = None


class LinkedAccountsResponse(BaseModel):
    credit_card_id: uuid.UUID
    accounts: List[AccountSchema]


# ---- aggregation service ------------------------------------------------


class AggregatedAccountSchema(ORMModel):
    id: str
    name: str
    type: str


class AggregatedAccountsResponse(BaseModel):
    results: List[AggregatedAccountSchema]


class ConnectTokenRequest(BaseModel):
    item_id: Optional[str] = None


class ConnectTokenResponse(ORMModel):
    connect_token: str
    expires_at: Optional[str] = None
