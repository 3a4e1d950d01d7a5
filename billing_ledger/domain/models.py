"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class AccountType(str, Enum):
    FIXED = "FIXED"
    LOAN = "LOAN"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    SUBSCRIPTION = "SUBSCRIPTION"
    INSURANCE = "INSURANCE"
    TAX = "TAX"
    PENSION = "PENSION"
    EDUCATION = "EDUCATION"
    HEALTH = "HEALTH"
    OTHER = "OTHER"


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class SummaryStatus(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class GenerationStrategy(str, Enum):
    """How an account's obligation is turned into installments"""

    EVEN_SPLIT = "even_split"  # total divided, remainder on the last installment
    FIXED_AMOUNT = "fixed_amount"  # every installment gets installment_amount


@dataclass
class ScheduledInstallment:
    """Single dated payment produced by the generator, before persistence"""

    number: int
    due_date: date
    amount_cents: int
    reference_month: int
    reference_year: int


@dataclass
class LoanCalculation:
    """Derived loan parameters; total_amount stays the principal"""

    total_amount: int
    monthly_payment: int
    total_with_interest: int
    total_interest: int
    monthly_interest_rate: float  # percent, e.g. 1.25 == 1.25%/month


@dataclass
class AccountAmounts:
    """Amounts persisted on an account after type-specific derivation"""

    total_amount: Optional[int]
    installment_amount: Optional[int]
    loan: Optional[LoanCalculation] = None


@dataclass
class AccountDraft:
    """Input for account creation (amounts in cents)"""

    name: str
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


@dataclass
class AccountPatch:
    """Partial account update; None means 'keep the stored value'"""

    name: Optional[str] = None
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


@dataclass
class TransactionDraft:
    """Input for a user-entered income or expense (value in cents)"""

    description: str
    value: int
    date: date
    category: Optional[str] = None
    account_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class Period:
    """A billing period (calendar month)"""

    month: int
    year: int


@dataclass
class SummaryTotals:
    """Aggregated values for one user/month before persistence"""

    total_income: int
    total_expenses: int
    total_balance: int
    bills_to_pay: int
    bills_count: int
    status: SummaryStatus


@dataclass
class SideEffect:
    """Outcome of a trailing best-effort step"""

    name: str
    succeeded: bool
    error_code: Optional[str] = None
    detail: Optional[str] = None


@dataclass
class OperationResult(Generic[T]):
    """
    Result of a primary operation plus the status of its trailing steps.

    The primary value is committed regardless of side effects; `stale` tells
    the caller that derived state (installments, summaries, breakdowns) may
    lag until a later recalculation.
    """

    value: T
    side_effects: List[SideEffect] = field(default_factory=list)

    @property
    def stale(self) -> bool:
        return any(not effect.succeeded for effect in self.side_effects)

    def failed_steps(self) -> List[str]:
        return [effect.name for effect in self.side_effects if not effect.succeeded]


@dataclass
class Page(Generic[T]):
    """Paginated slice of a result set"""

    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1


@dataclass
class AggregatedAccount:
    """Account reported by the remote aggregation service"""

    id: str
    name: str
    type: str
    extra: dict = field(default_factory=dict)


@dataclass
class ConnectToken:
    connect_token: str
    expires_at: Optional[str] = None
