"""Payment recording and reversal"""

import uuid
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billing_ledger.domain.exceptions import BusinessRuleError, ConflictError, NotFoundError, PaymentError
from billing_ledger.domain.models import AccountDraft, AccountType, TransactionDraft, TransactionType
from billing_ledger.infrastructure.database.models import Installment, MonthlySummary, Transaction
from billing_ledger.infrastructure.database.repositories import TransactionRepository
from billing_ledger.services.accounts import AccountLifecycleService
from billing_ledger.services.categories import StaticCategoryValidator
from billing_ledger.services.payments import PaymentService

USER_ID = "user_1"


def schedule_of(db: Session, account_id) -> list[Installment]:
    return db.query(Installment).filter(Installment.account_id == account_id).order_by(Installment.number).all()


@pytest.fixture
def gym(accounts: AccountLifecycleService, fixed_draft):
    return accounts.create(USER_ID, fixed_draft).value


@pytest.fixture
def streaming(accounts: AccountLifecycleService):
    """Single-payment account without installments"""
    draft = AccountDraft(
        name="Streaming",
        type=AccountType.SUBSCRIPTION,
        start_date=date(2025, 1, 1),
        due_day=8,
        total_amount=5590,
    )
    return accounts.create(USER_ID, draft).value


def test_mark_installment_paid_records_expense(payments: PaymentService, gym, db):
    """Test paying an installment records an expense on its due date"""
    first = schedule_of(db, gym.id)[0]

    result = payments.mark_installment_paid(USER_ID, first.id)

    assert not result.stale
    assert result.value.installment.is_paid
    assert result.value.installment.paid_at is not None

    transaction = result.value.transaction
    assert transaction.type == TransactionType.EXPENSE.value
    assert transaction.category == "INSTALLMENT_PAYMENT"
    assert transaction.value == 10000
    assert transaction.date == date(2025, 1, 20)
    assert transaction.installment_id == first.id
    assert transaction.account_id == gym.id

    summary = db.query(MonthlySummary).filter_by(user_id=USER_ID, reference_month=1, reference_year=2025).one()
    assert (summary.total_expenses, summary.bills_to_pay, summary.bills_count) == (10000, 0, 0)


def test_mark_installment_paid_twice_rejected(payments: PaymentService, gym, db):
    """Test paying the same installment twice"""
    first = schedule_of(db, gym.id)[0]
    payments.mark_installment_paid(USER_ID, first.id)

    with pytest.raises(BusinessRuleError) as exc_info:
        payments.mark_installment_paid(USER_ID, first.id)

    assert exc_info.value.code == "INSTALLMENT_ALREADY_PAID"
    assert db.query(Transaction).count() == 1


def test_mark_installment_paid_rejects_existing_transaction(payments: PaymentService, gym, db):
    """Unpaying keeps the ledger entry, so paying again would duplicate it"""
    first = schedule_of(db, gym.id)[0]
    payments.mark_installment_paid(USER_ID, first.id)
    payments.mark_installment_unpaid(USER_ID, first.id)

    with pytest.raises(ConflictError) as exc_info:
        payments.mark_installment_paid(USER_ID, first.id)

    assert exc_info.value.code == "INSTALLMENT_TRANSACTION_ALREADY_EXISTS"


def test_mark_installment_paid_unknown(payments: PaymentService, gym):
    """Test paying a missing installment"""
    with pytest.raises(NotFoundError) as exc_info:
        payments.mark_installment_paid(USER_ID, gym.id)
    assert exc_info.value.code == "INSTALLMENT_NOT_FOUND"


def test_installment_stays_paid_when_transaction_fails(payments: PaymentService, gym, db):
    """Test paid flag survives a failed ledger insert"""
    first = schedule_of(db, gym.id)[0]

    with patch.object(TransactionRepository, "add", side_effect=SQLAlchemyError("disk full")):
        with pytest.raises(PaymentError) as exc_info:
            payments.mark_installment_paid(USER_ID, first.id)

    assert exc_info.value.code == "INSTALLMENT_PAYMENT_ERROR"
    db.refresh(first)
    assert first.is_paid
    assert db.query(Transaction).count() == 0


def test_payment_survives_summary_failure(payments: PaymentService, gym, db):
    """Test payment is kept and flagged stale when the summary fails"""
    first = schedule_of(db, gym.id)[0]

    with patch(
        "billing_ledger.services.summaries.MonthlySummaryService.recalculate_many",
        side_effect=RuntimeError("boom"),
    ):
        result = payments.mark_installment_paid(USER_ID, first.id)

    assert result.stale
    assert result.side_effects[0].error_code == "SIDE_EFFECT_FAILED"
    assert db.query(Transaction).count() == 1


def test_mark_installment_unpaid_clears_flags_only(payments: PaymentService, gym, db):
    """Test unpaying keeps the ledger entry"""
    first = schedule_of(db, gym.id)[0]
    payments.mark_installment_paid(USER_ID, first.id)

    installment = payments.mark_installment_unpaid(USER_ID, first.id)

    assert not installment.is_paid
    assert installment.paid_at is None
    assert db.query(Transaction).count() == 1


def test_delete_transaction_reverts_installment(payments: PaymentService, gym, db):
    """Paying then deleting the payment is a full round trip"""
    first = schedule_of(db, gym.id)[0]
    transaction_id = payments.mark_installment_paid(USER_ID, first.id).value.transaction.id

    result = payments.delete_transaction(USER_ID, transaction_id)

    assert result.value == transaction_id
    db.refresh(first)
    assert not first.is_paid
    assert first.paid_at is None
    assert db.query(Transaction).count() == 0

    summary = db.query(MonthlySummary).filter_by(user_id=USER_ID, reference_month=1, reference_year=2025).one()
    assert (summary.total_expenses, summary.bills_to_pay) == (0, 10000)


def test_delete_transaction_unknown(payments: PaymentService):
    """Test deleting a missing transaction"""
    with pytest.raises(NotFoundError) as exc_info:
        payments.delete_transaction(USER_ID, uuid.uuid4())
    assert exc_info.value.code == "TRANSACTION_NOT_FOUND"


def test_mark_account_paid_settles_everything(payments: PaymentService, gym, db):
    """Test account payment settles every installment at once"""
    result = payments.mark_account_paid(USER_ID, gym.id)
    payment = result.value

    assert payment.installments_settled == 3
    assert payment.account.is_paid
    assert not payment.account.is_preview
    assert payment.transaction.category == "ACCOUNT_PAYMENT"
    assert payment.transaction.value == 30000
    assert payment.transaction.date == date(2025, 1, 20)
    assert payment.transaction.description == "Payment for account: Gym"

    schedule = schedule_of(db, gym.id)
    assert all(item.is_paid for item in schedule)
    assert len({item.paid_at for item in schedule}) == 1


def test_mark_account_paid_with_larger_amount(payments: PaymentService, gym):
    """Test overpayment is recorded as given"""
    payment = payments.mark_account_paid(USER_ID, gym.id, payment_amount=31000).value
    assert payment.transaction.value == 31000


def test_mark_account_paid_insufficient(payments: PaymentService, gym, db):
    """Test short payment writes nothing"""
    with pytest.raises(BusinessRuleError) as exc_info:
        payments.mark_account_paid(USER_ID, gym.id, payment_amount=29999)

    assert exc_info.value.code == "INSUFFICIENT_PAYMENT_AMOUNT"
    assert not any(item.is_paid for item in schedule_of(db, gym.id))
    assert db.query(Transaction).count() == 0


def test_mark_account_paid_twice(payments: PaymentService, gym):
    """Test paying a settled account"""
    payments.mark_account_paid(USER_ID, gym.id)

    with pytest.raises(BusinessRuleError) as exc_info:
        payments.mark_account_paid(USER_ID, gym.id)

    assert exc_info.value.code == "ACCOUNT_ALREADY_PAID"


def test_delete_payment_of_account_without_installments(payments: PaymentService, streaming, db):
    """Test lump-sum account becomes unpaid when its payment is deleted"""
    transaction = payments.mark_account_paid(USER_ID, streaming.id).value.transaction

    payments.delete_transaction(USER_ID, transaction.id)

    db.refresh(streaming)
    assert not streaming.is_paid


def test_delete_account_payment_keeps_fully_paid_account(payments: PaymentService, gym, db):
    """Installments were settled individually, so nothing is left unpaid"""
    transaction = payments.mark_account_paid(USER_ID, gym.id).value.transaction

    payments.delete_transaction(USER_ID, transaction.id)

    db.refresh(gym)
    assert gym.is_paid


def test_delete_installment_payment_unpays_account(payments: PaymentService, gym, db):
    """Test removing one installment payment unpays the account"""
    schedule = schedule_of(db, gym.id)
    transactions = [payments.mark_installment_paid(USER_ID, item.id).value.transaction for item in schedule]
    gym.is_paid = True
    db.commit()

    payments.delete_transaction(USER_ID, transactions[-1].id)

    db.refresh(gym)
    assert not gym.is_paid


def test_expense_linked_to_account_must_cover_outstanding(payments: PaymentService, gym, db):
    """Test linked expense below the outstanding amount writes nothing"""
    draft = TransactionDraft(description="Gym", value=20000, date=date(2025, 1, 25), account_id=gym.id)

    with pytest.raises(BusinessRuleError) as exc_info:
        payments.create_expense(USER_ID, draft)

    assert exc_info.value.code == "INSUFFICIENT_PAYMENT_AMOUNT"
    assert not any(item.is_paid for item in schedule_of(db, gym.id))
    assert db.query(Transaction).count() == 0


def test_expense_linked_to_account_settles_it(payments: PaymentService, gym, db):
    """Test linked expense settles account and installments"""
    draft = TransactionDraft(description="Gym", value=30000, date=date(2025, 1, 25), account_id=gym.id)

    result = payments.create_expense(USER_ID, draft)

    assert result.value.account_id == gym.id
    assert all(item.is_paid for item in schedule_of(db, gym.id))
    db.refresh(gym)
    assert gym.is_paid


def test_expense_against_paid_account_rejected(payments: PaymentService, gym):
    """Test linked expense against a settled account"""
    payments.mark_account_paid(USER_ID, gym.id)
    draft = TransactionDraft(description="Gym", value=30000, date=date(2025, 1, 25), account_id=gym.id)

    with pytest.raises(BusinessRuleError) as exc_info:
        payments.create_expense(USER_ID, draft)

    assert exc_info.value.code == "ACCOUNT_ALREADY_PAID"


def test_create_income_updates_summary(payments: PaymentService, db):
    """Test income is counted in its month"""
    result = payments.create_income(
        USER_ID, TransactionDraft(description="Salary", value=450000, date=date(2025, 2, 5), category="SALARY")
    )

    assert result.value.type == TransactionType.INCOME.value
    summary = db.query(MonthlySummary).filter_by(user_id=USER_ID, reference_month=2, reference_year=2025).one()
    assert summary.total_income == 450000


def test_category_validator_rejects_unknown(db):
    """Test unknown category is rejected, case-insensitive match accepted"""
    payments = PaymentService(db, StaticCategoryValidator({TransactionType.EXPENSE: ["FOOD"]}))

    with pytest.raises(BusinessRuleError) as exc_info:
        payments.create_expense(
            USER_ID, TransactionDraft(description="?", value=100, date=date(2025, 1, 1), category="TOYS")
        )

    assert exc_info.value.code == "INVALID_CATEGORY"
    payments.create_expense(
        USER_ID, TransactionDraft(description="Lunch", value=100, date=date(2025, 1, 1), category="food")
    )


def test_negative_transaction_rejected(payments: PaymentService):
    """Test negative value is rejected"""
    with pytest.raises(BusinessRuleError) as exc_info:
        payments.create_income(USER_ID, TransactionDraft(description="x", value=-1, date=date(2025, 1, 1)))
    assert exc_info.value.code == "NEGATIVE_AMOUNT"


def test_list_transactions_filters(payments: PaymentService, gym, db):
    """Test type, category, account, date and page filters"""
    payments.mark_installment_paid(USER_ID, schedule_of(db, gym.id)[0].id)
    payments.create_income(USER_ID, TransactionDraft(description="Salary", value=450000, date=date(2025, 1, 5)))
    payments.create_expense(
        USER_ID, TransactionDraft(description="Lunch", value=3500, date=date(2025, 2, 2), category="FOOD")
    )

    assert payments.list_transactions(USER_ID).total == 3
    assert payments.list_transactions(USER_ID, txn_type=TransactionType.EXPENSE).total == 2
    assert payments.list_transactions(USER_ID, category="FOOD").items[0].description == "Lunch"
    assert payments.list_transactions(USER_ID, account_id=gym.id).total == 1
    january = payments.list_transactions(USER_ID, start=date(2025, 1, 1), end=date(2025, 1, 31))
    assert {txn.description for txn in january.items} == {"Salary", "Installment 1 payment"}

    page = payments.list_transactions(USER_ID, page=2, limit=2)
    assert (len(page.items), page.has_prev_page, page.has_next_page) == (1, True, False)
