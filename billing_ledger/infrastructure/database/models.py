"""SQLAlchemy ORM models for accounts, installments, transactions and summaries"""

import uuid

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    """Financial obligation owned by a user (bill, loan, card...)"""

    __tablename__ = "account"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    total_amount = Column(BigInteger, nullable=True)  # cents; principal for loans
    installment_amount = Column(BigInteger, nullable=True)
    installments = Column(Integer, nullable=True)  # null => single lump obligation
    start_date = Column(Date, nullable=False)
    due_day = Column(Integer, nullable=False)
    is_preview = Column(Boolean, nullable=False, default=False)
    reference_month = Column(Integer, nullable=True)
    reference_year = Column(Integer, nullable=True)
    closing_day = Column(Integer, nullable=True)
    credit_limit = Column(BigInteger, nullable=True)
    credit_card_id = Column(Uuid(as_uuid=True), ForeignKey("account.id", ondelete="SET NULL"), nullable=True)
    monthly_interest_rate = Column(Float, nullable=True)  # percent per month
    total_interest = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class Installment(Base):
    """One dated, payable slice of an account"""

    __tablename__ = "installment"
    __table_args__ = (UniqueConstraint("account_id", "number", name="uq_installment_account_number"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    reference_month = Column(Integer, nullable=False)
    reference_year = Column(Integer, nullable=False)
    breakdown = Column(JSON, nullable=True)  # credit-card charges billed in this installment
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account")


class Transaction(Base):
    """Realized cash movement, optionally settling an account or installment"""

    __tablename__ = "ledger_transaction"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("account.id", ondelete="SET NULL"), nullable=True, index=True)
    installment_id = Column(
        Uuid(as_uuid=True), ForeignKey("installment.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    type = Column(Text, nullable=False)  # INCOME | EXPENSE
    category = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    value = Column(BigInteger, nullable=False)  # cents
    date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account")


class MonthlySummary(Base):
    """Derived per-user, per-month totals; rebuildable at any time"""

    __tablename__ = "monthly_summary"
    __table_args__ = (
        UniqueConstraint("user_id", "reference_year", "reference_month", name="uq_monthly_summary_period"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    reference_month = Column(Integer, nullable=False)
    reference_year = Column(Integer, nullable=False)
    total_income = Column(BigInteger, nullable=False, default=0)
    total_expenses = Column(BigInteger, nullable=False, default=0)
    total_balance = Column(BigInteger, nullable=False, default=0)
    bills_to_pay = Column(BigInteger, nullable=False, default=0)
    bills_count = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False)
    last_calculated_at = Column(DateTime(timezone=True), nullable=False)


class CreditCardItem(Base):
    """Link between a CREDIT_CARD account and an account billed through it"""

    __tablename__ = "credit_card_item"
    __table_args__ = (UniqueConstraint("credit_card_id", "account_id", name="uq_credit_card_item_pair"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    credit_card_id = Column(Uuid(as_uuid=True), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(Uuid(as_uuid=True), ForeignKey("account.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    credit_card = relationship("Account", foreign_keys=[credit_card_id])
    linked_account = relationship("Account", foreign_keys=[account_id])
