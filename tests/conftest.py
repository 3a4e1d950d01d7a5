"""Pytest fixtures for testing"""

from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from billing_ledger.api.main import create_app
from billing_ledger.domain.models import AccountDraft, AccountType
from billing_ledger.infrastructure.database.models import Base
from billing_ledger.infrastructure.database.session import get_db
from billing_ledger.services.accounts import AccountLifecycleService
from billing_ledger.services.payments import PaymentService

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "user_1"
OTHER_USER_ID = "user_2"
TODAY = date(2025, 1, 10)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": USER_ID}


@pytest.fixture
def accounts(db: Session) -> AccountLifecycleService:
    """Account service with a fixed 'today'"""
    return AccountLifecycleService(db, today=lambda: TODAY)


@pytest.fixture
def payments(db: Session) -> PaymentService:
    return PaymentService(db)


@pytest.fixture
def fixed_draft() -> AccountDraft:
    """Three monthly payments of R$100.00 starting mid-January 2025"""
    return AccountDraft(
        name="Gym",
        type=AccountType.FIXED,
        start_date=date(2025, 1, 15),
        due_day=20,
        installments=3,
        installment_amount=10000,
    )


@pytest.fixture
def loan_draft() -> AccountDraft:
    """R$5,000.00 principal repaid in 10 payments of R$550.00"""
    return AccountDraft(
        name="Car loan",
        type=AccountType.LOAN,
        start_date=date(2025, 1, 1),
        due_day=5,
        total_amount=500000,
        installments=10,
        installment_amount=55000,
    )


@pytest.fixture
def card_draft() -> AccountDraft:
    return AccountDraft(
        name="Visa",
        type=AccountType.CREDIT_CARD,
        start_date=date(2025, 1, 1),
        due_day=15,
        total_amount=90000,
        installments=3,
        closing_day=5,
        credit_limit=500000,
    )
