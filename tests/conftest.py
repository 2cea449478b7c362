"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Dict, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from treasury_engine.api.main import create_app
from treasury_engine.api.rate_limit import RateLimiter
from treasury_engine.domain.models import CommitmentType
from treasury_engine.domain.schedules import RecurringPlan
from treasury_engine.infrastructure.database.models import Base
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import planning


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WORKSPACE_ID = "ws-test"
ENTITY_ID = "entity-a"


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
    app = create_app(rate_limiter=RateLimiter(max_requests=1000, window_seconds=3600))

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def headers() -> Dict[str, str]:
    return {"X-Workspace-Id": WORKSPACE_ID, "X-Actor-Id": "tester"}


@pytest.fixture
def checking_account(db: Session):
    """Checking account of ENTITY_ID holding 1000.00"""
    return planning.create_account(db, WORKSPACE_ID, ENTITY_ID, "Main checking", "checking", 100000)


@pytest.fixture
def rent_commitment(db: Session):
    """Monthly 200.00 expense, January to March 2024"""
    return planning.create_commitment(
        db,
        WORKSPACE_ID,
        ENTITY_ID,
        CommitmentType.EXPENSE,
        "Office rent",
        RecurringPlan(amount_cents=20000, start_date=date(2024, 1, 10), end_date=date(2024, 3, 10)),
    )
