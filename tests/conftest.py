"""Pytest fixtures for testing"""

import httpx
import pytest
from datetime import datetime, timedelta, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from acb_ledger.api.dependencies import (
    get_credit_service,
    get_loan_service,
    get_verification_client,
)
from acb_ledger.api.main import create_app
from acb_ledger.infrastructure.clients.verification import VerificationClient
from acb_ledger.infrastructure.database.models import Base, User
from acb_ledger.infrastructure.database.session import engine_options, get_db
from acb_ledger.services.credit_service import CreditScoringService
from acb_ledger.services.identity_service import IdentityService
from acb_ledger.services.loan_service import LoanService
from acb_ledger.services.pool_service import PoolService
from mock.verification_server import main as identity_mock


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ETH = 10**18


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, seconds: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, seconds=seconds)
        return self.now


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
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def identity_transport() -> httpx.ASGITransport:
    """In-process transport to the mock identity provider"""
    identity_mock.reset()
    return httpx.ASGITransport(app=identity_mock.app)


@pytest.fixture
def verification_client(identity_transport: httpx.ASGITransport) -> VerificationClient:
    return VerificationClient(
        base_url="http://identity.test",
        app_id="app_test",
        action="acb-credit-nft",
        transport=identity_transport,
    )


@pytest.fixture
def client(db: Session, clock: FrozenClock, verification_client: VerificationClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app(bootstrap_pool=False)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_verification_client] = lambda: verification_client
    app.dependency_overrides[get_loan_service] = lambda: LoanService(db, clock=clock)
    app.dependency_overrides[get_credit_service] = lambda: CreditScoringService(db, clock=clock)
    return TestClient(app)


@pytest.fixture
def identity(db: Session, clock: FrozenClock, verification_client: VerificationClient) -> IdentityService:
    return IdentityService(db, verification_client=verification_client, owner_open_id="owner", clock=clock)


@pytest.fixture
def pool_service(db: Session) -> PoolService:
    return PoolService(db)


@pytest.fixture
def loan_service(db: Session, clock: FrozenClock) -> LoanService:
    return LoanService(db, clock=clock)


@pytest.fixture
def lender(identity: IdentityService) -> User:
    return identity.login("lp_alice", name="Alice")


@pytest.fixture
def borrower(identity: IdentityService) -> User:
    return identity.login("borrower_bob", name="Bob")


@pytest.fixture
def funded_pool(pool_service: PoolService, lender: User) -> PoolService:
    """Pool holding 1 ETH from a single LP"""
    pool_service.deposit(lender.id, ETH)
    return pool_service
