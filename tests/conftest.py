import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"

from app.database import Base, get_db
from app.main import app
from app.models.leave_balance import LeaveBalance
from app.models.user import UserRole
from app.services import auth as auth_service
from app.services.user_service import UserService
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Fresh schema and session for each test function."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def employee(db_session):
    """A regular user with the default leave ledger."""
    return UserService(db_session).register("Alice Employee", "alice@example.com", "Password123!")

@pytest.fixture(scope="function")
def other_employee(db_session):
    return UserService(db_session).register("Bob Employee", "bob@example.com", "Password123!")

@pytest.fixture(scope="function")
def admin_user(db_session):
    """A reviewer allowed to approve and reject leave."""
    return UserService(db_session).register(
        "System Admin", "admin@example.com", "AdminPassword123!", role=UserRole.ADMIN
    )

@pytest.fixture(scope="function")
def set_balance(db_session):
    """Overwrite a user's ledger columns, e.g. set_balance(user, annual=5)."""
    def _set_balance(user, **balances):
        ledger = db_session.query(LeaveBalance).filter(LeaveBalance.user_id == user.id).one()
        for category, value in balances.items():
            setattr(ledger, category, value)
        db_session.commit()
        return ledger
    return _set_balance

@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens."""
    def _get_token(user):
        return auth_service.create_access_token(data=auth_service.token_claims_for(user))
    return _get_token

@pytest.fixture(scope="function")
def auth_headers(get_token):
    def _auth_headers(user):
        return {"Authorization": f"Bearer {get_token(user)}"}
    return _auth_headers

@pytest.fixture(scope="function")
def client(db_session):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
