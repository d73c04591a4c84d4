import os

# Must be set before the app (and its settings) are imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from core.permissions import Role
from utils.deps import get_db
from tests.helpers import TEST_PASSWORD, make_user

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that talks to the app using the test database.
    The client is async (for FastAPI), but the DB session is sync.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def verified_user(session):
    return make_user(session, "jane@example.com", name="Jane Customer")


@pytest.fixture
def other_user(session):
    return make_user(session, "bob@example.com", name="Bob Customer")


@pytest.fixture
def admin_user(session):
    return make_user(session, "admin@example.com", role=Role.ADMIN, name="Ada Admin")


@pytest.fixture
def vendor_user(session):
    return make_user(session, "vendor@example.com", role=Role.VENDOR, name="Vic Vendor")


@pytest.fixture
def login(client):
    """Returns a coroutine that logs in and returns the token response body."""
    async def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        response = await client.post("/auth/token", data={
            "username": email,
            "password": password
        })
        assert response.status_code == 200, response.text
        return response.json()

    return _login
