import os

# Settings are read once at import time, so the test environment must be in
# place before anything from the application is imported.
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs512-signing-0123456789")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from main import app
from core.constants import Role, UserStatus
from core.database import Base, SessionLocal, engine
from models.users import User
from repositories.credential_store import InMemoryCredentialStore
from repositories.user_directory import InMemoryUserDirectory
from services.auth_service import Authenticator
from services.refresh_token_service import RefreshTokenManager
from services.signer import Signer
from utils.deps import get_db, get_password_verifier
from utils.hashing import PasswordVerifier

TEST_PASSWORD = "TestPass123"

# Minimum bcrypt cost keeps the suite fast; hashes stay verifiable by any cost
fast_verifier = PasswordVerifier(rounds=4)


class FakeClock:
    """Controllable time source for the auth services."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------- database / HTTP fixtures ----------

@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.

    The authentication middleware opens its own sessions on the same
    SQLite file, so data must be committed to be visible to it.
    """
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that talks to the app using the test database.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_verifier] = lambda: fast_verifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def create_user(
    session: Session,
    username: str = "alice",
    password: str = TEST_PASSWORD,
    phone_number: str = "+8613800138000",
    role: str = Role.FARMER.value,
    status: str = UserStatus.ACTIVE.value,
) -> User:
    user = User(
        username=username,
        password_hash=fast_verifier.hash(password),
        real_name=username.capitalize(),
        phone_number=phone_number,
        role=role,
        status=status,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def active_user(session) -> User:
    return create_user(session)


async def login(client: AsyncClient, username: str = "alice", password: str = TEST_PASSWORD, **headers):
    return await client.post("/auth/login", json={
        "username": username,
        "password": password,
    }, headers=headers or None)


# ---------- in-memory service fixtures ----------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def signer(clock) -> Signer:
    return Signer(
        secret="unit-test-secret",
        algorithm="HS512",
        issuer="test-issuer",
        access_ttl=timedelta(minutes=15),
        leeway=timedelta(seconds=1),
        clock=clock,
    )


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def manager(store, clock) -> RefreshTokenManager:
    return RefreshTokenManager(store, refresh_ttl=timedelta(days=7), clock=clock)


@pytest.fixture
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def authenticator(directory, manager, signer) -> Authenticator:
    return Authenticator(
        directory=directory,
        refresh_tokens=manager,
        signer=signer,
        passwords=fast_verifier,
    )
