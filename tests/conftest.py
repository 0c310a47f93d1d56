"""
Test fixtures for the Card Vault API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - gateway: A fresh MockPaymentGateway (its own token store) per test
  - wallet: A fresh InMemoryWallet with a small opening balance
  - owner: A User row created directly, for service-level tests
  - client: Async HTTP test client (unauthenticated)
  - authenticated_client: Test client with a pre-registered user and JWT
  - second_authenticated_client: A separate client for a second user

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
  - We override FastAPI's get_db, get_payment_gateway and get_wallet_client
    dependencies, so the application code works exactly as it does in
    production but against per-test collaborators that tests can inspect.
  - The authenticated clients sign up via the real signup endpoint, so
    they exercise the real auth flow (not just DB inserts).
"""

import os

# Settings are read at import time; give the app a signing key and an
# in-memory database before anything from app/ is imported.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.dependencies import get_payment_gateway, get_wallet_client  # noqa: E402
from app.gateway import MockPaymentGateway  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User  # noqa: E402
from app.security import hash_password  # noqa: E402
from app.wallet import InMemoryWallet  # noqa: E402


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

WALLET_OPENING_BALANCE_CENTS = 10_000


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def gateway():
    """A mock gateway with an empty token store."""
    return MockPaymentGateway()


@pytest_asyncio.fixture
async def wallet():
    """An in-memory wallet; every owner starts with 100.00 (10,000 cents)."""
    return InMemoryWallet(opening_balance_cents=WALLET_OPENING_BALANCE_CENTS)


@pytest_asyncio.fixture
async def owner(db_session):
    """A user row for tests that call the services directly."""
    user = User(email="owner@example.com", hashed_password=hash_password("OwnerPass123!"))
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def client(db_engine, gateway, wallet):
    """
    Async HTTP test client with the test database, gateway and wallet injected.

    This overrides the dependencies so all requests hit the in-memory test
    database and the per-test gateway/wallet instead of the real ones.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_wallet_client] = lambda: wallet

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _signup(client: AsyncClient, email: str, password: str) -> str:
    response = await client.post(
        "/auth/signup",
        json={"email": email, "password": password},
    )
    assert response.status_code == 201, f"Signup failed: {response.text}"
    return response.json()["token"]


@pytest_asyncio.fixture
async def authenticated_client(client):
    """
    Test client with a pre-registered user and JWT token.

    Signs up a test user via the real signup endpoint, then sets the
    Authorization header on the client for all subsequent requests.
    """
    token = await _signup(client, "testuser@example.com", "SecurePass123!")
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture
async def second_authenticated_client(client):
    """
    A second authenticated user, on its own client.

    Use this alongside authenticated_client to verify that User A's cards
    are invisible to User B. It shares the app (and dependency overrides)
    with `client` but keeps its own Authorization header.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        token = await _signup(ac, "seconduser@example.com", "SecurePass456!")
        ac.headers["Authorization"] = f"Bearer {token}"
        yield ac
