"""
Pytest configuration and core fixtures.

Every test gets its own in-memory SQLite database (one shared connection via
StaticPool), a recording fake in place of the email gateway, and an app built
with ``create_app`` whose session dependency points at that database. Tests
that race several sessions against each other use ``file_session_factory``,
which hands out separate connections to a temporary SQLite file.
"""

import os
import tempfile

# Settings are read once at import time, so the environment is fixed before
# anything from transit_api is imported.
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["OTP_HMAC_SECRET"] = "test-otp-hmac-secret"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["SENTRY_DSN"] = ""
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="transit-logs-")

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from transit_api.core.config import get_settings
from transit_api.core.db import build_engine, init_db
from transit_api.core.dependencies import get_async_session
from transit_api.core.enums import AccountRole
from transit_api.core.services import build_services

TEST_PASSWORD = "bus-pass-42"


class FakeNotifier:
    """Records every OTP email instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False
        self.error: Exception | None = None

    async def send_otp_email(self, to: str, name: str, code: str) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "name": name, "code": code})
        return not self.fail

    def last_code(self, email: str) -> str:
        for message in reversed(self.sent):
            if message["to"] == email:
                return message["code"]
        raise AssertionError(f"No OTP was sent to {email}")


@pytest.fixture
def test_settings():
    return get_settings()


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def file_engine(tmp_path):
    """SQLite file database with a real connection pool, for concurrent sessions."""
    race_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    await init_db(race_engine)
    yield race_engine
    await race_engine.dispose()


@pytest.fixture
def file_session_factory(file_engine):
    return async_sessionmaker(bind=file_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def services(test_settings, notifier):
    return build_services(test_settings, notifier)


@pytest.fixture
def app(test_settings, services, notifier, session_factory):
    from transit_api.main import create_app

    application = create_app(test_settings, notifier=notifier)
    application.state.services = services

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_session] = _override_session
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def make_account(services, session_factory):
    """Factory fixture: create and commit an account, return it."""
    counter = {"n": 0}

    async def _make(
        role: AccountRole = AccountRole.STUDENT,
        email: str | None = None,
        name: str = "Test User",
        password: str = TEST_PASSWORD,
    ):
        counter["n"] += 1
        email = email or f"user{counter['n']}@cfd.nu.edu.pk"
        async with session_factory() as session:
            return await services.accounts.create(
                session, name=name, email=email, password=password, role=role
            )

    return _make


@pytest.fixture
def auth_headers(services):
    def _headers(account) -> dict[str, str]:
        return {"Authorization": f"Bearer {services.tokens.issue(account)}"}

    return _headers
