"""Pytest configuration and shared fixtures.

Tests run against an in-memory SQLite database (aiosqlite, StaticPool); the
production engine in ``marketplace.infra.db.base`` is skipped under pytest.
"""
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace.api.deps import build_booking_service
from marketplace.domain.admin.models import UserRole
from marketplace.domain.admin.services import UserService
from marketplace.domain.common.types import generate_id
from marketplace.domain.wallet.ledger import WalletLedger
from marketplace.domain.wallet.models import TransactionType
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.base import Base
from marketplace.infra.db import models  # noqa: F401
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl
from marketplace.infra.db.session import get_db
from marketplace.infra.security.jwt import create_access_token
from marketplace.services.realtime_events import drain_pending


def pytest_configure(config):
    """Register markers."""
    config.addinivalue_line("markers", "unit: pure domain tests, no database")
    config.addinivalue_line(
        "markers", "integration: marks tests that exercise several layers together (deselect with '-m \"not integration\"')"
    )


def in_future(hours: int = 24) -> datetime:
    return datetime.utcnow() + timedelta(hours=hours)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    # Let fire-and-forget realtime events finish before the loop closes
    await drain_pending()
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory: a user with an empty wallet, optionally credited with ``balance`` tokens."""

    async def _make(
        role: UserRole = UserRole.SEEKER,
        balance: int = 0,
        is_age_verified: bool = True,
        email: str = None,
    ):
        service = UserService(UserRepositoryImpl(db_session), WalletRepositoryImpl(db_session), db_session)
        user = await service.create_user(
            email=email or f"{role.value.lower()}-{generate_id()[:8]}@example.com",
            password_hash="not-a-real-hash",
            role=role,
            is_age_verified=is_age_verified,
        )
        if balance:
            ledger = WalletLedger(WalletRepositoryImpl(db_session))
            await run_atomic(
                db_session,
                lambda: ledger.credit(user.id, balance, TransactionType.PURCHASE),
                label="test credit",
            )
        return user

    return _make


@pytest.fixture
def get_wallet(db_session):
    """Read a user's wallet fresh from the database."""

    async def _get(user_id: str):
        return await WalletRepositoryImpl(db_session).get_by_user(user_id)

    return _get


@pytest.fixture
def booking_service(db_session):
    return build_booking_service(db_session)


@pytest.fixture
def make_booking(booking_service):
    """Factory: a PENDING booking with ``token_amount`` held in escrow."""

    async def _make(seeker, provider, token_amount: int = 100, hours_ahead: int = 24, duration: int = 60):
        return await booking_service.create_booking(
            seeker=seeker,
            provider_id=provider.id,
            service_type="companionship",
            scheduled_at=in_future(hours_ahead),
            duration=duration,
            token_amount=token_amount,
        )

    return _make


@pytest.fixture
async def client(session_factory):
    """HTTP client for the app with get_db bound to the test database."""
    from marketplace.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def auth_headers():
    """Bearer headers for a user."""

    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}

    return _headers
