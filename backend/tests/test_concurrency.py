"""Concurrent requests against the same wallet and the same booking.

Uses a file-backed SQLite database so each session gets its own connection and
writers genuinely contend for the database lock.
"""
import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from marketplace.api.deps import build_booking_service
from marketplace.domain.admin.models import UserRole
from marketplace.domain.admin.services import UserService
from marketplace.domain.booking.models import BookingStatus
from marketplace.domain.common.errors import InsufficientFundsError
from marketplace.domain.wallet.ledger import WalletLedger
from marketplace.domain.wallet.models import TransactionType
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.base import Base
from marketplace.infra.db.repositories.user_repo import UserRepositoryImpl
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl
from marketplace.services.realtime_events import drain_pending

pytestmark = pytest.mark.integration


@pytest.fixture
async def file_sessions(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}",
        connect_args={"timeout": 15},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await drain_pending()
    await engine.dispose()


async def _create_user(session, role, balance=0):
    service = UserService(UserRepositoryImpl(session), WalletRepositoryImpl(session), session)
    user = await service.create_user(
        email=f"{role.value.lower()}@example.com", password_hash="x", role=role, is_age_verified=True
    )
    if balance:
        ledger = WalletLedger(WalletRepositoryImpl(session))
        await run_atomic(session, lambda: ledger.credit(user.id, balance, TransactionType.PURCHASE))
    return user


async def test_concurrent_holds_cannot_double_spend(file_sessions):
    async with file_sessions() as setup:
        seeker = await _create_user(setup, UserRole.SEEKER, balance=500)
        provider = await _create_user(setup, UserRole.PROVIDER)

    async def book(hours_ahead):
        async with file_sessions() as session:
            return await build_booking_service(session).create_booking(
                seeker=seeker,
                provider_id=provider.id,
                service_type="companionship",
                scheduled_at=datetime.utcnow() + timedelta(hours=hours_ahead),
                duration=60,
                token_amount=400,
            )

    results = await asyncio.gather(book(24), book(72), return_exceptions=True)

    created = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(created) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], InsufficientFundsError)

    async with file_sessions() as check:
        wallet = await WalletRepositoryImpl(check).get_by_user(seeker.id)
    assert (wallet.balance, wallet.escrow_balance) == (100, 400)


async def test_concurrent_completion_releases_once(file_sessions):
    async with file_sessions() as setup:
        seeker = await _create_user(setup, UserRole.SEEKER, balance=500)
        provider = await _create_user(setup, UserRole.PROVIDER)
        service = build_booking_service(setup)
        booking = await service.create_booking(
            seeker, provider.id, "companionship", datetime.utcnow() + timedelta(days=1), 60, 250
        )
        await service.update_status(booking.id, "CONFIRMED", provider)
        await service.update_status(booking.id, "IN_PROGRESS", provider)

    async def complete():
        async with file_sessions() as session:
            return await build_booking_service(session).update_status(booking.id, "COMPLETED", provider)

    results = await asyncio.gather(complete(), complete(), return_exceptions=True)
    assert all(not isinstance(r, Exception) for r in results), results
    assert all(r.status == BookingStatus.COMPLETED for r in results)

    async with file_sessions() as check:
        repo = WalletRepositoryImpl(check)
        provider_wallet = await repo.get_by_user(provider.id)
        seeker_wallet = await repo.get_by_user(seeker.id)
        earnings = [
            t for t in await repo.list_transactions_for_booking(booking.id) if t.type == TransactionType.EARNING
        ]
    assert provider_wallet.balance == 250
    assert seeker_wallet.escrow_balance == 0
    assert len(earnings) == 1
