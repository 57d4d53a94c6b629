"""Booking service tests: escrow on creation and ledger effects of transitions."""
from datetime import datetime, timedelta

import pytest

from marketplace.domain.admin.models import UserRole
from marketplace.domain.booking.models import BookingStatus
from marketplace.domain.booking.state_machine import get_transition
from marketplace.domain.common.errors import (
    AgeVerificationError,
    AuthorizationError,
    ConflictError,
    InsufficientFundsError,
    InvalidTransitionError,
    ValidationError,
)
from marketplace.domain.wallet.models import TransactionType
from marketplace.infra.db.atomic import run_atomic
from marketplace.infra.db.repositories.booking_repo import MonitorAssignmentRepository
from marketplace.infra.db.repositories.wallet_repo import WalletRepositoryImpl

pytestmark = pytest.mark.integration


@pytest.fixture
async def parties(make_user):
    seeker = await make_user(balance=1000)
    provider = await make_user(role=UserRole.PROVIDER)
    return seeker, provider


async def test_full_lifecycle_moves_tokens_once(parties, make_booking, booking_service, get_wallet):
    seeker, provider = parties
    booking = await make_booking(seeker, provider, token_amount=500)
    assert booking.status == BookingStatus.PENDING

    wallet = await get_wallet(seeker.id)
    assert (wallet.balance, wallet.escrow_balance) == (500, 500)

    await booking_service.update_status(booking.id, "CONFIRMED", provider)
    await booking_service.update_status(booking.id, "IN_PROGRESS", provider)
    completed = await booking_service.update_status(booking.id, "COMPLETED", provider)
    assert completed.status == BookingStatus.COMPLETED
    assert completed.completed_at is not None

    seeker_wallet = await get_wallet(seeker.id)
    provider_wallet = await get_wallet(provider.id)
    assert (seeker_wallet.balance, seeker_wallet.escrow_balance) == (500, 0)
    assert provider_wallet.balance == 500
    assert provider_wallet.total_earned == 500


async def test_repeated_completion_releases_once(parties, make_booking, booking_service, get_wallet, db_session):
    seeker, provider = parties
    booking = await make_booking(seeker, provider, token_amount=300)
    await booking_service.update_status(booking.id, "CONFIRMED", provider)
    await booking_service.update_status(booking.id, "IN_PROGRESS", provider)

    await booking_service.update_status(booking.id, "COMPLETED", provider)
    again = await booking_service.update_status(booking.id, "COMPLETED", provider)
    assert again.status == BookingStatus.COMPLETED

    assert (await get_wallet(provider.id)).balance == 300
    ledger_rows = await WalletRepositoryImpl(db_session).list_transactions_for_booking(booking.id)
    assert [t.type for t in ledger_rows].count(TransactionType.EARNING) == 1


async def test_stale_compare_and_set_skips_side_effect(parties, make_booking, booking_service, get_wallet, db_session):
    seeker, provider = parties
    booking = await make_booking(seeker, provider, token_amount=200)
    transition = get_transition(BookingStatus.PENDING, BookingStatus.CANCELLED)

    first = await run_atomic(db_session, lambda: booking_service.execute_transition(booking, transition))
    # Same request replayed with the now-stale PENDING snapshot
    second = await run_atomic(db_session, lambda: booking_service.execute_transition(booking, transition))

    assert (first, second) == (True, False)
    wallet = await get_wallet(seeker.id)
    assert (wallet.balance, wallet.escrow_balance) == (1000, 0)


async def test_cancel_refunds_escrow(parties, make_booking, booking_service, get_wallet):
    seeker, provider = parties
    booking = await make_booking(seeker, provider, token_amount=400)

    cancelled = await booking_service.update_status(booking.id, "CANCELLED", seeker)
    assert cancelled.status == BookingStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    wallet = await get_wallet(seeker.id)
    assert (wallet.balance, wallet.escrow_balance) == (1000, 0)


async def test_terminal_booking_rejects_new_status(parties, make_booking, booking_service):
    seeker, provider = parties
    booking = await make_booking(seeker, provider)
    await booking_service.update_status(booking.id, "CANCELLED", provider)

    with pytest.raises(InvalidTransitionError):
        await booking_service.update_status(booking.id, "CONFIRMED", provider)


async def test_in_progress_cannot_be_cancelled(parties, make_booking, booking_service, get_wallet):
    seeker, provider = parties
    booking = await make_booking(seeker, provider, token_amount=100)
    await booking_service.update_status(booking.id, "CONFIRMED", provider)
    await booking_service.update_status(booking.id, "IN_PROGRESS", provider)

    with pytest.raises(InvalidTransitionError):
        await booking_service.update_status(booking.id, "CANCELLED", seeker)
    assert (await get_wallet(seeker.id)).escrow_balance == 100


async def test_seeker_cannot_confirm(parties, make_booking, booking_service):
    seeker, provider = parties
    booking = await make_booking(seeker, provider)
    with pytest.raises(AuthorizationError):
        await booking_service.update_status(booking.id, "CONFIRMED", seeker)


async def test_disputed_is_not_a_status_update_target(parties, make_booking, booking_service):
    seeker, provider = parties
    booking = await make_booking(seeker, provider)
    with pytest.raises(ValidationError):
        await booking_service.update_status(booking.id, "DISPUTED", seeker)


async def test_insufficient_tokens_creates_nothing(make_user, make_booking, booking_service, get_wallet):
    seeker = await make_user(balance=50)
    provider = await make_user(role=UserRole.PROVIDER)

    with pytest.raises(InsufficientFundsError) as exc:
        await make_booking(seeker, provider, token_amount=100)
    assert exc.value.code == "INSUFFICIENT_TOKENS"
    assert exc.value.message == "Insufficient tokens"
    assert await booking_service.list_bookings(seeker) == []
    assert (await get_wallet(seeker.id)).balance == 50


async def test_unverified_seeker_cannot_book(make_user, make_booking):
    seeker = await make_user(balance=500, is_age_verified=False)
    provider = await make_user(role=UserRole.PROVIDER)
    with pytest.raises(AgeVerificationError):
        await make_booking(seeker, provider)


async def test_provider_cannot_create_booking(make_user, make_booking):
    provider = await make_user(role=UserRole.PROVIDER, balance=500)
    other = await make_user(role=UserRole.PROVIDER)
    with pytest.raises(AuthorizationError):
        await make_booking(provider, other)


async def test_booking_validation(parties, booking_service):
    seeker, provider = parties
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            seeker, provider.id, "companionship", datetime.utcnow() - timedelta(hours=1), 60, 100
        )
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            seeker, provider.id, "companionship", datetime.utcnow() + timedelta(hours=1), 10, 100
        )
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            seeker, seeker.id, "companionship", datetime.utcnow() + timedelta(hours=1), 60, 100
        )


async def test_overlapping_provider_booking_conflicts(parties, make_booking):
    seeker, provider = parties
    await make_booking(seeker, provider, hours_ahead=48, duration=120)
    with pytest.raises(ConflictError):
        await make_booking(seeker, provider, hours_ahead=49, duration=60)


async def test_monitors_assigned_round_robin(make_user, make_booking, db_session):
    first = await make_user(role=UserRole.EMPLOYEE)
    second = await make_user(role=UserRole.EMPLOYEE)
    seeker = await make_user(balance=1000)
    provider = await make_user(role=UserRole.PROVIDER)

    bookings = [await make_booking(seeker, provider, hours_ahead=24 * (i + 1)) for i in range(4)]
    repo = MonitorAssignmentRepository(db_session)
    monitors = [(await repo.get_for_booking(b.id)).assigned_to for b in bookings]

    assert set(monitors) == {first.id, second.id}
    assert monitors[0] != monitors[1]
    assert monitors[0] == monitors[2]
    assert monitors[1] == monitors[3]


async def test_outsider_cannot_view_booking(parties, make_user, make_booking, booking_service):
    seeker, provider = parties
    outsider = await make_user()
    booking = await make_booking(seeker, provider)
    with pytest.raises(AuthorizationError):
        await booking_service.get_booking(booking.id, outsider)
