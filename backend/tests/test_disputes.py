"""Dispute flow tests: filing freezes escrow, resolution settles it exactly once."""
import pytest

from marketplace.api.deps import build_dispute_service
from marketplace.domain.admin.models import UserRole
from marketplace.domain.booking.models import BookingStatus
from marketplace.domain.common.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    ValidationError,
)
from marketplace.domain.dispute.models import DisputeOutcome, DisputeStatus, DisputeType

pytestmark = pytest.mark.integration

DESCRIPTION = "The provider did not show up at the agreed time and place."
APPEAL = "The resolution ignored the messages we exchanged in chat."


@pytest.fixture
def disputes(db_session):
    return build_dispute_service(db_session)


@pytest.fixture
async def setup(make_user, make_booking):
    seeker = await make_user(balance=1000)
    provider = await make_user(role=UserRole.PROVIDER)
    admin = await make_user(role=UserRole.ADMIN)
    booking = await make_booking(seeker, provider, token_amount=400)
    return seeker, provider, admin, booking


async def _confirm(booking_service, booking, provider):
    await booking_service.update_status(booking.id, "CONFIRMED", provider)


@pytest.mark.parametrize("steps", [[], ["CONFIRMED"], ["CONFIRMED", "IN_PROGRESS"]])
async def test_filing_on_active_booking_disputes_it(setup, booking_service, disputes, get_wallet, steps):
    seeker, provider, _, booking = setup
    for status in steps:
        await booking_service.update_status(booking.id, status, provider)

    dispute, disputed = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)

    assert disputed.status == BookingStatus.DISPUTED
    assert dispute.status == DisputeStatus.OPEN
    assert dispute.dispute_type == DisputeType.NO_SHOW
    assert dispute.reported_by == seeker.id
    assert dispute.reported_against == provider.id
    wallet = await get_wallet(seeker.id)
    assert (wallet.balance, wallet.escrow_balance) == (600, 400)


@pytest.mark.parametrize("terminal", ["CANCELLED", "COMPLETED"])
async def test_filing_on_terminal_booking_is_rejected(setup, booking_service, disputes, terminal):
    seeker, provider, _, booking = setup
    if terminal == "COMPLETED":
        for status in ("CONFIRMED", "IN_PROGRESS", "COMPLETED"):
            await booking_service.update_status(booking.id, status, provider)
    else:
        await booking_service.update_status(booking.id, "CANCELLED", seeker)

    with pytest.raises(InvalidTransitionError):
        await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)


async def test_second_open_dispute_is_rejected(setup, disputes):
    seeker, provider, _, booking = setup
    await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises((ConflictError, InvalidTransitionError)):
        await disputes.file_dispute(booking.id, provider, "BEHAVIOR_ISSUE", DESCRIPTION)


async def test_outsider_cannot_file(setup, make_user, disputes):
    _, _, admin, booking = setup
    outsider = await make_user()
    with pytest.raises(AuthorizationError):
        await disputes.file_dispute(booking.id, outsider, "OTHER", DESCRIPTION)
    with pytest.raises(AuthorizationError):
        await disputes.file_dispute(booking.id, admin, "OTHER", DESCRIPTION)


async def test_filing_validation(setup, disputes):
    seeker, _, _, booking = setup
    with pytest.raises(ValidationError):
        await disputes.file_dispute(booking.id, seeker, "NOT_A_TYPE", DESCRIPTION)
    with pytest.raises(ValidationError):
        await disputes.file_dispute(booking.id, seeker, "NO_SHOW", "too short")
    with pytest.raises(ValidationError):
        await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION, evidence=["ftp://x/y.png"])


async def test_disputed_booking_is_frozen(setup, booking_service, disputes):
    seeker, provider, _, booking = setup
    await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises(InvalidTransitionError):
        await booking_service.update_status(booking.id, "CANCELLED", seeker)


async def test_refund_outcome_returns_escrow_to_seeker(setup, disputes, get_wallet):
    seeker, provider, admin, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)

    resolved, settled = await disputes.resolve(dispute.id, admin, "REFUND", "Provider did not attend")

    assert resolved.status == DisputeStatus.RESOLVED
    assert resolved.outcome == DisputeOutcome.REFUND
    assert resolved.resolved_at is not None
    assert settled.status == BookingStatus.CANCELLED
    seeker_wallet = await get_wallet(seeker.id)
    assert (seeker_wallet.balance, seeker_wallet.escrow_balance) == (1000, 0)
    assert (await get_wallet(provider.id)).balance == 0


async def test_release_outcome_pays_provider(setup, booking_service, disputes, get_wallet):
    seeker, provider, admin, booking = setup
    await _confirm(booking_service, booking, provider)
    dispute, _ = await disputes.file_dispute(booking.id, provider, "PAYMENT_ISSUE", DESCRIPTION)

    await disputes.assign(dispute.id, admin)
    _, settled = await disputes.resolve(dispute.id, admin, "RELEASE", "Service was delivered")

    assert settled.status == BookingStatus.COMPLETED
    provider_wallet = await get_wallet(provider.id)
    assert (provider_wallet.balance, provider_wallet.total_earned) == (400, 400)
    assert (await get_wallet(seeker.id)).escrow_balance == 0


async def test_resolution_requires_explicit_outcome(setup, disputes):
    seeker, _, admin, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises(ValidationError):
        await disputes.resolve(dispute.id, admin, None, "No decision")
    with pytest.raises(ValidationError):
        await disputes.resolve(dispute.id, admin, "SPLIT", "No decision")


async def test_only_staff_resolve(setup, disputes):
    seeker, _, _, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises(AuthorizationError):
        await disputes.resolve(dispute.id, seeker, "REFUND", "I win")


async def test_resolving_twice_moves_funds_once(setup, disputes, get_wallet):
    seeker, _, admin, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    await disputes.resolve(dispute.id, admin, "REFUND", "Provider did not attend")

    with pytest.raises(InvalidTransitionError):
        await disputes.resolve(dispute.id, admin, "RELEASE", "Changed my mind")
    assert (await get_wallet(seeker.id)).balance == 1000


async def test_appeal_escalates_without_moving_funds(setup, disputes, get_wallet):
    seeker, provider, admin, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    await disputes.resolve(dispute.id, admin, "REFUND", "Provider did not attend")

    appealed = await disputes.appeal(dispute.id, provider, APPEAL)
    assert appealed.status == DisputeStatus.ESCALATED
    assert appealed.appealed
    assert (await get_wallet(seeker.id)).balance == 1000

    with pytest.raises(ConflictError):
        await disputes.appeal(dispute.id, seeker, APPEAL)
    with pytest.raises(InvalidTransitionError):
        await disputes.resolve(dispute.id, admin, "RELEASE", "Second look")

    closed = await disputes.close(dispute.id, admin)
    assert closed.status == DisputeStatus.CLOSED


async def test_assigning_appealed_dispute_keeps_it_closable(setup, make_user, disputes):
    seeker, provider, admin, booking = setup
    reviewer = await make_user(role=UserRole.MANAGER)
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    await disputes.resolve(dispute.id, admin, "REFUND", "Provider did not attend")
    await disputes.appeal(dispute.id, provider, APPEAL)

    assigned = await disputes.assign(dispute.id, admin, reviewer.id)
    assert assigned.status == DisputeStatus.ESCALATED
    assert assigned.assigned_to == reviewer.id

    closed = await disputes.close(dispute.id, reviewer)
    assert closed.status == DisputeStatus.CLOSED
    with pytest.raises(InvalidTransitionError):
        await disputes.assign(dispute.id, admin)


async def test_appeal_before_resolution_is_rejected(setup, disputes):
    seeker, _, _, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises(InvalidTransitionError):
        await disputes.appeal(dispute.id, seeker, APPEAL)


async def test_open_dispute_cannot_be_closed(setup, disputes):
    seeker, _, admin, booking = setup
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)
    with pytest.raises(InvalidTransitionError):
        await disputes.close(dispute.id, admin)


async def test_visibility_and_stats(setup, make_user, disputes):
    seeker, provider, admin, booking = setup
    outsider = await make_user()
    dispute, _ = await disputes.file_dispute(booking.id, seeker, "NO_SHOW", DESCRIPTION)

    assert (await disputes.get_dispute(dispute.id, provider)).id == dispute.id
    with pytest.raises(AuthorizationError):
        await disputes.get_dispute(dispute.id, outsider)

    mine, total = await disputes.list_mine(provider)
    assert total == 1 and mine[0].id == dispute.id

    stats = await disputes.stats(admin)
    assert stats["total"] == 1
    assert stats["byStatus"]["OPEN"] == 1
    assert stats["byType"]["NO_SHOW"] == 1
