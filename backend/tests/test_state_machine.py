"""Transition table tests. Pure, no database."""
from datetime import datetime, timedelta

import pytest

from marketplace.domain.admin.models import User, UserRole
from marketplace.domain.booking.models import Booking, BookingStatus
from marketplace.domain.booking.state_machine import (
    Actor,
    Effect,
    allowed_targets,
    get_transition,
    plan_transition,
)
from marketplace.domain.common.errors import AuthorizationError, InvalidTransitionError

pytestmark = pytest.mark.unit

S = BookingStatus


def _user(role: UserRole) -> User:
    return User.create(email=f"{role.value.lower()}@example.com", password_hash="x", role=role)


@pytest.fixture
def seeker():
    return _user(UserRole.SEEKER)


@pytest.fixture
def provider():
    return _user(UserRole.PROVIDER)


@pytest.fixture
def admin():
    return _user(UserRole.ADMIN)


def _booking(seeker, provider, status=S.PENDING) -> Booking:
    booking = Booking.create(
        seeker_id=seeker.id,
        provider_id=provider.id,
        service_type="companionship",
        token_amount=100,
        scheduled_at=datetime.utcnow() + timedelta(days=1),
        duration=60,
    )
    booking.status = status
    return booking


def test_creation_holds_escrow():
    transition = get_transition(None, S.PENDING)
    assert transition.effect == Effect.HOLD
    assert transition.actor == Actor.SEEKER


@pytest.mark.parametrize(
    "source,target,effect",
    [
        (S.IN_PROGRESS, S.COMPLETED, Effect.RELEASE),
        (S.PENDING, S.CANCELLED, Effect.REFUND),
        (S.CONFIRMED, S.CANCELLED, Effect.REFUND),
        (S.IN_PROGRESS, S.DISPUTED, Effect.FREEZE),
        (S.DISPUTED, S.COMPLETED, Effect.RELEASE),
        (S.DISPUTED, S.CANCELLED, Effect.REFUND),
        (S.PENDING, S.CONFIRMED, Effect.NONE),
    ],
)
def test_side_effects(source, target, effect):
    assert get_transition(source, target).effect == effect


@pytest.mark.parametrize(
    "source,target",
    [
        (S.PENDING, S.IN_PROGRESS),
        (S.PENDING, S.COMPLETED),
        (S.IN_PROGRESS, S.CANCELLED),
        (S.COMPLETED, S.CANCELLED),
        (S.CANCELLED, S.CONFIRMED),
        (S.COMPLETED, S.DISPUTED),
    ],
)
def test_unlisted_pairs_are_invalid(source, target):
    with pytest.raises(InvalidTransitionError) as exc:
        get_transition(source, target)
    assert exc.value.code == "INVALID_TRANSITION"


def test_terminal_states_have_no_exits():
    assert allowed_targets(S.COMPLETED) == set()
    assert allowed_targets(S.CANCELLED) == set()


def test_same_status_is_a_noop(seeker, provider):
    booking = _booking(seeker, provider, S.COMPLETED)
    assert plan_transition(booking, S.COMPLETED, provider) is None


def test_terminal_rejects_other_targets(seeker, provider):
    booking = _booking(seeker, provider, S.CANCELLED)
    with pytest.raises(InvalidTransitionError):
        plan_transition(booking, S.CONFIRMED, provider)


def test_only_provider_confirms(seeker, provider):
    booking = _booking(seeker, provider)
    with pytest.raises(AuthorizationError):
        plan_transition(booking, S.CONFIRMED, seeker)
    assert plan_transition(booking, S.CONFIRMED, provider).target == S.CONFIRMED


def test_either_party_cancels(seeker, provider):
    booking = _booking(seeker, provider, S.CONFIRMED)
    assert plan_transition(booking, S.CANCELLED, seeker).effect == Effect.REFUND
    assert plan_transition(booking, S.CANCELLED, provider).effect == Effect.REFUND


def test_outsider_is_denied_before_anything_else(seeker, provider):
    outsider = _user(UserRole.SEEKER)
    booking = _booking(seeker, provider, S.COMPLETED)
    with pytest.raises(AuthorizationError):
        plan_transition(booking, S.COMPLETED, outsider)


def test_disputed_is_frozen_for_parties(seeker, provider):
    booking = _booking(seeker, provider, S.DISPUTED)
    with pytest.raises(InvalidTransitionError):
        plan_transition(booking, S.COMPLETED, provider)


def test_resolution_unlocks_disputed(seeker, provider, admin):
    booking = _booking(seeker, provider, S.DISPUTED)
    assert plan_transition(booking, S.CANCELLED, admin, resolution=True).effect == Effect.REFUND
    assert plan_transition(booking, S.COMPLETED, admin, resolution=True).effect == Effect.RELEASE


def test_admin_may_act_for_provider(seeker, provider, admin):
    booking = _booking(seeker, provider, S.IN_PROGRESS)
    assert plan_transition(booking, S.COMPLETED, admin).effect == Effect.RELEASE
