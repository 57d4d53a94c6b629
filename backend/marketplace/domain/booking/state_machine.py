"""Booking state machine: pure transition table plus a side-effect dispatcher.

The table is a strict whitelist. A (current, target) pair that is not listed is
an invalid transition; nothing is inferred from the absence of a rule.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from marketplace.domain.admin.models import User
from marketplace.domain.booking.models import Booking, BookingStatus
from marketplace.domain.common.errors import AuthorizationError, InvalidTransitionError
from marketplace.domain.wallet.ledger import WalletLedger


class Actor(str, Enum):
    """Who may request a transition."""
    SEEKER = "SEEKER"
    PROVIDER = "PROVIDER"
    PARTY = "PARTY"  # seeker or provider
    RESOLUTION = "RESOLUTION"  # admin resolving a dispute


class Effect(str, Enum):
    """Ledger side effect of a transition."""
    NONE = "NONE"
    HOLD = "HOLD"
    RELEASE = "RELEASE"
    REFUND = "REFUND"
    FREEZE = "FREEZE"  # no fund movement; escrow stays held until resolution


@dataclass(frozen=True)
class Transition:
    source: Optional[BookingStatus]
    target: BookingStatus
    actor: Actor
    effect: Effect


def _t(source, target, actor, effect=Effect.NONE) -> tuple:
    return (source, target), Transition(source, target, actor, effect)


S = BookingStatus

TRANSITIONS: dict[tuple[Optional[BookingStatus], BookingStatus], Transition] = dict([
    _t(None, S.PENDING, Actor.SEEKER, Effect.HOLD),
    _t(S.PENDING, S.CONFIRMED, Actor.PROVIDER),
    _t(S.CONFIRMED, S.IN_PROGRESS, Actor.PROVIDER),
    _t(S.IN_PROGRESS, S.COMPLETED, Actor.PROVIDER, Effect.RELEASE),
    _t(S.PENDING, S.CANCELLED, Actor.PARTY, Effect.REFUND),
    _t(S.CONFIRMED, S.CANCELLED, Actor.PARTY, Effect.REFUND),
    _t(S.PENDING, S.DISPUTED, Actor.PARTY, Effect.FREEZE),
    _t(S.CONFIRMED, S.DISPUTED, Actor.PARTY, Effect.FREEZE),
    _t(S.IN_PROGRESS, S.DISPUTED, Actor.PARTY, Effect.FREEZE),
    _t(S.DISPUTED, S.COMPLETED, Actor.RESOLUTION, Effect.RELEASE),
    _t(S.DISPUTED, S.CANCELLED, Actor.RESOLUTION, Effect.REFUND),
])

# Targets a party may request through the status endpoint. DISPUTED goes through the dispute flow.
STATUS_UPDATE_TARGETS = frozenset({S.CONFIRMED, S.IN_PROGRESS, S.COMPLETED, S.CANCELLED})


def get_transition(current: Optional[BookingStatus], target: BookingStatus) -> Transition:
    """Look up a transition or raise InvalidTransitionError."""
    transition = TRANSITIONS.get((current, target))
    if transition is None:
        raise InvalidTransitionError(current.value if current else "NONE", target.value)
    return transition


def allowed_targets(current: BookingStatus) -> set[BookingStatus]:
    """Statuses reachable from ``current`` (any actor)."""
    return {target for (source, target) in TRANSITIONS if source == current}


def actor_roles(booking: Booking, user: User) -> set[Actor]:
    """Roles ``user`` holds on ``booking``. Admins may act for either party."""
    roles = set()
    if user.id == booking.seeker_id:
        roles.add(Actor.SEEKER)
    if user.id == booking.provider_id:
        roles.add(Actor.PROVIDER)
    if user.is_admin:
        roles.update({Actor.SEEKER, Actor.PROVIDER, Actor.RESOLUTION})
    if roles & {Actor.SEEKER, Actor.PROVIDER}:
        roles.add(Actor.PARTY)
    return roles


def require_access(booking: Booking, user: User) -> None:
    """Only the two parties and admin roles may touch a booking."""
    if not (booking.is_party(user.id) or user.is_admin):
        raise AuthorizationError("Access denied")


def plan_transition(
    booking: Booking,
    target: BookingStatus,
    user: User,
    resolution: bool = False,
) -> Optional[Transition]:
    """Validate a transition request. Returns None for a same-status no-op.

    Checks run in a fixed order: access, idempotent no-op, dispute freeze,
    whitelist, then the actor required by the matching rule.
    """
    require_access(booking, user)
    if booking.status == target:
        return None
    if booking.status == BookingStatus.DISPUTED and not resolution:
        raise InvalidTransitionError(
            booking.status.value, target.value, "Booking is under dispute; status is frozen until resolution"
        )
    transition = get_transition(booking.status, target)
    if transition.actor == Actor.RESOLUTION and not resolution:
        raise InvalidTransitionError(booking.status.value, target.value)
    if transition.actor not in actor_roles(booking, user):
        raise AuthorizationError(
            f"Only the {transition.actor.value.lower()} can move a booking to {target.value}"
        )
    return transition


async def apply_side_effect(ledger: WalletLedger, booking: Booking, transition: Transition) -> None:
    """Run the ledger operation bound to ``transition`` inside the caller's transaction."""
    if transition.effect == Effect.HOLD:
        await ledger.hold(booking.seeker_id, booking.token_amount, booking.id)
    elif transition.effect == Effect.RELEASE:
        await ledger.release(booking.seeker_id, booking.provider_id, booking.token_amount, booking.id)
    elif transition.effect == Effect.REFUND:
        await ledger.refund(booking.seeker_id, booking.token_amount, booking.id)
