"""Chat gate: who may post to a booking's chat, and in which booking states."""
from marketplace.domain.admin.models import User
from marketplace.domain.booking.models import Booking, BookingStatus
from marketplace.domain.booking.state_machine import require_access
from marketplace.domain.common.errors import MessagingNotAllowedError

MESSAGING_ALLOWED_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
})


def check_can_send(booking: Booking, user: User) -> None:
    """Raise unless ``user`` may post to ``booking`` now. Access is checked before state."""
    require_access(booking, user)
    if booking.status not in MESSAGING_ALLOWED_STATUSES:
        raise MessagingNotAllowedError(booking.status.value)
