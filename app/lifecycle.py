from app.errors import InvalidBookingError, InvalidTransitionError
from app.models import BookingStatus, PaymentStatus

# ---------------------------------------------------------------------------
# Booking status edges
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.IN_PROGRESS: {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    },
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}

# Bookings in these states block their window for everyone else
ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS}
)
TERMINAL_STATUSES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)
RESCHEDULABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
DELETABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CANCELLED})


def allowed_targets(current: BookingStatus) -> list[str]:
    return sorted(s.value for s in VALID_TRANSITIONS.get(current, set()))


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is an edge."""
    if target not in VALID_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(
            str(current), str(target), allowed_targets(current)
        )


def assert_cancellable(current: BookingStatus) -> None:
    if current == BookingStatus.CANCELLED:
        raise InvalidBookingError("Booking is already cancelled")
    if current in TERMINAL_STATUSES:
        raise InvalidBookingError(f"Cannot cancel a {current} booking")


def assert_reschedulable(current: BookingStatus) -> None:
    if current not in RESCHEDULABLE_STATUSES:
        raise InvalidBookingError(
            f"Cannot change the time of a {current} booking; "
            "only pending or confirmed bookings can be rescheduled"
        )


def assert_editable(current: BookingStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidBookingError(f"Cannot update a {current} booking")


def assert_deletable(current: BookingStatus) -> None:
    if current not in DELETABLE_STATUSES:
        raise InvalidBookingError("Only pending or cancelled bookings can be deleted")


# ---------------------------------------------------------------------------
# Payment status edges (bookkeeping only, no money movement)
# ---------------------------------------------------------------------------

PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING, PaymentStatus.PAID},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),
}


def assert_payment_transition(
    booking_status: BookingStatus,
    current: PaymentStatus,
    target: PaymentStatus,
) -> None:
    allowed = PAYMENT_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            str(current), str(target), sorted(s.value for s in allowed)
        )
    if target == PaymentStatus.REFUNDED and booking_status != BookingStatus.CANCELLED:
        raise InvalidBookingError("Only cancelled bookings can be refunded")
