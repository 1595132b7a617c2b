from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, NoReturn
from uuid import UUID

from loguru import logger

from app.availability import AvailabilityChecker, ResourceLocks
from app.cancellation import CancellationPolicyRule, calculate_refund, load_policy
from app.errors import BookingConflictError, InvalidBookingError, NotFoundError
from app.interfaces import BookingStore, ResourceLookup
from app.lifecycle import (
    assert_cancellable,
    assert_deletable,
    assert_editable,
    assert_payment_transition,
    assert_reschedulable,
    assert_transition,
)
from app.models import BookingStatus, PaymentStatus
from app.schemas import (
    BookingPage,
    BookingResponse,
    BookingSlot,
    BookingUpdate,
    PageParams,
)
from app.window import TimeWindow, to_utc

STATUS_CHANGE_CANCEL_REASON = "Cancelled via status update"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CancellationResult:
    booking: BookingResponse
    refund_percentage: int
    refund_reason: str


class ReservationService:
    """
    Orchestrates booking creation and mutation against an injected
    BookingStore and ResourceLookup.

    Every mutation re-reads the booking, validates the move against the
    lifecycle rules, then writes with a compare-and-swap on the status it read.
    Creation and rescheduling additionally run under a per-resource lock so the
    availability check and the write cannot interleave with another request
    for the same resource.
    """

    def __init__(
        self,
        store: BookingStore,
        resources: ResourceLookup,
        *,
        policy: list[CancellationPolicyRule] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        locks: ResourceLocks | None = None,
    ) -> None:
        self.store = store
        self.resources = resources
        self.availability = AvailabilityChecker(store)
        self.policy = policy if policy is not None else load_policy(None)
        self._clock = clock
        self._locks = locks if locks is not None else ResourceLocks()

    def now(self) -> datetime:
        return to_utc(self._clock())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: UUID) -> BookingResponse:
        booking = await self.store.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def list_user_bookings(
        self, user_id: UUID, params: PageParams
    ) -> BookingPage:
        items, total = await self.store.list_by_user(
            user_id, params.offset, params.page_size
        )
        return _page(items, total, params)

    async def list_vendor_bookings(
        self, vendor_id: UUID, params: PageParams
    ) -> BookingPage:
        items, total = await self.store.list_by_vendor(
            vendor_id, params.offset, params.page_size
        )
        return _page(items, total, params)

    async def list_occupied_slots(self, resource_id: UUID) -> list[BookingSlot]:
        active = await self.store.find_active_by_resource(resource_id)
        return [BookingSlot.model_validate(b, from_attributes=True) for b in active]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        user_id: UUID,
        vendor_id: UUID,
        resource_id: UUID,
        window: TimeWindow,
        booking_date: date | None = None,
        notes: str | None = None,
    ) -> BookingResponse:
        booking_date = self._resolve_booking_date(window, booking_date)

        resource = await self.resources.validate(resource_id)
        if resource is None:
            raise NotFoundError("Resource not found")
        if not resource.active:
            raise InvalidBookingError("Resource is not available for booking")
        if resource.vendor_id != vendor_id:
            raise InvalidBookingError("Resource does not belong to this vendor")

        async with self._locks.hold(resource_id):
            if not await self.availability.is_available(resource_id, window):
                logger.warning(
                    "Rejected booking: resource_id={} window={}..{} is taken",
                    resource_id,
                    window.start,
                    window.end,
                )
                raise BookingConflictError(
                    "This time slot is not available. Please choose another time."
                )
            booking = await self.store.create(
                user_id=user_id,
                vendor_id=vendor_id,
                resource_id=resource_id,
                resource_name=resource.name,
                window=window,
                booking_date=booking_date,
                price_at_booking=resource.price,
                currency=resource.currency,
                notes=notes,
            )

        logger.info(
            "Booking created: id={} resource_id={} user_id={}",
            booking.id,
            resource_id,
            user_id,
        )
        return booking

    # ------------------------------------------------------------------
    # Update (reschedule / notes)
    # ------------------------------------------------------------------

    async def update_booking(
        self, booking_id: UUID, patch: BookingUpdate
    ) -> BookingResponse:
        """
        Reschedule and/or edit notes. All requested changes land in one
        conditional write, so a lost race leaves the booking untouched.
        """
        booking = await self.get_booking(booking_id)

        window = patch.window
        reschedule = window is not None or patch.booking_date is not None
        edit_notes = "notes" in patch.model_fields_set
        if not (reschedule or edit_notes):
            raise InvalidBookingError("Nothing to update")

        assert_editable(booking.status)
        changes: dict[str, Any] = {}
        if edit_notes:
            changes["notes"] = patch.notes

        if not reschedule:
            updated = await self.store.update_details(
                booking.id, booking.status, changes
            )
        else:
            assert_reschedulable(booking.status)
            new_window = window or booking.window
            changes.update(
                start_time=new_window.start,
                end_time=new_window.end,
                booking_date=self._resolve_booking_date(
                    new_window, patch.booking_date
                ),
            )
            async with self._locks.hold(booking.resource_id):
                if window is not None and not await self.availability.is_available(
                    booking.resource_id, new_window, exclude_booking_id=booking.id
                ):
                    raise BookingConflictError(
                        "This time slot is not available. Please choose another time."
                    )
                updated = await self.store.update_details(
                    booking.id, booking.status, changes
                )

        if updated is None:
            await self._raise_lost_race(booking_id)
        logger.info("Booking updated: id={} fields={}", booking_id, sorted(changes))
        return updated

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_booking_status(
        self, booking_id: UUID, target: BookingStatus
    ) -> BookingResponse:
        booking = await self.get_booking(booking_id)
        assert_transition(booking.status, target)

        if target == BookingStatus.CANCELLED:
            # Keeps cancelled_at / cancel_reason / refund in step with the status
            result = await self._cancel(booking, STATUS_CHANGE_CANCEL_REASON)
            return result.booking

        updated = await self.store.update_status(booking.id, booking.status, target)
        if updated is None:
            await self._raise_lost_race(booking_id)
        logger.info(
            "Booking status changed: id={} {} -> {}", booking_id, booking.status, target
        )
        return updated

    async def cancel_booking(self, booking_id: UUID, reason: str) -> CancellationResult:
        booking = await self.get_booking(booking_id)
        assert_cancellable(booking.status)
        return await self._cancel(booking, reason)

    async def _cancel(
        self, booking: BookingResponse, reason: str
    ) -> CancellationResult:
        now = self.now()
        decision = calculate_refund(booking.start_time, now, self.policy)
        refund_amount = (
            booking.price_at_booking * decision.percentage / Decimal(100)
        ).quantize(Decimal("0.01"))

        updated = await self.store.cancel(
            booking.id,
            booking.status,
            reason=reason,
            cancelled_at=now,
            refund_percentage=decision.percentage,
            refund_amount=refund_amount,
        )
        if updated is None:
            await self._raise_lost_race(booking.id)

        logger.info(
            "Booking cancelled: id={} refund={}% ({})",
            booking.id,
            decision.percentage,
            decision.reason,
        )
        return CancellationResult(
            booking=updated,
            refund_percentage=decision.percentage,
            refund_reason=decision.reason,
        )

    async def update_payment_status(
        self, booking_id: UUID, target: PaymentStatus
    ) -> BookingResponse:
        booking = await self.get_booking(booking_id)
        assert_payment_transition(booking.status, booking.payment_status, target)

        updated = await self.store.update_payment_status(
            booking.id, booking.payment_status, target
        )
        if updated is None:
            await self._raise_lost_race(booking_id)
        logger.info(
            "Payment status changed: id={} {} -> {}",
            booking_id,
            booking.payment_status,
            target,
        )
        return updated

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_booking(self, booking_id: UUID) -> None:
        booking = await self.get_booking(booking_id)
        assert_deletable(booking.status)
        if not await self.store.delete(booking.id, booking.status):
            await self._raise_lost_race(booking_id)
        logger.info("Booking deleted: id={}", booking_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_booking_date(
        self, window: TimeWindow, booking_date: date | None
    ) -> date:
        """booking_date is always the UTC calendar date of window.start."""
        if booking_date is not None and booking_date != window.date:
            raise InvalidBookingError(
                "Booking date must be the date of start_time "
                f"({window.date.isoformat()})"
            )
        if window.date < self.now().date():
            raise InvalidBookingError("Booking date cannot be in the past")
        return window.date

    async def _raise_lost_race(self, booking_id: UUID) -> NoReturn:
        """A conditional write matched no row: the booking vanished or moved on."""
        current = await self.store.find_by_id(booking_id)
        if current is None:
            raise NotFoundError("Booking not found")
        logger.warning(
            "Concurrent modification of booking id={} (now {})",
            booking_id,
            current.status,
        )
        raise BookingConflictError(
            f"Booking was modified concurrently (status is now '{current.status}')"
        )


def _page(items: list[BookingResponse], total: int, params: PageParams) -> BookingPage:
    return BookingPage(
        items=items,
        total=total,
        page=params.page,
        page_size=params.page_size,
        total_pages=math.ceil(total / params.page_size),
    )
