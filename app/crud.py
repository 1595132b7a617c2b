from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from tortoise.exceptions import IntegrityError
from tortoise.transactions import in_transaction

from app.errors import BookingConflictError
from app.lifecycle import ACTIVE_STATUSES
from app.models import Booking, BookingStatus, PaymentStatus
from app.schemas import BookingResponse
from app.window import TimeWindow


def _to_response(inst: Booking) -> BookingResponse:
    return BookingResponse.model_validate(inst, from_attributes=True)


class BookingCRUD:
    """
    Tortoise-backed BookingStore.

    Mutations are conditional UPDATEs (``WHERE id = ? AND status = ?``) so a
    writer that read a stale status changes nothing and gets None back.
    """

    async def _conditional_update(
        self, booking_id: UUID, expected: dict, **values
    ) -> BookingResponse | None:
        # QuerySet.update() skips auto_now, so stamp updated_at here
        values["updated_at"] = datetime.now(timezone.utc)
        async with in_transaction():
            try:
                updated = await Booking.filter(id=booking_id, **expected).update(
                    **values
                )
            except IntegrityError as exc:
                # Raised by the Postgres exclusion constraint on overlapping windows
                raise BookingConflictError(
                    "Booking conflicts with an existing booking for this resource"
                ) from exc
            if not updated:
                return None
            inst = await Booking.get(id=booking_id)
        return _to_response(inst)

    async def create(
        self,
        *,
        user_id: UUID,
        vendor_id: UUID,
        resource_id: UUID,
        resource_name: str | None,
        window: TimeWindow,
        booking_date: date,
        price_at_booking: Decimal,
        currency: str,
        notes: str | None,
    ) -> BookingResponse:
        try:
            async with in_transaction():
                inst = await Booking.create(
                    user_id=user_id,
                    vendor_id=vendor_id,
                    resource_id=resource_id,
                    resource_name=resource_name,
                    booking_date=booking_date,
                    start_time=window.start,
                    end_time=window.end,
                    price_at_booking=price_at_booking,
                    currency=currency,
                    notes=notes,
                )
        except IntegrityError as exc:
            raise BookingConflictError(
                "Booking conflicts with an existing booking for this resource"
            ) from exc
        return _to_response(inst)

    async def find_by_id(self, booking_id: UUID) -> BookingResponse | None:
        inst = await Booking.get_or_none(id=booking_id)
        if not inst:
            return None
        return _to_response(inst)

    async def find_active_by_resource(
        self, resource_id: UUID, exclude_id: UUID | None = None
    ) -> list[BookingResponse]:
        qs = Booking.filter(
            resource_id=resource_id, status__in=list(ACTIVE_STATUSES)
        ).order_by("start_time")
        if exclude_id is not None:
            qs = qs.exclude(id=exclude_id)
        return [_to_response(b) for b in await qs]

    async def update_status(
        self, booking_id: UUID, expected: BookingStatus, target: BookingStatus
    ) -> BookingResponse | None:
        return await self._conditional_update(
            booking_id, {"status": expected}, status=target
        )

    async def update_details(
        self, booking_id: UUID, expected: BookingStatus, changes: dict[str, Any]
    ) -> BookingResponse | None:
        return await self._conditional_update(
            booking_id, {"status": expected}, **changes
        )

    async def cancel(
        self,
        booking_id: UUID,
        expected: BookingStatus,
        *,
        reason: str,
        cancelled_at: datetime,
        refund_percentage: int,
        refund_amount: Decimal,
    ) -> BookingResponse | None:
        return await self._conditional_update(
            booking_id,
            {"status": expected},
            status=BookingStatus.CANCELLED,
            cancel_reason=reason,
            cancelled_at=cancelled_at,
            refund_percentage=refund_percentage,
            refund_amount=refund_amount,
        )

    async def update_payment_status(
        self, booking_id: UUID, expected: PaymentStatus, target: PaymentStatus
    ) -> BookingResponse | None:
        return await self._conditional_update(
            booking_id, {"payment_status": expected}, payment_status=target
        )

    async def delete(self, booking_id: UUID, expected: BookingStatus) -> bool:
        deleted = await Booking.filter(id=booking_id, status=expected).delete()
        return bool(deleted)

    async def list_by_user(
        self, user_id: UUID, offset: int, limit: int
    ) -> tuple[list[BookingResponse], int]:
        return await self._paginate(Booking.filter(user_id=user_id), offset, limit)

    async def list_by_vendor(
        self, vendor_id: UUID, offset: int, limit: int
    ) -> tuple[list[BookingResponse], int]:
        return await self._paginate(
            Booking.filter(vendor_id=vendor_id), offset, limit
        )

    async def _paginate(
        self, qs, offset: int, limit: int
    ) -> tuple[list[BookingResponse], int]:
        total = await qs.count()
        bookings = await qs.order_by("-created_at").offset(offset).limit(limit)
        return [_to_response(b) for b in bookings], total


booking_crud = BookingCRUD()
