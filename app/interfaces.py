"""
Collaborators the reservation engine depends on (ports).

BookingStore is implemented by app.crud.BookingCRUD on Tortoise ORM;
ResourceLookup by app.deps.ResourcesClient over HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from app.models import BookingStatus, PaymentStatus
from app.schemas import BookingResponse
from app.window import TimeWindow


@dataclass(frozen=True)
class ResourceInfo:
    id: UUID
    vendor_id: UUID
    active: bool
    price: Decimal
    currency: str
    name: str | None = None


class ResourceLookup(Protocol):
    async def validate(self, resource_id: UUID) -> ResourceInfo | None:
        """Return the resource snapshot, or None if it does not exist."""
        ...


class BookingStore(Protocol):
    """
    Persistence boundary. Every mutating method is a compare-and-swap on the
    status the caller last read: it returns None (or False) when no row
    matched, and the caller re-reads to tell "gone" from "changed".
    """

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
    ) -> BookingResponse: ...

    async def find_by_id(self, booking_id: UUID) -> BookingResponse | None: ...

    async def find_active_by_resource(
        self, resource_id: UUID, exclude_id: UUID | None = None
    ) -> list[BookingResponse]: ...

    async def update_status(
        self, booking_id: UUID, expected: BookingStatus, target: BookingStatus
    ) -> BookingResponse | None: ...

    async def update_details(
        self, booking_id: UUID, expected: BookingStatus, changes: dict[str, Any]
    ) -> BookingResponse | None:
        """
        Apply ``changes`` (any of start_time, end_time, booking_date, notes)
        in one conditional write.
        """
        ...

    async def cancel(
        self,
        booking_id: UUID,
        expected: BookingStatus,
        *,
        reason: str,
        cancelled_at: datetime,
        refund_percentage: int,
        refund_amount: Decimal,
    ) -> BookingResponse | None: ...

    async def update_payment_status(
        self, booking_id: UUID, expected: PaymentStatus, target: PaymentStatus
    ) -> BookingResponse | None: ...

    async def delete(self, booking_id: UUID, expected: BookingStatus) -> bool: ...

    async def list_by_user(
        self, user_id: UUID, offset: int, limit: int
    ) -> tuple[list[BookingResponse], int]: ...

    async def list_by_vendor(
        self, vendor_id: UUID, offset: int, limit: int
    ) -> tuple[list[BookingResponse], int]: ...
