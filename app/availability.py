from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from loguru import logger

from app.interfaces import BookingStore
from app.schemas import BookingResponse
from app.window import TimeWindow


class AvailabilityChecker:
    """Decides whether a window is free on a resource, given its active bookings."""

    def __init__(self, store: BookingStore) -> None:
        self._store = store

    async def conflicts(
        self,
        resource_id: UUID,
        window: TimeWindow,
        exclude_booking_id: UUID | None = None,
    ) -> list[BookingResponse]:
        active = await self._store.find_active_by_resource(
            resource_id, exclude_id=exclude_booking_id
        )
        return [
            b
            for b in active
            if b.id != exclude_booking_id and b.window.overlaps(window)
        ]

    async def is_available(
        self,
        resource_id: UUID,
        window: TimeWindow,
        exclude_booking_id: UUID | None = None,
    ) -> bool:
        clashing = await self.conflicts(resource_id, window, exclude_booking_id)
        if clashing:
            logger.debug(
                "Window {}..{} on resource_id={} clashes with bookings {}",
                window.start,
                window.end,
                resource_id,
                [str(b.id) for b in clashing],
            )
        return not clashing


class ResourceLocks:
    """
    One asyncio.Lock per resource id, so that check-then-write sequences for
    the same resource run one at a time within this process.
    Locks are dropped once nobody holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._waiters: dict[UUID, int] = {}

    @asynccontextmanager
    async def hold(self, resource_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(resource_id, asyncio.Lock())
        self._waiters[resource_id] = self._waiters.get(resource_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[resource_id] -= 1
            if self._waiters[resource_id] == 0:
                del self._waiters[resource_id]
                del self._locks[resource_id]

    def __len__(self) -> int:
        return len(self._locks)
