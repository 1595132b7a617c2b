from uuid import UUID

from fastapi import APIRouter, Depends, status
from loguru import logger

from app.cache import SlotsCache, get_slots_cache
from app.deps import CurrentUser, get_current_user, get_reservation_service
from app.schemas import (
    BookingCancel,
    BookingCreate,
    BookingPage,
    BookingResponse,
    BookingSlot,
    BookingStatusUpdate,
    BookingUpdate,
    CancellationResponse,
    PageParams,
    PaymentStatusUpdate,
)
from app.service import ReservationService

router = APIRouter(
    prefix="/bookings",
    tags=["bookings"],
    dependencies=[Depends(get_current_user)],
)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get("/slots", response_model=list[BookingSlot])
async def get_resource_slots(
    resource_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> list[BookingSlot]:
    """
    Returns occupied time windows for a resource.
    Any authenticated user can call this — response contains NO user identity.
    """
    cached = await cache.get(resource_id)
    if cached is not None:
        logger.debug("Cache hit for slots: resource_id={}", resource_id)
        return cached

    logger.debug("Cache miss for slots: resource_id={}", resource_id)
    slots = await service.list_occupied_slots(resource_id)
    await cache.set(resource_id, slots)
    return slots


@router.get("/user/{user_id}", response_model=BookingPage)
async def list_user_bookings(
    user_id: UUID,
    params: PageParams = Depends(),
    service: ReservationService = Depends(get_reservation_service),
) -> BookingPage:
    return await service.list_user_bookings(user_id, params)


@router.get("/vendor/{vendor_id}", response_model=BookingPage)
async def list_vendor_bookings(
    vendor_id: UUID,
    params: PageParams = Depends(),
    service: ReservationService = Depends(get_reservation_service),
) -> BookingPage:
    return await service.list_vendor_bookings(vendor_id, params)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    return await service.get_booking(booking_id)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> BookingResponse:
    booking = await service.create_booking(
        user_id=current_user.id,
        vendor_id=payload.vendor_id,
        resource_id=payload.resource_id,
        window=payload.window,
        booking_date=payload.booking_date,
        notes=payload.notes,
    )
    await cache.invalidate(payload.resource_id)
    return booking


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdate,
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> BookingResponse:
    booking = await service.update_booking(booking_id, payload)
    await cache.invalidate(booking.resource_id)
    return booking


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancel,
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> CancellationResponse:
    result = await service.cancel_booking(booking_id, payload.cancel_reason)
    await cache.invalidate(result.booking.resource_id)
    return CancellationResponse(
        booking=result.booking,
        refund_percentage=result.refund_percentage,
        refund_reason=result.refund_reason,
    )


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> BookingResponse:
    booking = await service.update_booking_status(booking_id, payload.status)
    await cache.invalidate(booking.resource_id)
    return booking


@router.patch("/{booking_id}/payment-status", response_model=BookingResponse)
async def update_payment_status(
    booking_id: UUID,
    payload: PaymentStatusUpdate,
    service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    return await service.update_payment_status(booking_id, payload.payment_status)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
    cache: SlotsCache = Depends(get_slots_cache),
) -> None:
    booking = await service.get_booking(booking_id)
    await service.delete_booking(booking_id)
    await cache.invalidate(booking.resource_id)
