from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models import BookingStatus, PaymentStatus
from app.window import TimeWindow


def _require_timezone(v: datetime | None) -> datetime | None:
    if v is None:
        return v
    if v.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (include UTC offset)")
    return v.astimezone(timezone.utc)


class BookingCreate(BaseModel):
    vendor_id: UUID
    resource_id: UUID
    start_time: datetime
    end_time: datetime
    booking_date: date | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def require_timezone(cls, v: datetime) -> datetime:
        return _require_timezone(v)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)


class BookingUpdate(BaseModel):
    """Reschedule and/or edit notes. start_time and end_time travel together."""

    start_time: datetime | None = None
    end_time: datetime | None = None
    booking_date: date | None = None
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def require_timezone(cls, v: datetime | None) -> datetime | None:
        return _require_timezone(v)

    @model_validator(mode="after")
    def validate_time_pair(self) -> BookingUpdate:
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be provided together")
        return self

    @property
    def window(self) -> TimeWindow | None:
        if self.start_time is None or self.end_time is None:
            return None
        return TimeWindow(self.start_time, self.end_time)


class BookingCancel(BaseModel):
    cancel_reason: str = Field(min_length=1, max_length=500)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus


class BookingResponse(BaseModel):
    id: UUID
    user_id: UUID
    vendor_id: UUID
    resource_id: UUID
    resource_name: str | None = None
    booking_date: date
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    payment_status: PaymentStatus
    price_at_booking: Decimal
    currency: str
    notes: str | None = None
    cancel_reason: str | None = None
    cancelled_at: datetime | None = None
    refund_percentage: int | None = None
    refund_amount: Decimal | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.start_time, self.end_time)


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund_percentage: int
    refund_reason: str


class BookingSlot(BaseModel):
    """Minimal occupied slot — reveals no user identity."""

    start_time: datetime
    end_time: datetime

    model_config = ConfigDict(from_attributes=True)


class PageParams(BaseModel):
    """Bind to a FastAPI route via Depends(PageParams)."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class BookingPage(BaseModel):
    items: list[BookingResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
