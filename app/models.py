from enum import StrEnum

from tortoise import fields
from tortoise.models import Model


class BookingStatus(StrEnum):
    PENDING = "pending"  # just created, awaiting vendor confirmation
    CONFIRMED = "confirmed"  # vendor accepted
    IN_PROGRESS = "in_progress"  # booking period has started
    COMPLETED = "completed"  # booking period elapsed, marked done
    CANCELLED = "cancelled"  # cancelled by customer, vendor or admin
    NO_SHOW = "no_show"  # customer didn't show up


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class Booking(Model):
    id = fields.UUIDField(primary_key=True)

    user_id = fields.UUIDField()  # the customer who made the booking
    vendor_id = fields.UUIDField()
    resource_id = fields.UUIDField(db_index=True)
    resource_name = fields.CharField(max_length=255, null=True)  # snapshot

    booking_date = fields.DateField()
    start_time = fields.DatetimeField()
    end_time = fields.DatetimeField()

    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)
    payment_status = fields.CharEnumField(PaymentStatus, default=PaymentStatus.PENDING)

    price_at_booking = fields.DecimalField(
        max_digits=10, decimal_places=2
    )  # snapshot at booking time
    currency = fields.CharField(max_length=3, default="EUR")

    notes = fields.TextField(null=True)
    cancel_reason = fields.TextField(null=True)
    cancelled_at = fields.DatetimeField(null=True)
    refund_percentage = fields.IntField(null=True)
    refund_amount = fields.DecimalField(max_digits=10, decimal_places=2, null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]
