# backend/petstay/schemas/booking.py
"""
Booking schemas for the PetStay settlement core.

Bookings snapshot their price at creation; the response mirrors the stored
record so later package changes never leak into an existing booking.
"""

from datetime import date, datetime
from decimal import Decimal
import re
from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from ..core.enums import BookingStatus, PaymentMethod, PaymentStatus, RefundTier
from .base import StrictModel, StrictRequestModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _ensure_date_only(value: object, field_name: str) -> object:
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    if isinstance(value, datetime):
        raise ValueError(f"{field_name} must be a date, not a datetime")
    return value


class EmergencyContact(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=60)
    phone: str = Field(..., min_length=3, max_length=30)
    relationship: Optional[str] = Field(None, max_length=30)


class BookingCreate(StrictRequestModel):
    """
    Create a booking for one pet at one institution.

    The stay covers ``start_date`` through ``end_date`` inclusive. Date order
    and price are validated by the pricing engine, not here.
    """

    institution_id: str = Field(..., min_length=1, description="Institution hosting the stay")
    service_package_id: str = Field(..., min_length=1, description="Package being booked")
    pet_id: str = Field(..., min_length=1, description="Pet being boarded")
    start_date: date = Field(..., description="First day of the stay")
    end_date: date = Field(..., description="Last day of the stay (inclusive)")
    special_requirements: Optional[str] = Field(None, max_length=1000)
    emergency_contact: Optional[EmergencyContact] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return _ensure_date_only(v, "date")

    @field_validator("special_requirements")
    @classmethod
    def clean_requirements(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class BookingCancel(StrictRequestModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Cancellation reason")


class BookingResponse(StrictModel):
    id: str
    order_number: str
    user_id: str
    institution_id: str
    service_package_id: str
    pet_id: str
    status: BookingStatus
    payment_status: PaymentStatus
    start_date: date
    end_date: date
    total_days: int
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    base_price: Decimal
    discount: Decimal
    total_price: Decimal
    payment_method: Optional[PaymentMethod] = None
    paid_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    refunded_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    special_requirements: Optional[str] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CancellationPreview(StrictModel):
    """What cancelling now would do, without doing it."""

    booking_id: str
    can_cancel: bool
    reason: str
    hours_until_start: Optional[int] = None
    tier: Optional[RefundTier] = None
    refund_amount: Decimal = Decimal("0.00")
    cancellation_fee: Decimal = Decimal("0.00")
    refund_rate: Decimal = Decimal("0")
    estimated_days: int = 0
