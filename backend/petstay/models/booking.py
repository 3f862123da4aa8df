"""
Booking model for the PetStay platform.

A booking is one pet's stay at one institution for an inclusive date range.
Prices are snapshotted at creation so later package changes never alter an
existing booking. Records are never physically deleted; each side of the
booking can hide it independently through its own soft-delete flag.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.enums import BookingStatus, PaymentStatus
from ..database import Base


class Booking(Base):
    """Pet boarding booking with its settlement state."""

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    order_number: Mapped[str] = mapped_column(String(24), unique=True, nullable=False)

    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    institution_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    service_package_id: Mapped[str] = mapped_column(String(26), nullable=False)
    pet_id: Mapped[str] = mapped_column(String(26), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    check_in_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    check_out_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(20))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    refund_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text)

    special_requirements: Mapped[Optional[str]] = mapped_column(Text)
    emergency_contact: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    user_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    institution_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_bookings_date_range"),
        CheckConstraint("total_days >= 1", name="ck_bookings_total_days_positive"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
        Index("idx_bookings_user_created_at", "user_id", "created_at"),
        Index("idx_bookings_institution_created_at", "institution_id", "created_at"),
    )

    @property
    def booking_status(self) -> BookingStatus:
        return BookingStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def __repr__(self) -> str:
        return (
            f"<Booking(order_number={self.order_number}, status={self.status}, "
            f"payment_status={self.payment_status})>"
        )
