# backend/petstay/repositories/booking_repository.py
"""
Booking Repository for the PetStay settlement core

Lookups, row-locked reads for transitions, order-number uniqueness checks
and the soft-delete aware list queries for owners and institutions.
"""

from __future__ import annotations

from abc import abstractmethod
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.enums import BookingStatus
from ..models.booking import Booking
from .base_repository import BaseRepository, IRepository

logger = logging.getLogger(__name__)


class IBookingRepository(IRepository[Booking]):
    @abstractmethod
    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Fetch a booking for a read-modify-write transition."""

    @abstractmethod
    def order_number_exists(self, order_number: str) -> bool:
        """True if any booking already carries ``order_number``."""

    @abstractmethod
    def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """Owner's bookings newest first, hiding ones the owner deleted."""

    @abstractmethod
    def list_for_institution(
        self,
        institution_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """Institution's bookings newest first, hiding ones staff deleted."""


class BookingRepository(BaseRepository[Booking], IBookingRepository):
    """SQLAlchemy-backed booking storage."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def order_number_exists(self, order_number: str) -> bool:
        stmt = select(Booking.id).where(Booking.order_number == order_number).limit(1)
        return self._scalar(stmt) is not None

    def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        stmt = select(Booking).where(
            Booking.user_id == user_id,
            Booking.user_deleted.is_(False),
        )
        if status is not None:
            stmt = stmt.where(Booking.status == BookingStatus(status).value)
        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc())
        return self._paginate(stmt, skip, limit)

    def list_for_institution(
        self,
        institution_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        stmt = select(Booking).where(
            Booking.institution_id == institution_id,
            Booking.institution_deleted.is_(False),
        )
        if status is not None:
            stmt = stmt.where(Booking.status == BookingStatus(status).value)
        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc())
        return self._paginate(stmt, skip, limit)
