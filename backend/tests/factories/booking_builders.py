"""Shared identities, a controllable clock and catalog seeding for tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

import pytz

from petstay.models import Institution, InstitutionStaff, Pet, ServicePackage
from petstay.schemas.booking import BookingCreate

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
STAFF_ID = "staff-1"
SECOND_STAFF_ID = "staff-3"
OTHER_STAFF_ID = "staff-2"
INSTITUTION_ID = "inst-1"
OTHER_INSTITUTION_ID = "inst-2"
PACKAGE_ID = "pkg-1"
OTHER_PACKAGE_ID = "pkg-2"
INACTIVE_PACKAGE_ID = "pkg-3"
PET_ID = "pet-1"


class FrozenClock:
    """Callable clock the services read instead of the wall clock."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=pytz.UTC)


def seed_catalog(catalog: Any) -> None:
    catalog.add(Institution(id=INSTITUTION_ID, name="Happy Paws"))
    catalog.add(Institution(id=OTHER_INSTITUTION_ID, name="Cat Castle"))
    catalog.add(
        ServicePackage(
            id=PACKAGE_ID,
            institution_id=INSTITUTION_ID,
            name="Standard stay",
            price_per_day=Decimal("10.00"),
            features=["walks", "grooming"],
            is_active=True,
        )
    )
    catalog.add(
        ServicePackage(
            id=OTHER_PACKAGE_ID,
            institution_id=OTHER_INSTITUTION_ID,
            name="Cat suite",
            price_per_day=Decimal("20.00"),
            features=[],
            is_active=True,
        )
    )
    catalog.add(
        ServicePackage(
            id=INACTIVE_PACKAGE_ID,
            institution_id=INSTITUTION_ID,
            name="Retired suite",
            price_per_day=Decimal("15.00"),
            features=None,
            is_active=False,
        )
    )
    catalog.add(InstitutionStaff(user_id=STAFF_ID, institution_id=INSTITUTION_ID))
    catalog.add(InstitutionStaff(user_id=SECOND_STAFF_ID, institution_id=INSTITUTION_ID))
    catalog.add(InstitutionStaff(user_id=OTHER_STAFF_ID, institution_id=OTHER_INSTITUTION_ID))
    catalog.add(Pet(id=PET_ID, owner_id=OWNER_ID, name="Mochi"))


def booking_request(
    start: date = date(2024, 1, 1),
    end: date = date(2024, 1, 10),
    *,
    institution_id: str = INSTITUTION_ID,
    package_id: str = PACKAGE_ID,
    **extra: Any,
) -> BookingCreate:
    return BookingCreate(
        institution_id=institution_id,
        service_package_id=package_id,
        pet_id=PET_ID,
        start_date=start,
        end_date=end,
        **extra,
    )


def paid_booking(service: Any, clock: FrozenClock, **request: Any) -> Any:
    """Create a booking as the default owner and pay it from the wallet."""
    booking = service.create(OWNER_ID, booking_request(**request))
    clock.advance(seconds=1)
    return service.pay(booking.id, OWNER_ID)
