"""
Tests for the in-memory repositories.

Reads hand out detached copies; nothing a caller does to a copy is visible
to other readers until it is saved.
"""

from datetime import date
from decimal import Decimal

import pytest

from petstay.core.enums import BookingStatus, PaymentStatus
from petstay.core.exceptions import RepositoryException, StaleRecordException
from petstay.models import Booking, WalletAccount, WithdrawalRequest
from petstay.repositories.memory import InMemoryBookingRepository, InMemoryWalletRepository

from tests.factories.booking_builders import INSTITUTION_ID, OWNER_ID, PACKAGE_ID, PET_ID, utc

T0 = utc(2023, 12, 20, 12, 0)


def _booking() -> Booking:
    return Booking(
        id="b-01",
        order_number="PF20231220000001",
        user_id=OWNER_ID,
        institution_id=INSTITUTION_ID,
        service_package_id=PACKAGE_ID,
        pet_id=PET_ID,
        status=BookingStatus.CONFIRMED.value,
        payment_status=PaymentStatus.PAID.value,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 10),
        total_days=10,
        base_price=Decimal("100.00"),
        discount=Decimal("5.00"),
        total_price=Decimal("95.00"),
        user_deleted=False,
        institution_deleted=False,
        created_at=T0,
    )


def _wallet() -> WalletAccount:
    return WalletAccount(
        id="w-1",
        user_id=OWNER_ID,
        user_type="pet_owner",
        balance=10000,
        frozen_balance=0,
        total_income=0,
        total_withdraw=0,
        status="active",
        created_at=T0,
    )


class TestInMemoryBookingRepository:
    def test_unsaved_changes_stay_private(self):
        repo = InMemoryBookingRepository()
        repo.add(_booking())

        working = repo.get_for_update("b-01")
        working.payment_status = PaymentStatus.REFUNDED.value
        working.refund_amount = Decimal("95.00")

        stored = repo.get_by_id("b-01")
        assert stored is not working
        assert (stored.status, stored.payment_status, stored.refund_amount) == (
            "confirmed",
            "paid",
            None,
        )

    def test_save_commits_every_field_at_once(self):
        repo = InMemoryBookingRepository()
        repo.add(_booking())
        working = repo.get_for_update("b-01")
        working.payment_status = PaymentStatus.REFUNDED.value
        working.status = BookingStatus.CANCELLED.value

        repo.save(working)

        stored = repo.get_by_id("b-01")
        assert (stored.status, stored.payment_status) == ("cancelled", "refunded")
        (listed,), total = repo.list_for_user(OWNER_ID)
        assert total == 1
        assert listed.status == "cancelled"

    def test_mutating_the_added_instance_does_not_leak(self):
        repo = InMemoryBookingRepository()
        booking = repo.add(_booking())

        booking.status = BookingStatus.COMPLETED.value

        assert repo.get_by_id("b-01").status == "confirmed"

    def test_save_of_unknown_booking(self):
        with pytest.raises(RepositoryException):
            InMemoryBookingRepository().save(_booking())


class TestInMemoryWalletRepository:
    def test_save_bumps_version_on_the_committed_copy(self):
        repo = InMemoryWalletRepository()
        repo.add(_wallet())

        working = repo.get_for_update(OWNER_ID)
        working.balance = 9000
        assert repo.get_by_user_id(OWNER_ID).balance == 10000

        repo.save(working)

        stored = repo.get_by_user_id(OWNER_ID)
        assert (stored.balance, stored.version) == (9000, 2)
        assert working.version == 2

    def test_outdated_copy_is_rejected(self):
        repo = InMemoryWalletRepository()
        repo.add(_wallet())
        first = repo.get_for_update(OWNER_ID)
        second = repo.get_for_update(OWNER_ID)
        first.balance = 5000
        repo.save(first)

        second.balance = 7000
        with pytest.raises(StaleRecordException):
            repo.save(second)

        assert repo.get_by_user_id(OWNER_ID).balance == 5000

    def test_withdrawal_changes_need_a_save(self):
        repo = InMemoryWalletRepository()
        repo.add(_wallet())
        repo.add_withdrawal(
            WithdrawalRequest(
                id="wd-1",
                wallet_id="w-1",
                amount=5000,
                fee=100,
                actual_amount=4900,
                account_id="acct-1",
                status="pending",
                created_at=T0,
            )
        )

        working = repo.get_withdrawal("wd-1")
        working.status = "cancelled"
        assert repo.get_withdrawal("wd-1").status == "pending"

        repo.save_withdrawal(working)
        assert repo.get_withdrawal("wd-1").status == "cancelled"
