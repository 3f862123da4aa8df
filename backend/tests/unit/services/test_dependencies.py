"""Tests for service wiring used by the request layer."""

from petstay.services import dependencies
from petstay.services.booking_service import BookingService
from petstay.services.wallet_service import WalletService


def test_singletons_are_shared_and_resettable():
    dependencies.reset_singletons()
    locks = dependencies.get_lock_registry()
    generator = dependencies.get_order_number_generator()

    assert dependencies.get_lock_registry() is locks
    assert dependencies.get_order_number_generator() is generator

    dependencies.reset_singletons()
    assert dependencies.get_lock_registry() is not locks


def test_services_share_session_and_locks(sql_session):
    dependencies.reset_singletons()

    wallet_service = dependencies.get_wallet_service(db=sql_session)
    booking_service = dependencies.get_booking_service(
        db=sql_session, wallet_service=wallet_service
    )

    assert isinstance(booking_service, BookingService)
    assert isinstance(wallet_service, WalletService)
    assert booking_service.wallet_service is wallet_service
    assert booking_service.db is wallet_service.db is sql_session
    assert booking_service.locks is wallet_service.locks is dependencies.get_lock_registry()
    assert booking_service.order_numbers is dependencies.get_order_number_generator()
