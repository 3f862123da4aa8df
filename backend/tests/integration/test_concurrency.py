"""
Concurrency tests for the per-entity locks.

Threads hammer a single wallet or booking through the public service API;
the ledger must still replay to the final balance and each transition must
happen at most once. Concurrent readers only ever see committed state.
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
import threading

import pytest

from petstay.core.entity_lock import KeyedLockRegistry, wallet_lock_key
from petstay.core.enums import PaymentMethod
from petstay.core.exceptions import (
    EntityLockTimeoutException,
    InsufficientFundsException,
    InvalidTransitionException,
)
from petstay.repositories.memory import InMemoryBookingRepository
from petstay.services.booking_service import BookingService
from petstay.services.wallet_service import WalletService

from tests.factories.booking_builders import OWNER_ID, STAFF_ID, booking_request

pytestmark = pytest.mark.integration


def _outcomes(calls):
    """Run callables concurrently; return (results, exceptions)."""
    barrier = threading.Barrier(len(calls))

    def run(call):
        barrier.wait()
        try:
            return call(), None
        except Exception as exc:  # collected for assertions
            return None, exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        pairs = list(pool.map(run, calls))
    return [r for r, _ in pairs if r is not None], [e for _, e in pairs if e is not None]


def test_parallel_credits_and_debits_keep_the_ledger_whole(
    wallet_service, assert_ledger_consistent
):
    calls = []
    for _ in range(20):
        calls.append(lambda: wallet_service.credit(OWNER_ID, 100))
        calls.append(lambda: wallet_service.debit(OWNER_ID, 50))

    _, errors = _outcomes(calls)

    assert errors == []
    assert wallet_service.get_balance(OWNER_ID) == 10000 + 20 * 50
    assert len(wallet_service.ledger(OWNER_ID)) == 40
    assert_ledger_consistent(wallet_service, OWNER_ID)


def test_parallel_first_use_opens_one_wallet(wallet_service):
    results, errors = _outcomes([lambda: wallet_service.get_wallet(OWNER_ID)] * 10)

    assert errors == []
    assert len({w.id for w in results}) == 1


def test_paying_the_same_booking_twice_in_parallel(booking_service, wallet_service):
    booking = booking_service.create(OWNER_ID, booking_request())

    results, errors = _outcomes([lambda: booking_service.pay(booking.id, OWNER_ID)] * 8)

    assert len(results) == 1
    assert len(errors) == 7
    assert all(isinstance(e, InvalidTransitionException) for e in errors)
    assert wallet_service.get_balance(OWNER_ID) == 500
    assert len(wallet_service.ledger(OWNER_ID)) == 1


def test_two_bookings_competing_for_one_balance(booking_service, wallet_service, clock):
    first = booking_service.create(OWNER_ID, booking_request())
    clock.advance(seconds=1)
    second = booking_service.create(OWNER_ID, booking_request())

    results, errors = _outcomes(
        [
            lambda: booking_service.pay(first.id, OWNER_ID),
            lambda: booking_service.pay(second.id, OWNER_ID),
        ]
    )

    assert len(results) == 1
    (error,) = errors
    assert isinstance(error, InsufficientFundsException)
    statuses = [booking_service.get_booking(b.id).payment_status for b in (first, second)]
    assert sorted(statuses) == ["paid", "pending"]
    assert wallet_service.get_balance(OWNER_ID) == 500


def test_parallel_cancellations_refund_once(
    booking_service, wallet_service, clock, assert_ledger_consistent
):
    booking = booking_service.create(OWNER_ID, booking_request())
    booking_service.pay(booking.id, OWNER_ID)

    results, errors = _outcomes([lambda: booking_service.cancel(booking.id, OWNER_ID)] * 6)

    assert len(results) == 1
    assert all(isinstance(e, InvalidTransitionException) for e in errors)
    assert wallet_service.get_balance(OWNER_ID) == 10000
    assert [t.type for t in wallet_service.ledger(OWNER_ID)] == ["payment", "income"]
    assert_ledger_consistent(wallet_service, OWNER_ID)


def test_parallel_creates_get_unique_order_numbers(booking_service):
    results, errors = _outcomes(
        [lambda: booking_service.create(OWNER_ID, booking_request())] * 30
    )

    assert errors == []
    assert len({b.order_number for b in results}) == 30
    assert booking_service.list_user_bookings(OWNER_ID, page_size=100).total == 30


def test_wallet_lock_timeout_leaves_booking_unpaid(clock, catalog, notifications):
    locks = KeyedLockRegistry(timeout_s=0.05)
    wallets = WalletService(locks=locks, clock=clock)
    service = BookingService(
        locks=locks,
        catalog_repository=catalog,
        wallet_service=wallets,
        notification_service=notifications,
        clock=clock,
    )
    booking = service.create(OWNER_ID, booking_request())
    wallets.get_wallet(OWNER_ID)

    held = threading.Event()
    release = threading.Event()

    def hold_wallet():
        with locks.hold(wallet_lock_key(OWNER_ID)):
            held.set()
            release.wait(2)

    holder = threading.Thread(target=hold_wallet)
    holder.start()
    try:
        assert held.wait(2)
        with pytest.raises(EntityLockTimeoutException):
            service.pay(booking.id, OWNER_ID)
    finally:
        release.set()
        holder.join()

    assert service.get_booking(booking.id).payment_status == "pending"
    assert wallets.get_balance(OWNER_ID) == 10000
    assert wallets.ledger(OWNER_ID) == []

    assert service.pay(booking.id, OWNER_ID).payment_status == "paid"


class PausingBookingRepository(InMemoryBookingRepository):
    """Parks the next ``save`` until the test lets it commit."""

    def __init__(self) -> None:
        super().__init__()
        self.pause_next_save = False
        self.paused = threading.Event()
        self.proceed = threading.Event()

    def save(self, entity):
        if self.pause_next_save:
            self.pause_next_save = False
            self.paused.set()
            self.proceed.wait(5)
        return super().save(entity)


def test_readers_never_see_a_cancel_half_applied(
    locks, clock, catalog, wallet_service, notifications
):
    repo = PausingBookingRepository()
    service = BookingService(
        locks=locks,
        booking_repository=repo,
        catalog_repository=catalog,
        wallet_service=wallet_service,
        notification_service=notifications,
        clock=clock,
    )
    booking = service.create(OWNER_ID, booking_request())
    service.pay(booking.id, OWNER_ID)
    service.confirm(booking.id, STAFF_ID)

    repo.pause_next_save = True
    canceller = threading.Thread(target=service.cancel, args=(booking.id, OWNER_ID))
    canceller.start()
    seen = []
    reader = threading.Thread(target=lambda: seen.append(service.get_booking(booking.id)))
    try:
        assert repo.paused.wait(5)
        stored = repo.get_by_id(booking.id)
        assert (stored.status, stored.payment_status, stored.refund_amount) == (
            "confirmed",
            "paid",
            None,
        )
        reader.start()
        reader.join(0.2)
        assert reader.is_alive()
    finally:
        repo.proceed.set()
        canceller.join(5)
    reader.join(5)

    (after,) = seen
    assert (after.status, after.payment_status) == ("cancelled", "refunded")
    assert after.refund_amount == Decimal("95.00")


def test_polling_reads_during_cancellations_stay_consistent(booking_service, clock):
    bookings = []
    for _ in range(15):
        booking = booking_service.create(OWNER_ID, booking_request())
        bookings.append(booking_service.pay(booking.id, OWNER_ID, PaymentMethod.CARD))
        clock.advance(seconds=1)
    done = threading.Event()
    torn = []

    def poll():
        while not done.is_set():
            for b in bookings:
                seen = booking_service.get_booking(b.id)
                refunded = seen.payment_status in ("refunded", "partial_refund")
                if refunded != (seen.status == "cancelled"):
                    torn.append((seen.status, seen.payment_status))

    poller = threading.Thread(target=poll)
    poller.start()
    try:
        for b in bookings:
            booking_service.cancel(b.id, OWNER_ID)
    finally:
        done.set()
        poller.join(5)

    assert torn == []


def test_wallet_reads_match_the_ledger_during_credits(wallet_service, assert_ledger_consistent):
    done = threading.Event()
    mismatches = []

    def poll():
        while not done.is_set():
            wallet = wallet_service.get_wallet(OWNER_ID)
            entries = wallet_service.ledger(OWNER_ID)
            latest = entries[-1].balance_after if entries else 10000
            if len(entries) == wallet.version - 1 and latest != wallet.balance:
                mismatches.append((wallet.balance, latest))

    poller = threading.Thread(target=poll)
    poller.start()
    try:
        for _ in range(200):
            wallet_service.credit(OWNER_ID, 1)
    finally:
        done.set()
        poller.join(5)

    assert mismatches == []
    assert_ledger_consistent(wallet_service, OWNER_ID)
