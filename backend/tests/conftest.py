# backend/tests/conftest.py
"""
Pytest configuration for the settlement core.

Services run against the in-memory repositories unless a test asks for the
``sql_session`` fixture, which provides an isolated in-memory SQLite schema.
"""

import os

# Set testing mode BEFORE any petstay imports
os.environ["is_testing"] = "true"
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BOOKING_TIMEZONE", "UTC")

from typing import Callable, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from petstay.core.config import settings

settings.is_testing = True

from petstay.core.entity_lock import KeyedLockRegistry
from petstay.core.enums import TransactionType
from petstay.database import create_all
from petstay.repositories.memory import InMemoryCatalogRepository
from petstay.services.booking_service import BookingService
from petstay.services.notification_service import NotificationService
from petstay.services.wallet_service import WalletService

from tests.factories.booking_builders import FrozenClock, seed_catalog, utc


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(utc(2023, 12, 20, 12, 0))


@pytest.fixture
def locks() -> KeyedLockRegistry:
    return KeyedLockRegistry(timeout_s=5.0)


@pytest.fixture
def catalog() -> InMemoryCatalogRepository:
    repo = InMemoryCatalogRepository()
    seed_catalog(repo)
    return repo


@pytest.fixture
def notifications() -> NotificationService:
    return NotificationService()


@pytest.fixture
def wallet_service(locks, clock) -> WalletService:
    return WalletService(locks=locks, clock=clock)


@pytest.fixture
def booking_service(locks, clock, catalog, wallet_service, notifications) -> BookingService:
    return BookingService(
        locks=locks,
        catalog_repository=catalog,
        wallet_service=wallet_service,
        notification_service=notifications,
        clock=clock,
    )


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_session(sql_engine) -> Iterator[Session]:
    factory = sessionmaker(bind=sql_engine, autoflush=False, expire_on_commit=False)
    session = factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def assert_ledger_consistent() -> Callable[[WalletService, str], None]:
    """Replay a wallet's ledger and check every snapshot chains to the next."""

    def _check(service: WalletService, user_id: str) -> None:
        wallet = service.get_wallet(user_id)
        entries = service.ledger(user_id)
        expected_before = None
        for entry in entries:
            sign = TransactionType(entry.type).sign
            assert entry.balance_after == entry.balance_before + sign * entry.amount, entry
            if expected_before is not None:
                assert entry.balance_before == expected_before, entry
            expected_before = entry.balance_after
        if entries:
            assert entries[-1].balance_after == wallet.balance
        else:
            assert wallet.balance == settings.wallet_seed_balance_cents

    return _check
