"""
Service layer dependencies for dependency injection.

Factory functions that build request-scoped services around a shared
database session, plus the process-wide singletons (entity locks, order
number generator, notification sink) every request must share.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.entity_lock import KeyedLockRegistry
from ..database import SessionLocal, get_db
from ..repositories.factory import RepositoryFactory
from .booking_service import BookingService
from .notification_service import NotificationService
from .order_number_service import OrderNumberGenerator
from .wallet_service import WalletService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_lock_registry() -> KeyedLockRegistry:
    """Get the process-wide per-entity lock registry."""
    return KeyedLockRegistry()


def _order_number_exists(order_number: str) -> bool:
    with SessionLocal() as db:
        return RepositoryFactory.create_booking_repository(db).order_number_exists(order_number)


@lru_cache(maxsize=1)
def get_order_number_generator() -> OrderNumberGenerator:
    """Get the process-wide order number generator, checked against storage."""
    return OrderNumberGenerator(exists=_order_number_exists)


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return NotificationService()


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    return WalletService(db, locks=get_lock_registry())


def get_booking_service(
    db: Session = Depends(get_db),
    wallet_service: WalletService = Depends(get_wallet_service),
) -> BookingService:
    return BookingService(
        db,
        locks=get_lock_registry(),
        wallet_service=wallet_service,
        notification_service=get_notification_service(),
        order_numbers=get_order_number_generator(),
    )


def reset_singletons() -> None:
    """Drop cached singletons (tests and process re-initialisation)."""
    if get_order_number_generator.cache_info().currsize:
        get_order_number_generator().reset()
    get_lock_registry.cache_clear()
    get_order_number_generator.cache_clear()
    get_notification_service.cache_clear()
    logger.debug("Service singletons reset")
