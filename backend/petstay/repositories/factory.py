# backend/petstay/repositories/factory.py
"""
Repository Factory for the PetStay settlement core

Centralizes repository creation so services can be wired against either
a SQLAlchemy session or the in-memory backend.
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import IBookingRepository
    from .catalog_repository import ICatalogRepository
    from .wallet_repository import IWalletRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Passing ``db=None`` selects the in-memory implementation.
    """

    @staticmethod
    def create_booking_repository(db: Optional[Session]) -> "IBookingRepository":
        """Create repository for booking operations."""
        if db is None:
            from .memory import InMemoryBookingRepository

            return InMemoryBookingRepository()
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_wallet_repository(db: Optional[Session]) -> "IWalletRepository":
        """Create repository for wallet accounts and their ledger."""
        if db is None:
            from .memory import InMemoryWalletRepository

            return InMemoryWalletRepository()
        from .wallet_repository import WalletRepository

        return WalletRepository(db)

    @staticmethod
    def create_catalog_repository(db: Optional[Session]) -> "ICatalogRepository":
        """Create repository for institutions, packages, staff and pets."""
        if db is None:
            from .memory import InMemoryCatalogRepository

            return InMemoryCatalogRepository()
        from .catalog_repository import CatalogRepository

        return CatalogRepository(db)
