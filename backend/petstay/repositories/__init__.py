# backend/petstay/repositories/__init__.py
"""
Repository Pattern Implementation for the PetStay settlement core

Key Components:
- IRepository / BaseRepository: shared contract and SQLAlchemy foundation
- BookingRepository, WalletRepository, CatalogRepository: SQL implementations
- InMemory*Repository: thread-safe implementations without a database
- RepositoryFactory: picks an implementation for a session (or None)

Usage:
    from petstay.repositories import RepositoryFactory

    repository = RepositoryFactory.create_wallet_repository(db)
    wallet = repository.get_by_user_id(user_id)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository, IBookingRepository
from .catalog_repository import CatalogRepository, ICatalogRepository
from .factory import RepositoryFactory
from .memory import (
    InMemoryBookingRepository,
    InMemoryCatalogRepository,
    InMemoryWalletRepository,
)
from .wallet_repository import IWalletRepository, WalletRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "CatalogRepository",
    "IBookingRepository",
    "ICatalogRepository",
    "IRepository",
    "IWalletRepository",
    "InMemoryBookingRepository",
    "InMemoryCatalogRepository",
    "InMemoryWalletRepository",
    "RepositoryFactory",
    "WalletRepository",
]
