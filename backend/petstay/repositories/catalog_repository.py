# backend/petstay/repositories/catalog_repository.py
"""
Catalog Repository

Read access to institutions, packages, staff membership and pets. Writes
belong to the catalog CRUD layer; ``add`` exists for seeding.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.catalog import Institution, InstitutionStaff, Pet, ServicePackage

CatalogRecord = TypeVar("CatalogRecord", Institution, ServicePackage, InstitutionStaff, Pet)


class ICatalogRepository(ABC):
    @abstractmethod
    def get_institution(self, institution_id: str) -> Optional[Institution]: ...

    @abstractmethod
    def get_package(self, package_id: str) -> Optional[ServicePackage]: ...

    @abstractmethod
    def get_pet(self, pet_id: str) -> Optional[Pet]: ...

    @abstractmethod
    def list_staff_ids(self, institution_id: str) -> List[str]:
        """User ids of every staff member of the institution."""

    @abstractmethod
    def get_staff_institution_id(self, user_id: str) -> Optional[str]:
        """Institution the user works for, or None if not staff."""

    @abstractmethod
    def add(self, record: CatalogRecord) -> CatalogRecord: ...


class CatalogRepository(ICatalogRepository):
    def __init__(self, db: Session):
        self.db = db

    def get_institution(self, institution_id: str) -> Optional[Institution]:
        return self.db.get(Institution, institution_id)

    def get_package(self, package_id: str) -> Optional[ServicePackage]:
        return self.db.get(ServicePackage, package_id)

    def get_pet(self, pet_id: str) -> Optional[Pet]:
        return self.db.get(Pet, pet_id)

    def list_staff_ids(self, institution_id: str) -> List[str]:
        stmt = (
            select(InstitutionStaff.user_id)
            .where(InstitutionStaff.institution_id == institution_id)
            .order_by(InstitutionStaff.user_id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_staff_institution_id(self, user_id: str) -> Optional[str]:
        staff = self.db.get(InstitutionStaff, user_id)
        return staff.institution_id if staff else None

    def add(self, record: CatalogRecord) -> CatalogRecord:
        try:
            self.db.add(record)
            self.db.flush()
        except SQLAlchemyError as exc:
            raise RepositoryException(f"Failed to add {type(record).__name__}: {exc}") from exc
        return record
