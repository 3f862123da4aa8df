"""
Catalog records the booking lifecycle reads but never writes.

Institutions, their packages, staff membership and pets are owned by the
CRUD layer; only the columns the settlement core needs are mapped here.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class Institution(Base):
    __tablename__ = "institutions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)


class ServicePackage(Base):
    """Priced boarding package offered by an institution."""

    __tablename__ = "service_packages"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    institution_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("institutions.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    features: Mapped[Optional[list[str]]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class InstitutionStaff(Base):
    """Membership of a user in an institution's staff."""

    __tablename__ = "institution_staff"

    user_id: Mapped[str] = mapped_column(String(26), primary_key=True)
    institution_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("institutions.id"), nullable=False, index=True
    )


class Pet(Base):
    __tablename__ = "pets"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(60), nullable=False)
