# backend/petstay/repositories/memory.py
"""
Thread-safe in-memory repositories.

They are used when the settlement core runs without a database, and
throughout the unit tests. Bookings, wallets and withdrawals are stored as
detached snapshots: reads hand out copies and ``save`` commits a copy under
the store lock, so a reader never sees a transition that is still being
applied. Read-modify-write sequences on a single booking or wallet are
serialized by the service layer's per-entity locks.
"""

from __future__ import annotations

from datetime import datetime
import itertools
import threading
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from sqlalchemy import inspect

from ..core.enums import BookingStatus, TransactionType
from ..core.exceptions import RepositoryException, StaleRecordException
from ..models.booking import Booking
from ..models.catalog import Institution, InstitutionStaff, Pet, ServicePackage
from ..models.wallet import (
    RechargeOrder,
    WalletAccount,
    WalletTransaction,
    WithdrawalAccount,
    WithdrawalRequest,
)
from .booking_repository import IBookingRepository
from .catalog_repository import CatalogRecord, ICatalogRepository
from .wallet_repository import IWalletRepository

T = TypeVar("T")


def _snapshot(entity: T) -> T:
    """Copy every mapped column into a fresh, unattached instance."""
    mapper = inspect(type(entity))
    return type(entity)(**{attr.key: getattr(entity, attr.key) for attr in mapper.column_attrs})


def _maybe_snapshot(entity: Optional[T]) -> Optional[T]:
    return _snapshot(entity) if entity is not None else None


def _page(rows: List[T], skip: int, limit: int) -> Tuple[List[T], int]:
    return rows[skip : skip + limit], len(rows)


def _newest_first(rows: Iterable[T], key: Callable[[T], object]) -> List[T]:
    return sorted(rows, key=key, reverse=True)  # type: ignore[arg-type]


class InMemoryBookingRepository(IBookingRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_id: Dict[str, Booking] = {}
        self._order_numbers: Dict[str, str] = {}

    def get_by_id(self, id: str) -> Optional[Booking]:
        with self._lock:
            return _maybe_snapshot(self._by_id.get(id))

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        return self.get_by_id(booking_id)

    def add(self, entity: Booking) -> Booking:
        with self._lock:
            if entity.id in self._by_id:
                raise RepositoryException(f"Booking {entity.id} already exists")
            if entity.order_number in self._order_numbers:
                raise RepositoryException(
                    f"Integrity constraint violated: duplicate order number {entity.order_number}"
                )
            self._by_id[entity.id] = _snapshot(entity)
            self._order_numbers[entity.order_number] = entity.id
        return entity

    def save(self, entity: Booking) -> Booking:
        with self._lock:
            if entity.id not in self._by_id:
                raise RepositoryException(f"Booking {entity.id} is not stored")
            self._by_id[entity.id] = _snapshot(entity)
        return entity

    def order_number_exists(self, order_number: str) -> bool:
        return order_number in self._order_numbers

    def _list(
        self,
        predicate: Callable[[Booking], bool],
        status: Optional[BookingStatus],
        skip: int,
        limit: int,
    ) -> Tuple[List[Booking], int]:
        with self._lock:
            rows = [_snapshot(b) for b in self._by_id.values() if predicate(b)]
        if status is not None:
            wanted = BookingStatus(status).value
            rows = [b for b in rows if b.status == wanted]
        return _page(_newest_first(rows, lambda b: (b.created_at, b.id)), skip, limit)

    def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        return self._list(
            lambda b: b.user_id == user_id and not b.user_deleted, status, skip, limit
        )

    def list_for_institution(
        self,
        institution_id: str,
        *,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        return self._list(
            lambda b: b.institution_id == institution_id and not b.institution_deleted,
            status,
            skip,
            limit,
        )


class InMemoryWalletRepository(IWalletRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._wallets: Dict[str, WalletAccount] = {}
        self._wallets_by_user: Dict[str, str] = {}
        self._ledger: Dict[str, List[WalletTransaction]] = {}
        self._withdrawals: Dict[str, WithdrawalRequest] = {}
        self._recharges: Dict[str, RechargeOrder] = {}
        self._accounts: Dict[str, WithdrawalAccount] = {}
        self._sequence = itertools.count(1)

    def get_by_id(self, id: str) -> Optional[WalletAccount]:
        with self._lock:
            return _maybe_snapshot(self._wallets.get(id))

    def get_by_user_id(self, user_id: str) -> Optional[WalletAccount]:
        with self._lock:
            wallet_id = self._wallets_by_user.get(user_id)
            return _maybe_snapshot(self._wallets.get(wallet_id)) if wallet_id else None

    def get_for_update(self, user_id: str) -> Optional[WalletAccount]:
        return self.get_by_user_id(user_id)

    def add(self, entity: WalletAccount) -> WalletAccount:
        with self._lock:
            if entity.user_id in self._wallets_by_user:
                raise RepositoryException(
                    f"Integrity constraint violated: wallet exists for user {entity.user_id}"
                )
            entity.version = 1
            self._wallets[entity.id] = _snapshot(entity)
            self._wallets_by_user[entity.user_id] = entity.id
            self._ledger[entity.id] = []
        return entity

    def save(self, entity: WalletAccount) -> WalletAccount:
        with self._lock:
            stored = self._wallets.get(entity.id)
            if stored is None:
                raise RepositoryException(f"Wallet {entity.id} is not stored")
            if stored.version != entity.version:
                raise StaleRecordException("WalletAccount was modified by another transaction")
            entity.version = stored.version + 1
            self._wallets[entity.id] = _snapshot(entity)
        return entity

    def append_transaction(self, txn: WalletTransaction) -> WalletTransaction:
        with self._lock:
            if txn.wallet_id not in self._ledger:
                raise RepositoryException(f"Wallet {txn.wallet_id} is not stored")
            txn.sequence = next(self._sequence)
            self._ledger[txn.wallet_id].append(txn)
        return txn

    def list_transactions(
        self,
        wallet_id: str,
        *,
        txn_type: Optional[TransactionType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[WalletTransaction], int]:
        rows = self.ledger(wallet_id)
        if txn_type is not None:
            wanted = TransactionType(txn_type).value
            rows = [t for t in rows if t.type == wanted]
        if start is not None:
            rows = [t for t in rows if t.created_at >= start]
        if end is not None:
            rows = [t for t in rows if t.created_at < end]
        return _page(_newest_first(rows, lambda t: t.sequence), skip, limit)

    def ledger(self, wallet_id: str) -> List[WalletTransaction]:
        with self._lock:
            return list(self._ledger.get(wallet_id, []))

    def add_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        with self._lock:
            self._withdrawals[withdrawal.id] = _snapshot(withdrawal)
        return withdrawal

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        with self._lock:
            return _maybe_snapshot(self._withdrawals.get(withdrawal_id))

    def save_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        with self._lock:
            if withdrawal.id not in self._withdrawals:
                raise RepositoryException(f"Withdrawal {withdrawal.id} is not stored")
            self._withdrawals[withdrawal.id] = _snapshot(withdrawal)
        return withdrawal

    def list_withdrawals(
        self, wallet_id: str, *, skip: int = 0, limit: int = 20
    ) -> Tuple[List[WithdrawalRequest], int]:
        with self._lock:
            rows = [_snapshot(w) for w in self._withdrawals.values() if w.wallet_id == wallet_id]
        return _page(_newest_first(rows, lambda w: (w.created_at, w.id)), skip, limit)

    def add_recharge_order(self, order: RechargeOrder) -> RechargeOrder:
        with self._lock:
            self._recharges[order.id] = order
        return order

    def get_recharge_order(self, order_id: str) -> Optional[RechargeOrder]:
        return self._recharges.get(order_id)

    def add_withdrawal_account(self, account: WithdrawalAccount) -> WithdrawalAccount:
        with self._lock:
            self._accounts[account.id] = account
        return account

    def get_withdrawal_account(self, account_id: str) -> Optional[WithdrawalAccount]:
        return self._accounts.get(account_id)

    def list_withdrawal_accounts(self, user_id: str) -> List[WithdrawalAccount]:
        with self._lock:
            rows = [a for a in self._accounts.values() if a.user_id == user_id]
        return sorted(rows, key=lambda a: (not a.is_default, a.created_at, a.id))

    def delete_withdrawal_account(self, account: WithdrawalAccount) -> None:
        with self._lock:
            self._accounts.pop(account.id, None)

    def set_default_withdrawal_account(self, user_id: str, account_id: str) -> None:
        with self._lock:
            for account in self._accounts.values():
                if account.user_id == user_id:
                    account.is_default = account.id == account_id


class InMemoryCatalogRepository(ICatalogRepository):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._institutions: Dict[str, Institution] = {}
        self._packages: Dict[str, ServicePackage] = {}
        self._staff: Dict[str, InstitutionStaff] = {}
        self._pets: Dict[str, Pet] = {}

    def get_institution(self, institution_id: str) -> Optional[Institution]:
        return self._institutions.get(institution_id)

    def get_package(self, package_id: str) -> Optional[ServicePackage]:
        return self._packages.get(package_id)

    def get_pet(self, pet_id: str) -> Optional[Pet]:
        return self._pets.get(pet_id)

    def list_staff_ids(self, institution_id: str) -> List[str]:
        with self._lock:
            return sorted(
                s.user_id for s in self._staff.values() if s.institution_id == institution_id
            )

    def get_staff_institution_id(self, user_id: str) -> Optional[str]:
        staff = self._staff.get(user_id)
        return staff.institution_id if staff else None

    def add(self, record: CatalogRecord) -> CatalogRecord:
        with self._lock:
            if isinstance(record, Institution):
                self._institutions[record.id] = record
            elif isinstance(record, ServicePackage):
                self._packages[record.id] = record
            elif isinstance(record, InstitutionStaff):
                self._staff[record.user_id] = record
            elif isinstance(record, Pet):
                self._pets[record.id] = record
            else:
                raise RepositoryException(f"Unsupported catalog record {type(record).__name__}")
        return record
