# backend/petstay/repositories/wallet_repository.py
"""
Wallet Repository for the PetStay settlement core

Handles wallet accounts, the append-only transaction ledger, withdrawal
requests, recharge orders and payout accounts. Wallet rows are versioned;
a save that loses an optimistic race raises StaleRecordException.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import TransactionType
from ..core.exceptions import RepositoryException
from ..models.wallet import (
    RechargeOrder,
    WalletAccount,
    WalletTransaction,
    WithdrawalAccount,
    WithdrawalRequest,
)
from .base_repository import BaseRepository, IRepository

logger = logging.getLogger(__name__)


class IWalletRepository(IRepository[WalletAccount]):
    @abstractmethod
    def get_by_user_id(self, user_id: str) -> Optional[WalletAccount]: ...

    @abstractmethod
    def get_for_update(self, user_id: str) -> Optional[WalletAccount]:
        """Fetch a user's wallet for a read-modify-write mutation."""

    # Ledger

    @abstractmethod
    def append_transaction(self, txn: WalletTransaction) -> WalletTransaction:
        """Append a ledger entry, assigning its per-wallet sequence number."""

    @abstractmethod
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
        """Newest first; ``start`` inclusive, ``end`` exclusive."""

    @abstractmethod
    def ledger(self, wallet_id: str) -> List[WalletTransaction]:
        """Every entry of a wallet in the order it was written."""

    # Withdrawals

    @abstractmethod
    def add_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest: ...

    @abstractmethod
    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]: ...

    @abstractmethod
    def save_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest: ...

    @abstractmethod
    def list_withdrawals(
        self, wallet_id: str, *, skip: int = 0, limit: int = 20
    ) -> Tuple[List[WithdrawalRequest], int]: ...

    # Recharges

    @abstractmethod
    def add_recharge_order(self, order: RechargeOrder) -> RechargeOrder: ...

    @abstractmethod
    def get_recharge_order(self, order_id: str) -> Optional[RechargeOrder]: ...

    # Payout accounts

    @abstractmethod
    def add_withdrawal_account(self, account: WithdrawalAccount) -> WithdrawalAccount: ...

    @abstractmethod
    def get_withdrawal_account(self, account_id: str) -> Optional[WithdrawalAccount]: ...

    @abstractmethod
    def list_withdrawal_accounts(self, user_id: str) -> List[WithdrawalAccount]:
        """Default account first, then oldest first."""

    @abstractmethod
    def delete_withdrawal_account(self, account: WithdrawalAccount) -> None: ...

    @abstractmethod
    def set_default_withdrawal_account(self, user_id: str, account_id: str) -> None:
        """Make ``account_id`` the only default account of ``user_id``."""


class WalletRepository(BaseRepository[WalletAccount], IWalletRepository):
    """SQLAlchemy-backed wallet storage."""

    def __init__(self, db: Session):
        super().__init__(db, WalletAccount)

    def get_by_user_id(self, user_id: str) -> Optional[WalletAccount]:
        return self._first(select(WalletAccount).where(WalletAccount.user_id == user_id))

    def get_for_update(self, user_id: str) -> Optional[WalletAccount]:
        stmt = select(WalletAccount).where(WalletAccount.user_id == user_id).with_for_update()
        return self._first(stmt)

    def append_transaction(self, txn: WalletTransaction) -> WalletTransaction:
        last = self._scalar(
            select(func.coalesce(func.max(WalletTransaction.sequence), 0)).where(
                WalletTransaction.wallet_id == txn.wallet_id
            )
        )
        txn.sequence = int(last or 0) + 1
        try:
            self.db.add(txn)
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to append ledger entry: %s", exc)
            raise RepositoryException(f"Failed to append transaction: {exc}") from exc
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
        stmt = select(WalletTransaction).where(WalletTransaction.wallet_id == wallet_id)
        if txn_type is not None:
            stmt = stmt.where(WalletTransaction.type == TransactionType(txn_type).value)
        if start is not None:
            stmt = stmt.where(WalletTransaction.created_at >= start)
        if end is not None:
            stmt = stmt.where(WalletTransaction.created_at < end)
        stmt = stmt.order_by(WalletTransaction.sequence.desc())
        return self._paginate(stmt, skip, limit)  # type: ignore[return-value]

    def ledger(self, wallet_id: str) -> List[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.sequence.asc())
        )
        return self._all(stmt)  # type: ignore[return-value]

    def add_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        self.db.add(withdrawal)
        self.db.flush()
        return withdrawal

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        return self.db.get(WithdrawalRequest, withdrawal_id)

    def save_withdrawal(self, withdrawal: WithdrawalRequest) -> WithdrawalRequest:
        self.db.flush()
        return withdrawal

    def list_withdrawals(
        self, wallet_id: str, *, skip: int = 0, limit: int = 20
    ) -> Tuple[List[WithdrawalRequest], int]:
        stmt = (
            select(WithdrawalRequest)
            .where(WithdrawalRequest.wallet_id == wallet_id)
            .order_by(WithdrawalRequest.created_at.desc(), WithdrawalRequest.id.desc())
        )
        return self._paginate(stmt, skip, limit)  # type: ignore[return-value]

    def add_recharge_order(self, order: RechargeOrder) -> RechargeOrder:
        self.db.add(order)
        self.db.flush()
        return order

    def get_recharge_order(self, order_id: str) -> Optional[RechargeOrder]:
        return self.db.get(RechargeOrder, order_id)

    def add_withdrawal_account(self, account: WithdrawalAccount) -> WithdrawalAccount:
        self.db.add(account)
        self.db.flush()
        return account

    def get_withdrawal_account(self, account_id: str) -> Optional[WithdrawalAccount]:
        return self.db.get(WithdrawalAccount, account_id)

    def list_withdrawal_accounts(self, user_id: str) -> List[WithdrawalAccount]:
        stmt = (
            select(WithdrawalAccount)
            .where(WithdrawalAccount.user_id == user_id)
            .order_by(
                WithdrawalAccount.is_default.desc(),
                WithdrawalAccount.created_at.asc(),
                WithdrawalAccount.id.asc(),
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def delete_withdrawal_account(self, account: WithdrawalAccount) -> None:
        self.db.delete(account)
        self.db.flush()

    def set_default_withdrawal_account(self, user_id: str, account_id: str) -> None:
        for account in self.list_withdrawal_accounts(user_id):
            account.is_default = account.id == account_id
        self.db.flush()
