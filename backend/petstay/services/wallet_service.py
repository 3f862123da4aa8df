"""
Wallet ledger for pet owners and institution staff.

Balances are integer minor units. Every balance-changing call runs under the
wallet's entity lock and appends exactly one ledger entry whose
before/after snapshot matches the wallet at that instant, so replaying the
ledger in sequence order always reproduces the current balance.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
import logging
from typing import Callable, List, Optional

import pytz
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.entity_lock import KeyedLockRegistry, wallet_lock_key
from ..core.enums import (
    PaymentMethod,
    TransactionStatus,
    TransactionType,
    WalletStatus,
    WithdrawalStatus,
)
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    InsufficientFundsException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..models.wallet import (
    RechargeOrder,
    WalletAccount,
    WalletTransaction,
    WithdrawalAccount,
    WithdrawalRequest,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.wallet_repository import IWalletRepository
from ..schemas.base import PaginatedResponse, page_window
from ..schemas.wallet import (
    TransactionResponse,
    WithdrawalAccountCreate,
    WithdrawalResponse,
)
from .base import BaseService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def mask_account_number(number: str) -> str:
    """Keep the first 3 and last 4 characters of numbers at least 8 long."""
    if len(number) < 8:
        return number
    return f"{number[:3]}****{number[-4:]}"


def _require_cents(amount: int, field_name: str = "amount", *, allow_zero: bool = False) -> int:
    floor = 0 if allow_zero else 1
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < floor:
        kind = "non-negative" if allow_zero else "positive"
        raise ValidationException(
            f"{field_name} must be a {kind} number of cents",
            code="INVALID_AMOUNT",
            details={field_name: amount},
        )
    return amount


class WalletService(BaseService):
    """Balance mutations, withdrawals, recharges and payout accounts."""

    def __init__(
        self,
        db: Optional[Session] = None,
        *,
        locks: Optional[KeyedLockRegistry] = None,
        wallet_repository: Optional[IWalletRepository] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, locks)
        self.wallet_repository = wallet_repository or RepositoryFactory.create_wallet_repository(db)
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    def withdrawal_fee(self, amount: int) -> int:
        proportional = amount * settings.withdrawal_fee_rate_bps // 10000
        return max(proportional, settings.withdrawal_min_fee_cents)

    # ------------------------------------------------------------------
    # Internals; callers hold the wallet lock and an open transaction.
    # ------------------------------------------------------------------

    def _open_wallet(self, user_id: str) -> WalletAccount:
        wallet = self.wallet_repository.get_for_update(user_id)
        if wallet is not None:
            return wallet
        wallet = WalletAccount(
            id=generate_ulid(),
            user_id=user_id,
            user_type="pet_owner",
            balance=settings.wallet_seed_balance_cents,
            frozen_balance=0,
            total_income=0,
            total_withdraw=0,
            status=WalletStatus.ACTIVE.value,
            created_at=self.now(),
        )
        try:
            wallet = self.wallet_repository.add(wallet)
        except RepositoryException as exc:
            raise ConflictException(
                "Wallet was opened concurrently, please retry", code="WALLET_CONFLICT"
            ) from exc
        self.logger.info(
            "Opened wallet %s for user %s with seed balance %s",
            wallet.id,
            user_id,
            wallet.balance,
        )
        return wallet

    def _record(
        self,
        wallet: WalletAccount,
        txn_type: TransactionType,
        amount: int,
        balance_before: int,
        *,
        fee: int = 0,
        description: Optional[str] = None,
        related_order_id: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
    ) -> WalletTransaction:
        now = self.now()
        wallet.updated_at = now
        self.wallet_repository.save(wallet)
        txn = self.wallet_repository.append_transaction(
            WalletTransaction(
                id=generate_ulid(),
                wallet_id=wallet.id,
                type=txn_type.value,
                amount=amount,
                fee=fee,
                balance_before=balance_before,
                balance_after=wallet.balance,
                status=TransactionStatus.SUCCESS.value,
                description=description,
                related_order_id=related_order_id,
                related_withdrawal_id=related_withdrawal_id,
                created_at=now,
            )
        )
        prometheus_metrics.record_ledger_entry(txn_type.value)
        return txn

    def _freeze(
        self,
        wallet: WalletAccount,
        amount: int,
        *,
        fee: int = 0,
        description: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
    ) -> WalletTransaction:
        if wallet.balance < amount:
            raise InsufficientFundsException(amount, wallet.balance)
        before = wallet.balance
        wallet.balance = before - amount
        wallet.frozen_balance += amount
        return self._record(
            wallet,
            TransactionType.WITHDRAWAL,
            amount,
            before,
            fee=fee,
            description=description,
            related_withdrawal_id=related_withdrawal_id,
        )

    def _unfreeze(
        self,
        wallet: WalletAccount,
        amount: int,
        *,
        description: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
    ) -> WalletTransaction:
        if wallet.frozen_balance < amount:
            raise BusinessRuleException(
                "Cannot release more than the frozen balance",
                code="INSUFFICIENT_FROZEN_BALANCE",
                details={"requested_cents": amount, "frozen_cents": wallet.frozen_balance},
            )
        before = wallet.balance
        wallet.frozen_balance -= amount
        wallet.balance = before + amount
        return self._record(
            wallet,
            TransactionType.WITHDRAWAL_CANCEL,
            amount,
            before,
            description=description,
            related_withdrawal_id=related_withdrawal_id,
        )

    # ------------------------------------------------------------------
    # Balance mutations
    # ------------------------------------------------------------------

    @BaseService.measure_operation("wallet.get_wallet")
    def get_wallet(self, user_id: str) -> WalletAccount:
        """Return the user's wallet, opening it with the seed balance on first use."""
        with self.locks.hold(wallet_lock_key(user_id)):
            existing = self.wallet_repository.get_by_user_id(user_id)
            if existing is not None:
                return existing
            with self.transaction():
                return self._open_wallet(user_id)

    def get_balance(self, user_id: str) -> int:
        return self.get_wallet(user_id).balance

    @BaseService.measure_operation("wallet.credit")
    def credit(
        self,
        user_id: str,
        amount: int,
        description: Optional[str] = None,
        related_id: Optional[str] = None,
    ) -> WalletTransaction:
        """Add income (refunds, payouts) to the spendable balance."""
        _require_cents(amount, allow_zero=True)
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            before = wallet.balance
            wallet.balance = before + amount
            wallet.total_income += amount
            txn = self._record(
                wallet,
                TransactionType.INCOME,
                amount,
                before,
                description=description,
                related_order_id=related_id,
            )
        self.logger.info("Credited %s to wallet of %s (%s)", amount, user_id, description)
        return txn

    @BaseService.measure_operation("wallet.debit")
    def debit(
        self,
        user_id: str,
        amount: int,
        description: Optional[str] = None,
        related_id: Optional[str] = None,
    ) -> bool:
        """
        Take a payment from the spendable balance.

        Returns False, leaving the wallet and ledger untouched, when the
        balance does not cover ``amount``.
        """
        _require_cents(amount, allow_zero=True)
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            if wallet.balance < amount:
                self.logger.info(
                    "Debit of %s refused for %s: balance %s", amount, user_id, wallet.balance
                )
                return False
            before = wallet.balance
            wallet.balance = before - amount
            self._record(
                wallet,
                TransactionType.PAYMENT,
                amount,
                before,
                description=description,
                related_order_id=related_id,
            )
        return True

    @BaseService.measure_operation("wallet.freeze")
    def freeze(
        self,
        user_id: str,
        amount: int,
        description: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
    ) -> WalletTransaction:
        """Move ``amount`` from balance to frozen balance."""
        _require_cents(amount)
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            return self._freeze(
                wallet,
                amount,
                description=description,
                related_withdrawal_id=related_withdrawal_id,
            )

    @BaseService.measure_operation("wallet.unfreeze")
    def unfreeze(
        self,
        user_id: str,
        amount: int,
        description: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
    ) -> WalletTransaction:
        """Move ``amount`` from frozen balance back to balance."""
        _require_cents(amount)
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            return self._unfreeze(
                wallet,
                amount,
                description=description,
                related_withdrawal_id=related_withdrawal_id,
            )

    # ------------------------------------------------------------------
    # Recharges
    # ------------------------------------------------------------------

    @BaseService.measure_operation("wallet.record_recharge")
    def record_recharge(
        self,
        user_id: str,
        amount: int,
        method: PaymentMethod = PaymentMethod.ALIPAY,
    ) -> RechargeOrder:
        """Top up the balance; the external capture always succeeds."""
        _require_cents(amount)
        method = PaymentMethod(method)
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            now = self.now()
            order = self.wallet_repository.add_recharge_order(
                RechargeOrder(
                    id=generate_ulid(),
                    wallet_id=wallet.id,
                    amount=amount,
                    payment_method=method.value,
                    status="paid",
                    payment_order_id=f"PAY{int(now.timestamp() * 1000)}",
                    paid_at=now,
                    created_at=now,
                    expired_at=now + timedelta(minutes=settings.recharge_order_ttl_minutes),
                )
            )
            before = wallet.balance
            wallet.balance = before + amount
            self._record(
                wallet,
                TransactionType.RECHARGE,
                amount,
                before,
                description=f"Recharge - {method.value}",
                related_order_id=order.id,
            )
        return order

    def get_recharge_status(self, user_id: str, order_id: str) -> RechargeOrder:
        wallet = self.get_wallet(user_id)
        order = self.wallet_repository.get_recharge_order(order_id)
        if order is None or order.wallet_id != wallet.id:
            raise NotFoundException("Recharge order not found", code="RECHARGE_NOT_FOUND")
        return order

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    @BaseService.measure_operation("wallet.create_withdrawal")
    def create_withdrawal(self, user_id: str, amount: int, account_id: str) -> WithdrawalRequest:
        """
        Request a payout of ``amount`` (fee included) to one of the user's accounts.

        The whole amount is frozen until the payout is processed or cancelled.
        """
        _require_cents(amount)
        account = self.wallet_repository.get_withdrawal_account(account_id)
        if account is None:
            raise NotFoundException("Withdrawal account not found", code="ACCOUNT_NOT_FOUND")
        if account.user_id != user_id:
            raise ForbiddenException(
                "Withdrawal account belongs to another user", code="ACCOUNT_NOT_OWNED"
            )
        fee = self.withdrawal_fee(amount)
        if amount <= fee:
            raise ValidationException(
                "Withdrawal amount must exceed the fee",
                code="WITHDRAWAL_BELOW_FEE",
                details={"amount_cents": amount, "fee_cents": fee},
            )

        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            if wallet.balance < amount:
                raise InsufficientFundsException(amount, wallet.balance)
            now = self.now()
            withdrawal = self.wallet_repository.add_withdrawal(
                WithdrawalRequest(
                    id=generate_ulid(),
                    wallet_id=wallet.id,
                    amount=amount,
                    fee=fee,
                    actual_amount=amount - fee,
                    account_id=account.id,
                    status=WithdrawalStatus.PENDING.value,
                    created_at=now,
                )
            )
            self._freeze(
                wallet,
                amount,
                fee=fee,
                description="Withdrawal request",
                related_withdrawal_id=withdrawal.id,
            )
        self.logger.info("Withdrawal %s of %s requested by %s", withdrawal.id, amount, user_id)
        return withdrawal

    @BaseService.measure_operation("wallet.cancel_withdrawal")
    def cancel_withdrawal(self, user_id: str, withdrawal_id: str) -> WithdrawalRequest:
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            wallet = self._open_wallet(user_id)
            withdrawal = self.wallet_repository.get_withdrawal(withdrawal_id)
            if withdrawal is None or withdrawal.wallet_id != wallet.id:
                raise NotFoundException("Withdrawal not found", code="WITHDRAWAL_NOT_FOUND")
            if withdrawal.status != WithdrawalStatus.PENDING.value:
                raise BusinessRuleException(
                    f"Cannot cancel withdrawal - current status: {withdrawal.status}",
                    code="INVALID_TRANSITION",
                    details={"current_status": withdrawal.status},
                )
            self._unfreeze(
                wallet,
                withdrawal.amount,
                description="Withdrawal cancelled",
                related_withdrawal_id=withdrawal.id,
            )
            withdrawal.status = WithdrawalStatus.CANCELLED.value
            withdrawal.updated_at = self.now()
            self.wallet_repository.save_withdrawal(withdrawal)
        return withdrawal

    def list_withdrawals(
        self, user_id: str, page: int = 1, page_size: int = 20
    ) -> PaginatedResponse[WithdrawalResponse]:
        wallet = self.get_wallet(user_id)
        skip, limit = page_window(page, page_size)
        rows, total = self.wallet_repository.list_withdrawals(wallet.id, skip=skip, limit=limit)
        return PaginatedResponse[WithdrawalResponse].build(
            [WithdrawalResponse.model_validate(w) for w in rows], total, skip // limit + 1, limit
        )

    # ------------------------------------------------------------------
    # Ledger reads
    # ------------------------------------------------------------------

    def _day_start(self, day: date) -> datetime:
        return settings.booking_tz.localize(datetime.combine(day, time.min))

    def list_transactions(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        txn_type: Optional[TransactionType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PaginatedResponse[TransactionResponse]:
        """Newest first; ``start_date``/``end_date`` are inclusive booking-local days."""
        if start_date and end_date and end_date < start_date:
            raise ValidationException(
                "End date must not be before start date", code="INVALID_DATE_RANGE"
            )
        wallet = self.get_wallet(user_id)
        skip, limit = page_window(page, page_size)
        rows, total = self.wallet_repository.list_transactions(
            wallet.id,
            txn_type=TransactionType(txn_type) if txn_type else None,
            start=self._day_start(start_date) if start_date else None,
            end=self._day_start(end_date + timedelta(days=1)) if end_date else None,
            skip=skip,
            limit=limit,
        )
        return PaginatedResponse[TransactionResponse].build(
            [TransactionResponse.model_validate(t) for t in rows], total, skip // limit + 1, limit
        )

    def ledger(self, user_id: str) -> List[WalletTransaction]:
        """Every entry of the user's wallet in write order."""
        with self.locks.hold(wallet_lock_key(user_id)):
            return self.wallet_repository.ledger(self.get_wallet(user_id).id)

    # ------------------------------------------------------------------
    # Payout accounts
    # ------------------------------------------------------------------

    def list_withdrawal_accounts(self, user_id: str) -> List[WithdrawalAccount]:
        return self.wallet_repository.list_withdrawal_accounts(user_id)

    @BaseService.measure_operation("wallet.add_withdrawal_account")
    def add_withdrawal_account(
        self, user_id: str, request: WithdrawalAccountCreate
    ) -> WithdrawalAccount:
        """Register a payout account; the user's first account becomes the default."""
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            is_first = not self.wallet_repository.list_withdrawal_accounts(user_id)
            account = self.wallet_repository.add_withdrawal_account(
                WithdrawalAccount(
                    id=generate_ulid(),
                    user_id=user_id,
                    type=request.type.value,
                    account_name=request.account_name,
                    account_number=mask_account_number(request.account_number),
                    bank_name=request.bank_name,
                    is_default=is_first,
                    created_at=self.now(),
                )
            )
        return account

    def _owned_account(self, user_id: str, account_id: str) -> WithdrawalAccount:
        account = self.wallet_repository.get_withdrawal_account(account_id)
        if account is None or account.user_id != user_id:
            raise NotFoundException("Withdrawal account not found", code="ACCOUNT_NOT_FOUND")
        return account

    @BaseService.measure_operation("wallet.delete_withdrawal_account")
    def delete_withdrawal_account(self, user_id: str, account_id: str) -> None:
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            account = self._owned_account(user_id, account_id)
            was_default = account.is_default
            self.wallet_repository.delete_withdrawal_account(account)
            if was_default:
                remaining = self.wallet_repository.list_withdrawal_accounts(user_id)
                if remaining:
                    self.wallet_repository.set_default_withdrawal_account(user_id, remaining[0].id)

    @BaseService.measure_operation("wallet.set_default_withdrawal_account")
    def set_default_withdrawal_account(self, user_id: str, account_id: str) -> WithdrawalAccount:
        with self.locks.hold(wallet_lock_key(user_id)), self.transaction():
            account = self._owned_account(user_id, account_id)
            self.wallet_repository.set_default_withdrawal_account(user_id, account_id)
        return account
