"""
Wallet models: account, append-only ledger, withdrawals and recharges.

All amounts are integer minor units (cents).
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..core.enums import TransactionStatus, WalletStatus, WithdrawalStatus
from ..database import Base


class WalletAccount(Base):
    """One wallet per user, opened lazily with a seed balance."""

    __tablename__ = "wallet_accounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(26), unique=True, nullable=False)
    user_type: Mapped[str] = mapped_column(String(20), nullable=False, default="pet_owner")
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    frozen_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_income: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_withdraw: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WalletStatus.ACTIVE.value
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_accounts_balance_non_negative"),
        CheckConstraint("frozen_balance >= 0", name="ck_wallet_accounts_frozen_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<WalletAccount(user_id={self.user_id}, balance={self.balance}, "
            f"frozen={self.frozen_balance})>"
        )


class WalletTransaction(Base):
    """Append-only ledger entry with the balance snapshot it produced."""

    __tablename__ = "wallet_transactions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    wallet_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("wallet_accounts.id"), nullable=False
    )
    # Creation order within the process; ties on created_at are common.
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    balance_before: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.SUCCESS.value
    )
    description: Mapped[Optional[str]] = mapped_column(String(255))
    related_order_id: Mapped[Optional[str]] = mapped_column(String(26))
    related_withdrawal_id: Mapped[Optional[str]] = mapped_column(String(26))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_wallet_transactions_amount_non_negative"),
        Index("idx_wallet_transactions_wallet_sequence", "wallet_id", "sequence"),
    )

    def __repr__(self) -> str:
        return (
            f"<WalletTransaction(type={self.type}, amount={self.amount}, "
            f"{self.balance_before}->{self.balance_after})>"
        )


class WithdrawalRequest(Base):
    """Withdrawal awaiting payout; its amount sits in the wallet's frozen balance."""

    __tablename__ = "withdrawal_requests"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    wallet_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("wallet_accounts.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    actual_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    account_id: Mapped[str] = mapped_column(String(26), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WithdrawalStatus.PENDING.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<WithdrawalRequest(amount={self.amount}, status={self.status})>"


class RechargeOrder(Base):
    """Top-up order; capture is simulated and always succeeds."""

    __tablename__ = "recharge_orders"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    wallet_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("wallet_accounts.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_order_id: Mapped[str] = mapped_column(String(40), nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class WithdrawalAccount(Base):
    """Payout destination registered by a wallet owner."""

    __tablename__ = "withdrawal_accounts"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    account_name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False)
    bank_name: Mapped[Optional[str]] = mapped_column(String(100))
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
