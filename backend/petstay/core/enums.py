# backend/petstay/core/enums.py
"""
Core enums for the PetStay settlement core.

Values are the lowercase strings persisted on records and exposed to
callers, so they can be compared directly against stored columns.
"""

from enum import Enum


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELLED)


class PaymentStatus(str, Enum):
    """Payment axis of a booking; only ever moves forward."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial_refund"


class PaymentMethod(str, Enum):
    WALLET = "wallet"
    WECHAT = "wechat"
    ALIPAY = "alipay"
    CARD = "card"


class TransactionType(str, Enum):
    """Types of wallet ledger entries."""

    RECHARGE = "recharge"
    INCOME = "income"
    PAYMENT = "payment"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_CANCEL = "withdrawal_cancel"

    @property
    def sign(self) -> int:
        """Direction the entry moves the spendable balance."""
        if self in (TransactionType.PAYMENT, TransactionType.WITHDRAWAL):
            return -1
        return 1


class TransactionStatus(str, Enum):
    SUCCESS = "success"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REJECTED = "rejected"


class WalletStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class WithdrawalAccountType(str, Enum):
    ALIPAY = "alipay"
    WECHAT = "wechat"
    BANK = "bank"


class RefundTier(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class BookingParty(str, Enum):
    """Which side of a booking an actor is acting for."""

    OWNER = "owner"
    INSTITUTION = "institution"


class NotificationType(str, Enum):
    BOOKING = "booking"
    WALLET = "wallet"
