# backend/petstay/schemas/wallet.py
"""Wallet schemas. Amounts are integer minor units (cents)."""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from ..core.enums import (
    PaymentMethod,
    TransactionType,
    WalletStatus,
    WithdrawalAccountType,
    WithdrawalStatus,
)
from .base import StrictModel, StrictRequestModel


class WalletResponse(StrictModel):
    id: str
    user_id: str
    balance: int
    frozen_balance: int
    total_income: int
    total_withdraw: int
    status: WalletStatus


class TransactionResponse(StrictModel):
    id: str
    type: TransactionType
    amount: int
    fee: int
    balance_before: int
    balance_after: int
    status: str
    description: Optional[str] = None
    related_order_id: Optional[str] = None
    related_withdrawal_id: Optional[str] = None
    created_at: datetime


class RechargeCreate(StrictRequestModel):
    amount: int = Field(..., gt=0, description="Amount in cents")
    payment_method: PaymentMethod = PaymentMethod.WECHAT


class RechargeOrderResponse(StrictModel):
    id: str
    amount: int
    payment_method: PaymentMethod
    status: str
    payment_order_id: str
    paid_at: Optional[datetime] = None
    created_at: datetime
    expired_at: datetime


class WithdrawalCreate(StrictRequestModel):
    amount: int = Field(..., gt=0, description="Amount in cents, fee included")
    account_id: str = Field(..., min_length=1)


class WithdrawalResponse(StrictModel):
    id: str
    amount: int
    fee: int
    actual_amount: int
    account_id: str
    status: WithdrawalStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class WithdrawalAccountCreate(StrictRequestModel):
    type: WithdrawalAccountType
    account_name: str = Field(..., min_length=1, max_length=100)
    account_number: str = Field(..., min_length=4, max_length=64)
    bank_name: Optional[str] = Field(None, max_length=100)

    @field_validator("account_number")
    @classmethod
    def _digits_and_letters_only(cls, v: str) -> str:
        compact = v.replace(" ", "")
        if not compact.isalnum():
            raise ValueError("account_number may only contain letters and digits")
        return compact


class WithdrawalAccountResponse(StrictModel):
    id: str
    type: WithdrawalAccountType
    account_name: str
    account_number: str
    bank_name: Optional[str] = None
    is_default: bool
    created_at: datetime
