"""Pydantic request/response DTOs for the settlement core."""

from .base import PaginatedResponse, StrictModel, StrictRequestModel, page_window
from .booking import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    CancellationPreview,
    EmergencyContact,
)
from .wallet import (
    RechargeCreate,
    RechargeOrderResponse,
    TransactionResponse,
    WalletResponse,
    WithdrawalAccountCreate,
    WithdrawalAccountResponse,
    WithdrawalCreate,
    WithdrawalResponse,
)

__all__ = [
    "BookingCancel",
    "BookingCreate",
    "BookingResponse",
    "CancellationPreview",
    "EmergencyContact",
    "PaginatedResponse",
    "RechargeCreate",
    "RechargeOrderResponse",
    "StrictModel",
    "StrictRequestModel",
    "TransactionResponse",
    "WalletResponse",
    "WithdrawalAccountCreate",
    "WithdrawalAccountResponse",
    "WithdrawalCreate",
    "WithdrawalResponse",
    "page_window",
]
