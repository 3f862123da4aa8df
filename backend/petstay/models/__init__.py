"""
Database models for the PetStay settlement core.

- Booking: a pet's stay and its settlement state
- Wallet: accounts, ledger entries, withdrawals, recharges, payout accounts
- Catalog: read-only institution, package, staff and pet records
"""

from .booking import Booking
from .catalog import Institution, InstitutionStaff, Pet, ServicePackage
from .wallet import (
    RechargeOrder,
    WalletAccount,
    WalletTransaction,
    WithdrawalAccount,
    WithdrawalRequest,
)

__all__ = [
    "Booking",
    "Institution",
    "InstitutionStaff",
    "Pet",
    "RechargeOrder",
    "ServicePackage",
    "WalletAccount",
    "WalletTransaction",
    "WithdrawalAccount",
    "WithdrawalRequest",
]
