"""Validation and serialization tests for booking and wallet DTOs."""

from datetime import date
from decimal import Decimal

from pydantic import ValidationError
import pytest

from petstay.core.enums import TransactionType
from petstay.schemas import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    PaginatedResponse,
    RechargeCreate,
    RechargeOrderResponse,
    TransactionResponse,
    WalletResponse,
    WithdrawalAccountCreate,
    WithdrawalAccountResponse,
    WithdrawalCreate,
    page_window,
)
from petstay.services.wallet_service import WalletService

from tests.factories.booking_builders import booking_request

BASE = {
    "institutionId": "inst-1",
    "servicePackageId": "pkg-1",
    "petId": "pet-1",
    "startDate": "2024-01-01",
    "endDate": "2024-01-10",
}


class TestBookingCreate:
    def test_accepts_camel_case(self):
        request = BookingCreate.model_validate(BASE)
        assert request.start_date == date(2024, 1, 1)
        assert request.service_package_id == "pkg-1"

    def test_rejects_datetime_strings(self):
        with pytest.raises(ValidationError):
            BookingCreate.model_validate({**BASE, "startDate": "2024-01-01T10:00:00"})

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            BookingCreate.model_validate({**BASE, "totalPrice": "1.00"})

    def test_blank_requirements_become_none(self):
        request = BookingCreate.model_validate({**BASE, "specialRequirements": "   "})
        assert request.special_requirements is None

    def test_cancel_reason_required(self):
        with pytest.raises(ValidationError):
            BookingCancel(reason="")


class TestResponses:
    def test_booking_response_from_record(self, booking_service):
        booking = booking_service.create("owner-1", booking_request())

        payload = BookingResponse.model_validate(booking).model_dump(by_alias=True)

        assert payload["orderNumber"] == booking.order_number
        assert payload["totalPrice"] == Decimal("95.00")
        assert payload["paymentStatus"] == "pending"

    def test_wallet_and_transaction_responses(self, wallet_service: WalletService):
        txn = wallet_service.credit("owner-1", 100, "bonus")

        wallet = WalletResponse.model_validate(wallet_service.get_wallet("owner-1"))
        entry = TransactionResponse.model_validate(txn)

        assert wallet.balance == 10100
        assert entry.type is TransactionType.INCOME
        assert entry.balance_after == 10100

    def test_recharge_order_and_account_responses(self, wallet_service: WalletService):
        order = RechargeOrderResponse.model_validate(
            wallet_service.record_recharge("owner-1", 500)
        ).model_dump(by_alias=True)
        account = WithdrawalAccountResponse.model_validate(
            wallet_service.add_withdrawal_account(
                "owner-1",
                WithdrawalAccountCreate(
                    type="bank", account_name="Li Lei", account_number="6222021234567890"
                ),
            )
        )

        assert order["paymentOrderId"].startswith("PAY")
        assert order["status"] == "paid"
        assert account.account_number == "622****7890"
        assert account.is_default is True

    def test_recharge_and_withdrawal_requests(self):
        assert RechargeCreate(amount=500).payment_method == "wechat"
        with pytest.raises(ValidationError):
            RechargeCreate(amount=0)
        assert WithdrawalCreate.model_validate({"amount": 5000, "accountId": "a-1"}).amount == 5000


class TestPagination:
    @pytest.mark.parametrize(
        "page,per_page,window",
        [(1, 20, (0, 20)), (3, 10, (20, 10)), (0, 20, (0, 20)), (1, 500, (0, 100)), (2, 0, (1, 1))],
    )
    def test_page_window(self, page, per_page, window):
        assert page_window(page, per_page) == window

    def test_build_flags(self):
        page = PaginatedResponse[int].build([1, 2], total=5, page=2, per_page=2)
        assert page.has_next is True
        assert page.has_prev is True
        assert page.model_dump(by_alias=True)["perPage"] == 2

    def test_build_last_page(self):
        page = PaginatedResponse[int].build([5], total=5, page=3, per_page=2)
        assert page.has_next is False
