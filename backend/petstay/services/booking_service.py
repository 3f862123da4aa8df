# backend/petstay/services/booking_service.py
"""
Booking Service for the PetStay settlement core

Drives a booking through its lifecycle:
    pending -> confirmed -> in_progress -> completed
with cancelled reachable from every non-terminal status. Payment status is
an independent axis (pending -> paid -> refunded | partial_refund) that only
moves forward.

Every transition runs under the booking's entity lock inside one unit of
work. Wallet side effects (payment, refund, payout) take the wallet lock
while the booking lock is held, never the other way round. All checks run
before the first mutation, and the only fallible wallet step (the payment
debit) runs before any booking field changes, so a rejected transition
leaves nothing behind.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import logging
from typing import Callable, Optional

import pytz
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.entity_lock import KeyedLockRegistry, booking_lock_key
from ..core.enums import (
    BookingParty,
    BookingStatus,
    NotificationType,
    PaymentMethod,
    PaymentStatus,
    RefundTier,
)
from ..core.exceptions import (
    ForbiddenException,
    InsufficientFundsException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.money import round_money, to_minor_units
from ..core.ulid_helper import generate_ulid
from ..models.booking import Booking
from ..repositories.booking_repository import IBookingRepository
from ..repositories.catalog_repository import ICatalogRepository
from ..repositories.factory import RepositoryFactory
from ..schemas.base import PaginatedResponse, page_window
from ..schemas.booking import BookingCreate, BookingResponse, CancellationPreview
from .base import BaseService
from .notification_service import NotificationService, NotificationSink
from .order_number_service import OrderNumberGenerator
from .pricing_engine import PricingEngine
from .refund_policy_engine import RefundPolicyEngine
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def _booking_link(booking: Booking) -> str:
    return f"/order/{booking.id}"


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Orchestrates pricing at creation, wallet payment, staff transitions,
    refunds on cancellation and the payout at check-out.
    """

    def __init__(
        self,
        db: Optional[Session] = None,
        *,
        locks: Optional[KeyedLockRegistry] = None,
        booking_repository: Optional[IBookingRepository] = None,
        catalog_repository: Optional[ICatalogRepository] = None,
        wallet_service: Optional[WalletService] = None,
        notification_service: Optional[NotificationSink] = None,
        order_numbers: Optional[OrderNumberGenerator] = None,
        pricing_engine: Optional[PricingEngine] = None,
        refund_engine: Optional[RefundPolicyEngine] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(db, locks)
        self._clock = clock or _utcnow
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.catalog_repository = (
            catalog_repository or RepositoryFactory.create_catalog_repository(db)
        )
        self.wallet_service = wallet_service or WalletService(
            db, locks=self.locks, clock=self._clock
        )
        self.notification_service = notification_service or NotificationService()
        self.order_numbers = order_numbers or OrderNumberGenerator(
            exists=self.booking_repository.order_number_exists
        )
        self.pricing_engine = pricing_engine or PricingEngine()
        self.refund_engine = refund_engine or RefundPolicyEngine()

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _load(self, booking_id: str, *, for_update: bool = False) -> Booking:
        if for_update:
            booking = self.booking_repository.get_for_update(booking_id)
        else:
            booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    @staticmethod
    def _require_owner(booking: Booking, user_id: str) -> None:
        if booking.user_id != user_id:
            raise ForbiddenException(
                "Only the booking owner can perform this action", code="NOT_BOOKING_OWNER"
            )

    def _require_staff(self, booking: Booking, staff_id: str) -> None:
        if self.catalog_repository.get_staff_institution_id(staff_id) != booking.institution_id:
            raise ForbiddenException(
                "Only staff of the booked institution can perform this action",
                code="NOT_INSTITUTION_STAFF",
            )

    def _pet_name(self, booking: Booking) -> str:
        pet = self.catalog_repository.get_pet(booking.pet_id)
        return pet.name if pet else "Your pet"

    def _notify(self, user_id: str, title: str, content: str, link: str) -> None:
        try:
            self.notification_service.notify(user_id, NotificationType.BOOKING, title, content, link)
        except Exception as e:
            logger.error(f"Failed to send booking notification to {user_id}: {str(e)}")

    def _touch(self, booking: Booking) -> None:
        booking.updated_at = self.now()
        self.booking_repository.save(booking)

    def _refund_to_owner(self, booking: Booking, amount: Decimal) -> None:
        cents = to_minor_units(amount)
        if cents > 0:
            self.wallet_service.credit(
                booking.user_id,
                cents,
                f"Booking refund - {booking.order_number}",
                booking.id,
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.create")
    def create(self, user_id: str, request: BookingCreate) -> Booking:
        """Price and persist a new pending booking, then notify both parties."""
        package = self.catalog_repository.get_package(request.service_package_id)
        if package is None:
            raise NotFoundException("Service package not found", code="PACKAGE_NOT_FOUND")
        if package.institution_id != request.institution_id:
            raise ValidationException(
                "Service package does not belong to the requested institution",
                code="PACKAGE_INSTITUTION_MISMATCH",
                details={
                    "service_package_id": package.id,
                    "institution_id": request.institution_id,
                },
            )
        if package.is_active is False:
            raise ValidationException(
                "Service package is not available", code="PACKAGE_UNAVAILABLE"
            )

        quote = self.pricing_engine.quote(
            package.price_per_day, request.start_date, request.end_date
        )

        with self.transaction():
            now = self.now()
            booking = self.booking_repository.add(
                Booking(
                    id=generate_ulid(),
                    order_number=self.order_numbers.generate(
                        on_date=now.astimezone(settings.booking_tz).date()
                    ),
                    user_id=user_id,
                    institution_id=request.institution_id,
                    service_package_id=package.id,
                    pet_id=request.pet_id,
                    status=BookingStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    start_date=request.start_date,
                    end_date=request.end_date,
                    total_days=quote.total_days,
                    base_price=quote.subtotal,
                    discount=quote.discount,
                    total_price=quote.total_price,
                    special_requirements=request.special_requirements,
                    emergency_contact=(
                        request.emergency_contact.model_dump()
                        if request.emergency_contact
                        else None
                    ),
                    user_deleted=False,
                    institution_deleted=False,
                    created_at=now,
                    updated_at=now,
                )
            )

        self.log_operation(
            "booking.create",
            booking_id=booking.id,
            order_number=booking.order_number,
            total_price=str(booking.total_price),
        )

        institution = self.catalog_repository.get_institution(booking.institution_id)
        institution_name = institution.name if institution else "the institution"
        self._notify(
            user_id,
            "Booking created",
            f"Your booking {booking.order_number} has been created at {institution_name}",
            _booking_link(booking),
        )
        for staff_id in self.catalog_repository.list_staff_ids(booking.institution_id):
            self._notify(
                staff_id,
                "New booking",
                f"New booking {booking.order_number} received, please review it",
                f"/institution/orders/{booking.id}",
            )
        return booking

    # ------------------------------------------------------------------
    # Owner transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.pay")
    def pay(
        self,
        booking_id: str,
        user_id: str,
        method: PaymentMethod = PaymentMethod.WALLET,
    ) -> Booking:
        """
        Settle a pending payment.

        Wallet payments debit the full total first; if the wallet cannot cover
        it the booking is left exactly as it was.
        """
        method = PaymentMethod(method)
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_owner(booking, user_id)
            if booking.payment_status != PaymentStatus.PENDING.value:
                raise InvalidTransitionException(
                    "pay",
                    booking.payment_status,
                    details={"status": booking.status},
                )
            if booking.booking_status.is_terminal:
                raise InvalidTransitionException("pay", booking.status)

            if method == PaymentMethod.WALLET:
                cents = to_minor_units(booking.total_price)
                if cents > 0 and not self.wallet_service.debit(
                    user_id,
                    cents,
                    f"Booking payment - {booking.order_number}",
                    booking.id,
                ):
                    raise InsufficientFundsException(
                        cents, self.wallet_service.get_balance(user_id)
                    )

            booking.payment_status = PaymentStatus.PAID.value
            booking.payment_method = method.value
            booking.paid_at = self.now()
            self._touch(booking)

        self.log_operation("booking.pay", booking_id=booking.id, method=method.value)
        return booking

    @BaseService.measure_operation("booking.cancel")
    def cancel(
        self,
        booking_id: str,
        user_id: str,
        reason: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> Booking:
        """
        Owner cancellation. Paid bookings are refunded per the refund ladder
        evaluated at ``at`` (defaults to now).
        """
        cancelled_at = at or self.now()
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_owner(booking, user_id)
            eligibility = self.refund_engine.can_cancel(
                booking.booking_status, booking.start_date, cancelled_at
            )
            if not eligibility.can_cancel:
                raise InvalidTransitionException(
                    "cancel", booking.status, details={"reason": eligibility.reason}
                )

            refund_amount = Decimal("0.00")
            if booking.is_paid:
                quote = self.refund_engine.evaluate(
                    booking.total_price, booking.start_date, booking.end_date, cancelled_at
                )
                refund_amount = quote.refund_amount
                self._refund_to_owner(booking, refund_amount)
                booking.refund_amount = refund_amount
                booking.refunded_at = self.now()
                booking.payment_status = (
                    PaymentStatus.REFUNDED.value
                    if quote.tier == RefundTier.FULL
                    else PaymentStatus.PARTIAL_REFUND.value
                )

            booking.status = BookingStatus.CANCELLED.value
            booking.cancel_reason = reason
            self._touch(booking)

        self.log_operation(
            "booking.cancel", booking_id=booking.id, refund_amount=str(refund_amount)
        )
        content = f"Your booking {booking.order_number} has been cancelled"
        if refund_amount > 0:
            content += f", refund of {refund_amount} returned to your wallet"
        self._notify(booking.user_id, "Booking cancelled", content, _booking_link(booking))
        return booking

    def preview_cancellation(
        self, booking_id: str, user_id: str, at: Optional[datetime] = None
    ) -> CancellationPreview:
        """What cancelling at ``at`` would refund, without changing anything."""
        cancelled_at = at or self.now()
        booking = self.get_booking(booking_id)
        self._require_owner(booking, user_id)
        eligibility = self.refund_engine.can_cancel(
            booking.booking_status, booking.start_date, cancelled_at
        )
        hours = self.refund_engine.hours_until_start(booking.start_date, cancelled_at)
        if not eligibility.can_cancel or not booking.is_paid:
            return CancellationPreview(
                booking_id=booking.id,
                can_cancel=eligibility.can_cancel,
                reason=eligibility.reason,
                hours_until_start=hours,
            )
        quote = self.refund_engine.evaluate(
            booking.total_price, booking.start_date, booking.end_date, cancelled_at
        )
        return CancellationPreview(
            booking_id=booking.id,
            can_cancel=True,
            reason=quote.reason,
            hours_until_start=quote.hours_until_start,
            tier=quote.tier,
            refund_amount=quote.refund_amount,
            cancellation_fee=quote.cancellation_fee,
            refund_rate=quote.refund_rate,
            estimated_days=quote.estimated_days,
        )

    # ------------------------------------------------------------------
    # Institution transitions
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.confirm")
    def confirm(self, booking_id: str, staff_id: str) -> Booking:
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_staff(booking, staff_id)
            if booking.status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
                raise InvalidTransitionException("confirm", booking.status)
            booking.status = BookingStatus.CONFIRMED.value
            self._touch(booking)

        self._notify(
            booking.user_id,
            "Booking confirmed",
            f"Your booking {booking.order_number} has been confirmed by the institution",
            _booking_link(booking),
        )
        return booking

    @BaseService.measure_operation("booking.reject")
    def reject(self, booking_id: str, staff_id: str, reason: Optional[str] = None) -> Booking:
        """Institution-side cancellation; a paid booking is always refunded in full."""
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_staff(booking, staff_id)
            if booking.booking_status.is_terminal:
                raise InvalidTransitionException("reject", booking.status)

            refund_amount = Decimal("0.00")
            if booking.is_paid:
                refund_amount = round_money(Decimal(booking.total_price))
                self._refund_to_owner(booking, refund_amount)
                booking.refund_amount = refund_amount
                booking.refunded_at = self.now()
                booking.payment_status = PaymentStatus.REFUNDED.value

            booking.status = BookingStatus.CANCELLED.value
            booking.cancel_reason = reason
            self._touch(booking)

        self.log_operation(
            "booking.reject", booking_id=booking.id, refund_amount=str(refund_amount)
        )
        content = f"Your booking {booking.order_number} was cancelled by the institution"
        if reason:
            content += f", reason: {reason}"
        if refund_amount > 0:
            content += f", refund of {refund_amount} returned to your wallet"
        self._notify(booking.user_id, "Booking cancelled", content, _booking_link(booking))
        return booking

    @BaseService.measure_operation("booking.check_in")
    def check_in(self, booking_id: str, staff_id: str) -> Booking:
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_staff(booking, staff_id)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise InvalidTransitionException("check in", booking.status)
            booking.status = BookingStatus.IN_PROGRESS.value
            booking.check_in_time = self.now()
            self._touch(booking)

        self._notify(
            booking.user_id,
            "Pet checked in",
            f"{self._pet_name(booking)} has checked in, booking {booking.order_number}",
            _booking_link(booking),
        )
        return booking

    @BaseService.measure_operation("booking.check_out")
    def check_out(self, booking_id: str, staff_id: str) -> Booking:
        """Complete the stay and pay the full total out to the acting staff member."""
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            self._require_staff(booking, staff_id)
            if booking.status != BookingStatus.IN_PROGRESS.value:
                raise InvalidTransitionException("check out", booking.status)

            if booking.is_paid:
                cents = to_minor_units(booking.total_price)
                if cents > 0:
                    self.wallet_service.credit(
                        staff_id,
                        cents,
                        f"Booking income - {booking.order_number}",
                        booking.id,
                    )

            booking.status = BookingStatus.COMPLETED.value
            booking.check_out_time = self.now()
            self._touch(booking)

        self.log_operation("booking.check_out", booking_id=booking.id, staff_id=staff_id)
        self._notify(
            booking.user_id,
            "Pet checked out",
            f"{self._pet_name(booking)} has completed the stay, booking {booking.order_number}",
            _booking_link(booking),
        )
        return booking

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    @BaseService.measure_operation("booking.soft_delete")
    def soft_delete(self, booking_id: str, actor_id: str, side: BookingParty) -> Booking:
        """Hide a finished booking from one party's lists; the record stays."""
        side = BookingParty(side)
        with self.locks.hold(booking_lock_key(booking_id)), self.transaction():
            booking = self._load(booking_id, for_update=True)
            if side == BookingParty.OWNER:
                self._require_owner(booking, actor_id)
            else:
                self._require_staff(booking, actor_id)
            if not booking.booking_status.is_terminal:
                raise InvalidTransitionException("delete", booking.status)
            if side == BookingParty.OWNER:
                booking.user_deleted = True
            else:
                booking.institution_deleted = True
            self._touch(booking)
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(self, booking_id: str) -> Booking:
        """Committed state of the booking; waits out any transition in flight."""
        with self.locks.hold(booking_lock_key(booking_id)):
            return self._load(booking_id)

    def list_user_bookings(
        self,
        user_id: str,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResponse[BookingResponse]:
        skip, limit = page_window(page, page_size)
        rows, total = self.booking_repository.list_for_user(
            user_id, status=status, skip=skip, limit=limit
        )
        return PaginatedResponse[BookingResponse].build(
            [BookingResponse.model_validate(b) for b in rows], total, skip // limit + 1, limit
        )

    def list_institution_bookings(
        self,
        staff_id: str,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PaginatedResponse[BookingResponse]:
        institution_id = self.catalog_repository.get_staff_institution_id(staff_id)
        if institution_id is None:
            raise ForbiddenException(
                "User is not a member of any institution", code="NOT_INSTITUTION_STAFF"
            )
        skip, limit = page_window(page, page_size)
        rows, total = self.booking_repository.list_for_institution(
            institution_id, status=status, skip=skip, limit=limit
        )
        return PaginatedResponse[BookingResponse].build(
            [BookingResponse.model_validate(b) for b in rows], total, skip // limit + 1, limit
        )
