"""Refund policy evaluation for cancelled stays."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

import pytz

from ..core.config import settings
from ..core.enums import BookingStatus, RefundTier
from ..core.money import Number, round_money, round_rate, to_decimal
from .pricing_engine import PricingEngine

FULL_REFUND_PROCESSING_DAYS = 5
LATE_REFUND_PROCESSING_DAYS = 7


@dataclass(frozen=True)
class RefundQuote:
    refund_amount: Decimal
    cancellation_fee: Decimal
    refund_rate: Decimal
    tier: RefundTier
    reason: str
    hours_until_start: int
    estimated_days: int

    def to_payload(self) -> dict[str, object]:
        return {
            "refund_amount": str(self.refund_amount),
            "cancellation_fee": str(self.cancellation_fee),
            "refund_rate": str(self.refund_rate),
            "tier": self.tier.value,
            "reason": self.reason,
            "hours_until_start": self.hours_until_start,
            "estimated_days": self.estimated_days,
        }


@dataclass(frozen=True)
class CancellationEligibility:
    can_cancel: bool
    reason: str


class RefundPolicyEngine:
    """
    Determines how much of a paid stay is refunded on cancellation.

    The ladder looks at whole hours until the stay's first day begins in the
    booking time zone: more than the notice window refunds everything, less
    refunds the late rate, and once the stay has started only the unused days
    are refunded at the late rate.
    """

    def __init__(
        self,
        notice_hours: Optional[int] = None,
        late_rate: Optional[Number] = None,
        tz: Optional[pytz.BaseTzInfo] = None,
    ):
        self.notice_hours = (
            settings.full_refund_notice_hours if notice_hours is None else int(notice_hours)
        )
        self.late_rate = to_decimal(
            settings.late_cancel_refund_rate if late_rate is None else late_rate, "late_rate"
        )
        self.tz = tz or settings.booking_tz

    def _localize(self, at: Optional[datetime]) -> datetime:
        if at is None:
            return datetime.now(pytz.UTC).astimezone(self.tz)
        if at.tzinfo is None:
            return self.tz.localize(at)
        return at.astimezone(self.tz)

    def start_of_stay(self, start_date: date) -> datetime:
        return self.tz.localize(datetime.combine(start_date, time.min))

    def hours_until_start(self, start_date: date, at: Optional[datetime] = None) -> int:
        """Whole hours from ``at`` to the start of ``start_date``, truncated toward zero."""
        delta = self.start_of_stay(start_date) - self._localize(at)
        seconds = delta.days * 86400 + delta.seconds
        hours = abs(seconds) // 3600
        return hours if seconds >= 0 else -hours

    def evaluate(
        self,
        total_price: Number,
        start_date: date,
        end_date: date,
        at: Optional[datetime] = None,
    ) -> RefundQuote:
        total = round_money(to_decimal(total_price, "total_price"))
        cancelled_at = self._localize(at)
        hours = self.hours_until_start(start_date, cancelled_at)

        if hours > self.notice_hours:
            return RefundQuote(
                refund_amount=total,
                cancellation_fee=Decimal("0.00"),
                refund_rate=Decimal("1"),
                tier=RefundTier.FULL,
                reason=f"Cancelled more than {self.notice_hours} hours before check-in, full refund",
                hours_until_start=hours,
                estimated_days=FULL_REFUND_PROCESSING_DAYS,
            )

        if hours > 0:
            refund = round_money(total * self.late_rate)
            return RefundQuote(
                refund_amount=refund,
                cancellation_fee=total - refund,
                refund_rate=self.late_rate,
                tier=RefundTier.PARTIAL,
                reason=(
                    f"Cancelled within {self.notice_hours} hours of check-in, "
                    f"{self._fee_percent()}% cancellation fee"
                ),
                hours_until_start=hours,
                estimated_days=FULL_REFUND_PROCESSING_DAYS,
            )

        total_days = PricingEngine.calculate_days(start_date, end_date)
        used_days = (cancelled_at.date() - start_date).days + 1
        remaining_days = max(0, total_days - used_days)
        if remaining_days > 0:
            rate = round_rate(Decimal(remaining_days) / Decimal(total_days)) * self.late_rate
            refund = round_money(total * rate)
            return RefundQuote(
                refund_amount=refund,
                cancellation_fee=total - refund,
                refund_rate=rate,
                tier=RefundTier.PARTIAL,
                reason=(
                    f"Cancelled after check-in, {remaining_days} remaining days refunded "
                    f"at {self._refund_percent()}%"
                ),
                hours_until_start=hours,
                estimated_days=LATE_REFUND_PROCESSING_DAYS,
            )

        return RefundQuote(
            refund_amount=Decimal("0.00"),
            cancellation_fee=total,
            refund_rate=Decimal("0"),
            tier=RefundTier.NONE,
            reason="Service consumed, non-refundable",
            hours_until_start=hours,
            estimated_days=0,
        )

    def can_cancel(
        self,
        status: BookingStatus,
        start_date: Optional[date] = None,
        at: Optional[datetime] = None,
    ) -> CancellationEligibility:
        """
        Completed and cancelled bookings are final; everything else may be
        cancelled, including stays already under way (they just refund less).
        """
        if BookingStatus(status).is_terminal:
            return CancellationEligibility(False, "Booking is already completed or cancelled")
        if start_date is not None and self._localize(at).date() > start_date:
            return CancellationEligibility(
                True, "Stay has started, only the remaining days will be refunded"
            )
        return CancellationEligibility(True, "Booking can be cancelled")

    def _refund_percent(self) -> str:
        return f"{(self.late_rate * 100).normalize():f}"

    def _fee_percent(self) -> str:
        return f"{((1 - self.late_rate) * 100).normalize():f}"
