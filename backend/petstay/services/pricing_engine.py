"""Stay pricing: nightly price times inclusive days, less a duration discount."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from ..constants.pricing_defaults import DURATION_DISCOUNT_TIERS
from ..core.exceptions import ValidationException
from ..core.money import Number, round_money, to_decimal


@dataclass(frozen=True)
class PriceQuote:
    price_per_day: Decimal
    total_days: int
    discount_rate: Decimal
    subtotal: Decimal
    discount: Decimal
    total_price: Decimal

    def to_payload(self) -> dict[str, object]:
        return {
            "price_per_day": str(self.price_per_day),
            "total_days": self.total_days,
            "discount_rate": str(self.discount_rate),
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "total_price": str(self.total_price),
        }


class PricingEngine:
    """Deterministic pricing for a stay; holds no state beyond its tier table."""

    def __init__(self, tiers: Sequence[Tuple[int, Decimal]] = DURATION_DISCOUNT_TIERS):
        self._tiers = tuple(sorted(tiers, key=lambda tier: tier[0], reverse=True))

    @staticmethod
    def calculate_days(start_date: date, end_date: date) -> int:
        """Inclusive number of days between two calendar dates."""
        if end_date < start_date:
            raise ValidationException(
                "End date must not be before start date",
                code="INVALID_DATE_RANGE",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )
        return (end_date - start_date).days + 1

    def discount_rate_for(self, total_days: int) -> Decimal:
        for min_days, rate in self._tiers:
            if total_days >= min_days:
                return rate
        return Decimal("0")

    def quote(
        self,
        price_per_day: Number,
        start_date: date,
        end_date: date,
        discount_rate: Optional[Number] = None,
    ) -> PriceQuote:
        return self.quote_for_days(
            price_per_day, self.calculate_days(start_date, end_date), discount_rate
        )

    def quote_for_days(
        self,
        price_per_day: Number,
        total_days: int,
        discount_rate: Optional[Number] = None,
    ) -> PriceQuote:
        price = to_decimal(price_per_day, "price_per_day")
        if price < 0:
            raise ValidationException(
                "Price per day must not be negative",
                code="INVALID_PRICE",
                details={"price_per_day": str(price)},
            )
        if total_days < 1:
            raise ValidationException(
                "A stay lasts at least one day",
                code="INVALID_DATE_RANGE",
                details={"total_days": total_days},
            )

        if discount_rate is None:
            rate = self.discount_rate_for(total_days)
        else:
            rate = to_decimal(discount_rate, "discount_rate")
            if rate < 0 or rate > 1:
                raise ValidationException(
                    "Discount rate must be between 0 and 1",
                    code="INVALID_DISCOUNT_RATE",
                    details={"discount_rate": str(rate)},
                )

        subtotal = price * total_days
        discount = round_money(subtotal * rate)
        return PriceQuote(
            price_per_day=price,
            total_days=total_days,
            discount_rate=rate,
            subtotal=round_money(subtotal),
            discount=discount,
            total_price=round_money(subtotal - discount),
        )
