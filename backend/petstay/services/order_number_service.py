"""
Human-readable order numbers: prefix + booking-local date + random digits.

Example: PF20241222123456. Numbers are unique for the generator's lifetime
and, when an ``exists`` callback is wired to storage, across restarts too.
"""

from __future__ import annotations

from datetime import date, datetime
import logging
import random
import re
import threading
from typing import Callable, Optional, Set

import pytz

from ..core.config import settings
from ..core.exceptions import ValidationException

logger = logging.getLogger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r"^[A-Z]{2,4}\d{14,16}$")
PREFIX_PATTERN = re.compile(r"^[A-Z]{2,4}$")

SHORT_SUFFIX_DIGITS = 6
LONG_SUFFIX_DIGITS = 8
MAX_SHORT_ATTEMPTS = 100


class OrderNumberGenerator:
    """Lock-protected order number source; one instance per process."""

    def __init__(
        self,
        prefix: Optional[str] = None,
        exists: Optional[Callable[[str], bool]] = None,
        rng: Optional[random.Random] = None,
        tz: Optional[pytz.BaseTzInfo] = None,
    ):
        self.prefix = prefix or settings.order_number_prefix
        if not PREFIX_PATTERN.match(self.prefix):
            raise ValidationException(
                "Order number prefix must be 2-4 uppercase letters",
                code="INVALID_PREFIX",
                details={"prefix": self.prefix},
            )
        self._exists = exists
        self._rng = rng or random.SystemRandom()
        self._tz = tz or settings.booking_tz
        self._lock = threading.Lock()
        self._issued: Set[str] = set()

    def _digits(self, length: int) -> str:
        return "".join(str(self._rng.randrange(10)) for _ in range(length))

    def _taken(self, candidate: str) -> bool:
        if candidate in self._issued:
            return True
        return self._exists is not None and self._exists(candidate)

    def generate(self, on_date: Optional[date] = None) -> str:
        if on_date is None:
            on_date = datetime.now(pytz.UTC).astimezone(self._tz).date()
        stem = f"{self.prefix}{on_date:%Y%m%d}"

        with self._lock:
            attempts = 0
            while True:
                length = SHORT_SUFFIX_DIGITS if attempts < MAX_SHORT_ATTEMPTS else LONG_SUFFIX_DIGITS
                candidate = stem + self._digits(length)
                attempts += 1
                if not self._taken(candidate):
                    break
            if attempts > MAX_SHORT_ATTEMPTS:
                logger.warning(
                    "order_number_space_crowded",
                    extra={"stem": stem, "attempts": attempts},
                )
            self._issued.add(candidate)
            return candidate

    @staticmethod
    def is_valid(order_number: Optional[str]) -> bool:
        return bool(order_number) and ORDER_NUMBER_PATTERN.match(order_number) is not None

    @property
    def issued_count(self) -> int:
        with self._lock:
            return len(self._issued)

    def reset(self) -> None:
        """Forget issued numbers; storage-backed uniqueness still applies."""
        with self._lock:
            self._issued.clear()
