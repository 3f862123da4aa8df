"""
Per-entity mutexes for booking transitions and wallet mutations.

Each booking and each wallet gets its own re-entrant lock, looked up by key.
Unrelated entities never contend with each other; entries are reference
counted and dropped once no thread holds or waits on them.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import logging
import threading
from typing import Dict, Iterator, Optional

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import EntityLockTimeoutException

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: str) -> str:
    return f"booking:{booking_id}:mutex"


def wallet_lock_key(user_id: str) -> str:
    return f"wallet:{user_id}:mutex"


def _entity_of(key: str) -> str:
    return key.split(":", 1)[0]


@dataclass
class _LockEntry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    refs: int = 0


class KeyedLockRegistry:
    """Registry of re-entrant locks addressed by entity key."""

    def __init__(self, timeout_s: Optional[float] = None) -> None:
        self._timeout_s = timeout_s
        self._guard = threading.Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @property
    def timeout_s(self) -> float:
        if self._timeout_s is not None:
            return self._timeout_s
        return settings.entity_lock_timeout_seconds

    def _checkout(self, key: str) -> _LockEntry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _LockEntry) -> None:
        with self._guard:
            entry.refs -= 1
            if entry.refs <= 0 and self._entries.get(key) is entry:
                del self._entries[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Block until the lock for ``key`` is held; release on exit."""
        entry = self._checkout(key)
        timeout = self.timeout_s
        acquired = entry.lock.acquire(timeout=timeout) if timeout > 0 else entry.lock.acquire()
        if not acquired:
            self._checkin(key, entry)
            prometheus_metrics.record_entity_lock(_entity_of(key), "timeout")
            logger.warning(
                "entity_lock_timeout",
                extra={"lock_key": key, "timeout_s": timeout},
            )
            raise EntityLockTimeoutException(key, timeout)
        prometheus_metrics.record_entity_lock(_entity_of(key), "acquired")
        try:
            yield
        finally:
            entry.lock.release()
            self._checkin(key, entry)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)
