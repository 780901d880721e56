"""Per provider, per day, per endpoint call accounting."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from threading import Lock
from typing import Callable, Dict, Optional, Protocol, Tuple

from .entities import QuotaRecord, QuotaStatus


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuotaStore(Protocol):
    """Counter storage shared by every process that talks to a provider.

    ``increment`` must be a single fetch-and-add at the storage boundary.
    """

    def increment(self, day: date, provider: str, endpoint: str, amount: int = 1) -> QuotaRecord:
        ...

    def used(self, day: date, provider: str) -> int:
        ...


class MemoryQuotaStore:
    """Process local counters, suitable for tests and single worker setups."""

    def __init__(self) -> None:
        self._counts: Dict[Tuple[date, str, str], int] = {}
        self._lock = Lock()

    def increment(self, day: date, provider: str, endpoint: str, amount: int = 1) -> QuotaRecord:
        if amount <= 0:
            raise ValueError("amount must be positive")
        key = (day, provider, endpoint)
        with self._lock:
            count = self._counts.get(key, 0) + amount
            self._counts[key] = count
        return QuotaRecord(date=day, provider=provider, endpoint=endpoint, call_count=count)

    def used(self, day: date, provider: str) -> int:
        with self._lock:
            return sum(
                count
                for (row_day, row_provider, _), count in self._counts.items()
                if row_day == day and row_provider == provider
            )


class QuotaTracker:
    """Checks and consumes daily provider budgets.

    Counters are keyed by UTC date, so a new day starts from zero without a
    reset job. Check and consume are separate calls; concurrent requests can
    both pass the check, so ``daily_limit`` behaves as a soft cap.
    """

    def __init__(self, store: Optional[QuotaStore] = None, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store if store is not None else MemoryQuotaStore()
        self._clock = clock

    def today(self) -> date:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()

    def check_availability(self, provider: str, daily_limit: int) -> QuotaStatus:
        used = self.store.used(self.today(), provider)
        return QuotaStatus(
            used=used,
            remaining=max(0, daily_limit - used),
            exceeded=used >= daily_limit,
        )

    def consume(self, provider: str, endpoint: str) -> QuotaRecord:
        record = self.store.increment(self.today(), provider, endpoint)
        logger.debug(
            "Quota %s/%s now at %s calls for %s",
            provider,
            endpoint,
            record.call_count,
            record.date.isoformat(),
        )
        return record


__all__ = ["MemoryQuotaStore", "QuotaStore", "QuotaTracker", "utcnow"]
