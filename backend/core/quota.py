"""Quota counters kept in a Django cache backend.

With ``django_redis`` the increment maps to Redis ``INCRBY`` which is atomic
across every worker sharing the instance.
"""
from __future__ import annotations

from datetime import date

from django.core.cache.backends.base import BaseCache

from roadcast.entities import QuotaRecord

# Counters outlive the UTC day they belong to, then expire on their own.
COUNTER_TIMEOUT = 2 * 24 * 60 * 60


class CacheQuotaStore:
    key_prefix = "quota"

    def __init__(self, cache: BaseCache, timeout: int = COUNTER_TIMEOUT) -> None:
        self._cache = cache
        self._timeout = timeout

    def _key(self, day: date, provider: str, endpoint: str | None = None) -> str:
        key = f"{self.key_prefix}:{day.isoformat()}:{provider}"
        return f"{key}:{endpoint}" if endpoint else key

    def _incr(self, key: str, amount: int) -> int:
        # add() is a no-op when the key exists, so the counter is never reset.
        self._cache.add(key, 0, self._timeout)
        try:
            return self._cache.incr(key, amount)
        except ValueError:
            # The counter expired between add() and incr().
            self._cache.add(key, 0, self._timeout)
            return self._cache.incr(key, amount)

    def increment(self, day: date, provider: str, endpoint: str, amount: int = 1) -> QuotaRecord:
        if amount <= 0:
            raise ValueError("amount must be positive")
        count = self._incr(self._key(day, provider, endpoint), amount)
        self._incr(self._key(day, provider), amount)
        return QuotaRecord(date=day, provider=provider, endpoint=endpoint, call_count=count)

    def used(self, day: date, provider: str) -> int:
        return int(self._cache.get(self._key(day, provider), 0))


__all__ = ["CacheQuotaStore"]
