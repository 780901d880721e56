"""Current weather lookups backed by the Django cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from django.core.cache.backends.base import BaseCache

from roadcast.cache import CacheEntry, cache_key
from roadcast.entities import WeatherSignal
from roadcast.factory import SelectionOptions, WeatherFactory
from roadcast.quota import utcnow


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentWeather:
    entry: CacheEntry
    cached: bool


class WeatherServiceBridge:
    """Serve current conditions from the grid cache, falling back to providers.

    Entries expire after the TTL chosen by their own road risk at write time.
    """

    cache_key_template = "weather:{key}"

    def __init__(
        self,
        factory: WeatherFactory,
        cache: BaseCache,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.factory = factory
        self._cache = cache
        self._clock = clock

    def get_current(
        self, latitude: float, longitude: float, options: Optional[SelectionOptions] = None
    ) -> CurrentWeather:
        storage_key = self.cache_key_template.format(key=cache_key(latitude, longitude))
        now = self._clock()
        cached = self._cache.get(storage_key)
        if cached:
            entry = self._deserialize(cached)
            if entry.is_fresh(now):
                return CurrentWeather(entry=entry, cached=True)

        timelines = self.factory.get_timelines(latitude, longitude, hours=1, options=options)
        entry = CacheEntry.create(latitude, longitude, timelines.current, timelines.provider or "", now)
        timeout = int(entry.ttl.total_seconds())
        self._cache.set(storage_key, self._serialize(entry), timeout)
        logger.info(
            "Cached %s weather for %s from %s for %ss",
            entry.payload.road_risk.value,
            entry.key,
            entry.source,
            timeout,
        )
        return CurrentWeather(entry=entry, cached=False)

    def _serialize(self, entry: CacheEntry) -> dict:
        return {
            "key": entry.key,
            "payload": entry.payload.as_dict(),
            "source": entry.source,
            "fetched_at": _isoformat(entry.fetched_at),
            "expires_at": _isoformat(entry.expires_at),
        }

    def _deserialize(self, payload: dict) -> CacheEntry:
        return CacheEntry(
            key=payload["key"],
            payload=WeatherSignal.from_dict(payload["payload"]),
            source=payload["source"],
            fetched_at=_parse(payload["fetched_at"]),
            expires_at=_parse(payload["expires_at"]),
        )


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


__all__ = ["CurrentWeather", "WeatherServiceBridge"]
