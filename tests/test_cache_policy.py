from __future__ import annotations

from datetime import datetime, timedelta, timezone

from roadcast.cache import CacheEntry, cache_key, ttl_for
from roadcast.entities import WeatherSignal
from roadcast.risk import RiskLevel


def test_cache_key_rounds_to_two_decimals() -> None:
    assert cache_key(10.004, 20.006) == "10:20.01"
    assert cache_key(10.004, 20.006) != cache_key(10.06, 20.006)
    assert cache_key(55.7512, 37.6184) == "55.75:37.62"


def test_cache_key_shares_cells_and_strips_zeros() -> None:
    assert cache_key(10.001, 20.0) == cache_key(10.0049, 19.996)
    assert cache_key(1.5, -0.001) == "1.5:0"
    assert cache_key(-33.8651, 151.2099) == "-33.87:151.21"


def test_ttl_shrinks_with_risk() -> None:
    assert ttl_for(RiskLevel.EXTREME) == timedelta(minutes=2)
    assert ttl_for(RiskLevel.HIGH) == timedelta(minutes=5)
    assert ttl_for(RiskLevel.MODERATE) == timedelta(minutes=10)
    assert ttl_for(RiskLevel.LOW) == timedelta(minutes=15)


def test_entry_expiry_follows_payload_risk() -> None:
    fetched_at = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    entry = CacheEntry.create(10.0, 20.0, WeatherSignal(wind_gust=90.0), "tomorrow", fetched_at)

    assert entry.key == "10:20"
    assert entry.ttl == timedelta(minutes=2)
    assert entry.is_fresh(fetched_at + timedelta(minutes=1))
    assert not entry.is_fresh(fetched_at + timedelta(minutes=2))
