from __future__ import annotations

from datetime import timedelta

import pytest
from django.core.cache import cache

from backend.core.services.weather_service import WeatherServiceBridge
from roadcast.entities import WeatherSignal
from roadcast.errors import AllProvidersFailedError
from roadcast.factory import WeatherFactory
from tests.fakes import FakeProvider

STRATEGIES = {"cost_optimized": ("dummy", "backup")}


def make_service(providers, clock) -> WeatherServiceBridge:
    factory = WeatherFactory(providers, strategies=STRATEGIES, events_provider="dummy")
    return WeatherServiceBridge(factory, cache=cache, clock=clock)


def test_weather_service_caches_results(quota, clock) -> None:
    cache.clear()
    provider = FakeProvider("dummy", quota=quota)
    service = make_service([provider], clock)

    first = service.get_current(10.0, 20.0)
    second = service.get_current(10.001, 20.004)

    assert len(provider.requests) == 1
    assert first.cached is False
    assert second.cached is True
    assert second.entry.key == "10:20"
    assert second.entry.payload == first.entry.payload
    assert second.entry.source == "dummy"


def test_weather_service_refetches_after_risk_ttl(quota, clock) -> None:
    cache.clear()
    provider = FakeProvider("dummy", signal=WeatherSignal(wind_gust=90.0), quota=quota)
    service = make_service([provider], clock)

    entry = service.get_current(10.0, 20.0).entry
    assert entry.ttl == timedelta(minutes=2)

    clock.now = clock.now + timedelta(minutes=3)
    result = service.get_current(10.0, 20.0)

    assert result.cached is False
    assert len(provider.requests) == 2


def test_weather_service_uses_fallback_provider(quota, clock) -> None:
    cache.clear()
    fallback = FakeProvider("backup", signal=WeatherSignal(temperature=1.0), quota=quota)
    service = make_service([FakeProvider("dummy", fail=True, quota=quota), fallback], clock)

    result = service.get_current(0.0, 0.0)

    assert len(fallback.requests) == 1
    assert result.entry.payload.temperature == 1.0
    assert result.entry.source == "backup"


def test_weather_service_raises_when_all_fail(quota, clock) -> None:
    cache.clear()
    service = make_service([FakeProvider("dummy", fail=True, quota=quota)], clock)

    with pytest.raises(AllProvidersFailedError):
        service.get_current(0.0, 0.0)
