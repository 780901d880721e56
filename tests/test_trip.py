from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from roadcast.entities import Feature, ForecastHour, RoutePoint, WeatherSignal
from roadcast.errors import AllProvidersFailedError
from roadcast.factory import WeatherFactory
from roadcast.route import haversine_km
from roadcast.trip import collect_route_alerts, route_updates
from tests.fakes import FakeProvider

ALERTS = (Feature.CURRENT, Feature.FORECAST, Feature.ALERTS)
STORM = ForecastHour(time=datetime(2024, 6, 1, 10, tzinfo=timezone.utc), weather=WeatherSignal(weather_code=8000))
CURRENT = RoutePoint(latitude=55.75, longitude=37.61)
DESTINATION = RoutePoint(latitude=59.93, longitude=30.31)


class FlakyProvider(FakeProvider):
    """Serves the first ``healthy_calls`` requests, then fails."""

    def __init__(self, *args, healthy_calls: int = 1, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.healthy_calls = healthy_calls

    def _fetch_timelines(self, latitude, longitude, hours):
        self.fail = len(self.requests) >= self.healthy_calls
        return super()._fetch_timelines(latitude, longitude, hours)


def make_factory(provider) -> WeatherFactory:
    return WeatherFactory([provider], strategies={"cost_optimized": ("A",)}, events_provider="A")


def test_route_alerts_sample_every_third_point_and_dedupe(quota) -> None:
    provider = FakeProvider("A", features=ALERTS, hourly=[STORM], quota=quota)
    points = [RoutePoint(50.0, 30.0 + i, km=float(i)) for i in range(7)]

    alerts = collect_route_alerts(make_factory(provider), points)

    assert [event.type for event in alerts] == ["thunderstorm"]
    assert [(r["lng"], r["hours"]) for r in provider.requests] == [(30.0, 24), (33.0, 24), (36.0, 24)]


def test_route_alerts_empty_without_alert_source(quota) -> None:
    provider = FakeProvider("A", fail=True, quota=quota)

    assert collect_route_alerts(make_factory(provider), [CURRENT]) == []


def test_calm_trip_polls_slowly(quota) -> None:
    provider = FakeProvider("A", quota=quota)

    update = route_updates(make_factory(provider), CURRENT, DESTINATION)

    assert update.provider == "A"
    assert update.alerts == []
    assert update.next_update == timedelta(minutes=15)
    assert [r["hours"] for r in provider.requests][:3] == [3, 1, 1]
    assert [segment.km for segment in update.ahead] == [
        round(haversine_km(CURRENT, DESTINATION) * 0.25),
        round(haversine_km(CURRENT, DESTINATION) * 0.5),
    ]
    assert update.ahead[1].latitude == pytest.approx((55.75 + 59.93) / 2)
    assert update.as_dict()["next_update_ms"] == 15 * 60 * 1000


def test_high_risk_trip_polls_fast(quota) -> None:
    provider = FakeProvider("A", signal=WeatherSignal(wind_speed=65.0), quota=quota)

    update = route_updates(make_factory(provider), CURRENT, DESTINATION)

    assert update.next_update == timedelta(minutes=3)


def test_active_alerts_poll_fast(quota) -> None:
    provider = FakeProvider("A", features=ALERTS, hourly=[STORM], quota=quota)

    update = route_updates(make_factory(provider), CURRENT, DESTINATION)

    assert [event.type for event in update.alerts] == ["thunderstorm"]
    assert update.as_dict()["next_update_ms"] == 3 * 60 * 1000


def test_points_ahead_are_skipped_on_error(quota) -> None:
    provider = FlakyProvider("A", healthy_calls=1, quota=quota)

    update = route_updates(make_factory(provider), CURRENT, DESTINATION)

    assert update.ahead == []
    assert update.current.temperature == 12.0


def test_failure_at_current_position_propagates(quota) -> None:
    provider = FakeProvider("A", fail=True, quota=quota)

    with pytest.raises(AllProvidersFailedError):
        route_updates(make_factory(provider), CURRENT, DESTINATION)
