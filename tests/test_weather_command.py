from __future__ import annotations

import json
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from backend.api import views
from roadcast.entities import WeatherSignal
from roadcast.factory import WeatherFactory
from tests.fakes import FakeProvider

STRATEGIES = {"cost_optimized": ("tomorrow",)}


@pytest.fixture
def provider(monkeypatch, quota) -> FakeProvider:
    provider = FakeProvider("tomorrow", daily_limit=500, signal=WeatherSignal(temperature=4.0), quota=quota)
    factory = WeatherFactory([provider], strategies=STRATEGIES)
    monkeypatch.setattr(views, "get_weather_factory", lambda: factory)
    return provider


def test_command_prints_forecast(provider) -> None:
    out = StringIO()

    call_command("weather_fetch", "--lat", "55.75", "--lon", "37.61", stdout=out)

    payload = json.loads(out.getvalue())
    assert payload["provider"] == "tomorrow"
    assert payload["current"]["temperature"] == 4.0
    assert provider.requests == [{"lat": 55.75, "lng": 37.61, "hours": 1}]


def test_command_prints_usage(provider, quota) -> None:
    quota.consume("tomorrow", "timelines")
    out = StringIO()

    call_command("weather_fetch", "--usage", stdout=out)

    payload = json.loads(out.getvalue())
    assert payload["total_remaining"] == 499
    assert payload["providers"][0]["name"] == "tomorrow"


def test_command_requires_coordinates(provider) -> None:
    with pytest.raises(CommandError):
        call_command("weather_fetch")


def test_command_reports_provider_failure(provider) -> None:
    provider.fail = True

    with pytest.raises(CommandError):
        call_command("weather_fetch", "--lat", "1", "--lon", "2")
