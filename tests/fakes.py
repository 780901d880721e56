from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from roadcast.entities import Feature, ForecastHour, ProviderConfig, Timelines, WeatherSignal
from roadcast.errors import ProviderRequestError
from roadcast.providers.base import WeatherProvider


class FakeProvider(WeatherProvider):
    """Provider that serves canned signals and records quota like a real one."""

    def __init__(
        self,
        name: str,
        daily_limit: int = 100,
        priority: int = 1,
        features=(Feature.CURRENT, Feature.FORECAST),
        signal: Optional[WeatherSignal] = None,
        hourly: Optional[List[ForecastHour]] = None,
        fail: bool = False,
        calls_per_point: int = 1,
        **kwargs,
    ) -> None:
        config = ProviderConfig(
            name=name,
            daily_limit=daily_limit,
            priority=priority,
            supported_features=frozenset(features),
        )
        super().__init__(config=config, **kwargs)
        self.signal = signal or WeatherSignal(temperature=12.0)
        self.hourly = hourly or []
        self.fail = fail
        self.calls_per_point = calls_per_point
        self.requests: List[Dict[str, float]] = []

    def _fetch_timelines(self, latitude: float, longitude: float, hours: int) -> Timelines:
        self.requests.append({"lat": latitude, "lng": longitude, "hours": hours})
        for _ in range(self.calls_per_point):
            self.quota.consume(self.name, "timelines")
        if self.fail:
            raise ProviderRequestError(f"{self.name} HTTP 500")
        return Timelines(current=self.signal, hourly=list(self.hourly), provider=self.name)


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now
