"""Derive discrete hazard events from an hourly forecast."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .entities import ForecastHour, PrecipitationType, WeatherEvent, WeatherSignal

MODERATE = "moderate"
SEVERE = "severe"


@dataclass(frozen=True)
class SevereCondition:
    type: str
    severity: str
    title: str
    description: str


def detect_severe_condition(weather: WeatherSignal) -> Optional[SevereCondition]:
    """Return the hazard present in ``weather`` or ``None``.

    Thresholds differ from the road risk classifier; the first matching
    hazard wins.
    """

    code = weather.weather_code
    if code >= 8000:
        return SevereCondition(
            type="thunderstorm",
            severity=SEVERE if code >= 8001 else MODERATE,
            title="Thunderstorm Alert",
            description="Thunderstorm conditions expected. Seek shelter if driving.",
        )

    if weather.precipitation_intensity > 10:
        kind = weather.precipitation_type
        return SevereCondition(
            type="heavy_precipitation",
            severity=SEVERE if weather.precipitation_intensity > 20 else MODERATE,
            title="Heavy Snow Alert" if kind is PrecipitationType.SNOW else "Heavy Rain Alert",
            description=f"Heavy {kind.value} expected. Reduced visibility and road hazards likely.",
        )

    if weather.wind_gust > 80 or weather.wind_speed > 60:
        gust = weather.wind_gust or weather.wind_speed
        return SevereCondition(
            type="wind",
            severity=SEVERE if gust > 100 else MODERATE,
            title="High Wind Alert",
            description=f"Wind gusts up to {round(gust)} km/h expected. Exercise caution.",
        )

    if weather.visibility < 1:
        return SevereCondition(
            type="visibility",
            severity=SEVERE if weather.visibility < 0.5 else MODERATE,
            title="Low Visibility Alert",
            description=f"Visibility reduced to {weather.visibility} km. Drive with caution.",
        )

    if weather.temperature < 0 and weather.precipitation_intensity > 0:
        return SevereCondition(
            type="ice",
            severity=MODERATE,
            title="Freezing Conditions Alert",
            description="Freezing precipitation possible. Watch for icy road surfaces.",
        )

    return None


class _OpenEvent:
    def __init__(self, condition: SevereCondition, time: datetime) -> None:
        self.condition = condition
        self.start_time = time
        self.end_time = time

    def close(self) -> WeatherEvent:
        condition = self.condition
        return WeatherEvent(
            id=f"{condition.type}-{self.start_time.isoformat()}",
            type=condition.type,
            severity=condition.severity,
            title=condition.title,
            description=condition.description,
            start_time=self.start_time,
            end_time=self.end_time,
        )


def derive_events(hourly: Iterable[ForecastHour]) -> List[WeatherEvent]:
    """Merge consecutive hours that share a hazard type into events.

    A clear hour closes the open event. The merged event keeps the severity
    of the hour that opened it.
    """

    events: List[WeatherEvent] = []
    current: Optional[_OpenEvent] = None

    for hour in hourly:
        condition = detect_severe_condition(hour.weather)
        if condition is None:
            if current is not None:
                events.append(current.close())
                current = None
            continue
        if current is not None and current.condition.type == condition.type:
            current.end_time = hour.time
            continue
        if current is not None:
            events.append(current.close())
        current = _OpenEvent(condition, hour.time)

    if current is not None:
        events.append(current.close())
    return events


__all__ = ["SevereCondition", "derive_events", "detect_severe_condition"]
