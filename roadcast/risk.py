"""Road risk classification for normalized weather signals."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:  # pragma: no cover
    from .entities import RouteSegment, WeatherSignal


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __str__(self) -> str:
        return self.value


_RANKS = {
    RiskLevel.LOW: 0,
    RiskLevel.MODERATE: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.EXTREME: 3,
}

# Tomorrow.io codes are 1000-8000, OpenWeather condition ids are 200-804.
THUNDERSTORM_CODES = frozenset({8000, *range(200, 233)})
HAIL_CODES = frozenset({7000, 7101, 7102})
SNOW_CODES = frozenset({5000, 5001, 5100, 5101, *range(600, 623)})


def classify(signal: "WeatherSignal") -> RiskLevel:
    """Return the road risk for ``signal``.

    Checks overlap, so the most severe tier is evaluated first and the first
    match wins. All thresholds are strict.
    """

    code = signal.weather_code
    if signal.wind_gust > 80 or signal.visibility < 0.5 or code in THUNDERSTORM_CODES:
        return RiskLevel.EXTREME
    if (
        signal.precipitation_intensity > 10
        or signal.wind_speed > 60
        or signal.wind_gust > 60
        or signal.visibility < 1
        or code in HAIL_CODES
    ):
        return RiskLevel.HIGH
    if (
        signal.precipitation_intensity > 2
        or signal.wind_speed > 40
        or signal.visibility < 3
        or code in SNOW_CODES
    ):
        return RiskLevel.MODERATE
    return RiskLevel.LOW


def highest(levels: Iterable[RiskLevel]) -> RiskLevel:
    result = RiskLevel.LOW
    for level in levels:
        if level.rank > result.rank:
            result = level
    return result


def overall_risk(segments: Iterable["RouteSegment"]) -> RiskLevel:
    """Most severe risk across ``segments``; ``low`` when there are none."""

    return highest(segment.weather.road_risk for segment in segments)


__all__ = [
    "HAIL_CODES",
    "RiskLevel",
    "SNOW_CODES",
    "THUNDERSTORM_CODES",
    "classify",
    "highest",
    "overall_risk",
]
