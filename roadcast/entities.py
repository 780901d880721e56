from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .risk import RiskLevel, classify


class PrecipitationType(str, Enum):
    NONE = "none"
    RAIN = "rain"
    SNOW = "snow"
    HAIL = "hail"


class Feature(str, Enum):
    CURRENT = "current"
    FORECAST = "forecast"
    ALERTS = "alerts"
    HISTORICAL = "historical"


@dataclass(frozen=True)
class WeatherSignal:
    """Normalized weather conditions at one place and time.

    Units are shared by every provider:
    - temperature in Celsius
    - wind speed and gusts in km/h
    - visibility in kilometres
    - precipitation intensity in mm/h

    ``road_risk`` is not a constructor argument; it is derived from the other
    fields every time a signal is built.
    """

    temperature: float = 0.0
    humidity: float = 0.0
    wind_speed: float = 0.0
    wind_gust: float = 0.0
    visibility: float = 10.0
    precipitation_intensity: float = 0.0
    precipitation_type: PrecipitationType = PrecipitationType.NONE
    weather_code: int = 1000
    uv_index: float = 0.0
    cloud_cover: float = 0.0
    road_risk: RiskLevel = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "precipitation_type", PrecipitationType(self.precipitation_type))
        object.__setattr__(self, "road_risk", classify(self))

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["precipitation_type"] = self.precipitation_type.value
        payload["road_risk"] = self.road_risk.value
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "WeatherSignal":
        values = {key: value for key, value in payload.items() if key != "road_risk"}
        return cls(**values)


@dataclass(frozen=True)
class RoutePoint:
    latitude: float
    longitude: float
    km: float = 0.0


@dataclass(frozen=True)
class RouteSegment:
    point: RoutePoint
    weather: WeatherSignal

    @property
    def km(self) -> float:
        return self.point.km

    @property
    def latitude(self) -> float:
        return self.point.latitude

    @property
    def longitude(self) -> float:
        return self.point.longitude

    def as_dict(self) -> Dict[str, Any]:
        return {
            "km": self.km,
            "lat": self.latitude,
            "lng": self.longitude,
            "weather": self.weather.as_dict(),
        }


@dataclass(frozen=True)
class ProviderConfig:
    name: str
    daily_limit: int
    priority: int
    supported_features: FrozenSet[Feature] = frozenset()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("provider name must be provided")
        if self.daily_limit <= 0:
            raise ValueError("daily_limit must be positive")
        object.__setattr__(
            self, "supported_features", frozenset(Feature(f) for f in self.supported_features)
        )

    def supports(self, feature: Feature) -> bool:
        return feature in self.supported_features


@dataclass(frozen=True)
class QuotaRecord:
    date: date
    provider: str
    endpoint: str
    call_count: int


@dataclass(frozen=True)
class QuotaStatus:
    used: int
    remaining: int
    exceeded: bool


@dataclass(frozen=True)
class WeatherEvent:
    id: str
    type: str
    severity: str
    title: str
    description: str
    start_time: datetime
    end_time: datetime

    def __post_init__(self) -> None:
        if self.start_time > self.end_time:
            raise ValueError("start_time must not be after end_time")

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["start_time"] = self.start_time.isoformat()
        payload["end_time"] = self.end_time.isoformat()
        return payload


@dataclass(frozen=True)
class ForecastHour:
    time: datetime
    weather: WeatherSignal


@dataclass(frozen=True)
class Timelines:
    current: WeatherSignal
    hourly: List[ForecastHour] = field(default_factory=list)
    provider: Optional[str] = None


@dataclass(frozen=True)
class RouteAnalysis:
    segments: List[RouteSegment]
    overall_risk: RiskLevel
    providers: Tuple[str, ...] = ()
    skipped_points: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "segments": [segment.as_dict() for segment in self.segments],
            "overall_risk": self.overall_risk.value,
            "providers": list(self.providers),
            "skipped_points": self.skipped_points,
        }


@dataclass(frozen=True)
class EventsResult:
    events: Sequence[WeatherEvent]
    provider: Optional[str] = None


@dataclass(frozen=True)
class ProviderStatus:
    name: str
    available: bool
    remaining_calls: int
    daily_limit: int
    priority: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "EventsResult",
    "Feature",
    "ForecastHour",
    "PrecipitationType",
    "ProviderConfig",
    "ProviderStatus",
    "QuotaRecord",
    "QuotaStatus",
    "RouteAnalysis",
    "RoutePoint",
    "RouteSegment",
    "Timelines",
    "WeatherEvent",
    "WeatherSignal",
]
