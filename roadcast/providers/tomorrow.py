from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

from .base import WeatherProvider, safe_float
from ..entities import Feature, ForecastHour, PrecipitationType, ProviderConfig, Timelines, WeatherSignal
from ..errors import ProviderRequestError

DAILY_LIMIT = 500

FIELDS = [
    "temperature",
    "humidity",
    "windSpeed",
    "windGust",
    "visibility",
    "precipitationIntensity",
    "weatherCode",
    "uvIndex",
    "cloudCover",
]

PRECIPITATION_BY_CODE = {
    4000: PrecipitationType.RAIN,  # drizzle
    4001: PrecipitationType.RAIN,
    4200: PrecipitationType.RAIN,
    4201: PrecipitationType.RAIN,
    5000: PrecipitationType.SNOW,
    5001: PrecipitationType.SNOW,  # flurries
    5100: PrecipitationType.SNOW,
    5101: PrecipitationType.SNOW,
    6000: PrecipitationType.RAIN,  # freezing drizzle
    6001: PrecipitationType.RAIN,
    6200: PrecipitationType.RAIN,
    6201: PrecipitationType.RAIN,
    7000: PrecipitationType.HAIL,  # ice pellets
    7101: PrecipitationType.HAIL,
    7102: PrecipitationType.HAIL,
}


def parse_values(values: Mapping[str, Any]) -> WeatherSignal:
    """Build a signal from a Tomorrow.io interval ``values`` block (metric units)."""

    code = int(safe_float(values.get("weatherCode"), 1000))
    intensity = safe_float(values.get("precipitationIntensity"))
    precipitation = PRECIPITATION_BY_CODE.get(code)
    if precipitation is None:
        precipitation = PrecipitationType.RAIN if intensity > 0 else PrecipitationType.NONE
    return WeatherSignal(
        temperature=safe_float(values.get("temperature")),
        humidity=safe_float(values.get("humidity")),
        wind_speed=safe_float(values.get("windSpeed")),
        wind_gust=safe_float(values.get("windGust")),
        visibility=safe_float(values.get("visibility"), 10.0),
        precipitation_intensity=intensity,
        precipitation_type=precipitation,
        weather_code=code,
        uv_index=safe_float(values.get("uvIndex")),
        cloud_cover=safe_float(values.get("cloudCover")),
    )


class TomorrowIoProvider(WeatherProvider):
    """Tomorrow.io timelines API; the preferred source and the only one with alerts."""

    base_url = "https://api.tomorrow.io/v4"
    default_config = ProviderConfig(
        name="tomorrow",
        daily_limit=DAILY_LIMIT,
        priority=1,
        supported_features=frozenset({Feature.CURRENT, Feature.FORECAST, Feature.ALERTS}),
    )

    def __init__(self, api_key: str = "", base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url

    def _fetch_timelines(self, latitude: float, longitude: float, hours: int) -> Timelines:
        end_time = datetime.now(timezone.utc) + timedelta(hours=hours)
        body = {
            "location": [latitude, longitude],
            "fields": FIELDS,
            "timesteps": ["current", "1h"],
            "endTime": end_time.isoformat().replace("+00:00", "Z"),
            "units": "metric",
        }
        headers = {"Content-Type": "application/json", "apikey": self.api_key}
        response = self._request("timelines", "POST", f"{self.base_url}/timelines", json=body, headers=headers)
        data = self._json(response)
        try:
            timelines = self._index_timelines(data)
            current_intervals = timelines.get("current", {}).get("intervals") or [{}]
            current = parse_values(current_intervals[0].get("values") or {})
            hourly = [
                ForecastHour(time=_parse_time(interval["startTime"]), weather=parse_values(interval.get("values") or {}))
                for interval in timelines.get("1h", {}).get("intervals") or []
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self._log.error("Unexpected timelines payload", exc_info=exc)
            raise ProviderRequestError(f"{self.name} returned an unexpected payload") from exc
        return Timelines(current=current, hourly=hourly, provider=self.name)

    def _index_timelines(self, data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        timelines = (data.get("data") or {}).get("timelines") or []
        return {timeline.get("timestep"): timeline for timeline in timelines}


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["TomorrowIoProvider", "parse_values"]
