"""OpenWeather free tier provider (current weather + 3 hour forecast)."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from .base import WeatherProvider, safe_float
from ..entities import Feature, ForecastHour, PrecipitationType, ProviderConfig, Timelines, WeatherEvent, WeatherSignal
from ..errors import ProviderRequestError

DAILY_LIMIT = 1000


def precipitation_type(code: int, intensity: float) -> PrecipitationType:
    """Map an OpenWeather condition id to a precipitation type."""

    if 600 <= code < 700:
        return PrecipitationType.SNOW
    if 200 <= code < 600:
        return PrecipitationType.RAIN
    return PrecipitationType.RAIN if intensity > 0 else PrecipitationType.NONE


def _ms_to_kmh(value: float) -> float:
    return value * 3.6


def _parse_block(data: Mapping[str, Any], intensity: float, uv_index: float) -> WeatherSignal:
    weather = data.get("weather") or [{}]
    code = int(safe_float(weather[0].get("id"), 800))
    main = data.get("main") or {}
    wind = data.get("wind") or {}
    speed = safe_float(wind.get("speed"))
    return WeatherSignal(
        temperature=safe_float(main.get("temp")),
        humidity=safe_float(main.get("humidity")),
        wind_speed=_ms_to_kmh(speed),
        wind_gust=_ms_to_kmh(safe_float(wind.get("gust"), speed)),
        visibility=safe_float(data.get("visibility"), 10000.0) / 1000,
        precipitation_intensity=intensity,
        precipitation_type=precipitation_type(code, intensity),
        weather_code=code,
        uv_index=uv_index,
        cloud_cover=safe_float((data.get("clouds") or {}).get("all")),
    )


def parse_current(data: Mapping[str, Any]) -> WeatherSignal:
    rain = data.get("rain") or {}
    snow = data.get("snow") or {}
    intensity = safe_float(rain.get("1h", snow.get("1h")))
    return _parse_block(data, intensity, safe_float(data.get("uvi")))


def parse_forecast_item(item: Mapping[str, Any]) -> WeatherSignal:
    rain = item.get("rain") or {}
    snow = item.get("snow") or {}
    # Forecast precipitation is accumulated over 3 hours.
    intensity = safe_float(rain.get("3h", snow.get("3h"))) / 3
    return _parse_block(item, intensity, 0.0)


class OpenWeatherProvider(WeatherProvider):
    """Secondary source. Each timeline costs two calls and alerts need a paid plan."""

    base_url = "https://api.openweathermap.org/data/2.5"
    calls_per_point = 2
    default_config = ProviderConfig(
        name="openweather",
        daily_limit=DAILY_LIMIT,
        priority=2,
        supported_features=frozenset({Feature.CURRENT, Feature.FORECAST}),
    )

    def __init__(self, api_key: str = "", base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url

    def _fetch_timelines(self, latitude: float, longitude: float, hours: int) -> Timelines:
        params = {"lat": latitude, "lon": longitude, "units": "metric", "appid": self.api_key}
        current_response = self._request("weather", "GET", f"{self.base_url}/weather", params=params)
        forecast_params = dict(params, cnt=max(1, math.ceil(hours / 3)))
        forecast_response = self._request("forecast", "GET", f"{self.base_url}/forecast", params=forecast_params)

        current_data = self._json(current_response)
        forecast_data = self._json(forecast_response)
        try:
            current = parse_current(current_data)
            hourly = [
                ForecastHour(time=_item_time(item), weather=parse_forecast_item(item))
                for item in forecast_data.get("list") or []
            ]
        except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
            self._log.error("Unexpected OpenWeather payload", exc_info=exc)
            raise ProviderRequestError(f"{self.name} returned an unexpected payload") from exc
        return Timelines(current=current, hourly=hourly, provider=self.name)

    def _fetch_events(self, latitude: float, longitude: float, radius_km: float) -> List[WeatherEvent]:
        self._log.warning("OpenWeather alerts require a paid plan, returning no events")
        return []


def _item_time(item: Mapping[str, Any]) -> datetime:
    text = item.get("dt_txt")
    if text:
        return datetime.strptime(text, "%Y-%m-%d %H:%M:%S").replace(tzinfo=timezone.utc)
    return datetime.fromtimestamp(int(item["dt"]), tz=timezone.utc)


__all__ = ["OpenWeatherProvider", "parse_current", "parse_forecast_item", "precipitation_type"]
