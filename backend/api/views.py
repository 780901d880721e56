"""REST API views for weather, alerts and route analysis."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, List, Mapping, Optional

from django.conf import settings
from django.core.cache import caches
from django.core.exceptions import ImproperlyConfigured
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.core.models import SqlQuotaStore, configure_engine
from backend.core.quota import CacheQuotaStore
from backend.core.services.weather_service import CurrentWeather, WeatherServiceBridge
from roadcast.entities import RoutePoint, Timelines
from roadcast.errors import WeatherError
from roadcast.factory import SelectionOptions, WeatherFactory
from roadcast.providers import OpenWeatherProvider, RequestConfig, TomorrowIoProvider
from roadcast.quota import MemoryQuotaStore, QuotaTracker
from roadcast.route import interpolate_route, validate_route
from roadcast.trip import ANALYSIS_VALID_FOR, collect_route_alerts, route_updates


logger = logging.getLogger(__name__)

UNAVAILABLE = "Weather data is temporarily unavailable, try again later"


def build_quota_tracker() -> QuotaTracker:
    backend = settings.WEATHER_QUOTA_BACKEND
    if backend == "cache":
        return QuotaTracker(CacheQuotaStore(caches[settings.WEATHER_CACHE_ALIAS]))
    if backend == "database":
        return QuotaTracker(SqlQuotaStore(configure_engine(settings.WEATHER_QUOTA_DATABASE_URL)))
    if backend == "memory":
        return QuotaTracker(MemoryQuotaStore())
    raise ImproperlyConfigured(f"Unknown WEATHER_QUOTA_BACKEND {backend!r}")


@lru_cache(maxsize=1)
def get_weather_factory() -> WeatherFactory:
    quota = build_quota_tracker()
    request_config = RequestConfig(
        timeout=settings.WEATHER_REQUEST_TIMEOUT,
        retries=settings.WEATHER_REQUEST_RETRIES,
    )
    tomorrow = TomorrowIoProvider(
        api_key=settings.TOMORROW_IO_API_KEY,
        quota=quota,
        config=replace(TomorrowIoProvider.default_config, daily_limit=settings.TOMORROW_IO_DAILY_LIMIT),
        request_config=request_config,
    )
    openweather = OpenWeatherProvider(
        api_key=settings.OPEN_WEATHER_API_KEY,
        quota=quota,
        config=replace(OpenWeatherProvider.default_config, daily_limit=settings.OPEN_WEATHER_DAILY_LIMIT),
        request_config=request_config,
    )
    return WeatherFactory(
        [tomorrow, openweather],
        default_strategy=settings.WEATHER_STRATEGY,
        events_provider=settings.WEATHER_EVENTS_PROVIDER,
    )


@lru_cache(maxsize=1)
def get_weather_service() -> WeatherServiceBridge:
    return WeatherServiceBridge(get_weather_factory(), caches[settings.WEATHER_CACHE_ALIAS])


# Serialization ---------------------------------------------------------------

def _isoformat(value: datetime) -> str:
    return value.astimezone(settings.DEFAULT_TIMEZONE).isoformat().replace("+00:00", "Z")


def serialize_current(result: CurrentWeather) -> dict:
    entry = result.entry
    return {
        "data": entry.payload.as_dict(),
        "source": entry.source,
        "cached": result.cached,
        "fetched_at": _isoformat(entry.fetched_at),
        "expires_at": _isoformat(entry.expires_at),
    }


def serialize_timelines(timelines: Timelines) -> dict:
    return {
        "current": timelines.current.as_dict(),
        "hourly": [{"time": _isoformat(hour.time), "weather": hour.weather.as_dict()} for hour in timelines.hourly],
        "provider": timelines.provider,
    }


# Validation ------------------------------------------------------------------

class ValidationFailed(ValueError):
    pass


def _number(params: Mapping[str, Any], name: str, low: float, high: float, default: Optional[float] = None) -> float:
    raw = params.get(name)
    if raw is None or raw == "":
        if default is None:
            raise ValidationFailed(f"{name} is required")
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be a valid number") from None
    if not low <= value <= high:
        raise ValidationFailed(f"{name} must be between {low:g} and {high:g}")
    return value


def _coordinates(params: Mapping[str, Any], prefix: str = "") -> tuple[float, float]:
    return _number(params, f"{prefix}lat", -90, 90), _number(params, f"{prefix}lng", -180, 180)


def _flag(params: Mapping[str, Any], name: str) -> bool:
    raw = params.get(name)
    if raw is None or isinstance(raw, bool):
        return bool(raw)
    if isinstance(raw, str) and raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    raise ValidationFailed(f"{name} must be true or false")


def _options(params: Mapping[str, Any]) -> SelectionOptions:
    return SelectionOptions(strategy=params.get("strategy") or None, preferred=params.get("preferred_provider") or None)


def _route_points(body: Mapping[str, Any]) -> List[RoutePoint]:
    if body.get("points"):
        try:
            points = [
                RoutePoint(latitude=float(item["lat"]), longitude=float(item["lng"]), km=float(item.get("km", 0)))
                for item in body["points"]
            ]
        except (KeyError, TypeError, ValueError, AttributeError):
            raise ValidationFailed("points must be a list of {lat, lng, km} objects") from None
    elif body.get("origin") and body.get("destination"):
        try:
            origin, destination = body["origin"], body["destination"]
            points = interpolate_route(
                RoutePoint(latitude=float(origin["lat"]), longitude=float(origin["lng"])),
                RoutePoint(latitude=float(destination["lat"]), longitude=float(destination["lng"])),
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            raise ValidationFailed("origin and destination must be {lat, lng} objects") from None
    else:
        raise ValidationFailed("points or origin and destination are required")
    try:
        validate_route(points)
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from None
    return points


def _bad_request(exc: Exception) -> Response:
    return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _unavailable(exc: WeatherError) -> Response:
    logger.error("Weather request failed: %s", exc)
    return Response({"detail": UNAVAILABLE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)


# Views -------------------------------------------------------------------------

class WeatherAPIView(APIView):
    permission_classes = [AllowAny]


class CurrentWeatherView(WeatherAPIView):
    """Current conditions for a coordinate, served from the grid cache when fresh."""

    def get(self, request, *args, **kwargs):  # noqa: D401
        try:
            latitude, longitude = _coordinates(request.query_params)
            result = get_weather_service().get_current(latitude, longitude, options=_options(request.query_params))
        except ValidationFailed as exc:
            return _bad_request(exc)
        except WeatherError as exc:
            return _unavailable(exc)
        except ValueError as exc:
            return _bad_request(exc)
        return Response(serialize_current(result), status=status.HTTP_200_OK)


class ForecastView(WeatherAPIView):
    def get(self, request, *args, **kwargs):  # noqa: D401
        params = request.query_params
        try:
            latitude, longitude = _coordinates(params)
            hours = int(_number(params, "hours", 1, 24, default=12))
            timelines = get_weather_factory().get_timelines(latitude, longitude, hours=hours, options=_options(params))
        except ValidationFailed as exc:
            return _bad_request(exc)
        except WeatherError as exc:
            return _unavailable(exc)
        except ValueError as exc:
            return _bad_request(exc)
        payload = serialize_timelines(timelines)
        payload["fetched_at"] = _isoformat(datetime.now(timezone.utc))
        return Response(payload, status=status.HTTP_200_OK)


class AlertsView(WeatherAPIView):
    def get(self, request, *args, **kwargs):  # noqa: D401
        params = request.query_params
        try:
            latitude, longitude = _coordinates(params)
            radius_km = _number(params, "radius_km", 1, 200, default=50)
            result = get_weather_factory().get_events(latitude, longitude, radius_km, options=_options(params))
        except ValueError as exc:
            return _bad_request(exc)
        alerts = [event.as_dict() for event in result.events]
        return Response(
            {"alerts": alerts, "count": len(alerts), "provider": result.provider},
            status=status.HTTP_200_OK,
        )


class RouteAnalysisView(WeatherAPIView):
    """Analyze weather along a route given as points or as an origin/destination pair."""

    def post(self, request, *args, **kwargs):  # noqa: D401
        body = request.data if isinstance(request.data, Mapping) else {}
        factory = get_weather_factory()
        try:
            points = _route_points(body)
            if _flag(body, "hybrid"):
                analysis = factory.analyze_route_hybrid(points)
            else:
                analysis = factory.analyze_route(points, options=_options(body))
        except ValidationFailed as exc:
            return _bad_request(exc)
        except WeatherError as exc:
            return _unavailable(exc)
        except ValueError as exc:
            return _bad_request(exc)
        now = datetime.now(timezone.utc)
        payload = analysis.as_dict()
        payload["alerts"] = [event.as_dict() for event in collect_route_alerts(factory, points)]
        payload["analyzed_at"] = _isoformat(now)
        payload["valid_until"] = _isoformat(now + ANALYSIS_VALID_FOR)
        return Response(payload, status=status.HTTP_200_OK)


class RouteUpdatesView(WeatherAPIView):
    """Conditions around a driver on the way to ``destination``, with a polling hint."""

    def get(self, request, *args, **kwargs):  # noqa: D401
        params = request.query_params
        try:
            current = RoutePoint(*_coordinates(params, prefix="current_"))
            destination = RoutePoint(*_coordinates(params, prefix="destination_"))
            update = route_updates(get_weather_factory(), current, destination, options=_options(params))
        except ValidationFailed as exc:
            return _bad_request(exc)
        except WeatherError as exc:
            return _unavailable(exc)
        except ValueError as exc:
            return _bad_request(exc)
        payload = update.as_dict()
        payload["fetched_at"] = _isoformat(datetime.now(timezone.utc))
        return Response(payload, status=status.HTTP_200_OK)


class UsageStatsView(WeatherAPIView):
    def get(self, request, *args, **kwargs):  # noqa: D401
        factory = get_weather_factory()
        providers = factory.get_providers_status()
        return Response(
            {
                "date": datetime.now(timezone.utc).date().isoformat(),
                "providers": [item.as_dict() for item in providers],
                "total_remaining": factory.get_total_remaining_calls(),
                "total_daily_limit": sum(item.daily_limit for item in providers),
            },
            status=status.HTTP_200_OK,
        )
