"""Alerts along a route and periodic condition updates during a trip."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from .entities import RoutePoint, RouteSegment, WeatherEvent, WeatherSignal
from .errors import WeatherError
from .factory import SelectionOptions, WeatherFactory
from .risk import RiskLevel, highest
from .route import haversine_km


logger = logging.getLogger(__name__)

ALERT_SAMPLE_EVERY = 3
ROUTE_ALERT_RADIUS_KM = 20
UPDATE_ALERT_RADIUS_KM = 30
AHEAD_FRACTIONS = (0.25, 0.5)
ANALYSIS_VALID_FOR = timedelta(hours=1)
FAST_UPDATE_INTERVAL = timedelta(minutes=3)
SLOW_UPDATE_INTERVAL = timedelta(minutes=15)


def collect_route_alerts(
    factory: WeatherFactory,
    points: Sequence[RoutePoint],
    radius_km: float = ROUTE_ALERT_RADIUS_KM,
) -> List[WeatherEvent]:
    """Events near every third route point, first occurrence of each id kept."""

    alerts: Dict[str, WeatherEvent] = {}
    for point in points[::ALERT_SAMPLE_EVERY]:
        result = factory.get_events(point.latitude, point.longitude, radius_km)
        for event in result.events:
            alerts.setdefault(event.id, event)
    return list(alerts.values())


@dataclass(frozen=True)
class RouteUpdate:
    current: WeatherSignal
    provider: Optional[str]
    ahead: List[RouteSegment] = field(default_factory=list)
    alerts: List[WeatherEvent] = field(default_factory=list)
    next_update: timedelta = SLOW_UPDATE_INTERVAL

    def as_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current.as_dict(),
            "provider": self.provider,
            "ahead": [segment.as_dict() for segment in self.ahead],
            "alerts": [event.as_dict() for event in self.alerts],
            "next_update_ms": int(self.next_update.total_seconds() * 1000),
        }


def point_ahead(current: RoutePoint, destination: RoutePoint, fraction: float) -> RoutePoint:
    return RoutePoint(
        latitude=current.latitude + (destination.latitude - current.latitude) * fraction,
        longitude=current.longitude + (destination.longitude - current.longitude) * fraction,
        km=float(round(haversine_km(current, destination) * fraction)),
    )


def route_updates(
    factory: WeatherFactory,
    current: RoutePoint,
    destination: RoutePoint,
    options: Optional[SelectionOptions] = None,
) -> RouteUpdate:
    """Conditions at the driver's position and at a quarter and half of the way ahead.

    Points ahead that cannot be fetched are left out. Updates are due sooner
    when anything is high risk or an alert is active.
    """

    timelines = factory.get_timelines(current.latitude, current.longitude, hours=3, options=options)

    ahead: List[RouteSegment] = []
    for fraction in AHEAD_FRACTIONS:
        point = point_ahead(current, destination, fraction)
        try:
            weather = factory.get_timelines(point.latitude, point.longitude, hours=1, options=options).current
        except WeatherError as exc:
            logger.warning("Skipping point %skm ahead: %s", point.km, exc)
            continue
        ahead.append(RouteSegment(point=point, weather=weather))

    alerts = list(
        factory.get_events(current.latitude, current.longitude, UPDATE_ALERT_RADIUS_KM, options=options).events
    )

    worst = highest([timelines.current.road_risk, *(segment.weather.road_risk for segment in ahead)])
    urgent = worst.rank >= RiskLevel.HIGH.rank or bool(alerts)
    return RouteUpdate(
        current=timelines.current,
        provider=timelines.provider,
        ahead=ahead,
        alerts=alerts,
        next_update=FAST_UPDATE_INTERVAL if urgent else SLOW_UPDATE_INTERVAL,
    )


__all__ = [
    "ANALYSIS_VALID_FOR",
    "RouteUpdate",
    "collect_route_alerts",
    "point_ahead",
    "route_updates",
]
