"""Weather sampling along a travel route."""
from __future__ import annotations

import logging
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, List, Sequence, Tuple

from .entities import RouteAnalysis, RoutePoint, RouteSegment
from .errors import AllProvidersFailedError, PartialDataWarning, QuotaExceededError, WeatherError
from .risk import RiskLevel, overall_risk

if TYPE_CHECKING:  # pragma: no cover
    from .providers.base import WeatherProvider


logger = logging.getLogger(__name__)

MAX_ROUTE_POINTS = 10
HYBRID_SAMPLE_TARGET = 10
MAX_POINTS_PER_PROVIDER = 5
EARTH_RADIUS_KM = 6371.0


def sample_route(points: Sequence[RoutePoint], max_points: int) -> List[RoutePoint]:
    """Every ``ceil(len / max_points)``-th point, starting with the first."""

    if not points or max_points <= 0:
        return []
    stride = math.ceil(len(points) / max_points)
    return list(points[::stride])


def analyze_points(provider: "WeatherProvider", points: Sequence[RoutePoint]) -> RouteAnalysis:
    """Sequential single provider analysis bounded by the provider's quota.

    Points that fail to fetch are left out of the result. With no segments at
    all the overall risk falls back to ``low``.
    """

    if not points:
        return RouteAnalysis(segments=[], overall_risk=RiskLevel.LOW, providers=(provider.name,))

    status = provider.quota_status()
    if status.exceeded:
        raise QuotaExceededError(f"{provider.name} daily API limit exceeded")
    max_points = min(len(points), status.remaining // provider.calls_per_point, MAX_ROUTE_POINTS)
    if max_points <= 0:
        raise QuotaExceededError(f"{provider.name} API limit too low for route analysis")

    segments: List[RouteSegment] = []
    skipped = 0
    for point in sample_route(points, max_points):
        try:
            current = provider.get_timelines(point.latitude, point.longitude, hours=1).current
        except WeatherError as exc:
            logger.warning("%s: failed to get weather for point %skm: %s", provider.name, point.km, exc)
            skipped += 1
            continue
        segments.append(RouteSegment(point=point, weather=current))

    if skipped:
        warnings.warn(
            f"{provider.name}: {skipped} route point(s) could not be fetched",
            PartialDataWarning,
            stacklevel=2,
        )
    return RouteAnalysis(
        segments=segments,
        overall_risk=overall_risk(segments),
        providers=(provider.name,),
        skipped_points=skipped,
    )


def plan_hybrid(
    providers: Sequence["WeatherProvider"], sampled: Sequence[RoutePoint]
) -> List[Tuple["WeatherProvider", List[RoutePoint]]]:
    """Split ``sampled`` into contiguous slices, one per provider with quota.

    Providers are walked in the given order. The cursor advances by the
    number of points claimed, whatever the later fetch outcome.
    """

    plan: List[Tuple["WeatherProvider", List[RoutePoint]]] = []
    cursor = 0
    for provider in providers:
        if cursor >= len(sampled):
            break
        remaining = provider.get_remaining_calls()
        if remaining <= 0:
            continue
        claimed = min(MAX_POINTS_PER_PROVIDER, remaining, len(sampled) - cursor)
        plan.append((provider, list(sampled[cursor : cursor + claimed])))
        cursor += claimed
    return plan


def analyze_route_hybrid(providers: Sequence["WeatherProvider"], points: Sequence[RoutePoint]) -> RouteAnalysis:
    """Spread one route across several providers to diversify quota usage."""

    stride = max(1, len(points) // HYBRID_SAMPLE_TARGET)
    sampled = list(points[::stride])
    plan = plan_hybrid(providers, sampled)

    results: List[Tuple[str, RouteAnalysis]] = []
    if plan:
        with ThreadPoolExecutor(max_workers=len(plan), thread_name_prefix="route-hybrid") as executor:
            futures = [
                (provider.name, executor.submit(provider.analyze_route, chunk)) for provider, chunk in plan
            ]
            for name, future in futures:
                try:
                    results.append((name, future.result()))
                except WeatherError as exc:
                    logger.warning("Provider %s route analysis failed: %s", name, exc)

    segments: List[RouteSegment] = []
    used: List[str] = []
    skipped = 0
    for name, analysis in results:
        segments.extend(analysis.segments)
        skipped += analysis.skipped_points
        if analysis.segments and name not in used:
            used.append(name)

    if not segments:
        raise AllProvidersFailedError("Failed to analyze route with any provider")

    segments.sort(key=lambda segment: segment.km)
    return RouteAnalysis(
        segments=segments,
        overall_risk=overall_risk(segments),
        providers=tuple(used),
        skipped_points=skipped,
    )


def haversine_km(origin: RoutePoint, destination: RoutePoint) -> float:
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = lat2 - lat1
    d_lng = math.radians(destination.longitude - origin.longitude)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def interpolate_route(origin: RoutePoint, destination: RoutePoint, segments: int = 10) -> List[RoutePoint]:
    """Straight line route with ``segments + 1`` evenly spaced points."""

    if segments <= 0:
        raise ValueError("segments must be positive")
    total = haversine_km(origin, destination)
    points: List[RoutePoint] = []
    for index in range(segments + 1):
        ratio = index / segments
        points.append(
            RoutePoint(
                latitude=origin.latitude + (destination.latitude - origin.latitude) * ratio,
                longitude=origin.longitude + (destination.longitude - origin.longitude) * ratio,
                km=float(round(ratio * total)),
            )
        )
    return points


def validate_route(points: Sequence[RoutePoint]) -> None:
    previous = None
    for point in points:
        if not -90 <= point.latitude <= 90 or not -180 <= point.longitude <= 180:
            raise ValueError(f"coordinates out of range: {point.latitude}, {point.longitude}")
        if previous is not None and point.km < previous:
            raise ValueError("route points must be ordered by non-decreasing km")
        previous = point.km


__all__ = [
    "MAX_POINTS_PER_PROVIDER",
    "MAX_ROUTE_POINTS",
    "analyze_points",
    "analyze_route_hybrid",
    "haversine_km",
    "interpolate_route",
    "plan_hybrid",
    "sample_route",
    "validate_route",
]
