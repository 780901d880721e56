"""Provider selection and fallback across rate limited weather sources."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from .entities import EventsResult, Feature, ProviderStatus, RouteAnalysis, RoutePoint, Timelines
from .errors import AllProvidersFailedError, QuotaExceededError, WeatherError
from .providers.base import WeatherProvider
from .route import MAX_ROUTE_POINTS, analyze_route_hybrid


logger = logging.getLogger(__name__)

STRATEGY_PRIORITIES: Dict[str, Sequence[str]] = {
    # Tomorrow.io first: it has alerts and hourly data.
    "cost_optimized": ("tomorrow", "openweather"),
    "performance": ("tomorrow", "openweather"),
    # Moves the bulk of the load away from the smaller Tomorrow.io budget.
    "reliability": ("openweather", "tomorrow"),
}
DEFAULT_STRATEGY = "cost_optimized"
DEFAULT_EVENTS_PROVIDER = "tomorrow"


@dataclass(frozen=True)
class SelectionOptions:
    strategy: Optional[str] = None
    preferred: Optional[str] = None


class WeatherFactory:
    """Orders providers by strategy and quota and falls back between them.

    ``providers`` is an explicit ordered list; its order decides how hybrid
    route analysis splits work.
    """

    def __init__(
        self,
        providers: Sequence[WeatherProvider],
        *,
        strategies: Optional[Mapping[str, Sequence[str]]] = None,
        default_strategy: str = DEFAULT_STRATEGY,
        events_provider: str = DEFAULT_EVENTS_PROVIDER,
    ) -> None:
        self._providers: List[WeatherProvider] = list(providers)
        self._by_name: Dict[str, WeatherProvider] = {}
        for provider in self._providers:
            if provider.name in self._by_name:
                raise ValueError(f"duplicate provider {provider.name}")
            self._by_name[provider.name] = provider
        self.strategies = dict(strategies or STRATEGY_PRIORITIES)
        if default_strategy not in self.strategies:
            raise ValueError(f"unknown strategy {default_strategy}")
        self.default_strategy = default_strategy
        self.events_provider = events_provider

    @property
    def providers(self) -> List[WeatherProvider]:
        return list(self._providers)

    # Selection ----------------------------------------------------------
    def sorted_providers(self, strategy: Optional[str] = None, preferred: Optional[str] = None) -> List[WeatherProvider]:
        strategy = strategy or self.default_strategy
        try:
            order = self.strategies[strategy]
        except KeyError:
            raise ValueError(f"unknown strategy {strategy}") from None

        result: List[WeatherProvider] = []
        if preferred and preferred in self._by_name:
            candidate = self._by_name[preferred]
            if candidate.is_available():
                result.append(candidate)

        for name in order:
            if name == preferred:
                continue
            provider = self._by_name.get(name)
            if provider is not None and provider.is_available():
                result.append(provider)
        return result

    def best_provider(self, options: Optional[SelectionOptions] = None) -> WeatherProvider:
        options = options or SelectionOptions()
        providers = self.sorted_providers(options.strategy, options.preferred)
        if not providers:
            raise QuotaExceededError("No weather providers available. Daily limits may be exceeded.")
        return providers[0]

    get_provider = best_provider

    def provider_for_bulk(self, required_calls: int, options: Optional[SelectionOptions] = None) -> WeatherProvider:
        """First provider able to cover ``required_calls``, else the one with most left."""

        options = options or SelectionOptions()
        providers = self.sorted_providers(options.strategy, options.preferred)
        remaining = [(provider, provider.get_remaining_calls()) for provider in providers]

        for provider, left in remaining:
            if left >= required_calls:
                return provider

        best: Optional[WeatherProvider] = None
        most = 0
        for provider, left in remaining:
            if left > most:
                best, most = provider, left
        if best is None:
            raise QuotaExceededError("No weather providers available with sufficient API calls remaining.")
        return best

    # Status -------------------------------------------------------------
    def get_providers_status(self) -> List[ProviderStatus]:
        status = []
        for provider in self._providers:
            quota = provider.quota_status()
            status.append(
                ProviderStatus(
                    name=provider.name,
                    available=not quota.exceeded,
                    remaining_calls=quota.remaining,
                    daily_limit=provider.config.daily_limit,
                    priority=provider.config.priority,
                )
            )
        return sorted(status, key=lambda item: item.priority)

    def get_total_remaining_calls(self) -> int:
        return sum(provider.get_remaining_calls() for provider in self._providers)

    # Data ---------------------------------------------------------------
    def get_timelines(
        self,
        latitude: float,
        longitude: float,
        hours: int = 12,
        options: Optional[SelectionOptions] = None,
    ) -> Timelines:
        options = options or SelectionOptions()
        providers = self.sorted_providers(options.strategy, options.preferred)
        if not providers:
            raise QuotaExceededError("No weather providers available. Daily limits may be exceeded.")

        errors: List[Exception] = []
        for provider in providers:
            try:
                result = provider.get_timelines(latitude, longitude, hours=hours)
            except WeatherError as exc:
                logger.warning("Provider %s failed: %s", provider.name, exc)
                errors.append(exc)
                continue
            return Timelines(current=result.current, hourly=result.hourly, provider=provider.name)

        raise AllProvidersFailedError(f"All weather providers failed: {errors[-1]}", errors) from errors[-1]

    def get_events(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = 50,
        options: Optional[SelectionOptions] = None,
    ) -> EventsResult:
        """Alerts are optional enrichment: failures end in an empty result."""

        options = options or SelectionOptions()
        providers = self.sorted_providers(options.strategy, options.preferred or self.events_provider)
        alert_providers = [provider for provider in providers if provider.supports(Feature.ALERTS)]

        if not alert_providers:
            fallback = self._by_name.get(self.events_provider)
            if fallback is None:
                return EventsResult(events=[])
            try:
                return EventsResult(events=fallback.get_events(latitude, longitude, radius_km), provider=fallback.name)
            except WeatherError as exc:
                logger.warning("Default events provider %s failed: %s", fallback.name, exc)
                return EventsResult(events=[])

        for provider in alert_providers:
            try:
                events = provider.get_events(latitude, longitude, radius_km)
            except WeatherError as exc:
                logger.warning("Provider %s events failed: %s", provider.name, exc)
                continue
            return EventsResult(events=events, provider=provider.name)
        return EventsResult(events=[])

    def analyze_route(self, points: Sequence[RoutePoint], options: Optional[SelectionOptions] = None) -> RouteAnalysis:
        provider = self.provider_for_bulk(min(len(points), MAX_ROUTE_POINTS), options)
        return provider.analyze_route(points)

    def analyze_route_hybrid(self, points: Sequence[RoutePoint]) -> RouteAnalysis:
        return analyze_route_hybrid(self._providers, points)


__all__ = ["STRATEGY_PRIORITIES", "SelectionOptions", "WeatherFactory"]
