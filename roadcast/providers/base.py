from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..entities import Feature, ProviderConfig, QuotaStatus, RouteAnalysis, RoutePoint, Timelines, WeatherEvent
from ..errors import ProviderRequestError, QuotaExceededError
from ..events import derive_events
from ..quota import QuotaTracker
from ..route import analyze_points


@dataclass
class RequestConfig:
    timeout: float = 5.0
    retries: int = 0
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (500, 502, 503, 504)


class WeatherProvider:
    """Quota aware adapter for one external weather source.

    Subclasses set ``default_config`` and implement ``_fetch_timelines``.
    Every upstream HTTP call is counted against the provider's daily budget
    under its endpoint name.
    """

    default_config: ProviderConfig
    calls_per_point = 1

    def __init__(
        self,
        *,
        quota: Optional[QuotaTracker] = None,
        config: Optional[ProviderConfig] = None,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.config = config or self.default_config
        self.quota = quota or QuotaTracker()
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(self.__class__.__name__)

    @property
    def name(self) -> str:
        return self.config.name

    # Quota --------------------------------------------------------------
    def quota_status(self) -> QuotaStatus:
        return self.quota.check_availability(self.name, self.config.daily_limit)

    def is_available(self) -> bool:
        return not self.quota_status().exceeded

    def get_remaining_calls(self) -> int:
        return self.quota_status().remaining

    def supports(self, feature: Feature) -> bool:
        return self.config.supports(feature)

    def _ensure_quota(self) -> None:
        if self.quota_status().exceeded:
            raise QuotaExceededError(f"{self.name} daily API limit exceeded")

    # Public API ---------------------------------------------------------
    def get_timelines(self, latitude: float, longitude: float, hours: int = 12) -> Timelines:
        self._ensure_quota()
        return self._fetch_timelines(latitude, longitude, hours)

    def get_events(self, latitude: float, longitude: float, radius_km: float = 50) -> List[WeatherEvent]:
        self._ensure_quota()
        return self._fetch_events(latitude, longitude, radius_km)

    def analyze_route(self, points: Sequence[RoutePoint]) -> RouteAnalysis:
        return analyze_points(self, points)

    # Hooks --------------------------------------------------------------
    def _fetch_timelines(self, latitude: float, longitude: float, hours: int) -> Timelines:
        raise NotImplementedError

    def _fetch_events(self, latitude: float, longitude: float, radius_km: float) -> List[WeatherEvent]:
        timelines = self._fetch_timelines(latitude, longitude, 24)
        return derive_events(timelines.hourly)

    # HTTP ---------------------------------------------------------------
    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        if config.retries:
            retry = Retry(
                total=config.retries,
                backoff_factor=config.backoff_factor,
                status_forcelist=tuple(config.status_forcelist),
                allowed_methods=None,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        return session

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("Quota exceeded: %s", response.text)
            raise QuotaExceededError(f"{self.name} rejected the request: quota exceeded")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text)
            raise ProviderRequestError(f"{self.name} HTTP {response.status_code}")
        return response

    def _request(self, endpoint: str, method: str, url: str, **kwargs: Any) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request timed out", exc_info=exc)
            raise ProviderRequestError(f"{self.name} timeout") from exc
        except requests.RequestException as exc:
            self._log.error("Request failed", exc_info=exc)
            raise ProviderRequestError(f"{self.name} request failed") from exc
        self.quota.consume(self.name, endpoint)
        return self._handle_response(response)

    def _json(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON", exc_info=exc)
            raise ProviderRequestError(f"{self.name} returned invalid json") from exc


def safe_float(value: Optional[object], default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


__all__ = ["RequestConfig", "WeatherProvider", "safe_float"]
