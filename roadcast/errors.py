from __future__ import annotations

from typing import List, Optional, Sequence


class WeatherError(RuntimeError):
    """Base error for the weather aggregation engine."""


class ProviderRequestError(WeatherError):
    """A single provider failed (network, HTTP status or payload parsing)."""


class QuotaExceededError(WeatherError):
    """Raised when the daily call budget leaves no provider to ask."""


class AllProvidersFailedError(WeatherError):
    """Raised when every provider in the fallback chain failed."""

    def __init__(self, message: str, errors: Optional[Sequence[Exception]] = None) -> None:
        super().__init__(message)
        self.errors: List[Exception] = list(errors or ())

    @property
    def last_error(self) -> Optional[Exception]:
        return self.errors[-1] if self.errors else None


class PartialDataWarning(UserWarning):
    """Some route points could not be fetched; results are incomplete."""


__all__ = [
    "AllProvidersFailedError",
    "PartialDataWarning",
    "ProviderRequestError",
    "QuotaExceededError",
    "WeatherError",
]
