"""Spatial cache keys and risk adaptive expiry for weather payloads."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .entities import WeatherSignal
from .risk import RiskLevel

_TTL_BY_RISK = {
    RiskLevel.EXTREME: timedelta(minutes=2),
    RiskLevel.HIGH: timedelta(minutes=5),
    RiskLevel.MODERATE: timedelta(minutes=10),
    RiskLevel.LOW: timedelta(minutes=15),
}


def _grid(value: float) -> str:
    # Half-up rounding to two decimals, ~1.1 km cells.
    snapped = math.floor(value * 100 + 0.5) / 100
    text = f"{snapped:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def cache_key(latitude: float, longitude: float) -> str:
    """Grid key shared by every coordinate that rounds to the same cell."""

    return f"{_grid(latitude)}:{_grid(longitude)}"


def ttl_for(risk: RiskLevel) -> timedelta:
    """Riskier conditions change faster and expire sooner."""

    return _TTL_BY_RISK[RiskLevel(risk)]


@dataclass(frozen=True)
class CacheEntry:
    key: str
    payload: WeatherSignal
    source: str
    fetched_at: datetime
    expires_at: datetime

    @classmethod
    def create(
        cls, latitude: float, longitude: float, payload: WeatherSignal, source: str, fetched_at: datetime
    ) -> "CacheEntry":
        return cls(
            key=cache_key(latitude, longitude),
            payload=payload,
            source=source,
            fetched_at=fetched_at,
            expires_at=fetched_at + ttl_for(payload.road_risk),
        )

    @property
    def ttl(self) -> timedelta:
        return self.expires_at - self.fetched_at

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at


__all__ = ["CacheEntry", "cache_key", "ttl_for"]
