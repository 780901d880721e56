"""Quota aware weather aggregation for route and alert handlers."""
from .entities import RoutePoint, WeatherSignal
from .factory import SelectionOptions, WeatherFactory
from .risk import RiskLevel, classify

__all__ = ["RiskLevel", "RoutePoint", "SelectionOptions", "WeatherFactory", "WeatherSignal", "classify"]
