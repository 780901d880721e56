"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import (
    AlertsView,
    CurrentWeatherView,
    ForecastView,
    RouteAnalysisView,
    RouteUpdatesView,
    UsageStatsView,
)

urlpatterns = [
    path("weather/current", CurrentWeatherView.as_view(), name="weather-current"),
    path("weather/forecast", ForecastView.as_view(), name="weather-forecast"),
    path("weather/alerts", AlertsView.as_view(), name="weather-alerts"),
    path("weather/route", RouteAnalysisView.as_view(), name="weather-route"),
    path("weather/route-updates", RouteUpdatesView.as_view(), name="weather-route-updates"),
    path("weather/usage", UsageStatsView.as_view(), name="weather-usage"),
]
