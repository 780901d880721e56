"""Management command to fetch weather using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api import views
from roadcast.errors import WeatherError


class Command(BaseCommand):
    help = "Fetch a forecast for the provided coordinates or print today's API usage"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--lat", type=float, help="Latitude")
        parser.add_argument("--lon", type=float, help="Longitude")
        parser.add_argument("--hours", type=int, default=1, help="Forecast hours (1-24)")
        parser.add_argument("--usage", action="store_true", help="Print provider quota usage instead")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        factory = views.get_weather_factory()
        if options.get("usage"):
            payload = {
                "providers": [item.as_dict() for item in factory.get_providers_status()],
                "total_remaining": factory.get_total_remaining_calls(),
            }
            self.stdout.write(json.dumps(payload))
            return

        latitude = options.get("lat")
        longitude = options.get("lon")
        if latitude is None or longitude is None:
            raise CommandError("--lat and --lon are required unless using --usage")
        hours = options.get("hours") or 1
        if not 1 <= hours <= 24:
            raise CommandError("--hours must be between 1 and 24")

        try:
            timelines = factory.get_timelines(latitude, longitude, hours=hours)
        except WeatherError as exc:
            raise CommandError("All weather providers failed") from exc

        self.stdout.write(json.dumps(views.serialize_timelines(timelines)))
