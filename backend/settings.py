"""Django settings for the weather aggregation API."""
from __future__ import annotations

from pathlib import Path
import os
from datetime import timezone

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def env(name: str, default: str | None = None) -> str:
    """Fetch environment variables while allowing explicit defaults."""

    value = os.environ.get(name, default)
    if value is None:
        raise ImproperlyConfigured(f"Environment variable {name} is required")
    return value


SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "backend.api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "backend.urls"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
    }
}

REDIS_URL = os.environ.get("REDIS_URL")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "weather-local",
        }
    }

WEATHER_CACHE_ALIAS = os.environ.get("WEATHER_CACHE_ALIAS", "default")

# Providers ------------------------------------------------------------------
TOMORROW_IO_API_KEY = env("TOMORROW_IO_API_KEY", "")
TOMORROW_IO_DAILY_LIMIT = int(os.environ.get("TOMORROW_IO_DAILY_LIMIT", "500"))
OPEN_WEATHER_API_KEY = env("OPEN_WEATHER_API_KEY", "")
OPEN_WEATHER_DAILY_LIMIT = int(os.environ.get("OPEN_WEATHER_DAILY_LIMIT", "1000"))

WEATHER_STRATEGY = os.environ.get("WEATHER_STRATEGY", "cost_optimized")
WEATHER_EVENTS_PROVIDER = os.environ.get("WEATHER_EVENTS_PROVIDER", "tomorrow")
WEATHER_REQUEST_TIMEOUT = float(os.environ.get("WEATHER_REQUEST_TIMEOUT", "5"))
WEATHER_REQUEST_RETRIES = int(os.environ.get("WEATHER_REQUEST_RETRIES", "0"))

# "cache" uses CACHES[WEATHER_CACHE_ALIAS], "database" the api_usage table.
WEATHER_QUOTA_BACKEND = os.environ.get("WEATHER_QUOTA_BACKEND", "cache")
WEATHER_QUOTA_DATABASE_URL = os.environ.get("WEATHER_QUOTA_DATABASE_URL")

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "roadcast": {"handlers": ["console"], "level": os.environ.get("WEATHER_LOG_LEVEL", "INFO")},
        "backend": {"handlers": ["console"], "level": os.environ.get("WEATHER_LOG_LEVEL", "INFO")},
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True
DEFAULT_TIMEZONE = timezone.utc
