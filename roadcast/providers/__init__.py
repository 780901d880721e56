from .base import RequestConfig, WeatherProvider
from .openweather import OpenWeatherProvider
from .tomorrow import TomorrowIoProvider

__all__ = ["OpenWeatherProvider", "RequestConfig", "TomorrowIoProvider", "WeatherProvider"]
