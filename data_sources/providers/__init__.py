"""
Providers package - External data source implementations.
"""

from data_sources.providers.news import NewsSource
from data_sources.providers.users import UsersSource
from data_sources.providers.weather import WeatherSource


__all__ = [
    "NewsSource",
    "UsersSource",
    "WeatherSource",
]
