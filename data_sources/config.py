"""
Data Sources - Endpoint Configuration.

Base URL, credentials and enabled flag for every external provider.

Configuration can be loaded from:
- Default values
- Environment variables (AGGREGATOR_<SOURCE>_...)
- A mapping (the `sources` section of the YAML config)
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional
import logging


logger = logging.getLogger(__name__)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SourceEndpointConfig:
    """Connection settings for one external provider."""
    base_url: str
    api_key: str = ""
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty")
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_env(cls, prefix: str, default_base_url: str) -> "SourceEndpointConfig":
        """
        Load endpoint settings from environment variables.

        Reads <prefix>_BASE_URL, <prefix>_API_KEY and <prefix>_ENABLED.
        """
        enabled = os.getenv(f"{prefix}_ENABLED")
        return cls(
            base_url=os.getenv(f"{prefix}_BASE_URL") or default_base_url,
            api_key=os.getenv(f"{prefix}_API_KEY", ""),
            enabled=_env_bool(enabled) if enabled else True,
        )

    @classmethod
    def from_dict(
        cls,
        data: Optional[dict[str, Any]],
        default_base_url: str,
    ) -> "SourceEndpointConfig":
        data = data or {}
        return cls(
            base_url=data.get("base_url") or default_base_url,
            api_key=data.get("api_key", "") or "",
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary. The API key is masked."""
        return {
            "base_url": self.base_url,
            "api_key": "***" if self.api_key else "",
            "enabled": self.enabled,
        }


DEFAULT_NEWS_URL = "https://newsapi.org"
DEFAULT_WEATHER_URL = "https://api.openweathermap.org"
DEFAULT_USERS_URL = "https://jsonplaceholder.typicode.com"


@dataclass
class SourcesConfig:
    """Settings for the built-in News, Weather and Users providers."""
    news: SourceEndpointConfig = field(
        default_factory=lambda: SourceEndpointConfig(base_url=DEFAULT_NEWS_URL)
    )
    weather: SourceEndpointConfig = field(
        default_factory=lambda: SourceEndpointConfig(base_url=DEFAULT_WEATHER_URL)
    )
    users: SourceEndpointConfig = field(
        default_factory=lambda: SourceEndpointConfig(base_url=DEFAULT_USERS_URL)
    )
    weather_city: str = "London"

    @classmethod
    def from_env(cls) -> "SourcesConfig":
        """
        Load provider settings from environment variables.

        Environment variables:
        - AGGREGATOR_NEWS_BASE_URL / _API_KEY / _ENABLED
        - AGGREGATOR_WEATHER_BASE_URL / _API_KEY / _ENABLED
        - AGGREGATOR_USERS_BASE_URL / _API_KEY / _ENABLED
        - AGGREGATOR_WEATHER_CITY
        """
        return cls(
            news=SourceEndpointConfig.from_env("AGGREGATOR_NEWS", DEFAULT_NEWS_URL),
            weather=SourceEndpointConfig.from_env("AGGREGATOR_WEATHER", DEFAULT_WEATHER_URL),
            users=SourceEndpointConfig.from_env("AGGREGATOR_USERS", DEFAULT_USERS_URL),
            weather_city=os.getenv("AGGREGATOR_WEATHER_CITY") or "London",
        )

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SourcesConfig":
        data = data or {}
        return cls(
            news=SourceEndpointConfig.from_dict(data.get("news"), DEFAULT_NEWS_URL),
            weather=SourceEndpointConfig.from_dict(data.get("weather"), DEFAULT_WEATHER_URL),
            users=SourceEndpointConfig.from_dict(data.get("users"), DEFAULT_USERS_URL),
            weather_city=data.get("weather_city") or "London",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "news": self.news.to_dict(),
            "weather": self.weather.to_dict(),
            "users": self.users.to_dict(),
            "weather_city": self.weather_city,
        }
