"""
Weather Data Source - Current conditions adapter.

Implements current-weather fetching from an OpenWeatherMap-compatible
endpoint. Requires an API key.
"""

import logging
from typing import Any, Optional

import aiohttp

from core.cancellation import CancellationToken
from core.clock import ClockProtocol
from data_sources.base import BaseDataSource
from data_sources.config import SourceEndpointConfig
from data_sources.exceptions import ConfigurationError, NormalizationError
from data_sources.models import DataItem, SourceMetadata


logger = logging.getLogger(__name__)


class WeatherSource(BaseDataSource):
    """
    OpenWeatherMap-style current weather data source.

    Endpoints used:
    - /data/2.5/weather - Current conditions for one city

    Produces at most one item per fetch.
    """

    RELEVANCE = 85

    def __init__(
        self,
        config: SourceEndpointConfig,
        city: str = "London",
        timeout: float = BaseDataSource.DEFAULT_TIMEOUT,
        max_retries: int = BaseDataSource.MAX_RETRIES,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        super().__init__(
            enabled=config.enabled,
            timeout=timeout,
            max_retries=max_retries,
            session=session,
            clock=clock,
        )
        self._config = config
        self._city = city

    @property
    def name(self) -> str:
        """Unique identifier."""
        return "Weather"

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name=f"Weather ({self._city})",
            base_url=self._config.base_url,
            requires_auth=True,
            documentation_url="https://openweathermap.org/current",
            max_items=1,
            tags=["weather"],
        )

    async def fetch_raw(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch current weather."""
        if not self._config.api_key:
            raise ConfigurationError(
                message="API key is not configured",
                source_name=self.name,
                config_key="AGGREGATOR_WEATHER_API_KEY",
            )

        url = f"{self._config.base_url}/data/2.5/weather"
        params = {"q": self._city, "appid": self._config.api_key}
        return await self._make_request("GET", url, params=params)

    def normalize(self, raw_data: Any) -> list[DataItem]:
        """Normalize the current weather payload."""
        if not isinstance(raw_data, dict):
            raise NormalizationError(
                message="Expected a JSON object",
                source_name=self.name,
                raw_data=raw_data,
            )

        conditions = raw_data.get("weather") or []
        if not conditions:
            return []

        try:
            condition = conditions[0]
            main = raw_data["main"]
            return [DataItem(
                source=self.name,
                id=str(int(raw_data["id"])),
                title=f"Weather in {raw_data['name']}",
                description=condition.get("description") or "",
                category="Weather",
                timestamp=self._clock.now(),
                relevance_score=self.RELEVANCE,
                extra={
                    "Temperature": f"{float(main['temp']):.1f}",
                    "Humidity": str(int(main["humidity"])),
                    "Condition": condition.get("main") or "",
                },
            )]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise NormalizationError(
                message=f"Failed to normalize weather: {e}",
                source_name=self.name,
                raw_data=raw_data,
                original_error=e,
            ) from e
