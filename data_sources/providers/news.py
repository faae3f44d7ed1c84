"""
News Data Source - Top headlines adapter.

Implements headline fetching from a NewsAPI-compatible endpoint.
Requires an API key.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

import aiohttp

from core.cancellation import CancellationToken
from core.clock import ClockProtocol
from data_sources.base import BaseDataSource
from data_sources.config import SourceEndpointConfig
from data_sources.exceptions import ConfigurationError, NormalizationError
from data_sources.models import DataItem, SourceMetadata


logger = logging.getLogger(__name__)


class NewsSource(BaseDataSource):
    """
    NewsAPI-style headlines data source.

    Endpoints used:
    - /v2/top-headlines - Top headlines for one country

    Only the first MAX_ARTICLES articles are kept; relevance
    decreases by 5 per position starting at 90.
    """

    COUNTRY = "us"
    MAX_ARTICLES = 5
    BASE_RELEVANCE = 90
    RELEVANCE_STEP = 5

    def __init__(
        self,
        config: SourceEndpointConfig,
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

    @property
    def name(self) -> str:
        """Unique identifier."""
        return "News"

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name="News Headlines",
            base_url=self._config.base_url,
            requires_auth=True,
            documentation_url="https://newsapi.org/docs/endpoints/top-headlines",
            max_items=self.MAX_ARTICLES,
            tags=["news", "headlines"],
        )

    async def fetch_raw(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch top headlines."""
        if not self._config.api_key:
            raise ConfigurationError(
                message="API key is not configured",
                source_name=self.name,
                config_key="AGGREGATOR_NEWS_API_KEY",
            )

        url = f"{self._config.base_url}/v2/top-headlines"
        params = {"country": self.COUNTRY, "apiKey": self._config.api_key}
        return await self._make_request("GET", url, params=params)

    def normalize(self, raw_data: Any) -> list[DataItem]:
        """Normalize the headlines payload."""
        if not isinstance(raw_data, dict):
            raise NormalizationError(
                message="Expected a JSON object",
                source_name=self.name,
                raw_data=raw_data,
            )

        articles = raw_data.get("articles") or []
        try:
            return [
                self._normalize_article(article, index)
                for index, article in enumerate(articles[:self.MAX_ARTICLES])
            ]
        except (AttributeError, TypeError, ValueError) as e:
            raise NormalizationError(
                message=f"Failed to normalize articles: {e}",
                source_name=self.name,
                raw_data=raw_data,
                field_name="articles",
                original_error=e,
            ) from e

    def _normalize_article(self, article: dict[str, Any], index: int) -> DataItem:
        published_at = article.get("publishedAt")
        timestamp = (
            datetime.fromisoformat(published_at.replace("Z", "+00:00"))
            if published_at else self._clock.now()
        )

        return DataItem(
            source=self.name,
            id=str(uuid.uuid4()),
            title=article.get("title") or "",
            description=article.get("description") or "",
            category="News",
            timestamp=timestamp,
            relevance_score=self.BASE_RELEVANCE - index * self.RELEVANCE_STEP,
            extra={
                "Author": article.get("author") or "Unknown",
                "Url": article.get("url") or "",
            },
        )
