"""
Users Data Source - JSONPlaceholder users adapter.

No authentication required.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

import aiohttp

from core.cancellation import CancellationToken
from core.clock import ClockProtocol
from data_sources.base import BaseDataSource
from data_sources.config import SourceEndpointConfig
from data_sources.exceptions import NormalizationError
from data_sources.models import DataItem, SourceMetadata


logger = logging.getLogger(__name__)


class UsersSource(BaseDataSource):
    """
    JSONPlaceholder users data source.

    Endpoints used:
    - /users - All users

    Only the first MAX_USERS users are kept. Each later user is
    stamped 10 minutes further in the past and 10 points less
    relevant, starting at 75.
    """

    MAX_USERS = 3
    BASE_RELEVANCE = 75
    RELEVANCE_STEP = 10
    MINUTES_STEP = 10

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
        return "Users"

    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        return SourceMetadata(
            name=self.name,
            display_name="Users Directory",
            base_url=self._config.base_url,
            requires_auth=False,
            documentation_url="https://jsonplaceholder.typicode.com/guide/",
            max_items=self.MAX_USERS,
            tags=["users", "directory"],
        )

    async def fetch_raw(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch the user list."""
        return await self._make_request("GET", f"{self._config.base_url}/users")

    def normalize(self, raw_data: Any) -> list[DataItem]:
        """Normalize the user list."""
        if not isinstance(raw_data, list):
            raise NormalizationError(
                message="Expected a JSON array",
                source_name=self.name,
                raw_data=raw_data,
            )

        now = self._clock.now()
        result = []
        for index, user in enumerate(raw_data[:self.MAX_USERS]):
            try:
                company = user.get("company") or {}
                address = user.get("address") or {}
                result.append(DataItem(
                    source=self.name,
                    id=str(int(user["id"])),
                    title=user.get("name") or "",
                    description=f"User: {user['username']}",
                    category="User",
                    timestamp=now - timedelta(minutes=index * self.MINUTES_STEP),
                    relevance_score=self.BASE_RELEVANCE - index * self.RELEVANCE_STEP,
                    extra={
                        "Email": user.get("email") or "",
                        "Company": company.get("name") or "",
                        "City": address.get("city") or "",
                    },
                ))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise NormalizationError(
                    message=f"Failed to normalize user at position {index}: {e}",
                    source_name=self.name,
                    raw_data=user,
                    original_error=e,
                ) from e

        return result
