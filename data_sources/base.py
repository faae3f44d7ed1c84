"""
Base Data Source - Abstract interface for all external data providers.

All providers MUST implement this interface to ensure:
- Isolation
- Replaceability
- A single failure contract (every failure is a DataSourceError)
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from core.cancellation import CancellationToken, OperationCancelledError
from core.clock import ClockProtocol, SystemClock
from data_sources.exceptions import (
    DataSourceError,
    FetchError,
    RateLimitError,
    SourceCancelledError,
    SourceTimeoutError,
    SourceUnavailableError,
)
from data_sources.models import (
    DataItem,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
)


logger = logging.getLogger(__name__)


class BaseDataSource(ABC):
    """
    Abstract base class for all data sources.

    Each data source implementation must:
    1. Implement name - Unique, case-insensitive identifier
    2. Implement fetch_raw() - Get the raw payload from the provider
    3. Implement normalize() - Convert the payload to DataItems
    4. Implement metadata() - Return provider metadata

    Features:
    - Retry with exponential backoff on 5xx, 429 and connection errors
    - Cancellation observed between attempts and during backoff
    - Health tracking
    """

    # Configuration defaults (can be overridden by subclasses)
    DEFAULT_TIMEOUT = 10.0
    MAX_RETRIES = 3
    RETRY_BACKOFF_BASE = 2.0
    DEGRADED_THRESHOLD = 3  # consecutive failures before degraded
    UNAVAILABLE_THRESHOLD = 5  # consecutive failures before unavailable

    def __init__(
        self,
        enabled: bool = True,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_backoff_base: float = RETRY_BACKOFF_BASE,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[ClockProtocol] = None,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self._enabled = enabled
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff_base = retry_backoff_base
        self._session = session
        self._owns_session = session is None
        self._clock = clock or SystemClock()

        self._health = SourceHealth(
            status=SourceStatus.UNKNOWN,
            last_check=self._clock.now(),
        )
        self._request_count = 0
        self._success_count = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this data source."""
        pass

    @property
    def enabled(self) -> bool:
        return self._enabled

    @abstractmethod
    async def fetch_raw(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Fetch the raw payload from the provider API.

        Args:
            cancellation: Request-scoped cancellation signal

        Returns:
            Decoded JSON payload

        Raises:
            FetchError: If the request fails
        """
        pass

    @abstractmethod
    def normalize(self, raw_data: Any) -> list[DataItem]:
        """
        Normalize a raw provider payload.

        Args:
            raw_data: Payload returned by fetch_raw()

        Returns:
            List of DataItem objects

        Raises:
            NormalizationError: If the payload has an unexpected shape
        """
        pass

    @abstractmethod
    def metadata(self) -> SourceMetadata:
        """Return provider metadata."""
        pass

    async def fetch(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> list[DataItem]:
        """
        Fetch and normalize items (main entry point).

        Args:
            cancellation: Request-scoped cancellation signal

        Returns:
            List of normalized items (possibly empty)

        Raises:
            DataSourceError: Any failure, including cancellation
                (SourceCancelledError) and a disabled source
                (SourceUnavailableError)
        """
        if not self._enabled:
            raise SourceUnavailableError(
                message="Source is disabled",
                source_name=self.name,
            )

        try:
            raw_data = await self._fetch_with_retry(cancellation)
            items = self.normalize(raw_data)

        except OperationCancelledError as e:
            error = SourceCancelledError(
                message=f"Fetch cancelled: {e.reason}",
                source_name=self.name,
                reason=e.reason,
            )
            self._on_error(error)
            raise error from e

        except DataSourceError as e:
            self._on_error(e)
            raise

        except Exception as e:
            error = DataSourceError(
                message=f"Unexpected error: {e}",
                source_name=self.name,
                original_error=e,
            )
            self._on_error(error)
            raise error from e

        self._on_success()
        return items

    async def _fetch_with_retry(
        self,
        cancellation: Optional[CancellationToken] = None,
    ) -> Any:
        """Fetch with exponential backoff retry."""
        last_error: Optional[FetchError] = None

        for attempt in range(self._max_retries):
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            try:
                return await self.fetch_raw(cancellation)

            except RateLimitError as e:
                wait_time = e.retry_after_seconds or self._retry_backoff_base ** attempt
                logger.warning(
                    f"[{self.name}] Rate limited, waiting {wait_time}s "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )
                last_error = e

            except FetchError as e:
                # Client errors are not retried
                if e.status_code is not None and not e.is_server_error():
                    raise
                wait_time = self._retry_backoff_base ** attempt
                logger.warning(
                    f"[{self.name}] {e.message}, "
                    f"retrying in {wait_time}s (attempt {attempt + 1}/{self._max_retries})"
                )
                last_error = e

            if attempt < self._max_retries - 1:
                await self._backoff(wait_time, cancellation)

        raise FetchError(
            message=f"Failed after {self._max_retries} attempts: {last_error.message}",
            source_name=self.name,
            status_code=last_error.status_code,
            request_url=last_error.request_url,
            original_error=last_error,
        )

    async def _backoff(
        self,
        seconds: float,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        """Sleep between attempts, waking early if the request is cancelled."""
        if cancellation is None:
            await asyncio.sleep(seconds)
            return

        try:
            await asyncio.wait_for(cancellation.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        cancellation.raise_if_cancelled()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "User-Agent": "SourceAggregator/1.0",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        """Make HTTP request with error handling."""
        session = await self._get_session()

        start_time = time.perf_counter()
        try:
            async with session.request(
                method,
                url,
                params=params,
                headers=headers,
            ) as response:
                latency_ms = (time.perf_counter() - start_time) * 1000

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=self.name,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"{self.name} API returned status code {response.status}",
                        source_name=self.name,
                        status_code=response.status,
                        response_body=body[:1000],
                        request_url=url,
                    )

                data = await response.json(content_type=None)
                logger.debug(f"[{self.name}] Request completed in {latency_ms:.1f}ms")
                return data

        except asyncio.TimeoutError as e:
            raise SourceTimeoutError(
                message=f"Request timed out after {self._timeout}s",
                source_name=self.name,
                timeout_seconds=self._timeout,
                original_error=e,
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            ) from e
        except ValueError as e:
            raise FetchError(
                message=f"Invalid JSON response: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            ) from e

    def _on_success(self) -> None:
        """Handle successful fetch."""
        self._request_count += 1
        self._success_count += 1
        self._health.last_check = self._clock.now()
        self._health.consecutive_failures = 0

        if self._health.status != SourceStatus.HEALTHY:
            if self._health.status != SourceStatus.UNKNOWN:
                logger.info(f"[{self.name}] Recovered to HEALTHY status")
            self._health.status = SourceStatus.HEALTHY

    def _on_error(self, error: DataSourceError) -> None:
        """Handle fetch error."""
        now = self._clock.now()
        self._request_count += 1
        self._health.last_check = now
        self._health.error_count += 1
        self._health.consecutive_failures += 1
        self._health.last_error = str(error)
        self._health.last_error_time = now

        if self._health.consecutive_failures >= self.UNAVAILABLE_THRESHOLD:
            if self._health.status != SourceStatus.UNAVAILABLE:
                self._health.status = SourceStatus.UNAVAILABLE
                logger.error(
                    f"[{self.name}] Marked UNAVAILABLE after "
                    f"{self._health.consecutive_failures} failures"
                )
        elif self._health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            if self._health.status != SourceStatus.DEGRADED:
                self._health.status = SourceStatus.DEGRADED
                logger.warning(
                    f"[{self.name}] Marked DEGRADED after "
                    f"{self._health.consecutive_failures} failures"
                )

        logger.debug(f"[{self.name}] Fetch failed: {error}")

    def get_health(self) -> SourceHealth:
        """Get current health status."""
        return self._health

    def success_rate(self) -> float:
        """Percentage of fetches that succeeded, 0 when none were made."""
        if self._request_count == 0:
            return 0.0
        return round(self._success_count / self._request_count * 100, 2)

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseDataSource":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self._health.status.value})>"
