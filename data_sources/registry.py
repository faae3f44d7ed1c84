"""
Source Registry - Central registry of the providers an aggregation can use.

Provides:
- Source registration and discovery
- Case-insensitive lookup by declared name
- Request-time resolution of the requested source subset
- No downstream dependency on specific providers
"""

import logging
from typing import Any, Iterable, Optional

from data_sources.base import BaseDataSource
from data_sources.models import SourceHealth, SourceMetadata


logger = logging.getLogger(__name__)


class SourceRegistry:
    """
    Central registry for data sources.

    Sources are keyed by their lower-cased name and kept in
    registration order; that order is the order in which the
    aggregation engine launches fetches.

    Usage:
        registry = SourceRegistry()
        registry.register(NewsSource(config.sources.news))
        registry.register(UsersSource(config.sources.users))

        sources = registry.resolve({"news"})
    """

    def __init__(self) -> None:
        self._sources: dict[str, BaseDataSource] = {}

    @staticmethod
    def _key(name: str) -> str:
        return name.strip().lower()

    def register(self, source: BaseDataSource) -> None:
        """
        Register a data source.

        A source whose name matches an existing one (ignoring case)
        replaces it in place.
        """
        key = self._key(source.name)

        if key in self._sources:
            logger.warning(f"Source '{source.name}' already registered, replacing")

        self._sources[key] = source
        logger.info(f"Registered source '{source.name}'")

    def unregister(self, name: str) -> Optional[BaseDataSource]:
        """Unregister a data source."""
        source = self._sources.pop(self._key(name), None)
        if source is not None:
            logger.info(f"Unregistered source '{source.name}'")
        return source

    def get_source(self, name: str) -> Optional[BaseDataSource]:
        """Get a specific source by name (case-insensitive)."""
        return self._sources.get(self._key(name))

    def list_sources(self) -> list[str]:
        """List all registered source names in registration order."""
        return [source.name for source in self._sources.values()]

    def resolve(self, names: Optional[Iterable[str]] = None) -> list[BaseDataSource]:
        """
        Resolve the sources an aggregation request targets.

        Args:
            names: Requested source names. None or empty means all
                registered sources.

        Returns:
            Matching sources in registration order. Unknown names are
            ignored.
        """
        requested = {self._key(n) for n in (names or ()) if n and n.strip()}
        if not requested:
            return list(self._sources.values())

        unknown = requested - self._sources.keys()
        if unknown:
            logger.debug(f"Ignoring unknown sources: {sorted(unknown)}")

        return [
            source for key, source in self._sources.items()
            if key in requested
        ]

    def get_all_metadata(self) -> dict[str, SourceMetadata]:
        """Get metadata for all registered sources."""
        return {source.name: source.metadata() for source in self._sources.values()}

    def get_all_health(self) -> dict[str, SourceHealth]:
        """Get health status for all registered sources."""
        return {source.name: source.get_health() for source in self._sources.values()}

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        return {
            "total_sources": len(self._sources),
            "sources": {
                source.name: {
                    "enabled": source.enabled,
                    "status": source.get_health().status.value,
                    "success_rate": source.success_rate(),
                }
                for source in self._sources.values()
            },
        }

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._key(name) in self._sources

    async def close(self) -> None:
        """
        Release provider resources (HTTP sessions).

        Sources stay registered; a closed provider opens a new session
        on its next fetch, so the registry can be reused after a restart.
        """
        for source in self._sources.values():
            try:
                await source.close()
            except Exception as e:
                logger.error(f"Error closing source {source.name}: {e}")

        logger.info("Registry closed")

    async def __aenter__(self) -> "SourceRegistry":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
