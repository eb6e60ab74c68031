# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tool Catalog Cache
TTL-bounded copy of the backend tool catalog with stale-on-failure fallback.
"""

import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ambassador_client.core.errors import AmbassadorError
from ambassador_client.protocol import ToolDescriptor

logger = logging.getLogger(__name__)

CatalogFetcher = Callable[[], Awaitable[List[ToolDescriptor]]]


@dataclass(frozen=True)
class CachedCatalog:
    """Catalog snapshot with its capture time (monotonic seconds)"""
    tools: List[ToolDescriptor]
    captured_at: float
    ttl_seconds: float

    def age(self, now: float) -> float:
        return now - self.captured_at

    def is_fresh(self, now: float) -> bool:
        return self.age(now) < self.ttl_seconds


class CatalogCache:
    """
    Serves the tool catalog from memory while fresh.

    A TTL of 0 forces a fetch on every call but still keeps the last snapshot
    as a fallback; ``disabled`` forces a fetch and keeps nothing.
    """

    def __init__(
        self,
        fetcher: CatalogFetcher,
        ttl_seconds: float = 300,
        disabled: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.disabled = disabled
        self.clock = clock
        self._snapshot: Optional[CachedCatalog] = None
        # Bumped by invalidate(); a fetch started under an older generation is not stored
        self._generation = 0

    @property
    def snapshot(self) -> Optional[CachedCatalog]:
        return self._snapshot

    def invalidate(self) -> None:
        """Drop the snapshot regardless of its age"""
        if self._snapshot is not None:
            logger.debug("Tool catalog cache invalidated")
        self._snapshot = None
        self._generation += 1

    async def get(self) -> List[ToolDescriptor]:
        """
        Return the tool catalog.

        Raises:
            AmbassadorError: Fetch failed and no snapshot (even stale) exists
        """
        snapshot = self._snapshot
        if not self.disabled and snapshot is not None:
            now = self.clock()
            if snapshot.is_fresh(now):
                logger.debug(f"Using cached tool catalog (age: {int(snapshot.age(now))}s)")
                return snapshot.tools

        logger.info("Fetching tool catalog from server...")
        generation = self._generation
        try:
            tools = await self.fetcher()
        except AmbassadorError as e:
            if self._snapshot is not None:
                logger.warning(
                    f"Failed to fetch tool catalog, using stale cache "
                    f"(age: {int(self._snapshot.age(self.clock()))}s): {e}"
                )
                return self._snapshot.tools
            raise

        if generation != self._generation:
            logger.debug("Tool catalog invalidated during fetch, not caching result")
        elif not self.disabled:
            self._snapshot = CachedCatalog(
                tools=tools,
                captured_at=self.clock(),
                ttl_seconds=self.ttl_seconds,
            )
        logger.info(f"Fetched {len(tools)} tools")
        return tools
