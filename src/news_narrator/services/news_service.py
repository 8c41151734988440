from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from news_narrator.cache.listing import ListingCache
from news_narrator.errors import CacheIOError, SourceFetchError
from news_narrator.schemas.article import ScrapedListing
from news_narrator.schemas.cache import CacheInfo, ListingCacheEntry, ListingResult
from news_narrator.services.listing_collector import ListingCollector
from news_narrator.services.scheduler import next_refresh_time

logger = logging.getLogger(__name__)

STALE_MESSAGE = "Fresh data unavailable, showing cached data"


class NewsService:
    """Serves the article listing from the cache, scraping when it is missing or expired.

    At most one scrape-and-store runs at a time. Callers that arrive while a
    scrape is in flight await the same result instead of starting another.
    """

    def __init__(
        self,
        collector: ListingCollector,
        cache: ListingCache,
        next_refresh: Callable[[], Any] = next_refresh_time,
    ) -> None:
        self.collector = collector
        self.cache = cache
        self._next_refresh = next_refresh
        self._scrape_lock = asyncio.Lock()
        self._inflight: asyncio.Task[ListingResult] | None = None

    @property
    def is_scraping(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def get_listing(self, force_refresh: bool = False) -> ListingResult:
        try:
            if force_refresh or self.is_scraping:
                logger.info("Refresh requested or scrape in progress, waiting for fresh data")
                return await self.scrape_and_cache()

            cached = await self.cache.get(allow_expired=False)
            if cached is not None:
                logger.info("Returning cached listing (%s articles)", cached.total_articles)
                return await self._from_cache(cached)

            logger.info("Listing cache miss, scraping fresh data")
            return await self.scrape_and_cache()
        except SourceFetchError as exc:
            stale = await self.cache.get(allow_expired=True)
            if stale is None:
                raise
            logger.warning("Returning stale listing after refresh failure: %s", exc)
            result = await self._from_cache(stale)
            result.is_stale = True
            result.error = f"{STALE_MESSAGE}: {exc}"
            return result

    async def refresh(self) -> ListingResult:
        return await self.get_listing(force_refresh=True)

    async def scrape_and_cache(self) -> ListingResult:
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._scrape_and_store())
        return await asyncio.shield(self._inflight)

    async def cache_info(self) -> dict[str, Any]:
        status = await self.cache.status()
        metadata = await self.cache.metadata()
        return {
            "cache": status.model_dump(mode="json"),
            "metadata": metadata.model_dump(mode="json"),
            "scraping": {"is_in_progress": self.is_scraping},
        }

    async def clear_cache(self) -> bool:
        return await self.cache.clear()

    async def _scrape_and_store(self) -> ListingResult:
        async with self._scrape_lock:
            logger.info("Starting listing scrape")
            try:
                listing = await self.collector.fetch_listing()
            except SourceFetchError:
                raise
            except Exception as exc:
                raise SourceFetchError(f"Listing scrape failed: {exc}") from exc

            await self._store(listing)
            return ListingResult(
                source=listing.source,
                scraped_at=listing.scraped_at,
                articles=listing.articles,
                from_cache=False,
            )

    async def _store(self, listing: ScrapedListing) -> None:
        try:
            await self.cache.put(listing, next_refresh=self._next_refresh())
        except CacheIOError as exc:
            logger.error("Could not persist listing, returning it uncached: %s", exc)

    async def _from_cache(self, entry: ListingCacheEntry) -> ListingResult:
        metadata = await self.cache.metadata()
        return ListingResult(
            source=entry.source,
            scraped_at=entry.scraped_at,
            articles=entry.articles,
            from_cache=True,
            cache_info=CacheInfo(
                last_updated=entry.last_updated,
                next_refresh=metadata.next_scheduled_refresh,
                articles_count=entry.total_articles,
            ),
        )
