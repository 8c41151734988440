from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from news_narrator.cache.storage import read_json, remove_file, write_json_atomic
from news_narrator.errors import CacheIOError
from news_narrator.schemas.article import ScrapedListing
from news_narrator.schemas.cache import ListingCacheEntry, ListingCacheMetadata, ListingCacheStatus

logger = logging.getLogger(__name__)

CACHE_FILENAME = "news-cache.json"
METADATA_FILENAME = "cache-metadata.json"


class ListingCache:
    """Single-record store for the latest scraped listing.

    Every ``put`` replaces the record wholesale. An entry whose
    ``last_updated`` is more than ``max_age`` in the past is expired and only
    returned when the caller explicitly accepts expired data.
    """

    def __init__(
        self,
        directory: str | Path,
        max_age: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.cache_file = self.directory / CACHE_FILENAME
        self.metadata_file = self.directory / METADATA_FILENAME
        self.max_age = max_age
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_expired(self, entry: ListingCacheEntry) -> bool:
        return self._clock() - entry.last_updated > self.max_age

    async def get(self, allow_expired: bool = False) -> ListingCacheEntry | None:
        try:
            entry = await asyncio.to_thread(self._read_entry)
        except CacheIOError as exc:
            logger.warning("Listing cache read failed, treating as miss: %s", exc)
            return None

        if entry is None:
            logger.debug("No listing cache found")
            return None
        if not allow_expired and self.is_expired(entry):
            logger.info("Listing cache expired (last updated %s)", entry.last_updated.isoformat())
            return None
        return entry

    async def put(self, listing: ScrapedListing, next_refresh: datetime | None = None) -> ListingCacheEntry:
        now = self._clock()
        entry = ListingCacheEntry(
            source=listing.source,
            scraped_at=listing.scraped_at,
            articles=list(listing.articles),
            last_updated=now,
        )

        def write() -> None:
            size = write_json_atomic(self.cache_file, entry.model_dump(mode="json"))
            metadata = ListingCacheMetadata(
                last_refresh=now,
                next_scheduled_refresh=next_refresh,
                total_articles_cached=entry.total_articles,
                cache_size=size,
            )
            write_json_atomic(self.metadata_file, metadata.model_dump(mode="json"))

        try:
            await asyncio.to_thread(write)
        except (OSError, ValueError) as exc:
            raise CacheIOError(f"Failed to store listing cache in {self.directory}: {exc}") from exc

        logger.info("Cached %s articles from %s", entry.total_articles, entry.source)
        return entry

    async def metadata(self) -> ListingCacheMetadata:
        def read() -> ListingCacheMetadata:
            data = read_json(self.metadata_file)
            if data is None:
                return ListingCacheMetadata()
            return ListingCacheMetadata.model_validate(data)

        try:
            return await asyncio.to_thread(read)
        except (OSError, ValueError) as exc:
            logger.warning("Listing cache metadata unreadable: %s", exc)
            return ListingCacheMetadata()

    async def status(self) -> ListingCacheStatus:
        try:
            entry = await asyncio.to_thread(self._read_entry)
        except CacheIOError as exc:
            return ListingCacheStatus(exists=self.cache_file.exists(), error=str(exc))

        if entry is None:
            return ListingCacheStatus(exists=False)

        metadata = await self.metadata()
        return ListingCacheStatus(
            exists=True,
            last_updated=entry.last_updated,
            is_expired=self.is_expired(entry),
            size=self.cache_file.stat().st_size,
            articles_count=entry.total_articles,
            next_refresh=metadata.next_scheduled_refresh,
        )

    async def clear(self) -> bool:
        def remove() -> bool:
            removed_cache = remove_file(self.cache_file)
            removed_metadata = remove_file(self.metadata_file)
            return removed_cache or removed_metadata

        try:
            removed = await asyncio.to_thread(remove)
        except OSError as exc:
            raise CacheIOError(f"Failed to clear listing cache: {exc}") from exc
        logger.info("Listing cache cleared")
        return removed

    def _read_entry(self) -> ListingCacheEntry | None:
        try:
            data = read_json(self.cache_file)
        except (OSError, ValueError) as exc:
            raise CacheIOError(f"Failed to read {self.cache_file}: {exc}") from exc
        if data is None:
            return None
        try:
            return ListingCacheEntry.model_validate(data)
        except ValidationError as exc:
            raise CacheIOError(f"Malformed listing cache {self.cache_file}: {exc}") from exc
