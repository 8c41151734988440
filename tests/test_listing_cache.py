from datetime import datetime, timedelta, timezone

import pytest

from news_narrator.cache.listing import ListingCache
from news_narrator.errors import CacheIOError
from news_narrator.schemas.article import ArticleRecord, ScrapedListing

T0 = datetime(2026, 10, 19, 6, 0, tzinfo=timezone.utc)
MAX_AGE = timedelta(hours=24)
EPSILON = timedelta(seconds=1)


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _listing(*titles: str) -> ScrapedListing:
    articles = [
        ArticleRecord(
            id=f"story-{idx}",
            title=title,
            url=f"https://example.com/news/national/{idx}",
            category="National",
            published_at=T0,
            scraped_at=T0,
        )
        for idx, title in enumerate(titles)
    ]
    return ScrapedListing(source="The Hindu", scraped_at=T0, articles=articles)


@pytest.mark.asyncio
async def test_entry_is_fresh_just_before_max_age(tmp_path) -> None:
    clock = Clock(T0)
    cache = ListingCache(tmp_path, max_age=MAX_AGE, clock=clock)
    await cache.put(_listing("Flood relief reaches village X"))

    clock.now = T0 + MAX_AGE - EPSILON
    entry = await cache.get()

    assert entry is not None
    assert entry.articles[0].title == "Flood relief reaches village X"


@pytest.mark.asyncio
async def test_entry_is_a_miss_just_after_max_age(tmp_path) -> None:
    clock = Clock(T0)
    cache = ListingCache(tmp_path, max_age=MAX_AGE, clock=clock)
    await cache.put(_listing("Flood relief reaches village X"))

    clock.now = T0 + MAX_AGE + EPSILON

    assert await cache.get() is None
    expired = await cache.get(allow_expired=True)
    assert expired is not None
    assert expired.last_updated == T0


@pytest.mark.asyncio
async def test_put_replaces_entry_wholesale(tmp_path) -> None:
    cache = ListingCache(tmp_path, clock=Clock(T0))
    await cache.put(_listing("First headline about floods", "Second headline about rain"))
    await cache.put(_listing("Only headline after refresh"))

    entry = await cache.get()
    assert entry is not None
    assert [article.title for article in entry.articles] == ["Only headline after refresh"]


@pytest.mark.asyncio
async def test_missing_and_malformed_cache_are_misses(tmp_path) -> None:
    cache = ListingCache(tmp_path, clock=Clock(T0))
    assert await cache.get(allow_expired=True) is None

    cache.cache_file.write_text("[1, 2", encoding="utf-8")
    assert await cache.get(allow_expired=True) is None


@pytest.mark.asyncio
async def test_put_writes_metadata_and_status(tmp_path) -> None:
    next_refresh = T0 + timedelta(days=1)
    cache = ListingCache(tmp_path, clock=Clock(T0))
    await cache.put(_listing("Flood relief reaches village X"), next_refresh=next_refresh)

    metadata = await cache.metadata()
    assert metadata.last_refresh == T0
    assert metadata.next_scheduled_refresh == next_refresh
    assert metadata.total_articles_cached == 1
    assert metadata.cache_size > 0

    status = await cache.status()
    assert status.exists is True
    assert status.is_expired is False
    assert status.articles_count == 1
    assert status.next_refresh == next_refresh


@pytest.mark.asyncio
async def test_clear_removes_both_records(tmp_path) -> None:
    cache = ListingCache(tmp_path, clock=Clock(T0))
    await cache.put(_listing("Flood relief reaches village X"))

    assert await cache.clear() is True
    assert not cache.cache_file.exists()
    assert not cache.metadata_file.exists()
    assert (await cache.status()).exists is False


@pytest.mark.asyncio
async def test_put_failure_raises_cache_io_error(tmp_path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    cache = ListingCache(blocker, clock=Clock(T0))

    with pytest.raises(CacheIOError):
        await cache.put(_listing("Flood relief reaches village X"))


@pytest.mark.asyncio
async def test_timestamp_without_timezone_is_a_miss(tmp_path) -> None:
    cache = ListingCache(tmp_path, clock=Clock(T0))
    cache.cache_file.write_text(
        '{"source": "The Hindu", "scraped_at": "2026-10-19T06:00:00", '
        '"articles": [], "last_updated": "2026-10-19T06:00:00"}',
        encoding="utf-8",
    )

    assert await cache.get() is None
    assert await cache.get(allow_expired=True) is None
    status = await cache.status()
    assert status.exists is True
    assert status.error is not None


@pytest.mark.asyncio
async def test_unencodable_listing_raises_cache_io_error(tmp_path) -> None:
    cache = ListingCache(tmp_path, clock=Clock(T0))

    with pytest.raises(CacheIOError):
        await cache.put(_listing("Flood relief \ud800 reaches village X"))
    assert not cache.cache_file.exists()
