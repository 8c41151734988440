from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from news_narrator.schemas.article import ArticleRecord


class NarrationCacheEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    source_url: str
    fingerprint: str
    title: str
    narration_text: str
    created_at: AwareDatetime


class ListingCacheEntry(BaseModel):
    source: str
    scraped_at: datetime
    articles: list[ArticleRecord] = Field(default_factory=list)
    last_updated: AwareDatetime

    @property
    def total_articles(self) -> int:
        return len(self.articles)


class ListingCacheMetadata(BaseModel):
    last_refresh: datetime | None = None
    next_scheduled_refresh: datetime | None = None
    total_articles_cached: int = 0
    cache_size: int = 0


class ListingCacheStatus(BaseModel):
    exists: bool
    last_updated: datetime | None = None
    is_expired: bool = True
    size: int = 0
    articles_count: int = 0
    next_refresh: datetime | None = None
    error: str | None = None


class CacheInfo(BaseModel):
    last_updated: datetime
    next_refresh: datetime | None = None
    articles_count: int = 0


class NarrationResult(BaseModel):
    narration_text: str
    title: str
    source_url: str
    cached: bool
    created_at: datetime


class ListingResult(BaseModel):
    source: str
    scraped_at: datetime
    articles: list[ArticleRecord] = Field(default_factory=list)
    from_cache: bool
    is_stale: bool = False
    error: str | None = None
    cache_info: CacheInfo | None = None

    def filter_category(self, category: str | None) -> list[ArticleRecord]:
        if not category or category.lower() == "all":
            return list(self.articles)
        wanted = category.lower()
        return [article for article in self.articles if article.category.lower() == wanted]

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        payload["total_articles"] = len(self.articles)
        return payload
