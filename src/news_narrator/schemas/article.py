from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FeedConfig(BaseModel):
    url: str
    category: str | None = None


class SourceConfig(BaseModel):
    name: str
    url: str
    feeds: list[FeedConfig]


class SourcesFile(BaseModel):
    sources: list[SourceConfig] = Field(default_factory=list)


class ArticleRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    url: str
    category: str = "General"
    summary: str | None = None
    image_url: str | None = None
    published_at: datetime
    scraped_at: datetime


class ScrapedArticle(BaseModel):
    title: str
    content: str
    url: str
    success: bool
    error: str | None = None


class ScrapedListing(BaseModel):
    source: str
    scraped_at: datetime
    articles: list[ArticleRecord] = Field(default_factory=list)

    @property
    def total_articles(self) -> int:
        return len(self.articles)


def serialize_articles(articles: list[ArticleRecord]) -> list[dict[str, Any]]:
    return [article.model_dump(mode="json") for article in articles]


def parse_articles(payload: list[dict[str, Any]] | None) -> list[ArticleRecord]:
    if not payload:
        return []
    return [ArticleRecord.model_validate(item) for item in payload]
