from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, TypedDict

from news_narrator.cache.narration import NarrationCache
from news_narrator.crew.crew import Crew
from news_narrator.schemas.article import ScrapedArticle
from news_narrator.services.article_scraper import ArticleScraper


class NarrationState(TypedDict, total=False):
    source_url: str
    title: str
    content: str
    cache_key: str
    cached: bool
    narration_text: str
    created_at: str


@dataclass
class NarrationDeps:
    scraper: ArticleScraper
    cache: NarrationCache
    crew_factory: Callable[[ScrapedArticle], Crew]
