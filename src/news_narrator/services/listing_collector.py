from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

import feedparser
import httpx
import yaml

from news_narrator.config import Settings
from news_narrator.errors import SourceFetchError
from news_narrator.schemas.article import ArticleRecord, FeedConfig, ScrapedListing, SourceConfig, SourcesFile

logger = logging.getLogger(__name__)

_TRACKING_PARAMS = {"utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "gclid", "fbclid"}

_CATEGORY_PATTERNS = [
    ("news/national", "National"),
    ("news/international", "International"),
    ("news/cities", "Cities"),
    ("sport", "Sports"),
    ("business", "Business"),
    ("opinion", "Opinion"),
    ("entertainment", "Entertainment"),
    ("sci-tech", "Technology"),
    ("technology", "Technology"),
    ("society", "Society"),
    ("education", "Education"),
    ("health", "Health"),
]

_NON_SLUG = re.compile(r"[^a-z0-9]+")
_TAGS = re.compile(r"<[^>]+>")


def normalize_url(url: str) -> str:
    parsed = urlparse(url.strip())
    cleaned_query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k not in _TRACKING_PARAMS]
    return urlunparse(parsed._replace(fragment="", query=urlencode(cleaned_query, doseq=True)))


def build_full_url(base_url: str, link: str) -> str:
    if link.startswith("//"):
        return f"https:{link}"
    return urljoin(base_url.rstrip("/") + "/", link)


def category_from_url(url: str) -> str:
    path = urlparse(url).path.lower()
    for pattern, category in _CATEGORY_PATTERNS:
        if pattern in path:
            return category
    return "General"


def clean_title(title: str) -> str:
    cleaned = " ".join(title.split())
    for fancy, plain in (("“", '"'), ("”", '"'), ("‘", "'"), ("’", "'"), ("…", "...")):
        cleaned = cleaned.replace(fancy, plain)
    return cleaned


def build_article_id(title: str) -> str:
    return _NON_SLUG.sub("-", title.lower()).strip("-")[:50]


def strip_html(value: str) -> str:
    return " ".join(_TAGS.sub(" ", value).split())


def parse_entry_datetime(entry: dict[str, Any]) -> datetime | None:
    parsed_struct = entry.get("published_parsed") or entry.get("updated_parsed")
    if parsed_struct is not None:
        return datetime(*parsed_struct[:6], tzinfo=timezone.utc)

    date_text = entry.get("published") or entry.get("updated")
    if not date_text:
        return None
    try:
        parsed = parsedate_to_datetime(str(date_text))
    except (TypeError, ValueError):
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def extract_entry_image(entry: dict[str, Any]) -> str | None:
    for field in ("media_content", "media_thumbnail"):
        for item in entry.get(field) or []:
            if isinstance(item, dict) and item.get("url"):
                return str(item["url"])

    for link in entry.get("links") or []:
        if isinstance(link, dict) and str(link.get("type") or "").startswith("image/") and link.get("href"):
            return str(link["href"])

    return None


def dedupe_by_title(articles: list[ArticleRecord]) -> list[ArticleRecord]:
    seen: set[str] = set()
    unique: list[ArticleRecord] = []
    for article in articles:
        normalized = " ".join(article.title.lower().split())
        if normalized in seen:
            continue
        seen.add(normalized)
        unique.append(article)
    return unique


class ListingCollector:
    """Builds the article listing from the RSS feeds named in the sources file."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def load_sources(self) -> list[SourceConfig]:
        with open(self.settings.sources_file, "r", encoding="utf-8") as source_file:
            data = yaml.safe_load(source_file) or {}
        return SourcesFile.model_validate(data).sources

    def parse_feed(self, source: SourceConfig, feed: FeedConfig, text: str, scraped_at: datetime) -> list[ArticleRecord]:
        parsed = feedparser.parse(text)
        articles: list[ArticleRecord] = []

        for raw_entry in parsed.entries[: self.settings.max_feed_items_per_source]:
            entry = dict(raw_entry)
            link = str(entry.get("link") or "").strip()
            title = clean_title(str(entry.get("title") or ""))
            if not link or len(title) < 15:
                continue

            url = normalize_url(build_full_url(source.url, link))
            summary = strip_html(str(entry.get("summary") or entry.get("description") or "")) or None
            articles.append(
                ArticleRecord(
                    id=build_article_id(title),
                    title=title,
                    url=url,
                    category=feed.category or category_from_url(url),
                    summary=summary,
                    image_url=extract_entry_image(entry),
                    published_at=parse_entry_datetime(entry) or scraped_at,
                    scraped_at=scraped_at,
                )
            )

        return articles

    async def fetch_listing(self) -> ScrapedListing:
        sources = self.load_sources()
        if not sources:
            raise SourceFetchError(f"No news sources configured in {self.settings.sources_file}")

        scraped_at = datetime.now(timezone.utc)
        timeout = httpx.Timeout(self.settings.listing_timeout_seconds)
        semaphore = asyncio.Semaphore(self.settings.http_concurrency)
        jobs = [(source, feed) for source in sources for feed in source.feeds]
        if not jobs:
            raise SourceFetchError(f"No feeds configured in {self.settings.sources_file}")

        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True, transport=self._transport) as client:
            async def worker(source: SourceConfig, feed: FeedConfig) -> tuple[list[ArticleRecord], str | None]:
                try:
                    async with semaphore:
                        response = await client.get(feed.url, headers={"User-Agent": self.settings.user_agent})
                        response.raise_for_status()
                    return self.parse_feed(source, feed, response.text, scraped_at), None
                except httpx.HTTPError as exc:
                    error = f"Feed fetch failed ({source.name} {feed.url}): {str(exc) or exc.__class__.__name__}"
                    logger.warning(error)
                    return [], error

            results = await asyncio.gather(*(worker(source, feed) for source, feed in jobs))

        errors = [error for _, error in results if error]
        if len(errors) == len(jobs):
            raise SourceFetchError(f"Every feed failed: {errors[0]}")

        articles = dedupe_by_title([article for batch, _ in results for article in batch])
        articles = articles[: self.settings.max_listing_articles]
        logger.info("Collected %s articles from %s feeds (%s failed)", len(articles), len(jobs), len(errors))

        return ScrapedListing(
            source=", ".join(source.name for source in sources),
            scraped_at=scraped_at,
            articles=articles,
        )
