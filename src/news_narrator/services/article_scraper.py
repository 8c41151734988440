from __future__ import annotations

import logging
import re

import httpx
from bs4 import BeautifulSoup

from news_narrator.config import Settings
from news_narrator.schemas.article import ScrapedArticle

logger = logging.getLogger(__name__)

_TITLE_SELECTORS = [
    'h1[data-testid="headline"]',
    "h1.article-title",
    "h1.title",
    "h1.entry-title",
    ".article-title",
    ".entry-title",
    "h1",
]

_CONTENT_SELECTORS = [
    '[data-testid="prism-body"]',
    '[data-module="ArticleBody"]',
    '[itemprop="articleBody"]',
    ".articlebodycontent",
    ".article-body",
    ".story-body",
    ".entry-content",
    ".post-content",
    ".article-content",
    ".content-body",
    "article",
    ".main-content",
    ".article__body",
]

_NOISE_SELECTORS = (
    "script, style, nav, header, footer, aside, .ad, .advertisement, .sidebar, .related-content, "
    ".social-share, .comments, .newsletter-signup, .video-player, .gallery, .photo-gallery"
)

_FOOTER_MARKERS = ("@", "http", "Copyright")
_WHITESPACE = re.compile(r"\s+")

DEFAULT_TITLE = "News Article"


def clean_text(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def extract_title(soup: BeautifulSoup) -> str:
    for selector in _TITLE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        title = clean_text(element.get_text())
        if len(title) > 10:
            return title

    if soup.title and soup.title.string:
        return clean_text(soup.title.string) or DEFAULT_TITLE
    return DEFAULT_TITLE


def extract_content(soup: BeautifulSoup) -> str:
    """Pull the article body, falling back to paragraph text when no body selector matches."""
    for noise in soup.select(_NOISE_SELECTORS):
        noise.decompose()

    for selector in _CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        content = clean_text(element.get_text(" "))
        if len(content) > 200:
            logger.debug("Found content using selector %s (%s chars)", selector, len(content))
            return content

    main = soup.select_one("main, .main, #main, .content, #content, .story, .article")
    if main is not None:
        content = clean_text(" ".join(p.get_text(" ") for p in main.find_all("p")))
        if len(content) >= 200:
            return content

    paragraphs = [clean_text(p.get_text(" ")) for p in soup.find_all("p")]
    paragraphs = [
        text
        for text in paragraphs
        if len(text) > 20 and not any(marker in text for marker in _FOOTER_MARKERS)
    ]
    return " ".join(paragraphs).strip()


def truncate_content(content: str, limit: int) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


class ArticleScraper:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    async def fetch_article_content(self, url: str) -> ScrapedArticle:
        headers = {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        }
        timeout = httpx.Timeout(self.settings.scrape_timeout_seconds)

        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
        except httpx.TimeoutException:
            return self._failure(url, f"Timed out after {self.settings.scrape_timeout_seconds}s")
        except httpx.HTTPError as exc:
            return self._failure(url, str(exc) or exc.__class__.__name__)

        soup = BeautifulSoup(response.text, "lxml")
        title = extract_title(soup)
        content = truncate_content(extract_content(soup), self.settings.max_article_chars)

        if not content:
            return self._failure(url, "No readable article content found", title=title)

        logger.info("Scraped article %r (%s chars)", title[:50], len(content))
        return ScrapedArticle(title=title, content=content, url=url, success=True)

    def _failure(self, url: str, reason: str, title: str = DEFAULT_TITLE) -> ScrapedArticle:
        logger.warning("Failed to scrape article from %s: %s", url, reason)
        return ScrapedArticle(
            title=title,
            content=(
                f"Unable to fetch article content from {url}. The article may be behind a paywall, "
                "require JavaScript, or the website structure may have changed."
            ),
            url=url,
            success=False,
            error=reason,
        )
