from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import timedelta
from pathlib import Path

from news_narrator.cache.listing import ListingCache
from news_narrator.cache.narration import NarrationCache
from news_narrator.config import Settings, configure_langsmith_env, get_settings
from news_narrator.crew.crew import Crew
from news_narrator.crew.pipeline import build_narration_crew
from news_narrator.errors import NarratorError, UpstreamGenerationError
from news_narrator.logging import setup_logging
from news_narrator.schemas.article import ScrapedArticle
from news_narrator.services.article_scraper import ArticleScraper
from news_narrator.services.listing_collector import ListingCollector
from news_narrator.services.llm_client import LLMClient
from news_narrator.services.narration_service import NarrationService
from news_narrator.services.news_service import NewsService
from news_narrator.services.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="News Narrator")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logs")
    subparsers = parser.add_subparsers(dest="command")

    narrate_parser = subparsers.add_parser("narrate", help="Narrate one article as Tolstoy would")
    narrate_parser.add_argument("url", help="Article URL")
    narrate_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    show_parser = subparsers.add_parser("show", help="Print the newest cached narration for a URL")
    show_parser.add_argument("url", help="Article URL")
    show_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    news_parser = subparsers.add_parser("news", help="List the latest headlines")
    news_parser.add_argument("--refresh", action="store_true", help="Scrape even if the cache is fresh")
    news_parser.add_argument("--category", default=None, help="Only show one category")
    news_parser.add_argument("--limit", type=int, default=None, help="Max headlines to print")
    news_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the caches")
    cache_parser.add_argument("action", choices=["status", "clear", "cleanup"])

    schedule_parser = subparsers.add_parser("schedule", help="Refresh the listing on a schedule")
    schedule_parser.add_argument("--hours", type=int, default=None, help="Refresh every N hours instead of daily")

    return parser


def build_narration_service(settings: Settings, client: LLMClient | None = None) -> NarrationService:
    def crew_factory(article: ScrapedArticle) -> Crew:
        if client is None:
            raise UpstreamGenerationError("No LLM client configured for narration")
        return build_narration_crew(article, client, include_summary=settings.narration_include_summary_task)

    return NarrationService(
        scraper=ArticleScraper(settings),
        cache=NarrationCache(Path(settings.cache_dir) / "narrations"),
        crew_factory=crew_factory,
    )


def build_news_service(settings: Settings) -> NewsService:
    cache = ListingCache(settings.cache_dir, max_age=timedelta(hours=settings.listing_max_age_hours))
    return NewsService(ListingCollector(settings), cache)


def print_error(exc: NarratorError) -> None:
    descriptor = exc.describe()
    print(f"Error [{descriptor['kind']}]: {descriptor['message']}")


async def narrate(settings: Settings, args: argparse.Namespace) -> int:
    missing_fields = settings.missing_required_runtime_fields(needs_llm=True)
    if missing_fields:
        joined = ", ".join(missing_fields)
        logger.error("Configuration error: missing required .env values: %s", joined)
        print(f"Configuration error: missing required .env values: {joined}")
        return 2

    client = LLMClient(settings)
    service = build_narration_service(settings, client)
    try:
        result = await service.run_narration_pipeline(args.url)
    except NarratorError as exc:
        logger.error("Narration failed for %s: %s", args.url, exc)
        print_error(exc)
        return 1
    finally:
        await client.aclose()

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(f"{result.title}{' (cached)' if result.cached else ''}\n")
        print(result.narration_text)
    return 0


async def show(settings: Settings, args: argparse.Namespace) -> int:
    service = build_narration_service(settings)
    result = await service.cached_narration(args.url)
    if result is None:
        print("Narration not found in cache. Run `narrate` to generate it.")
        return 1

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        print(f"{result.title} (cached {result.created_at.isoformat()})\n")
        print(result.narration_text)
    return 0


async def news(settings: Settings, args: argparse.Namespace) -> int:
    service = build_news_service(settings)
    try:
        result = await service.get_listing(force_refresh=bool(args.refresh))
    except NarratorError as exc:
        logger.error("Listing unavailable: %s", exc)
        print_error(exc)
        return 1

    articles = result.filter_category(args.category)
    if args.limit is not None:
        articles = articles[: max(0, args.limit)]

    if args.json:
        payload = result.to_payload()
        payload["articles"] = [article.model_dump(mode="json") for article in articles]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    origin = "cache" if result.from_cache else "fresh scrape"
    print(f"{result.source}: {len(articles)} articles from {origin}")
    if result.is_stale:
        print(f"Warning: {result.error}")
    for article in articles:
        print(f"- [{article.category}] {article.title}\n  {article.url}")
    return 0


async def cache(settings: Settings, args: argparse.Namespace) -> int:
    news_service = build_news_service(settings)
    narrations = NarrationCache(Path(settings.cache_dir) / "narrations")

    if args.action == "status":
        info = await news_service.cache_info()
        info["narrations"] = await narrations.stats()
        print(json.dumps(info, indent=2))
    elif args.action == "clear":
        await news_service.clear_cache()
        removed = await narrations.clear()
        print(f"Cleared listing cache and {removed} narrations")
    else:
        removed = await narrations.cleanup(timedelta(days=settings.narration_max_age_days))
        print(f"Evicted {removed} narrations older than {settings.narration_max_age_days} days")
    return 0


async def schedule(settings: Settings, args: argparse.Namespace) -> int:
    service = build_news_service(settings)
    scheduler = RefreshScheduler(
        service.refresh,
        hour=settings.refresh_hour,
        interval_hours=args.hours or settings.refresh_interval_hours,
    )
    await scheduler.run_forever()
    return 0


COMMANDS = {
    "narrate": narrate,
    "show": show,
    "news": news,
    "cache": cache,
    "schedule": schedule,
}


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return

    setup_logging(verbose=bool(args.verbose))
    settings = get_settings()
    configure_langsmith_env(settings)

    exit_code = asyncio.run(handler(settings, args))
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
