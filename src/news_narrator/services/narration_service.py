from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from news_narrator.cache.narration import NarrationCache
from news_narrator.crew.crew import Crew
from news_narrator.graph.state import NarrationDeps, NarrationState
from news_narrator.graph.workflow import build_workflow
from news_narrator.schemas.article import ScrapedArticle
from news_narrator.schemas.cache import NarrationResult
from news_narrator.services.article_scraper import ArticleScraper

logger = logging.getLogger(__name__)


class NarrationService:
    """Fetch, look up, narrate and cache one article per request.

    Concurrent requests for the same URL share one in-flight run, so an unseen
    article is never narrated twice at the same time by this process.
    """

    def __init__(
        self,
        scraper: ArticleScraper,
        cache: NarrationCache,
        crew_factory: Callable[[ScrapedArticle], Crew],
    ) -> None:
        self.deps = NarrationDeps(scraper=scraper, cache=cache, crew_factory=crew_factory)
        self.workflow = build_workflow()
        self._inflight: dict[str, asyncio.Task[NarrationResult]] = {}

    async def run_narration_pipeline(self, url: str) -> NarrationResult:
        url = url.strip()
        if not url:
            raise ValueError("url is required")

        pending = self._inflight.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._run(url))
            self._inflight[url] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(url, None))
        else:
            logger.info("Joining in-flight narration for %s", url)
        return await asyncio.shield(pending)

    async def cached_narration(self, url: str) -> NarrationResult | None:
        entry = await self.deps.cache.latest_for_url(url.strip())
        if entry is None:
            return None
        return NarrationResult(
            narration_text=entry.narration_text,
            title=entry.title,
            source_url=entry.source_url,
            cached=True,
            created_at=entry.created_at,
        )

    async def _run(self, url: str) -> NarrationResult:
        initial_state: NarrationState = {"source_url": url}
        final_state = await self.workflow.ainvoke(initial_state, config={"configurable": {"deps": self.deps}})

        return NarrationResult(
            narration_text=final_state["narration_text"],
            title=final_state["title"],
            source_url=url,
            cached=bool(final_state.get("cached")),
            created_at=datetime.fromisoformat(final_state["created_at"]),
        )
