from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig
from langsmith import traceable

from news_narrator.errors import SourceFetchError
from news_narrator.graph.state import NarrationDeps, NarrationState

logger = logging.getLogger(__name__)


def get_deps(config: RunnableConfig) -> NarrationDeps:
    return config["configurable"]["deps"]


@traceable(name="fetch_node")
async def fetch_node(state: NarrationState, config: RunnableConfig) -> NarrationState:
    deps = get_deps(config)
    url = state["source_url"]

    article = await deps.scraper.fetch_article_content(url)
    if not article.success:
        raise SourceFetchError(f"Could not fetch article content from {url}: {article.error or 'unknown error'}")

    logger.info("Fetched article %r (%s chars)", article.title[:60], len(article.content))
    return {"title": article.title, "content": article.content}
