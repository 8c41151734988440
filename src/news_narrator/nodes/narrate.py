from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig
from langsmith import traceable

from news_narrator.graph.state import NarrationState
from news_narrator.nodes.fetch import get_deps
from news_narrator.schemas.article import ScrapedArticle

logger = logging.getLogger(__name__)


@traceable(name="narrate_node")
async def narrate_node(state: NarrationState, config: RunnableConfig) -> NarrationState:
    deps = get_deps(config)
    article = ScrapedArticle(
        title=state["title"],
        content=state["content"],
        url=state["source_url"],
        success=True,
    )

    crew = deps.crew_factory(article)
    narration = await crew.kickoff()

    logger.info("Narration complete for %s: %s characters", article.url, len(narration))
    return {"narration_text": narration}
