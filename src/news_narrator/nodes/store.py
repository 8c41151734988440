from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig
from langsmith import traceable

from news_narrator.errors import CacheIOError
from news_narrator.graph.state import NarrationState
from news_narrator.nodes.fetch import get_deps

logger = logging.getLogger(__name__)


@traceable(name="store_node")
async def store_node(state: NarrationState, config: RunnableConfig) -> NarrationState:
    deps = get_deps(config)
    entry = deps.cache.new_entry(
        source_url=state["source_url"],
        content=state["content"],
        title=state["title"],
        narration_text=state["narration_text"],
    )

    try:
        await deps.cache.store(entry)
    except CacheIOError as exc:
        logger.error("Narration for %s was not cached: %s", entry.source_url, exc)

    return {"cache_key": entry.key, "created_at": entry.created_at.isoformat()}
