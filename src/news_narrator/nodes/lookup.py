from __future__ import annotations

import logging
from typing import Literal

from langchain_core.runnables import RunnableConfig
from langsmith import traceable

from news_narrator.cache.narration import derive_narration_key
from news_narrator.graph.state import NarrationState
from news_narrator.nodes.fetch import get_deps

logger = logging.getLogger(__name__)


@traceable(name="lookup_node")
async def lookup_node(state: NarrationState, config: RunnableConfig) -> NarrationState:
    deps = get_deps(config)
    url = state["source_url"]
    content = state["content"]

    entry = await deps.cache.lookup(url, content)
    if entry is None:
        logger.info("Narration cache miss for %s", url)
        return {"cache_key": derive_narration_key(url, content), "cached": False}

    logger.info("Narration cache hit for %s (%s)", url, entry.key)
    return {
        "cache_key": entry.key,
        "cached": True,
        "title": entry.title,
        "narration_text": entry.narration_text,
        "created_at": entry.created_at.isoformat(),
    }


def route_after_lookup(state: NarrationState) -> Literal["hit", "miss"]:
    return "hit" if state.get("cached") else "miss"
