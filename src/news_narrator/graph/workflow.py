from __future__ import annotations

from langgraph.graph import END, StateGraph

from news_narrator.graph.state import NarrationState
from news_narrator.nodes.fetch import fetch_node
from news_narrator.nodes.lookup import lookup_node, route_after_lookup
from news_narrator.nodes.narrate import narrate_node
from news_narrator.nodes.store import store_node


def build_workflow():
    graph = StateGraph(NarrationState)

    graph.add_node("fetch", fetch_node)
    graph.add_node("lookup", lookup_node)
    graph.add_node("narrate", narrate_node)
    graph.add_node("store", store_node)

    graph.set_entry_point("fetch")
    graph.add_edge("fetch", "lookup")
    graph.add_conditional_edges("lookup", route_after_lookup, {"hit": END, "miss": "narrate"})
    graph.add_edge("narrate", "store")
    graph.add_edge("store", END)

    return graph.compile()
