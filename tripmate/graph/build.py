"""
Turn graph construction.

Builds the per-turn graph:

    classify -> route_after_classify
      -> "blocked" -> blocked -> finalize
      -> "route"   -> route -> route_after_routing
           -> "specialist" -> specialist -> recover -> finalize
           -> "respond"    -> respond -> finalize
    finalize -> END
"""

import logging

from langgraph.graph import StateGraph, END

from tripmate.graph.nodes import (
    blocked_node,
    classify_node,
    finalize_node,
    recover_node,
    respond_node,
    route_node,
    specialist_node,
)
from tripmate.graph.router import route_after_classify, route_after_routing
from tripmate.graph.state import TurnState


logger = logging.getLogger(__name__)


def create_turn_graph():
    """
    Create and compile the turn graph.

    Returns:
        Compiled LangGraph application ready for ainvoke.
    """
    graph = StateGraph(TurnState)

    graph.add_node("classify", classify_node)
    graph.add_node("blocked", blocked_node)
    graph.add_node("route", route_node)
    graph.add_node("respond", respond_node)
    graph.add_node("specialist", specialist_node)
    graph.add_node("recover", recover_node)
    graph.add_node("finalize", finalize_node)

    graph.set_entry_point("classify")

    graph.add_conditional_edges(
        "classify",
        route_after_classify,
        {
            "blocked": "blocked",
            "route": "route",
        },
    )

    graph.add_conditional_edges(
        "route",
        route_after_routing,
        {
            "specialist": "specialist",
            "respond": "respond",
        },
    )

    graph.add_edge("specialist", "recover")
    graph.add_edge("recover", "finalize")
    graph.add_edge("respond", "finalize")
    graph.add_edge("blocked", "finalize")
    graph.add_edge("finalize", END)

    app = graph.compile()
    logger.debug("Turn graph compiled")

    return app
