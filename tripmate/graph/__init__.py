"""
Per-turn routing graph.

Runs one user message through the safety gate, the router and a single
specialist, then repairs a missed itinerary capture:
    classify -> route -> specialist -> recover -> finalize
"""

from tripmate.graph.build import create_turn_graph

__all__ = ["create_turn_graph"]
