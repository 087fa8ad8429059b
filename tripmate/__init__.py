"""
Stateful trip-context and routing engine for a trip-planning assistant.

This package contains:
- context/: Trip context store and staleness rule
- capture/: Capture tools and the regex fallback extractor
- safety/: Safety classifier gate and policy
- recovery/: Itinerary recovery parser
- specialists/: Specialist registry, prompts and tool loop
- graph/: Per-turn routing graph
- shared/: Common infrastructure (LLM client, logging, contracts, errors)
"""

from tripmate.engine import TripEngine
from tripmate.graph.build import create_turn_graph

__all__ = ["TripEngine", "create_turn_graph"]
